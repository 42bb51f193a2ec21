"""
WorkerService -- worker registration.

Workers are registered by administration and referenced by request lines,
renditions and ledger entries.  They are never hard-deleted.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from viatico_kernel.domain.actor import Actor, UserRole, require_role
from viatico_kernel.domain.dtos import WorkerInfo
from viatico_kernel.exceptions import DuplicateLegajoError, InvalidInputError
from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.worker import DEFAULT_WORKER_STATUS, Worker
from viatico_kernel.services.base import BaseService

logger = get_logger("services.worker")

WORKER_AUDIT_ENTITY = "worker"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class WorkerService(BaseService):

    def create_worker(
        self,
        actor: Actor,
        name: str,
        legajo: str,
        dni: str | None = None,
        cbu: str | None = None,
        bank: str | None = None,
        province: str | None = None,
    ) -> WorkerInfo:
        """
        Register a worker with status ``Activo``.

        Raises:
            ActorNotFoundError: Actor is not ADMIN.
            InvalidInputError: Blank name or legajo.
            DuplicateLegajoError: Legajo already registered.
        """
        require_role(actor, UserRole.ADMIN)
        clean_name = _clean(name)
        clean_legajo = _clean(legajo)
        if not clean_name:
            raise InvalidInputError("name", "is required")
        if not clean_legajo:
            raise InvalidInputError("legajo", "is required")

        existing = self.session.execute(
            select(Worker.id).where(Worker.legajo == clean_legajo)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateLegajoError(clean_legajo)

        worker = Worker(
            legajo=clean_legajo,
            name=clean_name,
            dni=_clean(dni),
            cbu=_clean(cbu),
            bank=_clean(bank),
            province=_clean(province),
            status=DEFAULT_WORKER_STATUS,
            created_by_id=actor.user_id,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(worker)
            self.session.flush()
            savepoint.commit()
        except IntegrityError as exc:
            # Same legajo registered concurrently
            savepoint.rollback()
            raise DuplicateLegajoError(clean_legajo) from exc

        self.auditor.record(
            WORKER_AUDIT_ENTITY,
            worker.id,
            "create_worker",
            {"legajo": worker.legajo, "name": worker.name, "status": worker.status},
            actor.user_id,
        )
        logger.info(
            "worker_created",
            extra={"worker_id": str(worker.id), "legajo": worker.legajo},
        )
        return WorkerInfo.from_model(worker)
