"""
ViaticActions -- the transaction-owning boundary.

A presentation layer calls one method per user action.  Each call:

    1. resolves the actor for the action's role (no actor -> REJECTED,
       nothing written)
    2. opens a session from the factory
    3. runs the service operation
    4. commits on success, rolls back on any failure
    5. returns an ``ActionResult``

Domain failures (any ``ViaticoKernelError``) become ``REJECTED`` results
carrying the error code: the action is a silent no-op for the user.
Anything else is rolled back and re-raised.

Usage:
    actions = ViaticActions(get_session_factory(), ExplicitActorResolver(chief))
    result = actions.sign(request_id)
    if not result.is_success:
        show(result.message)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from viatico_kernel.domain.actor import Actor, ActorResolver, UserRole
from viatico_kernel.domain.clock import Clock, SystemClock
from viatico_kernel.domain.day_plan import DayPlan
from viatico_kernel.domain.dtos import WorkerLineInput
from viatico_kernel.domain.rendition import RenditionFields, RenditionLegInput
from viatico_kernel.domain.request_workflow import RequestAction, required_role
from viatico_kernel.domain.settings import KernelSettings
from viatico_kernel.exceptions import ActorNotFoundError, ViaticoKernelError
from viatico_kernel.logging_config import LogContext, get_logger
from viatico_kernel.models.ledger import EntryType
from viatico_kernel.services.adjustment_service import AdjustmentService
from viatico_kernel.services.ledger_service import LedgerService
from viatico_kernel.services.rate_service import RateService
from viatico_kernel.services.rendition_service import RenditionService
from viatico_kernel.services.request_service import RequestService
from viatico_kernel.services.worker_service import WorkerService
from viatico_kernel.services.workflow_service import WorkflowService

logger = get_logger("actions")


class ActionStatus(str, Enum):
    OK = "ok"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ActionResult:
    status: ActionStatus
    message: str | None = None
    value: Any = None
    error_code: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == ActionStatus.OK


class ViaticActions:

    def __init__(
        self,
        session_factory: sessionmaker[Session] | Callable[[], Session],
        actor_resolver: ActorResolver,
        clock: Clock | None = None,
        settings: KernelSettings | None = None,
    ):
        self._session_factory = session_factory
        self._actor_resolver = actor_resolver
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()

    def _run(
        self,
        name: str,
        role: UserRole,
        operation: Callable[[Session, Actor], Any],
    ) -> ActionResult:
        actor = self._actor_resolver.resolve(role)
        if actor is None:
            error = ActorNotFoundError(role.value)
            logger.info("action_rejected", extra={"action": name, "error_code": error.code})
            return ActionResult(ActionStatus.REJECTED, str(error), error_code=error.code)

        with LogContext.bind(
            correlation_id=str(uuid4()), actor_id=str(actor.user_id), action=name
        ):
            session = self._session_factory()
            try:
                value = operation(session, actor)
                session.commit()
            except ViaticoKernelError as exc:
                session.rollback()
                logger.info(
                    "action_rejected",
                    extra={"action": name, "error_code": exc.code, "reason": str(exc)},
                )
                return ActionResult(ActionStatus.REJECTED, str(exc), error_code=exc.code)
            except Exception:
                session.rollback()
                logger.error("action_failed", extra={"action": name}, exc_info=True)
                raise
            finally:
                session.close()

            logger.info("action_completed", extra={"action": name})
            return ActionResult(ActionStatus.OK, value=value)

    def _service(self, cls, session: Session):
        return cls(session, self._clock, settings=self._settings)

    def _workflow(self, action: RequestAction, request_id: UUID, **kwargs: Any) -> ActionResult:
        def op(session: Session, actor: Actor):
            service = self._service(WorkflowService, session)
            return getattr(service, action.value)(request_id, actor, **kwargs)

        with LogContext.bind(request_id=str(request_id)):
            return self._run(action.value, required_role(action), op)

    # Registry

    def create_worker(
        self,
        name: str,
        legajo: str,
        dni: str | None = None,
        cbu: str | None = None,
        bank: str | None = None,
        province: str | None = None,
    ) -> ActionResult:
        return self._run(
            "create_worker",
            UserRole.ADMIN,
            lambda s, a: self._service(WorkerService, s).create_worker(
                a, name, legajo, dni=dni, cbu=cbu, bank=bank, province=province
            ),
        )

    def set_rate(self, effective_from: date, amount, note: str | None = None) -> ActionResult:
        return self._run(
            "set_rate",
            UserRole.ADMIN,
            lambda s, a: self._service(RateService, s).set_rate(effective_from, amount, note, a),
        )

    def record_ledger_entry(
        self, worker_id: UUID, entry_type: EntryType | str, amount, reason: str
    ) -> ActionResult:
        return self._run(
            "record_ledger_entry",
            UserRole.ADMIN,
            lambda s, a: self._service(LedgerService, s).record_entry(
                worker_id, entry_type, amount, reason, a
            ),
        )

    # Requests

    def create_request(
        self,
        start_date: date,
        end_date: date,
        workers: Sequence[WorkerLineInput],
        day_plan: DayPlan | None = None,
        concept_lines: Iterable[str] = (),
        notes: str | None = None,
        planned_payment_date: date | None = None,
        as_draft: bool = False,
    ) -> ActionResult:
        return self._run(
            "create_request",
            UserRole.JEFE_AREA,
            lambda s, a: self._service(RequestService, s).create_request(
                a, start_date, end_date, workers,
                day_plan=day_plan,
                concept_lines=concept_lines,
                notes=notes,
                planned_payment_date=planned_payment_date,
                as_draft=as_draft,
            ),
        )

    def submit(self, request_id: UUID) -> ActionResult:
        return self._workflow(RequestAction.SUBMIT, request_id)

    def start_review(self, request_id: UUID) -> ActionResult:
        return self._workflow(RequestAction.START_REVIEW, request_id)

    def standardize(
        self,
        request_id: UUID,
        lote_number: str | None = None,
        planned_payment_date: date | None = None,
        notes: str | None = None,
    ) -> ActionResult:
        return self._workflow(
            RequestAction.STANDARDIZE, request_id,
            lote_number=lote_number,
            planned_payment_date=planned_payment_date,
            notes=notes,
        )

    def start_correction(self, request_id: UUID) -> ActionResult:
        return self._workflow(RequestAction.START_CORRECTION, request_id)

    def create_correction(
        self,
        request_id: UUID,
        notes: str | None = None,
        planned_payment_date: date | None = None,
    ) -> ActionResult:
        return self._workflow(
            RequestAction.CREATE_CORRECTION, request_id,
            notes=notes, planned_payment_date=planned_payment_date,
        )

    def sign(self, request_id: UUID, signature_method: str | None = None) -> ActionResult:
        return self._workflow(RequestAction.SIGN, request_id, signature_method=signature_method)

    def mark_paid(
        self,
        request_id: UUID,
        payment_reference: str | None = None,
        notes: str | None = None,
        paid_at: datetime | None = None,
    ) -> ActionResult:
        return self._workflow(
            RequestAction.MARK_PAID, request_id,
            payment_reference=payment_reference, notes=notes, paid_at=paid_at,
        )

    def request_correction(
        self,
        request_id: UUID,
        reason: str | None = None,
        suggested_payment_date: date | None = None,
    ) -> ActionResult:
        return self._workflow(
            RequestAction.REQUEST_CORRECTION, request_id,
            reason=reason, suggested_payment_date=suggested_payment_date,
        )

    def cancel(self, request_id: UUID, reason: str | None = None) -> ActionResult:
        return self._workflow(RequestAction.CANCEL, request_id, reason=reason)

    # Adjustments and renditions

    def apply_adjustment_batch(self, batch_id: UUID) -> ActionResult:
        with LogContext.bind(batch_id=str(batch_id)):
            return self._run(
                "apply_adjustment_batch",
                UserRole.ADMIN,
                lambda s, a: self._service(AdjustmentService, s).apply_batch(batch_id, a),
            )

    def upsert_rendition(
        self,
        request_worker_id: UUID,
        fields: RenditionFields,
        consumed_viaticos,
        legs: Sequence[RenditionLegInput] = (),
    ) -> ActionResult:
        return self._run(
            "upsert_rendition",
            UserRole.ADMIN,
            lambda s, a: self._service(RenditionService, s).upsert_rendition(
                request_worker_id, fields, consumed_viaticos, legs, a
            ),
        )

    def upsert_rendition_bulk(
        self,
        request_worker_ids: Sequence[UUID],
        fields: RenditionFields,
        consumed_viaticos,
        legs: Sequence[RenditionLegInput] = (),
    ) -> ActionResult:
        return self._run(
            "upsert_rendition_bulk",
            UserRole.ADMIN,
            lambda s, a: self._service(RenditionService, s).upsert_rendition_bulk(
                request_worker_ids, fields, consumed_viaticos, legs, a
            ),
        )
