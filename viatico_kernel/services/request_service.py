"""
RequestService -- the request/version store.

A request is a pointer (``current_version_number``) over an append-only
chain of versions.  Each version carries its own date range, worker lines
and day concepts; corrections never edit a version, they add the next one.

Concurrency
-----------
* Request numbers: ``SequenceService`` locks the ``viatic_request`` counter
  row, which serializes creators; the next number is derived from the
  latest request (by ``seq``) and protected by the unique constraint, with
  one retry on conflict.
* Versions: the pointer advance is a compare-and-swap
  ``UPDATE ... WHERE current_version_number = N``; the unique
  ``(request_id, version_number)`` constraint backs it up.  A lost race
  surfaces as ``VersionConflictError``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from viatico_kernel.db.types import to_decimal
from viatico_kernel.domain.actor import Actor, UserRole, require_role
from viatico_kernel.domain.day_plan import DayPlan, repeat_concepts
from viatico_kernel.domain.dtos import (
    DayConceptSpec,
    LineItemSpec,
    RequestInfo,
    VersionInfo,
    WorkerLineInput,
)
from viatico_kernel.domain.proration import inclusive_day_count
from viatico_kernel.domain.rendition import is_half_step
from viatico_kernel.domain.request_workflow import VIATIC_REQUEST_WORKFLOW, RequestStatus
from viatico_kernel.exceptions import (
    InvalidInputError,
    RequestNotFoundError,
    VersionConflictError,
    VersionNotFoundError,
    WorkerNotFoundError,
)
from viatico_kernel.logging_config import LogContext, get_logger
from viatico_kernel.models.area import Area
from viatico_kernel.models.request import (
    CorrectionRequest,
    CorrectionStatus,
    ViaticRequest,
    ViaticRequestDayConcept,
    ViaticRequestVersion,
    ViaticRequestWorker,
)
from viatico_kernel.models.worker import Worker
from viatico_kernel.services.base import BaseService
from viatico_kernel.services.rate_service import RateService
from viatico_kernel.services.sequence_service import SequenceService

logger = get_logger("services.request")

REQUEST_AUDIT_ENTITY = "viatic_request"


def _validate_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is None:
        raise InvalidInputError("start_date", "is required")
    if end_date is None:
        raise InvalidInputError("end_date", "is required")
    if end_date < start_date:
        raise InvalidInputError("end_date", "cannot be before start_date")


def _positive(value, field: str) -> Decimal:
    try:
        result = to_decimal(value, field)
    except ValueError as exc:
        raise InvalidInputError(field, str(exc)) from exc
    if result <= 0:
        raise InvalidInputError(field, "must be greater than zero")
    return result


class RequestService(BaseService):

    # Areas

    def ensure_area(self, name: str) -> Area:
        """Return the area called ``name``, creating it on first use."""
        clean = (name or "").strip()
        if not clean:
            raise InvalidInputError("area", "name cannot be blank")
        area = self.session.execute(
            select(Area).where(Area.name == clean)
        ).scalar_one_or_none()
        if area is not None:
            return area

        savepoint = self.session.begin_nested()
        try:
            area = Area(name=clean)
            self.session.add(area)
            self.session.flush()
            savepoint.commit()
            logger.info("area_created", extra={"area_id": str(area.id), "area_name": clean})
            return area
        except IntegrityError:
            savepoint.rollback()
            return self.session.execute(select(Area).where(Area.name == clean)).scalar_one()

    # Numbering

    def next_request_number(self) -> str:
        """
        Number for the next request.

        Increments the numeric suffix of the latest request (highest
        ``seq``).  Falls back to ``<prefix><epoch ms>`` when there is no
        request yet or its number does not follow the format.  Callers
        hold the ``viatic_request`` counter lock while using the result.
        """
        prefix = self.settings.request_number_prefix
        latest = self.session.execute(
            select(ViaticRequest.request_number).order_by(ViaticRequest.seq.desc()).limit(1)
        ).scalar_one_or_none()
        if latest and latest.startswith(prefix):
            suffix = latest[len(prefix):]
            if suffix.isdigit():
                return self.settings.format_request_number(int(suffix) + 1)
        return f"{prefix}{int(self.clock.now().timestamp() * 1000)}"

    # Lookups

    def get_request(self, request_id: UUID, lock: bool = False) -> ViaticRequest:
        stmt = select(ViaticRequest).where(ViaticRequest.id == request_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = self.session.execute(stmt).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    def active_version(self, request: ViaticRequest) -> ViaticRequestVersion:
        version = self.session.execute(
            select(ViaticRequestVersion).where(
                ViaticRequestVersion.request_id == request.id,
                ViaticRequestVersion.version_number == request.current_version_number,
            )
        ).scalar_one_or_none()
        if version is None:
            raise VersionNotFoundError(f"{request.id}/v{request.current_version_number}")
        return version

    # Line resolution

    def _resolve_lines(
        self,
        start_date: date,
        end_date: date,
        workers: Sequence[WorkerLineInput],
        day_plan: DayPlan | None,
    ) -> list[LineItemSpec]:
        if not workers:
            raise InvalidInputError("workers", "at least one worker is required")

        unique: dict[UUID, WorkerLineInput] = {}
        for line in workers:
            unique.setdefault(line.worker_id, line)

        known = set(
            self.session.execute(
                select(Worker.id).where(Worker.id.in_(list(unique)))
            ).scalars()
        )
        for worker_id in unique:
            if worker_id not in known:
                raise WorkerNotFoundError(str(worker_id))

        rate = RateService(self.session, self.clock, self.auditor, self.settings).current_rate(
            self.clock.today()
        )

        planned = day_plan is not None and day_plan.has_days
        plan_counts = (
            day_plan.worker_day_counts(start_date, end_date, unique) if planned else {}
        )
        range_days = Decimal(inclusive_day_count(start_date, end_date))

        specs: list[LineItemSpec] = []
        for worker_id, line in unique.items():
            if line.days_count is not None:
                days = _positive(line.days_count, "days_count")
            elif planned:
                count = plan_counts.get(worker_id, 0)
                if count == 0:
                    continue
                days = Decimal(count)
            else:
                days = range_days
            daily = rate if line.daily_amount is None else _positive(line.daily_amount, "daily_amount")
            specs.append(LineItemSpec(worker_id=worker_id, days_count=days, daily_amount=daily))

        if not specs:
            raise InvalidInputError("workers", "no selected worker has days in the plan")
        return specs

    def _resolve_concepts(
        self,
        start_date: date,
        end_date: date,
        day_plan: DayPlan | None,
        concept_lines: Iterable[str],
    ) -> list[DayConceptSpec]:
        default_text = self.settings.default_concept_text
        if day_plan is not None and day_plan.has_days:
            rows = day_plan.day_concepts(start_date, end_date, default_text)
        else:
            rows = repeat_concepts(start_date, end_date, concept_lines, default_text)
        return [DayConceptSpec(date=d, concept_text=text) for d, text in rows]

    # Version persistence

    @staticmethod
    def _check_lines(lines: Sequence[LineItemSpec]) -> None:
        if not lines:
            raise InvalidInputError("workers", "a version needs at least one line")
        seen: set[UUID] = set()
        for line in lines:
            if line.worker_id in seen:
                raise InvalidInputError("workers", f"worker {line.worker_id} listed twice")
            seen.add(line.worker_id)
            if line.days_count <= 0:
                raise InvalidInputError("days_count", "must be greater than zero")
            if not is_half_step(line.days_count):
                raise InvalidInputError("days_count", "must be a multiple of 0.5")
            if line.daily_amount <= 0:
                raise InvalidInputError("daily_amount", "must be greater than zero")
            if line.balance_applied_amount < 0:
                raise InvalidInputError("balance_applied_amount", "cannot be negative")

    def _insert_version(
        self,
        request: ViaticRequest,
        version_number: int,
        start_date: date,
        end_date: date,
        lines: Sequence[LineItemSpec],
        concepts: Sequence[DayConceptSpec],
        actor_id: UUID,
        payload: dict | None,
        notes: str | None,
        planned_payment_date: date | None,
        lote_number: str | None,
    ) -> ViaticRequestVersion:
        version = ViaticRequestVersion(
            request_id=request.id,
            version_number=version_number,
            start_date=start_date,
            end_date=end_date,
            planned_payment_date=planned_payment_date,
            lote_number=lote_number,
            notes=notes,
            payload_json=payload,
            created_by_id=actor_id,
        )
        for line_no, line in enumerate(lines, start=1):
            version.workers.append(
                ViaticRequestWorker(
                    worker_id=line.worker_id,
                    line_no=line_no,
                    days_count=line.days_count,
                    daily_amount=line.daily_amount,
                    gross_amount=line.gross_amount,
                    balance_applied_amount=line.balance_applied_amount,
                    net_amount=line.net_amount,
                )
            )

        positions: dict[date, int] = {}
        for concept in concepts:
            positions[concept.date] = positions.get(concept.date, 0) + 1
            version.day_concepts.append(
                ViaticRequestDayConcept(
                    date=concept.date,
                    position=positions[concept.date],
                    concept_text=concept.concept_text,
                    concept_code=concept.concept_code,
                )
            )

        self.session.add(version)
        self.session.flush()
        return version

    def create_request(
        self,
        actor: Actor,
        start_date: date,
        end_date: date,
        workers: Sequence[WorkerLineInput],
        day_plan: DayPlan | None = None,
        concept_lines: Iterable[str] = (),
        notes: str | None = None,
        planned_payment_date: date | None = None,
        as_draft: bool = False,
    ) -> RequestInfo:
        """
        Create a request with its first version.

        Raises:
            ActorNotFoundError: Actor is not JEFE_AREA.
            InvalidInputError: Bad date range, no workers, bad amounts.
            WorkerNotFoundError: A listed worker does not exist.
            VersionConflictError: The request number collided twice.
        """
        require_role(actor, UserRole.JEFE_AREA)
        _validate_range(start_date, end_date)
        concept_lines = [c.strip() for c in concept_lines if c and c.strip()]
        lines = self._resolve_lines(start_date, end_date, workers, day_plan)
        concepts = self._resolve_concepts(start_date, end_date, day_plan, concept_lines)
        self._check_lines(lines)
        payload = (day_plan or DayPlan(concepts=tuple(concept_lines))).to_payload()

        if actor.area_id is not None:
            area_id = actor.area_id
        else:
            area_id = self.ensure_area(self.settings.default_area_name).id

        status = (
            RequestStatus.DRAFT.value if as_draft else VIATIC_REQUEST_WORKFLOW.initial_state
        )

        seq = SequenceService(self.session).next_value(SequenceService.VIATIC_REQUEST)
        request = None
        for attempt in (1, 2):
            number = self.next_request_number()
            savepoint = self.session.begin_nested()
            try:
                request = ViaticRequest(
                    seq=seq,
                    request_number=number,
                    area_id=area_id,
                    created_by_user_id=actor.user_id,
                    status=status,
                    current_version_number=1,
                    created_by_id=actor.user_id,
                )
                self.session.add(request)
                self.session.flush()
                savepoint.commit()
                break
            except IntegrityError:
                savepoint.rollback()
                logger.warning(
                    "request_number_conflict",
                    extra={"request_number": number, "attempt": attempt},
                )
                request = None
        if request is None:
            raise VersionConflictError(number, 1, None)

        with LogContext.bind(request_id=str(request.id)):
            version = self._insert_version(
                request, 1, start_date, end_date, lines, concepts, actor.user_id,
                payload, (notes or "").strip() or None, planned_payment_date, None,
            )

            self.auditor.record(
                REQUEST_AUDIT_ENTITY,
                request.id,
                "create_request",
                {
                    "request_number": request.request_number,
                    "status": request.status,
                    "start_date": start_date,
                    "end_date": end_date,
                    "workers": len(version.workers),
                },
                actor.user_id,
            )
            logger.info(
                "request_created",
                extra={
                    "request_number": request.request_number,
                    "status": request.status,
                    "worker_count": len(version.workers),
                },
            )
        return RequestInfo.from_model(request)

    def create_version(
        self,
        request_id: UUID,
        version_number: int,
        start_date: date,
        end_date: date,
        lines: Sequence[LineItemSpec],
        concepts: Sequence[DayConceptSpec],
        actor: Actor,
        payload: dict | None = None,
        notes: str | None = None,
        planned_payment_date: date | None = None,
        lote_number: str | None = None,
    ) -> VersionInfo:
        """
        Append version ``version_number`` and point the request at it.

        Raises:
            RequestNotFoundError: Unknown request.
            VersionConflictError: ``version_number`` is not current + 1.
        """
        _validate_range(start_date, end_date)
        self._check_lines(lines)

        result = self.session.execute(
            update(ViaticRequest)
            .where(
                ViaticRequest.id == request_id,
                ViaticRequest.current_version_number == version_number - 1,
            )
            .values(current_version_number=version_number, updated_by_id=actor.user_id)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            current = self.session.execute(
                select(ViaticRequest.current_version_number).where(ViaticRequest.id == request_id)
            ).scalar_one_or_none()
            if current is None:
                raise RequestNotFoundError(str(request_id))
            logger.warning(
                "version_conflict",
                extra={
                    "request_id": str(request_id),
                    "attempted_version": version_number,
                    "current_version": current,
                },
            )
            raise VersionConflictError(str(request_id), version_number, current)

        request = self.get_request(request_id)
        savepoint = self.session.begin_nested()
        try:
            version = self._insert_version(
                request, version_number, start_date, end_date, lines, concepts,
                actor.user_id, payload, notes, planned_payment_date, lote_number,
            )
            savepoint.commit()
        except IntegrityError as exc:
            savepoint.rollback()
            raise VersionConflictError(str(request_id), version_number, None) from exc

        logger.info(
            "version_created",
            extra={"request_id": str(request_id), "version_number": version_number},
        )
        return VersionInfo.from_model(version)

    def fork_version(
        self,
        request_id: UUID,
        actor: Actor,
        notes: str | None = None,
        planned_payment_date: date | None = None,
        lote_number: str | None = None,
    ) -> VersionInfo:
        """
        Copy the active version into version N+1 for a correction.

        Lines are copied verbatim (same days, rate, amounts and order) and
        day concepts carried over.  OPEN correction requests raised on
        version N are resolved.
        """
        request = self.get_request(request_id, lock=True)
        source = self.active_version(request)

        lines = [
            LineItemSpec(
                worker_id=line.worker_id,
                days_count=line.days_count,
                daily_amount=line.daily_amount,
                balance_applied_amount=line.balance_applied_amount,
            )
            for line in source.workers
        ]
        concepts = [
            DayConceptSpec(date=c.date, concept_text=c.concept_text, concept_code=c.concept_code)
            for c in source.day_concepts
        ]

        open_corrections = self.session.execute(
            select(CorrectionRequest).where(
                CorrectionRequest.request_version_id == source.id,
                CorrectionRequest.status == CorrectionStatus.OPEN.value,
            )
        ).scalars().all()
        for correction in open_corrections:
            correction.status = CorrectionStatus.RESOLVED.value

        version = self.create_version(
            request_id,
            source.version_number + 1,
            source.start_date,
            source.end_date,
            lines,
            concepts,
            actor,
            payload=source.payload_json,
            notes=(notes or "").strip() or self.settings.default_correction_notes,
            planned_payment_date=planned_payment_date or source.planned_payment_date,
            lote_number=lote_number or source.lote_number,
        )
        logger.info(
            "version_forked",
            extra={
                "request_id": str(request_id),
                "from_version": source.version_number,
                "to_version": version.version_number,
                "resolved_corrections": len(open_corrections),
            },
        )
        return version
