"""
RenditionService -- renditions and their balance entries.

A rendition records, per request line, the days the worker actually
consumed plus the trip legs.  Saving one is idempotent: the rendition row
is upserted, the legs replaced wholesale, and the line's keyed
``RENDITION_BALANCE`` ledger entry brought in line with the new figure:

    consumed is None         leave the ledger alone (not rendered yet)
    days - consumed <= 0     remove the entry
    days - consumed  > 0     one DEBIT of daily_amount * unused days
"""

from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from viatico_kernel.db.types import round_money, to_decimal
from viatico_kernel.domain.actor import Actor, UserRole, require_role
from viatico_kernel.domain.dtos import LedgerKey, RenditionBulkResult, RenditionInfo
from viatico_kernel.domain.rendition import (
    RenditionFields,
    RenditionLegInput,
    normalize_legs,
    parse_decimal_input,
    unused_days,
    validate_consumption,
)
from viatico_kernel.exceptions import InvalidInputError, RequestWorkerNotFoundError
from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.ledger import EntryType
from viatico_kernel.models.rendition import ViaticRendition, ViaticRenditionLeg
from viatico_kernel.models.request import ViaticRequestWorker
from viatico_kernel.services.base import BaseService
from viatico_kernel.services.ledger_service import LedgerService

logger = get_logger("services.rendition")

RENDITION_AUDIT_ENTITY = "viatic_rendition"


def _consumed(value) -> Decimal | None:
    if value is None or isinstance(value, str):
        return parse_decimal_input(value)
    try:
        return to_decimal(value, "consumed_viaticos")
    except ValueError as exc:
        raise InvalidInputError("consumed_viaticos", str(exc)) from exc


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class RenditionService(BaseService):

    @property
    def _ledger(self) -> LedgerService:
        return LedgerService(self.session, self.clock, self.auditor, self.settings)

    def _load_line(self, request_worker_id: UUID) -> ViaticRequestWorker:
        line = self.session.get(ViaticRequestWorker, request_worker_id)
        if line is None:
            raise RequestWorkerNotFoundError(str(request_worker_id))
        return line

    def _find_rendition(self, line: ViaticRequestWorker) -> ViaticRendition | None:
        return self.session.execute(
            select(ViaticRendition)
            .where(ViaticRendition.request_worker_id == line.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _locked_rendition(self, line: ViaticRequestWorker, actor: Actor) -> ViaticRendition:
        """The line's rendition under lock, inserted first if missing."""
        rendition = self._find_rendition(line)
        if rendition is not None:
            return rendition

        savepoint = self.session.begin_nested()
        try:
            rendition = ViaticRendition(
                request_worker_id=line.id,
                request_version_id=line.request_version_id,
                worker_id=line.worker_id,
                created_by_id=actor.user_id,
            )
            self.session.add(rendition)
            self.session.flush()
            savepoint.commit()
            return rendition
        except IntegrityError:
            # Another transaction created it first
            savepoint.rollback()
            logger.info(
                "rendition_insert_race_retry",
                extra={"request_worker_id": str(line.id)},
            )
            rendition = self._find_rendition(line)
            if rendition is None:
                raise
            return rendition

    def _write_rendition(
        self,
        line: ViaticRequestWorker,
        fields: RenditionFields,
        consumed: Decimal | None,
        legs: Sequence[RenditionLegInput],
        actor: Actor,
        audit_action: str = "upsert_rendition",
    ) -> ViaticRendition:
        rendition = self._locked_rendition(line, actor)
        rendition.updated_by_id = actor.user_id
        rendition.legs.clear()
        self.session.flush()

        rendition.reason = _clean(fields.reason)
        rendition.vehicle_plate = _clean(fields.vehicle_plate)
        rendition.attachment_url = _clean(fields.attachment_url)
        rendition.notes = _clean(fields.notes)
        rendition.consumed_viaticos = consumed

        for leg in normalize_legs(legs):
            rendition.legs.append(
                ViaticRenditionLeg(
                    order_index=leg.order_index,
                    departure_location=leg.departure_location,
                    departure_at=leg.departure_at,
                    departure_km=leg.departure_km,
                    arrival_location=leg.arrival_location,
                    arrival_at=leg.arrival_at,
                    arrival_km=leg.arrival_km,
                )
            )
        self.session.flush()

        self.upsert_rendition_balance(line, consumed, actor.user_id)

        self.auditor.record(
            RENDITION_AUDIT_ENTITY,
            rendition.id,
            audit_action,
            {
                "request_worker_id": line.id,
                "consumed_viaticos": consumed,
                "legs": len(rendition.legs),
            },
            actor.user_id,
        )
        return rendition

    def upsert_rendition_balance(
        self,
        line: ViaticRequestWorker,
        consumed: Decimal | None,
        actor_id: UUID,
    ) -> None:
        """Keep the line's RENDITION_BALANCE entry in step with ``consumed``."""
        if consumed is None:
            return
        key = LedgerKey.rendition_balance(line.worker_id, line.request_version_id)
        unused = unused_days(line.days_count, consumed)
        if unused <= 0:
            self._ledger.delete_keyed_entry(key)
            return
        debt = round_money(line.daily_amount * unused)
        self._ledger.upsert_keyed_entry(
            key,
            EntryType.DEBIT,
            debt,
            f"Saldo rendicion {line.id}",
            actor_id,
        )
        logger.info(
            "rendition_balance_recorded",
            extra={
                "request_worker_id": str(line.id),
                "unused_days": str(unused),
                "amount": str(debt),
            },
        )

    def upsert_rendition(
        self,
        request_worker_id: UUID,
        fields: RenditionFields,
        consumed_viaticos,
        legs: Sequence[RenditionLegInput],
        actor: Actor,
    ) -> RenditionInfo:
        """
        Save the rendition of one request line.

        ``consumed_viaticos`` may be a Decimal, an int, typed text
        ("2,5") or None for "not rendered yet".

        Raises:
            ActorNotFoundError: Actor is not ADMIN.
            RequestWorkerNotFoundError: Unknown line.
            InvalidInputError: Consumed negative, not a half step, or above
                the line's days.
        """
        require_role(actor, UserRole.ADMIN)
        consumed = _consumed(consumed_viaticos)
        line = self._load_line(request_worker_id)
        validate_consumption(consumed, line.days_count)

        rendition = self._write_rendition(line, fields, consumed, legs, actor)
        logger.info(
            "rendition_saved",
            extra={
                "request_worker_id": str(line.id),
                "consumed_viaticos": None if consumed is None else str(consumed),
                "leg_count": len(rendition.legs),
            },
        )
        return RenditionInfo.from_model(rendition)

    def upsert_rendition_bulk(
        self,
        request_worker_ids: Sequence[UUID],
        fields: RenditionFields,
        consumed_viaticos,
        legs: Sequence[RenditionLegInput],
        actor: Actor,
    ) -> RenditionBulkResult:
        """
        Save one shared rendition payload on many lines.

        Every line is validated before anything is written.  Ids that do
        not exist are skipped; none existing at all is an error.

        Raises:
            InvalidInputError: Empty selection, or a line with fewer days
                than ``consumed_viaticos``.
            RequestWorkerNotFoundError: None of the ids exist.
        """
        require_role(actor, UserRole.ADMIN)
        ids = list(dict.fromkeys(request_worker_ids))
        if not ids:
            raise InvalidInputError("request_worker_ids", "select at least one line")
        consumed = _consumed(consumed_viaticos)
        validate_consumption(consumed, None)

        found = {
            line.id: line
            for line in self.session.execute(
                select(ViaticRequestWorker).where(ViaticRequestWorker.id.in_(ids))
            ).scalars()
        }
        lines = [found[i] for i in ids if i in found]
        if not lines:
            raise RequestWorkerNotFoundError(", ".join(str(i) for i in ids))

        for line in lines:
            validate_consumption(consumed, line.days_count)

        renditions = [
            RenditionInfo.from_model(
                self._write_rendition(
                    line, fields, consumed, legs, actor, audit_action="upsert_rendition_bulk"
                )
            )
            for line in lines
        ]
        balance_count = 0
        if consumed is not None:
            balance_count = sum(1 for line in lines if line.days_count > consumed)

        logger.info(
            "rendition_bulk_saved",
            extra={
                "line_count": len(lines),
                "skipped": len(ids) - len(lines),
                "balance_count": balance_count,
            },
        )
        return RenditionBulkResult(renditions=tuple(renditions), balance_count=balance_count)
