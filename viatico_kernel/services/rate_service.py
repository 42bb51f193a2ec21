"""
RateService -- the daily rate registry.

The registry is append-only: a new rate is a new row with its own
``effective_from``; past rows are never edited.  The rate in force on a
date is the row with the latest ``effective_from`` on or before it, or the
configured default when the registry is empty.

Registering a rate that differs from its predecessor triggers
``AdjustmentService.register_rate_change`` in the same transaction.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import select

from viatico_kernel.db.types import to_decimal
from viatico_kernel.domain.actor import Actor, UserRole, require_role
from viatico_kernel.domain.dtos import RateChange, RateInfo
from viatico_kernel.exceptions import InvalidInputError
from viatico_kernel.logging_config import get_logger
from viatico_kernel.models.rate import ViaticRateHistory
from viatico_kernel.services.adjustment_service import RATE_AUDIT_ENTITY, AdjustmentService
from viatico_kernel.services.base import BaseService

logger = get_logger("services.rate")

_NEWEST_FIRST = (ViaticRateHistory.effective_from.desc(), ViaticRateHistory.created_at.desc())


class RateService(BaseService):

    def _rate_on_or_before(self, as_of: date) -> ViaticRateHistory | None:
        return self.session.execute(
            select(ViaticRateHistory)
            .where(ViaticRateHistory.effective_from <= as_of)
            .order_by(*_NEWEST_FIRST)
            .limit(1)
        ).scalar_one_or_none()

    def _rate_before(self, as_of: date) -> ViaticRateHistory | None:
        return self.session.execute(
            select(ViaticRateHistory)
            .where(ViaticRateHistory.effective_from < as_of)
            .order_by(*_NEWEST_FIRST)
            .limit(1)
        ).scalar_one_or_none()

    def set_rate(
        self,
        effective_from: date | None,
        amount,
        note: str | None,
        actor: Actor,
    ) -> RateChange:
        """
        Append a rate and, when it changes the amount, draft the
        retroactive adjustment batch for the affected month.

        Raises:
            ActorNotFoundError: Actor is not ADMIN.
            InvalidInputError: Missing date or amount <= 0.
        """
        require_role(actor, UserRole.ADMIN)
        if effective_from is None:
            raise InvalidInputError("effective_from", "is required")
        try:
            value = to_decimal(amount, "amount")
        except ValueError as exc:
            raise InvalidInputError("amount", str(exc)) from exc
        if value <= 0:
            raise InvalidInputError("amount", "must be greater than zero")

        previous = self._rate_before(effective_from)

        rate = ViaticRateHistory(
            effective_from=effective_from,
            amount=value,
            note=(note or "").strip() or None,
            created_by_id=actor.user_id,
        )
        self.session.add(rate)
        self.session.flush()

        self.auditor.record(
            RATE_AUDIT_ENTITY,
            rate.id,
            "set_rate",
            {"effective_from": effective_from, "amount": value, "note": rate.note},
            actor.user_id,
        )

        logger.info(
            "rate_registered",
            extra={
                "rate_id": str(rate.id),
                "effective_from": effective_from.isoformat(),
                "amount": str(value),
                "previous_amount": str(previous.amount) if previous else None,
            },
        )

        batch = AdjustmentService(
            self.session, self.clock, self.auditor, self.settings
        ).register_rate_change(rate, previous, actor)

        return RateChange(
            rate=RateInfo.from_model(rate),
            previous_rate=RateInfo.from_model(previous) if previous else None,
            adjustment_batch_id=batch.id if batch else None,
        )

    def current_rate(self, as_of: date | None = None) -> Decimal:
        """Daily amount in force on ``as_of`` (default: today)."""
        row = self._rate_on_or_before(as_of or self.clock.today())
        if row is None:
            return self.settings.default_daily_amount
        return row.amount

    def history(self) -> list[RateInfo]:
        rows = self.session.execute(
            select(ViaticRateHistory).order_by(
                ViaticRateHistory.effective_from, ViaticRateHistory.created_at
            )
        ).scalars().all()
        return [RateInfo.from_model(r) for r in rows]
