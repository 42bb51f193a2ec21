"""
AdjustmentService -- retroactive adjustment batches.

Flow::

    RateService.set_rate()
        -> register_rate_change(rate, previous)     DRAFT batch + items
    apply_batch(batch_id)                           ledger entries, APPLIED

``register_rate_change`` snapshots the affected versions through the pure
``domain.proration.prorate`` function.  Every version of every
non-cancelled request is scanned, superseded versions included.

``apply_batch`` is all-or-nothing: the batch row is locked, every item
becomes one keyed ledger entry, and items and batch flip to APPLIED in the
same flush.  A second apply raises ``AlreadyAppliedError``.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from viatico_kernel.domain.actor import Actor, UserRole, require_role
from viatico_kernel.domain.dtos import AdjustmentBatchInfo, LedgerKey
from viatico_kernel.domain.proration import (
    ProrationLine,
    ProrationVersion,
    affected_window,
    prorate,
)
from viatico_kernel.domain.request_workflow import RequestStatus
from viatico_kernel.exceptions import AlreadyAppliedError, BatchNotFoundError
from viatico_kernel.logging_config import LogContext, get_logger
from viatico_kernel.models.adjustment import (
    AdjustmentStatus,
    RetroactiveAdjustmentBatch,
    RetroactiveAdjustmentItem,
)
from viatico_kernel.models.ledger import EntryType
from viatico_kernel.models.rate import ViaticRateHistory
from viatico_kernel.models.request import ViaticRequest, ViaticRequestVersion
from viatico_kernel.services.base import BaseService
from viatico_kernel.services.ledger_service import LedgerService

logger = get_logger("services.adjustment")

RATE_AUDIT_ENTITY = "viatic_rate_history"
BATCH_AUDIT_ENTITY = "retroactive_adjustment_batch"


class AdjustmentService(BaseService):

    def _overlapping_versions(self, window_start, window_end) -> list[ViaticRequestVersion]:
        return list(
            self.session.execute(
                select(ViaticRequestVersion)
                .join(ViaticRequest, ViaticRequest.id == ViaticRequestVersion.request_id)
                .where(
                    ViaticRequest.status != RequestStatus.CANCELLED.value,
                    ViaticRequestVersion.start_date <= window_end,
                    ViaticRequestVersion.end_date >= window_start,
                )
                .order_by(ViaticRequest.seq, ViaticRequestVersion.version_number)
            ).scalars().all()
        )

    def register_rate_change(
        self,
        rate: ViaticRateHistory,
        previous: ViaticRateHistory | None,
        actor: Actor,
    ) -> AdjustmentBatchInfo | None:
        """
        Build a DRAFT batch for a newly registered rate.

        Returns None (and writes nothing) when there is no previous rate,
        the amount did not change, or the change takes effect on the 1st.
        A batch with no items is still created when no version overlaps.
        """
        if previous is None or previous.amount == rate.amount:
            return None
        window = affected_window(rate.effective_from)
        if window is None:
            logger.info(
                "rate_change_without_window",
                extra={"effective_from": rate.effective_from.isoformat()},
            )
            return None

        versions = self._overlapping_versions(window.start, window.end)
        adjustments = prorate(
            (
                ProrationVersion(
                    version_id=v.id,
                    start_date=v.start_date,
                    end_date=v.end_date,
                    lines=tuple(
                        ProrationLine(
                            worker_id=line.worker_id,
                            days_count=line.days_count,
                            daily_amount=line.daily_amount,
                        )
                        for line in v.workers
                    ),
                )
                for v in versions
            ),
            window,
            previous.amount,
            rate.amount,
        )

        batch = RetroactiveAdjustmentBatch(
            period_month=window.period_month,
            effective_from_date=rate.effective_from,
            old_amount=previous.amount,
            new_amount=rate.amount,
            status=AdjustmentStatus.DRAFT.value,
            rate_id=rate.id,
            created_by_id=actor.user_id,
        )
        for position, adj in enumerate(adjustments, start=1):
            batch.items.append(
                RetroactiveAdjustmentItem(
                    worker_id=adj.worker_id,
                    position=position,
                    days_affected=adj.days_affected,
                    amount_diff=adj.amount_diff,
                    status=AdjustmentStatus.DRAFT.value,
                )
            )
        self.session.add(batch)
        self.session.flush()

        self.auditor.record(
            RATE_AUDIT_ENTITY,
            batch.id,
            "create_rate_change",
            {
                "rate_id": rate.id,
                "effective_from": rate.effective_from,
                "old_amount": previous.amount,
                "new_amount": rate.amount,
                "period_month": batch.period_month,
                "items": len(batch.items),
            },
            actor.user_id,
        )

        logger.info(
            "adjustment_batch_created",
            extra={
                "batch_id": str(batch.id),
                "period_month": batch.period_month,
                "versions_scanned": len(versions),
                "item_count": len(batch.items),
            },
        )
        return AdjustmentBatchInfo.from_model(batch)

    def apply_batch(self, batch_id: UUID, actor: Actor) -> AdjustmentBatchInfo:
        """
        Post every item of a DRAFT batch to the ledger.

        Raises:
            ActorNotFoundError: Actor is not ADMIN.
            BatchNotFoundError: Unknown batch.
            AlreadyAppliedError: Batch is not DRAFT.
        """
        require_role(actor, UserRole.ADMIN)

        with LogContext.bind(batch_id=str(batch_id)):
            batch = self.session.execute(
                select(RetroactiveAdjustmentBatch)
                .where(RetroactiveAdjustmentBatch.id == batch_id)
                .with_for_update()
                .options(selectinload(RetroactiveAdjustmentBatch.items))
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if batch is None:
                raise BatchNotFoundError(str(batch_id))
            if batch.status != AdjustmentStatus.DRAFT.value:
                logger.warning("adjustment_batch_already_applied", extra={"status": batch.status})
                raise AlreadyAppliedError(str(batch_id), batch.status)

            ledger = LedgerService(self.session, self.clock, self.auditor, self.settings)
            for item in batch.items:
                ledger.upsert_keyed_entry(
                    LedgerKey.retroactive_adjustment(item.worker_id, item.id),
                    EntryType.CREDIT if item.amount_diff > 0 else EntryType.DEBIT,
                    abs(item.amount_diff),
                    f"Ajuste retroactivo {batch.period_month} lote {batch.id} item {item.id}",
                    actor.user_id,
                )
                item.status = AdjustmentStatus.APPLIED.value

            batch.status = AdjustmentStatus.APPLIED.value
            batch.applied_at = self.clock.now()
            batch.applied_by_user_id = actor.user_id
            batch.updated_by_id = actor.user_id
            self.session.flush()

            self.auditor.record(
                BATCH_AUDIT_ENTITY,
                batch.id,
                "apply_adjustment_batch",
                {
                    "period_month": batch.period_month,
                    "items": len(batch.items),
                    "total_diff": sum((i.amount_diff for i in batch.items), 0),
                },
                actor.user_id,
            )

            logger.info(
                "adjustment_batch_applied",
                extra={"item_count": len(batch.items), "period_month": batch.period_month},
            )
            return AdjustmentBatchInfo.from_model(batch)
