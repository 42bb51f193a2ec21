"""
Module: viatico_kernel.selectors.adjustment_selector
Responsibility: Read-only access to retroactive adjustment batches.
"""

from uuid import UUID

from sqlalchemy import select

from viatico_kernel.domain.dtos import AdjustmentBatchInfo, RateInfo
from viatico_kernel.models.adjustment import RetroactiveAdjustmentBatch
from viatico_kernel.models.rate import ViaticRateHistory
from viatico_kernel.selectors.base import BaseSelector


class AdjustmentSelector(BaseSelector):

    def get_batch(self, batch_id: UUID) -> AdjustmentBatchInfo | None:
        batch = self.session.get(RetroactiveAdjustmentBatch, batch_id)
        return AdjustmentBatchInfo.from_model(batch) if batch else None

    def batches(self, status: str | None = None) -> list[AdjustmentBatchInfo]:
        stmt = select(RetroactiveAdjustmentBatch).order_by(
            RetroactiveAdjustmentBatch.effective_from_date,
            RetroactiveAdjustmentBatch.created_at,
        )
        if status is not None:
            stmt = stmt.where(RetroactiveAdjustmentBatch.status == status)
        return [AdjustmentBatchInfo.from_model(b) for b in self.session.execute(stmt).scalars()]

    def batch_for_rate(self, rate_id: UUID) -> AdjustmentBatchInfo | None:
        batch = self.session.execute(
            select(RetroactiveAdjustmentBatch).where(RetroactiveAdjustmentBatch.rate_id == rate_id)
        ).scalar_one_or_none()
        return AdjustmentBatchInfo.from_model(batch) if batch else None

    def rate(self, rate_id: UUID) -> RateInfo | None:
        row = self.session.get(ViaticRateHistory, rate_id)
        return RateInfo.from_model(row) if row else None
