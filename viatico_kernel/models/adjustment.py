"""
Module: viatico_kernel.models.adjustment
Responsibility: Retroactive adjustment batches and their per-worker items.

A batch is a proposal created when the daily rate changes mid-month.
Applying it (AdjustmentService.apply_batch) turns every item into a ledger
entry and flips batch and items to APPLIED.  An APPLIED batch is frozen.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viatico_kernel.db.base import Base, TrackedBase, UUIDString


class AdjustmentStatus(str, Enum):
    DRAFT = "DRAFT"
    APPLIED = "APPLIED"


class RetroactiveAdjustmentBatch(TrackedBase):
    __tablename__ = "retroactive_adjustment_batches"

    __table_args__ = (
        Index("idx_adjustment_batch_period", "period_month"),
    )

    # "YYYY-MM"
    period_month: Mapped[str] = mapped_column(String(7), nullable=False)

    effective_from_date: Mapped[date] = mapped_column(Date, nullable=False)

    old_amount: Mapped[Decimal] = mapped_column(nullable=False)
    new_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=AdjustmentStatus.DRAFT.value,
    )

    rate_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_rate_history.id"),
        nullable=True,
    )

    applied_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    applied_by_user_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=True,
    )

    items: Mapped[list["RetroactiveAdjustmentItem"]] = relationship(
        back_populates="batch",
        lazy="selectin",
        order_by="RetroactiveAdjustmentItem.position",
    )

    @property
    def is_applied(self) -> bool:
        return self.status == AdjustmentStatus.APPLIED.value

    def __repr__(self) -> str:
        return f"<RetroactiveAdjustmentBatch {self.period_month} {self.status}>"


class RetroactiveAdjustmentItem(Base):
    __tablename__ = "retroactive_adjustment_items"

    __table_args__ = (
        Index("idx_adjustment_item_batch", "batch_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("retroactive_adjustment_batches.id"),
        nullable=False,
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(nullable=False, default=0)

    days_affected: Mapped[Decimal] = mapped_column(nullable=False)

    # Signed: positive is owed to the worker, negative is owed by the worker
    amount_diff: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=AdjustmentStatus.DRAFT.value,
    )

    batch: Mapped["RetroactiveAdjustmentBatch"] = relationship(back_populates="items")
