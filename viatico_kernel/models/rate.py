"""
Module: viatico_kernel.models.rate
Responsibility: Append-only timeline of the daily allowance amount.

Invariants enforced:
    - Rows are never updated or deleted (ORM listener in db/immutability.py).
    - The rate in force on a date is the row with the latest
      effective_from <= that date; ties are broken by creation order.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from viatico_kernel.db.base import TrackedBase


class ViaticRateHistory(TrackedBase):
    __tablename__ = "viatic_rate_history"

    __table_args__ = (
        Index("idx_rate_effective_from", "effective_from"),
    )

    effective_from: Mapped[date] = mapped_column(Date, nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def __repr__(self) -> str:
        return f"<ViaticRateHistory {self.effective_from} {self.amount}>"
