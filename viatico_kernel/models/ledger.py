"""
Module: viatico_kernel.models.ledger
Responsibility: Per-worker balance ledger of debit and credit entries.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0; the sign lives in entry_type.
    - balance(worker) = sum(CREDIT) - sum(DEBIT), derived, never stored.
    - Keyed entries are unique per structured key, enforced by partial
      unique indexes rather than by the free-text reason:
        RENDITION_BALANCE       (worker_id, related_request_version_id)
        RETROACTIVE_ADJUSTMENT  (worker_id, related_adjustment_item_id)
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from viatico_kernel.db.base import TrackedBase, UUIDString


class EntryType(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class LedgerPurpose(str, Enum):
    MANUAL = "MANUAL"
    RENDITION_BALANCE = "RENDITION_BALANCE"
    RETROACTIVE_ADJUSTMENT = "RETROACTIVE_ADJUSTMENT"


_RENDITION_ONLY = text("purpose = 'RENDITION_BALANCE'")
_ADJUSTMENT_ONLY = text("purpose = 'RETROACTIVE_ADJUSTMENT'")


class WorkerViaticBalanceLedger(TrackedBase):
    __tablename__ = "worker_viatic_balance_ledger"

    __table_args__ = (
        Index("idx_ledger_worker", "worker_id"),
        Index(
            "uq_ledger_rendition_balance",
            "worker_id",
            "related_request_version_id",
            unique=True,
            postgresql_where=_RENDITION_ONLY,
            sqlite_where=_RENDITION_ONLY,
        ),
        Index(
            "uq_ledger_retroactive_adjustment",
            "worker_id",
            "related_adjustment_item_id",
            unique=True,
            postgresql_where=_ADJUSTMENT_ONLY,
            sqlite_where=_ADJUSTMENT_ONLY,
        ),
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=False,
    )

    entry_type: Mapped[str] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    # Human-readable; not a key
    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    purpose: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=LedgerPurpose.MANUAL.value,
    )

    related_request_version_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_versions.id"),
        nullable=True,
    )

    related_adjustment_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("retroactive_adjustment_items.id"),
        nullable=True,
    )

    @property
    def signed_amount(self) -> Decimal:
        """Credits positive, debits negative."""
        if self.entry_type == EntryType.CREDIT.value:
            return self.amount
        return -self.amount

    def __repr__(self) -> str:
        return f"<Ledger {self.entry_type} {self.amount} worker={self.worker_id}>"
