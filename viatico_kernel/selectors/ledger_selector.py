"""
Module: viatico_kernel.selectors.ledger_selector
Responsibility: Read-only queries over the worker balance ledger.

There is no stored balance.  balance(worker) is derived at query time:

    balance = sum(CREDIT amounts) - sum(DEBIT amounts)

Negative means the worker owes money (unused days, downward adjustments).
Sums are taken in Python over exact Decimals; on SQLite amounts are stored
as text and SQL aggregation would go through floating point.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from viatico_kernel.domain.dtos import LedgerEntryInfo, WorkerBalance
from viatico_kernel.models.ledger import EntryType, LedgerPurpose, WorkerViaticBalanceLedger
from viatico_kernel.selectors.base import BaseSelector

_L = WorkerViaticBalanceLedger


class LedgerSelector(BaseSelector):

    def entries(self, worker_id: UUID) -> list[LedgerEntryInfo]:
        """All entries of a worker, oldest first."""
        rows = self.session.execute(
            select(_L).where(_L.worker_id == worker_id).order_by(_L.created_at, _L.id)
        ).scalars().all()
        return [LedgerEntryInfo.from_model(r) for r in rows]

    def balance(self, worker_id: UUID) -> WorkerBalance:
        credits = Decimal("0")
        debits = Decimal("0")
        for entry_type, amount in self.session.execute(
            select(_L.entry_type, _L.amount).where(_L.worker_id == worker_id)
        ):
            if entry_type == EntryType.CREDIT.value:
                credits += amount
            else:
                debits += amount
        return WorkerBalance(worker_id=worker_id, credits=credits, debits=debits)

    def keyed_entries(
        self,
        purpose: LedgerPurpose | str,
        worker_id: UUID | None = None,
        request_version_id: UUID | None = None,
        adjustment_item_id: UUID | None = None,
    ) -> list[LedgerEntryInfo]:
        """Entries of one purpose, optionally narrowed by worker or related row."""
        stmt = select(_L).where(_L.purpose == LedgerPurpose(purpose).value)
        if worker_id is not None:
            stmt = stmt.where(_L.worker_id == worker_id)
        if request_version_id is not None:
            stmt = stmt.where(_L.related_request_version_id == request_version_id)
        if adjustment_item_id is not None:
            stmt = stmt.where(_L.related_adjustment_item_id == adjustment_item_id)
        rows = self.session.execute(stmt.order_by(_L.created_at, _L.id)).scalars().all()
        return [LedgerEntryInfo.from_model(r) for r in rows]
