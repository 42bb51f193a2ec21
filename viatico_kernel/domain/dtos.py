"""
DTOs -- immutable data passed across the service and selector boundary.

Services and selectors return these instead of ORM rows, so callers never
hold a live entity after the session closes.  ``from_model`` converters
are only invoked from the service/selector layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from viatico_kernel.models.adjustment import (
        RetroactiveAdjustmentBatch,
        RetroactiveAdjustmentItem,
    )
    from viatico_kernel.models.ledger import WorkerViaticBalanceLedger
    from viatico_kernel.models.rate import ViaticRateHistory
    from viatico_kernel.models.rendition import ViaticRendition
    from viatico_kernel.models.request import (
        ViaticRequest,
        ViaticRequestVersion,
        ViaticRequestWorker,
    )
    from viatico_kernel.models.worker import Worker


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerLineInput:
    """
    One worker on a new request.

    ``days_count`` defaults to the day plan or the inclusive date range;
    ``daily_amount`` defaults to the rate in force today.
    """
    worker_id: UUID
    days_count: Decimal | None = None
    daily_amount: Decimal | None = None


@dataclass(frozen=True)
class LineItemSpec:
    """A fully resolved line, ready to be written to a version."""
    worker_id: UUID
    days_count: Decimal
    daily_amount: Decimal
    balance_applied_amount: Decimal = Decimal("0")

    @property
    def gross_amount(self) -> Decimal:
        return self.daily_amount * self.days_count

    @property
    def net_amount(self) -> Decimal:
        return self.gross_amount - self.balance_applied_amount


@dataclass(frozen=True)
class DayConceptSpec:
    date: date
    concept_text: str
    concept_code: str | None = None


@dataclass(frozen=True)
class LedgerKey:
    """
    Structured identity of a keyed ledger entry.

    Exactly one of the related ids is set, matching the purpose.
    """
    worker_id: UUID
    purpose: str
    related_request_version_id: UUID | None = None
    related_adjustment_item_id: UUID | None = None

    @classmethod
    def rendition_balance(cls, worker_id: UUID, version_id: UUID) -> "LedgerKey":
        return cls(
            worker_id=worker_id,
            purpose="RENDITION_BALANCE",
            related_request_version_id=version_id,
        )

    @classmethod
    def retroactive_adjustment(cls, worker_id: UUID, item_id: UUID) -> "LedgerKey":
        return cls(
            worker_id=worker_id,
            purpose="RETROACTIVE_ADJUSTMENT",
            related_adjustment_item_id=item_id,
        )


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkerInfo:
    id: UUID
    legajo: str
    name: str
    dni: str | None
    cbu: str | None
    bank: str | None
    province: str | None
    status: str

    @classmethod
    def from_model(cls, model: "Worker") -> "WorkerInfo":
        return cls(
            id=model.id,
            legajo=model.legajo,
            name=model.name,
            dni=model.dni,
            cbu=model.cbu,
            bank=model.bank,
            province=model.province,
            status=model.status,
        )


@dataclass(frozen=True)
class RateInfo:
    id: UUID
    effective_from: date
    amount: Decimal
    note: str | None

    @classmethod
    def from_model(cls, model: "ViaticRateHistory") -> "RateInfo":
        return cls(
            id=model.id,
            effective_from=model.effective_from,
            amount=model.amount,
            note=model.note,
        )


@dataclass(frozen=True)
class RateChange:
    """Result of registering a rate: the new row and the one it supersedes."""
    rate: RateInfo
    previous_rate: RateInfo | None
    adjustment_batch_id: UUID | None = None


@dataclass(frozen=True)
class LineInfo:
    id: UUID
    worker_id: UUID
    days_count: Decimal
    daily_amount: Decimal
    gross_amount: Decimal
    balance_applied_amount: Decimal
    net_amount: Decimal

    @classmethod
    def from_model(cls, model: "ViaticRequestWorker") -> "LineInfo":
        return cls(
            id=model.id,
            worker_id=model.worker_id,
            days_count=model.days_count,
            daily_amount=model.daily_amount,
            gross_amount=model.gross_amount,
            balance_applied_amount=model.balance_applied_amount,
            net_amount=model.net_amount,
        )


@dataclass(frozen=True)
class VersionInfo:
    id: UUID
    request_id: UUID
    version_number: int
    start_date: date
    end_date: date
    planned_payment_date: date | None
    lote_number: str | None
    notes: str | None
    lines: tuple[LineInfo, ...]
    is_signed: bool
    is_paid: bool
    paid_at: datetime | None = None

    @property
    def total_net(self) -> Decimal:
        return sum((line.net_amount for line in self.lines), Decimal("0"))

    @classmethod
    def from_model(cls, model: "ViaticRequestVersion") -> "VersionInfo":
        return cls(
            id=model.id,
            request_id=model.request_id,
            version_number=model.version_number,
            start_date=model.start_date,
            end_date=model.end_date,
            planned_payment_date=model.planned_payment_date,
            lote_number=model.lote_number,
            notes=model.notes,
            lines=tuple(LineInfo.from_model(line) for line in model.workers),
            is_signed=model.signature is not None,
            is_paid=model.payment is not None,
            paid_at=model.payment.paid_at if model.payment is not None else None,
        )


@dataclass(frozen=True)
class RequestInfo:
    id: UUID
    request_number: str
    status: str
    area_id: UUID
    created_by_user_id: UUID
    current_version_number: int

    @classmethod
    def from_model(cls, model: "ViaticRequest") -> "RequestInfo":
        return cls(
            id=model.id,
            request_number=model.request_number,
            status=model.status,
            area_id=model.area_id,
            created_by_user_id=model.created_by_user_id,
            current_version_number=model.current_version_number,
        )


@dataclass(frozen=True)
class LedgerEntryInfo:
    id: UUID
    worker_id: UUID
    entry_type: str
    amount: Decimal
    reason: str
    purpose: str
    related_request_version_id: UUID | None
    related_adjustment_item_id: UUID | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, model: "WorkerViaticBalanceLedger") -> "LedgerEntryInfo":
        return cls(
            id=model.id,
            worker_id=model.worker_id,
            entry_type=model.entry_type,
            amount=model.amount,
            reason=model.reason,
            purpose=model.purpose,
            related_request_version_id=model.related_request_version_id,
            related_adjustment_item_id=model.related_adjustment_item_id,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class WorkerBalance:
    worker_id: UUID
    credits: Decimal
    debits: Decimal

    @property
    def balance(self) -> Decimal:
        """Credits minus debits; negative means the worker owes."""
        return self.credits - self.debits


@dataclass(frozen=True)
class AdjustmentItemInfo:
    id: UUID
    worker_id: UUID
    days_affected: Decimal
    amount_diff: Decimal
    status: str

    @classmethod
    def from_model(cls, model: "RetroactiveAdjustmentItem") -> "AdjustmentItemInfo":
        return cls(
            id=model.id,
            worker_id=model.worker_id,
            days_affected=model.days_affected,
            amount_diff=model.amount_diff,
            status=model.status,
        )


@dataclass(frozen=True)
class AdjustmentBatchInfo:
    id: UUID
    period_month: str
    effective_from_date: date
    old_amount: Decimal
    new_amount: Decimal
    status: str
    items: tuple[AdjustmentItemInfo, ...]
    applied_at: datetime | None = None

    @property
    def total_diff(self) -> Decimal:
        return sum((item.amount_diff for item in self.items), Decimal("0"))

    @classmethod
    def from_model(cls, model: "RetroactiveAdjustmentBatch") -> "AdjustmentBatchInfo":
        return cls(
            id=model.id,
            period_month=model.period_month,
            effective_from_date=model.effective_from_date,
            old_amount=model.old_amount,
            new_amount=model.new_amount,
            status=model.status,
            items=tuple(AdjustmentItemInfo.from_model(i) for i in model.items),
            applied_at=model.applied_at,
        )


@dataclass(frozen=True)
class RenditionInfo:
    id: UUID
    request_worker_id: UUID
    request_version_id: UUID
    worker_id: UUID
    consumed_viaticos: Decimal | None
    leg_count: int

    @classmethod
    def from_model(cls, model: "ViaticRendition") -> "RenditionInfo":
        return cls(
            id=model.id,
            request_worker_id=model.request_worker_id,
            request_version_id=model.request_version_id,
            worker_id=model.worker_id,
            consumed_viaticos=model.consumed_viaticos,
            leg_count=len(model.legs),
        )


@dataclass(frozen=True)
class RenditionBulkResult:
    renditions: tuple[RenditionInfo, ...]
    # Lines left with unused days (and therefore a debt entry)
    balance_count: int
