"""ORM models for the viatico kernel."""

from viatico_kernel.models.adjustment import (
    AdjustmentStatus,
    RetroactiveAdjustmentBatch,
    RetroactiveAdjustmentItem,
)
from viatico_kernel.models.area import Area, User
from viatico_kernel.models.audit_log import AuditLog
from viatico_kernel.models.ledger import (
    EntryType,
    LedgerPurpose,
    WorkerViaticBalanceLedger,
)
from viatico_kernel.models.rate import ViaticRateHistory
from viatico_kernel.models.rendition import ViaticRendition, ViaticRenditionLeg
from viatico_kernel.models.request import (
    CorrectionRequest,
    CorrectionStatus,
    Signature,
    TreasuryPayment,
    ViaticRequest,
    ViaticRequestDayConcept,
    ViaticRequestVersion,
    ViaticRequestWorker,
)
from viatico_kernel.models.sequence import SequenceCounter
from viatico_kernel.models.worker import DEFAULT_WORKER_STATUS, Worker

__all__ = [
    "AdjustmentStatus",
    "Area",
    "AuditLog",
    "CorrectionRequest",
    "CorrectionStatus",
    "DEFAULT_WORKER_STATUS",
    "EntryType",
    "LedgerPurpose",
    "RetroactiveAdjustmentBatch",
    "RetroactiveAdjustmentItem",
    "SequenceCounter",
    "Signature",
    "TreasuryPayment",
    "User",
    "ViaticRateHistory",
    "ViaticRendition",
    "ViaticRenditionLeg",
    "ViaticRequest",
    "ViaticRequestDayConcept",
    "ViaticRequestVersion",
    "ViaticRequestWorker",
    "Worker",
    "WorkerViaticBalanceLedger",
]
