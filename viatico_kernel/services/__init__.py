"""Services for the viatico kernel (write side)."""

from viatico_kernel.services.adjustment_service import AdjustmentService
from viatico_kernel.services.auditor_service import AuditorService, AuditSink
from viatico_kernel.services.ledger_service import LedgerService
from viatico_kernel.services.rate_service import RateService
from viatico_kernel.services.rendition_service import RenditionService
from viatico_kernel.services.request_service import RequestService
from viatico_kernel.services.sequence_service import SequenceService
from viatico_kernel.services.worker_service import WorkerService
from viatico_kernel.services.workflow_service import WorkflowService

__all__ = [
    "AdjustmentService",
    "AuditorService",
    "AuditSink",
    "LedgerService",
    "RateService",
    "RenditionService",
    "RequestService",
    "SequenceService",
    "WorkerService",
    "WorkflowService",
]
