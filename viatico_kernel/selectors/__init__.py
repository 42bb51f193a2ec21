"""Selectors for the viatico kernel (read side)."""

from viatico_kernel.selectors.adjustment_selector import AdjustmentSelector
from viatico_kernel.selectors.ledger_selector import LedgerSelector
from viatico_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "AdjustmentSelector",
    "LedgerSelector",
    "RequestSelector",
]
