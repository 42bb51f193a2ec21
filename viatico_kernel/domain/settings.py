"""
Kernel settings -- the business defaults services fall back on.

The kernel never reads configuration files.  ``viatico_config`` loads the
YAML set and hands the services a ``KernelSettings``; tests construct one
directly (the defaults match the shipped configuration set).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class KernelSettings:
    # Rate used when the registry has no row in force
    default_daily_amount: Decimal = Decimal("25000")

    # Area created lazily for actors without one
    default_area_name: str = "Santiago del Estero"

    # REQ-0001
    request_number_prefix: str = "REQ-"
    request_number_width: int = 4

    # L-2026-0001
    lote_prefix: str = "L-"
    lote_number_width: int = 4

    default_signature_method: str = "PIN"

    default_payment_reference: str = "DEP-DEMO"
    default_payment_notes: str = "Pago registrado desde demo"

    default_correction_reason: str = "Banco no habil"
    correction_suggested_offset_days: int = 2
    default_correction_notes: str = "Correccion solicitada"

    default_concept_text: str = "Concepto general"

    def __post_init__(self):
        if not isinstance(self.default_daily_amount, Decimal):
            object.__setattr__(
                self, "default_daily_amount", Decimal(str(self.default_daily_amount))
            )
        if self.default_daily_amount <= 0:
            raise ValueError("default_daily_amount must be positive")
        if not self.default_area_name.strip():
            raise ValueError("default_area_name cannot be blank")
        if not self.request_number_prefix:
            raise ValueError("request_number_prefix cannot be empty")
        if self.request_number_width < 1:
            raise ValueError("request_number_width must be at least 1")
        if not self.lote_prefix:
            raise ValueError("lote_prefix cannot be empty")
        if self.lote_number_width < 1:
            raise ValueError("lote_number_width must be at least 1")
        if self.correction_suggested_offset_days < 0:
            raise ValueError("correction_suggested_offset_days cannot be negative")
        if not self.default_concept_text.strip():
            raise ValueError("default_concept_text cannot be blank")

    def format_request_number(self, number: int) -> str:
        return f"{self.request_number_prefix}{str(number).zfill(self.request_number_width)}"

    def format_lote_number(self, year: int, number: int) -> str:
        return f"{self.lote_prefix}{year}-{str(number).zfill(self.lote_number_width)}"
