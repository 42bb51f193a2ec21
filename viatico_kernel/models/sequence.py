"""
Module: viatico_kernel.models.sequence
Responsibility: Named counter rows backing SequenceService.

Each row is locked (SELECT ... FOR UPDATE) while its value is advanced, so
the counter is the only source of truth for the next value.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from viatico_kernel.db.base import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    # e.g. "viatic_request", "audit_log", "lote_2026"
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )
