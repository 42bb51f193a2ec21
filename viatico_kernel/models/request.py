"""
Module: viatico_kernel.models.request
Responsibility: ORM persistence for the viatic request aggregate: the
    request row, its version chain, per-worker line items, day concepts,
    signatures, treasury payments and correction requests.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - request_number is unique (REQ-NNNN).
    - (request_id, version_number) is unique; version numbers are dense
      1..N and current_version_number is the highest of them.
    - Version identity columns (request, number, dates, payload) never
      change after insert; only planned_payment_date, lote_number and notes
      are administrative and may be edited.
    - Line items are immutable; gross = daily * days and
      net = gross - balance_applied hold on insert.
    - At most one Signature and one TreasuryPayment per version.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viatico_kernel.db.base import Base, TrackedBase, UUIDString


class CorrectionStatus(str, Enum):
    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class ViaticRequest(TrackedBase):
    """
    The request aggregate root.

    ``seq`` is allocated from the ``viatic_request`` counter and gives a
    strict creation order independent of timestamp resolution.
    """

    __tablename__ = "viatic_requests"

    __table_args__ = (
        Index("idx_request_status", "status"),
        Index("idx_request_area", "area_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    request_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    area_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("areas.id"),
        nullable=False,
    )

    created_by_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False)

    current_version_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    versions: Mapped[list["ViaticRequestVersion"]] = relationship(
        back_populates="request",
        order_by="ViaticRequestVersion.version_number",
    )

    def __repr__(self) -> str:
        return (
            f"<ViaticRequest {self.request_number} status={self.status} "
            f"v{self.current_version_number}>"
        )


class ViaticRequestVersion(TrackedBase):
    """One immutable snapshot of a request (dates, lines, day plan)."""

    __tablename__ = "viatic_request_versions"

    __table_args__ = (
        UniqueConstraint("request_id", "version_number", name="uq_request_version_number"),
        Index("idx_version_dates", "start_date", "end_date"),
        Index("idx_version_lote", "lote_number"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_requests.id"),
        nullable=False,
    )

    version_number: Mapped[int] = mapped_column(Integer, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Administrative metadata, editable by standardize
    planned_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    lote_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # Serialized DayPlan (domain/day_plan.py)
    payload_json: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    request: Mapped["ViaticRequest"] = relationship(back_populates="versions")

    workers: Mapped[list["ViaticRequestWorker"]] = relationship(
        back_populates="version",
        lazy="selectin",
        order_by="ViaticRequestWorker.line_no",
    )

    day_concepts: Mapped[list["ViaticRequestDayConcept"]] = relationship(
        back_populates="version",
        order_by="[ViaticRequestDayConcept.date, ViaticRequestDayConcept.position]",
    )

    signature: Mapped["Signature | None"] = relationship(
        back_populates="version",
        uselist=False,
    )

    payment: Mapped["TreasuryPayment | None"] = relationship(
        back_populates="version",
        uselist=False,
    )

    correction_requests: Mapped[list["CorrectionRequest"]] = relationship(
        back_populates="version",
        order_by="CorrectionRequest.created_at",
    )

    def __repr__(self) -> str:
        return f"<ViaticRequestVersion {self.request_id} v{self.version_number}>"


class ViaticRequestWorker(Base):
    """A worker's line on one version.  Amounts are frozen at insert."""

    __tablename__ = "viatic_request_workers"

    __table_args__ = (
        UniqueConstraint("request_version_id", "worker_id", name="uq_version_worker"),
        Index("idx_request_worker_worker", "worker_id"),
    )

    request_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_versions.id"),
        nullable=False,
    )

    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("workers.id"),
        nullable=False,
    )

    # Position within the version, preserved by corrections
    line_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Half-day granularity
    days_count: Mapped[Decimal] = mapped_column(nullable=False)

    # Snapshot of the rate in force at creation, not a live reference
    daily_amount: Mapped[Decimal] = mapped_column(nullable=False)

    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    balance_applied_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_amount: Mapped[Decimal] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    version: Mapped["ViaticRequestVersion"] = relationship(back_populates="workers")
    worker: Mapped["Worker"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<ViaticRequestWorker {self.worker_id} days={self.days_count}>"


class ViaticRequestDayConcept(Base):
    """Free-text description of the work done on one day."""

    __tablename__ = "viatic_request_day_concepts"

    __table_args__ = (
        Index("idx_day_concept_version", "request_version_id"),
    )

    request_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_versions.id"),
        nullable=False,
    )

    date: Mapped[date] = mapped_column(Date, nullable=False)

    # Order among the concepts of the same day
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    concept_text: Mapped[str] = mapped_column(String(500), nullable=False)
    concept_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    version: Mapped["ViaticRequestVersion"] = relationship(back_populates="day_concepts")


class Signature(Base):
    __tablename__ = "signatures"

    request_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_versions.id"),
        nullable=False,
        unique=True,
    )

    signed_by_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    signed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    signature_method: Mapped[str] = mapped_column(String(30), nullable=False)

    # SHA-256 of the canonical JSON of the signed version
    doc_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    version: Mapped["ViaticRequestVersion"] = relationship(back_populates="signature")


class TreasuryPayment(Base):
    __tablename__ = "treasury_payments"

    request_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_versions.id"),
        nullable=False,
        unique=True,
    )

    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payment_reference: Mapped[str] = mapped_column(String(100), nullable=False)

    notes: Mapped[str | None] = mapped_column(String(2000), nullable=True)

    created_by_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    version: Mapped["ViaticRequestVersion"] = relationship(back_populates="payment")


class CorrectionRequest(Base):
    """Raised by treasury when a version cannot be paid as issued."""

    __tablename__ = "correction_requests"

    __table_args__ = (
        Index("idx_correction_version_status", "request_version_id", "status"),
    )

    request_version_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_versions.id"),
        nullable=False,
    )

    requested_by_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(String(2000), nullable=False)

    suggested_payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CorrectionStatus.OPEN.value,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    version: Mapped["ViaticRequestVersion"] = relationship(back_populates="correction_requests")
