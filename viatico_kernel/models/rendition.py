"""
Module: viatico_kernel.models.rendition
Responsibility: Renditions (one per request line) and their trip legs.

Legs have no identity of their own; every rendition edit replaces the
whole list.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viatico_kernel.db.base import Base, TrackedBase, UUIDString


class ViaticRendition(TrackedBase):
    __tablename__ = "viatic_renditions"

    request_worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_request_workers.id"),
        nullable=False,
        unique=True,
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

    reason: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    vehicle_plate: Mapped[str | None] = mapped_column(String(20), nullable=True)
    # Opaque; files are stored elsewhere
    attachment_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # None until the worker renders; half-day steps
    consumed_viaticos: Mapped[Decimal | None] = mapped_column(nullable=True)

    legs: Mapped[list["ViaticRenditionLeg"]] = relationship(
        back_populates="rendition",
        cascade="all, delete-orphan",
        order_by="ViaticRenditionLeg.order_index",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ViaticRendition line={self.request_worker_id} consumed={self.consumed_viaticos}>"


class ViaticRenditionLeg(Base):
    __tablename__ = "viatic_rendition_legs"

    rendition_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("viatic_renditions.id"),
        nullable=False,
    )

    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    departure_location: Mapped[str] = mapped_column(String(200), nullable=False)
    departure_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    departure_km: Mapped[Decimal | None] = mapped_column(nullable=True)

    arrival_location: Mapped[str] = mapped_column(String(200), nullable=False)
    arrival_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    arrival_km: Mapped[Decimal | None] = mapped_column(nullable=True)

    rendition: Mapped["ViaticRendition"] = relationship(back_populates="legs")
