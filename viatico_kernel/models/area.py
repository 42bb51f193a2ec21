"""
Module: viatico_kernel.models.area
Responsibility: Areas and the users who act inside them.

Areas are a flat list (no hierarchy), created lazily the first time a
name is used and never changed afterwards.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from viatico_kernel.db.base import Base, UUIDString


class Area(Base):
    __tablename__ = "areas"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    users: Mapped[list["User"]] = relationship(back_populates="area")

    def __repr__(self) -> str:
        return f"<Area {self.name}>"


class User(Base):
    """
    A person who acts on requests.

    ``role`` holds a UserRole value.  Authentication lives outside the
    kernel; this row only identifies the actor in audit and signature
    records.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    area_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("areas.id"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    area: Mapped["Area | None"] = relationship(back_populates="users")

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"
