"""
Module: viatico_kernel.models.worker
Responsibility: ORM persistence for workers who receive viaticos.

Workers are never hard-deleted; ``status`` carries their standing
("Activo" on creation).
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from viatico_kernel.db.base import TrackedBase

DEFAULT_WORKER_STATUS = "Activo"


class Worker(TrackedBase):
    __tablename__ = "workers"

    # Personnel file number, the business key
    legajo: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    dni: Mapped[str | None] = mapped_column(String(20), nullable=True)
    cbu: Mapped[str | None] = mapped_column(String(30), nullable=True)
    bank: Mapped[str | None] = mapped_column(String(100), nullable=True)
    province: Mapped[str | None] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=DEFAULT_WORKER_STATUS,
    )

    def __repr__(self) -> str:
        return f"<Worker {self.legajo} {self.name}>"
