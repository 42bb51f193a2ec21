"""
BaseService -- common constructor for the kernel's write services.

Every service receives the caller's SQLAlchemy ``Session`` and uses
``session.flush()`` only.  Commit and rollback belong to whoever opened the
transaction (``ViaticActions`` in production, the test harness in tests),
so several services can take part in one atomic action.

Collaborators default sensibly: a ``SystemClock``, an ``AuditorService``
on the same session and the stock ``KernelSettings``.
"""

from abc import ABC

from sqlalchemy.orm import Session

from viatico_kernel.domain.clock import Clock, SystemClock
from viatico_kernel.domain.settings import KernelSettings
from viatico_kernel.services.auditor_service import AuditorService, AuditSink


class BaseService(ABC):
    """
    Base class for services that mutate state.

    Non-goals:
        - Does NOT manage the transaction lifecycle.
        - Does NOT provide read models; those live in
          ``viatico_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditSink | None = None,
        settings: KernelSettings | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._settings = settings or KernelSettings()
        self._auditor = auditor or AuditorService(session, self._clock)

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def settings(self) -> KernelSettings:
        return self._settings

    @property
    def auditor(self) -> AuditSink:
        return self._auditor
