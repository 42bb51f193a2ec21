"""
Pytest fixtures for the viatico kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (StaticPool, SAVEPOINT-capable)
- Seeded users (one per role) and workers, committed before the test runs
- Service, selector and action-boundary factories wired to a DeterministicClock
- ``captured_logs`` for asserting on structured log records

Environment Variables:
- DATABASE_URL: PostgreSQL URL for tests marked ``postgres``.  Those tests
  are skipped unless it points at PostgreSQL.
"""

import json
import logging
import os
from dataclasses import dataclass
from datetime import date
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from viatico_kernel.actions import ViaticActions
from viatico_kernel.db.engine import build_engine, create_tables
from viatico_kernel.db.immutability import register_immutability_listeners
from viatico_kernel.domain.actor import Actor, ExplicitActorResolver, UserRole
from viatico_kernel.domain.clock import DeterministicClock
from viatico_kernel.domain.dtos import WorkerLineInput
from viatico_kernel.domain.settings import KernelSettings
from viatico_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from viatico_kernel.models.area import Area, User
from viatico_kernel.models.worker import Worker
from viatico_kernel.selectors.ledger_selector import LedgerSelector
from viatico_kernel.selectors.request_selector import RequestSelector
from viatico_kernel.services.adjustment_service import AdjustmentService
from viatico_kernel.services.auditor_service import AuditorService
from viatico_kernel.services.ledger_service import LedgerService
from viatico_kernel.services.rate_service import RateService
from viatico_kernel.services.rendition_service import RenditionService
from viatico_kernel.services.request_service import RequestService
from viatico_kernel.services.worker_service import WorkerService
from viatico_kernel.services.workflow_service import WorkflowService


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture viatico_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, rate_service, admin):
            rate_service.set_rate(...)
            assert any(r["message"] == "rate_registered" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("viatico_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database with every table and the immutability listeners."""
    eng = build_engine("sqlite:///:memory:")
    create_tables(eng)
    register_immutability_listeners()
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@dataclass(frozen=True)
class Seed:
    area_id: UUID
    chief: Actor
    admin: Actor
    treasury: Actor
    collaborator: Actor
    worker_ids: tuple[UUID, ...]


@pytest.fixture
def seed(session_factory) -> Seed:
    """
    Committed reference data: one area, one user per role, three workers.
    """
    with session_factory() as s:
        area = Area(name="Obras Publicas")
        s.add(area)
        s.flush()

        actors = {}
        for role, name in (
            (UserRole.JEFE_AREA, "Jefa de Area"),
            (UserRole.ADMIN, "Administracion"),
            (UserRole.TESORERIA, "Tesoreria"),
            (UserRole.COLABORADOR, "Colaborador"),
        ):
            user = User(
                name=name,
                email=f"{role.value.lower()}@example.org",
                role=role.value,
                area_id=area.id,
            )
            s.add(user)
            s.flush()
            actors[role] = Actor(user_id=user.id, role=role, area_id=area.id, name=name)

        worker_ids = []
        for legajo, name in (("1001", "Ana Paz"), ("1002", "Bruno Diaz"), ("1003", "Carla Ruiz")):
            worker = Worker(legajo=legajo, name=name, created_by_id=actors[UserRole.ADMIN].user_id)
            s.add(worker)
            s.flush()
            worker_ids.append(worker.id)
        s.commit()

        return Seed(
            area_id=area.id,
            chief=actors[UserRole.JEFE_AREA],
            admin=actors[UserRole.ADMIN],
            treasury=actors[UserRole.TESORERIA],
            collaborator=actors[UserRole.COLABORADOR],
            worker_ids=tuple(worker_ids),
        )


@pytest.fixture
def session(session_factory, seed) -> Generator[Session, None, None]:
    """Session for service-level tests; the test decides whether to commit."""
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


# =============================================================================
# Actors, clock, settings
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Frozen at 2026-02-20 12:00 UTC."""
    return DeterministicClock()


@pytest.fixture
def settings() -> KernelSettings:
    return KernelSettings()


@pytest.fixture
def chief(seed) -> Actor:
    return seed.chief


@pytest.fixture
def admin(seed) -> Actor:
    return seed.admin


@pytest.fixture
def treasury(seed) -> Actor:
    return seed.treasury


@pytest.fixture
def worker_ids(seed) -> tuple[UUID, ...]:
    return seed.worker_ids


# =============================================================================
# Services and selectors
# =============================================================================


@pytest.fixture
def auditor_service(session, deterministic_clock) -> AuditorService:
    return AuditorService(session, deterministic_clock)


def _service(cls, session, clock, auditor, settings):
    return cls(session, clock, auditor, settings)


@pytest.fixture
def rate_service(session, deterministic_clock, auditor_service, settings) -> RateService:
    return _service(RateService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def request_service(session, deterministic_clock, auditor_service, settings) -> RequestService:
    return _service(RequestService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def workflow_service(session, deterministic_clock, auditor_service, settings) -> WorkflowService:
    return _service(WorkflowService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def adjustment_service(
    session, deterministic_clock, auditor_service, settings
) -> AdjustmentService:
    return _service(AdjustmentService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def rendition_service(
    session, deterministic_clock, auditor_service, settings
) -> RenditionService:
    return _service(RenditionService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def ledger_service(session, deterministic_clock, auditor_service, settings) -> LedgerService:
    return _service(LedgerService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def worker_service(session, deterministic_clock, auditor_service, settings) -> WorkerService:
    return _service(WorkerService, session, deterministic_clock, auditor_service, settings)


@pytest.fixture
def ledger_selector(session) -> LedgerSelector:
    return LedgerSelector(session)


@pytest.fixture
def request_selector(session) -> RequestSelector:
    return RequestSelector(session)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def create_request(request_service, chief, worker_ids):
    """
    Factory: create a request as the area chief.

    Defaults to all three seeded workers over 2026-02-05..2026-02-14 at the
    rate in force (the 25000 default unless the test registered another).
    """

    def _create(
        start: date = date(2026, 2, 5),
        end: date = date(2026, 2, 14),
        workers=None,
        **kwargs,
    ):
        lines = workers if workers is not None else [WorkerLineInput(w) for w in worker_ids]
        return request_service.create_request(chief, start, end, lines, **kwargs)

    return _create


@pytest.fixture
def ready_for_payment(create_request, workflow_service, admin, chief):
    """Factory: a request walked to READY_FOR_PAYMENT."""

    def _make(**kwargs):
        request = create_request(**kwargs)
        workflow_service.standardize(request.id, admin)
        workflow_service.sign(request.id, chief)
        return request

    return _make


@pytest.fixture
def actions_for(session_factory, deterministic_clock, settings):
    """Factory: a ViaticActions boundary acting as the given actors."""

    def _make(*actors: Actor) -> ViaticActions:
        return ViaticActions(
            session_factory,
            ExplicitActorResolver(*actors),
            clock=deterministic_clock,
            settings=settings,
        )

    return _make


# =============================================================================
# PostgreSQL
# =============================================================================


def get_database_url() -> str | None:
    return os.environ.get("DATABASE_URL")


@pytest.fixture
def pg_engine():
    """Engine on DATABASE_URL with fresh tables; skips unless it is PostgreSQL."""
    url = get_database_url()
    if not url or not url.startswith("postgresql"):
        pytest.skip("DATABASE_URL does not point at PostgreSQL")
    from viatico_kernel.db.engine import drop_tables

    eng = build_engine(url, pool_size=10, max_overflow=10)
    drop_tables(eng)
    create_tables(eng)
    register_immutability_listeners()
    yield eng
    drop_tables(eng)
    eng.dispose()
