"""
Pytest fixtures for the asset kernel test suite.

Provides:
- An in-memory SQLite engine and session per test (tables created fresh)
- A seeded branch forest and actors resolved through the hierarchy resolver
- Deterministic clock and recording notification publisher
- Asset factories (machines, SIM cards, maintenance requests)

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL.  Only the ``postgres`` variants
  in tests/concurrency use it; they are skipped when it is not set.
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from asset_kernel.db.base import Base
from asset_kernel.db.engine import build_engine
from asset_kernel.db.immutability import register_immutability_listeners
from asset_kernel.domain.actor import ActorContext
from asset_kernel.domain.clock import DeterministicClock
from asset_kernel.domain.notifications import RecordingPublisher
from asset_kernel.domain.roles import Role
from asset_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from asset_kernel.models.asset import Machine, MachineStatus, SimCard, SimStatus
from asset_kernel.models.branch import Branch, BranchType
from asset_kernel.models.maintenance import MaintenanceRequest, MaintenanceRequestStatus
from asset_kernel.selectors.branch_selector import BranchHierarchyResolver
from asset_kernel.services.lifecycle_service import AssetLifecycleService
from asset_kernel.services.transfer_orchestrator import TransferOrderOrchestrator
from asset_kernel.services.transfer_validator import TransferValidator

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=UTC)


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
    Capture asset_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.create_transfer_order(...)
            logs = captured_logs()
            assert any(r["message"] == "create_transfer_order_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("asset_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database with all tables."""
    import asset_kernel.models  # noqa: F401

    eng = build_engine("sqlite://")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    sess = Session(bind=engine, expire_on_commit=False)
    yield sess
    sess.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


# =============================================================================
# Branch forest
#
#   HQ (ADMIN_AFFAIRS)
#   +-- A
#       +-- A1
#   Z
#   CENTER (MAINTENANCE_CENTER)
#   CLOSED (inactive)
# =============================================================================


@dataclass(frozen=True)
class SeededBranches:
    hq: UUID
    a: UUID
    a1: UUID
    z: UUID
    center: UUID
    closed: UUID


def _branch(session, code, branch_type=BranchType.BRANCH, parent=None, active=True) -> UUID:
    branch = Branch(
        id=uuid4(),
        code=code,
        name=f"Branch {code}",
        branch_type=branch_type.value,
        parent_branch_id=parent,
        is_active=active,
    )
    session.add(branch)
    session.flush()
    return branch.id


@pytest.fixture
def branches(session) -> SeededBranches:
    hq = _branch(session, "HQ", BranchType.ADMIN_AFFAIRS)
    a = _branch(session, "A", parent=hq)
    a1 = _branch(session, "A1", parent=a)
    z = _branch(session, "Z")
    center = _branch(session, "CENTER", BranchType.MAINTENANCE_CENTER)
    closed = _branch(session, "CLOSED", active=False)
    session.commit()
    return SeededBranches(hq=hq, a=a, a1=a1, z=z, center=center, closed=closed)


@pytest.fixture
def resolver(session) -> BranchHierarchyResolver:
    return BranchHierarchyResolver(session)


@pytest.fixture
def make_actor(resolver):
    """Factory: ``make_actor(Role.BRANCH_MANAGER, branches.a)``."""

    def _make(role: Role, branch_id: UUID | None, name: str | None = None) -> ActorContext:
        return resolver.resolve_actor(uuid4(), role, branch_id, display_name=name or role.value)

    return _make


@pytest.fixture
def actor_a(make_actor, branches) -> ActorContext:
    return make_actor(Role.BRANCH_MANAGER, branches.a, "Manager A")


@pytest.fixture
def actor_a1(make_actor, branches) -> ActorContext:
    return make_actor(Role.CS_AGENT, branches.a1, "Agent A1")


@pytest.fixture
def actor_z(make_actor, branches) -> ActorContext:
    return make_actor(Role.BRANCH_MANAGER, branches.z, "Manager Z")


@pytest.fixture
def center_tech(make_actor, branches) -> ActorContext:
    return make_actor(Role.CENTER_TECH, branches.center, "Center Tech")


@pytest.fixture
def admin(make_actor) -> ActorContext:
    return make_actor(Role.SUPER_ADMIN, None, "Admin")


# =============================================================================
# Asset factories
# =============================================================================


@pytest.fixture
def make_machine(session):
    def _make(
        serial: str,
        branch_id: UUID,
        status: MachineStatus = MachineStatus.STANDBY,
        **fields,
    ) -> Machine:
        machine = Machine(
            id=uuid4(),
            serial_number=serial,
            model="S90",
            manufacturer="PAX",
            branch_id=branch_id,
            status=status.value,
            **fields,
        )
        session.add(machine)
        session.commit()
        return machine

    return _make


@pytest.fixture
def make_sim(session):
    def _make(serial: str, branch_id: UUID, status: SimStatus = SimStatus.ACTIVE) -> SimCard:
        sim = SimCard(
            id=uuid4(),
            serial_number=serial,
            sim_type="4G",
            branch_id=branch_id,
            status=status.value,
        )
        session.add(sim)
        session.commit()
        return sim

    return _make


@pytest.fixture
def make_request(session, clock):
    def _make(
        serial: str,
        branch_id: UUID,
        status: MaintenanceRequestStatus = MaintenanceRequestStatus.OPEN,
    ) -> MaintenanceRequest:
        request = MaintenanceRequest(
            id=uuid4(),
            serial_number=serial,
            branch_id=branch_id,
            status=status.value,
            description="Screen cracked",
            created_at=clock.now(),
        )
        session.add(request)
        session.commit()
        return request

    return _make


# =============================================================================
# Kernel entry points
# =============================================================================


@pytest.fixture
def validator(session) -> TransferValidator:
    return TransferValidator(session)


@pytest.fixture
def orchestrator(session, clock, publisher) -> TransferOrderOrchestrator:
    return TransferOrderOrchestrator(session, clock=clock, publisher=publisher)


@pytest.fixture
def lifecycle(session, clock, publisher) -> AssetLifecycleService:
    return AssetLifecycleService(session, clock=clock, publisher=publisher)
