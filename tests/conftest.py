"""
Pytest fixtures for the payroll kernel test suite.

Provides:
- Database sessions isolated per test by transaction rollback
- Deterministic clock, actors and a funded PayrollService
- Log capture as parsed JSON dicts

Environment Variables:
- DATABASE_URL: Connection URL for the test database.
  If not set, an in-memory SQLite database is used.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from payroll_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from payroll_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from payroll_kernel.domain.addressing import AddressDeriver
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.keys import ActorId
from payroll_kernel.domain.records import EmployeeProfile
from payroll_kernel.domain.rent import RentSchedule
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_kernel.selectors.payroll_selector import PayrollSelector
from payroll_kernel.services.payroll_service import PayrollService

DEFAULT_DATABASE_URL = "sqlite://"

# Enough to cover every deposit a test makes at the default rent.
STARTING_BALANCE = 10**12

# Acme scenario timestamp
PAID_AT = 1000


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
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, payroll_service):
            payroll_service.initialize_payroll(admin, "Acme")
            logs = captured_logs()
            assert any(r["message"] == "payroll_initialized" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
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
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Any ``session.commit()`` inside the test releases a savepoint; it
      does NOT actually commit to the database
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Clock and actor fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Clock pinned at the Acme scenario timestamp."""
    return DeterministicClock.at_timestamp(PAID_AT)


@pytest.fixture
def admin() -> ActorId:
    return ActorId.generate()


@pytest.fixture
def other_admin() -> ActorId:
    return ActorId.generate()


@pytest.fixture
def wallet() -> ActorId:
    return ActorId.generate()


@pytest.fixture
def bot() -> ActorId:
    """Unattended disbursement automation; never an administrator."""
    return ActorId.generate()


@pytest.fixture
def deriver() -> AddressDeriver:
    return AddressDeriver()


@pytest.fixture
def rent() -> RentSchedule:
    return RentSchedule()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def payroll_service(session, deterministic_clock, deriver, rent) -> PayrollService:
    return PayrollService(session, clock=deterministic_clock, deriver=deriver, rent=rent)


@pytest.fixture
def ledger(payroll_service):
    return payroll_service.ledger


@pytest.fixture
def store(payroll_service):
    return payroll_service.store


@pytest.fixture
def selector(session, deriver) -> PayrollSelector:
    return PayrollSelector(session, deriver)


@pytest.fixture
def fund(ledger):
    """Factory fixture: credit an actor's wallet outside any instruction."""

    def _fund(actor: ActorId, amount: int = STARTING_BALANCE) -> int:
        return ledger.fund(actor, amount)

    return _fund


@pytest.fixture
def make_profile():
    """Factory fixture for EmployeeProfile with overridable fields."""

    def _make(**overrides) -> EmployeeProfile:
        fields = dict(
            name="W1",
            role="Engineer",
            ciphertext=b"\x01" * 64,
            input_type=4,
            pin="1234",
            schedule="Monthly",
            next_payment_ts=0,
        )
        fields.update(overrides)
        return EmployeeProfile(**fields)

    return _make


@pytest.fixture
def payroll(payroll_service, admin, fund):
    """An initialized "Acme" payroll whose admin is funded."""
    fund(admin)
    return payroll_service.initialize_payroll(admin, "Acme")


@pytest.fixture
def employee(payroll_service, payroll, admin, wallet, make_profile):
    """One Monthly employee of the Acme payroll."""
    return payroll_service.add_employee(admin, payroll, wallet, make_profile())
