"""
Pytest fixtures for the assessment financials test suite.

Provides:
- In-memory SQLite sessions with every table and immutability listener
- A deterministic clock
- Rate set / estimate factories
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL for the persistence tests.  Defaults to an
  in-memory SQLite database.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from assessment_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from assessment_kernel.domain.clock import DeterministicClock
from assessment_kernel.domain.values import RateSet
from assessment_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from assessment_kernel.services.auditor_service import AuditorService
from assessment_modules.estimate.aggregate import Estimate
from assessment_services.financials import AssessmentFinancialsService
from assessment_services.workflow_bridge import AssessmentStageTracker

TEST_ACTOR_ID = "assessor-001"

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """JSON logging at DEBUG for the whole run."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """No actor or estimate id leaks from one test into the next."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture assessment_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, estimate):
            estimate.finalize()
            assert any(r["message"] == "estimate_finalized" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("assessment_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        return [json.loads(raw) for raw in stream.getvalue().splitlines() if raw]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def rate_set() -> RateSet:
    """Labour R500/h, paint R2000/panel, 15% VAT, 25% markup on every part type."""
    return RateSet(
        labour_rate=Decimal("500.00"),
        paint_rate=Decimal("2000.00"),
        vat_percentage=Decimal("15"),
        oem_markup_pct=Decimal("25"),
        aftermarket_markup_pct=Decimal("25"),
        second_hand_markup_pct=Decimal("25"),
    )


@pytest.fixture
def new_oem_bumper() -> dict:
    """Quantities of a NEW OEM line priced at R15,625 with the default rates."""
    return {
        "nett_part_price": "10000",
        "strip_assemble_hours": "0.25",
        "labour_hours": "2",
        "paint_panels": "1",
    }


@pytest.fixture
def estimate(rate_set, deterministic_clock) -> Estimate:
    return Estimate(rate_set=rate_set, clock=deterministic_clock)


@pytest.fixture
def finalized_estimate(estimate, new_oem_bumper) -> Estimate:
    """Finalized estimate with a R15,625 bumper and a R5,640 door repair."""
    estimate.add_line("N", "Front bumper", new_oem_bumper, part_type="oem")
    estimate.add_line(
        "R",
        "Left front door",
        {"strip_assemble_hours": "0.28", "labour_hours": "4", "paint_panels": "1.75"},
    )
    estimate.finalize()
    estimate.collect_audit_records()
    return estimate


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh database with all tables and listeners; rolled back after the test."""
    init_engine_from_url(get_database_url())
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()
        drop_tables()
        reset_engine()


@pytest.fixture
def auditor_service(session, deterministic_clock) -> AuditorService:
    return AuditorService(session, deterministic_clock)


@pytest.fixture
def stage_tracker() -> AssessmentStageTracker:
    return AssessmentStageTracker()


@pytest.fixture
def financials(session, auditor_service, stage_tracker, deterministic_clock) -> AssessmentFinancialsService:
    return AssessmentFinancialsService(
        session,
        auditor=auditor_service,
        workflow_bridge=stage_tracker,
        clock=deterministic_clock,
    )
