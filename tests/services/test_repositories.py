"""
Tests for the SQLAlchemy aggregate repositories.

Verifies:
- Aggregates survive a save/load round trip
- Stale saves raise OptimisticLockError
- Additionals entries become individual rows; deleted pending entries
  leave no row behind
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from assessment_kernel.db.engine import get_session, session_scope
from assessment_kernel.exceptions import AggregateNotFoundError, OptimisticLockError
from assessment_kernel.models.aggregates import AdditionalsEntryRecord, EstimateRecord
from assessment_kernel.logging_config import LogContext
from assessment_kernel.services.repositories import (
    AdditionalsLedgerRepository,
    EstimateRepository,
    FinalRepairCostingRepository,
)
from assessment_modules.additionals.ledger import AdditionalsLedger
from assessment_modules.additionals.models import EffectiveStatus
from assessment_modules.frc.models import LineDecision
from assessment_modules.frc.reconciliation import FinalRepairCosting


@pytest.fixture
def estimates(session, deterministic_clock):
    return EstimateRepository(session, deterministic_clock)


@pytest.fixture
def ledgers(session, deterministic_clock):
    return AdditionalsLedgerRepository(session, deterministic_clock)


@pytest.fixture
def frcs(session, deterministic_clock):
    return FinalRepairCostingRepository(session, deterministic_clock)


class TestEstimateRepository:

    def test_round_trip(self, estimates, finalized_estimate):
        estimates.save(finalized_estimate)

        loaded = estimates.load(finalized_estimate.id)

        assert loaded.total == Decimal("24454.75")
        assert list(loaded.line_items) == list(finalized_estimate.line_items)
        assert loaded.is_finalized
        assert loaded.version == finalized_estimate.version == 1

    def test_denormalized_totals(self, session, estimates, finalized_estimate):
        estimates.save(finalized_estimate)

        record = session.get(EstimateRecord, finalized_estimate.id)

        assert record.subtotal == Decimal("21265.00")
        assert record.vat_amount == Decimal("3189.75")
        assert record.total == Decimal("24454.75")

    def test_version_advances_per_save(self, estimates, estimate):
        estimates.save(estimate)
        estimate.add_line("A", "Wheel alignment", {"labour_hours": "1"})
        estimates.save(estimate)

        assert estimate.version == 2
        assert estimates.load(estimate.id).version == 2

    def test_stale_save_rejected(self, estimates, estimate):
        estimates.save(estimate)
        first = estimates.load(estimate.id)
        second = estimates.load(estimate.id)

        first.add_line("A", "Wheel alignment", {"labour_hours": "1"})
        estimates.save(first)

        second.add_line("O", "Windscreen", {"outwork_charge": "3000"})
        with pytest.raises(OptimisticLockError) as exc_info:
            estimates.save(second)

        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert estimates.load(estimate.id).subtotal == Decimal("500.00")

    def test_unknown_id(self, estimates):
        with pytest.raises(AggregateNotFoundError):
            estimates.load(uuid4())

    def test_created_by_stamped_from_actor(self, session, estimates, estimate):
        with LogContext.bind(actor_id="assessor-001"):
            estimates.save(estimate)

        assert session.get(EstimateRecord, estimate.id).created_by == "assessor-001"

    def test_created_by_empty_without_actor(self, session, estimates, estimate):
        estimates.save(estimate)

        assert session.get(EstimateRecord, estimate.id).created_by is None


class TestAdditionalsLedgerRepository:

    @pytest.fixture
    def ledger(self, estimates, finalized_estimate, deterministic_clock):
        estimates.save(finalized_estimate)
        ledger = AdditionalsLedger.open_for(finalized_estimate, clock=deterministic_clock)
        ledger.collect_audit_records()
        return ledger

    def _rows(self, session, ledger_id):
        return list(
            session.execute(
                select(AdditionalsEntryRecord)
                .where(AdditionalsEntryRecord.ledger_id == ledger_id)
                .order_by(AdditionalsEntryRecord.position)
            ).scalars()
        )

    def test_round_trip(self, ledgers, ledger, finalized_estimate):
        approved = ledger.add_entry("A", "Wheel alignment", {"labour_hours": "10"})
        ledger.approve(approved.id)
        pending = ledger.add_entry("O", "Windscreen", {"outwork_charge": "2000"})
        ledgers.save(ledger)

        loaded = ledgers.load(ledger.id)

        assert [e.id for e in loaded.entries] == [approved.id, pending.id]
        assert loaded.approved_total == Decimal("5000.00")
        assert loaded.pending_total == Decimal("2000.00")
        assert loaded.rate_set_snapshot == finalized_estimate.rate_set

    def test_find_by_estimate(self, ledgers, ledger, finalized_estimate):
        ledgers.save(ledger)

        assert ledgers.find_by_estimate(finalized_estimate.id).id == ledger.id
        assert ledgers.find_by_estimate(uuid4()) is None

    def test_one_row_per_entry(self, session, ledgers, ledger, finalized_estimate):
        bumper_id = next(iter(finalized_estimate.line_items))
        added = ledger.add_entry("A", "Wheel alignment", {"labour_hours": "1"})
        ledger.approve(added.id)
        ledger.remove_original_line(finalized_estimate, bumper_id)
        ledgers.save(ledger)

        rows = self._rows(session, ledger.id)

        assert [r.action for r in rows] == ["added", "removed"]
        assert [r.position for r in rows] == [1, 2]
        assert rows[1].original_line_id == bumper_id

    def test_deleted_pending_entry_leaves_no_row(self, session, ledgers, ledger):
        entry = ledger.add_entry("A", "Wheel alignment", {"labour_hours": "1"})
        ledgers.save(ledger)

        ledger.delete_entry(entry.id)
        ledgers.save(ledger)

        assert self._rows(session, ledger.id) == []

    def test_reversal_appends_row(self, session, ledgers, ledger):
        entry = ledger.add_entry("A", "Wheel alignment", {"labour_hours": "1"})
        ledger.approve(entry.id)
        ledgers.save(ledger)

        ledger.reverse(entry.id, "Work not required")
        ledgers.save(ledger)

        rows = self._rows(session, ledger.id)
        assert [r.status for r in rows] == ["approved", "approved"]
        assert rows[1].reverses_entry_id == entry.id
        assert ledgers.load(ledger.id).effective_status(entry.id) is EffectiveStatus.REVERSED

    def test_entry_only_change_bumps_version(self, ledgers, ledger):
        ledgers.save(ledger)
        stale = ledgers.load(ledger.id)

        ledger.add_entry("A", "Wheel alignment", {"labour_hours": "1"})
        ledgers.save(ledger)

        stale.add_entry("O", "Windscreen", {"outwork_charge": "100"})
        with pytest.raises(OptimisticLockError):
            ledgers.save(stale)


class TestFinalRepairCostingRepository:

    def test_round_trip(self, estimates, frcs, finalized_estimate, deterministic_clock):
        estimates.save(finalized_estimate)
        frc = FinalRepairCosting.compose(finalized_estimate, clock=deterministic_clock)
        first_line = frc.lines[0].id
        frc.decide(first_line, LineDecision.AGREED)
        frcs.save(frc)

        loaded = frcs.load(frc.id)

        assert loaded.get_line(first_line).decision is LineDecision.AGREED
        assert loaded.quoted_totals() == frc.quoted_totals()
        assert frcs.find_by_estimate(finalized_estimate.id).id == frc.id

    def test_unknown_id(self, frcs):
        with pytest.raises(AggregateNotFoundError) as exc_info:
            frcs.load(uuid4())

        assert exc_info.value.code == "AGGREGATE_NOT_FOUND"


class TestSessionScope:

    def test_commits_on_success(self, session, estimate, deterministic_clock):
        with session_scope() as scoped:
            EstimateRepository(scoped, deterministic_clock).save(estimate)

        fresh = get_session()
        try:
            assert fresh.get(EstimateRecord, estimate.id) is not None
        finally:
            fresh.close()

    def test_rolls_back_on_error(self, session, estimate, deterministic_clock, captured_logs):
        with pytest.raises(RuntimeError):
            with session_scope() as scoped:
                EstimateRepository(scoped, deterministic_clock).save(estimate)
                raise RuntimeError("assessor cancelled")

        fresh = get_session()
        try:
            assert fresh.get(EstimateRecord, estimate.id) is None
        finally:
            fresh.close()
        assert any(r["message"] == "unit_of_work_rolled_back" for r in captured_logs())
