"""
AssessmentFinancialsService -- orchestrates the financial aggregates.

Responsibility:
    Wraps every estimate, additionals and FRC operation in one
    load -> mutate -> save -> audit cycle.  Opens the additionals ledger
    lazily the first time an estimate needs one, evaluates write-off risk
    against the active configuration, and signals the assessment workflow
    when a reconciliation is completed or reopened.

Architecture position:
    Services layer -- imperative shell over ``assessment_modules``
    aggregates and ``assessment_kernel.services`` repositories.

Invariants enforced:
    - Exactly one audit delivery attempt per queued audit record, after
      the aggregate has been saved.
    - An audit sink failure never undoes the business mutation.  It is
      logged (``audit_write_failed``) and kept in ``audit_failures``.  Each
      delivery runs in its own SAVEPOINT, so a row the database rejects
      rolls back alone.
    - At most one additionals ledger per estimate.

Failure modes:
    - Any kernel error raised by an aggregate propagates unchanged; nothing
      is saved and nothing is audited for that call.
    - OptimisticLockError from the repositories; the caller reloads and
      retries.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller owns the transaction.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from assessment_config import get_active_config
from assessment_config.bridges import (
    build_rate_set,
    build_threshold_evaluator,
    build_write_off_percentages,
)
from assessment_config.schema import AssessmentConfigurationSet
from assessment_engines.threshold import ThresholdResult
from assessment_engines.valuation import ValuationBasis, WriteOffFigures, compute_write_off_values
from assessment_kernel.domain.clock import Clock, SystemClock
from assessment_kernel.domain.line_items import LineItem
from assessment_kernel.domain.protocols import AuditRecord, AuditSink, WorkflowStatusBridge
from assessment_kernel.domain.values import PartType, ProcessType, RateSet
from assessment_kernel.logging_config import LogContext, get_logger
from assessment_kernel.services.auditor_service import AuditorService
from assessment_kernel.services.repositories import (
    AdditionalsLedgerRepository,
    EstimateRepository,
    FinalRepairCostingRepository,
)
from assessment_modules.additionals.ledger import AdditionalsLedger
from assessment_modules.additionals.models import AdditionalsEntry
from assessment_modules.estimate.aggregate import Estimate
from assessment_modules.frc.models import FRCLine, LineDecision, SignOff
from assessment_modules.frc.reconciliation import FinalRepairCosting, SyncResult

logger = get_logger("services.financials")


@dataclass(frozen=True)
class AuditFailure:
    """An audit record the sink could not accept."""

    record: AuditRecord
    error_type: str
    error_message: str


class AssessmentFinancialsService:
    """
    Contract:
        Each public method loads what it needs, calls exactly one aggregate
        operation, saves, then delivers the queued audit records.
    Guarantees:
        - Returned values are the aggregate's own return values.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditSink | None = None,
        workflow_bridge: WorkflowStatusBridge | None = None,
        clock: Clock | None = None,
        config: AssessmentConfigurationSet | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor if auditor is not None else AuditorService(session, self._clock)
        self._bridge = workflow_bridge
        self._config = config
        self._estimates = EstimateRepository(session, self._clock)
        self._ledgers = AdditionalsLedgerRepository(session, self._clock)
        self._frcs = FinalRepairCostingRepository(session, self._clock)
        self._audit_failures: list[AuditFailure] = []

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def config(self) -> AssessmentConfigurationSet:
        if self._config is None:
            self._config = get_active_config()
        return self._config

    @property
    def audit_failures(self) -> tuple[AuditFailure, ...]:
        return tuple(self._audit_failures)

    def drain_audit_failures(self) -> list[AuditFailure]:
        failures, self._audit_failures = self._audit_failures, []
        return failures

    def _commit(self, repository: Any, aggregate: Any) -> None:
        repository.save(aggregate)
        for record in aggregate.collect_audit_records():
            try:
                # a rejected audit row rolls back alone
                with self._session.begin_nested():
                    self._auditor.record(record)
            except Exception as exc:
                logger.error(
                    "audit_write_failed",
                    exc_info=True,
                    extra={
                        "entity_type": record.entity_type,
                        "entity_id": str(record.entity_id),
                        "action": record.action,
                    },
                )
                self._audit_failures.append(
                    AuditFailure(record=record, error_type=type(exc).__name__, error_message=str(exc))
                )

    # ------------------------------------------------------------------
    # Estimate
    # ------------------------------------------------------------------

    def create_estimate(
        self,
        rate_set: RateSet | None = None,
        assessment_id: UUID | None = None,
    ) -> Estimate:
        """Create an empty estimate; rates default to the active configuration."""
        estimate = Estimate(
            rate_set=rate_set or build_rate_set(self.config),
            assessment_id=assessment_id,
            clock=self._clock,
        )
        self._commit(self._estimates, estimate)
        logger.info("estimate_created", extra={"estimate_id": str(estimate.id)})
        return estimate

    def get_estimate(self, estimate_id: UUID) -> Estimate:
        return self._estimates.load(estimate_id)

    def add_line(
        self,
        estimate_id: UUID,
        process_type: ProcessType | str,
        description: str,
        quantities: Mapping[str, Any] | None = None,
        part_type: PartType | str | None = None,
    ) -> LineItem:
        with LogContext.bind(estimate_id=str(estimate_id)):
            estimate = self._estimates.load(estimate_id)
            line = estimate.add_line(process_type, description, quantities, part_type)
            self._commit(self._estimates, estimate)
            return line

    def update_line(self, estimate_id: UUID, line_id: UUID, **changes: Any) -> LineItem:
        with LogContext.bind(estimate_id=str(estimate_id)):
            estimate = self._estimates.load(estimate_id)
            line = estimate.update_line(line_id, **changes)
            self._commit(self._estimates, estimate)
            return line

    def remove_line(self, estimate_id: UUID, line_id: UUID) -> LineItem:
        with LogContext.bind(estimate_id=str(estimate_id)):
            estimate = self._estimates.load(estimate_id)
            line = estimate.remove_line(line_id)
            self._commit(self._estimates, estimate)
            return line

    def update_rate_set(self, estimate_id: UUID, rate_set: RateSet) -> Estimate:
        with LogContext.bind(estimate_id=str(estimate_id)):
            estimate = self._estimates.load(estimate_id)
            estimate.update_rate_set(rate_set)
            self._commit(self._estimates, estimate)
            return estimate

    def finalize_estimate(self, estimate_id: UUID) -> Estimate:
        with LogContext.bind(estimate_id=str(estimate_id)):
            estimate = self._estimates.load(estimate_id)
            estimate.finalize()
            self._commit(self._estimates, estimate)
            return estimate

    # ------------------------------------------------------------------
    # Additionals
    # ------------------------------------------------------------------

    def ledger_for(self, estimate_id: UUID) -> AdditionalsLedger:
        """The estimate's ledger, opened on first use."""
        ledger = self._ledgers.find_by_estimate(estimate_id)
        if ledger is not None:
            return ledger
        estimate = self._estimates.load(estimate_id)
        ledger = AdditionalsLedger.open_for(estimate, clock=self._clock)
        self._commit(self._ledgers, ledger)
        return ledger

    def _with_ledger(self, estimate_id: UUID, operation) -> Any:
        with LogContext.bind(estimate_id=str(estimate_id)):
            ledger = self.ledger_for(estimate_id)
            with LogContext.bind(ledger_id=str(ledger.id)):
                result = operation(ledger)
                self._commit(self._ledgers, ledger)
                return result

    def add_additional(
        self,
        estimate_id: UUID,
        process_type: ProcessType | str,
        description: str,
        quantities: Mapping[str, Any] | None = None,
        part_type: PartType | str | None = None,
    ) -> AdditionalsEntry:
        return self._with_ledger(
            estimate_id,
            lambda ledger: ledger.add_entry(process_type, description, quantities, part_type),
        )

    def update_pending_additional(
        self, estimate_id: UUID, entry_id: UUID, **changes: Any
    ) -> AdditionalsEntry:
        return self._with_ledger(
            estimate_id, lambda ledger: ledger.update_pending_line(entry_id, **changes)
        )

    def delete_additional(self, estimate_id: UUID, entry_id: UUID) -> AdditionalsEntry:
        return self._with_ledger(estimate_id, lambda ledger: ledger.delete_entry(entry_id))

    def approve_additional(self, estimate_id: UUID, entry_id: UUID) -> AdditionalsEntry:
        return self._with_ledger(estimate_id, lambda ledger: ledger.approve(entry_id))

    def decline_additional(
        self, estimate_id: UUID, entry_id: UUID, reason: str | None
    ) -> AdditionalsEntry:
        return self._with_ledger(estimate_id, lambda ledger: ledger.decline(entry_id, reason))

    def reverse_additional(
        self, estimate_id: UUID, entry_id: UUID, reason: str | None
    ) -> AdditionalsEntry:
        return self._with_ledger(estimate_id, lambda ledger: ledger.reverse(entry_id, reason))

    def reinstate_additional(
        self, estimate_id: UUID, entry_id: UUID, reason: str | None
    ) -> AdditionalsEntry:
        return self._with_ledger(estimate_id, lambda ledger: ledger.reinstate(entry_id, reason))

    def remove_original_line(self, estimate_id: UUID, line_id: UUID) -> AdditionalsEntry:
        estimate = self._estimates.load(estimate_id)
        return self._with_ledger(
            estimate_id, lambda ledger: ledger.remove_original_line(estimate, line_id)
        )

    def combined_total(self, estimate_id: UUID) -> Decimal:
        estimate = self._estimates.load(estimate_id)
        ledger = self._ledgers.find_by_estimate(estimate_id)
        if ledger is None:
            return estimate.total
        return ledger.combined_total(estimate)

    # ------------------------------------------------------------------
    # Valuation
    # ------------------------------------------------------------------

    def evaluate_threshold(self, estimate_id: UUID, reference_value: Decimal) -> ThresholdResult:
        """Risk tier of the combined total against a vehicle valuation."""
        evaluator = build_threshold_evaluator(self.config)
        return evaluator.evaluate(self.combined_total(estimate_id), reference_value)

    def write_off_figures(
        self,
        retail_value: Decimal | None = None,
        market_value: Decimal | None = None,
        trade_value: Decimal | None = None,
    ) -> dict[ValuationBasis, WriteOffFigures]:
        return compute_write_off_values(
            build_write_off_percentages(self.config),
            retail_value=retail_value,
            market_value=market_value,
            trade_value=trade_value,
        )

    # ------------------------------------------------------------------
    # Final repair costing
    # ------------------------------------------------------------------

    def compose_frc(self, estimate_id: UUID) -> FinalRepairCosting:
        with LogContext.bind(estimate_id=str(estimate_id)):
            estimate = self._estimates.load(estimate_id)
            ledger = self._ledgers.find_by_estimate(estimate_id)
            frc = FinalRepairCosting.compose(estimate, ledger, clock=self._clock)
            self._commit(self._frcs, frc)
            return frc

    def get_frc(self, frc_id: UUID) -> FinalRepairCosting:
        return self._frcs.load(frc_id)

    def decide_frc_line(
        self,
        frc_id: UUID,
        line_id: UUID,
        decision: LineDecision | str,
        actual_quantities: Mapping[str, Any] | None = None,
        reason: str | None = None,
    ) -> FRCLine:
        with LogContext.bind(frc_id=str(frc_id)):
            frc = self._frcs.load(frc_id)
            line = frc.decide(line_id, decision, actual_quantities, reason)
            self._commit(self._frcs, frc)
            return line

    def complete_frc(
        self,
        frc_id: UUID,
        name: str,
        role: str,
        notes: str | None = None,
        email: str | None = None,
    ) -> SignOff:
        with LogContext.bind(frc_id=str(frc_id)):
            frc = self._frcs.load(frc_id)
            sign_off = frc.complete(name, role, notes=notes, email=email)
            self._commit(self._frcs, frc)
            if self._bridge is not None:
                self._bridge.reconciliation_completed(frc.estimate_id)
            return sign_off

    def reopen_frc(self, frc_id: UUID, reason: str | None) -> FinalRepairCosting:
        with LogContext.bind(frc_id=str(frc_id)):
            frc = self._frcs.load(frc_id)
            frc.reopen(reason)
            self._commit(self._frcs, frc)
            if self._bridge is not None:
                self._bridge.reconciliation_reopened(frc.estimate_id)
            return frc

    def frc_needs_sync(self, frc_id: UUID) -> bool:
        frc = self._frcs.load(frc_id)
        estimate = self._estimates.load(frc.estimate_id)
        return frc.needs_sync(estimate, self._ledgers.find_by_estimate(frc.estimate_id))

    def sync_frc(self, frc_id: UUID) -> SyncResult:
        with LogContext.bind(frc_id=str(frc_id)):
            frc = self._frcs.load(frc_id)
            estimate = self._estimates.load(frc.estimate_id)
            result = frc.sync(estimate, self._ledgers.find_by_estimate(frc.estimate_id))
            self._commit(self._frcs, frc)
            return result
