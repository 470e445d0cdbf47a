"""
Final Repair Costing (``assessment_modules.frc.reconciliation``).

Responsibility
--------------
Reconciles what was quoted (the finalized estimate plus live additionals)
against what the repair actually cost.  Each quoted line is snapshotted
with the rates that priced it; the assessor agrees or adjusts every line,
then signs off.

Architecture position
---------------------
**Modules layer** -- pure aggregate.  Consumes ``Estimate`` and
``AdditionalsLedger`` read-only; derives adjusted actuals through
``assessment_engines.costing.derive_actual`` and variances through
``assessment_engines.variance``.

Invariants enforced
-------------------
* Composed quoted subtotal == ``estimate.subtotal + ledger.approved_total``.
  Removal and reversal entries are not lines of their own; their effect is
  that the lines they cancel are left out.
* Adjusted actuals are priced with the line's ``rate_snapshot``.  Live rate
  changes after compose never alter a reconciled line.
* A line is decided at most once per revision.  ``reopen`` increments the
  revision, keeps existing decisions, and clears the sign-off.
* ``sync`` never discards a decided line.

Failure modes
-------------
* ``LineNotFoundError`` -- unknown FRC line id.
* ``InvalidDecisionError`` -- deciding on a completed FRC, deciding
  ``pending``, or adjusting without quantities.
* ``InvalidTransitionError`` -- re-deciding within a revision, lifecycle
  actions from the wrong status, sync that would drop a decided line.
* ``MissingReasonError`` -- adjust or reopen without a reason.
* ``IncompleteReconciliationError`` -- complete with pending lines.
* ``InvalidSignOffError`` -- blank signer name or role.

Audit relevance
---------------
Compose, every decision, complete, reopen and sync each queue one audit
record on the FRC.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from assessment_engines.costing import derive_actual
from assessment_engines.totals import calculate_vat
from assessment_engines.variance import LineVariance, aggregate_variance, line_variance
from assessment_kernel.domain.clock import Clock, SystemClock
from assessment_kernel.domain.line_items import LineItem
from assessment_kernel.domain.protocols import AuditTrail
from assessment_kernel.domain.values import RateSet, to_decimal
from assessment_kernel.exceptions import (
    IncompleteReconciliationError,
    InvalidDecisionError,
    InvalidSignOffError,
    InvalidTransitionError,
    LineNotFoundError,
    MissingReasonError,
)
from assessment_kernel.logging_config import get_logger
from assessment_modules.frc.models import (
    ComponentTotals,
    FRCLine,
    FRCSource,
    FRCStatus,
    FRCTotals,
    LineDecision,
    SignOff,
)
from assessment_modules.frc.workflows import FRC_WORKFLOW

if TYPE_CHECKING:
    from assessment_modules.additionals.ledger import AdditionalsLedger
    from assessment_modules.estimate.aggregate import Estimate

logger = get_logger("modules.frc")

ENTITY_TYPE = "final_repair_costing"
LINE_ENTITY = "frc_line"


@dataclass(frozen=True)
class FRCVarianceSummary:
    lines: Mapping[UUID, LineVariance]
    aggregate: LineVariance


@dataclass(frozen=True)
class SyncResult:
    added_line_ids: tuple[UUID, ...]
    dropped_line_ids: tuple[UUID, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added_line_ids or self.dropped_line_ids)


_SourceLine = tuple[FRCSource, UUID, LineItem, RateSet]


def _effective_sources(
    estimate: Estimate,
    ledger: AdditionalsLedger | None,
) -> list[_SourceLine]:
    """Every quoted line currently in force, in display order."""
    removed = ledger.removed_line_ids() if ledger is not None else frozenset()
    sources: list[_SourceLine] = [
        (FRCSource.ESTIMATE, line_id, line, estimate.rate_set)
        for line_id, line in estimate.line_items.items()
        if line_id not in removed
    ]
    if ledger is not None:
        sources.extend(
            (FRCSource.ADDITIONAL, entry.id, entry.line_item, ledger.rate_set_snapshot)
            for entry in ledger.effective_lines()
        )
    return sources


class FinalRepairCosting(AuditTrail):
    """
    Reconciliation aggregate.

    Contract:
        Created with ``compose``.  Decisions, completion and reopen go
        through ``FRC_WORKFLOW``.
    """

    def __init__(
        self,
        estimate_id: UUID,
        vat_percentage: Any,
        frc_id: UUID | None = None,
        ledger_id: UUID | None = None,
        clock: Clock | None = None,
    ):
        self.id = frc_id or uuid4()
        self.estimate_id = estimate_id
        self.ledger_id = ledger_id
        self.vat_percentage = to_decimal(vat_percentage, "vat_percentage")
        self._clock = clock or SystemClock()
        self._lines: dict[UUID, FRCLine] = {}
        self.status = FRCStatus.IN_PROGRESS
        self.sign_off: SignOff | None = None
        self.revision = 1
        self.composed_at: datetime | None = None
        self.last_synced_at: datetime | None = None
        self.version: int | None = None
        self._init_audit_trail()

    @classmethod
    def compose(
        cls,
        estimate: Estimate,
        ledger: AdditionalsLedger | None = None,
        clock: Clock | None = None,
        frc_id: UUID | None = None,
    ) -> FinalRepairCosting:
        """Snapshot every quoted line in force into a new reconciliation."""
        if not estimate.is_finalized:
            raise InvalidTransitionError(
                "estimate", estimate.id, "draft", "compose_frc",
                detail="final repair costing requires a finalized estimate",
            )
        if ledger is not None and ledger.estimate_id != estimate.id:
            raise ValueError(f"Ledger {ledger.id} does not belong to estimate {estimate.id}")

        frc = cls(
            estimate_id=estimate.id,
            vat_percentage=estimate.rate_set.vat_percentage,
            frc_id=frc_id,
            ledger_id=ledger.id if ledger is not None else None,
            clock=clock,
        )
        for source_type, source_id, line, rates in _effective_sources(estimate, ledger):
            frc_line = FRCLine.snapshot(source_type, source_id, line, rates)
            frc._lines[frc_line.id] = frc_line
        frc.composed_at = frc._clock.now()

        quoted = frc.quoted_totals()
        frc._audit(
            ENTITY_TYPE, frc.id, "frc_composed",
            field_name="quoted_subtotal", new_value=quoted.subtotal,
            estimate_id=estimate.id, ledger_id=frc.ledger_id, line_count=len(frc._lines),
        )
        logger.info(
            "frc_composed",
            extra={
                "frc_id": str(frc.id),
                "estimate_id": str(estimate.id),
                "line_count": len(frc._lines),
                "quoted_subtotal": str(quoted.subtotal),
            },
        )
        return frc

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def lines(self) -> tuple[FRCLine, ...]:
        return tuple(self._lines.values())

    @property
    def is_completed(self) -> bool:
        return self.status is FRCStatus.COMPLETED

    def get_line(self, line_id: UUID) -> FRCLine:
        try:
            return self._lines[line_id]
        except KeyError:
            raise LineNotFoundError(line_id, ENTITY_TYPE, self.id) from None

    def pending_line_ids(self) -> tuple[UUID, ...]:
        return tuple(line.id for line in self._lines.values() if not line.is_decided)

    def quoted_totals(self) -> FRCTotals:
        return self._totals(lambda line: line.quoted)

    def actual_totals(self) -> FRCTotals:
        """Actual totals; undecided lines are carried at their quoted values."""
        return self._totals(lambda line: line.actual_or_quoted)

    def variance_summary(self) -> FRCVarianceSummary:
        pairs = {line.id: (line.quoted, line.actual_or_quoted) for line in self._lines.values()}
        return FRCVarianceSummary(
            lines={line_id: line_variance(q, a) for line_id, (q, a) in pairs.items()},
            aggregate=aggregate_variance(pairs.values()),
        )

    def needs_sync(self, estimate: Estimate, ledger: AdditionalsLedger | None) -> bool:
        expected = {(s, i) for s, i, _, _ in _effective_sources(estimate, ledger)}
        current = {line.source_key for line in self._lines.values()}
        return expected != current

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def decide(
        self,
        line_id: UUID,
        decision: LineDecision | str,
        actual_quantities: Mapping[str, Any] | None = None,
        reason: str | None = None,
    ) -> FRCLine:
        """Agree a line at its quoted cost or adjust it to invoiced quantities."""
        try:
            decision = LineDecision(decision)
        except ValueError:
            allowed = ", ".join(d.value for d in LineDecision if d is not LineDecision.PENDING)
            raise InvalidDecisionError(self.id, line_id, str(decision), f"expected one of: {allowed}") from None
        if self.is_completed:
            raise InvalidDecisionError(self.id, line_id, decision.value, "reconciliation is completed")
        if decision is LineDecision.PENDING:
            raise InvalidDecisionError(self.id, line_id, decision.value, "a decision cannot be pending")
        line = self.get_line(line_id)
        if line.decided_in_revision == self.revision:
            raise InvalidTransitionError(
                LINE_ENTITY, line_id, line.decision.value, "decide",
                detail=f"already decided in revision {self.revision}; reopen to change it",
            )

        match decision:
            case LineDecision.AGREED:
                actual = line.quoted
                quantities = line.quantities_snapshot
                reason = reason.strip() if reason and reason.strip() else None
            case LineDecision.ADJUSTED:
                if reason is None or not reason.strip():
                    raise MissingReasonError(LINE_ENTITY, line_id, "adjust")
                if not actual_quantities:
                    raise InvalidDecisionError(
                        self.id, line_id, decision.value, "adjusted requires actual quantities"
                    )
                reason = reason.strip()
                quantities = line.quantities_snapshot.merged(actual_quantities)
                actual = derive_actual(
                    line.process_type, quantities, line.part_type, line.rate_snapshot
                )

        decided = replace(
            line,
            decision=decision,
            actual=actual,
            actual_quantities=quantities,
            adjust_reason=reason,
            decided_at=self._clock.now(),
            decided_in_revision=self.revision,
        )
        self._lines[line_id] = decided

        self._audit(
            ENTITY_TYPE, self.id, "line_decided",
            field_name="actual_total", old_value=line.actual.total if line.actual else None,
            new_value=actual.total,
            line_id=line_id, decision=decision, quoted_total=line.quoted.total,
            reason=reason, revision=self.revision,
        )
        logger.info(
            "frc_line_decided",
            extra={
                "frc_id": str(self.id),
                "line_id": str(line_id),
                "decision": decision.value,
                "quoted_total": str(line.quoted.total),
                "actual_total": str(actual.total),
            },
        )
        return decided

    def complete(
        self,
        name: str,
        role: str,
        notes: str | None = None,
        email: str | None = None,
    ) -> SignOff:
        FRC_WORKFLOW.require_transition(self.status.value, "complete", ENTITY_TYPE, self.id)
        pending = self.pending_line_ids()
        if pending:
            raise IncompleteReconciliationError(self.id, pending)
        for field_name, value in (("name", name), ("role", role)):
            if value is None or not value.strip():
                raise InvalidSignOffError(self.id, field_name)

        self.sign_off = SignOff(
            name=name.strip(),
            role=role.strip(),
            signed_at=self._clock.now(),
            notes=notes,
            email=email,
        )
        self.status = FRCStatus.COMPLETED

        actual = self.actual_totals()
        self._audit(
            ENTITY_TYPE, self.id, "frc_completed",
            field_name="status", old_value=FRCStatus.IN_PROGRESS.value,
            new_value=self.status.value,
            signed_by=self.sign_off.name, role=self.sign_off.role,
            actual_total=actual.total, revision=self.revision,
        )
        logger.info(
            "frc_completed",
            extra={
                "frc_id": str(self.id),
                "revision": self.revision,
                "actual_total": str(actual.total),
            },
        )
        return self.sign_off

    def reopen(self, reason: str | None) -> None:
        """Return a completed FRC to in-progress.  Decisions are kept."""
        FRC_WORKFLOW.require_transition(self.status.value, "reopen", ENTITY_TYPE, self.id)
        if reason is None or not reason.strip():
            raise MissingReasonError(ENTITY_TYPE, self.id, "reopen")

        previous = self.sign_off
        self.status = FRCStatus.IN_PROGRESS
        self.sign_off = None
        self.revision += 1

        self._audit(
            ENTITY_TYPE, self.id, "frc_reopened",
            field_name="status", old_value=FRCStatus.COMPLETED.value,
            new_value=self.status.value,
            reason=reason.strip(), revision=self.revision,
            previous_signed_by=previous.name if previous else None,
        )
        logger.info(
            "frc_reopened",
            extra={"frc_id": str(self.id), "revision": self.revision},
        )

    def sync(self, estimate: Estimate, ledger: AdditionalsLedger | None) -> SyncResult:
        """Bring the line set in step with the estimate and ledger.

        New effective sources are appended; undecided lines whose source is
        no longer effective are dropped.  Raises InvalidTransitionError
        before changing anything if a decided line would be dropped.
        """
        FRC_WORKFLOW.require_transition(self.status.value, "sync", ENTITY_TYPE, self.id)
        if estimate.id != self.estimate_id:
            raise ValueError(f"Estimate {estimate.id} does not belong to FRC {self.id}")

        sources = _effective_sources(estimate, ledger)
        expected = {(s, i) for s, i, _, _ in sources}
        stale = [line for line in self._lines.values() if line.source_key not in expected]
        for line in stale:
            if line.is_decided:
                raise InvalidTransitionError(
                    LINE_ENTITY, line.id, line.decision.value, "drop",
                    detail="source line is no longer in force but the line is decided",
                )

        for line in stale:
            del self._lines[line.id]
        current = {line.source_key for line in self._lines.values()}
        added: list[UUID] = []
        for source_type, source_id, item, rates in sources:
            if (source_type, source_id) not in current:
                frc_line = FRCLine.snapshot(source_type, source_id, item, rates)
                self._lines[frc_line.id] = frc_line
                added.append(frc_line.id)
        if ledger is not None:
            self.ledger_id = ledger.id
        self.last_synced_at = self._clock.now()

        result = SyncResult(tuple(added), tuple(line.id for line in stale))
        self._audit(
            ENTITY_TYPE, self.id, "frc_synced",
            field_name="quoted_subtotal", new_value=self.quoted_totals().subtotal,
            added_line_ids=list(result.added_line_ids),
            dropped_line_ids=list(result.dropped_line_ids),
        )
        logger.info(
            "frc_synced",
            extra={
                "frc_id": str(self.id),
                "added": len(result.added_line_ids),
                "dropped": len(result.dropped_line_ids),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _totals(self, pick) -> FRCTotals:
        estimate_side = ComponentTotals.from_breakdowns(
            pick(line) for line in self._lines.values() if line.source_type is FRCSource.ESTIMATE
        )
        additionals_side = ComponentTotals.from_breakdowns(
            pick(line) for line in self._lines.values() if line.source_type is FRCSource.ADDITIONAL
        )
        subtotal = estimate_side.subtotal + additionals_side.subtotal
        return FRCTotals(
            estimate=estimate_side,
            additionals=additionals_side,
            vat_percentage=self.vat_percentage,
            vat_amount=calculate_vat(subtotal, self.vat_percentage),
        )

    # ------------------------------------------------------------------
    # State (persistence collaborator support)
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "estimate_id": str(self.estimate_id),
            "ledger_id": str(self.ledger_id) if self.ledger_id else None,
            "vat_percentage": str(self.vat_percentage),
            "status": self.status.value,
            "revision": self.revision,
            "sign_off": self.sign_off.to_dict() if self.sign_off else None,
            "composed_at": self.composed_at.isoformat() if self.composed_at else None,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "lines": [line.to_dict() for line in self._lines.values()],
        }

    @classmethod
    def from_state(cls, state: Mapping[str, Any], clock: Clock | None = None) -> FinalRepairCosting:
        frc = cls(
            estimate_id=UUID(state["estimate_id"]),
            vat_percentage=state["vat_percentage"],
            frc_id=UUID(state["id"]),
            ledger_id=UUID(state["ledger_id"]) if state.get("ledger_id") else None,
            clock=clock,
        )
        frc.status = FRCStatus(state["status"])
        frc.revision = state["revision"]
        frc.sign_off = SignOff.from_dict(state["sign_off"]) if state.get("sign_off") else None
        if state.get("composed_at"):
            frc.composed_at = datetime.fromisoformat(state["composed_at"])
        if state.get("last_synced_at"):
            frc.last_synced_at = datetime.fromisoformat(state["last_synced_at"])
        for data in state.get("lines", []):
            line = FRCLine.from_dict(data)
            frc._lines[line.id] = line
        return frc
