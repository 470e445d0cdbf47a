"""
Additionals Ledger (``assessment_modules.additionals.ledger``).

Responsibility
--------------
Records every post-finalization change to an estimate as an append-only
entry: added lines awaiting approval, removals of original estimate
lines, and reversals.  Derives the approved additionals total, the
display status of each entry and the set of lines whose effect is live.

Architecture position
---------------------
**Modules layer** -- pure aggregate.  Prices through
``assessment_engines.costing`` with the RateSet snapshotted when the
ledger was opened; queues audit records for the service layer.

Invariants enforced
-------------------
* Entries are never deleted or rewritten once decided.  A pending entry
  may be edited, deleted, approved or declined (``ENTRY_WORKFLOW``).
* ``removed`` entries carry the original line negated, ``reversal``
  entries carry the sign-inverse of their target (or its restoring values
  on reinstatement).  Both are approved on creation.
* At most one reversal per target entry, and a reversal can never be
  reversed.
* ``approved_total`` is the plain sum of approved entry totals; reversed
  or reinstated entries are never excluded from it by status.

Failure modes
-------------
* ``InvalidTransitionError`` -- opening on an unfinalized estimate, or a
  decision on a non-pending entry.
* ``MissingReasonError`` -- decline/reverse/reinstate without a reason.
* ``AlreadyRemovedError`` / ``AlreadyReversedError`` -- duplicates.
* ``EntryNotFoundError`` / ``LineNotFoundError`` -- unknown ids.

Audit relevance
---------------
One audit record per mutating operation, keyed on the affected entry.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from assessment_engines.costing import price_line
from assessment_engines.totals import calculate_total, calculate_vat
from assessment_kernel.domain.clock import Clock, SystemClock
from assessment_kernel.domain.line_items import LineItem, Quantities
from assessment_kernel.domain.protocols import AuditTrail
from assessment_kernel.domain.values import ZERO, PartType, ProcessType, RateSet
from assessment_kernel.exceptions import (
    AlreadyRemovedError,
    AlreadyReversedError,
    EntryNotFoundError,
    InvalidTransitionError,
    MissingReasonError,
)
from assessment_kernel.logging_config import get_logger
from assessment_modules.additionals.models import (
    AdditionalsEntry,
    EffectiveStatus,
    EntryAction,
    EntryStatus,
)
from assessment_modules.additionals.workflows import ENTRY_WORKFLOW

if TYPE_CHECKING:
    from assessment_modules.estimate.aggregate import Estimate

logger = get_logger("modules.additionals.ledger")

LEDGER_ENTITY = "additionals_ledger"
ENTRY_ENTITY = "additionals_entry"

_UNSET: Any = object()


def _require_reason(reason: str | None, entity_id: UUID, action: str) -> str:
    if reason is None or not reason.strip():
        raise MissingReasonError(ENTRY_ENTITY, entity_id, action)
    return reason.strip()


class AdditionalsLedger(AuditTrail):
    """
    Append-only ledger of changes to a finalized estimate.

    Contract:
        Created once per estimate via ``open_for``.  Entry order is
        creation order.
    Guarantees:
        - Every priced line uses ``rate_set_snapshot``, never live rates.
        - Queries never mutate.
    """

    def __init__(
        self,
        estimate_id: UUID,
        rate_set_snapshot: RateSet,
        ledger_id: UUID | None = None,
        clock: Clock | None = None,
    ):
        self.id = ledger_id or uuid4()
        self.estimate_id = estimate_id
        self.rate_set_snapshot = rate_set_snapshot
        self._entries: dict[UUID, AdditionalsEntry] = {}
        self._clock = clock or SystemClock()
        self.version: int | None = None
        self._init_audit_trail()

    @classmethod
    def open_for(
        cls,
        estimate: Estimate,
        clock: Clock | None = None,
        ledger_id: UUID | None = None,
    ) -> AdditionalsLedger:
        """Open the ledger for a finalized estimate, snapshotting its rates."""
        if not estimate.is_finalized:
            raise InvalidTransitionError(
                entity_type="estimate",
                entity_id=estimate.id,
                current_state="draft",
                action="open_additionals",
                detail="additionals require a finalized estimate",
            )
        ledger = cls(
            estimate_id=estimate.id,
            rate_set_snapshot=estimate.rate_set,
            ledger_id=ledger_id,
            clock=clock,
        )
        ledger._audit(
            LEDGER_ENTITY, ledger.id, "ledger_opened",
            estimate_id=estimate.id, estimate_total=estimate.total,
        )
        logger.info(
            "additionals_ledger_opened",
            extra={"ledger_id": str(ledger.id), "estimate_id": str(estimate.id)},
        )
        return ledger

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def entries(self) -> tuple[AdditionalsEntry, ...]:
        return tuple(self._entries.values())

    def get_entry(self, entry_id: UUID) -> AdditionalsEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise EntryNotFoundError(entry_id, self.id) from None

    def reversal_for(self, entry_id: UUID) -> AdditionalsEntry | None:
        """The reversal entry targeting ``entry_id``, if any."""
        for entry in self._entries.values():
            if entry.action is EntryAction.REVERSAL and entry.reverses_entry_id == entry_id:
                return entry
        return None

    def removal_for(self, original_line_id: UUID) -> AdditionalsEntry | None:
        for entry in self._entries.values():
            if entry.action is EntryAction.REMOVED and entry.original_line_id == original_line_id:
                return entry
        return None

    def effective_status(self, entry_id: UUID) -> EffectiveStatus:
        entry = self.get_entry(entry_id)
        if entry.action is EntryAction.REVERSAL:
            return EffectiveStatus.REVERSAL

        reversal = self.reversal_for(entry_id)
        if entry.action is EntryAction.REMOVED:
            return EffectiveStatus.REINSTATED if reversal else EffectiveStatus.REMOVED
        if reversal is not None:
            if entry.status is EntryStatus.DECLINED:
                return EffectiveStatus.REINSTATED
            return EffectiveStatus.REVERSED
        return EffectiveStatus(entry.status.value)

    def effective_lines(self) -> tuple[AdditionalsEntry, ...]:
        """Entries whose line is live: un-reversed approved additions plus
        reinstatements of declined additions."""
        live: list[AdditionalsEntry] = []
        for entry in self._entries.values():
            if entry.action is EntryAction.ADDED:
                if entry.status is EntryStatus.APPROVED and self.reversal_for(entry.id) is None:
                    live.append(entry)
            elif entry.action is EntryAction.REVERSAL:
                target = self._entries.get(entry.reverses_entry_id)
                if (
                    target is not None
                    and target.action is EntryAction.ADDED
                    and target.status is EntryStatus.DECLINED
                ):
                    live.append(entry)
        return tuple(live)

    def removed_line_ids(self) -> frozenset[UUID]:
        """Original estimate lines shadowed by a removal still in force."""
        return frozenset(
            entry.original_line_id
            for entry in self._entries.values()
            if entry.action is EntryAction.REMOVED and self.reversal_for(entry.id) is None
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    @property
    def approved_total(self) -> Decimal:
        """Sum of every approved entry's line total, excluding VAT."""
        return sum(
            (e.total for e in self._entries.values() if e.status is EntryStatus.APPROVED),
            ZERO,
        )

    @property
    def approved_vat_amount(self) -> Decimal:
        return calculate_vat(self.approved_total, self.rate_set_snapshot.vat_percentage)

    @property
    def approved_total_incl_vat(self) -> Decimal:
        return calculate_total(self.approved_total, self.approved_vat_amount)

    @property
    def pending_total(self) -> Decimal:
        return sum((e.total for e in self._entries.values() if e.is_pending), ZERO)

    def combined_total(self, estimate: Estimate) -> Decimal:
        return estimate.total + self.approved_total

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_entry(
        self,
        process_type: ProcessType | str,
        description: str,
        quantities: Quantities | Mapping[str, Any] | None = None,
        part_type: PartType | str | None = None,
    ) -> AdditionalsEntry:
        line = price_line(
            LineItem.create(process_type, description, quantities, part_type),
            self.rate_set_snapshot,
        )
        entry = AdditionalsEntry(
            id=uuid4(),
            action=EntryAction.ADDED,
            status=EntryStatus.PENDING,
            line_item=line,
            created_at=self._clock.now(),
        )
        self._entries[entry.id] = entry

        self._audit(
            ENTRY_ENTITY, entry.id, "entry_added",
            field_name="total", new_value=entry.total,
            ledger_id=self.id, process_type=line.process_type, description=description,
        )
        self._log("additionals_entry_added", entry)
        return entry

    def update_pending_line(
        self,
        entry_id: UUID,
        *,
        description: str | None = None,
        process_type: ProcessType | str | None = None,
        part_type: PartType | str | None = _UNSET,
        quantities: Mapping[str, Any] | None = None,
    ) -> AdditionalsEntry:
        """Edit a pending entry's line and re-price it with the snapshot rates."""
        current = self.get_entry(entry_id)
        ENTRY_WORKFLOW.require_transition(current.status.value, "edit", ENTRY_ENTITY, entry_id)

        line = current.line_item
        changes: dict[str, Any] = {}
        if description is not None:
            changes["description"] = description
        if process_type is not None:
            changes["process_type"] = ProcessType(process_type)
        if part_type is not _UNSET:
            changes["part_type"] = None if part_type is None else PartType(part_type)
        if quantities:
            changes["quantities"] = line.quantities.merged(quantities)

        repriced = price_line(replace(line, **changes), self.rate_set_snapshot)
        updated = current.with_line_item(repriced)
        self._entries[entry_id] = updated

        self._audit(
            ENTRY_ENTITY, entry_id, "entry_updated",
            field_name="total", old_value=current.total, new_value=updated.total,
            ledger_id=self.id, changed_fields=sorted(changes),
        )
        self._log("additionals_entry_updated", updated)
        return updated

    def delete_entry(self, entry_id: UUID) -> AdditionalsEntry:
        """Drop a pending entry.  Decided entries are never deleted."""
        entry = self.get_entry(entry_id)
        ENTRY_WORKFLOW.require_transition(entry.status.value, "delete", ENTRY_ENTITY, entry_id)
        del self._entries[entry_id]

        self._audit(
            ENTRY_ENTITY, entry_id, "entry_deleted",
            field_name="total", old_value=entry.total, ledger_id=self.id,
        )
        self._log("additionals_entry_deleted", entry)
        return entry

    def approve(self, entry_id: UUID) -> AdditionalsEntry:
        entry = self.get_entry(entry_id)
        ENTRY_WORKFLOW.require_transition(entry.status.value, "approve", ENTRY_ENTITY, entry_id)
        approved = entry.decided(EntryStatus.APPROVED, self._clock.now())
        self._entries[entry_id] = approved

        self._audit(
            ENTRY_ENTITY, entry_id, "entry_approved",
            field_name="status", old_value=entry.status.value, new_value=approved.status.value,
            ledger_id=self.id, total=approved.total, approved_total=self.approved_total,
        )
        self._log("additionals_entry_approved", approved)
        return approved

    def decline(self, entry_id: UUID, reason: str | None) -> AdditionalsEntry:
        entry = self.get_entry(entry_id)
        ENTRY_WORKFLOW.require_transition(entry.status.value, "decline", ENTRY_ENTITY, entry_id)
        reason = _require_reason(reason, entry_id, "decline")
        declined = entry.decided(EntryStatus.DECLINED, self._clock.now(), reason)
        self._entries[entry_id] = declined

        self._audit(
            ENTRY_ENTITY, entry_id, "entry_declined",
            field_name="status", old_value=entry.status.value, new_value=declined.status.value,
            ledger_id=self.id, reason=reason,
        )
        self._log("additionals_entry_declined", declined)
        return declined

    def remove_original_line(self, estimate: Estimate, line_id: UUID) -> AdditionalsEntry:
        """Record removal of an original estimate line as a negative entry."""
        if estimate.id != self.estimate_id:
            raise ValueError(
                f"Estimate {estimate.id} does not belong to ledger {self.id}"
            )
        original = estimate.get_line(line_id)
        existing = self.removal_for(line_id)
        if existing is not None:
            raise AlreadyRemovedError(line_id, existing.id)

        now = self._clock.now()
        entry = AdditionalsEntry(
            id=uuid4(),
            action=EntryAction.REMOVED,
            status=EntryStatus.APPROVED,
            line_item=original.negated(),
            created_at=now,
            original_line_id=line_id,
            decided_at=now,
        )
        self._entries[entry.id] = entry

        self._audit(
            ENTRY_ENTITY, entry.id, "original_line_removed",
            field_name="total", new_value=entry.total,
            ledger_id=self.id, original_line_id=line_id, description=original.description,
        )
        self._log("additionals_original_line_removed", entry)
        return entry

    def reverse(self, entry_id: UUID, reason: str | None) -> AdditionalsEntry:
        """Cancel an approved entry's effect with an approved opposite entry."""
        target = self.get_entry(entry_id)
        if target.action is EntryAction.REVERSAL:
            raise InvalidTransitionError(
                ENTRY_ENTITY, entry_id, target.action.value, "reverse",
                detail="reversal entries cannot be reversed",
            )
        if target.status is not EntryStatus.APPROVED:
            raise InvalidTransitionError(
                ENTRY_ENTITY, entry_id, target.status.value, "reverse",
                detail="only approved entries can be reversed",
            )
        self._ensure_not_reversed(target)
        reason = _require_reason(reason, entry_id, "reverse")
        return self._append_reversal(target, target.line_item.negated(), reason, "entry_reversed")

    def reinstate(self, entry_id: UUID, reason: str | None) -> AdditionalsEntry:
        """Restore a declined addition or a removed original line."""
        target = self.get_entry(entry_id)
        if target.action is EntryAction.REMOVED:
            restored = target.line_item.negated()
        elif target.action is EntryAction.ADDED and target.status is EntryStatus.DECLINED:
            restored = target.line_item.copied()
        else:
            raise InvalidTransitionError(
                ENTRY_ENTITY, entry_id, target.status.value, "reinstate",
                detail="only declined additions and removals can be reinstated",
            )
        self._ensure_not_reversed(target)
        reason = _require_reason(reason, entry_id, "reinstate")
        return self._append_reversal(target, restored, reason, "entry_reinstated")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_not_reversed(self, target: AdditionalsEntry) -> None:
        existing = self.reversal_for(target.id)
        if existing is not None:
            raise AlreadyReversedError(target.id, existing.id)

    def _append_reversal(
        self,
        target: AdditionalsEntry,
        line: LineItem,
        reason: str,
        action: str,
    ) -> AdditionalsEntry:
        now = self._clock.now()
        entry = AdditionalsEntry(
            id=uuid4(),
            action=EntryAction.REVERSAL,
            status=EntryStatus.APPROVED,
            line_item=line,
            created_at=now,
            original_line_id=target.original_line_id,
            reverses_entry_id=target.id,
            reason=reason,
            decided_at=now,
        )
        self._entries[entry.id] = entry

        self._audit(
            ENTRY_ENTITY, target.id, action,
            field_name="total", old_value=target.total, new_value=entry.total,
            ledger_id=self.id, reversal_entry_id=entry.id, reason=reason,
        )
        self._log(f"additionals_{action}", entry)
        return entry

    def _log(self, event: str, entry: AdditionalsEntry) -> None:
        logger.info(
            event,
            extra={
                "ledger_id": str(self.id),
                "entry_id": str(entry.id),
                "entry_action": entry.action.value,
                "status": entry.status.value,
                "line_total": str(entry.total),
                "approved_total": str(self.approved_total),
            },
        )

    # ------------------------------------------------------------------
    # State (persistence collaborator support)
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "estimate_id": str(self.estimate_id),
            "rate_set_snapshot": self.rate_set_snapshot.to_dict(),
            "entries": [entry.to_dict() for entry in self._entries.values()],
        }

    @classmethod
    def from_state(cls, state: Mapping[str, Any], clock: Clock | None = None) -> AdditionalsLedger:
        ledger = cls(
            estimate_id=UUID(state["estimate_id"]),
            rate_set_snapshot=RateSet.from_dict(state["rate_set_snapshot"]),
            ledger_id=UUID(state["id"]),
            clock=clock,
        )
        for data in state.get("entries", []):
            entry = AdditionalsEntry.from_dict(data)
            ledger._entries[entry.id] = entry
        return ledger
