"""
Typed Exception Hierarchy for the Assessment Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure in the financial core is a local validation failure raised at
the point of the offending call.  Callers (the UI layer, an API adapter)
must be able to render an actionable message without parsing strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (entity id, field, current state)

Example:
    try:
        ledger.approve(entry_id)
    except InvalidTransitionError as e:
        api_response(code=e.code, entry=e.entity_id, state=e.current_state)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AssessmentKernelError (base)
    |
    +-- LineItemError
    |   +-- InvalidLineItemError
    |   +-- LineNotFoundError
    |   +-- DuplicateLineError
    |
    +-- EstimateError
    |   +-- EstimateFinalizedError
    |
    +-- LedgerError
    |   +-- EntryNotFoundError
    |   +-- AlreadyRemovedError
    |   +-- AlreadyReversedError
    |
    +-- StateError
    |   +-- InvalidTransitionError
    |   +-- InvalidDecisionError
    |   +-- IncompleteReconciliationError
    |
    +-- JustificationError
    |   +-- MissingReasonError
    |   +-- InvalidSignOffError
    |
    +-- ValuationError
    |   +-- InvalidValuationError
    |
    +-- PersistenceError
    |   +-- AggregateNotFoundError
    |   +-- OptimisticLockError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|---------------------------------------
Line item    | INVALID_LINE_ITEM         | Required field missing/negative
             | LINE_NOT_FOUND            | Unknown estimate/FRC line id
-------------|---------------------------|---------------------------------------
Estimate     | ESTIMATE_FINALIZED        | Mutation after finalize()
-------------|---------------------------|---------------------------------------
Ledger       | ENTRY_NOT_FOUND           | Unknown additionals entry id
             | ALREADY_REMOVED           | Second removal of one estimate line
             | ALREADY_REVERSED          | Second reversal of one entry
-------------|---------------------------|---------------------------------------
State        | INVALID_TRANSITION        | Action not allowed in current state
             | INVALID_DECISION          | FRC decision on completed FRC / bad value
             | INCOMPLETE_RECONCILIATION | complete() with pending FRC lines
-------------|---------------------------|---------------------------------------
Justification| MISSING_REASON            | Decline/reversal/adjustment w/o reason
             | INVALID_SIGN_OFF          | Sign-off without name or role
-------------|---------------------------|---------------------------------------
Valuation    | INVALID_VALUATION         | Reference valuation <= 0
-------------|---------------------------|---------------------------------------
Persistence  | AGGREGATE_NOT_FOUND       | load() of an unknown id
             | OPTIMISTIC_LOCK_CONFLICT  | Stale save detected
             | IMMUTABILITY_VIOLATION    | ORM update/delete of a frozen row
-------------|---------------------------|---------------------------------------
Audit        | AUDIT_CHAIN_BROKEN        | Hash chain validation failed
"""

from typing import Any


class AssessmentKernelError(Exception):
    """
    Base exception for all assessment kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ASSESSMENT_KERNEL_ERROR"


# Line item exceptions


class LineItemError(AssessmentKernelError):
    """Base exception for line-item errors."""

    code: str = "LINE_ITEM_ERROR"


class InvalidLineItemError(LineItemError):
    """A field required by the line's process type is missing or negative."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, field: str, process_type: str, value: Any = None, line_id: Any = None):
        self.field = field
        self.process_type = process_type
        self.value = value
        self.line_id = line_id
        problem = "missing" if value is None else f"negative ({value})"
        super().__init__(
            f"Process type {process_type} requires {field}: {problem}"
        )


class LineNotFoundError(LineItemError):
    """Line id does not exist on the estimate or FRC."""

    code: str = "LINE_NOT_FOUND"

    def __init__(self, line_id: Any, container_type: str, container_id: Any = None):
        self.line_id = line_id
        self.container_type = container_type
        self.container_id = container_id
        super().__init__(f"Line {line_id} not found on {container_type} {container_id}")


class DuplicateLineError(LineItemError):
    """A caller-supplied line id is already on the estimate."""

    code: str = "DUPLICATE_LINE"

    def __init__(self, line_id: Any, estimate_id: Any):
        self.line_id = line_id
        self.estimate_id = estimate_id
        super().__init__(
            f"Line {line_id} already exists on estimate {estimate_id}; use update_line to change it"
        )


# Estimate exceptions


class EstimateError(AssessmentKernelError):
    """Base exception for estimate errors."""

    code: str = "ESTIMATE_ERROR"


class EstimateFinalizedError(EstimateError):
    """Mutation attempted on a finalized estimate."""

    code: str = "ESTIMATE_FINALIZED"

    def __init__(self, estimate_id: Any, operation: str, finalized_at: Any = None):
        self.estimate_id = estimate_id
        self.operation = operation
        self.finalized_at = finalized_at
        super().__init__(
            f"Estimate {estimate_id} was finalized at {finalized_at}; "
            f"{operation} must go through additionals"
        )


# Additionals ledger exceptions


class LedgerError(AssessmentKernelError):
    """Base exception for additionals ledger errors."""

    code: str = "LEDGER_ERROR"


class EntryNotFoundError(LedgerError):
    """Additionals entry id does not exist on the ledger."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: Any, ledger_id: Any = None):
        self.entry_id = entry_id
        self.ledger_id = ledger_id
        super().__init__(f"Entry {entry_id} not found on ledger {ledger_id}")


class AlreadyRemovedError(LedgerError):
    """Estimate line already has a removal entry."""

    code: str = "ALREADY_REMOVED"

    def __init__(self, original_line_id: Any, removal_entry_id: Any):
        self.original_line_id = original_line_id
        self.removal_entry_id = removal_entry_id
        super().__init__(
            f"Estimate line {original_line_id} already removed by entry {removal_entry_id}"
        )


class AlreadyReversedError(LedgerError):
    """Entry is already the target of a reversal."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entry_id: Any, reversal_entry_id: Any):
        self.entry_id = entry_id
        self.reversal_entry_id = reversal_entry_id
        super().__init__(
            f"Entry {entry_id} already reversed by entry {reversal_entry_id}"
        )


# State machine exceptions


class StateError(AssessmentKernelError):
    """Base exception for lifecycle/state errors."""

    code: str = "STATE_ERROR"


class InvalidTransitionError(StateError):
    """Requested action is not allowed from the entity's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: Any,
        current_state: str,
        action: str,
        detail: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.action = action
        self.detail = detail
        message = f"Cannot {action} {entity_type} {entity_id} in state {current_state}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidDecisionError(StateError):
    """FRC decision rejected (reconciliation completed, or bad decision value)."""

    code: str = "INVALID_DECISION"

    def __init__(self, frc_id: Any, line_id: Any, decision: str, detail: str):
        self.frc_id = frc_id
        self.line_id = line_id
        self.decision = decision
        self.detail = detail
        super().__init__(f"Invalid decision {decision!r} for FRC line {line_id}: {detail}")


class IncompleteReconciliationError(StateError):
    """complete() called while FRC lines are still pending."""

    code: str = "INCOMPLETE_RECONCILIATION"

    def __init__(self, frc_id: Any, pending_line_ids: tuple):
        self.frc_id = frc_id
        self.pending_line_ids = pending_line_ids
        super().__init__(
            f"FRC {frc_id} has {len(pending_line_ids)} undecided line(s)"
        )


# Justification exceptions


class JustificationError(AssessmentKernelError):
    """Base exception for missing justification / sign-off data."""

    code: str = "JUSTIFICATION_ERROR"


class MissingReasonError(JustificationError):
    """Decline, reversal or adjustment attempted without a reason."""

    code: str = "MISSING_REASON"

    def __init__(self, entity_type: str, entity_id: Any, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.action = action
        super().__init__(f"{action} of {entity_type} {entity_id} requires a reason")


class InvalidSignOffError(JustificationError):
    """Sign-off is missing the signer's name or role."""

    code: str = "INVALID_SIGN_OFF"

    def __init__(self, frc_id: Any, field: str):
        self.frc_id = frc_id
        self.field = field
        super().__init__(f"Sign-off for FRC {frc_id} requires {field}")


# Valuation exceptions


class ValuationError(AssessmentKernelError):
    """Base exception for valuation errors."""

    code: str = "VALUATION_ERROR"


class InvalidValuationError(ValuationError):
    """A vehicle valuation is unusable: a non-positive threshold reference,
    or a negative retail, market or trade value."""

    code: str = "INVALID_VALUATION"

    def __init__(self, reference_value: Any, basis: str | None = None):
        self.reference_value = reference_value
        self.basis = basis
        if basis is None:
            message = f"Reference valuation must be positive, got {reference_value}"
        else:
            message = f"{basis.capitalize()} valuation cannot be negative, got {reference_value}"
        super().__init__(message)


# Persistence exceptions


class PersistenceError(AssessmentKernelError):
    """Base exception for persistence collaborator errors."""

    code: str = "PERSISTENCE_ERROR"


class AggregateNotFoundError(PersistenceError):
    """load() could not find the aggregate."""

    code: str = "AGGREGATE_NOT_FOUND"

    def __init__(self, aggregate_type: str, aggregate_id: Any):
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id
        super().__init__(f"{aggregate_type} {aggregate_id} not found")


class OptimisticLockError(PersistenceError):
    """Aggregate was saved by another writer since it was loaded."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, aggregate_type: str, aggregate_id: Any):
        self.aggregate_type = aggregate_type
        self.aggregate_id = aggregate_id
        super().__init__(
            f"Concurrent modification of {aggregate_type} {aggregate_id}; reload and retry"
        )


class ImmutabilityViolationError(PersistenceError):
    """Attempt to update or delete a row that is frozen."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: Any, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


# Audit exceptions


class AuditError(AssessmentKernelError):
    """Base exception for audit errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: Any, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at event {audit_event_id}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
