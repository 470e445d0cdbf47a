"""
ORM-level immutability enforcement.

SQLAlchemy fires ``before_update``/``before_delete`` before SQL reaches the
database.  The listeners here refuse:

    Entity                  | When immutable
    ------------------------|-------------------------------------------
    AdditionalsEntryRecord  | once its persisted status is not pending
    AuditLogRecord          | always

A decided additionals entry can only be cancelled by appending a reversal
entry; rewriting the row would erase the paper trail.

The check looks at the status the row had BEFORE this flush.  That lets
the pending -> approved/declined transition itself through, and blocks
every change after it.  ``updated_at`` is row metadata and may always
change.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from assessment_kernel.exceptions import ImmutabilityViolationError
from assessment_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_METADATA_FIELDS = frozenset({"updated_at"})
_PENDING = "pending"


def _persisted_status(target) -> str:
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    return target.status


def _blocked(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_entry_immutability(mapper, connection, target):
    if _persisted_status(target) == _PENDING:
        return

    for attr in inspect(target).attrs:
        if attr.key in _METADATA_FIELDS:
            continue
        if attr.history.has_changes():
            _blocked(
                "AdditionalsEntry",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on a decided additionals entry",
                field=attr.key,
            )


def _check_entry_delete(mapper, connection, target):
    if _persisted_status(target) != _PENDING:
        _blocked(
            "AdditionalsEntry",
            target.id,
            "DELETE",
            "Decided additionals entries cannot be deleted",
        )


def _check_audit_log_immutability(mapper, connection, target):
    _blocked("AuditLog", target.id, "UPDATE", "Audit log rows are immutable")


def _check_audit_log_delete(mapper, connection, target):
    _blocked("AuditLog", target.id, "DELETE", "Audit log rows cannot be deleted")


def _listeners():
    from assessment_kernel.models.aggregates import AdditionalsEntryRecord
    from assessment_kernel.models.audit_event import AuditLogRecord

    return (
        (AdditionalsEntryRecord, "before_update", _check_entry_immutability),
        (AdditionalsEntryRecord, "before_delete", _check_entry_delete),
        (AuditLogRecord, "before_update", _check_audit_log_immutability),
        (AuditLogRecord, "before_delete", _check_audit_log_delete),
    )


def register_immutability_listeners():
    """Register the listeners.  Safe to call more than once."""
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """Remove the listeners.  Only for tests that must bypass them."""
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
