"""
Collaborator ports (``assessment_kernel.domain.protocols``).

Responsibility:
    The interface contracts the financial core consumes: aggregate
    persistence, the audit sink, and the workflow status bridge.  The core
    only ever talks to these protocols; concrete SQLAlchemy implementations
    live in ``assessment_kernel.services``.

Architecture position:
    Kernel > Domain -- pure declarations, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable
from uuid import UUID

A = TypeVar("A")


@dataclass(frozen=True)
class AuditRecord:
    """One audit event emitted by a mutating operation.

    Contract: carries enough data to reconstruct the change --
    ``old_value``/``new_value`` are strings (or None) so any sink can store
    them without knowing the domain types.
    """

    entity_type: str
    entity_id: UUID
    action: str
    field_name: str | None = None
    old_value: str | None = None
    new_value: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class AuditSink(Protocol):
    """Persists/displays audit events; called once per mutating operation."""

    def record(self, event: AuditRecord) -> None:
        ...


@runtime_checkable
class AggregateRepository(Protocol, Generic[A]):
    """Load/save port for one aggregate type (optimistic load-mutate-save)."""

    def load(self, aggregate_id: UUID) -> A:
        ...

    def save(self, aggregate: A) -> None:
        ...


@runtime_checkable
class WorkflowStatusBridge(Protocol):
    """Signals reconciliation milestones to the assessment workflow."""

    def reconciliation_completed(self, estimate_id: UUID) -> None:
        ...

    def reconciliation_reopened(self, estimate_id: UUID) -> None:
        ...


class AuditTrail:
    """Mixin for aggregates that queue audit records for their caller.

    Aggregates stay pure: they never call a sink themselves.  The service
    layer drains ``collect_audit_records()`` after each operation.
    """

    def _init_audit_trail(self) -> None:
        self._audit_records: list[AuditRecord] = []

    def _audit(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        field_name: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        **metadata: Any,
    ) -> None:
        self._audit_records.append(
            AuditRecord(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                field_name=field_name,
                old_value=None if old_value is None else str(old_value),
                new_value=None if new_value is None else str(new_value),
                metadata={k: _jsonable(v) for k, v in metadata.items()},
            )
        )

    def collect_audit_records(self) -> list[AuditRecord]:
        """Return and clear the queued audit records."""
        records, self._audit_records = self._audit_records, []
        return records


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, str)):
        return value
    return str(value)
