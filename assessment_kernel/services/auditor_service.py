"""
AuditorService -- tamper-evident audit log with hash chain.

Responsibility:
    Implements the ``AuditSink`` port on SQLAlchemy.  Each ``AuditRecord``
    emitted by a financial aggregate becomes one append-only
    ``AuditLogRecord`` row linked to its predecessor by hash, so any
    retroactive edit to the log is detectable.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    ``assessment_services.AssessmentFinancialsService`` after each save.

Invariants enforced:
    - ``hash = H(entity_type | entity_id | action | payload_hash | prev_hash)``.
    - ``seq`` comes from SequenceService, never ``max(seq) + 1``.
    - Rows are append-only (ORM listener in ``db.immutability``).

Failure modes:
    - AuditChainBrokenError from ``validate_chain()`` on a hash or linkage
      mismatch.

Audit relevance:
    This IS the audit trail.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from assessment_kernel.domain.clock import Clock, SystemClock
from assessment_kernel.domain.protocols import AuditRecord
from assessment_kernel.exceptions import AuditChainBrokenError
from assessment_kernel.logging_config import LogContext, get_logger
from assessment_kernel.models.audit_event import AuditLogRecord
from assessment_kernel.services.sequence_service import SequenceService
from assessment_kernel.utils.hashing import hash_audit_event, hash_payload

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: str
    occurred_at: datetime
    changed_by: str | None
    field_name: str | None
    old_value: str | None
    new_value: str | None
    metadata: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit rows for one entity, oldest first."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(entry.action for entry in self.entries)


def _payload(event: AuditRecord) -> dict[str, Any]:
    return {
        "field_name": event.field_name,
        "old_value": event.old_value,
        "new_value": event.new_value,
        "metadata": event.metadata,
    }


class AuditorService:
    """
    SQLAlchemy audit sink.

    Contract:
        ``record(event)`` appends one row and flushes.
    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last = self._session.execute(
            select(AuditLogRecord).order_by(AuditLogRecord.seq.desc()).limit(1)
        ).scalar_one_or_none()
        return last.hash if last else None

    def record(self, event: AuditRecord) -> None:
        seq = self._sequence_service.next_value(SequenceService.AUDIT_LOG)
        prev_hash = self._get_last_hash()
        payload_hash = hash_payload(_payload(event))
        event_hash = hash_audit_event(
            entity_type=event.entity_type,
            entity_id=str(event.entity_id),
            action=event.action,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        row = AuditLogRecord(
            seq=seq,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            action=event.action,
            field_name=event.field_name,
            old_value=event.old_value,
            new_value=event.new_value,
            event_metadata=dict(event.metadata),
            changed_by=LogContext.get_all().get("actor_id"),
            occurred_at=self._clock.now(),
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(row)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": event.entity_type,
                "entity_id": str(event.entity_id),
                "action": event.action,
                "seq": seq,
            },
        )

    def validate_chain(self) -> bool:
        """
        Recompute every hash and check every link.

        Raises:
            AuditChainBrokenError: at the first row that does not verify.
        """
        rows = self._session.execute(
            select(AuditLogRecord).order_by(AuditLogRecord.seq)
        ).scalars().all()

        previous_hash: str | None = None
        for row in rows:
            if row.prev_hash != previous_hash:
                logger.critical("audit_chain_broken", extra={"seq": row.seq})
                raise AuditChainBrokenError(str(row.id), previous_hash or "None", row.prev_hash or "None")

            expected = hash_audit_event(
                entity_type=row.entity_type,
                entity_id=str(row.entity_id),
                action=row.action,
                payload_hash=hash_payload(
                    {
                        "field_name": row.field_name,
                        "old_value": row.old_value,
                        "new_value": row.new_value,
                        "metadata": row.event_metadata,
                    }
                ),
                prev_hash=row.prev_hash,
            )
            if row.hash != expected:
                logger.critical("audit_chain_broken", extra={"seq": row.seq})
                raise AuditChainBrokenError(str(row.id), expected, row.hash)
            previous_hash = row.hash

        logger.info("audit_chain_valid", extra={"event_count": len(rows)})
        return True

    def trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        rows = self._session.execute(
            select(AuditLogRecord)
            .where(
                AuditLogRecord.entity_type == entity_type,
                AuditLogRecord.entity_id == entity_id,
            )
            .order_by(AuditLogRecord.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=row.seq,
                    action=row.action,
                    occurred_at=row.occurred_at,
                    changed_by=row.changed_by,
                    field_name=row.field_name,
                    old_value=row.old_value,
                    new_value=row.new_value,
                    metadata=row.event_metadata or {},
                    hash=row.hash,
                )
                for row in rows
            ),
        )


class InMemoryAuditSink:
    """Audit sink that keeps events in a list; for callers without a database."""

    def __init__(self) -> None:
        self.events: list[AuditRecord] = []

    def record(self, event: AuditRecord) -> None:
        self.events.append(event)

    def actions_for(self, entity_id: UUID) -> list[str]:
        return [e.action for e in self.events if e.entity_id == entity_id]
