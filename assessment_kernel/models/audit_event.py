"""
Module: assessment_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit rows are append-only; no UPDATE or DELETE (ORM listener).
    - hash = H(entity_type | entity_id | action | payload_hash | prev_hash),
      validated by AuditorService.
    - seq is monotonically increasing, allocated by SequenceService.

Audit relevance:
    Every mutating financial operation produces exactly one row here.  The
    column set mirrors the field-level change log: which field changed,
    from what, to what, and by whom.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assessment_kernel.db.base import Base, UUIDString


class AuditLogRecord(Base):
    """
    One audit log row with hash-chain linkage.

    Contract:
        Rows are written only by AuditorService and never updated or
        deleted afterwards.
    Guarantees:
        - prev_hash is None only for the genesis row.
    """

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
        Index("idx_audit_logs_action", "action"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)

    field_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes
    event_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    changed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogRecord {self.seq}: {self.entity_type}/{self.action}>"
