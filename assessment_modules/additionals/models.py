"""
Additionals Domain Models (``assessment_modules.additionals.models``).

Responsibility
--------------
Frozen value objects for the append-only additionals ledger: entry
actions, stored statuses, display statuses and the entry record itself.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O.

Invariants enforced
-------------------
* ``AdditionalsEntry`` is frozen.  The ledger "changes" an entry only by
  replacing a pending record with a new one (quantity edit, approve,
  decline); every other change is a new entry.
* ``payload_hash`` is derived from the entry's financial content and is
  recomputed whenever a record is built without one.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from assessment_kernel.domain.line_items import LineItem
from assessment_kernel.utils.hashing import hash_entry


class EntryAction(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    REVERSAL = "reversal"


class EntryStatus(str, Enum):
    """Stored status.  Must align with ``workflows.ENTRY_WORKFLOW.states``."""
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"


class EffectiveStatus(str, Enum):
    """Status shown to users.

    A reversed or reinstated entry keeps its stored status; the ledger
    shadows it with REVERSED or REINSTATED for display.
    """
    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    REVERSED = "reversed"
    REINSTATED = "reinstated"
    REVERSAL = "reversal"
    REMOVED = "removed"


@dataclass(frozen=True)
class AdditionalsEntry:
    """One append-only ledger record.

    ``removed`` entries carry the original estimate line negated;
    ``reversal`` entries carry the sign-inverse of their target, or the
    restoring values when they reinstate it.
    """

    id: UUID
    action: EntryAction
    status: EntryStatus
    line_item: LineItem
    created_at: datetime
    original_line_id: UUID | None = None
    reverses_entry_id: UUID | None = None
    reason: str | None = None
    decided_at: datetime | None = None
    payload_hash: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "action", EntryAction(self.action))
        object.__setattr__(self, "status", EntryStatus(self.status))
        if not self.payload_hash:
            object.__setattr__(self, "payload_hash", self.compute_payload_hash())

    def compute_payload_hash(self) -> str:
        return hash_entry(
            self.id,
            self.action.value,
            self.line_item.to_dict(),
            self.original_line_id,
            self.reverses_entry_id,
        )

    @property
    def total(self) -> Decimal:
        return self.line_item.total

    @property
    def is_pending(self) -> bool:
        return self.status is EntryStatus.PENDING

    def decided(
        self,
        status: EntryStatus,
        decided_at: datetime,
        reason: str | None = None,
    ) -> AdditionalsEntry:
        return replace(self, status=status, decided_at=decided_at, reason=reason or self.reason)

    def with_line_item(self, line_item: LineItem) -> AdditionalsEntry:
        return replace(self, line_item=line_item, payload_hash="")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "action": self.action.value,
            "status": self.status.value,
            "line_item": self.line_item.to_dict(),
            "created_at": self.created_at.isoformat(),
            "original_line_id": str(self.original_line_id) if self.original_line_id else None,
            "reverses_entry_id": str(self.reverses_entry_id) if self.reverses_entry_id else None,
            "reason": self.reason,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "payload_hash": self.payload_hash,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AdditionalsEntry:
        return cls(
            id=UUID(str(data["id"])),
            action=EntryAction(data["action"]),
            status=EntryStatus(data["status"]),
            line_item=LineItem.from_dict(data["line_item"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            original_line_id=UUID(data["original_line_id"]) if data.get("original_line_id") else None,
            reverses_entry_id=UUID(data["reverses_entry_id"]) if data.get("reverses_entry_id") else None,
            reason=data.get("reason"),
            decided_at=datetime.fromisoformat(data["decided_at"]) if data.get("decided_at") else None,
            payload_hash=data.get("payload_hash") or "",
        )
