"""
Content hashes for additionals entries and the audit chain.

Hashes are SHA-256 over canonical JSON: sorted keys, compact separators,
Decimals normalized so ``Decimal("12.50")`` and ``Decimal("12.5")`` agree.
The same entry therefore hashes identically before and after a database
round trip.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# prev_hash of the first audit row
CHAIN_START = "CHAIN_START"


def _canonical_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, UUID):
        return str(obj)
    raise TypeError(f"Cannot hash value of type {type(obj).__name__}")


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_canonical_default)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    return _sha256(canonical_json(payload))


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """Chain hash of one audit row: ``H(entity_type|entity_id|action|payload_hash|prev_hash)``."""
    return _sha256("|".join((entity_type, str(entity_id), action, payload_hash, prev_hash or CHAIN_START)))


def hash_entry(
    entry_id: UUID,
    action: str,
    line_item: dict,
    original_line_id: UUID | None,
    reverses_entry_id: UUID | None,
) -> str:
    """Content hash of an additionals entry.

    Covers the entry's financial content.  Status and decision timestamps
    are excluded, so approving or declining a pending entry keeps its hash;
    a pending quantity edit produces a new one.
    """
    return hash_payload(
        {
            "entry_id": entry_id,
            "action": action,
            "line_item": line_item,
            "original_line_id": original_line_id,
            "reverses_entry_id": reverses_entry_id,
        }
    )
