"""Additionals ledger: post-finalization changes as append-only entries."""

from assessment_modules.additionals.ledger import ENTRY_ENTITY, LEDGER_ENTITY, AdditionalsLedger
from assessment_modules.additionals.models import (
    AdditionalsEntry,
    EffectiveStatus,
    EntryAction,
    EntryStatus,
)
from assessment_modules.additionals.workflows import ENTRY_WORKFLOW

__all__ = [
    "ENTRY_ENTITY",
    "ENTRY_WORKFLOW",
    "LEDGER_ENTITY",
    "AdditionalsEntry",
    "AdditionalsLedger",
    "EffectiveStatus",
    "EntryAction",
    "EntryStatus",
]
