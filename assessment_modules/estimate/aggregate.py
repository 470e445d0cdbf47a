"""
Estimate aggregate (``assessment_modules.estimate.aggregate``).

Responsibility
--------------
Holds an ordered mapping of priced line items plus the RateSet they were
priced with, and keeps ``subtotal``, ``vat_amount`` and ``total`` in step
with every change.  Once finalized the estimate is reference data: all
later change goes through the additionals ledger.

Architecture position
---------------------
**Modules layer** -- pure aggregate.  No I/O; audit records are queued for
the service layer (``collect_audit_records``).

Invariants enforced
-------------------
* ``subtotal == sum(line.total)`` and ``total == subtotal + vat_amount``
  after every operation.
* ``update_rate_set`` re-prices every line into a new mapping and swaps it
  in at once; a partially re-priced estimate is never observable.
* After ``finalize`` every mutator raises ``EstimateFinalizedError``.

Failure modes
-------------
* ``InvalidLineItemError`` from the costing engine.
* ``LineNotFoundError`` for unknown line ids.
* ``EstimateFinalizedError`` on mutation after finalize.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import replace
from datetime import datetime
from types import MappingProxyType
from typing import Any
from uuid import UUID, uuid4

from assessment_engines.costing import price_line
from assessment_engines.totals import calculate_subtotal, calculate_total, calculate_vat
from assessment_kernel.domain.clock import Clock, SystemClock
from assessment_kernel.domain.line_items import LineItem, Quantities
from assessment_kernel.domain.protocols import AuditTrail
from assessment_kernel.domain.values import ZERO, PartType, ProcessType, RateSet
from assessment_kernel.exceptions import DuplicateLineError, EstimateFinalizedError, LineNotFoundError
from assessment_kernel.logging_config import get_logger

logger = get_logger("modules.estimate")

ENTITY_TYPE = "estimate"

_UNSET: Any = object()


class Estimate(AuditTrail):
    """
    Repair-cost estimate aggregate.

    Contract:
        Every mutator prices through ``assessment_engines.costing`` and
        recalculates totals before returning.
    Guarantees:
        - Line order is insertion order.
        - Cost fields are never set directly by callers.
    Non-goals:
        - Persistence and audit delivery (see ``assessment_services``).
    """

    def __init__(
        self,
        rate_set: RateSet,
        estimate_id: UUID | None = None,
        assessment_id: UUID | None = None,
        clock: Clock | None = None,
    ):
        self.id = estimate_id or uuid4()
        self.assessment_id = assessment_id
        self._rate_set = rate_set
        self._lines: dict[UUID, LineItem] = {}
        self._finalized_at: datetime | None = None
        self._clock = clock or SystemClock()
        self.subtotal = ZERO
        self.vat_amount = ZERO
        self.total = ZERO
        self.version: int | None = None
        self._init_audit_trail()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def rate_set(self) -> RateSet:
        return self._rate_set

    @property
    def line_items(self) -> Mapping[UUID, LineItem]:
        return MappingProxyType(self._lines)

    @property
    def finalized_at(self) -> datetime | None:
        return self._finalized_at

    @property
    def is_finalized(self) -> bool:
        return self._finalized_at is not None

    def get_line(self, line_id: UUID) -> LineItem:
        try:
            return self._lines[line_id]
        except KeyError:
            raise LineNotFoundError(line_id, ENTITY_TYPE, self.id) from None

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def add_line(
        self,
        process_type: ProcessType | str,
        description: str,
        quantities: Quantities | Mapping[str, Any] | None = None,
        part_type: PartType | str | None = None,
        line_id: UUID | None = None,
    ) -> LineItem:
        self._ensure_editable("add_line")
        if line_id is not None and line_id in self._lines:
            raise DuplicateLineError(line_id, self.id)
        line = price_line(
            LineItem.create(process_type, description, quantities, part_type, line_id),
            self._rate_set,
        )
        self._lines[line.id] = line
        self._recalculate()

        self._audit(
            ENTITY_TYPE, self.id, "line_added",
            field_name="total", new_value=line.total,
            line_id=line.id, process_type=line.process_type, description=description,
        )
        logger.info(
            "estimate_line_added",
            extra={
                "estimate_id": str(self.id),
                "line_id": str(line.id),
                "process_type": line.process_type.value,
                "line_total": str(line.total),
                "estimate_total": str(self.total),
            },
        )
        return line

    def update_line(
        self,
        line_id: UUID,
        *,
        description: str | None = None,
        process_type: ProcessType | str | None = None,
        part_type: PartType | str | None = _UNSET,
        quantities: Mapping[str, Any] | None = None,
    ) -> LineItem:
        """Apply a patch and re-price.

        ``quantities`` is merged into the existing quantities; pass a field
        with ``None`` to clear it.  ``part_type=None`` clears the part type.
        """
        self._ensure_editable("update_line")
        current = self.get_line(line_id)

        changes: dict[str, Any] = {}
        if description is not None:
            changes["description"] = description
        if process_type is not None:
            changes["process_type"] = ProcessType(process_type)
        if part_type is not _UNSET:
            changes["part_type"] = None if part_type is None else PartType(part_type)
        if quantities:
            changes["quantities"] = current.quantities.merged(quantities)

        updated = price_line(replace(current, **changes), self._rate_set)
        self._lines[line_id] = updated
        self._recalculate()

        self._audit(
            ENTITY_TYPE, self.id, "line_updated",
            field_name="total", old_value=current.total, new_value=updated.total,
            line_id=line_id, changed_fields=sorted(changes),
        )
        logger.info(
            "estimate_line_updated",
            extra={
                "estimate_id": str(self.id),
                "line_id": str(line_id),
                "changed_fields": sorted(changes),
                "old_total": str(current.total),
                "new_total": str(updated.total),
            },
        )
        return updated

    def remove_line(self, line_id: UUID) -> LineItem:
        self._ensure_editable("remove_line")
        removed = self.get_line(line_id)
        del self._lines[line_id]
        self._recalculate()

        self._audit(
            ENTITY_TYPE, self.id, "line_removed",
            field_name="total", old_value=removed.total,
            line_id=line_id, description=removed.description,
        )
        logger.info(
            "estimate_line_removed",
            extra={"estimate_id": str(self.id), "line_id": str(line_id)},
        )
        return removed

    def update_rate_set(self, rate_set: RateSet) -> None:
        """Replace the RateSet and re-price every line against it."""
        self._ensure_editable("update_rate_set")
        old_rates = self._rate_set
        old_total = self.total

        repriced = {line_id: price_line(line, rate_set) for line_id, line in self._lines.items()}
        self._rate_set = rate_set
        self._lines = repriced
        self._recalculate()

        self._audit(
            ENTITY_TYPE, self.id, "rate_set_updated",
            field_name="rate_set",
            old_value=json.dumps(old_rates.to_dict(), sort_keys=True),
            new_value=json.dumps(rate_set.to_dict(), sort_keys=True),
            old_total=old_total, new_total=self.total, lines_repriced=len(repriced),
        )
        logger.info(
            "estimate_rate_set_updated",
            extra={
                "estimate_id": str(self.id),
                "lines_repriced": len(repriced),
                "old_total": str(old_total),
                "new_total": str(self.total),
            },
        )

    def finalize(self) -> datetime:
        """Freeze the estimate.  Later change goes through additionals."""
        self._ensure_editable("finalize")
        self._finalized_at = self._clock.now()

        self._audit(
            ENTITY_TYPE, self.id, "estimate_finalized",
            field_name="finalized_at", new_value=self._finalized_at.isoformat(),
            subtotal=self.subtotal, vat_amount=self.vat_amount, total=self.total,
        )
        logger.info(
            "estimate_finalized",
            extra={
                "estimate_id": str(self.id),
                "line_count": len(self._lines),
                "total": str(self.total),
            },
        )
        return self._finalized_at

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_editable(self, operation: str) -> None:
        if self._finalized_at is not None:
            raise EstimateFinalizedError(self.id, operation, self._finalized_at)

    def _recalculate(self) -> None:
        self.subtotal = calculate_subtotal(self._lines.values())
        self.vat_amount = calculate_vat(self.subtotal, self._rate_set.vat_percentage)
        self.total = calculate_total(self.subtotal, self.vat_amount)

    # ------------------------------------------------------------------
    # State (persistence collaborator support)
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "assessment_id": str(self.assessment_id) if self.assessment_id else None,
            "rate_set": self._rate_set.to_dict(),
            "line_items": [line.to_dict() for line in self._lines.values()],
            "finalized_at": self._finalized_at.isoformat() if self._finalized_at else None,
        }

    @classmethod
    def from_state(cls, state: Mapping[str, Any], clock: Clock | None = None) -> Estimate:
        estimate = cls(
            rate_set=RateSet.from_dict(state["rate_set"]),
            estimate_id=UUID(state["id"]),
            assessment_id=UUID(state["assessment_id"]) if state.get("assessment_id") else None,
            clock=clock,
        )
        for data in state.get("line_items", []):
            line = LineItem.from_dict(data)
            estimate._lines[line.id] = line
        if state.get("finalized_at"):
            estimate._finalized_at = datetime.fromisoformat(state["finalized_at"])
        estimate._recalculate()
        return estimate
