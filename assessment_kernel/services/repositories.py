"""
SQLAlchemy repositories for the financial aggregates.

Responsibility:
    Reference implementations of the ``AggregateRepository`` port: load an
    aggregate by id, save it back, and detect lost updates.

Architecture position:
    Kernel > Services -- imperative shell.  Imports the aggregates from
    ``assessment_modules`` only to rebuild them from stored state.

Invariants enforced:
    - Optimistic concurrency: each aggregate remembers the ``version`` it
      was loaded at.  Saving over a newer row raises OptimisticLockError,
      whether the conflict is seen up front or by SQLAlchemy's
      ``version_id_col`` check at flush time.
    - Decided additionals entry rows are never rewritten; only new rows
      and pending rows are written.

Failure modes:
    - AggregateNotFoundError on load of an unknown id.
    - OptimisticLockError on a stale save.
    - ImmutabilityViolationError if a save would rewrite a decided entry.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from assessment_kernel.domain.clock import Clock
from assessment_kernel.exceptions import AggregateNotFoundError, OptimisticLockError
from assessment_kernel.logging_config import get_logger
from assessment_kernel.models.aggregates import (
    AdditionalsEntryRecord,
    AdditionalsLedgerRecord,
    EstimateRecord,
    FinalRepairCostingRecord,
)
from assessment_modules.additionals.ledger import AdditionalsLedger
from assessment_modules.additionals.models import AdditionalsEntry
from assessment_modules.estimate.aggregate import Estimate
from assessment_modules.frc.reconciliation import FinalRepairCosting

logger = get_logger("services.repositories")


class _SqlRepository:
    aggregate_type = "aggregate"

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock

    def _check_version(self, record: Any, aggregate: Any) -> None:
        loaded = aggregate.version
        if record is None:
            if loaded is not None:
                raise OptimisticLockError(self.aggregate_type, aggregate.id)
            return
        if loaded != record.version:
            logger.warning(
                "optimistic_lock_conflict",
                extra={
                    "aggregate_type": self.aggregate_type,
                    "aggregate_id": str(aggregate.id),
                    "loaded_version": loaded,
                    "current_version": record.version,
                },
            )
            raise OptimisticLockError(self.aggregate_type, aggregate.id)

    def _flush(self, aggregate: Any, record: Any) -> None:
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(self.aggregate_type, aggregate.id) from exc
        aggregate.version = record.version
        logger.debug(
            "aggregate_saved",
            extra={
                "aggregate_type": self.aggregate_type,
                "aggregate_id": str(aggregate.id),
                "version": record.version,
            },
        )

    def _not_found(self, aggregate_id: UUID) -> AggregateNotFoundError:
        return AggregateNotFoundError(self.aggregate_type, aggregate_id)


class EstimateRepository(_SqlRepository):
    aggregate_type = "estimate"

    def load(self, estimate_id: UUID) -> Estimate:
        record = self._session.get(EstimateRecord, estimate_id)
        if record is None:
            raise self._not_found(estimate_id)
        estimate = Estimate.from_state(record.state, clock=self._clock)
        estimate.version = record.version
        return estimate

    def save(self, estimate: Estimate) -> None:
        record = self._session.get(EstimateRecord, estimate.id)
        self._check_version(record, estimate)
        if record is None:
            record = EstimateRecord(id=estimate.id, assessment_id=estimate.assessment_id)
            self._session.add(record)

        record.subtotal = estimate.subtotal
        record.vat_amount = estimate.vat_amount
        record.total = estimate.total
        record.finalized_at = estimate.finalized_at
        record.state = estimate.to_state()
        flag_modified(record, "state")
        self._flush(estimate, record)


class AdditionalsLedgerRepository(_SqlRepository):
    aggregate_type = "additionals_ledger"

    def load(self, ledger_id: UUID) -> AdditionalsLedger:
        record = self._session.get(AdditionalsLedgerRecord, ledger_id)
        if record is None:
            raise self._not_found(ledger_id)
        return self._rebuild(record)

    def find_by_estimate(self, estimate_id: UUID) -> AdditionalsLedger | None:
        record = self._session.execute(
            select(AdditionalsLedgerRecord).where(AdditionalsLedgerRecord.estimate_id == estimate_id)
        ).scalar_one_or_none()
        return self._rebuild(record) if record is not None else None

    def save(self, ledger: AdditionalsLedger) -> None:
        record = self._session.get(AdditionalsLedgerRecord, ledger.id)
        self._check_version(record, ledger)
        if record is None:
            record = AdditionalsLedgerRecord(
                id=ledger.id,
                estimate_id=ledger.estimate_id,
                rate_set_snapshot=ledger.rate_set_snapshot.to_dict(),
            )
            self._session.add(record)
        else:
            # entry-only changes must still bump the ledger version
            flag_modified(record, "rate_set_snapshot")

        rows = {row.id: row for row in self._entry_rows(ledger.id)}
        next_position = max((row.position for row in rows.values()), default=0) + 1
        for entry in ledger.entries:
            row = rows.pop(entry.id, None)
            if row is None:
                row = AdditionalsEntryRecord(id=entry.id, ledger_id=ledger.id, position=next_position)
                next_position += 1
                self._write_entry(row, entry)
                self._session.add(row)
            elif row.status != entry.status.value or row.payload_hash != entry.payload_hash:
                self._write_entry(row, entry)

        # rows left over were pending entries deleted from the ledger
        for row in rows.values():
            self._session.delete(row)

        self._flush(ledger, record)

    def _entry_rows(self, ledger_id: UUID) -> list[AdditionalsEntryRecord]:
        return list(
            self._session.execute(
                select(AdditionalsEntryRecord)
                .where(AdditionalsEntryRecord.ledger_id == ledger_id)
                .order_by(AdditionalsEntryRecord.position)
            ).scalars()
        )

    @staticmethod
    def _write_entry(row: AdditionalsEntryRecord, entry: AdditionalsEntry) -> None:
        row.action = entry.action.value
        row.status = entry.status.value
        row.original_line_id = entry.original_line_id
        row.reverses_entry_id = entry.reverses_entry_id
        row.reason = entry.reason
        row.total = entry.total
        row.line_item = entry.line_item.to_dict()
        row.entry_created_at = entry.created_at
        row.decided_at = entry.decided_at
        row.payload_hash = entry.payload_hash

    def _rebuild(self, record: AdditionalsLedgerRecord) -> AdditionalsLedger:
        state = {
            "id": str(record.id),
            "estimate_id": str(record.estimate_id),
            "rate_set_snapshot": record.rate_set_snapshot,
            "entries": [
                {
                    "id": str(row.id),
                    "action": row.action,
                    "status": row.status,
                    "line_item": row.line_item,
                    "created_at": row.entry_created_at.isoformat(),
                    "original_line_id": str(row.original_line_id) if row.original_line_id else None,
                    "reverses_entry_id": str(row.reverses_entry_id) if row.reverses_entry_id else None,
                    "reason": row.reason,
                    "decided_at": row.decided_at.isoformat() if row.decided_at else None,
                    "payload_hash": row.payload_hash,
                }
                for row in self._entry_rows(record.id)
            ],
        }
        ledger = AdditionalsLedger.from_state(state, clock=self._clock)
        ledger.version = record.version
        return ledger


class FinalRepairCostingRepository(_SqlRepository):
    aggregate_type = "final_repair_costing"

    def load(self, frc_id: UUID) -> FinalRepairCosting:
        record = self._session.get(FinalRepairCostingRecord, frc_id)
        if record is None:
            raise self._not_found(frc_id)
        return self._rebuild(record)

    def find_by_estimate(self, estimate_id: UUID) -> FinalRepairCosting | None:
        record = self._session.execute(
            select(FinalRepairCostingRecord)
            .where(FinalRepairCostingRecord.estimate_id == estimate_id)
            .order_by(FinalRepairCostingRecord.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return self._rebuild(record) if record is not None else None

    def save(self, frc: FinalRepairCosting) -> None:
        record = self._session.get(FinalRepairCostingRecord, frc.id)
        self._check_version(record, frc)
        if record is None:
            record = FinalRepairCostingRecord(id=frc.id, estimate_id=frc.estimate_id)
            self._session.add(record)

        record.ledger_id = frc.ledger_id
        record.status = frc.status.value
        record.revision = frc.revision
        record.state = frc.to_state()
        flag_modified(record, "state")
        self._flush(frc, record)

    def _rebuild(self, record: FinalRepairCostingRecord) -> FinalRepairCosting:
        frc = FinalRepairCosting.from_state(record.state, clock=self._clock)
        frc.version = record.version
        return frc
