"""
Module: assessment_kernel.models.aggregates
Responsibility: ORM rows for the three financial aggregates.
Architecture position: Kernel > Models.  May import from db/base.py only.

Each aggregate row carries its full state as JSON plus denormalized
columns for querying.  ``version`` is SQLAlchemy's ``version_id_col``: a
save from a stale load fails with StaleDataError, which the repositories
translate to OptimisticLockError.

Additionals entries are stored one row per entry so the immutability
listener can refuse changes to any decided entry.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from assessment_kernel.db.base import TrackedBase, UUIDString


class EstimateRecord(TrackedBase):
    __tablename__ = "estimates"

    assessment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True, index=True)
    subtotal: Mapped[Decimal]
    vat_amount: Mapped[Decimal]
    total: Mapped[Decimal]
    finalized_at: Mapped[datetime | None]
    state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class AdditionalsLedgerRecord(TrackedBase):
    __tablename__ = "additionals_ledgers"

    estimate_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("estimates.id"), nullable=False, unique=True,
    )
    rate_set_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    entries: Mapped[list["AdditionalsEntryRecord"]] = relationship(
        back_populates="ledger",
        order_by="AdditionalsEntryRecord.position",
    )

    __mapper_args__ = {"version_id_col": version}


class AdditionalsEntryRecord(TrackedBase):
    """
    One ledger entry.

    Contract:
        Once ``status`` is persisted as anything but ``pending`` the row is
        frozen: the ORM listener rejects any further UPDATE or DELETE.
    """

    __tablename__ = "additionals_entries"

    __table_args__ = (
        Index("idx_additionals_entries_ledger", "ledger_id", "position"),
    )

    ledger_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("additionals_ledgers.id"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    original_line_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reverses_entry_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    total: Mapped[Decimal]
    line_item: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    entry_created_at: Mapped[datetime]
    decided_at: Mapped[datetime | None]
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    ledger: Mapped[AdditionalsLedgerRecord] = relationship(back_populates="entries")


class FinalRepairCostingRecord(TrackedBase):
    __tablename__ = "final_repair_costings"

    estimate_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("estimates.id"), nullable=False, index=True,
    )
    ledger_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    revision: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
