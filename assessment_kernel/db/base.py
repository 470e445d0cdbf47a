"""
Declarative base for the assessment ORM models (``assessment_kernel.db.base``).

Responsibility:
    Column conventions shared by every table: UUID keys stored as text,
    money as fixed two-place numerics, timezone-aware timestamps, and the
    ``TrackedBase`` row stamps.

Architecture position:
    Kernel > DB.  Imported by ``models/`` and ``services/sequence_service``;
    imports nothing above the kernel.

Invariants enforced:
    - Money columns are ``Numeric(18, 2)``.  Floats never reach the database.
    - ``updated_at`` is row metadata; the immutability listeners ignore it.
    - ``created_by`` is stamped once, at insert, from the ``actor_id`` bound
      in ``LogContext``.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, event, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from assessment_kernel.logging_config import LogContext


class UUIDString(TypeDecorator):
    """UUID kept as its canonical 36-character string so SQLite and Postgres agree."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Every table gets a UUID ``id``; aggregate records reuse the aggregate's id."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Abstract base adding insert/update stamps to aggregate tables."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)


@event.listens_for(TrackedBase, "before_insert", propagate=True)
def _stamp_actor(mapper, connection, target):
    if target.created_by is None:
        target.created_by = LogContext.get_all().get("actor_id")
