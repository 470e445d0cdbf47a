"""
Gap-free numbering for the audit log.

Each named sequence owns one counter row.  Allocating a number locks that
row (``FOR UPDATE`` on backends that honour it), bumps it, and flushes, so
two writers can never be handed the same ``seq``.  Because the bump lives
in the caller's transaction, a rolled-back audit write gives its number
back.

Numbers are never computed from ``max(seq) + 1`` over the audit table: that
read races, and a deleted tail row would let a number be reused.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from assessment_kernel.db.base import Base
from assessment_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    last_issued: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """Allocates numbers inside the caller's transaction; never commits."""

    AUDIT_LOG = "audit_log"

    def __init__(self, session: Session):
        self._session = session

    def _counter(self, name: str, *, lock: bool) -> SequenceCounter | None:
        query = select(SequenceCounter).where(SequenceCounter.name == name)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        return self._session.execute(query).scalar_one_or_none()

    def next_value(self, name: str) -> int:
        counter = self._counter(name, lock=True)
        if counter is None:
            counter = SequenceCounter(name=name, last_issued=0)
            self._session.add(counter)

        counter.last_issued += 1
        self._session.flush()
        logger.debug("sequence_allocated", extra={"sequence_name": name, "value": counter.last_issued})
        return counter.last_issued

    def current_value(self, name: str) -> int | None:
        """Last number issued for ``name``, or None if it was never used."""
        counter = self._counter(name, lock=False)
        return None if counter is None else counter.last_issued
