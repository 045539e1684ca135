"""
SequenceService -- tenant-scoped document number allocation.

Responsibility:
    Hands out the next counter value for a ``(tenant, prefix, year)`` key
    and renders it as a document number (``MOV-2026-00042``).  Uses a
    dedicated counter table; the row for a key is incremented with a single
    atomic ``UPDATE ... RETURNING`` which takes the row lock until the
    caller's transaction ends.

Architecture position:
    Kernel > Services.  Called by MovementLedger (prefix MOV) and by the
    orchestrators for their own document numbers.

Invariants enforced:
    - Numbers are unique per (tenant, prefix, year) and strictly increasing
      in commit order.  The aggregate-max-plus-one pattern is never used.
    - The increment is transactional: rolling back the caller's transaction
      returns the value, so committed numbers are gap-free.

Failure modes:
    - IntegrityError on first use when two transactions create the same
      counter row: handled by rolling back the savepoint and falling back
      to the atomic update (which then waits for the winner's row lock).
    - Lock wait exceeding ``lock_timeout``: LockTimeoutError.
    - Deadlock: DeadlockDetectedError.  Callers avoid it by locking
      products before allocating numbers.

Audit relevance:
    Every allocation is logged at DEBUG level with its key and value.
"""

from uuid import UUID

from sqlalchemy import Integer, String, UniqueConstraint, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from inventory_kernel.db.base import Base
from inventory_kernel.db.locking import translate_lock_errors
from inventory_kernel.domain.numbering import DEFAULT_WIDTH, format_document_number
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    One counter row per (tenant, prefix, year).

    ``current_value`` is the last value handed out; the next allocation
    returns ``current_value + 1``.
    """

    __tablename__ = "document_sequences"

    __table_args__ = (
        UniqueConstraint("tenant_id", "prefix", "year", name="uq_document_sequence_key"),
    )

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)

    prefix: Mapped[str] = mapped_column(String(10), nullable=False)

    year: Mapped[int] = mapped_column(Integer, nullable=False)

    current_value: Mapped[int] = mapped_column(nullable=False, default=0)


class SequenceService:
    """
    Service for allocating transactional document numbers.

    Contract:
        Must be called inside the caller's transaction.  Does NOT commit.

    Usage:
        with session.begin():
            number = SequenceService(session).next_number(tenant_id, "AJ", 2026)
            # If the transaction rolls back, the number is not consumed
    """

    def __init__(self, session: Session, number_width: int = DEFAULT_WIDTH):
        self._session = session
        self._number_width = number_width

    def _increment(self, tenant_id: UUID, prefix: str, year: int) -> int | None:
        stmt = (
            update(SequenceCounter)
            .where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.prefix == prefix,
                SequenceCounter.year == year,
            )
            .values(current_value=SequenceCounter.current_value + 1)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        )
        with translate_lock_errors(f"sequence {prefix}/{year}"):
            return self._session.execute(stmt).scalar_one_or_none()

    def next_value(self, tenant_id: UUID, prefix: str, year: int) -> int:
        """
        Allocate the next counter value for ``(tenant_id, prefix, year)``.

        Postconditions:
            - Returns an integer >= 1, strictly greater than every value
              previously returned for the same key.
            - The counter row stays locked until the transaction completes.
        """
        value = self._increment(tenant_id, prefix, year)

        if value is None:
            # First use of this key.  Savepoint so a losing race does not
            # poison the caller's transaction.
            savepoint = self._session.begin_nested()
            try:
                self._session.add(
                    SequenceCounter(
                        tenant_id=tenant_id, prefix=prefix, year=year, current_value=1
                    )
                )
                self._session.flush()
                savepoint.commit()
                value = 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"tenant_id": str(tenant_id), "prefix": prefix, "year": year},
                )
                savepoint.rollback()
                value = self._increment(tenant_id, prefix, year)
                if value is None:
                    raise

        logger.debug(
            "sequence_allocated",
            extra={
                "tenant_id": str(tenant_id),
                "prefix": prefix,
                "year": year,
                "value": value,
            },
        )
        return value

    def next_number(self, tenant_id: UUID, prefix: str, year: int) -> str:
        """Allocate the next value and format it as ``{PREFIX}-{YYYY}-{NNNNN}``."""
        value = self.next_value(tenant_id, prefix, year)
        return format_document_number(prefix, year, value, width=self._number_width)

    def current_value(self, tenant_id: UUID, prefix: str, year: int) -> int | None:
        """Last value handed out for the key, or None if never used.  Does not lock."""
        return self._session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.prefix == prefix,
                SequenceCounter.year == year,
            )
        ).scalar_one_or_none()
