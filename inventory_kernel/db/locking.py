"""
Module: inventory_kernel.db.locking
Responsibility: Lock plumbing for the ledger, the sequence allocator and
    the document orchestrators.  Takes transaction-scoped advisory locks,
    applies a transaction-local lock timeout and turns driver lock failures
    into typed kernel exceptions.
Architecture position: Kernel > DB.  May import from exceptions and
    logging_config only.

Failure modes translated (PostgreSQL SQLSTATE):
    55P03 lock_not_available  -> LockTimeoutError
    57014 query_canceled      -> LockTimeoutError (statement_timeout hit)
    40P01 deadlock_detected   -> DeadlockDetectedError

Any other database error propagates unchanged.  In every case the caller's
transaction is unusable afterwards and must be rolled back as a whole.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import DeadlockDetectedError, LockTimeoutError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.locking")

LOCK_NOT_AVAILABLE = "55P03"
QUERY_CANCELED = "57014"
DEADLOCK_DETECTED = "40P01"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # psycopg2 exposes .pgcode, psycopg 3 exposes .sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


@contextmanager
def translate_lock_errors(resource: str) -> Iterator[None]:
    """
    Re-raise lock failures inside the block as ConcurrencyError subclasses.

    Args:
        resource: Human-readable name of what was being locked
            (e.g. "product 1b2c..." or "sequence MOV/2026").
    """
    try:
        yield
    except DBAPIError as exc:
        state = _sqlstate(exc)
        if state in (LOCK_NOT_AVAILABLE, QUERY_CANCELED):
            logger.warning(
                "lock_timeout",
                extra={"resource": resource, "sqlstate": state},
            )
            raise LockTimeoutError(resource, str(exc.orig).strip()) from exc
        if state == DEADLOCK_DETECTED:
            logger.warning(
                "deadlock_detected",
                extra={"resource": resource, "sqlstate": state},
            )
            raise DeadlockDetectedError(resource, str(exc.orig).strip()) from exc
        raise


def apply_lock_timeout(session: Session, timeout_ms: int | None) -> None:
    """
    Set ``lock_timeout`` for the rest of the current transaction.

    ``SET LOCAL`` reverts automatically at commit or rollback, so the
    setting never leaks to other work on the pooled connection.  ``None``
    leaves the server default in place.
    """
    if timeout_ms is None:
        return
    if timeout_ms < 0:
        raise ValueError(f"lock timeout must be >= 0 ms, got {timeout_ms}")
    session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))


def advisory_xact_lock(session: Session, key: str) -> None:
    """
    Block until this transaction holds the advisory lock named ``key``.

    The lock is released at commit or rollback.  Two keys that hash alike
    only serialize more than needed; they never share a lock holder.
    """
    with translate_lock_errors(f"advisory lock {key}"):
        session.execute(text("SELECT pg_advisory_xact_lock(hashtext(:key))"), {"key": key})
