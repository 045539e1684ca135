"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Common constructor and the flush-only contract: services receive the
    caller's ``Session``, flush inside its transaction and never commit or
    roll back.

Architecture position:
    Kernel > Services.  Read-only access belongs in ``selectors/``.

Failure modes:
    - A subclass that commits breaks the atomicity of multi-line documents:
      a failure on line N would leave lines 1..N-1 persisted.
"""

from abc import ABC

from sqlalchemy.orm import Session

from inventory_kernel.exceptions import NoActiveTransactionError


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        The service never calls ``session.commit()`` or
        ``session.rollback()``; the caller controls transaction boundaries.
    """

    def __init__(self, session: Session):
        self.session = session

    def _require_transaction(self, operation: str) -> None:
        """Raise NoActiveTransactionError unless the session has begun a transaction."""
        if not self.session.in_transaction():
            raise NoActiveTransactionError(operation)
