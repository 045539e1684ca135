"""
Returns Module Service (``inventory_modules.returns.service``).

Responsibility
--------------
Approves returns in both directions:

* supplier returns send goods back to a supplier -- ``supplier_return``
  (out), numbered ``DEVP``;
* customer returns take goods back from a customer -- ``customer_return``
  (in), numbered ``DEVC``.

A return is approved once.  Supplier-return lines normally carry the
purchase cost; customer-return lines without a cost re-enter at the
average cost.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import DocumentPrefix, MovementReason, ReferenceType
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import DocumentLine, PostingResult, StockDocumentPoster

logger = get_logger("modules.returns.service")


class ReturnService:
    """Posts approved supplier and customer returns to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def approve_supplier_return(
        self,
        tenant_id: UUID,
        return_id: UUID,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """Take the returned goods out of stock."""
        try:
            self._poster.begin()
            self._poster.require_no_history(
                tenant_id, ReferenceType.SUPPLIER_RETURN, return_id, "return already approved"
            )
            self._poster.prevalidate_lines(tenant_id, lines)
            result = self._poster.post_lines(
                tenant_id,
                lines,
                reason=MovementReason.SUPPLIER_RETURN,
                reference_type=ReferenceType.SUPPLIER_RETURN,
                reference_id=return_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                document_prefix=DocumentPrefix.SUPPLIER_RETURN,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "supplier_return_approved",
            extra={
                "return_id": str(return_id),
                "document_number": result.document_number,
                "lines": len(result.movements),
            },
        )
        return result

    def approve_customer_return(
        self,
        tenant_id: UUID,
        return_id: UUID,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """Put the returned goods back into stock."""
        try:
            self._poster.begin()
            self._poster.require_no_history(
                tenant_id, ReferenceType.CUSTOMER_RETURN, return_id, "return already approved"
            )
            result = self._poster.post_lines(
                tenant_id,
                lines,
                reason=MovementReason.CUSTOMER_RETURN,
                reference_type=ReferenceType.CUSTOMER_RETURN,
                reference_id=return_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                document_prefix=DocumentPrefix.CUSTOMER_RETURN,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "customer_return_approved",
            extra={
                "return_id": str(return_id),
                "document_number": result.document_number,
                "lines": len(result.movements),
            },
        )
        return result
