"""
Transfers Module Service (``inventory_modules.transfers.service``).

Responsibility
--------------
Moves goods between warehouses as three ledger steps:

* ``send_transfer``    -- ``transfer_send`` (out) per line at average cost,
  tagged with the origin warehouse.  Allocates a ``TRANS`` number.
* ``receive_transfer`` -- ``transfer_receive`` (in) mirroring every sent
  movement at its original unit cost, tagged with the destination.
* ``cancel_transfer``  -- ``transfer_cancel`` (in) mirroring every sent
  movement, returning the goods to stock.

Stock is one scalar per product, so a received transfer nets to zero; the
pair of movements keeps the kardex explaining where the goods went.

Invariants
----------
- State comes from the transfer's movements: receive and cancel both
  require a prior send, and at most one of them may ever happen.
- Cancellation is a compensating inbound movement, never an edit or a
  direct stock update.
"""

from __future__ import annotations

from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.values import (
    DocumentPrefix,
    MovementReason,
    MovementRecord,
    ReferenceType,
)
from inventory_kernel.exceptions import DocumentStateError
from inventory_kernel.logging_config import get_logger
from inventory_modules.common import (
    DocumentLine,
    PostingResult,
    StockDocumentPoster,
    lines_from_movements,
)

logger = get_logger("modules.transfers.service")

_CLOSING_REASONS = frozenset({MovementReason.TRANSFER_RECEIVE, MovementReason.TRANSFER_CANCEL})


class TransferService:
    """Posts transfer send / receive / cancel steps to the movement ledger."""

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._poster = StockDocumentPoster(session, settings, clock)

    def _sent_and_open(self, tenant_id: UUID, transfer_id: UUID) -> list[MovementRecord]:
        self._poster.lock_document(tenant_id, ReferenceType.TRANSFER, transfer_id)
        history = self._poster.history(tenant_id, ReferenceType.TRANSFER, transfer_id)
        sent = [m for m in history if m.reason is MovementReason.TRANSFER_SEND]
        if not sent:
            raise DocumentStateError(
                ReferenceType.TRANSFER.value, str(transfer_id), "transfer has not been sent"
            )
        closed = [m for m in history if m.reason in _CLOSING_REASONS]
        if closed:
            raise DocumentStateError(
                ReferenceType.TRANSFER.value,
                str(transfer_id),
                f"transfer already closed by {closed[0].reason.value}",
            )
        return sent

    def send_transfer(
        self,
        tenant_id: UUID,
        transfer_id: UUID,
        lines: Sequence[DocumentLine],
        user_id: UUID,
        from_warehouse_id: UUID | None = None,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """Ship the lines out of the origin warehouse."""
        if from_warehouse_id is not None:
            lines = [
                DocumentLine(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_cost=line.unit_cost,
                    warehouse_id=line.warehouse_id or from_warehouse_id,
                    notes=line.notes,
                )
                for line in lines
            ]
        try:
            self._poster.begin()
            self._poster.require_no_history(
                tenant_id, ReferenceType.TRANSFER, transfer_id, "transfer already sent"
            )
            self._poster.prevalidate_lines(tenant_id, lines)
            result = self._poster.post_lines(
                tenant_id,
                lines,
                reason=MovementReason.TRANSFER_SEND,
                reference_type=ReferenceType.TRANSFER,
                reference_id=transfer_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                document_prefix=DocumentPrefix.TRANSFER,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "transfer_sent",
            extra={
                "transfer_id": str(transfer_id),
                "document_number": result.document_number,
                "lines": len(result.movements),
            },
        )
        return result

    def receive_transfer(
        self,
        tenant_id: UUID,
        transfer_id: UUID,
        user_id: UUID,
        to_warehouse_id: UUID | None = None,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """Book every sent line into the destination warehouse."""
        try:
            self._poster.begin()
            sent = self._sent_and_open(tenant_id, transfer_id)
            result = self._poster.post_lines(
                tenant_id,
                lines_from_movements(sent, warehouse_id=to_warehouse_id),
                reason=MovementReason.TRANSFER_RECEIVE,
                reference_type=ReferenceType.TRANSFER,
                reference_id=transfer_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "transfer_received",
            extra={"transfer_id": str(transfer_id), "lines": len(result.movements)},
        )
        return result

    def cancel_transfer(
        self,
        tenant_id: UUID,
        transfer_id: UUID,
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> PostingResult:
        """
        Return the goods of a sent, unreceived transfer to stock.

        Raises:
            DocumentStateError: the transfer was never sent, or was already
                received or cancelled.
        """
        try:
            self._poster.begin()
            sent = self._sent_and_open(tenant_id, transfer_id)
            result = self._poster.post_lines(
                tenant_id,
                lines_from_movements(sent),
                reason=MovementReason.TRANSFER_CANCEL,
                reference_type=ReferenceType.TRANSFER,
                reference_id=transfer_id,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes or "Transfer cancelled",
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "transfer_cancelled",
            extra={"transfer_id": str(transfer_id), "lines": len(result.movements)},
        )
        return result
