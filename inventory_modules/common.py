"""
Shared plumbing for the stock-document orchestrators.

Responsibility
--------------
Every module (purchases, sales, adjustments, transfers, returns,
consumption, workshop) turns a business document into one ledger movement
per line.  ``StockDocumentPoster`` holds the steps they share: resolve the
tenant's ledger policy, pre-validate outbound lines, lock the products in
id order, allocate the document number, record the movements and read back
a document's history from the kardex.

Architecture
------------
Layer: **Modules**.  Imports from ``inventory_kernel`` and
``inventory_config``; never the reverse.  The poster flushes only; the
module services own commit / rollback.

Invariants
----------
- Lock order: the document (advisory lock on tenant, reference type and
  id), then products (ascending id), then the document counter, then the
  movement counter.  Every orchestrator goes through ``lock_document`` and
  ``post_lines`` so the order is the same everywhere.
- Document state is derived from the ledger (movements by reference) and
  read only while the document lock is held, so two concurrent callers can
  never both pass a state check for the same document.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_config import get_active_settings, ledger_policy_for
from inventory_config.schema import LedgerSettings
from inventory_kernel.db.locking import advisory_xact_lock, apply_lock_timeout
from inventory_kernel.db.types import to_decimal
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.stock_guard import check_stock
from inventory_kernel.domain.values import (
    DocumentPrefix,
    MovementReason,
    MovementRecord,
    ReferenceType,
)
from inventory_kernel.exceptions import (
    DocumentStateError,
    InsufficientStockError,
    InsufficientStockLinesError,
    ProductNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.product import Product
from inventory_kernel.selectors.kardex_selector import KardexSelector
from inventory_kernel.services.movement_ledger import MovementLedger
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("modules.common")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class DocumentLine:
    """One product line of a stock document."""

    product_id: UUID
    quantity: Decimal
    # None: the product's average cost at posting time
    unit_cost: Decimal | None = None
    warehouse_id: UUID | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PostingResult:
    """What a document posting wrote to the ledger."""

    reference_type: ReferenceType
    reference_id: UUID
    movements: tuple[MovementRecord, ...]
    document_number: str | None = None
    skipped_product_ids: tuple[UUID, ...] = field(default=())

    @property
    def total_cost(self) -> Decimal:
        return sum((m.total_cost for m in self.movements), _ZERO)

    @property
    def movement_numbers(self) -> tuple[str, ...]:
        return tuple(m.movement_number for m in self.movements)


class StockDocumentPoster:
    """
    Posts the lines of one business document through the movement ledger.

    Contract
    --------
    Flush-only.  The module service that owns this poster commits or rolls
    back.
    """

    def __init__(
        self,
        session: Session,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._settings = settings
        self._clock = clock or SystemClock()
        self._selector = KardexSelector(session)

    @property
    def settings(self) -> LedgerSettings:
        if self._settings is None:
            self._settings = get_active_settings()
        return self._settings

    @property
    def clock(self) -> Clock:
        return self._clock

    def begin(self) -> None:
        """Open a transaction unless the session already has one."""
        if not self._session.in_transaction():
            self._session.begin()

    def ledger_for(self, tenant_id: UUID) -> MovementLedger:
        return MovementLedger(
            self._session,
            policy=ledger_policy_for(self.settings, tenant_id),
            clock=self._clock,
        )

    # ------------------------------------------------------------------
    # Document state
    # ------------------------------------------------------------------

    def lock_document(
        self, tenant_id: UUID, reference_type: ReferenceType, reference_id: UUID
    ) -> None:
        """
        Serialize every state change of one document until commit / rollback.

        Call before reading the document's history: the read then sees
        whatever a competing caller committed while this one waited.
        """
        policy = ledger_policy_for(self.settings, tenant_id)
        apply_lock_timeout(self._session, policy.lock_timeout_ms)
        advisory_xact_lock(
            self._session,
            f"stock-document:{tenant_id}:{reference_type.value}:{reference_id}",
        )

    def history(
        self, tenant_id: UUID, reference_type: ReferenceType, reference_id: UUID
    ) -> list[MovementRecord]:
        return self._selector.movements_for_reference(tenant_id, reference_type, reference_id)

    def require_no_history(
        self,
        tenant_id: UUID,
        reference_type: ReferenceType,
        reference_id: UUID,
        reason: str,
    ) -> None:
        """Lock the document and refuse it if it already has movements."""
        self.lock_document(tenant_id, reference_type, reference_id)
        if self.history(tenant_id, reference_type, reference_id):
            raise DocumentStateError(reference_type.value, str(reference_id), reason)

    def _load_products(self, tenant_id: UUID, product_ids: set[UUID]) -> dict[UUID, Product]:
        products = self._session.execute(
            select(Product).where(Product.tenant_id == tenant_id, Product.id.in_(product_ids))
        ).scalars().all()
        found = {p.id: p for p in products}
        missing = sorted(product_ids - found.keys(), key=str)
        if missing:
            raise ProductNotFoundError(str(missing[0]), str(tenant_id))
        return found

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def prevalidate_lines(self, tenant_id: UUID, lines: Sequence[DocumentLine]) -> None:
        """
        Check every outbound line against current stock before locking.

        Quantities of repeated products are summed.  Raises one
        InsufficientStockLinesError naming every short product, so the user
        can fix the whole document at once.  The answer is advisory: the
        ledger re-checks each line under the product lock.
        """
        requested: dict[UUID, Decimal] = defaultdict(lambda: _ZERO)
        for line in lines:
            requested[line.product_id] += to_decimal(line.quantity)

        products = self._load_products(tenant_id, set(requested))
        failures: list[InsufficientStockError] = []
        for product_id in sorted(requested, key=str):
            product = products[product_id]
            if not product.is_stocked:
                continue
            check = check_stock(
                product.current_stock, requested[product_id], product.allow_negative_stock
            )
            if not check.ok:
                failures.append(
                    InsufficientStockError(
                        product_id=str(product.id),
                        product_name=product.name,
                        available=check.available,
                        requested=check.requested,
                        sku=product.sku,
                    )
                )

        if failures:
            logger.warning(
                "document_prevalidation_failed",
                extra={"tenant_id": str(tenant_id), "failed_lines": len(failures)},
            )
            raise InsufficientStockLinesError(failures)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def allocate_number(
        self, tenant_id: UUID, prefix: DocumentPrefix, movement_date: date
    ) -> str:
        policy = ledger_policy_for(self.settings, tenant_id)
        return SequenceService(self._session, number_width=policy.number_width).next_number(
            tenant_id, prefix.value, movement_date.year
        )

    def post_lines(
        self,
        tenant_id: UUID,
        lines: Sequence[DocumentLine],
        *,
        reason: MovementReason,
        reference_type: ReferenceType,
        reference_id: UUID,
        user_id: UUID,
        movement_date: date | None = None,
        notes: str | None = None,
        document_prefix: DocumentPrefix | None = None,
    ) -> PostingResult:
        """
        Record one movement per line, all in the caller's transaction.

        Products are locked up front in id order; service products are
        skipped.  When ``document_prefix`` is given the document number is
        allocated after the product locks and before the first movement.
        """
        if not lines:
            raise DocumentStateError(reference_type.value, str(reference_id), "document has no lines")

        movement_date = movement_date or self._clock.today()
        ledger = self.ledger_for(tenant_id)
        products = ledger.lock_products(tenant_id, {line.product_id for line in lines})

        document_number = None
        if document_prefix is not None:
            document_number = self.allocate_number(tenant_id, document_prefix, movement_date)

        movements: list[MovementRecord] = []
        skipped: list[UUID] = []
        for line in lines:
            if not products[line.product_id].is_stocked:
                skipped.append(line.product_id)
                continue
            movements.append(
                ledger.record_movement(
                    tenant_id,
                    line.product_id,
                    reason.direction,
                    reason,
                    line.quantity,
                    line.unit_cost,
                    user_id=user_id,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    warehouse_id=line.warehouse_id,
                    movement_date=movement_date,
                    notes=line.notes or notes or document_number,
                )
            )

        logger.info(
            "document_posted",
            extra={
                "reference_type": reference_type.value,
                "reference_id": str(reference_id),
                "document_number": document_number,
                "reason": reason.value,
                "movements": len(movements),
                "skipped": len(skipped),
            },
        )
        return PostingResult(
            reference_type=reference_type,
            reference_id=reference_id,
            movements=tuple(movements),
            document_number=document_number,
            skipped_product_ids=tuple(skipped),
        )


def lines_from_movements(
    movements: Sequence[MovementRecord],
    *,
    warehouse_id: UUID | None = None,
) -> list[DocumentLine]:
    """Mirror recorded movements as lines at their original unit cost."""
    return [
        DocumentLine(
            product_id=m.product_id,
            quantity=m.quantity,
            unit_cost=m.unit_cost,
            warehouse_id=warehouse_id if warehouse_id is not None else m.warehouse_id,
        )
        for m in movements
    ]
