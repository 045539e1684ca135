"""
KardexSelector -- read side of the movement ledger.

Responsibility:
    Kardex reports, filtered movement listings, dashboard counters, the
    movements of one business document, and replay verification of a
    product's stock against its kardex.

Architecture position:
    Kernel > Selectors.  Read-only; every query is filtered by tenant.

Invariants enforced:
    - Kardex order is (movement_date, product_seq).  ``product_seq`` is the
      authoritative order within a product, so rows with equal business
      dates never reorder between calls.
    - Replay from zero in ``product_seq`` order reproduces the product's
      ``current_stock``; ``verify_product`` reports every place it does not.

Failure modes:
    - ProductNotFoundError for a product that is absent or belongs to
      another tenant.
    - ValueError for an invalid page, limit or sort column.
"""

from collections.abc import Iterator
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, or_, select

from inventory_kernel.domain.values import (
    KardexLine,
    KardexSummary,
    MovementDirection,
    MovementFilter,
    MovementPage,
    MovementRecord,
    MovementStats,
    ReferenceType,
    ReplayResult,
)
from inventory_kernel.exceptions import ProductNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.models.product import Product
from inventory_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.kardex")

_ZERO = Decimal("0")

MAX_PAGE_SIZE = 500

_SORT_COLUMNS = {
    "movement_date": InventoryMovement.movement_date,
    "movement_number": InventoryMovement.movement_number,
    "created_at": InventoryMovement.created_at,
    "quantity": InventoryMovement.quantity,
}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class KardexSelector(BaseSelector):
    """
    Selector for kardex and movement queries.

    Guarantees:
        - Read-only: no mutations are performed.
        - Tenant isolation: every statement carries ``tenant_id``.
    """

    def _get_product(self, tenant_id: UUID, product_id: UUID) -> Product:
        product = self.session.execute(
            select(Product).where(Product.tenant_id == tenant_id, Product.id == product_id)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id), str(tenant_id))
        return product

    @staticmethod
    def _to_line(movement: InventoryMovement) -> KardexLine:
        return KardexLine(
            movement_id=movement.id,
            movement_number=movement.movement_number,
            product_seq=movement.product_seq,
            movement_date=movement.movement_date,
            direction=MovementDirection(movement.direction),
            reason=movement.reason,
            quantity=movement.quantity,
            unit_cost=movement.unit_cost,
            total_cost=movement.total_cost,
            previous_stock=movement.previous_stock,
            new_stock=movement.new_stock,
            average_cost=movement.new_average_cost,
            reference_type=movement.reference_type,
            reference_id=movement.reference_id,
            user_id=movement.user_id,
            notes=movement.notes,
        )

    # ------------------------------------------------------------------
    # Kardex
    # ------------------------------------------------------------------

    def get_kardex(
        self,
        tenant_id: UUID,
        product_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> Iterator[KardexLine]:
        """
        Yield the product's kardex lines ordered by (movement_date, product_seq).

        Both dates are inclusive.  Each call issues a fresh query, so the
        result can be consumed again by calling again.

        Raises:
            ProductNotFoundError: eagerly, before the first line is yielded.
        """
        self._get_product(tenant_id, product_id)

        stmt = select(InventoryMovement).where(
            InventoryMovement.tenant_id == tenant_id,
            InventoryMovement.product_id == product_id,
        )
        if start_date is not None:
            stmt = stmt.where(InventoryMovement.movement_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(InventoryMovement.movement_date <= end_date)
        stmt = stmt.order_by(InventoryMovement.movement_date, InventoryMovement.product_seq)

        movements = self.session.execute(stmt).scalars().all()
        return iter([self._to_line(m) for m in movements])

    def kardex_summary(
        self,
        tenant_id: UUID,
        product_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> KardexSummary:
        """
        Totals over the same window as ``get_kardex``.

        ``ending_stock`` is the ``new_stock`` of the last line in the window
        (zero for an empty window); ``average_inbound_cost`` is the inbound
        cost divided by the inbound quantity (zero when nothing came in).
        """
        count = 0
        total_in = _ZERO
        total_out = _ZERO
        inbound_cost = _ZERO
        ending_stock = _ZERO
        for line in self.get_kardex(tenant_id, product_id, start_date, end_date):
            count += 1
            if line.direction is MovementDirection.IN:
                total_in += line.quantity
                inbound_cost += line.total_cost
            else:
                total_out += line.quantity
            ending_stock = line.new_stock

        return KardexSummary(
            product_id=product_id,
            movement_count=count,
            total_in=total_in,
            total_out=total_out,
            inbound_cost=inbound_cost,
            ending_stock=ending_stock,
            average_inbound_cost=inbound_cost / total_in if total_in > _ZERO else _ZERO,
        )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_movements(
        self,
        tenant_id: UUID,
        criteria: MovementFilter | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> MovementPage:
        """Filtered, sorted, paginated listing of a tenant's movements."""
        criteria = criteria or MovementFilter()
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
        sort_column = _SORT_COLUMNS.get(criteria.sort_by)
        if sort_column is None:
            raise ValueError(
                f"cannot sort by {criteria.sort_by!r}; expected one of {sorted(_SORT_COLUMNS)}"
            )

        conditions = [InventoryMovement.tenant_id == tenant_id]
        if criteria.product_id is not None:
            conditions.append(InventoryMovement.product_id == criteria.product_id)
        if criteria.direction is not None:
            conditions.append(InventoryMovement.direction == MovementDirection(criteria.direction))
        if criteria.reason is not None:
            conditions.append(InventoryMovement.reason == criteria.reason)
        if criteria.reference_type is not None:
            conditions.append(InventoryMovement.reference_type == criteria.reference_type)
        if criteria.reference_id is not None:
            conditions.append(InventoryMovement.reference_id == criteria.reference_id)
        if criteria.start_date is not None:
            conditions.append(InventoryMovement.movement_date >= criteria.start_date)
        if criteria.end_date is not None:
            conditions.append(InventoryMovement.movement_date <= criteria.end_date)
        if criteria.search:
            pattern = f"%{_escape_like(criteria.search)}%"
            conditions.append(
                or_(
                    InventoryMovement.movement_number.ilike(pattern, escape="\\"),
                    InventoryMovement.notes.ilike(pattern, escape="\\"),
                )
            )

        total = self.session.execute(
            select(func.count()).select_from(InventoryMovement).where(*conditions)
        ).scalar_one()

        primary = sort_column.desc() if criteria.descending else sort_column.asc()
        movements = self.session.execute(
            select(InventoryMovement)
            .where(*conditions)
            .order_by(primary, InventoryMovement.movement_number)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()

        return MovementPage(
            items=tuple(m.to_dto() for m in movements),
            page=page,
            limit=limit,
            total=total,
        )

    def movements_for_reference(
        self,
        tenant_id: UUID,
        reference_type: ReferenceType | str,
        reference_id: UUID,
    ) -> list[MovementRecord]:
        """All movements written for one business document, in write order."""
        movements = self.session.execute(
            select(InventoryMovement)
            .where(
                InventoryMovement.tenant_id == tenant_id,
                InventoryMovement.reference_type == ReferenceType(reference_type),
                InventoryMovement.reference_id == reference_id,
            )
            .order_by(InventoryMovement.created_at, InventoryMovement.movement_number)
        ).scalars().all()
        return [m.to_dto() for m in movements]

    def movement_stats(self, tenant_id: UUID, today: date) -> MovementStats:
        """Counts for ``today`` and quantities since the first of its month."""
        month_start = today.replace(day=1)

        movements_today = self.session.execute(
            select(func.count())
            .select_from(InventoryMovement)
            .where(
                InventoryMovement.tenant_id == tenant_id,
                InventoryMovement.movement_date == today,
            )
        ).scalar_one()

        rows = self.session.execute(
            select(
                InventoryMovement.direction,
                func.count(),
                func.coalesce(func.sum(InventoryMovement.quantity), 0),
            )
            .where(
                InventoryMovement.tenant_id == tenant_id,
                InventoryMovement.movement_date >= month_start,
                InventoryMovement.movement_date <= today,
            )
            .group_by(InventoryMovement.direction)
        ).all()

        by_direction = {MovementDirection(d): (n, Decimal(q)) for d, n, q in rows}
        count_in, qty_in = by_direction.get(MovementDirection.IN, (0, _ZERO))
        count_out, qty_out = by_direction.get(MovementDirection.OUT, (0, _ZERO))

        return MovementStats(
            movements_today=movements_today,
            movements_this_month=count_in + count_out,
            quantity_in_this_month=qty_in,
            quantity_out_this_month=qty_out,
        )

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify_product(self, tenant_id: UUID, product_id: UUID) -> ReplayResult:
        """
        Replay the product's kardex from zero in ``product_seq`` order.

        Checks that sequence numbers are contiguous from 1, that each row
        chains from the previous one (stock and average cost), that each
        row's arithmetic is right, and that the final stock and count match
        the product row.
        """
        product = self._get_product(tenant_id, product_id)
        movements = self.session.execute(
            select(InventoryMovement)
            .where(
                InventoryMovement.tenant_id == tenant_id,
                InventoryMovement.product_id == product_id,
            )
            .order_by(InventoryMovement.product_seq)
        ).scalars().all()

        breaks: list[str] = []
        running = _ZERO
        last_average: Decimal | None = None
        for expected_seq, m in enumerate(movements, start=1):
            label = f"{m.movement_number} (seq {m.product_seq})"
            if m.product_seq != expected_seq:
                breaks.append(f"{label}: expected seq {expected_seq}")
            if m.previous_stock != running:
                breaks.append(
                    f"{label}: previous_stock {m.previous_stock} != replayed {running}"
                )
            if last_average is not None and m.previous_average_cost != last_average:
                breaks.append(
                    f"{label}: previous_average_cost {m.previous_average_cost} "
                    f"!= prior new_average_cost {last_average}"
                )
            expected_new = m.previous_stock + m.quantity * MovementDirection(m.direction).sign
            if m.new_stock != expected_new:
                breaks.append(f"{label}: new_stock {m.new_stock} != {expected_new}")
            running = running + m.quantity * MovementDirection(m.direction).sign
            last_average = m.new_average_cost

        if product.movement_count != len(movements):
            breaks.append(
                f"product movement_count {product.movement_count} != {len(movements)} movements"
            )

        result = ReplayResult(
            product_id=product_id,
            movement_count=len(movements),
            replayed_stock=running,
            recorded_stock=product.current_stock,
            breaks=tuple(breaks),
        )
        if not result.ok:
            logger.warning(
                "kardex_replay_mismatch",
                extra={
                    "product_id": str(product_id),
                    "replayed_stock": running,
                    "recorded_stock": product.current_stock,
                    "breaks": len(breaks),
                },
            )
        return result
