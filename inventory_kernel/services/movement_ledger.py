"""
MovementLedger -- the single write path for stock.

Responsibility:
    Records one inventory movement for one product: locks the product row,
    guards outbound stock, recomputes the weighted-average cost on inbound
    movements, allocates the movement number, appends the kardex row and
    updates the product's running stock, all inside the caller's
    transaction.

Architecture position:
    Kernel > Services -- imperative shell.  Every business orchestrator
    (purchases, sales, adjustments, transfers, returns, consumption,
    workshop) funnels its stock changes through ``record_movement``.  No
    other code mutates ``Product.current_stock``, ``Product.average_cost``
    or ``Product.movement_count``.

Invariants enforced:
    - Non-negative stock: outbound quantities are checked against the stock
      read under ``SELECT ... FOR UPDATE``, so concurrent writers to the
      same product serialize and cannot both pass the check.
    - Conservation: ``new_stock = previous_stock +/- quantity`` and the
      product row is updated in the same flush as the kardex insert.
    - Ordering: ``product_seq = movement_count + 1`` assigned under the
      product lock; consecutive rows chain ``new_stock -> previous_stock``.
    - Cost basis: only inbound movements move ``average_cost``; the value is
      rounded once, at persist time, to the tenant's cost scale.
    - Lock order: products (ascending id) before the sequence counter.

Failure modes:
    - InvalidQuantityError / InvalidUnitCostError / InvalidMovementTypeError
      for malformed requests (nothing is written).
    - ProductNotFoundError when the product is absent or belongs to another
      tenant; ProductNotStockedError for services.
    - InsufficientStockError when an outbound movement would go negative.
    - SequenceCollisionError when the allocated number collides twice.
    - LockTimeoutError / DeadlockDetectedError (transient) on lock failures.
    - NoActiveTransactionError when called outside a transaction.
    In every failure case the caller must roll back the whole transaction;
    the ledger never commits or rolls back itself.

Audit relevance:
    Each movement is logged as ``movement_recorded`` with its number,
    product, direction, reason, quantity and resulting stock / cost.
    Rejections are logged as ``insufficient_stock_rejected``.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.locking import apply_lock_timeout, translate_lock_errors
from inventory_kernel.db.types import STORAGE_DECIMAL_PLACES, round_cost, to_decimal
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.costing import weighted_average
from inventory_kernel.domain.policy import DEFAULT_POLICY, LedgerPolicy
from inventory_kernel.domain.stock_guard import check_stock
from inventory_kernel.domain.values import (
    MovementDirection,
    MovementReason,
    MovementRecord,
    ReferenceType,
)
from inventory_kernel.exceptions import (
    InvalidMovementTypeError,
    InvalidQuantityError,
    InvalidUnitCostError,
    ProductNotFoundError,
    ProductNotStockedError,
    SequenceCollisionError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.models.product import Product
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.sequence_service import SequenceService

logger = get_logger("services.movement_ledger")

_ZERO = Decimal("0")

# Number allocation is attempted at most this many times per movement
MAX_NUMBER_ATTEMPTS = 2

_NUMBER_CONSTRAINT = "uq_movement_tenant_number"


def _violated_constraint(exc: IntegrityError) -> str | None:
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    # Drivers without diagnostics: fall back to the message text
    if _NUMBER_CONSTRAINT in str(exc.orig):
        return _NUMBER_CONSTRAINT
    return None


class MovementLedger(BaseService):
    """
    Appends kardex movements and maintains product stock and average cost.

    Contract:
        Constructed with the caller's ``Session``; every call must happen
        inside a transaction the caller began.  The ledger flushes but never
        commits, so several movements (the lines of one document) commit or
        roll back together.

    Usage:
        with session.begin():
            ledger = MovementLedger(session, policy)
            ledger.lock_products(tenant_id, [p1, p2])
            ledger.record_movement(tenant_id, p1, "out", "sale", Decimal("2"),
                                   user_id=user_id, reference_type="sale",
                                   reference_id=sale_id)
    """

    def __init__(
        self,
        session: Session,
        policy: LedgerPolicy | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self.policy = policy or DEFAULT_POLICY
        self._clock = clock or SystemClock()
        self._sequences = SequenceService(session, number_width=self.policy.number_width)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_products(
        self, tenant_id: UUID, product_ids: Iterable[UUID]
    ) -> dict[UUID, Product]:
        """
        Lock several products of one tenant in ascending id order.

        Multi-line documents call this before their first movement so that
        two documents touching the same products always acquire the locks
        in the same order.  Re-locking a row this transaction already holds
        is a no-op, so ``record_movement`` can still lock each line.

        Raises:
            ProductNotFoundError: if any id is missing for the tenant.
        """
        self._require_transaction("lock_products")
        wanted = set(product_ids)
        if not wanted:
            return {}

        apply_lock_timeout(self.session, self.policy.lock_timeout_ms)
        with translate_lock_errors(f"products of tenant {tenant_id}"):
            rows = self.session.execute(
                select(Product)
                .where(Product.tenant_id == tenant_id, Product.id.in_(wanted))
                .order_by(Product.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars().all()

        found = {product.id: product for product in rows}
        missing = sorted(wanted - found.keys(), key=str)
        if missing:
            raise ProductNotFoundError(str(missing[0]), str(tenant_id))

        logger.debug(
            "products_locked",
            extra={"tenant_id": str(tenant_id), "count": len(found)},
        )
        return found

    def _lock_product(self, tenant_id: UUID, product_id: UUID) -> Product:
        apply_lock_timeout(self.session, self.policy.lock_timeout_ms)
        with translate_lock_errors(f"product {product_id}"):
            product = self.session.execute(
                select(Product)
                .where(Product.tenant_id == tenant_id, Product.id == product_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id), str(tenant_id))
        return product

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_kind(
        direction: MovementDirection | str, reason: MovementReason | str
    ) -> tuple[MovementDirection, MovementReason]:
        try:
            direction = MovementDirection(direction)
        except ValueError:
            raise InvalidMovementTypeError(str(direction)) from None
        try:
            reason = MovementReason(reason)
        except ValueError:
            raise InvalidMovementTypeError(direction.value, str(reason)) from None
        if reason.direction is not direction:
            raise InvalidMovementTypeError(direction.value, reason.value)
        return direction, reason

    @staticmethod
    def _to_stored_scale(value: Decimal | int | str) -> Decimal | None:
        """
        ``value`` as it will be stored in a Numeric(38, 9) column, or None
        if it is not a finite number that fits.
        """
        try:
            amount = to_decimal(value)
            if not amount.is_finite():
                return None
            return round_cost(amount, STORAGE_DECIMAL_PLACES)
        except InvalidOperation:
            return None

    @classmethod
    def _validate_amounts(
        cls, quantity: Decimal | int | str, unit_cost: Decimal | int | str | None
    ) -> tuple[Decimal, Decimal | None]:
        # Range checks run on the stored value: 1e-10 units would store as 0
        stored_quantity = cls._to_stored_scale(quantity)
        if stored_quantity is None or stored_quantity <= _ZERO:
            raise InvalidQuantityError(quantity)
        stored_cost = None
        if unit_cost is not None:
            stored_cost = cls._to_stored_scale(unit_cost)
            if stored_cost is None or stored_cost < _ZERO:
                raise InvalidUnitCostError(unit_cost)
        return stored_quantity, stored_cost

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def record_movement(
        self,
        tenant_id: UUID,
        product_id: UUID,
        direction: MovementDirection | str,
        reason: MovementReason | str,
        quantity: Decimal | int | str,
        unit_cost: Decimal | int | str | None = None,
        *,
        user_id: UUID,
        reference_type: ReferenceType | str | None = None,
        reference_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        movement_date: date | None = None,
        notes: str | None = None,
    ) -> MovementRecord:
        """
        Record one movement and update the product's stock and cost.

        Preconditions:
            - The session is inside a transaction owned by the caller.
            - ``quantity > 0``; ``unit_cost >= 0`` when given.
            - ``reason`` belongs to ``direction``.

        Postconditions:
            - One new kardex row with ``product_seq = movement_count + 1``.
            - ``current_stock`` moved by exactly ``quantity``.
            - ``average_cost`` recomputed if and only if inbound.
            - Nothing is committed.

        Args:
            unit_cost: Cost per unit.  None means the product's current
                average cost (the usual choice for outbound lines).
            movement_date: Business date; defaults to the clock's today.
                Its year selects the number sequence.

        Returns:
            Frozen MovementRecord of the written row.
        """
        self._require_transaction("record_movement")
        direction, reason = self._validate_kind(direction, reason)
        quantity, unit_cost = self._validate_amounts(quantity, unit_cost)
        if reference_type is not None:
            reference_type = ReferenceType(reference_type)
        movement_date = movement_date or self._clock.today()

        with LogContext.bind(
            tenant_id=str(tenant_id),
            actor_id=str(user_id),
            reference_id=str(reference_id) if reference_id else None,
        ):
            product = self._lock_product(tenant_id, product_id)
            if not product.is_stocked:
                raise ProductNotStockedError(str(product_id), product.product_type.value)

            previous_stock = product.current_stock
            previous_average = product.average_cost

            if direction is MovementDirection.OUT:
                check = check_stock(previous_stock, quantity, product.allow_negative_stock)
                if not check.ok:
                    logger.warning(
                        "insufficient_stock_rejected",
                        extra={
                            "product_id": str(product.id),
                            "sku": product.sku,
                            "available": check.available,
                            "requested": check.requested,
                            "reason": reason.value,
                        },
                    )
                    check.raise_for(product)
                new_stock = previous_stock - quantity
            else:
                new_stock = previous_stock + quantity

            if unit_cost is None:
                unit_cost = previous_average
            unit_cost = round_cost(unit_cost, STORAGE_DECIMAL_PLACES)

            places = self.policy.cost_decimal_places
            if direction is MovementDirection.IN:
                new_average = round_cost(
                    weighted_average(previous_stock, previous_average, quantity, unit_cost),
                    places,
                )
            else:
                new_average = previous_average

            movement = self._insert_movement(
                tenant_id=tenant_id,
                product=product,
                direction=direction,
                reason=reason,
                quantity=quantity,
                unit_cost=unit_cost,
                total_cost=round_cost(quantity * unit_cost, places),
                previous_stock=previous_stock,
                new_stock=new_stock,
                previous_average=previous_average,
                new_average=new_average,
                user_id=user_id,
                reference_type=reference_type,
                reference_id=reference_id,
                warehouse_id=warehouse_id,
                movement_date=movement_date,
                notes=notes,
            )

            product.current_stock = new_stock
            product.movement_count = movement.product_seq
            if direction is MovementDirection.IN:
                product.average_cost = new_average
            product.updated_by_id = user_id
            self.session.flush()

            logger.info(
                "movement_recorded",
                extra={
                    "movement_id": str(movement.id),
                    "movement_number": movement.movement_number,
                    "product_id": str(product.id),
                    "product_seq": movement.product_seq,
                    "direction": direction.value,
                    "reason": reason.value,
                    "quantity": quantity,
                    "unit_cost": unit_cost,
                    "previous_stock": previous_stock,
                    "new_stock": new_stock,
                    "average_cost": new_average,
                },
            )
            return movement.to_dto()

    def _insert_movement(
        self,
        *,
        tenant_id: UUID,
        product: Product,
        direction: MovementDirection,
        reason: MovementReason,
        quantity: Decimal,
        unit_cost: Decimal,
        total_cost: Decimal,
        previous_stock: Decimal,
        new_stock: Decimal,
        previous_average: Decimal,
        new_average: Decimal,
        user_id: UUID,
        reference_type: ReferenceType | None,
        reference_id: UUID | None,
        warehouse_id: UUID | None,
        movement_date: date,
        notes: str | None,
    ) -> InventoryMovement:
        """
        Allocate a number and insert the row inside a savepoint.

        A number collision (counter behind existing rows, e.g. after a
        manual import) rolls back only the savepoint and retries with the
        next number; the second collision is fatal.
        """
        prefix = self.policy.movement_prefix
        number = ""
        for attempt in range(1, MAX_NUMBER_ATTEMPTS + 1):
            number = self._sequences.next_number(tenant_id, prefix, movement_date.year)
            movement = InventoryMovement(
                tenant_id=tenant_id,
                movement_number=number,
                direction=direction,
                reason=reason,
                reference_type=reference_type,
                reference_id=reference_id,
                product_id=product.id,
                warehouse_id=warehouse_id,
                quantity=quantity,
                unit_cost=unit_cost,
                total_cost=total_cost,
                previous_stock=previous_stock,
                new_stock=new_stock,
                previous_average_cost=previous_average,
                new_average_cost=new_average,
                product_seq=product.movement_count + 1,
                user_id=user_id,
                movement_date=movement_date,
                notes=notes,
                created_by_id=user_id,
            )
            savepoint = self.session.begin_nested()
            try:
                self.session.add(movement)
                self.session.flush()
            except IntegrityError as exc:
                savepoint.rollback()
                if _violated_constraint(exc) != _NUMBER_CONSTRAINT:
                    raise
                logger.warning(
                    "movement_number_collision",
                    extra={"movement_number": number, "attempt": attempt},
                )
                continue
            savepoint.commit()
            return movement

        raise SequenceCollisionError(str(tenant_id), number, MAX_NUMBER_ATTEMPTS)
