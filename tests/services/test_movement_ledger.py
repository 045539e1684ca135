"""
MovementLedger.record_movement against PostgreSQL.

Covers the worked example of a product's life (receipts blending the
average, a rejected oversell, an exact sell-out), validation of the
request, tenant isolation and atomicity with the caller's transaction.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from inventory_kernel.domain.policy import LedgerPolicy
from inventory_kernel.domain.values import (
    MovementDirection,
    MovementReason,
    ProductType,
    ReferenceType,
)
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidMovementTypeError,
    InvalidQuantityError,
    InvalidUnitCostError,
    NoActiveTransactionError,
    ProductNotFoundError,
    ProductNotStockedError,
)
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.models.product import Product
from inventory_kernel.services.movement_ledger import MovementLedger

pytestmark = pytest.mark.postgres


def _receive(ledger, tenant_id, product, qty, cost, user_id, **kwargs):
    return ledger.record_movement(
        tenant_id, product.id, "in", "purchase_receipt", Decimal(qty), Decimal(cost),
        user_id=user_id, **kwargs,
    )


def _sell(ledger, tenant_id, product, qty, user_id, **kwargs):
    return ledger.record_movement(
        tenant_id, product.id, MovementDirection.OUT, MovementReason.SALE, Decimal(qty),
        user_id=user_id, **kwargs,
    )


class TestProductLifecycle:
    """0 -> +10@100 -> +5@130 -> -20 rejected -> -15 -> 0."""

    def test_first_receipt_sets_average(self, session, ledger, tenant_id, product, test_user_id):
        record = _receive(ledger, tenant_id, product, "10", "100", test_user_id)

        assert record.previous_stock == Decimal("0")
        assert record.new_stock == Decimal("10")
        assert record.new_average_cost == Decimal("100.00")
        assert record.total_cost == Decimal("1000.00")
        assert record.product_seq == 1
        session.refresh(product)
        assert product.current_stock == Decimal("10")
        assert product.average_cost == Decimal("100")
        assert product.movement_count == 1

    def test_second_receipt_blends_average(self, session, ledger, tenant_id, product, test_user_id):
        _receive(ledger, tenant_id, product, "10", "100", test_user_id)
        record = _receive(ledger, tenant_id, product, "5", "130", test_user_id)

        assert record.previous_stock == Decimal("10")
        assert record.new_stock == Decimal("15")
        assert record.previous_average_cost == Decimal("100")
        assert record.new_average_cost == Decimal("110.00")
        session.refresh(product)
        assert product.average_cost == Decimal("110")

    def test_oversell_is_rejected_and_writes_nothing(
        self, session, ledger, tenant_id, product, test_user_id
    ):
        _receive(ledger, tenant_id, product, "10", "100", test_user_id)
        _receive(ledger, tenant_id, product, "5", "130", test_user_id)

        with pytest.raises(InsufficientStockError) as exc_info:
            _sell(ledger, tenant_id, product, "20", test_user_id)

        err = exc_info.value
        assert err.available == Decimal("15")
        assert err.requested == Decimal("20")
        assert err.shortfall == Decimal("5")
        assert err.sku == product.sku
        session.refresh(product)
        assert product.current_stock == Decimal("15")
        assert product.movement_count == 2

    def test_sell_out_keeps_average(self, session, ledger, tenant_id, product, test_user_id):
        _receive(ledger, tenant_id, product, "10", "100", test_user_id)
        _receive(ledger, tenant_id, product, "5", "130", test_user_id)
        record = _sell(ledger, tenant_id, product, "15", test_user_id)

        assert record.new_stock == Decimal("0")
        assert record.unit_cost == Decimal("110")
        assert record.total_cost == Decimal("1650.00")
        assert record.new_average_cost == Decimal("110")
        session.refresh(product)
        assert product.current_stock == Decimal("0")
        assert product.average_cost == Decimal("110")

    def test_kardex_chain_is_continuous(self, session, ledger, tenant_id, product, test_user_id):
        records = [
            _receive(ledger, tenant_id, product, "10", "100", test_user_id),
            _receive(ledger, tenant_id, product, "5", "130", test_user_id),
            _sell(ledger, tenant_id, product, "15", test_user_id),
        ]
        assert [r.product_seq for r in records] == [1, 2, 3]
        for before, after in zip(records, records[1:]):
            assert after.previous_stock == before.new_stock
            assert after.previous_average_cost == before.new_average_cost


class TestMovementFields:
    def test_number_uses_business_date_year(self, ledger, tenant_id, product, test_user_id):
        record = _receive(
            ledger, tenant_id, product, "1", "5", test_user_id, movement_date=date(2025, 12, 31)
        )
        assert record.movement_number == "MOV-2025-00001"
        assert record.movement_date == date(2025, 12, 31)

    def test_defaults_to_clock_date(self, ledger, tenant_id, product, test_user_id, business_date):
        record = _receive(ledger, tenant_id, product, "1", "5", test_user_id)
        assert record.movement_date == business_date
        assert record.movement_number == f"MOV-{business_date.year}-00001"

    def test_numbers_are_sequential_per_tenant(
        self, ledger, tenant_id, product_factory, test_user_id
    ):
        a, b = product_factory(), product_factory()
        first = _receive(ledger, tenant_id, a, "1", "5", test_user_id)
        second = _receive(ledger, tenant_id, b, "1", "5", test_user_id)
        assert first.movement_number.endswith("-00001")
        assert second.movement_number.endswith("-00002")

    def test_reference_and_provenance_are_stored(
        self, session, ledger, tenant_id, product, test_user_id
    ):
        purchase_id, warehouse_id = uuid4(), uuid4()
        record = _receive(
            ledger, tenant_id, product, "2", "3.50", test_user_id,
            reference_type=ReferenceType.PURCHASE, reference_id=purchase_id,
            warehouse_id=warehouse_id, notes="dock 4",
        )
        row = session.get(InventoryMovement, record.id)
        assert row.reference_type is ReferenceType.PURCHASE
        assert row.reference_id == purchase_id
        assert row.warehouse_id == warehouse_id
        assert row.user_id == test_user_id
        assert row.created_by_id == test_user_id
        assert row.notes == "dock 4"
        assert row.reason is MovementReason.PURCHASE_RECEIPT

    def test_costs_rounded_to_policy_scale(self, session, tenant_id, product, test_user_id,
                                           deterministic_clock):
        ledger = MovementLedger(session, LedgerPolicy(cost_decimal_places=0), deterministic_clock)
        _receive(ledger, tenant_id, product, "1", "1", test_user_id)
        record = _receive(ledger, tenant_id, product, "2", "2", test_user_id)
        # 5/3 rounds half-up to 2 at zero places
        assert record.new_average_cost == Decimal("2")

    def test_inbound_without_cost_keeps_average(self, ledger, tenant_id, product, test_user_id):
        _receive(ledger, tenant_id, product, "4", "25", test_user_id)
        record = ledger.record_movement(
            tenant_id, product.id, "in", "adjustment_in", Decimal("6"), user_id=test_user_id
        )
        assert record.unit_cost == Decimal("25")
        assert record.new_average_cost == Decimal("25.00")


class TestNegativeStock:
    def test_allowed_products_may_go_negative(self, ledger, tenant_id, product_factory, test_user_id):
        product = product_factory(allow_negative_stock=True)
        record = _sell(ledger, tenant_id, product, "3", test_user_id)
        assert record.new_stock == Decimal("-3")

    def test_receipt_that_leaves_stock_negative_uses_incoming_cost(
        self, ledger, tenant_id, product_factory, test_user_id
    ):
        product = product_factory(allow_negative_stock=True)
        _sell(ledger, tenant_id, product, "5", test_user_id)
        record = _receive(ledger, tenant_id, product, "2", "40", test_user_id)
        assert record.new_stock == Decimal("-3")
        assert record.new_average_cost == Decimal("40.00")


class TestValidation:
    def test_zero_quantity(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidQuantityError):
            _receive(ledger, tenant_id, product, "0", "1", test_user_id)

    def test_negative_quantity(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidQuantityError):
            _sell(ledger, tenant_id, product, "-1", test_user_id)

    def test_negative_unit_cost(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidUnitCostError):
            _receive(ledger, tenant_id, product, "1", "-0.01", test_user_id)

    def test_quantity_below_stored_precision(self, session, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidQuantityError):
            _receive(ledger, tenant_id, product, "0.0000000001", "1", test_user_id)
        assert session.execute(
            select(func.count()).select_from(InventoryMovement).where(
                InventoryMovement.product_id == product.id
            )
        ).scalar_one() == 0

    def test_smallest_stored_quantity_is_accepted(self, ledger, tenant_id, product, test_user_id):
        record = _receive(ledger, tenant_id, product, "0.000000001", "1", test_user_id)
        assert record.quantity == Decimal("0.000000001")
        assert record.new_stock == Decimal("0.000000001")

    def test_quantity_is_stored_at_nine_places(self, ledger, tenant_id, product, test_user_id):
        record = _receive(ledger, tenant_id, product, "1.0000000004", "1", test_user_id)
        assert record.quantity == Decimal("1")

    def test_malformed_quantity(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidQuantityError) as exc_info:
            ledger.record_movement(
                tenant_id, product.id, "in", "adjustment_in", "abc", user_id=test_user_id
            )
        assert exc_info.value.quantity == "abc"
        assert exc_info.value.code == "INVALID_QUANTITY"

    def test_malformed_unit_cost(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidUnitCostError):
            ledger.record_movement(
                tenant_id, product.id, "in", "adjustment_in", "1", "ten", user_id=test_user_id
            )

    def test_non_finite_amounts(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidQuantityError):
            _receive(ledger, tenant_id, product, "Infinity", "1", test_user_id)
        with pytest.raises(InvalidUnitCostError):
            _receive(ledger, tenant_id, product, "1", "NaN", test_user_id)

    def test_quantity_too_large_for_the_column(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidQuantityError):
            _receive(ledger, tenant_id, product, "1" + "0" * 30, "1", test_user_id)

    def test_unknown_direction(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidMovementTypeError):
            ledger.record_movement(
                tenant_id, product.id, "sideways", "sale", Decimal("1"), user_id=test_user_id
            )

    def test_reason_of_the_other_direction(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InvalidMovementTypeError) as exc_info:
            ledger.record_movement(
                tenant_id, product.id, "in", "sale", Decimal("1"), user_id=test_user_id
            )
        assert exc_info.value.reason == "sale"

    def test_float_quantities_are_refused(self, ledger, tenant_id, product, test_user_id):
        with pytest.raises(TypeError):
            ledger.record_movement(
                tenant_id, product.id, "in", "adjustment_in", 1.5, user_id=test_user_id
            )

    def test_service_products_carry_no_stock(self, ledger, tenant_id, product_factory, test_user_id):
        labour = product_factory(product_type=ProductType.SERVICE)
        with pytest.raises(ProductNotStockedError):
            _receive(ledger, tenant_id, labour, "1", "10", test_user_id)

    def test_unknown_product(self, session, ledger, tenant_id, test_user_id):
        session.begin()
        with pytest.raises(ProductNotFoundError):
            ledger.record_movement(
                tenant_id, uuid4(), "in", "adjustment_in", Decimal("1"), user_id=test_user_id
            )

    def test_requires_caller_transaction(self, session, test_user_id, tenant_id):
        session.commit()
        assert not session.in_transaction()
        with pytest.raises(NoActiveTransactionError):
            MovementLedger(session).record_movement(
                tenant_id, uuid4(), "in", "adjustment_in", Decimal("1"), user_id=test_user_id
            )


class TestTenantIsolation:
    def test_other_tenant_cannot_move_product(
        self, session, ledger, product, other_tenant_id, test_user_id
    ):
        with pytest.raises(ProductNotFoundError):
            _receive(ledger, other_tenant_id, product, "1", "1", test_user_id)
        session.refresh(product)
        assert product.movement_count == 0

    def test_numbering_is_per_tenant(
        self, ledger, tenant_id, other_tenant_id, product, product_factory, test_user_id
    ):
        foreign = product_factory(tenant_id=other_tenant_id)
        mine = _receive(ledger, tenant_id, product, "1", "1", test_user_id)
        theirs = _receive(ledger, other_tenant_id, foreign, "1", "1", test_user_id)
        assert mine.movement_number == theirs.movement_number


class TestAtomicity:
    def test_rollback_discards_stock_movement_and_number(
        self, session, ledger, tenant_id, product, test_user_id
    ):
        session.commit()
        session.begin()
        _receive(ledger, tenant_id, product, "10", "100", test_user_id)
        session.rollback()

        session.begin()
        assert session.get(Product, product.id).current_stock == Decimal("0")
        count = session.execute(
            select(func.count()).select_from(InventoryMovement).where(
                InventoryMovement.product_id == product.id
            )
        ).scalar_one()
        assert count == 0
        record = _receive(ledger, tenant_id, product, "1", "1", test_user_id)
        assert record.movement_number.endswith("-00001")

    def test_failed_line_rolls_back_earlier_lines(
        self, session, ledger, tenant_id, product_factory, test_user_id
    ):
        a, b = product_factory(), product_factory()
        session.commit()
        session.begin()
        _receive(ledger, tenant_id, a, "3", "10", test_user_id)
        with pytest.raises(InsufficientStockError):
            _sell(ledger, tenant_id, b, "1", test_user_id)
        session.rollback()

        assert session.get(Product, a.id).current_stock == Decimal("0")


class TestLockProducts:
    def test_returns_locked_products(self, ledger, tenant_id, product_factory):
        a, b = product_factory(), product_factory()
        locked = ledger.lock_products(tenant_id, [b.id, a.id, a.id])
        assert set(locked) == {a.id, b.id}

    def test_missing_product_raises(self, ledger, tenant_id, product):
        with pytest.raises(ProductNotFoundError):
            ledger.lock_products(tenant_id, [product.id, uuid4()])

    def test_empty(self, ledger, tenant_id, product):
        assert ledger.lock_products(tenant_id, []) == {}


class TestLogging:
    def test_movement_recorded_event(self, captured_logs, ledger, tenant_id, product, test_user_id):
        record = _receive(ledger, tenant_id, product, "2", "7", test_user_id)
        events = [r for r in captured_logs() if r["message"] == "movement_recorded"]
        assert len(events) == 1
        assert events[0]["movement_number"] == record.movement_number
        assert events[0]["tenant_id"] == str(tenant_id)
        assert Decimal(events[0]["new_stock"]) == Decimal("2")

    def test_rejection_event(self, captured_logs, ledger, tenant_id, product, test_user_id):
        with pytest.raises(InsufficientStockError):
            _sell(ledger, tenant_id, product, "1", test_user_id)
        assert any(r["message"] == "insufficient_stock_rejected" for r in captured_logs())
