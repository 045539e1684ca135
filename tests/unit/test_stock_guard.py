"""Non-negative stock predicate."""

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from inventory_kernel.domain.stock_guard import check_stock
from inventory_kernel.exceptions import InsufficientStockError


class TestCheckStock:
    def test_exact_stock_is_allowed(self):
        check = check_stock(Decimal("15"), Decimal("15"), allow_negative=False)
        assert check.ok
        assert check.shortfall == Decimal("0")

    def test_more_than_stock_is_rejected(self):
        check = check_stock(Decimal("15"), Decimal("20"), allow_negative=False)
        assert not check.ok
        assert check.available == Decimal("15")
        assert check.requested == Decimal("20")
        assert check.shortfall == Decimal("5")

    def test_allow_negative_always_passes(self):
        check = check_stock(Decimal("1"), Decimal("20"), allow_negative=True)
        assert check.ok
        assert check.shortfall == Decimal("19")

    def test_already_negative_stock_rejected_without_flag(self):
        assert not check_stock(Decimal("-2"), Decimal("1"), allow_negative=False).ok


class TestRaiseFor:
    def test_ok_check_does_not_raise(self):
        product = SimpleNamespace(id=uuid4(), name="Filter", sku="F-1")
        check_stock(Decimal("3"), Decimal("1"), False).raise_for(product)

    def test_failed_check_carries_product_details(self):
        product = SimpleNamespace(id=uuid4(), name="Filter", sku="F-1")
        with pytest.raises(InsufficientStockError) as exc_info:
            check_stock(Decimal("3"), Decimal("5"), False).raise_for(product)
        err = exc_info.value
        assert err.code == "INSUFFICIENT_STOCK"
        assert err.product_id == str(product.id)
        assert err.product_name == "Filter"
        assert err.sku == "F-1"
        assert err.available == Decimal("3")
        assert err.requested == Decimal("5")
        assert err.shortfall == Decimal("2")
