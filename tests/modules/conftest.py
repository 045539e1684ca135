"""
Fixtures for the document services.

The services commit and roll back themselves; in the per-test session a
commit releases a savepoint, so fixture data is committed up front to
survive a service-level rollback.
"""

from decimal import Decimal

import pytest

from inventory_modules.adjustments import AdjustmentService
from inventory_modules.consumption import ConsumptionService
from inventory_modules.purchases import PurchaseService
from inventory_modules.returns import ReturnService
from inventory_modules.sales import SaleService
from inventory_modules.transfers import TransferService
from inventory_modules.workshop import WorkshopService


@pytest.fixture
def stocked_product(session, product_factory, ledger, tenant_id, test_user_id):
    """Create a committed product with an opening balance."""

    def _create(quantity="10", unit_cost="100", **kwargs):
        product = product_factory(**kwargs)
        if Decimal(quantity) > 0:
            ledger.record_movement(
                tenant_id, product.id, "in", "adjustment_in",
                Decimal(quantity), Decimal(unit_cost), user_id=test_user_id,
            )
        session.commit()
        return product

    return _create


@pytest.fixture
def stock_of(session):
    """Current (stock, average cost) of a product as stored."""

    def _read(product):
        session.refresh(product)
        return product.current_stock, product.average_cost

    return _read


@pytest.fixture
def purchases(session, ledger_settings, deterministic_clock):
    return PurchaseService(session, ledger_settings, deterministic_clock)


@pytest.fixture
def sales(session, ledger_settings, deterministic_clock):
    return SaleService(session, ledger_settings, deterministic_clock)


@pytest.fixture
def adjustments(session, ledger_settings, deterministic_clock):
    return AdjustmentService(session, ledger_settings, deterministic_clock)


@pytest.fixture
def transfers(session, ledger_settings, deterministic_clock):
    return TransferService(session, ledger_settings, deterministic_clock)


@pytest.fixture
def returns(session, ledger_settings, deterministic_clock):
    return ReturnService(session, ledger_settings, deterministic_clock)


@pytest.fixture
def consumption(session, ledger_settings, deterministic_clock):
    return ConsumptionService(session, ledger_settings, deterministic_clock)


@pytest.fixture
def workshop(session, ledger_settings, deterministic_clock):
    return WorkshopService(session, ledger_settings, deterministic_clock)
