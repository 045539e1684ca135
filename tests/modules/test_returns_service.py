"""ReturnService: supplier returns (out) and customer returns (in)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.values import MovementReason, ReferenceType
from inventory_kernel.exceptions import DocumentStateError, InsufficientStockLinesError
from inventory_modules.common import DocumentLine

pytestmark = pytest.mark.postgres


def test_supplier_return(returns, stocked_product, stock_of, tenant_id, test_user_id):
    belts = stocked_product(quantity="10", unit_cost="40")
    result = returns.approve_supplier_return(
        tenant_id, uuid4(), [DocumentLine(belts.id, Decimal("3"))], test_user_id
    )
    assert result.document_number == "DEVP-2026-00001"
    assert result.reference_type is ReferenceType.SUPPLIER_RETURN
    assert result.movements[0].reason is MovementReason.SUPPLIER_RETURN
    assert stock_of(belts) == (Decimal("7"), Decimal("40"))


def test_supplier_return_beyond_stock(returns, stocked_product, tenant_id, test_user_id):
    belts = stocked_product(quantity="1")
    with pytest.raises(InsufficientStockLinesError):
        returns.approve_supplier_return(
            tenant_id, uuid4(), [DocumentLine(belts.id, Decimal("2"))], test_user_id
        )


def test_customer_return_at_given_cost(returns, stocked_product, stock_of, tenant_id, test_user_id):
    belts = stocked_product(quantity="10", unit_cost="40")
    result = returns.approve_customer_return(
        tenant_id, uuid4(), [DocumentLine(belts.id, Decimal("10"), Decimal("50"))], test_user_id
    )
    assert result.document_number == "DEVC-2026-00001"
    assert result.movements[0].reason is MovementReason.CUSTOMER_RETURN
    assert stock_of(belts) == (Decimal("20"), Decimal("45"))


def test_return_approved_once(returns, stocked_product, tenant_id, test_user_id):
    belts = stocked_product()
    return_id = uuid4()
    lines = [DocumentLine(belts.id, Decimal("1"))]
    returns.approve_customer_return(tenant_id, return_id, lines, test_user_id)
    with pytest.raises(DocumentStateError, match="already approved"):
        returns.approve_customer_return(tenant_id, return_id, lines, test_user_id)


def test_return_kinds_are_separate_documents(returns, stocked_product, tenant_id, test_user_id):
    belts = stocked_product()
    return_id = uuid4()
    lines = [DocumentLine(belts.id, Decimal("1"))]
    returns.approve_customer_return(tenant_id, return_id, lines, test_user_id)
    result = returns.approve_supplier_return(tenant_id, return_id, lines, test_user_id)
    assert len(result.movements) == 1
