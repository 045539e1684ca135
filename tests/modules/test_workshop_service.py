"""WorkshopService: work-order numbers and part consumption / return."""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.values import MovementReason, ProductType
from inventory_kernel.exceptions import DocumentStateError, InsufficientStockLinesError

pytestmark = pytest.mark.postgres


def test_work_order_numbers(workshop, tenant_id):
    assert workshop.allocate_work_order_number(tenant_id) == "OT-2026-00001"
    assert workshop.allocate_work_order_number(tenant_id) == "OT-2026-00002"


def test_add_and_remove_parts(workshop, stocked_product, stock_of, tenant_id, test_user_id):
    spark_plug = stocked_product(quantity="10", unit_cost="12")
    work_order_id = uuid4()

    added = workshop.add_part(tenant_id, work_order_id, spark_plug.id, Decimal("3"), test_user_id)
    assert added.movements[0].reason is MovementReason.WORKSHOP_PART
    assert stock_of(spark_plug)[0] == Decimal("7")
    assert workshop.outstanding_parts(tenant_id, work_order_id) == {spark_plug.id: Decimal("3")}

    removed = workshop.remove_part(
        tenant_id, work_order_id, spark_plug.id, Decimal("2"), test_user_id
    )
    assert removed.movements[0].reason is MovementReason.WORKSHOP_PART_RETURN
    assert removed.movements[0].unit_cost == Decimal("12")
    assert stock_of(spark_plug) == (Decimal("9"), Decimal("12"))
    assert workshop.outstanding_parts(tenant_id, work_order_id) == {spark_plug.id: Decimal("1")}


def test_fully_returned_part_is_not_outstanding(
    workshop, stocked_product, tenant_id, test_user_id
):
    spark_plug = stocked_product()
    work_order_id = uuid4()
    workshop.add_part(tenant_id, work_order_id, spark_plug.id, Decimal("1"), test_user_id)
    workshop.remove_part(tenant_id, work_order_id, spark_plug.id, Decimal("1"), test_user_id)
    assert workshop.outstanding_parts(tenant_id, work_order_id) == {}


def test_cannot_return_more_than_consumed(
    workshop, stocked_product, stock_of, tenant_id, test_user_id
):
    spark_plug = stocked_product()
    work_order_id = uuid4()
    workshop.add_part(tenant_id, work_order_id, spark_plug.id, Decimal("1"), test_user_id)

    with pytest.raises(DocumentStateError, match="outstanding"):
        workshop.remove_part(tenant_id, work_order_id, spark_plug.id, Decimal("2"), test_user_id)
    assert stock_of(spark_plug)[0] == Decimal("9")


def test_add_part_beyond_stock(workshop, stocked_product, tenant_id, test_user_id):
    spark_plug = stocked_product(quantity="1")
    with pytest.raises(InsufficientStockLinesError):
        workshop.add_part(tenant_id, uuid4(), spark_plug.id, Decimal("2"), test_user_id)


def test_labour_lines_write_no_movement(workshop, stocked_product, tenant_id, test_user_id):
    labour = stocked_product(quantity="0", product_type=ProductType.SERVICE)
    result = workshop.add_part(tenant_id, uuid4(), labour.id, Decimal("1.5"), test_user_id)
    assert result.movements == ()
    assert result.skipped_product_ids == (labour.id,)
