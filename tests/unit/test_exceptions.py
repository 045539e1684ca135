"""Exception hierarchy contract."""

import inspect
from decimal import Decimal

import pytest

from inventory_kernel import exceptions
from inventory_kernel.exceptions import (
    ConcurrencyError,
    DeadlockDetectedError,
    InsufficientStockError,
    InsufficientStockLinesError,
    InventoryKernelError,
    LockTimeoutError,
    SequenceCollisionError,
    is_transient,
)

ALL_ERRORS = [
    obj
    for _, obj in inspect.getmembers(exceptions, inspect.isclass)
    if issubclass(obj, InventoryKernelError)
]


@pytest.mark.parametrize("cls", ALL_ERRORS, ids=lambda c: c.__name__)
def test_every_error_has_its_own_code(cls):
    assert cls.code
    if cls is not InventoryKernelError:
        assert "code" in vars(cls), f"{cls.__name__} inherits its code"


def test_codes_are_unique():
    codes = [cls.code for cls in ALL_ERRORS]
    assert len(codes) == len(set(codes))


def test_only_concurrency_errors_are_transient():
    assert is_transient(LockTimeoutError("product x"))
    assert is_transient(DeadlockDetectedError("product x"))
    assert issubclass(LockTimeoutError, ConcurrencyError)
    assert not is_transient(SequenceCollisionError("t", "MOV-2026-00001", 2))
    assert not is_transient(ValueError("nope"))


def test_aggregated_stock_error_lists_every_line():
    lines = [
        InsufficientStockError("p1", "Oil", Decimal("1"), Decimal("3")),
        InsufficientStockError("p2", "Filter", Decimal("0"), Decimal("2")),
    ]
    err = InsufficientStockLinesError(lines)
    assert err.lines == lines
    assert "Oil" in str(err) and "Filter" in str(err)
