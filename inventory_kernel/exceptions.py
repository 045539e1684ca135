"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and costing failures must be handled precisely.  Callers (business
orchestrators, an HTTP layer, a retrying job runner) decide what to do by
exception TYPE and by the machine-readable ``code`` attribute, never by
parsing messages:

    try:
        ledger.record_movement(...)
    except InsufficientStockError as e:
        api_response(
            status=409,
            code=e.code,
            product=e.product_name,
            available=e.available,
            requested=e.requested,
        )
    except ConcurrencyError:
        retry_whole_operation()

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (survives logging/serialization)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ProductError
    |   +-- ProductNotFoundError
    |   +-- ProductNotStockedError
    |   +-- ProductReferencedError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InsufficientStockLinesError
    |
    +-- MovementError
    |   +-- InvalidMovementTypeError
    |   +-- InvalidQuantityError
    |   +-- InvalidUnitCostError
    |
    +-- SequenceError
    |   +-- SequenceCollisionError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |   +-- DeadlockDetectedError
    |
    +-- TransactionError
    |   +-- NoActiveTransactionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- DocumentError
        +-- DocumentStateError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Product         | PRODUCT_NOT_FOUND           | Unknown product or other tenant's product
                | PRODUCT_NOT_STOCKED         | Movement against a service product
                | PRODUCT_REFERENCED          | Deleting a product that has movements
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Outbound movement would breach zero
                | INSUFFICIENT_STOCK_LINES    | Pre-validation of a multi-line document
----------------|-----------------------------|-----------------------------------------
Movement        | INVALID_MOVEMENT_TYPE       | Direction outside {in, out} or reason mismatch
                | INVALID_QUANTITY            | Quantity <= 0
                | INVALID_UNIT_COST           | Unit cost < 0
----------------|-----------------------------|-----------------------------------------
Sequence        | SEQUENCE_COLLISION          | Document number collided twice
----------------|-----------------------------|-----------------------------------------
Concurrency     | LOCK_TIMEOUT                | Row lock not acquired in time (retryable)
                | DEADLOCK_DETECTED           | Database broke a deadlock (retryable)
----------------|-----------------------------|-----------------------------------------
Transaction     | NO_ACTIVE_TRANSACTION       | Ledger called outside a transaction
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of a kardex row
----------------|-----------------------------|-----------------------------------------
Document        | DOCUMENT_STATE              | Illegal document transition (e.g. receive
                |                             | a transfer that was never sent)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Business errors (Product, Stock, Movement, Sequence, Document) surface as
   4xx-equivalent responses with enough structured detail to act on.
2. ConcurrencyError is transient: the whole enclosing operation may be
   retried.  ``is_transient()`` is the single place that decides this.
3. Amounts are stored as Decimal attributes, never pre-formatted strings.

===============================================================================
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Product-related exceptions


class ProductError(InventoryKernelError):
    """Base exception for product-related errors."""

    code: str = "PRODUCT_ERROR"


class ProductNotFoundError(ProductError):
    """Product does not exist or belongs to a different tenant."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str, tenant_id: str):
        self.product_id = product_id
        self.tenant_id = tenant_id
        super().__init__(f"Product not found: {product_id} (tenant {tenant_id})")


class ProductNotStockedError(ProductError):
    """Product does not carry stock (e.g. a service)."""

    code: str = "PRODUCT_NOT_STOCKED"

    def __init__(self, product_id: str, product_type: str):
        self.product_id = product_id
        self.product_type = product_type
        super().__init__(
            f"Product {product_id} of type '{product_type}' does not carry stock"
        )


class ProductReferencedError(ProductError):
    """Product has kardex movements and cannot be deleted."""

    code: str = "PRODUCT_REFERENCED"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} has inventory movements and cannot be deleted"
        )


# Stock-related exceptions


class StockError(InventoryKernelError):
    """Base exception for stock sufficiency errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Outbound movement would drive stock below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        product_name: str,
        available: Decimal,
        requested: Decimal,
        sku: str | None = None,
    ):
        self.product_id = product_id
        self.product_name = product_name
        self.sku = sku
        self.available = available
        self.requested = requested
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for product {product_name}: "
            f"available {available}, requested {requested}"
        )


class InsufficientStockLinesError(StockError):
    """
    One or more lines of a document lack stock.

    Raised by orchestrator pre-validation so the user sees every failing
    line at once.  ``lines`` holds one ``InsufficientStockError`` per line.
    """

    code: str = "INSUFFICIENT_STOCK_LINES"

    def __init__(self, lines: list[InsufficientStockError]):
        self.lines = lines
        names = ", ".join(line.product_name for line in lines)
        super().__init__(
            f"Insufficient stock for {len(lines)} line(s): {names}"
        )


# Movement-related exceptions


class MovementError(InventoryKernelError):
    """Base exception for malformed movement requests."""

    code: str = "MOVEMENT_ERROR"


class InvalidMovementTypeError(MovementError):
    """Direction is not 'in'/'out', or the reason belongs to the other direction."""

    code: str = "INVALID_MOVEMENT_TYPE"

    def __init__(self, direction: str, reason: str | None = None):
        self.direction = direction
        self.reason = reason
        if reason is None:
            message = f"Invalid movement direction: {direction!r}"
        else:
            message = f"Movement reason {reason!r} is not valid for direction {direction!r}"
        super().__init__(message)


class InvalidQuantityError(MovementError):
    """Movement quantity must be strictly positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Decimal):
        self.quantity = quantity
        super().__init__(f"Movement quantity must be a positive number, got {quantity!r}")


class InvalidUnitCostError(MovementError):
    """Movement unit cost must not be negative."""

    code: str = "INVALID_UNIT_COST"

    def __init__(self, unit_cost: Decimal):
        self.unit_cost = unit_cost
        super().__init__(f"Movement unit cost must be a non-negative number, got {unit_cost!r}")


# Sequence-related exceptions


class SequenceError(InventoryKernelError):
    """Base exception for document numbering errors."""

    code: str = "SEQUENCE_ERROR"


class SequenceCollisionError(SequenceError):
    """Allocated document number collided with an existing one after retry."""

    code: str = "SEQUENCE_COLLISION"

    def __init__(self, tenant_id: str, number: str, attempts: int):
        self.tenant_id = tenant_id
        self.number = number
        self.attempts = attempts
        super().__init__(
            f"Document number {number} collided for tenant {tenant_id} "
            f"after {attempts} attempt(s)"
        )


# Concurrency-related exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for transient lock / serialization failures."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """A row lock could not be acquired within the configured window."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, resource: str, detail: str | None = None):
        self.resource = resource
        self.detail = detail
        super().__init__(f"Lock timeout on {resource}: {detail or 'lock not available'}")


class DeadlockDetectedError(ConcurrencyError):
    """The database aborted this transaction to break a deadlock."""

    code: str = "DEADLOCK_DETECTED"

    def __init__(self, resource: str, detail: str | None = None):
        self.resource = resource
        self.detail = detail
        super().__init__(f"Deadlock detected on {resource}: {detail or 'transaction aborted'}")


# Transaction-related exceptions


class TransactionError(InventoryKernelError):
    """Base exception for transaction contract violations."""

    code: str = "TRANSACTION_ERROR"


class NoActiveTransactionError(TransactionError):
    """The ledger was called with a session that has no open transaction."""

    code: str = "NO_ACTIVE_TRANSACTION"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            f"{operation} requires a transaction opened by the caller"
        )


# Immutability-related exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable kardex record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Document-related exceptions


class DocumentError(InventoryKernelError):
    """Base exception for business document errors raised by orchestrators."""

    code: str = "DOCUMENT_ERROR"


class DocumentStateError(DocumentError):
    """The requested transition is not legal for the document's ledger history."""

    code: str = "DOCUMENT_STATE"

    def __init__(self, reference_type: str, reference_id: str, reason: str):
        self.reference_type = reference_type
        self.reference_id = reference_id
        self.reason = reason
        super().__init__(f"{reference_type} {reference_id}: {reason}")


def is_transient(exc: BaseException) -> bool:
    """True if retrying the whole enclosing operation may succeed."""
    return isinstance(exc, ConcurrencyError)
