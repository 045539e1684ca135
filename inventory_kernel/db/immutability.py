"""
ORM-side kardex protection.

Replaying the kardex reproduces current stock only if no movement is ever
edited or removed.  Two layers enforce that:

  - these SQLAlchemy listeners, which fail a flush before any SQL is sent
    and raise the kernel's typed errors;
  - the PostgreSQL triggers in db/sql/, which also stop raw SQL and psql.

Rules:
  InventoryMovement  no UPDATE, no DELETE (reversals are new movements)
  Product            no DELETE while any movement references it

Register once at startup (the test suite does it in ``db_tables``)::

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()
"""

from sqlalchemy import event, exists, select
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import ImmutabilityViolationError, ProductReferencedError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, entity_id, operation: str, **details) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **details,
        },
    )


def _refuse_product_delete(session, flush_context, instances):
    from inventory_kernel.models.movement import InventoryMovement
    from inventory_kernel.models.product import Product

    doomed = [obj for obj in session.deleted if isinstance(obj, Product)]
    if not doomed:
        return
    with session.no_autoflush:
        for product in doomed:
            referenced = session.execute(
                select(exists().where(InventoryMovement.product_id == product.id))
            ).scalar()
            if referenced:
                _block("Product", product.id, "DELETE", sku=product.sku)
                raise ProductReferencedError(product_id=str(product.id))


def _refuse_movement_update(mapper, connection, target):
    _block("InventoryMovement", target.id, "UPDATE", movement_number=target.movement_number)
    raise ImmutabilityViolationError(
        entity_type="InventoryMovement",
        entity_id=str(target.id),
        reason="Inventory movements are immutable; record a reversing movement instead",
    )


def _refuse_movement_delete(mapper, connection, target):
    _block("InventoryMovement", target.id, "DELETE", movement_number=target.movement_number)
    raise ImmutabilityViolationError(
        entity_type="InventoryMovement",
        entity_id=str(target.id),
        reason="Inventory movements cannot be deleted",
    )


def _listeners():
    from inventory_kernel.models.movement import InventoryMovement

    return (
        (Session, "before_flush", _refuse_product_delete),
        (InventoryMovement, "before_update", _refuse_movement_update),
        (InventoryMovement, "before_delete", _refuse_movement_delete),
    )


def register_immutability_listeners() -> None:
    """Attach the listeners.  Safe to call more than once."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_immutability_listeners() -> None:
    """Detach the listeners.  Tests only."""
    for target, name, fn in _listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
