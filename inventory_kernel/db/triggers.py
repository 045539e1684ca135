"""
Module: inventory_kernel.db.triggers
Responsibility: Install, remove and inspect the PostgreSQL triggers that
    protect the kardex below the ORM (db/immutability.py is the ORM-side
    counterpart).
Architecture position: Kernel > DB.  Imports nothing from the kernel.

Invariants enforced (db/sql/*.sql):
    - inventory_movements: every UPDATE and DELETE is refused.
    - products: current_stock / average_cost / movement_count may only
      change to the new_stock / new_average_cost of the movement whose
      product_seq equals the new movement_count.

Failure modes:
    - A violation raises SQLSTATE 23001 (movements) or 23514 (products),
      surfacing through SQLAlchemy as IntegrityError.
    - OperationalError on deadlock during installation (engine.create_tables
      retries).

Audit relevance:
    Raw SQL, bulk updates and psql sessions hit the same wall as the ORM:
    the kardex cannot be edited and stock cannot drift from it.
"""

from importlib import resources

from sqlalchemy import bindparam, text
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.engine import Engine
from sqlalchemy.types import String

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

_SQL_PACKAGE = "inventory_kernel.db"

# Installed in order; each file is idempotent (CREATE OR REPLACE / DROP IF EXISTS)
INSTALL_SCRIPTS = (
    "01_inventory_movement.sql",
    "02_product_stock_consistency.sql",
)
UNINSTALL_SCRIPT = "99_drop_all.sql"

# trigger name -> table it must be attached to
EXPECTED_TRIGGERS: dict[str, str] = {
    "trg_inventory_movement_immutability_update": "inventory_movements",
    "trg_inventory_movement_immutability_delete": "inventory_movements",
    "trg_product_stock_consistency": "products",
}

ALL_TRIGGER_NAMES = sorted(EXPECTED_TRIGGERS)


def read_sql(filename: str) -> str:
    return (resources.files(_SQL_PACKAGE) / "sql" / filename).read_text(encoding="utf-8")


def _run_script(engine: Engine, filename: str) -> None:
    # text() escapes the PL/pgSQL % placeholders for the pyformat driver
    with engine.connect() as conn:
        conn.execute(text(read_sql(filename)))
        conn.commit()


def install_immutability_triggers(engine: Engine) -> None:
    """Install every kardex trigger.  Tables must already exist."""
    for filename in INSTALL_SCRIPTS:
        _run_script(engine, filename)
    logger.info("kardex_triggers_installed", extra={"triggers": len(EXPECTED_TRIGGERS)})


def uninstall_immutability_triggers(engine: Engine) -> None:
    """Drop the triggers and their functions.  Migrations and tests only."""
    _run_script(engine, UNINSTALL_SCRIPT)
    logger.warning("kardex_triggers_uninstalled")


def get_installed_triggers(engine: Engine) -> dict[str, str]:
    """Installed kardex triggers, mapped to the table each is attached to."""
    stmt = text(
        "SELECT t.tgname, c.relname FROM pg_trigger t "
        "JOIN pg_class c ON c.oid = t.tgrelid "
        "WHERE t.tgname = ANY(:names) AND NOT t.tgisinternal"
    ).bindparams(bindparam("names", type_=ARRAY(String)))
    with engine.connect() as conn:
        rows = conn.execute(stmt, {"names": ALL_TRIGGER_NAMES}).all()
    return {name: table for name, table in rows}


def get_missing_triggers(engine: Engine) -> list[str]:
    """Expected triggers that are absent or attached to the wrong table."""
    installed = get_installed_triggers(engine)
    return sorted(
        name for name, table in EXPECTED_TRIGGERS.items() if installed.get(name) != table
    )


def triggers_installed(engine: Engine) -> bool:
    return not get_missing_triggers(engine)
