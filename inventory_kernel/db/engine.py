"""
Module: inventory_kernel.db.engine
Responsibility: Process-wide PostgreSQL engine and session factory for the
    ledger, plus schema setup (tables and kardex triggers) and a
    tenant-aware transactional scope.
Architecture position: Kernel > DB.  May import from db/base.py and db/triggers.py.
    MUST NOT import from services/, selectors/, domain/, or outer layers
    (except create_tables / drop_tables, which import the mapped classes so
    the metadata is complete).

Invariants enforced:
    - PostgreSQL only.  Row locks (``FOR UPDATE``), ``UPDATE ... RETURNING``
      counters, ``SET LOCAL lock_timeout`` and the kardex triggers have no
      portable equivalent, so other URLs are refused up front.
    - READ COMMITTED isolation.  Correctness comes from the explicit row
      locks taken by MovementLedger and SequenceService, not from
      serializable snapshots.
    - Sessions do not expire objects on commit, so DTOs built from ORM rows
      stay readable after the orchestrator commits.

Failure modes:
    - ValueError from init_engine_from_url() for a non-PostgreSQL URL.
    - RuntimeError from any accessor called before init_engine_from_url().
    - OperationalError when trigger installation keeps deadlocking.

Audit relevance:
    session_scope() commits a document's movements and product updates
    together or not at all.
"""

import atexit
import os
import time
from contextlib import contextmanager
from typing import Generator
from uuid import UUID

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from inventory_kernel.logging_config import LogContext, configure_logging, get_logger

logger = get_logger("db.engine")

DATABASE_URL_ENV_VAR = "DATABASE_URL"

TRIGGER_INSTALL_ATTEMPTS = 3

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def database_url_from_env(default: str | None = None) -> str:
    """
    Read the connection URL from ``$DATABASE_URL``.

    Raises:
        RuntimeError: if the variable is unset and no default is given.
    """
    url = os.environ.get(DATABASE_URL_ENV_VAR, default)
    if not url:
        raise RuntimeError(f"{DATABASE_URL_ENV_VAR} is not set")
    return url


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the ledger's engine and session factory, replacing any previous one.

    Args:
        database_url: ``postgresql://`` or ``postgresql+psycopg2://`` URL.
        echo: Log every SQL statement (debugging only).
        pool_size / max_overflow: Connection pool bounds.  Concurrent
            writers each hold a connection for their whole transaction.
        pool_timeout: Seconds to wait for a free pooled connection.
        pool_recycle: Seconds after which idle connections are replaced.
    """
    global _engine, _SessionFactory

    backend = make_url(database_url).get_backend_name()
    if backend != "postgresql":
        raise ValueError(f"the inventory ledger requires PostgreSQL, got {backend!r}")

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "host": _engine.url.host,
            "database": _engine.url.database,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
        },
    )
    return _engine


def _factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """A new session; the caller begins, commits and closes it."""
    return _factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for workers that each need their own session."""
    return _factory()


@contextmanager
def session_scope(
    tenant_id: UUID | None = None,
    actor_id: UUID | None = None,
) -> Generator[Session, None, None]:
    """
    One transaction: commit on normal exit, roll back and re-raise otherwise.

    ``tenant_id`` / ``actor_id`` are bound to the log context for the
    duration, so every record written inside carries them.

    Usage:
        with session_scope(tenant_id, user_id) as session:
            MovementLedger(session).record_movement(tenant_id, ...)
    """
    session = get_session()
    with LogContext.bind(
        tenant_id=str(tenant_id) if tenant_id else None,
        actor_id=str(actor_id) if actor_id else None,
    ):
        try:
            with session.begin():
                yield session
        except Exception:
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()


def _register_mapped_classes() -> None:
    import inventory_kernel.models  # noqa: F401
    import inventory_kernel.services.sequence_service  # noqa: F401


def _install_triggers(engine: Engine) -> None:
    from inventory_kernel.db.triggers import install_immutability_triggers

    for attempt in range(1, TRIGGER_INSTALL_ATTEMPTS + 1):
        try:
            install_immutability_triggers(engine)
            return
        except OperationalError as exc:
            # Parallel test sessions can deadlock on CREATE OR REPLACE
            if "deadlock" not in str(exc).lower() or attempt == TRIGGER_INSTALL_ATTEMPTS:
                raise
            logger.warning("trigger_install_deadlock_retry", extra={"attempt": attempt})
            engine.dispose()
            time.sleep(0.5 * attempt)


def create_tables(install_triggers: bool = True) -> None:
    """
    Create products, movements and sequence counters, then the kardex triggers.

    Raises:
        RuntimeError: If engine is not initialized.
    """
    from inventory_kernel.db.base import Base

    engine = get_engine()
    _register_mapped_classes()
    Base.metadata.create_all(engine)
    if install_triggers:
        _install_triggers(engine)


def drop_tables() -> None:
    """Drop the triggers and every ledger table.  Destroys all data."""
    from inventory_kernel.db.base import Base
    from inventory_kernel.db.triggers import uninstall_immutability_triggers

    engine = get_engine()
    _register_mapped_classes()
    uninstall_immutability_triggers(engine)
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """Dispose the pool and forget the engine (test teardown)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
