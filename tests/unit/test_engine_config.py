"""Engine setup guards that need no database."""

import pytest

from inventory_kernel.db.engine import DATABASE_URL_ENV_VAR, database_url_from_env, init_engine_from_url


def test_non_postgres_url_is_refused():
    with pytest.raises(ValueError, match="requires PostgreSQL"):
        init_engine_from_url("sqlite:///inventory.db")


def test_database_url_from_env(monkeypatch):
    monkeypatch.setenv(DATABASE_URL_ENV_VAR, "postgresql://u:p@db/inv")
    assert database_url_from_env() == "postgresql://u:p@db/inv"


def test_database_url_default(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV_VAR, raising=False)
    assert database_url_from_env("postgresql://localhost/inv") == "postgresql://localhost/inv"


def test_database_url_missing(monkeypatch):
    monkeypatch.delenv(DATABASE_URL_ENV_VAR, raising=False)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        database_url_from_env()
