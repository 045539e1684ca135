"""
inventory_config -- single runtime entrypoint for ledger settings.

``get_active_settings()`` is the only way services and scripts obtain
settings.  It reads the file named by the ``INVENTORY_LEDGER_CONFIG``
environment variable, or the packaged ``defaults.yaml``, once per process.
The kernel never imports this package; ``inventory_config.bridges``
converts settings into the kernel's ``LedgerPolicy``.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from inventory_config.bridges import ledger_policy_for
from inventory_config.loader import load_settings
from inventory_config.schema import LedgerSettings, TenantSettings

_logger = logging.getLogger("inventory_kernel.config")

CONFIG_ENV_VAR = "INVENTORY_LEDGER_CONFIG"


@lru_cache(maxsize=1)
def get_active_settings() -> LedgerSettings:
    """Load and cache the process-wide settings."""
    path = os.environ.get(CONFIG_ENV_VAR) or None
    settings = load_settings(path)
    _logger.info(
        "ledger_settings_loaded",
        extra={
            "source": settings.source,
            "currency": settings.defaults.currency,
            "tenant_overrides": len(settings.tenants),
        },
    )
    return settings


def reset_active_settings() -> None:
    """Forget the cached settings (tests, config reload)."""
    get_active_settings.cache_clear()


__all__ = [
    "CONFIG_ENV_VAR",
    "LedgerSettings",
    "TenantSettings",
    "get_active_settings",
    "ledger_policy_for",
    "load_settings",
    "reset_active_settings",
]
