"""
Settings loader (``inventory_config.loader``).

Responsibility
--------------
Reads a YAML settings file with PyYAML and parses it into the frozen
dataclasses of ``inventory_config.schema``.  Runtime code should go
through ``inventory_config.get_active_settings()`` instead of calling
this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError`` with the offending key.
"""

from __future__ import annotations

from dataclasses import fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from inventory_config.schema import LedgerSettings, TenantSettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_TENANT_KEYS = frozenset(f.name for f in fields(TenantSettings))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_tenant_settings(
    data: dict[str, Any], base: TenantSettings | None = None, where: str = "defaults"
) -> TenantSettings:
    """Parse a TenantSettings mapping, overlaying it on ``base`` when given."""
    if not isinstance(data, dict):
        raise ValueError(f"{where}: expected a mapping, got {type(data).__name__}")
    unknown = set(data) - _TENANT_KEYS
    if unknown:
        raise ValueError(f"{where}: unknown setting(s) {sorted(unknown)}")
    if base is None:
        return TenantSettings(**data)
    return replace(base, **data)


def parse_settings(data: dict[str, Any], source: str | None = None) -> LedgerSettings:
    """
    Parse the root document::

        defaults:
          currency: USD
        tenants:
          <tenant uuid>:
            currency: CLP
    """
    unknown = set(data) - {"defaults", "tenants"}
    if unknown:
        raise ValueError(f"unknown top-level key(s) {sorted(unknown)}")

    defaults = parse_tenant_settings(data.get("defaults") or {})

    tenants: dict[str, TenantSettings] = {}
    for tenant_id, overrides in (data.get("tenants") or {}).items():
        tenants[str(tenant_id)] = parse_tenant_settings(
            overrides or {}, base=defaults, where=f"tenants.{tenant_id}"
        )

    return LedgerSettings(
        defaults=defaults,
        tenants=MappingProxyType(tenants),
        source=source,
    )


def load_settings(path: Path | str | None = None) -> LedgerSettings:
    """Load settings from ``path``, or from the packaged defaults."""
    path = Path(path) if path is not None else DEFAULTS_PATH
    return parse_settings(load_yaml_file(path), source=str(path))
