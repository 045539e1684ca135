"""
Ledger settings schema.

YAML documents are parsed into these frozen dataclasses by the loader.  A
``LedgerSettings`` holds the default ``TenantSettings`` plus any per-tenant
overrides; ``for_tenant`` resolves the effective settings for one tenant.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from inventory_kernel.db.types import STORAGE_DECIMAL_PLACES, currency_decimal_places


@dataclass(frozen=True)
class TenantSettings:
    """Effective ledger settings for one tenant."""

    currency: str = "USD"
    movement_prefix: str = "MOV"
    # None means "the currency's minor unit"
    cost_decimal_places: int | None = None
    number_width: int = 5
    lock_timeout_ms: int | None = None

    def __post_init__(self) -> None:
        if len(self.currency) != 3 or not self.currency.isalpha():
            raise ValueError(f"currency must be a 3-letter ISO code, got {self.currency!r}")
        if not self.movement_prefix.isalpha() or not self.movement_prefix.isupper():
            raise ValueError(
                f"movement_prefix must be upper-case letters, got {self.movement_prefix!r}"
            )
        if self.cost_decimal_places is not None and not (
            0 <= self.cost_decimal_places <= STORAGE_DECIMAL_PLACES
        ):
            raise ValueError(
                f"cost_decimal_places must be between 0 and {STORAGE_DECIMAL_PLACES}, "
                f"got {self.cost_decimal_places}"
            )
        if self.number_width < 1:
            raise ValueError(f"number_width must be >= 1, got {self.number_width}")
        if self.lock_timeout_ms is not None and self.lock_timeout_ms < 0:
            raise ValueError(f"lock_timeout_ms must be >= 0, got {self.lock_timeout_ms}")

    @property
    def effective_cost_decimal_places(self) -> int:
        if self.cost_decimal_places is not None:
            return self.cost_decimal_places
        return currency_decimal_places(self.currency)


@dataclass(frozen=True)
class LedgerSettings:
    """Root settings object: defaults plus per-tenant overrides keyed by tenant id."""

    defaults: TenantSettings = field(default_factory=TenantSettings)
    tenants: Mapping[str, TenantSettings] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source: str | None = None

    def for_tenant(self, tenant_id) -> TenantSettings:
        return self.tenants.get(str(tenant_id), self.defaults)
