"""
Config -> Kernel bridges.

The kernel never imports ``inventory_config``; these helpers translate
loaded settings into the kernel's ``LedgerPolicy``.
"""

from __future__ import annotations

from inventory_kernel.domain.policy import LedgerPolicy

from inventory_config.schema import LedgerSettings, TenantSettings


def ledger_policy_from(settings: TenantSettings) -> LedgerPolicy:
    return LedgerPolicy(
        movement_prefix=settings.movement_prefix,
        cost_decimal_places=settings.effective_cost_decimal_places,
        number_width=settings.number_width,
        lock_timeout_ms=settings.lock_timeout_ms,
    )


def ledger_policy_for(settings: LedgerSettings, tenant_id) -> LedgerPolicy:
    """Kernel policy for one tenant, honouring its overrides."""
    return ledger_policy_from(settings.for_tenant(tenant_id))
