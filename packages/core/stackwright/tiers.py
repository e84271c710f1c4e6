"""Tier → SKU tables.

One table per (provider, resource kind). Live handles and the Terraform exporter both go
through size_for(), so the two paths cannot disagree on a size. The tables are read-only
and checked for totality at import time.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from stackwright.errors import ConfigurationError
from stackwright.models import ProviderKind, ResourceKind, Tier

_AZURE: dict[ResourceKind, dict[Tier, str]] = {
    # PostgreSQL / MySQL flexible server compute
    ResourceKind.DATABASE: {
        Tier.FREE: "Standard_B1ms",
        Tier.BASIC: "Standard_B1ms",
        Tier.STANDARD: "Standard_D2s_v3",
        Tier.PREMIUM: "Standard_D4s_v3",
    },
    # App Service plan
    ResourceKind.APP_SERVICE: {
        Tier.FREE: "F1",
        Tier.BASIC: "B1",
        Tier.STANDARD: "S1",
        Tier.PREMIUM: "P1v2",
    },
    # Static Web Apps only offer Free and Standard
    ResourceKind.STATIC_WEB_APP: {
        Tier.FREE: "Free",
        Tier.BASIC: "Standard",
        Tier.STANDARD: "Standard",
        Tier.PREMIUM: "Standard",
    },
}

_DIGITALOCEAN: dict[ResourceKind, dict[Tier, str]] = {
    ResourceKind.DATABASE: {
        Tier.FREE: "db-s-1vcpu-1gb",
        Tier.BASIC: "db-s-1vcpu-1gb",
        Tier.STANDARD: "db-s-2vcpu-4gb",
        Tier.PREMIUM: "db-s-4vcpu-8gb",
    },
    # App Platform instance size slugs
    ResourceKind.APP_SERVICE: {
        Tier.FREE: "basic-xxs",
        Tier.BASIC: "basic-xs",
        Tier.STANDARD: "professional-xs",
        Tier.PREMIUM: "professional-s",
    },
}


def _freeze(tables: dict[ResourceKind, dict[Tier, str]]) -> Mapping[ResourceKind, Mapping[Tier, str]]:
    return MappingProxyType({kind: MappingProxyType(dict(table)) for kind, table in tables.items()})


TIER_TABLES: Mapping[ProviderKind, Mapping[ResourceKind, Mapping[Tier, str]]] = MappingProxyType(
    {
        ProviderKind.AZURE: _freeze(_AZURE),
        ProviderKind.DIGITALOCEAN: _freeze(_DIGITALOCEAN),
    }
)


def check_totality(tables: Mapping[ProviderKind, Mapping[ResourceKind, Mapping[Tier, str]]]) -> None:
    """Raise ConfigurationError unless every table maps every Tier to a non-empty SKU."""
    for provider in ProviderKind:
        if provider not in tables:
            raise ConfigurationError(f"No tier tables defined for provider {provider.value!r}")
        for kind, table in tables[provider].items():
            missing = [t.value for t in Tier if not table.get(t)]
            if missing:
                raise ConfigurationError(
                    f"Tier table {provider.value}/{kind.value} has no SKU for: {', '.join(missing)}"
                )


check_totality(TIER_TABLES)


def tiered_kinds(provider: ProviderKind | str) -> list[ResourceKind]:
    return list(TIER_TABLES[ProviderKind(provider)].keys())


def size_for(provider: ProviderKind | str, kind: ResourceKind | str, tier: Tier | str) -> str:
    """Concrete SKU / size slug for an abstract tier."""
    provider = ProviderKind(provider)
    kind = ResourceKind(kind)
    tables = TIER_TABLES[provider]
    if kind not in tables:
        raise ConfigurationError(f"{provider.value} has no tiered sizes for {kind.value}")
    return tables[kind][Tier(tier)]


# Azure flexible servers name the same compute three different ways:
# the az CLI wants "Standard_D2s_v3" plus a --tier, azurerm wants "GP_Standard_D2s_v3".
_AZURE_FLEXIBLE_TIERS: tuple[tuple[str, str, str], ...] = (
    ("Standard_B", "Burstable", "B"),
    ("Standard_D", "GeneralPurpose", "GP"),
    ("Standard_E", "MemoryOptimized", "MO"),
)


def _flexible_family(sku: str) -> tuple[str, str]:
    for prefix, tier_name, short in _AZURE_FLEXIBLE_TIERS:
        if sku.startswith(prefix):
            return tier_name, short
    raise ConfigurationError(f"Unrecognised Azure flexible server SKU: {sku!r}")


def azure_flexible_sku_tier(sku: str) -> str:
    return _flexible_family(sku)[0]


def azure_flexible_sku_name(sku: str) -> str:
    return f"{_flexible_family(sku)[1]}_{sku}"
