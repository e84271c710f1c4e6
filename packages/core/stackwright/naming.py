"""Deterministic names and hostnames shared by live handles and the Terraform exporter."""

from __future__ import annotations

import re

from stackwright.errors import ConfigurationError
from stackwright.models import ProviderKind, ResourceKind, StackConfig

DEFAULT_AZURE_LOCATION = "eastus"
DEFAULT_DO_REGION = "nyc3"

DO_NAME_SERVERS = ("ns1.digitalocean.com", "ns2.digitalocean.com", "ns3.digitalocean.com")
DO_DATABASE_PORT = 25060

AZURE_DATABASE_PORTS = {"postgresql": 5432, "mysql": 3306, "mariadb": 3306}

# Static Web Apps are only hosted in a handful of regions
_AZURE_STATIC_SITE_LOCATIONS = frozenset({"westus2", "centralus", "eastus2", "westeurope", "eastasia"})
_AZURE_STATIC_SITE_FALLBACK = "eastus2"


def azure_storage_account_name(name: str) -> str:
    """Storage account names are 3-24 lowercase letters and digits, globally unique."""
    cleaned = re.sub(r"[^a-z0-9]", "", name.lower())[:24]
    if len(cleaned) < 3:
        raise ConfigurationError(f"Cannot derive an Azure storage account name from {name!r}")
    return cleaned


def azure_static_site_location(location: str | None) -> str:
    if location and location in _AZURE_STATIC_SITE_LOCATIONS:
        return location
    return _AZURE_STATIC_SITE_FALLBACK


def azure_plan_name(app_name: str) -> str:
    return f"{app_name}-plan"


def azure_cdn_profile_name(cdn_name: str) -> str:
    return f"{cdn_name}-profile"


def do_app_region(region: str | None) -> str:
    """App Platform uses datacenter groups ("nyc") where droplets use "nyc3"."""
    return re.sub(r"\d+$", "", region or DEFAULT_DO_REGION)


def do_spaces_host(bucket: str, region: str | None) -> str:
    return f"{bucket}.{region or DEFAULT_DO_REGION}.digitaloceanspaces.com"


def compute_hostname(provider: ProviderKind | str, kind: ResourceKind, name: str) -> str:
    provider = ProviderKind(provider)
    if provider is ProviderKind.AZURE:
        if kind is ResourceKind.STATIC_WEB_APP:
            return f"{name}.azurestaticapps.net"
        if kind is ResourceKind.APP_SERVICE:
            return f"{name}.azurewebsites.net"
    elif kind in (ResourceKind.STATIC_WEB_APP, ResourceKind.APP_SERVICE):
        return f"{name}.ondigitalocean.app"
    raise ConfigurationError(f"{kind.value} has no public hostname")


def origin_kind(config: StackConfig) -> ResourceKind | None:
    """Compute resource a CDN without an explicit origin sits in front of."""
    if config.static_web_app is not None:
        return ResourceKind.STATIC_WEB_APP
    if config.app_service is not None:
        return ResourceKind.APP_SERVICE
    return None


def cdn_origin(provider: ProviderKind | str, config: StackConfig) -> str:
    if config.cdn is None:
        raise ConfigurationError("Stack declares no CDN")
    if config.cdn.origin:
        return config.cdn.origin
    kind = origin_kind(config)
    if kind is None:
        raise ConfigurationError(
            f"CDN {config.cdn.name!r} needs an origin: set cdn.origin or declare a static_web_app or app_service"
        )
    spec = config.spec_for(kind)
    return compute_hostname(provider, kind, spec.name)


def azure_database_flavour(engine: str) -> str:
    """az CLI / azurerm family: MariaDB workloads run on MySQL flexible server."""
    return "postgres" if engine == "postgresql" else "mysql"


def azure_database_host(engine: str, server: str) -> str:
    return f"{server}.{azure_database_flavour(engine)}.database.azure.com"


def azure_database_url(engine: str, user: str, host: str) -> str:
    if azure_database_flavour(engine) == "postgres":
        return f"postgresql://{user}@{host}:5432/postgres?sslmode=require"
    return f"mysql://{user}@{host}:3306/mysql?ssl-mode=REQUIRED"


def azure_firewall_rules(allowed_ips: list[str]) -> list[tuple[str, str]]:
    """(rule name, address) pairs; Azure-internal traffic is always allowed."""
    rules = [("allow-azure-services", "0.0.0.0")]
    rules += [(f"allow-ip-{i}", ip) for i, ip in enumerate(allowed_ips)]
    return rules


def do_database_host(name: str) -> str:
    return f"{name}.db.ondigitalocean.com"


def do_database_url(engine: str, user: str, host: str) -> str:
    return f"{engine}://{user}@{host}:{DO_DATABASE_PORT}/defaultdb?sslmode=require"
