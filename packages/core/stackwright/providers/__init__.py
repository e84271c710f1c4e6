"""Cloud providers and their resource handles."""

from __future__ import annotations

from stackwright.models import ProviderKind
from stackwright.providers.azure import AzureProvider
from stackwright.providers.base import Provider, ResourceHandle
from stackwright.providers.digitalocean import DigitalOceanProvider

PROVIDERS: dict[ProviderKind, type[Provider]] = {
    ProviderKind.AZURE: AzureProvider,
    ProviderKind.DIGITALOCEAN: DigitalOceanProvider,
}

__all__ = ["AzureProvider", "DigitalOceanProvider", "PROVIDERS", "Provider", "ResourceHandle"]
