"""Stackwright: declare a web stack once, deploy it to Azure or DigitalOcean, or emit Terraform."""

from stackwright.errors import (
    ConfigurationError,
    ProviderAPIError,
    StackwrightError,
    TerraformGenerationError,
    UnsupportedOperationError,
)
from stackwright.models import (
    AppServiceSpec,
    CDNSpec,
    DatabaseSpec,
    DNSRecord,
    DNSZoneSpec,
    ProviderConfig,
    ProviderKind,
    ResourceGroupSpec,
    ResourceKind,
    StackConfig,
    StackDeploymentResult,
    StackStatus,
    StaticWebAppSpec,
    StorageSpec,
    Tier,
)

__version__ = "0.1.0"

__all__ = [
    "AppServiceSpec",
    "auto_configure_provider",
    "CDNSpec",
    "ConfigurationError",
    "create_provider",
    "create_stack",
    "DatabaseSpec",
    "detect_provider",
    "DNSRecord",
    "DNSZoneSpec",
    "generate_terraform_module",
    "multi_provider_deploy",
    "ProviderAPIError",
    "ProviderConfig",
    "ProviderKind",
    "quick_deploy",
    "ResourceGroupSpec",
    "ResourceKind",
    "Stack",
    "StackConfig",
    "StackDeploymentResult",
    "StackStatus",
    "StackwrightError",
    "StaticWebAppSpec",
    "StorageSpec",
    "TerraformGenerationError",
    "Tier",
    "UnsupportedOperationError",
    "write_terraform_files",
]

_FACTORY = ("auto_configure_provider", "create_provider", "create_stack", "detect_provider", "multi_provider_deploy", "quick_deploy")


def __getattr__(name: str):
    # Providers and the exporter are imported on first use
    if name in _FACTORY:
        from stackwright import factory

        return getattr(factory, name)
    if name == "Stack":
        from stackwright.stack import Stack

        return Stack
    if name == "generate_terraform_module":
        from stackwright.exporter.terraform import generate_terraform_module

        return generate_terraform_module
    if name == "write_terraform_files":
        from stackwright.exporter.terraform import write_terraform_files

        return write_terraform_files
    raise AttributeError(f"module 'stackwright' has no attribute {name!r}")
