"""Exception types raised by stackwright."""

from __future__ import annotations


class StackwrightError(Exception):
    """Base class for all stackwright errors."""


class ConfigurationError(StackwrightError, ValueError):
    """A provider or stack cannot be built from the given configuration."""


class UnsupportedOperationError(StackwrightError):
    """The operation is only available through a Stack."""


class ProviderAPIError(StackwrightError):
    """The executor could not carry out a provider operation.

    The message is surfaced verbatim in StackDeploymentResult.errors, so it should read
    well on its own.
    """

    def __init__(self, message: str, *, provider: str = "", operation: str = "", status: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.operation = operation
        self.status = status


class TerraformGenerationError(StackwrightError):
    """No Terraform template exists for a requested resource kind or provider."""
