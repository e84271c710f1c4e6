"""Provider construction and selection helpers."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Mapping

from stackwright.errors import ConfigurationError
from stackwright.executor import Executor
from stackwright.models import ProviderConfig, ProviderKind, StackConfig, StackDeploymentResult
from stackwright.providers import PROVIDERS
from stackwright.providers.base import Provider
from stackwright.stack import Stack

logger = logging.getLogger(__name__)

_AZURE_ENV = ("AZURE_SUBSCRIPTION_ID", "ARM_SUBSCRIPTION_ID")
_DIGITALOCEAN_ENV = ("DO_TOKEN", "DIGITALOCEAN_TOKEN")


def create_provider(config: ProviderConfig, executor: Executor | None = None) -> Provider:
    """Build the provider for config.provider; credentials are checked before anything else."""
    provider_cls = PROVIDERS.get(config.provider)
    if provider_cls is None:
        raise ConfigurationError(f"Unknown provider: {config.provider!r}")
    return provider_cls(config, executor=executor)


def create_stack(
    name: str, provider_config: ProviderConfig, stack_config: StackConfig, executor: Executor | None = None
) -> Stack:
    return create_provider(provider_config, executor).create_stack(name, stack_config)


async def quick_deploy(
    name: str, provider_config: ProviderConfig, stack_config: StackConfig, executor: Executor | None = None
) -> StackDeploymentResult:
    stack = create_stack(name, provider_config, stack_config, executor)
    return await stack.deploy()


async def multi_provider_deploy(
    name: str,
    stack_config: StackConfig,
    providers: list[ProviderConfig],
    executors: Mapping[ProviderKind, Executor] | None = None,
) -> dict[ProviderKind, StackDeploymentResult]:
    """Deploy the same stack to several providers concurrently.

    Each provider gets its own Provider and Stack; results are keyed by provider kind.
    """
    kinds = [p.provider for p in providers]
    if len(set(kinds)) != len(kinds):
        raise ConfigurationError("multi_provider_deploy takes at most one config per provider")
    executors = executors or {}
    # Build every stack first so a bad config fails before any provider is touched
    stacks = [create_stack(name, p, stack_config, executors.get(p.provider)) for p in providers]
    results = await asyncio.gather(*(stack.deploy() for stack in stacks))
    return dict(zip(kinds, results))


def detect_provider(env: Mapping[str, str] | None = None) -> ProviderKind | None:
    """Guess a provider from environment variables. None when nothing is configured."""
    env = os.environ if env is None else env
    if any(env.get(key) for key in _AZURE_ENV):
        return ProviderKind.AZURE
    if any(env.get(key) for key in _DIGITALOCEAN_ENV):
        return ProviderKind.DIGITALOCEAN
    return None


def _first(env: Mapping[str, str], keys: tuple[str, ...]) -> str:
    return next((env[key] for key in keys if env.get(key)), "")


def provider_config_from_env(
    env: Mapping[str, str] | None = None, kind: ProviderKind | None = None
) -> ProviderConfig | None:
    env = os.environ if env is None else env
    kind = kind or detect_provider(env)
    if kind is None:
        return None
    if kind is ProviderKind.AZURE:
        credentials = {"subscription_id": _first(env, _AZURE_ENV), "github_token": env.get("GITHUB_TOKEN", "")}
    else:
        credentials = {
            "api_token": _first(env, _DIGITALOCEAN_ENV),
            "spaces_key": env.get("SPACES_KEY", ""),
            "spaces_secret": env.get("SPACES_SECRET", ""),
        }
    return ProviderConfig(provider=kind, credentials={k: v for k, v in credentials.items() if v})


def auto_configure_provider(env: Mapping[str, str] | None = None, executor: Executor | None = None) -> Provider | None:
    config = provider_config_from_env(env)
    if config is None:
        logger.debug("No provider credentials found in the environment")
        return None
    logger.debug("Auto-configured %s provider from the environment", config.provider.value)
    return create_provider(config, executor)
