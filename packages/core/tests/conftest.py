"""Shared fixtures for core tests."""

from __future__ import annotations

from typing import Any

import pytest
from stackwright.errors import ProviderAPIError
from stackwright.executor import DryRunExecutor, Executor, Operation
from stackwright.models import (
    AppServiceSpec,
    CDNSpec,
    DatabaseSpec,
    DNSZoneSpec,
    ProviderConfig,
    ProviderKind,
    ResourceGroupSpec,
    StackConfig,
    StaticWebAppSpec,
    StorageSpec,
)


class FailingExecutor(DryRunExecutor):
    """Records like a dry run, but raises for one (kind, action)."""

    def __init__(self, kind: str, action: str = "create", exc: Exception | None = None):
        super().__init__()
        self._fail_on = (kind, action)
        self._exc = exc

    async def execute(self, op: Operation) -> dict[str, Any]:
        self.operations.append(op)
        if (op.kind.value, op.action) == self._fail_on:
            raise self._exc or ProviderAPIError(
                f"{op.kind.value} {op.action} {op.name!r} failed: quota exceeded",
                provider=op.provider.value,
                operation=op.action,
            )
        return {}


class ReplyExecutor(Executor):
    """Answers every operation with the same reply and keeps the operations."""

    def __init__(self, reply: dict[str, Any]):
        self.reply = reply
        self.operations: list[Operation] = []

    async def execute(self, op: Operation) -> dict[str, Any]:
        self.operations.append(op)
        return dict(self.reply)


@pytest.fixture
def acme_config() -> StackConfig:
    """Resource group plus a basic Postgres database."""
    return StackConfig(
        resource_group=ResourceGroupSpec(name="acme", location="nyc3"),
        database=DatabaseSpec(
            name="acme-db",
            engine="postgresql",
            version="15",
            tier="basic",
            admin_username="admin",
            admin_password="x",
        ),
    )


@pytest.fixture
def full_config() -> StackConfig:
    """Every resource kind declared; the CDN fronts the static site."""
    return StackConfig(
        resource_group=ResourceGroupSpec(name="shop", location="eastus", tags={"env": "prod", "team": "web"}),
        database=DatabaseSpec(
            name="shop-db",
            version="15",
            tier="standard",
            admin_username="shopadmin",
            admin_password="s3cret",
            allowed_ips=["203.0.113.10"],
        ),
        static_web_app=StaticWebAppSpec(
            name="shop-web",
            build_command="npm run build",
            output_directory="dist",
            repository_url="https://github.com/example/shop",
        ),
        app_service=AppServiceSpec(
            name="shop-api",
            runtime="node",
            runtime_version="18-lts",
            environment_variables={"NODE_ENV": "production", "API_URL": "https://api.example.com"},
        ),
        cdn=CDNSpec(name="shop-cdn"),
        dns_zone=DNSZoneSpec(name="shop.example.com"),
        storage=StorageSpec(name="shop-assets"),
    )


@pytest.fixture
def rg_only_config() -> StackConfig:
    return StackConfig(resource_group=ResourceGroupSpec(name="lonely", location="westeurope"))


@pytest.fixture
def do_provider_config() -> ProviderConfig:
    return ProviderConfig(provider=ProviderKind.DIGITALOCEAN, credentials={"api_token": "dop_v1_test"})


@pytest.fixture
def azure_provider_config() -> ProviderConfig:
    return ProviderConfig(provider=ProviderKind.AZURE, credentials={"subscription_id": "sub-123"})


@pytest.fixture
def dry_run() -> DryRunExecutor:
    return DryRunExecutor()


@pytest.fixture
def failing_executor() -> type[FailingExecutor]:
    return FailingExecutor


@pytest.fixture
def reply_executor() -> type[ReplyExecutor]:
    return ReplyExecutor
