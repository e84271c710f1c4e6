"""Tests for provider construction, environment detection and multi-provider deploys."""

from __future__ import annotations

import asyncio

import pytest
from stackwright.errors import ConfigurationError
from stackwright.executor import DryRunExecutor, HttpApiExecutor
from stackwright.factory import (
    auto_configure_provider,
    create_provider,
    create_stack,
    detect_provider,
    multi_provider_deploy,
    provider_config_from_env,
    quick_deploy,
)
from stackwright.models import ProviderConfig, ProviderKind
from stackwright.providers import AzureProvider, DigitalOceanProvider


class TestDetectProvider:
    def test_nothing_configured(self):
        assert detect_provider({}) is None

    def test_empty_values_ignored(self):
        assert detect_provider({"DO_TOKEN": "", "AZURE_SUBSCRIPTION_ID": ""}) is None

    def test_digitalocean(self):
        assert detect_provider({"DIGITALOCEAN_TOKEN": "dop_v1"}) is ProviderKind.DIGITALOCEAN

    def test_azure_takes_precedence(self):
        env = {"ARM_SUBSCRIPTION_ID": "sub", "DO_TOKEN": "dop_v1"}
        assert detect_provider(env) is ProviderKind.AZURE

    def test_reads_process_environment(self, monkeypatch):
        for key in ("AZURE_SUBSCRIPTION_ID", "ARM_SUBSCRIPTION_ID", "DIGITALOCEAN_TOKEN"):
            monkeypatch.delenv(key, raising=False)
        monkeypatch.setenv("DO_TOKEN", "dop_v1")
        assert detect_provider() is ProviderKind.DIGITALOCEAN


class TestProviderConfigFromEnv:
    def test_digitalocean_credentials(self):
        config = provider_config_from_env({"DO_TOKEN": "dop_v1", "SPACES_KEY": "key"})
        assert config.provider is ProviderKind.DIGITALOCEAN
        assert config.credentials == {"api_token": "dop_v1", "spaces_key": "key"}

    def test_azure_credentials(self):
        config = provider_config_from_env({"AZURE_SUBSCRIPTION_ID": "sub-1"})
        assert config.credentials == {"subscription_id": "sub-1"}

    def test_azure_github_token(self):
        config = provider_config_from_env({"AZURE_SUBSCRIPTION_ID": "sub-1", "GITHUB_TOKEN": "ghp_x"})
        assert config.credentials == {"subscription_id": "sub-1", "github_token": "ghp_x"}

    def test_explicit_kind(self):
        config = provider_config_from_env({"DO_TOKEN": "dop_v1"}, kind=ProviderKind.AZURE)
        assert config.provider is ProviderKind.AZURE
        assert config.credentials == {}

    def test_none_when_undetected(self):
        assert provider_config_from_env({}) is None


class TestCreateProvider:
    def test_builds_matching_provider(self, do_provider_config, azure_provider_config):
        assert isinstance(create_provider(do_provider_config), DigitalOceanProvider)
        assert isinstance(create_provider(azure_provider_config), AzureProvider)

    def test_missing_token(self):
        with pytest.raises(ConfigurationError):
            create_provider(ProviderConfig(provider="digitalocean"))

    def test_auto_configure(self):
        assert auto_configure_provider({}) is None
        provider = auto_configure_provider({"DO_TOKEN": "dop_v1"})
        assert isinstance(provider, DigitalOceanProvider)

    def test_create_stack(self, do_provider_config, acme_config):
        stack = create_stack("acme", do_provider_config, acme_config)
        assert stack.provider.kind is ProviderKind.DIGITALOCEAN
        assert stack.name == "acme"


class TestQuickDeploy:
    def test_success(self, do_provider_config, acme_config, dry_run):
        result = asyncio.run(quick_deploy("acme", do_provider_config, acme_config, dry_run))
        assert result.success is True
        assert result.resources.database.port == 25060

    def test_failure_is_reported(self, do_provider_config, acme_config, failing_executor):
        result = asyncio.run(quick_deploy("acme", do_provider_config, acme_config, failing_executor("database")))
        assert result.success is False
        assert result.resources.resource_group is not None

    def test_without_executor_calls_the_api(self, do_provider_config, acme_config, monkeypatch):
        calls: list[tuple[str, str]] = []

        def fake_request(self, method, url, body):
            calls.append((method, url))
            return b"{}"

        monkeypatch.setattr(HttpApiExecutor, "_request", fake_request)
        result = asyncio.run(quick_deploy("acme", do_provider_config, acme_config))
        assert result.success is True
        assert calls[0] == ("POST", "https://api.digitalocean.com/v2/projects")
        assert ("POST", "https://api.digitalocean.com/v2/databases") in calls



class TestMultiProviderDeploy:
    def test_results_keyed_by_provider(self, do_provider_config, azure_provider_config, acme_config):
        executors = {ProviderKind.DIGITALOCEAN: DryRunExecutor(), ProviderKind.AZURE: DryRunExecutor()}
        results = asyncio.run(
            multi_provider_deploy("acme", acme_config, [do_provider_config, azure_provider_config], executors)
        )
        assert set(results) == {ProviderKind.DIGITALOCEAN, ProviderKind.AZURE}
        assert all(r.success for r in results.values())
        assert results[ProviderKind.DIGITALOCEAN].resources.database.port == 25060
        assert results[ProviderKind.AZURE].resources.database.port == 5432
        assert executors[ProviderKind.AZURE].operations[0].command[0] == "az"

    def test_one_failure_does_not_affect_the_other(
        self, do_provider_config, azure_provider_config, acme_config, failing_executor
    ):
        executors = {ProviderKind.DIGITALOCEAN: failing_executor("database"), ProviderKind.AZURE: DryRunExecutor()}
        results = asyncio.run(
            multi_provider_deploy("acme", acme_config, [do_provider_config, azure_provider_config], executors)
        )
        assert results[ProviderKind.DIGITALOCEAN].success is False
        assert results[ProviderKind.AZURE].success is True

    def test_duplicate_provider_rejected(self, do_provider_config, acme_config):
        with pytest.raises(ConfigurationError):
            asyncio.run(multi_provider_deploy("acme", acme_config, [do_provider_config, do_provider_config]))

    def test_bad_config_fails_before_any_call(self, azure_provider_config, acme_config):
        azure = DryRunExecutor()
        with pytest.raises(ConfigurationError):
            asyncio.run(
                multi_provider_deploy(
                    "acme",
                    acme_config,
                    [azure_provider_config, ProviderConfig(provider="digitalocean")],
                    {ProviderKind.AZURE: azure},
                )
            )
        assert azure.operations == []
