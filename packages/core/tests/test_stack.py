"""Tests for the Stack orchestrator: ordering, partial failure, status, destroy."""

from __future__ import annotations

import asyncio

import pytest
from stackwright.errors import ConfigurationError
from stackwright.exporter.terraform import SYNTHESIS_ORDER, describe_stack
from stackwright.models import ProviderKind, ResourceKind, StackConfig
from stackwright.providers import AzureProvider, DigitalOceanProvider
from stackwright.stack import DEPLOY_ORDER, Stack


def _kinds_in_order(operations) -> list[ResourceKind]:
    seen: list[ResourceKind] = []
    for op in operations:
        if op.kind not in seen:
            seen.append(op.kind)
    return seen


class TestInitializeResources:
    def test_declared_handles_only(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        assert isinstance(stack, Stack)
        assert stack.resource_group.name == "acme"
        assert stack.database.name == "acme-db"
        assert stack.cdn is None
        assert stack.storage is None
        assert [kind for kind, _ in stack.handles()] == [ResourceKind.RESOURCE_GROUP, ResourceKind.DATABASE]

    def test_children_scoped_to_group(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        assert stack.database.scope == "acme"
        assert stack.database.config.region == "nyc3"

    def test_group_location_wins_over_provider_region(self, dry_run, acme_config, do_provider_config, caplog):
        config = do_provider_config.model_copy(update={"region": "ams3"})
        with caplog.at_level("WARNING"):
            stack = DigitalOceanProvider(config, dry_run).create_stack("acme", acme_config)
        assert stack.database.config.region == "nyc3"
        assert "group location nyc3" in caplog.text
        # The provider itself keeps its own region
        assert stack.provider.config.region == "ams3"


    def test_cdn_origin_defaults_to_compute(self, azure_provider_config, dry_run, full_config):
        stack = AzureProvider(azure_provider_config, dry_run).create_stack("shop", full_config)
        assert stack.cdn.origin == "shop-web.azurestaticapps.net"
        # The declared config is left untouched
        assert full_config.cdn.origin is None

    def test_cdn_without_origin_fails_early(self, do_provider_config, dry_run):
        config = StackConfig.model_validate(
            {"resource_group": {"name": "a", "location": "nyc3"}, "cdn": {"name": "edge"}}
        )
        with pytest.raises(ConfigurationError, match="origin"):
            DigitalOceanProvider(do_provider_config, dry_run).create_stack("a", config)


class TestDeploy:
    def test_deploy_order(self, do_provider_config, dry_run, full_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("shop", full_config)
        result = asyncio.run(stack.deploy())
        assert result.success is True
        assert result.errors == []
        assert _kinds_in_order(dry_run.operations) == list(DEPLOY_ORDER)

    def test_dns_zone_not_deployed(self, do_provider_config, dry_run, full_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("shop", full_config)
        result = asyncio.run(stack.deploy())
        assert result.resources.dns_zone is None
        assert all(op.kind is not ResourceKind.DNS_ZONE for op in dry_run.operations)
        # ...but the handle is ready for the caller
        zone = asyncio.run(stack.dns_zone.create())
        assert zone.name == "shop.example.com"

    def test_resource_group_only(self, azure_provider_config, dry_run, rg_only_config):
        stack = AzureProvider(azure_provider_config, dry_run).create_stack("lonely", rg_only_config)
        result = asyncio.run(stack.deploy())
        assert result.success is True
        assert result.resources.kinds() == [ResourceKind.RESOURCE_GROUP]
        assert result.resources.resource_group.location == "westeurope"
        assert result.duration >= 0

    def test_acme_scenario(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        result = asyncio.run(stack.deploy())
        db = result.resources.database
        assert result.success is True
        assert db.port == 25060
        assert db.admin_username == "admin"
        assert db.connection_string.startswith("postgresql://admin@")

    def test_partial_failure_stops_sequence(self, do_provider_config, failing_executor, full_config):
        executor = failing_executor("app_service")
        stack = DigitalOceanProvider(do_provider_config, executor).create_stack("shop", full_config)
        result = asyncio.run(stack.deploy())

        assert result.success is False
        assert len(result.errors) == 1
        assert "quota exceeded" in result.errors[0]
        assert result.resources.kinds() == [
            ResourceKind.RESOURCE_GROUP,
            ResourceKind.DATABASE,
            ResourceKind.STATIC_WEB_APP,
        ]
        assert all(op.kind not in (ResourceKind.CDN, ResourceKind.STORAGE) for op in executor.operations)

        status = stack.get_status()
        assert status.state == "failed"
        assert status.resources["app_service"].status == "failed"
        assert "quota exceeded" in status.resources["app_service"].error
        assert status.resources["database"].status == "ready"
        assert "cdn" not in status.resources

    def test_first_resource_failure(self, azure_provider_config, failing_executor, acme_config):
        executor = failing_executor("resource_group")
        stack = AzureProvider(azure_provider_config, executor).create_stack("acme", acme_config)
        result = asyncio.run(stack.deploy())
        assert result.success is False
        assert result.resources.kinds() == []
        assert len(executor.operations) == 1

    def test_unexpected_exception_is_captured(self, do_provider_config, failing_executor, acme_config):
        executor = failing_executor("database", exc=RuntimeError())
        stack = DigitalOceanProvider(do_provider_config, executor).create_stack("acme", acme_config)
        result = asyncio.run(stack.deploy())
        assert result.success is False
        assert result.errors == ["RuntimeError"]
        assert result.resources.kinds() == [ResourceKind.RESOURCE_GROUP]

    def test_redeploy_starts_over(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        asyncio.run(stack.deploy())
        first = len(dry_run.operations)
        asyncio.run(stack.deploy())
        assert len(dry_run.operations) == 2 * first

    def test_children_created_inside_the_project(self, do_provider_config, dry_run, full_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("shop", full_config)
        asyncio.run(stack.deploy())
        creates = {op.kind: op for op in dry_run.operations if op.action == "create"}
        for kind in (ResourceKind.DATABASE, ResourceKind.STATIC_WEB_APP, ResourceKind.APP_SERVICE):
            assert creates[kind].params["project_id"] == "do-project-shop"
        assigns = [op for op in dry_run.operations if op.action == "assign_project"]
        assert [op.kind for op in assigns] == [ResourceKind.STORAGE]
        assert assigns[0].path == "/v2/projects/do-project-shop/resources"
        assert assigns[0].params == {"resources": ["do:space:shop-assets"]}

    @pytest.mark.parametrize(
        "declared",
        [
            (ResourceKind.DATABASE, ResourceKind.STORAGE),
            (ResourceKind.STATIC_WEB_APP, ResourceKind.CDN),
            (ResourceKind.APP_SERVICE, ResourceKind.STORAGE),
            (ResourceKind.DATABASE, ResourceKind.APP_SERVICE, ResourceKind.CDN),
            (ResourceKind.CDN, ResourceKind.DNS_ZONE, ResourceKind.STATIC_WEB_APP),
        ],
    )
    def test_subset_order(self, do_provider_config, dry_run, full_config, declared):
        dropped = {kind.value: None for kind in ResourceKind if kind is not ResourceKind.RESOURCE_GROUP}
        for kind in declared:
            dropped.pop(kind.value)
        config = full_config.model_copy(update=dropped)
        wanted = {ResourceKind.RESOURCE_GROUP, *declared}

        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("shop", config)
        result = asyncio.run(stack.deploy())
        assert result.success is True
        assert _kinds_in_order(dry_run.operations) == [k for k in DEPLOY_ORDER if k in wanted]
        assert result.resources.kinds() == [k for k in DEPLOY_ORDER if k in wanted]

        for provider in ProviderKind:
            described = [d.kind for d in describe_stack(provider, config)]
            assert described == [k for k in SYNTHESIS_ORDER if k in wanted]


def _named_config(name: str) -> StackConfig:
    return StackConfig.model_validate(
        {
            "resource_group": {"name": name, "location": "nyc3"},
            "database": {"name": f"{name}-db", "version": "15", "admin_username": "admin", "admin_password": "x"},
            "storage": {"name": f"{name}-files"},
        }
    )


class TestConcurrentStacks:
    def test_one_provider_deploys_two_stacks(self, do_provider_config, dry_run):
        provider = DigitalOceanProvider(do_provider_config, dry_run)
        alpha = provider.create_stack("alpha", _named_config("alpha"))
        beta = provider.create_stack("beta", _named_config("beta"))

        async def deploy_both():
            return await asyncio.gather(alpha.deploy(), beta.deploy())

        first, second = asyncio.run(deploy_both())
        assert first.success and second.success
        assert (first.resources.database.name, first.resources.storage.name) == ("alpha-db", "alpha-files")
        assert (second.resources.database.name, second.resources.storage.name) == ("beta-db", "beta-files")

        for scope in ("alpha", "beta"):
            ops = [op for op in dry_run.operations if op.scope == scope]
            assert {op.name for op in ops} == {scope, f"{scope}-db", f"{scope}-files"}
            db_create = next(op for op in ops if op.kind is ResourceKind.DATABASE and op.action == "create")
            assert db_create.params["project_id"] == f"do-project-{scope}"
        assert provider.config == do_provider_config
        assert alpha.get_status().state == beta.get_status().state == "ready"



class TestStatusAndDestroy:
    def test_fresh_stack_status(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        status = stack.get_status()
        assert status.state == "ready"
        assert status.resources == {}
        assert dry_run.operations == []

    def test_status_after_deploy(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        asyncio.run(stack.deploy())
        status = stack.get_status()
        assert status.state == "ready"
        assert {k: v.status for k, v in status.resources.items()} == {
            "resource_group": "ready",
            "database": "ready",
        }

    def test_destroy_deletes_only_the_group(self, do_provider_config, dry_run, acme_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("acme", acme_config)
        asyncio.run(stack.deploy())
        before = len(dry_run.operations)
        asyncio.run(stack.destroy())

        destroy_ops = dry_run.operations[before:]
        assert {op.kind for op in destroy_ops} == {ResourceKind.RESOURCE_GROUP}
        assert destroy_ops[-1].method == "DELETE"
        assert destroy_ops[-1].path == "/v2/projects/do-project-acme"

        status = stack.get_status()
        assert status.state == "destroying"
        assert {v.status for v in status.resources.values()} == {"deleting"}

    def test_azure_destroy_command(self, azure_provider_config, dry_run, acme_config):
        stack = AzureProvider(azure_provider_config, dry_run).create_stack("acme", acme_config)
        asyncio.run(stack.destroy())
        cmd = dry_run.operations[-1].command
        assert cmd[:5] == ["az", "group", "delete", "--name", "acme"]
        assert "--yes" in cmd

    def test_export_config_round_trip(self, do_provider_config, dry_run, full_config):
        stack = DigitalOceanProvider(do_provider_config, dry_run).create_stack("shop", full_config)
        assert StackConfig.model_validate_json(stack.export_config()) == full_config
