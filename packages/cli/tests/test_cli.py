"""CLI command tests using Typer's CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from stackwright import ProviderAPIError, StackConfig
from stackwright.executor import DryRunExecutor
from stackwright_cli.commands import deploy_cmd
from stackwright_cli.main import app
from typer.testing import CliRunner

runner = CliRunner()

_STACK_YAML = """\
resource_group:
  name: acme
  location: nyc3
database:
  name: acme-db
  engine: postgresql
  version: "15"
  tier: basic
  admin_username: admin
  admin_password: x
"""

_CREDENTIAL_ENV = (
    "AZURE_SUBSCRIPTION_ID",
    "ARM_SUBSCRIPTION_ID",
    "DO_TOKEN",
    "DIGITALOCEAN_TOKEN",
    "SPACES_KEY",
    "SPACES_SECRET",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _CREDENTIAL_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def stack_file(tmp_path: Path) -> Path:
    p = tmp_path / "stack.yaml"
    p.write_text(_STACK_YAML)
    return p


class _FailOnDatabase(DryRunExecutor):
    async def execute(self, op):
        await super().execute(op)
        if op.kind.value == "database":
            raise ProviderAPIError("database create 'acme-db' failed: quota exceeded")
        return {}


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "stackwright 0.1.0" in result.output


class TestDeploy:
    def test_dry_run_json(self, stack_file, monkeypatch):
        monkeypatch.setenv("DO_TOKEN", "dop_v1_test")
        result = runner.invoke(app, ["--json", "deploy", str(stack_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["resources"]["database"]["port"] == 25060
        assert data["resources"]["database"]["admin_username"] == "admin"
        assert data["operations"][:3] == ["POST /v2/projects", "GET /v2/projects", "POST /v2/databases"]

    def test_dry_run_table(self, stack_file, monkeypatch):
        monkeypatch.setenv("DO_TOKEN", "dop_v1_test")
        result = runner.invoke(app, ["deploy", str(stack_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "Dry run:" in result.output
        assert "deployed" in result.output

    def test_azure_needs_no_credentials(self, stack_file):
        result = runner.invoke(app, ["--json", "deploy", str(stack_file), "--provider", "azure", "--dry-run"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["resources"]["database"]["port"] == 5432
        assert data["operations"][0].startswith("az group create")

    def test_missing_token(self, stack_file):
        result = runner.invoke(app, ["--json", "deploy", str(stack_file), "--provider", "digitalocean", "--dry-run"])
        assert result.exit_code == 1
        assert "token" in json.loads(result.stdout)["error"]

    def test_no_provider_detected(self, stack_file):
        result = runner.invoke(app, ["--json", "deploy", str(stack_file), "--dry-run"])
        assert result.exit_code == 1
        assert "No provider" in json.loads(result.stdout)["error"]

    def test_unknown_provider(self, stack_file):
        result = runner.invoke(app, ["--json", "deploy", str(stack_file), "--provider", "aws", "--dry-run"])
        assert result.exit_code == 1
        assert "Unknown provider" in json.loads(result.stdout)["error"]

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["--json", "deploy", str(tmp_path / "nope.yaml"), "--provider", "azure"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"].startswith("File not found")

    def test_invalid_stack(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("database:\n  name: d\n")
        result = runner.invoke(app, ["--json", "deploy", str(bad), "--provider", "azure", "--dry-run"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"].startswith("Invalid stack file")

    def test_partial_failure_exits_nonzero(self, stack_file, monkeypatch):
        monkeypatch.setenv("DO_TOKEN", "dop_v1_test")
        monkeypatch.setattr(deploy_cmd, "DryRunExecutor", _FailOnDatabase)
        result = runner.invoke(app, ["--json", "deploy", str(stack_file), "--dry-run"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["success"] is False
        assert "quota exceeded" in data["errors"][0]
        assert list(data["resources"]) == ["resource_group"]


class TestDestroy:
    def test_dry_run(self, stack_file, monkeypatch):
        monkeypatch.setenv("DO_TOKEN", "dop_v1_test")
        result = runner.invoke(app, ["--json", "destroy", str(stack_file), "--dry-run"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["state"] == "destroying"
        assert data["provider"] == "digitalocean"

    def test_confirmation_declined(self, stack_file, monkeypatch):
        monkeypatch.setenv("AZURE_SUBSCRIPTION_ID", "sub-123")
        result = runner.invoke(app, ["destroy", str(stack_file)], input="n\n")
        assert result.exit_code == 1
        assert "Destroy acme on azure?" in result.output


class TestTerraform:
    def test_writes_module(self, stack_file, tmp_path):
        out = tmp_path / "infra"
        result = runner.invoke(app, ["terraform", str(stack_file), "--provider", "digitalocean", "--output", str(out)])
        assert result.exit_code == 0, result.output
        main = (out / "main.tf").read_text()
        assert 'resource "digitalocean_database_cluster" "database"' in main
        assert "size = var.db_size" in main
        for name in ("variables.tf", "outputs.tf", "terraform.tfvars", "README.md"):
            assert (out / name).exists()

    def test_json(self, stack_file):
        result = runner.invoke(app, ["--json", "terraform", str(stack_file), "-p", "azure"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["provider"] == "azure"
        assert set(data["files"]) == {"main.tf", "variables.tf", "outputs.tf", "terraform.tfvars"}
        assert "azurerm_postgresql_flexible_server" in data["files"]["main.tf"]

    def test_provider_from_environment(self, stack_file, monkeypatch):
        monkeypatch.setenv("DIGITALOCEAN_TOKEN", "dop_v1_test")
        result = runner.invoke(app, ["--json", "terraform", str(stack_file)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["provider"] == "digitalocean"


class TestExport:
    def test_yaml(self, stack_file):
        result = runner.invoke(app, ["--json", "export", str(stack_file), "--format", "yaml"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert StackConfig.from_yaml(data["content"]) == StackConfig.from_file(stack_file)

    def test_json_to_file(self, stack_file, tmp_path):
        out = tmp_path / "stack.json"
        result = runner.invoke(app, ["export", str(stack_file), "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert StackConfig.from_file(out) == StackConfig.from_file(stack_file)

    def test_unknown_format(self, stack_file):
        result = runner.invoke(app, ["export", str(stack_file), "--format", "pulumi"])
        assert result.exit_code == 1
        assert "Unknown format" in result.output


class TestInfo:
    def test_tiers_json(self):
        result = runner.invoke(app, ["--json", "tiers"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["azure"]["database"]["standard"] == "Standard_D2s_v3"
        assert data["digitalocean"]["app_service"]["basic"] == "basic-xs"

    def test_tiers_one_provider(self):
        result = runner.invoke(app, ["--json", "tiers", "--provider", "digitalocean"])
        assert list(json.loads(result.stdout)) == ["digitalocean"]

    def test_tiers_table(self):
        result = runner.invoke(app, ["tiers"])
        assert result.exit_code == 0
        assert "Tier sizes" in result.output

    def test_detect(self, monkeypatch):
        monkeypatch.setenv("DO_TOKEN", "dop_v1_secret")
        monkeypatch.setenv("SPACES_KEY", "key")
        result = runner.invoke(app, ["--json", "detect"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"provider": "digitalocean", "credentials": ["api_token", "spaces_key"]}
        assert "dop_v1_secret" not in result.output

    def test_detect_nothing(self):
        result = runner.invoke(app, ["detect"])
        assert result.exit_code == 1
        assert "No provider detected" in result.output


class TestProjectDirectory:
    def test_deploy_uses_project_stack(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DO_TOKEN", "dop_v1_test")
        init = runner.invoke(app, ["init", "--project", "--name", "acme", "--provider", "digitalocean"])
        assert init.exit_code == 0, init.output

        result = runner.invoke(app, ["--json", "deploy", "--dry-run"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert set(data["resources"]) == {"resource_group", "database", "static_web_app", "app_service"}

    def test_project_default_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        runner.invoke(app, ["init", "--project", "--minimal", "--name", "acme", "--provider", "azure"])
        result = runner.invoke(app, ["--json", "terraform"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["provider"] == "azure"

    def test_no_stack_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["--json", "terraform", "--provider", "azure"])
        assert result.exit_code == 1
        assert "stackwright init --project" in json.loads(result.stdout)["error"]
