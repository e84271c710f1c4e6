"""Write a starter stack file."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console

from stackwright import (
    AppServiceSpec,
    DatabaseSpec,
    ProviderKind,
    ResourceGroupSpec,
    StackConfig,
    StaticWebAppSpec,
)
from stackwright.naming import DEFAULT_AZURE_LOCATION, DEFAULT_DO_REGION
from stackwright_cli.project import PROJECT_DIR
from stackwright_cli.utils import handle_error, parse_provider

console = Console()


def starter_stack(name: str, provider: ProviderKind, with_app: bool = True) -> StackConfig:
    location = DEFAULT_AZURE_LOCATION if provider is ProviderKind.AZURE else DEFAULT_DO_REGION
    config = StackConfig(
        resource_group=ResourceGroupSpec(name=name, location=location, tags={"managed-by": "stackwright"}),
        database=DatabaseSpec(
            name=f"{name}-db",
            version="15",
            admin_username=f"{name.replace('-', '_')}_admin",
            admin_password="change-me",
        ),
    )
    if with_app:
        config.static_web_app = StaticWebAppSpec(
            name=f"{name}-web", build_command="npm run build", output_directory="dist"
        )
        config.app_service = AppServiceSpec(name=f"{name}-api", runtime="node", runtime_version="18-lts")
    return config


def init(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", help="Stack / resource group name")] = "my-stack",
    provider: Annotated[str, typer.Option("--provider", "-p", help="azure or digitalocean")] = "digitalocean",
    output: Annotated[str, typer.Option("--output", "-o", help="Output file path")] = "stack.yaml",
    minimal: Annotated[bool, typer.Option("--minimal", help="Resource group and database only")] = False,
    project: Annotated[bool, typer.Option("--project", help="Create a .stackwright/ project directory")] = False,
) -> None:
    """Write a starter stack file to edit and deploy."""
    try:
        kind = parse_provider(provider)
        config = starter_stack(name, kind, with_app=not minimal)

        if project:
            proj_dir = Path(PROJECT_DIR)
            proj_dir.mkdir(exist_ok=True)
            output_path = proj_dir / "stack.yaml"
            project_config = {"version": 1, "default_provider": kind.value}
            (proj_dir / "config.yaml").write_text(yaml.dump(project_config, default_flow_style=False, sort_keys=False))
        else:
            output_path = Path(output)

        output_path.write_text(config.to_yaml())

        console.print(f"[green]Created {output_path}[/green] for {kind.value}")
        console.print(f"  Resources: {', '.join(k.value for k in config.declared_kinds())}")
        console.print("\nNext steps:")
        console.print(f"  stackwright deploy {output_path} --provider {kind.value} --dry-run")
        console.print(f"  stackwright terraform {output_path} --provider {kind.value} -o ./infra")

    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
