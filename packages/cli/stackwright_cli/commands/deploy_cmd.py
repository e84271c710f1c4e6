"""Deploy a stack file against a live provider, or record the calls with --dry-run."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from stackwright import ConfigurationError, ProviderKind, Stack, StackConfig, create_provider
from stackwright.executor import DryRunExecutor, Executor, default_executor
from stackwright.factory import provider_config_from_env
from stackwright_cli.project import resolve_provider, resolve_stack_path
from stackwright_cli.utils import handle_error, parse_provider

console = Console()

# Attribute shown as the "endpoint" column per result type
_ENDPOINT_FIELDS = ("connection_string", "default_hostname", "hostname", "endpoint", "location")


def build_stack(
    stack_file: Path | None, provider: str | None, dry_run: bool, name: str | None = None
) -> tuple[Stack, Executor]:
    path = resolve_stack_path(stack_file)
    config = StackConfig.from_file(path)
    kind: ProviderKind = resolve_provider(parse_provider(provider))
    provider_config = provider_config_from_env(kind=kind)
    if provider_config is None:
        raise ConfigurationError(f"No credentials found for {kind.value}")
    executor = DryRunExecutor() if dry_run else default_executor(provider_config)
    stack = create_provider(provider_config, executor).create_stack(name or config.resource_group.name, config)
    return stack, executor


def deploy(
    ctx: typer.Context,
    stack_file: Annotated[Path | None, typer.Argument(help="Stack YAML/JSON file (default: .stackwright/stack.yaml)")] = None,
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="azure or digitalocean")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Record provider calls without running them")] = False,
    name: Annotated[str | None, typer.Option("--name", help="Stack name (default: resource group name)")] = None,
) -> None:
    """Create every resource declared in a stack file, in dependency order."""
    try:
        stack, executor = build_stack(stack_file, provider, dry_run, name)
        with console.status(f"Deploying {stack.name} to {stack.provider.kind.value}..."):
            result = asyncio.run(stack.deploy())
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    operations = executor.operations if isinstance(executor, DryRunExecutor) else []

    if ctx.obj and ctx.obj.get("json"):
        payload = result.model_dump(mode="json", exclude_none=True)
        if dry_run:
            payload["operations"] = [op.describe() for op in operations]
        print(json.dumps(payload, indent=2))
    else:
        table = Table(title=f"Stack {stack.name} ({stack.provider.kind.value})")
        table.add_column("Resource", style="cyan")
        table.add_column("Name")
        table.add_column("ID")
        table.add_column("Endpoint")
        for kind in result.resources.kinds():
            res = result.resources.get(kind)
            endpoint = next((str(getattr(res, f)) for f in _ENDPOINT_FIELDS if getattr(res, f, None)), "")
            table.add_row(kind.value, res.name, res.id, endpoint)
        console.print(table)

        if dry_run:
            console.print(f"\n[bold]Dry run:[/bold] {len(operations)} provider calls recorded")
            for op in operations:
                console.print(f"  {op.describe()}", markup=False, highlight=False)

        for err in result.errors:
            console.print(f"[red]Failed:[/red] {err}")
        status = "[green]deployed[/green]" if result.success else "[red]failed[/red]"
        console.print(f"\n{status} in {result.duration:.2f}s")

    if not result.success:
        raise typer.Exit(1)
