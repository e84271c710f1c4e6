from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from stackwright_cli.commands.deploy_cmd import build_stack
from stackwright_cli.utils import handle_error

console = Console()


def destroy(
    ctx: typer.Context,
    stack_file: Annotated[Path | None, typer.Argument(help="Stack YAML/JSON file (default: .stackwright/stack.yaml)")] = None,
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="azure or digitalocean")] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation prompt")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Record provider calls without running them")] = False,
) -> None:
    """Delete the stack's resource group / project and everything the provider cascades from it."""
    try:
        stack, _ = build_stack(stack_file, provider, dry_run)
        if not yes and not dry_run:
            typer.confirm(
                f"Destroy {stack.config.resource_group.name} on {stack.provider.kind.value}?", abort=True
            )
        with console.status(f"Destroying {stack.name}..."):
            asyncio.run(stack.destroy())
    except (typer.Exit, typer.Abort):
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps(stack.get_status().model_dump(mode="json")))
    else:
        console.print(f"[yellow]Destroy requested[/yellow] for {stack.config.resource_group.name}")
