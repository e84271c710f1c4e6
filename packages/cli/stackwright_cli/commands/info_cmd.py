"""Read-only commands: provider detection and tier tables."""

from __future__ import annotations

import json
import os
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from stackwright import Tier
from stackwright.factory import detect_provider, provider_config_from_env
from stackwright.tiers import TIER_TABLES
from stackwright_cli.utils import handle_error, parse_provider

console = Console()


def detect(ctx: typer.Context) -> None:
    """Show which provider the environment's credentials point at."""
    kind = detect_provider(os.environ)
    config = provider_config_from_env(os.environ, kind) if kind else None
    # Never print credential values
    keys = sorted(config.credentials) if config else []

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps({"provider": kind.value if kind else None, "credentials": keys}))
        return

    if kind is None:
        console.print("[yellow]No provider detected.[/yellow] Set AZURE_SUBSCRIPTION_ID or DIGITALOCEAN_TOKEN.")
        raise typer.Exit(1)
    console.print(f"Detected provider: [cyan]{kind.value}[/cyan]")
    console.print(f"  Credentials: {', '.join(keys) or '(ambient)'}")


def tiers(
    ctx: typer.Context,
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="Only show one provider")] = None,
) -> None:
    """Show the tier -> SKU tables used by deploy and terraform."""
    try:
        only = parse_provider(provider)
    except Exception as e:
        handle_error(ctx, e)
        return

    rows = [
        (p, kind, table)
        for p, tables in TIER_TABLES.items()
        if only is None or p is only
        for kind, table in tables.items()
    ]

    if ctx.obj and ctx.obj.get("json"):
        data: dict[str, dict[str, dict[str, str]]] = {}
        for p, kind, table in rows:
            data.setdefault(p.value, {})[kind.value] = {t.value: sku for t, sku in table.items()}
        print(json.dumps(data, indent=2))
        return

    out = Table(title="Tier sizes")
    out.add_column("Provider", style="cyan")
    out.add_column("Resource")
    for t in Tier:
        out.add_column(t.value)
    for p, kind, table in rows:
        out.add_row(p.value, kind.value, *(table[t] for t in Tier))
    console.print(out)
