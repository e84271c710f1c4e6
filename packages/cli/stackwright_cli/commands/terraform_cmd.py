"""Terraform synthesis and stack-file conversion."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.syntax import Syntax

from stackwright import StackConfig, generate_terraform_module
from stackwright.exporter import FORMATS, export_stack
from stackwright_cli.project import resolve_provider, resolve_stack_path
from stackwright_cli.utils import handle_error, parse_provider

console = Console()

_SYNTAX_MAP = {"terraform": "hcl", "json": "json", "yaml": "yaml"}


def terraform(
    ctx: typer.Context,
    stack_file: Annotated[Path | None, typer.Argument(help="Stack YAML/JSON file (default: .stackwright/stack.yaml)")] = None,
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="azure or digitalocean")] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Directory to write the module into")] = None,
) -> None:
    """Generate a Terraform module equivalent to deploying the stack."""
    try:
        config = StackConfig.from_file(resolve_stack_path(stack_file))
        kind = resolve_provider(parse_provider(provider))
        if output:
            export_stack(config, "terraform", provider=kind, output_dir=str(output))
        module = generate_terraform_module(kind, config)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps({"provider": kind.value, "files": module.files()}))
        return

    if output:
        console.print(f"[green]Written to {output}/[/green] (main.tf, variables.tf, outputs.tf, terraform.tfvars)")
    else:
        console.print(Syntax(module.main_tf, "hcl", theme="monokai", word_wrap=True))


def export(
    ctx: typer.Context,
    stack_file: Annotated[Path | None, typer.Argument(help="Stack YAML/JSON file (default: .stackwright/stack.yaml)")] = None,
    format: Annotated[str, typer.Option("--format", "-f", help=f"Export format: {', '.join(FORMATS)}")] = "json",
    provider: Annotated[str | None, typer.Option("--provider", "-p", help="Provider for terraform output")] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file (directory for terraform)")] = None,
) -> None:
    """Convert a stack file to JSON, YAML or Terraform."""
    fmt = format.lower().strip()
    if fmt not in FORMATS and fmt != "yml":
        console.print(f"[red]Error:[/red] Unknown format {fmt!r}. Supported: {', '.join(FORMATS)}")
        raise typer.Exit(1)

    try:
        config = StackConfig.from_file(resolve_stack_path(stack_file))
        if fmt == "terraform":
            kind = resolve_provider(parse_provider(provider))
            content = export_stack(config, fmt, provider=kind, output_dir=str(output) if output else None)
        else:
            content = export_stack(config, fmt, output=str(output) if output else None)
    except typer.Exit:
        raise
    except Exception as e:
        handle_error(ctx, e)
        return

    if ctx.obj and ctx.obj.get("json"):
        print(json.dumps({"format": fmt, "content": content}))
        return

    if output:
        console.print(f"[green]Written to {output}[/green]")
    else:
        console.print(Syntax(content, _SYNTAX_MAP.get(fmt, "text"), theme="monokai", word_wrap=True))
