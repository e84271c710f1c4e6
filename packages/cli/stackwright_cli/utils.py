from __future__ import annotations

import json
import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from stackwright import ConfigurationError, ProviderKind, StackwrightError

_err_console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    """Route library logs through rich on stderr; DEBUG with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


def handle_error(ctx: typer.Context, e: Exception) -> None:
    """Print a clean error message and exit 1."""
    import yaml

    verbose = ctx.obj.get("verbose", False) if ctx.obj else False
    json_mode = ctx.obj.get("json", False) if ctx.obj else False

    if isinstance(e, FileNotFoundError):
        msg = f"File not found: {e}"
    elif isinstance(e, yaml.YAMLError):
        msg = f"Invalid YAML: {e}"
    elif "validation" in type(e).__name__.lower():
        msg = f"Invalid stack file: {e}"
    elif isinstance(e, (StackwrightError, ValueError)):
        msg = str(e)
    else:
        msg = f"Error: {e}"

    if json_mode:
        print(json.dumps({"error": msg}))
    else:
        _err_console.print(f"[red]Error:[/red] {msg}")

    if verbose:
        _err_console.print_exception()

    raise typer.Exit(1)


def parse_provider(value: str | None) -> ProviderKind | None:
    if value is None:
        return None
    try:
        return ProviderKind(value.lower().strip())
    except ValueError:
        supported = ", ".join(p.value for p in ProviderKind)
        raise ConfigurationError(f"Unknown provider {value!r}. Supported: {supported}") from None
