"""Project directory support: finds and loads .stackwright/ configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from stackwright import ConfigurationError, ProviderKind
from stackwright.factory import detect_provider

PROJECT_DIR = ".stackwright"


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from start (default: cwd) looking for .stackwright/ directory."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / PROJECT_DIR).is_dir():
            return parent
    return None


def load_project_config(project_root: Path) -> dict[str, Any]:
    """Load .stackwright/config.yaml if it exists."""
    config_path = project_root / PROJECT_DIR / "config.yaml"
    if config_path.exists():
        return yaml.safe_load(config_path.read_text()) or {}
    return {}


def get_project_stack_path(project_root: Path) -> Path | None:
    stack_path = project_root / PROJECT_DIR / "stack.yaml"
    if stack_path.exists():
        return stack_path
    return None


def resolve_stack_path(stack_file: str | Path | None) -> Path:
    """Resolve a stack file path; if None, try the project directory."""
    if stack_file:
        return Path(stack_file)

    root = find_project_root()
    if root:
        stack_path = get_project_stack_path(root)
        if stack_path:
            return stack_path

    raise FileNotFoundError(
        "No stack file specified and no .stackwright/stack.yaml found. "
        "Pass a stack file or run 'stackwright init --project' to create a project."
    )


def resolve_provider(explicit: ProviderKind | None) -> ProviderKind:
    """--provider, then the project's default_provider, then the environment."""
    if explicit is not None:
        return explicit
    root = find_project_root()
    if root:
        default = load_project_config(root).get("default_provider")
        if default:
            return ProviderKind(default)
    detected = detect_provider()
    if detected is None:
        raise ConfigurationError(
            "No provider given and none detected. Pass --provider or set "
            "AZURE_SUBSCRIPTION_ID / DIGITALOCEAN_TOKEN."
        )
    return detected
