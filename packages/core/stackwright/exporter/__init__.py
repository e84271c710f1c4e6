"""Export a StackConfig to Terraform, JSON or YAML."""

from __future__ import annotations

from pathlib import Path

from stackwright.errors import ConfigurationError
from stackwright.models import ProviderKind, StackConfig

FORMATS = ("terraform", "json", "yaml")


def export_stack(
    config: StackConfig,
    fmt: str,
    provider: ProviderKind | str | None = None,
    output: str | None = None,
    output_dir: str | None = None,
) -> str:
    """Export a StackConfig to the given format. Returns the rendered string.

    For terraform the return value is main.tf; output_dir receives the whole module.
    """
    fmt = fmt.lower().strip()

    if fmt == "terraform":
        from stackwright.exporter.terraform import generate_terraform_module, write_terraform_files

        if provider is None:
            raise ConfigurationError("terraform export needs a provider (azure or digitalocean)")
        module = generate_terraform_module(provider, config)
        if output_dir:
            _write_files(write_terraform_files(module, output_dir))
        elif output:
            Path(output).write_text(module.main_tf)
        return module.main_tf

    if fmt == "json":
        content = config.to_json() + "\n"
        if output:
            Path(output).write_text(content)
        return content

    if fmt in ("yaml", "yml"):
        content = config.to_yaml()
        if output:
            Path(output).write_text(content)
        return content

    raise ValueError(f"Unknown export format: {fmt!r}. Supported: {', '.join(FORMATS)}")


def _write_files(files: dict[str, str]) -> None:
    for path, content in files.items():
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content)
