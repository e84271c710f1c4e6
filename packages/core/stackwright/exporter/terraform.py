"""Terraform module synthesis for a StackConfig.

Generation happens in two pure steps. describe_stack() turns the config into one
ResourceDescription per declared kind (blocks, variables, output expressions) using the
per-provider emitters; generate_terraform_module() renders those into the four files of a
module. Sizes come from stackwright.tiers, the same table the live handles read, and sit in
variable defaults so a tier change never touches main.tf.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePath
from types import ModuleType
from typing import Any

from stackwright.errors import TerraformGenerationError
from stackwright.exporter.hcl import Block, Expr, render_blocks, render_value
from stackwright.models import RESULT_TYPES, ProviderKind, ResourceKind, StackConfig

HEADER = "# Generated by Stackwright"

# Same order Stack.deploy() creates resources in; DNS is last since it is never automatic.
SYNTHESIS_ORDER: tuple[ResourceKind, ...] = (
    ResourceKind.RESOURCE_GROUP,
    ResourceKind.DATABASE,
    ResourceKind.STATIC_WEB_APP,
    ResourceKind.APP_SERVICE,
    ResourceKind.CDN,
    ResourceKind.STORAGE,
    ResourceKind.DNS_ZONE,
)


@dataclass
class Variable:
    name: str
    description: str
    type: str = "string"
    # None means no default; the caller must supply a value
    default: Any = None
    sensitive: bool = False

    def block(self) -> Block:
        b = Block("variable", (self.name,))
        b.attr("description", self.description).attr("type", Expr(self.type))
        if self.default is not None:
            b.attr("default", self.default)
        if self.sensitive:
            b.attr("sensitive", True)
        return b


@dataclass
class Output:
    name: str
    value: Any

    def block(self) -> Block:
        return Block("output", (self.name,)).attr("value", self.value)


@dataclass
class ResourceDescription:
    """Everything one resource kind contributes to a module."""

    kind: ResourceKind
    blocks: list[Block] = field(default_factory=list)
    variables: list[Variable] = field(default_factory=list)
    # result field -> HCL value
    outputs: dict[str, Any] = field(default_factory=dict)

    def output_blocks(self) -> list[Output]:
        fields = RESULT_TYPES[self.kind].OUTPUT_FIELDS  # type: ignore[attr-defined]
        missing = [f for f in fields if f not in self.outputs]
        if missing:
            raise TerraformGenerationError(f"{self.kind.value} emitter has no output for: {', '.join(missing)}")
        return [Output(f"{self.kind.value}_{f}", self.outputs[f]) for f in fields]


@dataclass(frozen=True)
class TerraformModule:
    provider: ProviderKind
    main_tf: str
    variables_tf: str
    outputs_tf: str
    terraform_tfvars: str

    def files(self) -> dict[str, str]:
        return {
            "main.tf": self.main_tf,
            "variables.tf": self.variables_tf,
            "outputs.tf": self.outputs_tf,
            "terraform.tfvars": self.terraform_tfvars,
        }


def _emitters(provider: ProviderKind | str) -> ModuleType:
    try:
        provider = ProviderKind(provider)
    except ValueError:
        raise TerraformGenerationError(f"No Terraform synthesizer for provider {provider!r}") from None
    if provider is ProviderKind.AZURE:
        from stackwright.exporter import azure_tf

        return azure_tf
    from stackwright.exporter import digitalocean_tf

    return digitalocean_tf


def describe_stack(provider: ProviderKind | str, config: StackConfig) -> list[ResourceDescription]:
    """Provider-shaped description of every declared resource, in synthesis order."""
    emitters = _emitters(provider)
    descriptions = []
    for kind in SYNTHESIS_ORDER:
        if config.spec_for(kind) is None:
            continue
        emit = emitters.EMITTERS.get(kind)
        if emit is None:
            raise TerraformGenerationError(f"No Terraform template for {kind.value} on {emitters.PROVIDER.value}")
        descriptions.append(emit(config))
    return descriptions


def _variables_tf(variables: list[Variable]) -> str:
    return render_blocks([v.block() for v in variables])


def _tfvars(variables: list[Variable]) -> str:
    lines = [HEADER]
    for v in variables:
        if v.sensitive or v.default is None or isinstance(v.default, Expr):
            lines.append(f'# {v.name} = ""  # set with TF_VAR_{v.name}')
        else:
            lines.append(f"{v.name} = {render_value(v.default)}")
    return "\n".join(lines) + "\n"


def generate_terraform_module(provider: ProviderKind | str, config: StackConfig) -> TerraformModule:
    """Render a complete module. Same inputs always give byte-identical text."""
    emitters = _emitters(provider)
    descriptions = describe_stack(emitters.PROVIDER, config)

    preamble_blocks, variables = emitters.preamble(config)
    blocks = list(preamble_blocks)
    outputs: list[Output] = []
    for desc in descriptions:
        blocks.extend(desc.blocks)
        variables.extend(desc.variables)
        outputs.extend(desc.output_blocks())

    names = [v.name for v in variables]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise TerraformGenerationError(f"Variables declared twice: {', '.join(duplicates)}")

    main_tf = f"{HEADER}\n# Stack: {config.resource_group.name}\n\n" + render_blocks(blocks)
    return TerraformModule(
        provider=emitters.PROVIDER,
        main_tf=main_tf,
        variables_tf=_variables_tf(variables),
        outputs_tf=render_blocks([o.block() for o in outputs]),
        terraform_tfvars=_tfvars(variables),
    )


def _readme(module: TerraformModule) -> str:
    return (
        f"# Terraform module ({module.provider.value})\n"
        "\n"
        "Generated by Stackwright. Review `terraform.tfvars`, export the sensitive\n"
        "variables listed there as `TF_VAR_*`, then run:\n"
        "\n"
        "```\n"
        "terraform init\n"
        "terraform plan\n"
        "terraform apply\n"
        "```\n"
    )


def write_terraform_files(module: TerraformModule, output_dir: str) -> dict[str, str]:
    """Map each file path under output_dir to its contents. Nothing is written."""
    files = {**module.files(), "README.md": _readme(module)}
    return {str(PurePath(output_dir) / name): content for name, content in files.items()}
