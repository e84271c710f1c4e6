"""Minimal HCL renderer: blocks, attributes and expressions, nothing else."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")
_INDENT = "  "


class Expr(str):
    """A raw HCL expression (`var.x`, a resource reference), rendered unquoted."""


@dataclass
class Block:
    type: str
    labels: tuple[str, ...] = ()
    body: list[tuple[str, Any] | Block] = field(default_factory=list)

    def attr(self, key: str, value: Any) -> Block:
        self.body.append((key, value))
        return self

    def block(self, child: Block) -> Block:
        self.body.append(child)
        return self

    def render(self, depth: int = 0) -> str:
        return "\n".join(_render_block(self, depth))


def quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("${", "$${")
        .replace("%{", "%%{")
    )
    return f'"{escaped}"'


def _key(key: str) -> str:
    return key if _IDENTIFIER.match(key) else quote(key)


def render_value(value: Any, depth: int = 0) -> str:
    if isinstance(value, Expr):
        return str(value)
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return quote(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_value(v, depth) for v in value) + "]"
    if isinstance(value, dict):
        if not value:
            return "{}"
        pad = _INDENT * (depth + 1)
        lines = ["{"]
        for k in sorted(value):
            lines.append(f"{pad}{_key(str(k))} = {render_value(value[k], depth + 1)}")
        lines.append(_INDENT * depth + "}")
        return "\n".join(lines)
    raise TypeError(f"Cannot render {type(value).__name__} as HCL")


def _render_block(block: Block, depth: int) -> list[str]:
    pad = _INDENT * depth
    header = " ".join([block.type, *(quote(label) for label in block.labels)])
    if not block.body:
        return [f"{pad}{header} {{}}"]
    lines = [f"{pad}{header} {{"]
    for entry in block.body:
        if isinstance(entry, Block):
            lines.extend(_render_block(entry, depth + 1))
        else:
            key, value = entry
            lines.append(f"{pad}{_INDENT}{key} = {render_value(value, depth + 1)}")
    lines.append(f"{pad}}}")
    return lines


def render_blocks(blocks: list[Block]) -> str:
    """Blocks separated by blank lines, with a trailing newline."""
    if not blocks:
        return ""
    return "\n\n".join(b.render() for b in blocks) + "\n"
