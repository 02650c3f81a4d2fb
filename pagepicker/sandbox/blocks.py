"""Typed building blocks for the client programs injected into the sandbox.

A client program is assembled from two kinds of parts: constants whose values
come from the host (base URL, timings, script id) and static blocks of
JavaScript that never change at runtime. Host values are only ever rendered as
JSON literals, so no host-controlled string is spliced into program text.
Static blocks are checked once at construction for sequences that would break
the surrounding document.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Tuple

from ..errors import ProgramAssemblyError


_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

# Sequences the resource inliner or the HTML parser would act on
_FORBIDDEN_SEQUENCES: Tuple[str, ...] = (
    "</script",
    "<!--",
    "-->",
    "<img",
    "<link",
    "background-image",
)


@dataclass(frozen=True)
class JsConstant:
    """A named constant rendered as ``const NAME = <json>;``."""

    name: str
    value: Any

    def __post_init__(self):
        if not _IDENTIFIER_RE.match(self.name):
            raise ProgramAssemblyError(f"Invalid constant name: {self.name!r}")
        try:
            json.dumps(self.value)
        except (TypeError, ValueError) as e:
            raise ProgramAssemblyError(f"Constant {self.name} is not JSON-serializable: {e}") from e

    def render(self) -> str:
        literal = json.dumps(self.value, ensure_ascii=True)
        # JSON allows these inside strings but they are unsafe in a <script> body
        literal = literal.replace("<", "\\u003c").replace(">", "\\u003e")
        return f"const {self.name} = {literal};"


@dataclass(frozen=True)
class ProgramBlock:
    """A static, pre-validated block of program text."""

    name: str
    source: str

    def __post_init__(self):
        lowered = self.source.lower()
        for sequence in _FORBIDDEN_SEQUENCES:
            if sequence in lowered:
                raise ProgramAssemblyError(
                    f"Block '{self.name}' contains forbidden sequence {sequence!r}"
                )

    def render(self) -> str:
        return f"// {self.name}\n{self.source.strip()}"


@dataclass
class ClientProgram:
    """A complete client program: constants followed by blocks, in one IIFE."""

    script_id: str
    constants: List[JsConstant] = field(default_factory=list)
    blocks: List[ProgramBlock] = field(default_factory=list)

    def add_constant(self, name: str, value: Any) -> "ClientProgram":
        if any(constant.name == name for constant in self.constants):
            raise ProgramAssemblyError(f"Duplicate constant: {name}")
        self.constants.append(JsConstant(name, value))
        return self

    def add_block(self, block: ProgramBlock) -> "ClientProgram":
        self.blocks.append(block)
        return self

    def render(self) -> str:
        """Render the program as a self-invoking function.

        Returns:
            JavaScript source suitable for a ``<script>`` body once escaped by
            the injector
        """
        parts = ["(function () {", "'use strict';"]
        parts.extend(constant.render() for constant in self.constants)
        parts.extend(block.render() for block in self.blocks)
        parts.append("})();")
        return "\n".join(parts) + "\n"

    def __str__(self) -> str:
        return self.render()
