"""Output composition for embedded declaration sources.

Turns a classified declaration into the two-part output unit:

    #[doc(hidden)]
    pub const __NAME_SOURCE__: &str = "<captured text>";

    <declaration>
"""
from __future__ import annotations

import re
from typing import Optional

from ..models.records import Declaration, GeneratedConstant, OutputUnit

SIMPLE_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\0": "\\0",
}


def source_constant_name(name: str) -> str:
    """Return the constant name consumers look up for an item called ``name``."""
    upper = "".join(ch if ("_" + ch).isidentifier() else "_" for ch in name.upper())
    return f"__{upper}_SOURCE__"


def rust_string_literal(text: str) -> str:
    parts = ['"']
    for ch in text:
        escaped = SIMPLE_ESCAPES.get(ch)
        if escaped is not None:
            parts.append(escaped)
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            parts.append(f"\\u{{{ord(ch):x}}}")
        else:
            parts.append(ch)
    parts.append('"')
    return "".join(parts)


def compose(declaration: Declaration, body: Optional[str] = None) -> OutputUnit:
    """Pair the generated constant with the declaration to re-emit.

    ``body`` replaces the re-emitted text when nested declarations inside it
    were expanded; the constant always holds the captured text.
    """
    constant = GeneratedConstant(
        name=source_constant_name(declaration.derived_name),
        value=declaration.raw_text,
    )
    return OutputUnit(
        constant=constant,
        declaration=declaration.raw_text if body is None else body,
    )


def render_constant(constant: GeneratedConstant, indent: str = "") -> str:
    lines = []
    if constant.doc_hidden:
        lines.append(f"{indent}#[doc(hidden)]")
    prefix = f"{constant.visibility} " if constant.visibility else ""
    lines.append(
        f"{indent}{prefix}const {constant.name}: &str = "
        f"{rust_string_literal(constant.value)};"
    )
    return "\n".join(lines)


def render_output(unit: OutputUnit, indent: str = "") -> str:
    """Render an output unit as Rust text.

    ``indent`` is applied to the generated constant and to the first line of
    the declaration; later declaration lines already carry their original
    indentation.
    """
    return f"{render_constant(unit.constant, indent)}\n\n{indent}{unit.declaration}"


UNESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
    "\\": "\\",
    "'": "'",
    '"': '"',
}

_ESCAPE_RE = re.compile(
    r"\\(?:u\{(?P<unicode>[0-9a-fA-F_]{1,8})\}|x(?P<byte>[0-7][0-9a-fA-F])"
    r"|(?P<newline>\r?\n)[ \t\r\n]*|(?P<simple>.))",
    re.DOTALL,
)


def _unescape(match: re.Match) -> str:
    if match.group("unicode") is not None:
        return chr(int(match.group("unicode").replace("_", ""), 16))
    if match.group("byte") is not None:
        return chr(int(match.group("byte"), 16))
    if match.group("newline") is not None:
        return ""
    simple = match.group("simple")
    try:
        return UNESCAPES[simple]
    except KeyError as exc:
        raise ValueError(f"Unknown escape sequence \\{simple}") from exc


def parse_rust_string_literal(literal: str) -> str:
    """Decode a Rust ``"..."`` or ``r#"..."#`` literal into its value."""
    text = literal.strip()
    if text.startswith("r"):
        body = text[1:]
        hashes = len(body) - len(body.lstrip("#"))
        content = body[hashes:]
        if len(content) < 2 or content[0] != '"' or not content.endswith('"' + "#" * hashes):
            raise ValueError(f"Not a raw string literal: {literal[:40]!r}")
        return content[1 : len(content) - 1 - hashes]
    if len(text) < 2 or text[0] != '"' or text[-1] != '"':
        raise ValueError(f"Not a string literal: {literal[:40]!r}")
    return _ESCAPE_RE.sub(_unescape, text[1:-1])
