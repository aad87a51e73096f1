from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from tree_sitter import Language, Node, Parser
from tree_sitter_rust import language as rust_language

from ..models.records import Declaration, DeclarationKind, Diagnostic, EmbedSite
from .base import ParserAdapter
from .capture import (
    COMMENT_NODE_TYPES,
    attribute_path,
    capture_text,
    is_inner_doc_comment,
    leading_run,
    line_indent,
    marker_removal_range,
    node_text,
    only_whitespace,
)
from .composer import parse_rust_string_literal
from .errors import DeclarationError, MalformedDeclarationError, MarkerPlacementError

logger = logging.getLogger(__name__)

DEFAULT_ATTRIBUTE_NAMES = ("src_embed", "src_embed::src_embed")

ITEM_NAME = "ITEM"
UNKNOWN_NAME = "UNKNOWN"

KIND_BY_NODE_TYPE = {
    "struct_item": DeclarationKind.STRUCT,
    "enum_item": DeclarationKind.ENUM,
    "function_item": DeclarationKind.FUNCTION,
    "trait_item": DeclarationKind.TRAIT,
    "impl_item": DeclarationKind.IMPL,
}

ITEM_NODE_TYPES = set(KIND_BY_NODE_TYPE) | {
    "union_item",
    "function_signature_item",
    "mod_item",
    "foreign_mod_item",
    "const_item",
    "static_item",
    "type_item",
    "associated_type",
    "use_declaration",
    "extern_crate_declaration",
    "macro_definition",
    "macro_invocation",
}

# Nodes whose children may be items.
ITEM_CONTAINERS = {"source_file", "declaration_list", "block"}

IDENTIFIER_NODE_TYPES = {"identifier", "type_identifier", "primitive_type"}
SCOPED_NODE_TYPES = {"scoped_type_identifier", "scoped_identifier"}

SOURCE_CONSTANT_RE = re.compile(r"^__\w+_SOURCE__$")


def _strip_raw_prefix(name: str) -> str:
    return name[2:] if name.startswith("r#") else name


def _named_item_name(node: Node, source_bytes: bytes) -> str:
    target = node.child_by_field_name("name")
    if target is None or target.type == "metavariable":
        return ITEM_NAME
    return _strip_raw_prefix(node_text(target, source_bytes)) or ITEM_NAME


def _type_path_name(node: Optional[Node], source_bytes: bytes) -> Optional[str]:
    """Last path segment of a named type, ignoring generic arguments."""
    if node is None:
        return None
    if node.type in IDENTIFIER_NODE_TYPES:
        return _strip_raw_prefix(node_text(node, source_bytes))
    if node.type in SCOPED_NODE_TYPES:
        return _type_path_name(node.child_by_field_name("name"), source_bytes)
    if node.type == "generic_type":
        return _type_path_name(node.child_by_field_name("type"), source_bytes)
    return None


def _impl_target_name(node: Node, source_bytes: bytes) -> str:
    self_type = node.child_by_field_name("type")
    return _type_path_name(self_type, source_bytes) or UNKNOWN_NAME


def _fallback_name(node: Node, source_bytes: bytes) -> str:
    return ITEM_NAME


NAME_EXTRACTORS: Dict[DeclarationKind, Callable[[Node, bytes], str]] = {
    DeclarationKind.STRUCT: _named_item_name,
    DeclarationKind.ENUM: _named_item_name,
    DeclarationKind.FUNCTION: _named_item_name,
    DeclarationKind.TRAIT: _named_item_name,
    DeclarationKind.IMPL: _impl_target_name,
    DeclarationKind.ITEM: _fallback_name,
}


def _is_item(node: Node) -> bool:
    if node.type in ITEM_NODE_TYPES:
        return True
    # `foo!();` in statement position
    if node.type == "expression_statement":
        children = node.named_children
        return len(children) == 1 and children[0].type == "macro_invocation"
    return False


def _position(node: Node) -> Tuple[int, int]:
    row, column = node.start_point
    return row + 1, column + 1


def _first_error(node: Node) -> Optional[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        if current.has_error:
            stack.extend(reversed(current.children))
    return None


def _snippet(node: Node, source_bytes: bytes, limit: int = 40) -> str:
    text = " ".join(node_text(node, source_bytes).split())
    return text if len(text) <= limit else text[: limit - 3] + "..."


def _describe(node: Optional[Node], source_bytes: bytes) -> str:
    if node is None:
        return "end of input"
    return f"`{_snippet(node, source_bytes)}`"


def _syntax_error(node: Node, source_bytes: bytes) -> MalformedDeclarationError:
    error = _first_error(node) or node
    if error.is_missing:
        message = f"syntax error: missing `{error.type}`"
    else:
        message = f"syntax error near {_describe(error, source_bytes)}"
    return MalformedDeclarationError(message, *_position(error))


class RustParser(ParserAdapter):
    language = "rust"

    def __init__(self, attribute_names: Iterable[str] = DEFAULT_ATTRIBUTE_NAMES) -> None:
        self._language = Language(rust_language())
        self._parser = Parser(self._language)
        self._attribute_names = frozenset(
            "".join(name.split()) for name in attribute_names
        )

    # --- single declaration ---
    def classify(self, text: str) -> Declaration:
        source_bytes = text.encode("utf-8")
        root = self._parser.parse(source_bytes).root_node
        if root.has_error:
            raise _syntax_error(root, source_bytes)

        items: List[Node] = []
        for child in root.named_children:
            if child.type in {"attribute_item", "empty_statement"}:
                continue
            if child.type in COMMENT_NODE_TYPES and not is_inner_doc_comment(
                child, source_bytes
            ):
                continue
            if not _is_item(child):
                raise MalformedDeclarationError(
                    f"expected an item, found {_describe(child, source_bytes)}",
                    *_position(child),
                )
            items.append(child)
        if not items:
            line, column = root.end_point
            raise MalformedDeclarationError(
                "expected an item, found end of input", line + 1, column + 1
            )
        if len(items) > 1:
            raise MalformedDeclarationError(
                f"expected a single item, found another: {_describe(items[1], source_bytes)}",
                *_position(items[1]),
            )

        item = items[0]
        run = leading_run(item, source_bytes)
        for child in root.named_children:
            if child.type == "attribute_item" and child not in run:
                raise MalformedDeclarationError(
                    "expected an item after this attribute", *_position(child)
                )
        start = run[0].start_byte if run else item.start_byte
        removals = [
            marker_removal_range(node, source_bytes)
            for node in run
            if self._is_marker(node, source_bytes)
        ]
        raw_text = capture_text(source_bytes, start, item.end_byte, removals)
        return self._declaration(item, source_bytes, raw_text)

    # --- whole files ---
    def parse(self, source: str, path: Path) -> List[EmbedSite]:
        source_bytes = source.encode("utf-8")
        root = self._parser.parse(source_bytes).root_node

        sites: List[EmbedSite] = []
        seen: Set[Tuple[int, int]] = set()
        for node in self._iter_nodes(root):
            if node.type != "attribute_item" or not self._is_marker(node, source_bytes):
                continue
            try:
                item = self._marked_item(node, source_bytes)
            except DeclarationError as exc:
                sites.append(self._failed_site(node, source_bytes, path, exc))
                continue
            key = (item.start_byte, item.end_byte)
            if key in seen:
                continue
            seen.add(key)
            sites.append(self._site_for_item(item, source_bytes, path))
        sites.sort(key=lambda site: site.start_byte)
        return sites

    def embedded_sources(self, source: str) -> Dict[str, str]:
        source_bytes = source.encode("utf-8")
        root = self._parser.parse(source_bytes).root_node
        found: Dict[str, str] = {}
        for node in self._iter_nodes(root):
            if node.type != "const_item":
                continue
            name_node = node.child_by_field_name("name")
            value_node = node.child_by_field_name("value")
            if name_node is None or value_node is None:
                continue
            name = node_text(name_node, source_bytes)
            if not SOURCE_CONSTANT_RE.match(name):
                continue
            if value_node.type not in {"string_literal", "raw_string_literal"}:
                continue
            try:
                found[name] = parse_rust_string_literal(node_text(value_node, source_bytes))
            except ValueError:
                logger.warning("Skipping %s: value is not a plain string literal", name)
        return found

    # --- helpers ---
    def _iter_nodes(self, node: Node):
        stack = [node]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def _is_marker(self, node: Node, source_bytes: bytes) -> bool:
        path = attribute_path(node, source_bytes)
        return path is not None and path in self._attribute_names

    def _marked_item(self, marker: Node, source_bytes: bytes) -> Node:
        parent = marker.parent
        if parent is None or parent.type == "ERROR":
            raise _syntax_error(parent or marker, source_bytes)
        if parent.type not in ITEM_CONTAINERS:
            path = attribute_path(marker, source_bytes)
            raise MarkerPlacementError(
                f"`#[{path}]` can only be applied to items, not inside `{parent.type}`",
                *_position(marker),
            )

        current = marker
        candidate = marker.next_named_sibling
        while candidate is not None and only_whitespace(
            source_bytes, current.end_byte, candidate.start_byte
        ):
            if candidate.type == "attribute_item" or (
                candidate.type in COMMENT_NODE_TYPES
                and not is_inner_doc_comment(candidate, source_bytes)
            ):
                current = candidate
                candidate = candidate.next_named_sibling
                continue
            break
        if candidate is not None and candidate.type == "ERROR":
            raise _syntax_error(candidate, source_bytes)
        if candidate is None or not _is_item(candidate):
            where = candidate or marker
            raise MalformedDeclarationError(
                f"expected an item after attribute, found {_describe(candidate, source_bytes)}",
                *_position(where),
            )
        return candidate

    def _site_for_item(self, item: Node, source_bytes: bytes, path: Path) -> EmbedSite:
        run = leading_run(item, source_bytes)
        first = run[0] if run else item
        line, column = _position(first)
        removals = [
            marker_removal_range(node, source_bytes)
            for node in run
            if self._is_marker(node, source_bytes)
        ]
        site = EmbedSite(
            start_byte=first.start_byte,
            end_byte=item.end_byte,
            line=line,
            column=column,
            indent=line_indent(source_bytes, first.start_byte),
            marker_ranges=removals,
        )
        if item.has_error:
            error = _syntax_error(item, source_bytes)
            site.diagnostic = Diagnostic(error.reason, path, error.line, error.column)
            return site
        raw_text = capture_text(source_bytes, site.start_byte, site.end_byte, removals)
        site.declaration = self._declaration(item, source_bytes, raw_text)
        return site

    def _failed_site(
        self, marker: Node, source_bytes: bytes, path: Path, exc: DeclarationError
    ) -> EmbedSite:
        line, column = _position(marker)
        diagnostic = Diagnostic(exc.reason, path, exc.line, exc.column)
        return EmbedSite(
            start_byte=marker.start_byte,
            end_byte=marker.end_byte,
            line=line,
            column=column,
            indent=line_indent(source_bytes, marker.start_byte),
            diagnostic=diagnostic,
        )

    def _declaration(self, item: Node, source_bytes: bytes, raw_text: str) -> Declaration:
        kind = KIND_BY_NODE_TYPE.get(item.type, DeclarationKind.ITEM)
        name = NAME_EXTRACTORS[kind](item, source_bytes)
        logger.debug(
            "Classified %s at line %d as %s named %s",
            item.type,
            item.start_point[0] + 1,
            kind.value,
            name,
        )
        return Declaration(raw_text=raw_text, kind=kind, derived_name=name)
