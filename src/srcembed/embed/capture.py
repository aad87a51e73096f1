"""Raw capture of declaration text.

Everything here works on the original UTF-8 bytes so the captured text is a
verbatim slice of the input, minus the activation marker.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from tree_sitter import Node

WHITESPACE = b" \t\r\n\x0b\x0c"
COMMENT_NODE_TYPES = {"line_comment", "block_comment"}

ByteRange = Tuple[int, int]


def node_text(node: Node, source_bytes: bytes) -> str:
    return source_bytes[node.start_byte : node.end_byte].decode("utf-8")


def attribute_path(node: Node, source_bytes: bytes) -> Optional[str]:
    """Return the path of an ``attribute_item`` with whitespace removed."""
    if node.type != "attribute_item":
        return None
    for child in node.named_children:
        if child.type != "attribute":
            continue
        path = child.named_children[0] if child.named_children else None
        if path is None:
            return None
        return "".join(node_text(path, source_bytes).split())
    return None


def is_outer_doc_comment(node: Node, source_bytes: bytes) -> bool:
    if node.type not in COMMENT_NODE_TYPES:
        return False
    text = node_text(node, source_bytes)
    if text.startswith("///"):
        return not text.startswith("////")
    if text.startswith("/**"):
        return not text.startswith("/***") and not text.startswith("/**/")
    return False


def is_inner_doc_comment(node: Node, source_bytes: bytes) -> bool:
    if node.type not in COMMENT_NODE_TYPES:
        return False
    text = node_text(node, source_bytes)
    return text.startswith("//!") or text.startswith("/*!")


def only_whitespace(source_bytes: bytes, start: int, end: int) -> bool:
    return not source_bytes[start:end].strip(WHITESPACE)


def leading_run(item: Node, source_bytes: bytes) -> List[Node]:
    """Return the outer attributes and comments directly attached to ``item``.

    The run is in source order and never starts with a plain (non-doc)
    comment; such comments are only kept when they sit between attributes.
    """
    run: List[Node] = []
    current = item
    previous = item.prev_named_sibling
    while previous is not None:
        if not only_whitespace(source_bytes, previous.end_byte, current.start_byte):
            break
        if previous.type == "attribute_item":
            run.append(previous)
        elif previous.type in COMMENT_NODE_TYPES:
            if is_inner_doc_comment(previous, source_bytes):
                break
            run.append(previous)
        else:
            break
        current = previous
        previous = previous.prev_named_sibling
    run.reverse()
    while run and run[0].type in COMMENT_NODE_TYPES and not is_outer_doc_comment(
        run[0], source_bytes
    ):
        run.pop(0)
    return run


def marker_removal_range(marker: Node, source_bytes: bytes) -> ByteRange:
    """The marker plus the whitespace that separates it from the next token."""
    end = marker.end_byte
    while end < len(source_bytes) and source_bytes[end] in WHITESPACE:
        end += 1
    return marker.start_byte, end


def capture_text(
    source_bytes: bytes, start: int, end: int, removals: Sequence[ByteRange] = ()
) -> str:
    pieces: List[bytes] = []
    cursor = start
    for cut_start, cut_end in sorted(removals):
        if cut_start < cursor or cut_start >= end:
            continue
        pieces.append(source_bytes[cursor:cut_start])
        cursor = min(cut_end, end)
    pieces.append(source_bytes[cursor:end])
    return b"".join(pieces).decode("utf-8")


def line_indent(source_bytes: bytes, offset: int) -> str:
    """Whitespace between the start of the line and ``offset``, or ``""``."""
    line_start = source_bytes.rfind(b"\n", 0, offset) + 1
    prefix = source_bytes[line_start:offset]
    if prefix.strip(WHITESPACE):
        return ""
    return prefix.decode("utf-8")
