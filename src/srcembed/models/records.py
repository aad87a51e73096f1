from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


class DeclarationKind(str, Enum):
    STRUCT = "struct"
    ENUM = "enum"
    FUNCTION = "fn"
    TRAIT = "trait"
    IMPL = "impl"
    ITEM = "item"  # any other item shape


@dataclass(frozen=True, slots=True)
class Declaration:
    raw_text: str
    kind: DeclarationKind
    derived_name: str


@dataclass(frozen=True, slots=True)
class GeneratedConstant:
    name: str
    value: str
    visibility: str = "pub"
    doc_hidden: bool = True


@dataclass(frozen=True, slots=True)
class OutputUnit:
    constant: GeneratedConstant
    declaration: str


@dataclass(slots=True)
class Diagnostic:
    message: str
    path: Path
    line: int
    column: int

    def format(self) -> str:
        return f"{self.path}:{self.line}:{self.column}: error: {self.message}"


@dataclass(slots=True)
class EmbedSite:
    """A declaration carrying the activation marker inside a source file."""
    start_byte: int
    end_byte: int
    line: int
    column: int
    indent: str
    marker_ranges: List[Tuple[int, int]] = field(default_factory=list)
    declaration: Optional[Declaration] = None
    diagnostic: Optional[Diagnostic] = None


@dataclass(slots=True)
class FileExpansion:
    path: Path
    original: str
    expanded: str
    sites: List[EmbedSite] = field(default_factory=list)
    errors: List[Diagnostic] = field(default_factory=list)  # file-level

    @property
    def changed(self) -> bool:
        return self.original != self.expanded

    @property
    def diagnostics(self) -> List[Diagnostic]:
        return self.errors + [site.diagnostic for site in self.sites if site.diagnostic]
