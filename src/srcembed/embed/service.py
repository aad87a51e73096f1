from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import Settings
from ..models.records import Diagnostic, EmbedSite, FileExpansion, OutputUnit
from .base import ParserAdapter, ParserRegistry
from .composer import compose, render_output, source_constant_name
from .git_utils import (
    changed_files_since,
    open_repo,
    scoped_patterns,
    tracked_files,
    working_tree_root,
)
from .rust_parser import RustParser

logger = logging.getLogger(__name__)


class EmbedService:
    def __init__(
        self, settings: Settings | None = None, registry: ParserRegistry | None = None
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or build_registry(self.settings)

    # --- public API ---
    def expand_declaration(self, text: str) -> OutputUnit:
        """Expand one declaration, optionally preceded by the activation marker."""
        declaration = self._adapter().classify(text)
        return compose(declaration)

    def expand_source(self, source: str, path: Path) -> FileExpansion:
        sites = self._adapter().parse(source, path)
        source_bytes = source.encode("utf-8")
        expanded = self._splice(source_bytes, 0, len(source_bytes), sites)
        for site in sites:
            if site.diagnostic:
                logger.debug("Left %s:%d unchanged: %s", path, site.line, site.diagnostic.message)
            elif site.declaration:
                logger.debug(
                    "Embedded %s %s at %s:%d as %s",
                    site.declaration.kind.value,
                    site.declaration.derived_name,
                    path,
                    site.line,
                    source_constant_name(site.declaration.derived_name),
                )
        return FileExpansion(
            path=path,
            original=source,
            expanded=expanded.decode("utf-8"),
            sites=sites,
        )

    def expand_file(
        self, path: Path, output: Optional[Path] = None, write: bool = True
    ) -> FileExpansion:
        source = path.read_bytes().decode("utf-8")
        expansion = self.expand_source(source, path)
        target = output or path
        if write and (expansion.changed or target != path):
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(expansion.expanded.encode("utf-8"))
            logger.info("Wrote %s (%d declarations)", target, len(expansion.sites))
        return expansion

    def expand_tree(
        self, output_dir: Optional[Path] = None, since: Optional[str] = None
    ) -> List[FileExpansion]:
        repo = open_repo(self.settings.repo_path)
        root = working_tree_root(repo)
        patterns = scoped_patterns(repo, self.settings.repo_path, self.settings.include)
        if since:
            rel_paths = changed_files_since(repo, since, patterns)
        else:
            rel_paths = tracked_files(repo, patterns)
        out_dir = output_dir or self.settings.output_dir

        expansions: List[FileExpansion] = []
        for rel_path in rel_paths:
            source_path = root / rel_path
            if not source_path.is_file():
                continue
            target = out_dir / rel_path if out_dir else None
            try:
                expansions.append(self.expand_file(source_path, output=target))
            except UnicodeDecodeError as exc:
                logger.warning("Skipping %s: not valid UTF-8", source_path)
                expansions.append(_undecodable(source_path, exc))
        return expansions

    def lookup(self, path: Path, name: str) -> Optional[str]:
        """Return the source embedded for item ``name`` in an expanded file."""
        source = path.read_bytes().decode("utf-8")
        return self._adapter().embedded_sources(source).get(source_constant_name(name))

    # --- helpers ---
    def _adapter(self) -> ParserAdapter:
        return self.registry.get("rust")

    def _splice(
        self,
        source_bytes: bytes,
        start: int,
        end: int,
        sites: Sequence[EmbedSite],
        drop: Iterable[Tuple[int, int]] = (),
    ) -> bytes:
        edits: List[Tuple[int, int, Optional[EmbedSite]]] = [
            (site.start_byte, site.end_byte, site) for site in sites
        ]
        edits.extend((drop_start, drop_end, None) for drop_start, drop_end in drop)
        edits.sort(key=lambda edit: (edit[0], -edit[1]))

        pieces: List[bytes] = []
        cursor = start
        for edit_start, edit_end, site in edits:
            # skips edits nested inside one already applied
            if edit_start < cursor or edit_end > end:
                continue
            pieces.append(source_bytes[cursor:edit_start])
            if site is not None:
                pieces.append(self._render_site(source_bytes, site, sites))
            cursor = edit_end
        pieces.append(source_bytes[cursor:end])
        return b"".join(pieces)

    def _render_site(
        self, source_bytes: bytes, site: EmbedSite, sites: Sequence[EmbedSite]
    ) -> bytes:
        if site.declaration is None:
            return source_bytes[site.start_byte : site.end_byte]
        nested = [
            other
            for other in sites
            if other.start_byte > site.start_byte and other.end_byte <= site.end_byte
        ]
        body = self._splice(
            source_bytes, site.start_byte, site.end_byte, nested, site.marker_ranges
        )
        unit = compose(site.declaration, body.decode("utf-8"))
        rendered = render_output(unit, site.indent)
        return rendered[len(site.indent) :].encode("utf-8")


def _undecodable(path: Path, exc: UnicodeDecodeError) -> FileExpansion:
    data = exc.object
    line = data.count(b"\n", 0, exc.start) + 1
    column = exc.start - data.rfind(b"\n", 0, exc.start)
    diagnostic = Diagnostic(
        f"file is not valid UTF-8 (byte 0x{data[exc.start]:02x})", path, line, column
    )
    return FileExpansion(path=path, original="", expanded="", errors=[diagnostic])


def build_registry(settings: Settings) -> ParserRegistry:
    registry = ParserRegistry()
    langs = set(settings.languages)
    if "rust" in langs:
        registry.register(RustParser(attribute_names=settings.attribute_names))
    return registry


def embed_source(text: str, settings: Settings | None = None) -> str:
    """Expand a single declaration and return the rewritten Rust text."""
    unit = EmbedService(settings).expand_declaration(text)
    return render_output(unit)
