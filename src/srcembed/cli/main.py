"""srcembed CLI for embedding Rust declaration sources as constants."""
from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..config import Settings, load_settings
from ..embed.composer import source_constant_name
from ..embed.service import EmbedService
from ..models.records import FileExpansion

logger = logging.getLogger(__name__)
console = Console()
err_console = Console(stderr=True)
app = typer.Typer(add_completion=False, no_args_is_help=True)


def _resolve_settings(
    config_path: Optional[Path],
    repo: Optional[Path],
    out_dir: Optional[Path],
) -> Settings:
    settings = load_settings(config_path)
    if repo:
        settings.repo_path = Path(repo).expanduser().resolve()
    if out_dir:
        settings.output_dir = Path(out_dir).expanduser().resolve()
    return settings


def _report(expansions: List[FileExpansion]) -> int:
    failures = 0
    for expansion in expansions:
        for diagnostic in expansion.diagnostics:
            err_console.print(f"[red]{escape(diagnostic.format())}[/red]", soft_wrap=True)
            failures += 1
    return failures


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Embed the source text of marked Rust declarations as hidden constants."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def expand(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Rust source file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write result here"),
    in_place: bool = typer.Option(False, "--in-place", "-i", help="Rewrite FILE itself"),
    check: bool = typer.Option(False, "--check", help="Exit 1 if FILE would change"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Expand every marked declaration in FILE."""
    settings = _resolve_settings(config, None, None)
    service = EmbedService(settings)

    write = bool(output or in_place) and not check
    expansion = service.expand_file(file, output=output, write=write)
    failures = _report([expansion])

    if check:
        if expansion.changed:
            err_console.print(f"[yellow]Would expand:[/yellow] {file}")
            raise typer.Exit(1)
    elif not write:
        typer.echo(expansion.expanded, nl=False)
    if failures:
        raise typer.Exit(1)


@app.command("expand-tree")
def expand_tree(
    repo: Optional[Path] = typer.Option(None, "--repo", help="Path to git repository"),
    out_dir: Optional[Path] = typer.Option(
        None, "--out-dir", help="Mirror expanded files here instead of rewriting in place"
    ),
    since: Optional[str] = typer.Option(
        None, "--since", help="Only files changed since this revision"
    ),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Expand every tracked Rust file of a git repository."""
    settings = _resolve_settings(config, repo, out_dir)
    service = EmbedService(settings)

    try:
        expansions = service.expand_tree(since=since)
    except ValueError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    table = Table(title="Expanded files")
    table.add_column("File", style="cyan")
    table.add_column("Declarations")
    table.add_column("Errors")
    for expansion in expansions:
        if not expansion.sites and not expansion.errors:
            continue
        table.add_row(
            escape(str(expansion.path)),
            str(sum(1 for site in expansion.sites if site.declaration)),
            str(len(expansion.diagnostics)),
        )
    console.print(table)

    if _report(expansions):
        raise typer.Exit(1)


@app.command()
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Rust source file"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """List marked declarations in FILE and the constants they produce."""
    settings = _resolve_settings(config, None, None)
    service = EmbedService(settings)
    expansion = service.expand_file(file, write=False)

    if not expansion.sites:
        console.print(f"[yellow]No marked declarations in {escape(str(file))}[/yellow]")
        return

    names = Counter(
        source_constant_name(site.declaration.derived_name)
        for site in expansion.sites
        if site.declaration
    )
    table = Table(title=f"Marked declarations in {escape(str(file))}")
    table.add_column("Line")
    table.add_column("Kind")
    table.add_column("Name", style="cyan")
    table.add_column("Constant")
    table.add_column("Status")

    for site in expansion.sites:
        if site.declaration is None:
            message = site.diagnostic.message if site.diagnostic else "error"
            table.add_row(str(site.line), "", "", "", f"[red]{escape(message)}[/red]")
            continue
        constant = source_constant_name(site.declaration.derived_name)
        status = "ok"
        if names[constant] > 1:
            status = "[yellow]duplicate constant[/yellow]"
            logger.warning(
                "%s is generated %d times in %s", constant, names[constant], file
            )
        table.add_row(
            str(site.line),
            site.declaration.kind.value,
            site.declaration.derived_name,
            constant,
            status,
        )
    console.print(table)


@app.command()
def show(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Expanded Rust file"),
    name: str = typer.Argument(..., help="Item name whose embedded source to print"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
):
    """Print the source embedded for item NAME in an expanded file."""
    settings = _resolve_settings(config, None, None)
    service = EmbedService(settings)

    source = service.lookup(file, name)
    if source is None:
        err_console.print(
            f"[yellow]No {source_constant_name(name)} constant in {escape(str(file))}[/yellow]"
        )
        raise typer.Exit(1)
    typer.echo(source)


if __name__ == "__main__":
    app()
