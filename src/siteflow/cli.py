"""siteflow command line: generate, lay out and inspect site-flow graphs."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer

from siteflow.config import configure_logging, get_settings
from siteflow.errors import GraphValidationError
from siteflow.export import export_svg, import_json, serialize_graph
from siteflow.generation import GenerationAdapter
from siteflow.graph import Graph
from siteflow.layout import LayoutResult, layout_graph
from siteflow.levels import resolve_levels

logger = logging.getLogger(__name__)

APP_HELP = """
siteflow: map an application's pages as a directed graph.

Generate a site flow from a description (and optionally a requirements
document), arrange it into level columns, and export it as JSON or SVG.
"""

app = typer.Typer(help=APP_HELP, no_args_is_help=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")) -> None:
    configure_logging("DEBUG" if verbose else get_settings().log_level)


def _emit(result: LayoutResult, out: Optional[Path], svg: Optional[Path]) -> None:
    text = serialize_graph(result.graph)
    if out is None:
        typer.echo(text)
    else:
        out.write_text(text + "\n", encoding="utf-8")
        typer.echo(f"Wrote {len(result.graph.nodes)} pages to {out}", err=True)
    if svg is not None:
        export_svg(result, svg)
        typer.echo(f"Wrote SVG to {svg}", err=True)


def _read_graph(path: Path) -> Graph:
    try:
        return import_json(path)
    except (OSError, GraphValidationError) as exc:
        typer.echo(f"Cannot read {path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def generate(
    description: str = typer.Argument(..., help="Free-text description of the app"),
    document: Optional[Path] = typer.Option(None, "--document", "-d", exists=True, dir_okay=False, help="Requirements document to analyze"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the graph JSON here instead of stdout"),
    svg: Optional[Path] = typer.Option(None, "--svg", help="Also render the laid-out graph to this SVG file"),
) -> None:
    """Generate a site flow and lay it out."""
    document_text = document.read_text(encoding="utf-8") if document else None
    adapter = GenerationAdapter.from_settings()
    logger.info("Generating site flow with %s", "the configured AI provider" if adapter.available else "the built-in fallback")
    graph = asyncio.run(adapter.generate(description, document_text))
    _emit(layout_graph(graph), out, svg)


@app.command()
def layout(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Graph JSON file"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the graph JSON here instead of stdout"),
    svg: Optional[Path] = typer.Option(None, "--svg", help="Also render the laid-out graph to this SVG file"),
) -> None:
    """Normalize and re-layout an existing graph file."""
    _emit(layout_graph(_read_graph(path)), out, svg)


@app.command()
def levels(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Graph JSON file")) -> None:
    """Print the effective level of every node."""
    graph = _read_graph(path)
    resolved = resolve_levels(graph)
    for node in graph.nodes:
        typer.echo(f"{resolved[node.id]}\t{node.id}\t{node.name}")


if __name__ == "__main__":
    app()
