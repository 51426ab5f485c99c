"""Export collaborator — JSON codec and file writers.

The structured-text form is the camelCase wire shape as JSON, so
``parse_graph(serialize_graph(g)) == normalize(g)``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from siteflow.errors import GraphValidationError
from siteflow.graph import Graph, normalize
from siteflow.layout import LayoutResult
from siteflow.renderers.base import Renderer
from siteflow.renderers.svg import SvgRenderer

logger = logging.getLogger(__name__)


def serialize_graph(graph: Graph, indent: int | None = 2) -> str:
    """Serialize a graph to JSON (normalized first)."""
    return json.dumps(normalize(graph).to_wire(), indent=indent)


def parse_graph(text: str) -> Graph:
    """Parse JSON text back into a normalized graph.

    Raises:
        GraphValidationError: the text is not JSON or not a graph object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GraphValidationError(f"invalid graph JSON: {exc}") from exc
    return normalize(data)


def export_json(graph: Graph, path: Path) -> Path:
    path.write_text(serialize_graph(graph) + "\n", encoding="utf-8")
    logger.info("Wrote %d nodes to %s", len(graph.nodes), path)
    return path


def import_json(path: Path) -> Graph:
    return parse_graph(path.read_text(encoding="utf-8"))


def render_svg(result: LayoutResult, renderer: Renderer | None = None) -> str:
    """Render with ``renderer``, or the default ``SvgRenderer``."""
    return (renderer or SvgRenderer()).render(result)


def export_svg(result: LayoutResult, path: Path, renderer: Renderer | None = None) -> Path:
    """Render a laid-out graph as an SVG image file."""
    path.write_text(render_svg(result, renderer), encoding="utf-8")
    logger.info("Wrote SVG for %d nodes to %s", len(result.graph.nodes), path)
    return path
