"""SVG renderer — renders a laid-out site flow to an SVG string."""

from __future__ import annotations

from siteflow.graph import Node
from siteflow.layout import (
    FLOW_NODE_HEIGHT,
    FLOW_NODE_WIDTH,
    LayoutResult,
    RoutedConnection,
    route_connections,
)

# ─── Constants ──────────────────────────────────────────────────────────────

FONT_SIZE = 14
FONT_FAMILY = "sans-serif"
CORNER_RADIUS = 12
BADGE_HEIGHT = 18
MAX_DESCRIPTION_CHARS = 28

EDGE_COLOR = "#3ECF8E"
ACCENT_COLOR = "#D4A017"

_NODE_STYLE = 'fill="#1f2023" stroke="#3a3b3f" stroke-width="2"'
_EDGE_STYLE = f'fill="none" stroke="{EDGE_COLOR}" stroke-width="2"'
_SYNTHETIC_STYLE = f'fill="none" stroke="{EDGE_COLOR}" stroke-width="1.5" stroke-dasharray="5 5" opacity="0.45"'


def _escape(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;").replace('"', "&quot;")


def _font(size: int = FONT_SIZE, weight: str = "normal") -> str:
    return f'font-family="{FONT_FAMILY}" font-size="{size}" font-weight="{weight}"'


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1].rstrip() + "…"


def _fmt(value: float) -> str:
    return f"{value:g}"


# ─── Node Rendering ─────────────────────────────────────────────────────────


def _level_badge(level: int | None) -> str:
    if not level:
        return "ROOT"
    return f"LEVEL {level}"


def _render_node(node: Node, level: int | None) -> str:
    x, y = node.x, node.y
    w, h = FLOW_NODE_WIDTH, FLOW_NODE_HEIGHT
    pad = 16

    parts = [
        f'<g class="node" data-id="{_escape(node.id)}">',
        f'<rect x="{_fmt(x)}" y="{_fmt(y)}" width="{w}" height="{h}" rx="{CORNER_RADIUS}" {_NODE_STYLE}/>',
        f'<rect x="{_fmt(x)}" y="{_fmt(y)}" width="{w}" height="4" rx="2" fill="{ACCENT_COLOR}" opacity="0.6"/>',
        f'<text x="{_fmt(x + pad)}" y="{_fmt(y + pad + BADGE_HEIGHT // 2)}" {_font(10, "bold")} '
        f'fill="{ACCENT_COLOR}">{_level_badge(level)}</text>',
        f'<text x="{_fmt(x + pad)}" y="{_fmt(y + pad + BADGE_HEIGHT + FONT_SIZE + 6)}" {_font(FONT_SIZE + 2, "bold")} '
        f'fill="#f5f5f5">{_escape(_truncate(node.name, MAX_DESCRIPTION_CHARS - 6))}</text>',
    ]

    description = node.description.splitlines()[0] if node.description else ""
    if description:
        parts.append(
            f'<text x="{_fmt(x + pad)}" y="{_fmt(y + pad + BADGE_HEIGHT + 2 * FONT_SIZE + 16)}" {_font(FONT_SIZE - 2)} '
            f'fill="#9a9a9a">{_escape(_truncate(description, MAX_DESCRIPTION_CHARS))}</text>'
        )
    parts.append("</g>")
    return "\n".join(parts)


# ─── Edge Rendering ─────────────────────────────────────────────────────────


def _render_edge(route: RoutedConnection) -> str:
    style = _SYNTHETIC_STYLE if route.synthetic else _EDGE_STYLE
    kind = "synthetic" if route.synthetic else "connection"
    return f'<path class="{kind}" d="{route.path}" {style} marker-end="url(#arrowhead)"/>'


# ─── Public Renderer ────────────────────────────────────────────────────────


class SvgRenderer:
    """SVG renderer — consumes a LayoutResult, produces an SVG string."""

    def render(self, result: LayoutResult) -> str:
        nodes = list(result.graph.nodes)
        if not nodes:
            return ""

        # Canvas is the recommended workspace, widened if nodes were dragged past it.
        svg_w = max(result.workspace.width, max(n.x for n in nodes) + FLOW_NODE_WIDTH)
        svg_h = max(result.workspace.height, max(n.y for n in nodes) + FLOW_NODE_HEIGHT)

        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{_fmt(svg_w)}" height="{_fmt(svg_h)}" '
            f'viewBox="0 0 {_fmt(svg_w)} {_fmt(svg_h)}">',
            "<defs>",
            '  <marker id="arrowhead" markerWidth="10" markerHeight="10" refX="9" refY="3" orient="auto">',
            f'    <polygon points="0 0, 10 3, 0 6" fill="{EDGE_COLOR}" opacity="0.8"/>',
            "  </marker>",
            "</defs>",
            f'<rect width="{_fmt(svg_w)}" height="{_fmt(svg_h)}" fill="#151618"/>',
        ]

        # Edges (behind nodes) — sorted for deterministic output
        routes = route_connections(result.graph, result.connections)
        routes.sort(key=lambda r: (r.synthetic, r.from_id, r.to_id))
        for route in routes:
            parts.append(_render_edge(route))

        # Nodes (on top)
        for node in nodes:
            parts.append(_render_node(node, result.levels.get(node.id, node.level)))

        parts.append("</svg>")
        return "\n".join(parts)
