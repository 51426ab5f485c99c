"""Layout module — hierarchical left-to-right site-flow layout.

Phases:
  1. Level assignment      (``siteflow.levels``)
  2. Connection inference  (``siteflow.inference``)
  3. Tree-of-record        (one layout parent per node, one level up)
  4. Coordinate assignment (columns by level, leaves sequenced, parents
     centred over their children)
  5. Workspace + viewport recommendation
  6. Connection routing    (Bézier paths for rendering)

Every function here is pure: nothing is cached between calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from siteflow.graph import Graph, Node
from siteflow.inference import RenderedConnection, rendered_connections
from siteflow.levels import resolve_levels

# ─── Geometry Constants ───────────────────────────────────────────────────────

FLOW_NODE_WIDTH: int = 200  # node box width in canvas pixels
FLOW_NODE_HEIGHT: int = 140  # node box height in canvas pixels
HORIZONTAL_SPACING: int = 300  # distance between level columns
VERTICAL_SPACING: int = 220  # distance between consecutive leaf slots
CANVAS_PADDING: int = 100  # margin around the laid-out content

MIN_WORKSPACE_WIDTH: int = 1200
MIN_WORKSPACE_HEIGHT: int = 800

# Zoom is expressed in percent.
FIT_ZOOM: int = 30
ZOOM_MIN: int = 30
ZOOM_MAX: int = 100
ZOOM_STEP: int = 10


# ─── Result Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Workspace:
    """Recommended canvas size. Only ever grows within a session."""

    width: float = MIN_WORKSPACE_WIDTH
    height: float = MIN_WORKSPACE_HEIGHT

    def grow(self, width: float, height: float) -> Workspace:
        return Workspace(width=max(self.width, width), height=max(self.height, height))


@dataclass(frozen=True)
class Viewport:
    """Zoom (percent) and pan offset of the visible canvas."""

    zoom: int = FIT_ZOOM
    pan_x: float = 0.0
    pan_y: float = 0.0

    @property
    def scale(self) -> float:
        return self.zoom / 100

    def to_canvas(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        """Convert a screen-space pointer position to canvas coordinates."""
        return ((screen_x - self.pan_x) / self.scale, (screen_y - self.pan_y) / self.scale)


@dataclass
class LayoutTree:
    """Tree-of-record used for positioning.

    Attributes:
        parents: Maps node id → chosen layout parent (absent for tops).
        children: Maps node id → layout children, in node order.
        tops: Nodes without a layout parent, in node order.
    """

    parents: dict[str, str] = field(default_factory=dict)
    children: dict[str, list[str]] = field(default_factory=dict)
    tops: list[str] = field(default_factory=list)


@dataclass
class LayoutResult:
    """Output of ``layout_graph``."""

    graph: Graph
    levels: dict[str, int]
    connections: list[RenderedConnection]
    workspace: Workspace
    viewport: Viewport


# ─── Tree-of-Record ───────────────────────────────────────────────────────────


def build_layout_tree(
    graph: Graph,
    levels: dict[str, int],
    connections: list[RenderedConnection],
) -> LayoutTree:
    """Pick one layout parent per node.

    A connection qualifies when its target sits exactly one level below its
    source. Real connections are considered before synthetic ones and the
    first qualifying connection wins, so shared children are placed under a
    single parent only.
    """
    order: dict[str, int] = {node.id: i for i, node in enumerate(graph.nodes)}
    tree = LayoutTree(children={node.id: [] for node in graph.nodes})

    # sorted() is stable: real (False) before synthetic (True), input order kept.
    for conn in sorted(connections, key=lambda c: c.synthetic):
        src, tgt = conn.from_id, conn.to_id
        if src == tgt or tgt in tree.parents:
            continue
        if src not in order or tgt not in order:
            continue
        if levels[tgt] != levels[src] + 1:
            continue
        tree.parents[tgt] = src
        tree.children[src].append(tgt)

    for kids in tree.children.values():
        kids.sort(key=order.__getitem__)
    tree.tops = [node.id for node in graph.nodes if node.id not in tree.parents]
    return tree


# ─── Coordinate Assignment ────────────────────────────────────────────────────


def column_x(level: int) -> float:
    """Left edge of the column holding ``level``."""
    return float(CANVAS_PADDING + level * HORIZONTAL_SPACING)


def assign_vertical_positions(graph: Graph, levels: dict[str, int], tree: LayoutTree) -> dict[str, float]:
    """Compute the (untranslated) y of every node.

    Leaves take consecutive slots of a shared counter; a parent sits at the
    midpoint of its children's min and max y. Results are memoized per id.
    Level-0 nodes are visited first, then any remaining tops, then every
    node, so no node is left without a position.
    """
    positions: dict[str, float] = {}
    next_slot = 0

    def place(start: str) -> None:
        # Post-order walk on an explicit stack: a parent is revisited
        # (expanded=True) only after all of its children have positions.
        nonlocal next_slot
        stack: list[tuple[str, bool]] = [(start, False)]
        while stack:
            node_id, expanded = stack.pop()
            if node_id in positions:
                continue
            kids = tree.children.get(node_id, [])
            if not kids:
                positions[node_id] = float(next_slot * VERTICAL_SPACING)
                next_slot += 1
            elif not expanded:
                stack.append((node_id, True))
                stack.extend((kid, False) for kid in reversed(kids))
            else:
                child_ys = [positions[kid] for kid in kids]
                positions[node_id] = (min(child_ys) + max(child_ys)) / 2

    for node_id in tree.tops:
        if levels[node_id] == 0:
            place(node_id)
    for node_id in tree.tops:
        place(node_id)
    for node in graph.nodes:
        place(node.id)

    return positions


def content_extent(nodes: list[Node]) -> tuple[float, float]:
    """(right, bottom) edge of the furthest node box plus padding."""
    if not nodes:
        return (0.0, 0.0)
    right = max(node.x for node in nodes) + FLOW_NODE_WIDTH + CANVAS_PADDING
    bottom = max(node.y for node in nodes) + FLOW_NODE_HEIGHT + CANVAS_PADDING
    return (right, bottom)


# ─── Viewport ─────────────────────────────────────────────────────────────────


def clamp_zoom(zoom: float) -> int:
    return int(min(ZOOM_MAX, max(ZOOM_MIN, zoom)))


def fit_viewport(graph: Graph, view_width: float | None = None, view_height: float | None = None) -> Viewport:
    """Recommend a viewport showing the whole graph.

    Without a view size the constant ``FIT_ZOOM`` is used. With one, the zoom
    is the largest whole percentage at which the content extent fits,
    clamped to ``[ZOOM_MIN, ZOOM_MAX]``. Pan is always reset to the origin.
    """
    if not graph.nodes or not view_width or not view_height:
        return Viewport(zoom=FIT_ZOOM)
    right, bottom = content_extent(graph.nodes)
    ratio = min(view_width / right, view_height / bottom)
    return Viewport(zoom=clamp_zoom(math.floor(ratio * 100)))


# ─── Full Layout Pipeline ─────────────────────────────────────────────────────


def layout_graph(
    graph: Graph,
    workspace: Workspace | None = None,
    levels: dict[str, int] | None = None,
) -> LayoutResult:
    """Lay out a normalized graph.

    Returns a new graph whose nodes carry fresh ``x``/``y`` plus their
    effective ``level`` and ``is_parent`` (has an outgoing real connection).
    ``workspace`` is the previously recommended size; the returned one is
    never smaller. An empty graph is returned unchanged.
    """
    previous = workspace or Workspace()
    if not graph.nodes:
        return LayoutResult(graph=graph, levels={}, connections=[], workspace=previous, viewport=Viewport())

    resolved = resolve_levels(graph)
    if levels is not None:
        resolved.update({node_id: level for node_id, level in levels.items() if node_id in resolved})
    levels = resolved
    connections = rendered_connections(graph, levels)
    tree = build_layout_tree(graph, levels, connections)
    ys = assign_vertical_positions(graph, levels, tree)

    sources = {conn.from_id for conn in graph.connections}
    placed = [
        node.model_copy(
            update={
                "x": column_x(levels[node.id]),
                "y": ys[node.id],
                "level": levels[node.id],
                "is_parent": node.id in sources,
            }
        )
        for node in graph.nodes
    ]

    # Normalize: shift everything so the top-left node box starts at the padding.
    shift_x = CANVAS_PADDING - min(node.x for node in placed)
    shift_y = CANVAS_PADDING - min(node.y for node in placed)
    for node in placed:
        node.x += shift_x
        node.y += shift_y

    right, bottom = content_extent(placed)
    grown = previous.grow(max(right, MIN_WORKSPACE_WIDTH), max(bottom, MIN_WORKSPACE_HEIGHT))

    return LayoutResult(
        graph=Graph(nodes=placed, connections=[c.model_copy() for c in graph.connections]),
        levels=dict(levels),
        connections=connections,
        workspace=grown,
        viewport=Viewport(zoom=FIT_ZOOM),
    )


# ─── Connection Routing ───────────────────────────────────────────────────────


@dataclass
class Point:
    """A 2D point in canvas coordinates."""

    x: float
    y: float


@dataclass
class RoutedConnection:
    """A connection with a drawable cubic Bézier path.

    The path goes: exit point (right-middle of the source box)
                   → two horizontal control points
                   → entry point (left-middle of the target box).
    """

    from_id: str
    to_id: str
    synthetic: bool
    start: Point
    end: Point
    path: str
    length: float


def _fmt(value: float) -> str:
    return f"{value:g}"


def connection_path(from_node: Node, to_node: Node) -> tuple[Point, Point, str, float]:
    """Compute the exit/entry points, SVG path data and approximate length."""
    start = Point(x=from_node.x + FLOW_NODE_WIDTH, y=from_node.y + FLOW_NODE_HEIGHT / 2)
    end = Point(x=to_node.x, y=to_node.y + FLOW_NODE_HEIGHT / 2)

    control_offset = abs(end.x - start.x) * 0.4
    path = (
        f"M {_fmt(start.x)} {_fmt(start.y)} "
        f"C {_fmt(start.x + control_offset)} {_fmt(start.y)}, "
        f"{_fmt(end.x - control_offset)} {_fmt(end.y)}, "
        f"{_fmt(end.x)} {_fmt(end.y)}"
    )
    # Approximate curve length from the chord.
    length = math.hypot(end.x - start.x, end.y - start.y) * 1.3
    return start, end, path, length


def route_connections(graph: Graph, connections: list[RenderedConnection]) -> list[RoutedConnection]:
    """Route every rendered connection whose endpoints are both present.

    Self-loops are skipped.
    """
    node_map: dict[str, Node] = {node.id: node for node in graph.nodes}
    routes: list[RoutedConnection] = []
    for conn in connections:
        if conn.from_id == conn.to_id:
            continue
        from_node = node_map.get(conn.from_id)
        to_node = node_map.get(conn.to_id)
        if from_node is None or to_node is None:
            continue
        start, end, path, length = connection_path(from_node, to_node)
        routes.append(
            RoutedConnection(
                from_id=conn.from_id,
                to_id=conn.to_id,
                synthetic=conn.synthetic,
                start=start,
                end=end,
                path=path,
                length=length,
            )
        )
    return routes
