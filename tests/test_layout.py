"""Tests for layout.py — tree-of-record, coordinate assignment, workspace and routing.

Coordinate tests pin the column/slot geometry:
  - columns are HORIZONTAL_SPACING apart, starting at CANVAS_PADDING
  - leaves take consecutive VERTICAL_SPACING slots
  - a parent sits at the midpoint of its first and last child
  - the laid-out content is translated so its top-left is at CANVAS_PADDING
"""

from __future__ import annotations

import pytest

from siteflow.graph import Graph, Node, normalize
from siteflow.inference import RenderedConnection
from siteflow.layout import (
    CANVAS_PADDING,
    FIT_ZOOM,
    FLOW_NODE_HEIGHT,
    FLOW_NODE_WIDTH,
    HORIZONTAL_SPACING,
    MIN_WORKSPACE_HEIGHT,
    MIN_WORKSPACE_WIDTH,
    VERTICAL_SPACING,
    ZOOM_MAX,
    ZOOM_MIN,
    Viewport,
    Workspace,
    assign_vertical_positions,
    build_layout_tree,
    clamp_zoom,
    column_x,
    connection_path,
    content_extent,
    fit_viewport,
    layout_graph,
    route_connections,
)
from siteflow.levels import resolve_levels

# ─── Helpers ──────────────────────────────────────────────────────────────────


def make_graph(*edges: tuple[str, str], nodes: list[str] | None = None, levels: dict[str, int] | None = None) -> Graph:
    """Build a normalized Graph from (src, tgt) pairs plus optional extra nodes."""
    order: list[str] = list(nodes or [])
    for src, tgt in edges:
        for node_id in (src, tgt):
            if node_id not in order:
                order.append(node_id)
    levels = levels or {}
    return normalize(
        {
            "nodes": [{"id": n, "name": n, "level": levels.get(n)} for n in order],
            "connections": [{"from": s, "to": t} for s, t in edges],
        }
    )


def positions(graph: Graph) -> dict[str, tuple[float, float]]:
    return {node.id: (node.x, node.y) for node in graph.nodes}


# ─── Tree-of-Record ───────────────────────────────────────────────────────────


class TestBuildLayoutTree:
    def test_single_parent_for_shared_child(self):
        graph = make_graph(("a", "c"), ("b", "c"))
        levels = resolve_levels(graph)
        tree = build_layout_tree(graph, levels, [RenderedConnection("a", "c"), RenderedConnection("b", "c")])
        assert tree.parents == {"c": "a"}
        assert tree.children["b"] == []
        assert tree.tops == ["a", "b"]

    def test_real_connection_preferred_over_synthetic(self):
        graph = make_graph(("a", "c"), ("b", "c"))
        levels = resolve_levels(graph)
        connections = [RenderedConnection("a", "c", synthetic=True), RenderedConnection("b", "c")]
        assert build_layout_tree(graph, levels, connections).parents == {"c": "b"}

    def test_non_adjacent_levels_do_not_qualify(self):
        graph = make_graph(("a", "b"), ("b", "c"), ("a", "c"))
        graph.connections.reverse()
        levels = {"a": 0, "b": 1, "c": 2}
        tree = build_layout_tree(graph, levels, [RenderedConnection(c.from_id, c.to_id) for c in graph.connections])
        assert tree.parents == {"b": "a", "c": "b"}

    def test_children_follow_node_order(self):
        graph = make_graph(nodes=["root", "z", "y"], levels={"root": 0, "z": 1, "y": 1})
        connections = [RenderedConnection("root", "y"), RenderedConnection("root", "z")]
        tree = build_layout_tree(graph, {"root": 0, "z": 1, "y": 1}, connections)
        assert tree.children["root"] == ["z", "y"]


class TestAssignVerticalPositions:
    def test_leaves_use_consecutive_slots(self):
        graph = make_graph(("r", "a"), ("r", "b"), ("r", "c"))
        levels = resolve_levels(graph)
        tree = build_layout_tree(graph, levels, [RenderedConnection(c.from_id, c.to_id) for c in graph.connections])
        ys = assign_vertical_positions(graph, levels, tree)
        assert [ys["a"], ys["b"], ys["c"]] == [0, VERTICAL_SPACING, 2 * VERTICAL_SPACING]
        assert ys["r"] == VERTICAL_SPACING

    def test_parent_after_children_in_deep_tree(self):
        graph = make_graph(*[(f"n{i}", f"n{i + 1}") for i in range(799)], ("n0", "side"))
        levels = resolve_levels(graph)
        tree = build_layout_tree(graph, levels, [RenderedConnection(c.from_id, c.to_id) for c in graph.connections])
        ys = assign_vertical_positions(graph, levels, tree)
        assert ys["n799"] == 0
        assert ys["side"] == VERTICAL_SPACING
        assert ys["n0"] == VERTICAL_SPACING / 2

    def test_every_node_positioned(self):
        graph = make_graph(("a", "b"), ("b", "a"), nodes=["solo"])
        levels = resolve_levels(graph)
        tree = build_layout_tree(graph, levels, [])
        assert set(assign_vertical_positions(graph, levels, tree)) == {"solo", "a", "b"}


# ─── Full Pipeline ────────────────────────────────────────────────────────────


class TestLayoutGraph:
    def test_root_centred_over_four_leaves(self):
        graph = make_graph(("home", "a"), ("home", "b"), ("home", "c"), ("home", "d"))
        result = layout_graph(graph)
        pos = positions(result.graph)
        assert pos["a"] == (CANVAS_PADDING + HORIZONTAL_SPACING, CANVAS_PADDING)
        assert pos["d"] == (CANVAS_PADDING + HORIZONTAL_SPACING, CANVAS_PADDING + 3 * VERTICAL_SPACING)
        assert pos["home"] == (CANVAS_PADDING, (pos["a"][1] + pos["d"][1]) / 2)

    def test_columns_follow_levels(self):
        graph = make_graph(("a", "b"), ("b", "c"))
        result = layout_graph(graph)
        for node in result.graph.nodes:
            assert node.x == column_x(result.levels[node.id])

    def test_leaves_in_a_column_do_not_overlap(self):
        graph = make_graph(("r", "a"), ("r", "b"), ("a", "c"), ("a", "d"), ("b", "e"))
        result = layout_graph(graph)
        leaves = sorted(n.y for n in result.graph.nodes if n.id in {"c", "d", "e"})
        assert all(b - a >= VERTICAL_SPACING for a, b in zip(leaves, leaves[1:]))

    def test_writes_level_and_is_parent(self):
        graph = make_graph(("home", "a"))
        result = layout_graph(graph)
        home, leaf = result.graph.nodes
        assert (home.level, home.is_parent) == (0, True)
        assert (leaf.level, leaf.is_parent) == (1, False)

    def test_orphan_placed_under_inferred_parent(self):
        graph = make_graph(nodes=["home", "page"], levels={"home": 0, "page": 1})
        result = layout_graph(graph)
        pos = positions(result.graph)
        assert pos["home"] == (CANVAS_PADDING, CANVAS_PADDING)
        assert pos["page"] == (CANVAS_PADDING + HORIZONTAL_SPACING, CANVAS_PADDING)
        assert [c.synthetic for c in result.connections] == [True]
        assert result.graph.connections == []

    def test_orphan_child_goes_one_column_right(self):
        graph = make_graph(("d", "e"), nodes=["home"], levels={"home": 0, "d": 1})
        result = layout_graph(graph)
        pos = positions(result.graph)
        assert pos["e"][0] == pos["d"][0] + HORIZONTAL_SPACING
        assert [(c.from_id, c.to_id, c.synthetic) for c in result.connections] == [
            ("d", "e", False),
            ("home", "d", True),
        ]

    def test_disconnected_components_stack(self):
        graph = make_graph(nodes=["a", "b"])
        pos = positions(layout_graph(graph).graph)
        assert pos == {"a": (CANVAS_PADDING, CANVAS_PADDING), "b": (CANVAS_PADDING, CANVAS_PADDING + VERTICAL_SPACING)}

    def test_deep_chain(self):
        depth = 1200
        graph = make_graph(*[(f"n{i}", f"n{i + 1}") for i in range(depth - 1)])
        result = layout_graph(graph)
        last = result.graph.nodes[-1]
        assert result.levels[last.id] == depth - 1
        assert last.x == column_x(depth - 1)
        assert {n.y for n in result.graph.nodes} == {CANVAS_PADDING}

    def test_single_node(self):
        graph = normalize({"nodes": [{"id": "only", "x": 999, "y": -50}]})
        assert positions(layout_graph(graph).graph) == {"only": (CANVAS_PADDING, CANVAS_PADDING)}

    def test_cycle_is_laid_out(self):
        graph = make_graph(("a", "b"), ("b", "c"), ("c", "a"))
        result = layout_graph(graph)
        assert result.levels == {"a": 0, "b": 1, "c": 2}
        assert len(result.graph.nodes) == 3

    def test_empty_graph_unchanged(self):
        previous = Workspace(2000, 1500)
        result = layout_graph(Graph(), previous)
        assert result.graph == Graph()
        assert result.levels == {}
        assert result.connections == []
        assert result.workspace == previous

    def test_input_not_mutated(self):
        graph = make_graph(("home", "a"))
        before = graph.model_copy(deep=True)
        layout_graph(graph)
        assert graph == before

    def test_idempotent(self):
        graph = make_graph(("r", "a"), ("r", "b"), ("b", "c"), nodes=["x"])
        first = layout_graph(graph)
        second = layout_graph(first.graph)
        assert positions(first.graph) == positions(second.graph)

    def test_top_left_is_padded(self):
        graph = make_graph(("r", "a"), ("r", "b"), ("a", "c"))
        nodes = layout_graph(graph).graph.nodes
        assert min(n.x for n in nodes) == CANVAS_PADDING
        assert min(n.y for n in nodes) == CANVAS_PADDING

    def test_explicit_levels_override(self):
        graph = make_graph(nodes=["a", "b"])
        result = layout_graph(graph, levels={"b": 2})
        assert result.levels == {"a": 0, "b": 2}


# ─── Workspace and Viewport ───────────────────────────────────────────────────


class TestWorkspace:
    def test_minimum_size(self):
        result = layout_graph(make_graph(("a", "b")))
        assert result.workspace == Workspace(MIN_WORKSPACE_WIDTH, MIN_WORKSPACE_HEIGHT)

    def test_grows_with_content(self):
        graph = make_graph(*[("home", f"p{i}") for i in range(6)])
        result = layout_graph(graph)
        bottom = CANVAS_PADDING + 5 * VERTICAL_SPACING + FLOW_NODE_HEIGHT + CANVAS_PADDING
        assert result.workspace.height == bottom

    def test_never_shrinks(self):
        previous = Workspace(5000, 4000)
        result = layout_graph(make_graph(("a", "b")), previous)
        assert result.workspace == previous

    def test_grow(self):
        assert Workspace(100, 500).grow(300, 200) == Workspace(300, 500)

    def test_content_extent(self):
        nodes = [Node(id="a", x=100, y=100), Node(id="b", x=400, y=320)]
        assert content_extent(nodes) == (400 + FLOW_NODE_WIDTH + CANVAS_PADDING, 320 + FLOW_NODE_HEIGHT + CANVAS_PADDING)
        assert content_extent([]) == (0.0, 0.0)


class TestViewport:
    def test_layout_recommends_fit_zoom(self):
        result = layout_graph(make_graph(("a", "b")))
        assert result.viewport == Viewport(zoom=FIT_ZOOM, pan_x=0, pan_y=0)

    def test_clamp_zoom(self):
        assert clamp_zoom(5) == ZOOM_MIN
        assert clamp_zoom(500) == ZOOM_MAX
        assert clamp_zoom(55) == 55

    def test_fit_viewport_without_view_size(self):
        assert fit_viewport(make_graph(("a", "b"))).zoom == FIT_ZOOM

    def test_fit_viewport_with_view_size(self):
        laid_out = layout_graph(make_graph(("a", "b"))).graph
        assert fit_viewport(laid_out, 10_000, 10_000).zoom == ZOOM_MAX
        assert fit_viewport(laid_out, 10, 10).zoom == ZOOM_MIN

    def test_to_canvas(self):
        viewport = Viewport(zoom=50, pan_x=10, pan_y=20)
        assert viewport.to_canvas(110, 120) == (200, 200)


# ─── Routing ──────────────────────────────────────────────────────────────────


class TestRouting:
    def test_connection_path_geometry(self):
        src = Node(id="a", x=100, y=100)
        tgt = Node(id="b", x=400, y=100)
        start, end, path, length = connection_path(src, tgt)
        assert (start.x, start.y) == (100 + FLOW_NODE_WIDTH, 100 + FLOW_NODE_HEIGHT / 2)
        assert (end.x, end.y) == (400, 100 + FLOW_NODE_HEIGHT / 2)
        assert path == "M 300 170 C 340 170, 360 170, 400 170"
        assert length == pytest.approx(130)

    def test_routes_real_and_synthetic(self):
        result = layout_graph(make_graph(("home", "a"), nodes=["home", "a", "b"], levels={"home": 0, "b": 1}))
        routes = route_connections(result.graph, result.connections)
        assert [(r.from_id, r.to_id, r.synthetic) for r in routes] == [("home", "a", False), ("home", "b", True)]

    def test_skips_self_loops_and_missing_nodes(self):
        graph = make_graph(("a", "a"), ("a", "b"))
        connections = [RenderedConnection("a", "a"), RenderedConnection("a", "ghost"), RenderedConnection("a", "b")]
        assert [(r.from_id, r.to_id) for r in route_connections(graph, connections)] == [("a", "b")]
