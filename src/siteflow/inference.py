"""Connection inference — rendering-only parent links.

Generators often emit levels without edges, or edges that skip a level.
To still draw a connected-looking diagram, every non-root node that lacks a
real parent exactly one level above gets a synthetic link. Synthetic
connections are tagged and never merged into ``Graph.connections``.
"""

from __future__ import annotations

from dataclasses import dataclass

from siteflow.graph import Graph, Node
from siteflow.levels import resolve_levels


@dataclass(frozen=True)
class RenderedConnection:
    """A connection as drawn on the canvas.

    ``synthetic`` marks links produced by inference; those are display-only.
    """

    from_id: str
    to_id: str
    synthetic: bool = False


def _closest(node: Node, candidates: list[Node]) -> Node | None:
    """Candidate nearest to ``node`` vertically; ties go to the first one."""
    best: Node | None = None
    best_distance = 0.0
    for candidate in candidates:
        if candidate.id == node.id:
            continue
        distance = abs(candidate.y - node.y)
        if best is None or distance < best_distance:
            best = candidate
            best_distance = distance
    return best


def infer_connections(graph: Graph, levels: dict[str, int] | None = None) -> list[RenderedConnection]:
    """Return the synthetic connections needed to give every node a parent.

    For a node at level ``L > 0`` with no real incoming connection from level
    ``L - 1``, link it from the closest node at ``L - 1``. When that level is
    empty, fall back to the first level-0 node.
    """
    if levels is None:
        levels = resolve_levels(graph)

    by_level: dict[int, list[Node]] = {}
    for node in graph.nodes:
        by_level.setdefault(levels.get(node.id, 0), []).append(node)
    roots = by_level.get(0, [])

    real_sources: dict[str, list[str]] = {node.id: [] for node in graph.nodes}
    for conn in graph.connections:
        if conn.to_id in real_sources:
            real_sources[conn.to_id].append(conn.from_id)

    synthetic: list[RenderedConnection] = []
    for node in graph.nodes:
        level = levels.get(node.id, 0)
        if level <= 0:
            continue
        if any(levels.get(src) == level - 1 for src in real_sources[node.id]):
            continue

        parent = _closest(node, by_level.get(level - 1, []))
        if parent is None:
            parent = next((root for root in roots if root.id != node.id), None)
        if parent is None:
            continue
        synthetic.append(RenderedConnection(from_id=parent.id, to_id=node.id, synthetic=True))

    return synthetic


def rendered_connections(graph: Graph, levels: dict[str, int] | None = None) -> list[RenderedConnection]:
    """Real connections followed by synthetic ones, in that order."""
    if levels is None:
        levels = resolve_levels(graph)
    real = [RenderedConnection(from_id=c.from_id, to_id=c.to_id) for c in graph.connections]
    return real + infer_connections(graph, levels)
