"""Level resolver — hierarchical depth of every node.

Level 0 is the root column (left-most); each navigation step to the right
adds one. Levels are computed on the normalized graph and never written
back into the nodes here: stored ``Node.level`` values are advisory input.
"""

from __future__ import annotations

from collections import deque

import networkx as nx

from siteflow.graph import Graph, to_digraph

# ─── Root Detection ───────────────────────────────────────────────────────────


def find_roots(graph: Graph, digraph: nx.DiGraph | None = None) -> list[str]:
    """Return root candidates in node order.

    A root is a node that explicitly declares ``level == 0``, or a node with
    no incoming connection that does not declare a deeper level. A node
    declaring ``level > 0`` without any parent edge is an orphan waiting for
    connection inference, not a root.

    When nothing qualifies (fully cyclic graph) the first node is the sole
    root. An empty graph has no roots.
    """
    if not graph.nodes:
        return []
    g = digraph if digraph is not None else to_digraph(graph)

    roots: list[str] = []
    for node in graph.nodes:
        if node.level == 0:
            roots.append(node.id)
        elif g.in_degree(node.id) == 0 and node.level is None:
            roots.append(node.id)

    if not roots:
        roots.append(graph.nodes[0].id)
    return roots


# ─── Level Assignment ─────────────────────────────────────────────────────────


def _relax(digraph: nx.DiGraph, levels: dict[str, int], queue: deque[tuple[str, int]]) -> None:
    """BFS from the queued seeds, lowering a node's level only on improvement."""
    while queue:
        node_id, depth = queue.popleft()
        known = levels.get(node_id)
        if known is not None and known <= depth:
            continue
        levels[node_id] = depth
        for child in digraph.successors(node_id):
            queue.append((child, depth + 1))


def resolve_levels(graph: Graph) -> dict[str, int]:
    """Assign an effective level to every node.

    Algorithm: multi-source BFS from all roots at depth 0. A node is
    (re)assigned whenever it is reached at a strictly smaller depth than it
    currently holds, so each reachable node ends at its shortest distance
    from any root. Cycles terminate because a node is only re-queued on
    improvement.

    Nodes the roots never reach but which declare a stored level (orphans)
    are then seeded at that level in node order, and relaxation continues
    from each, so an orphan's descendants sit below it. Anything still
    unreached gets 0 if it was a root candidate and 1 otherwise.
    """
    digraph = to_digraph(graph)
    roots = find_roots(graph, digraph)
    root_set = set(roots)

    levels: dict[str, int] = {}
    _relax(digraph, levels, deque((root, 0) for root in roots))

    for node in graph.nodes:
        if node.id not in levels and node.level is not None:
            _relax(digraph, levels, deque([(node.id, node.level)]))

    return {
        node.id: levels.get(node.id, 0 if node.id in root_set else 1)
        for node in graph.nodes
    }


def level_count(levels: dict[str, int]) -> int:
    """Number of columns needed for ``levels`` (0 for an empty map)."""
    return (max(levels.values()) + 1) if levels else 0
