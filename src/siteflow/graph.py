"""Graph model — nodes, connections and the normalization gate.

The ``Graph`` is the only shape that is persisted or exchanged. Its wire
form uses camelCase keys (``isParent``, ``from``, ``to``) while the Python
attributes are snake_case.

Every graph must pass through ``normalize`` before it reaches the layout
engine or a store: it fills defaults, synthesizes missing ids and drops
connections whose endpoints are unknown.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field

from siteflow.errors import GraphValidationError

logger = logging.getLogger(__name__)

DEFAULT_NODE_NAME = "Untitled"
NODE_ID_PREFIX = "node-"

# ─── Model ────────────────────────────────────────────────────────────────────


class Node(BaseModel):
    """A single page/screen of the site flow."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = DEFAULT_NODE_NAME
    description: str = ""
    x: float = 0.0
    y: float = 0.0
    is_parent: bool = Field(default=False, alias="isParent")
    level: int | None = None


class Connection(BaseModel):
    """A directed "navigates to" edge between two nodes."""

    model_config = ConfigDict(populate_by_name=True)

    from_id: str = Field(alias="from")
    to_id: str = Field(alias="to")

    @property
    def pair(self) -> tuple[str, str]:
        return (self.from_id, self.to_id)


class Graph(BaseModel):
    """The authoritative site-flow unit: nodes plus connections."""

    model_config = ConfigDict(populate_by_name=True)

    nodes: list[Node] = Field(default_factory=list)
    connections: list[Connection] = Field(default_factory=list)

    def node(self, node_id: str) -> Node | None:
        """Return the node with ``node_id`` or None."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_wire(self) -> dict[str, Any]:
        """Plain-dict form with camelCase keys."""
        return self.model_dump(by_alias=True)


# ─── Normalization ────────────────────────────────────────────────────────────


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value if value.strip() else default
    return str(value)


def _coordinate(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            parsed = float(value)
        except ValueError:
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0
    return 0.0


def _level(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and math.isfinite(value) and value >= 0:
        return int(value)
    return None


def _ref(value: Any) -> str | None:
    """Coerce an id reference (string or number) to a string id."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)):
        return str(value)
    return None


def _as_mapping(item: Any, what: str) -> Mapping[str, Any]:
    if isinstance(item, BaseModel):
        return item.model_dump(by_alias=True)
    if isinstance(item, Mapping):
        return item
    raise GraphValidationError(f"{what} must be an object, got {type(item).__name__}")


def _as_list(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    raise GraphValidationError(f"'{what}' must be a list, got {type(value).__name__}")


def normalize(raw: Graph | Mapping[str, Any]) -> Graph:
    """Return a normalized copy of ``raw``.

    Pure and idempotent. Missing fields get defaults (name → ``Untitled``,
    description → ``""``, coordinates → 0), missing or duplicate node ids are
    replaced by fresh ``node-N`` ids, and connections that reference unknown
    nodes are dropped.

    Raises:
        GraphValidationError: ``raw`` is not a mapping, or its ``nodes`` /
            ``connections`` are not lists of objects.
    """
    data = _as_mapping(raw, "graph")
    raw_nodes = [_as_mapping(item, "node") for item in _as_list(data.get("nodes"), "nodes")]
    raw_connections = [
        _as_mapping(item, "connection") for item in _as_list(data.get("connections"), "connections")
    ]

    # Every explicit id is reserved up front so synthesized ids never collide.
    reserved: set[str] = set()
    for item in raw_nodes:
        ref = _ref(item.get("id"))
        if ref is not None:
            reserved.add(ref)

    counter = 0

    def fresh_id() -> str:
        nonlocal counter
        while True:
            counter += 1
            candidate = f"{NODE_ID_PREFIX}{counter}"
            if candidate not in reserved:
                reserved.add(candidate)
                return candidate

    nodes: list[Node] = []
    seen: set[str] = set()
    for item in raw_nodes:
        node_id = _ref(item.get("id"))
        if node_id is None or node_id in seen:
            node_id = fresh_id()
        seen.add(node_id)
        is_parent = item.get("isParent", item.get("is_parent", False))
        nodes.append(
            Node(
                id=node_id,
                name=_text(item.get("name"), DEFAULT_NODE_NAME),
                description=_text(item.get("description"), ""),
                x=_coordinate(item.get("x")),
                y=_coordinate(item.get("y")),
                is_parent=is_parent if isinstance(is_parent, bool) else False,
                level=_level(item.get("level")),
            )
        )

    connections: list[Connection] = []
    for item in raw_connections:
        src = _ref(item.get("from", item.get("from_id")))
        tgt = _ref(item.get("to", item.get("to_id")))
        if src not in seen or tgt not in seen:
            logger.debug("Dropping connection with unknown endpoint: %r -> %r", src, tgt)
            continue
        connections.append(Connection(from_id=src, to_id=tgt))

    return Graph(nodes=nodes, connections=connections)


# ─── Queries ──────────────────────────────────────────────────────────────────


def to_digraph(graph: Graph) -> nx.DiGraph:
    """Build a DiGraph view of ``graph``.

    Nodes are added in insertion order and carry the ``Node`` under the
    ``data`` attribute. Connections with unknown endpoints are skipped so an
    un-normalized graph never grows phantom nodes.
    """
    g: nx.DiGraph = nx.DiGraph()
    for node in graph.nodes:
        g.add_node(node.id, data=node)
    for conn in graph.connections:
        if conn.from_id in g and conn.to_id in g:
            g.add_edge(conn.from_id, conn.to_id)
    return g


def node_ids(graph: Graph) -> list[str]:
    return [node.id for node in graph.nodes]


def has_connection_between(graph: Graph, a: str, b: str) -> bool:
    """True if ``a → b`` or ``b → a`` already exists."""
    return any(conn.pair in ((a, b), (b, a)) for conn in graph.connections)
