"""Bounded undo/redo history of full graph snapshots."""

from __future__ import annotations

from dataclasses import dataclass

from siteflow.graph import Connection, Graph, Node

HISTORY_LIMIT: int = 50


@dataclass(frozen=True)
class Snapshot:
    """An immutable copy of a graph's nodes and connections."""

    nodes: tuple[Node, ...]
    connections: tuple[Connection, ...]

    @classmethod
    def capture(cls, graph: Graph) -> Snapshot:
        return cls(
            nodes=tuple(node.model_copy() for node in graph.nodes),
            connections=tuple(conn.model_copy() for conn in graph.connections),
        )

    def restore(self) -> Graph:
        """Fresh, independently mutable graph built from this snapshot."""
        return Graph(
            nodes=[node.model_copy() for node in self.nodes],
            connections=[conn.model_copy() for conn in self.connections],
        )


class History:
    """A ring of at most ``limit`` snapshots with a cursor.

    ``push`` drops any redo entries beyond the cursor and, once full, evicts
    the oldest entry. ``undo``/``redo`` return the graph to restore, or None
    when already at the corresponding bound.
    """

    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self.limit = limit
        self._entries: list[Snapshot] = []
        self._cursor = -1

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries) - 1

    def push(self, graph: Graph) -> None:
        del self._entries[self._cursor + 1 :]
        self._entries.append(Snapshot.capture(graph))
        if len(self._entries) > self.limit:
            del self._entries[: len(self._entries) - self.limit]
        self._cursor = len(self._entries) - 1

    def undo(self) -> Graph | None:
        if not self.can_undo:
            return None
        self._cursor -= 1
        return self._entries[self._cursor].restore()

    def redo(self) -> Graph | None:
        if not self.can_redo:
            return None
        self._cursor += 1
        return self._entries[self._cursor].restore()

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = -1
