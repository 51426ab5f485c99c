"""Editing session — the live owner of a site-flow graph.

An ``EditorSession`` holds the graph the user is looking at together with
the transient interaction state (selection, drag, connect, edit, pan) and
the undo/redo history. Every method runs to completion synchronously; the
only coroutine is ``regenerate``, which awaits the generation adapter.

History is pushed once per discrete user action: structure edits push
immediately, a drag pushes on release, pointer moves never do.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from siteflow.clipboard import CLIPBOARD_KEY, KeyValueStore, MemoryClipboard
from siteflow.errors import GraphValidationError
from siteflow.export import parse_graph, serialize_graph
from siteflow.graph import Connection, Graph, Node, has_connection_between, normalize
from siteflow.history import HISTORY_LIMIT, History
from siteflow.inference import RenderedConnection, rendered_connections
from siteflow.layout import (
    HORIZONTAL_SPACING,
    VERTICAL_SPACING,
    ZOOM_STEP,
    LayoutResult,
    Viewport,
    Workspace,
    clamp_zoom,
    layout_graph,
)
from siteflow.levels import resolve_levels

if TYPE_CHECKING:
    from siteflow.generation import GenerationAdapter

logger = logging.getLogger(__name__)

NEW_NODE_NAME = "New Page"
PASTE_OFFSET: float = 40.0

# ─── Interaction State ────────────────────────────────────────────────────────


class EditField(str, Enum):
    NAME = "name"
    DESCRIPTION = "description"


@dataclass
class DragState:
    """A drag in progress: pointer offset inside the node and where it started."""

    node_id: str
    offset_x: float
    offset_y: float
    origin_x: float
    origin_y: float


@dataclass
class ConnectState:
    """Connect mode is armed; ``source_id`` is set after the first node click."""

    source_id: str | None = None


@dataclass
class EditState:
    node_id: str
    field: EditField
    pending_value: str


@dataclass
class PanState:
    pointer_x: float
    pointer_y: float
    origin_pan_x: float
    origin_pan_y: float


# ─── Session ──────────────────────────────────────────────────────────────────


class EditorSession:
    """Interactive editing of one site-flow graph.

    Args:
        graph: Initial graph (normalized on entry). Positions are kept as-is;
            call ``auto_layout`` to arrange it.
        clipboard: Key-value store used by ``copy``/``paste``.
        on_change: Called with a copy of the graph after every committed edit.
        workspace: Previously recommended canvas size, if any.
        history_limit: Maximum number of undo snapshots.
    """

    def __init__(
        self,
        graph: Graph | None = None,
        *,
        clipboard: KeyValueStore | None = None,
        on_change: Callable[[Graph], None] | None = None,
        workspace: Workspace | None = None,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self._graph = normalize(graph) if graph is not None else Graph()
        self.clipboard: KeyValueStore = clipboard if clipboard is not None else MemoryClipboard()
        self.on_change = on_change
        self.workspace = workspace or Workspace()
        self.viewport = Viewport()

        self.selection: set[str] = set()
        self.drag_state: DragState | None = None
        self.connect_state: ConnectState | None = None
        self.edit_state: EditState | None = None
        self.pan_state: PanState | None = None

        self.history = History(history_limit)
        self.history.push(self._graph)
        self._generation_ticket = 0

    # ── Accessors ──

    @property
    def graph(self) -> Graph:
        """The live graph. Treat as read-only; mutate through session methods."""
        return self._graph

    def current_graph(self) -> Graph:
        """Independent copy of the live graph, safe for a host to persist."""
        return self._graph.model_copy(deep=True)

    def rendered_connections(self) -> list[RenderedConnection]:
        return rendered_connections(self._graph)

    def view(self) -> LayoutResult:
        """The current graph as positioned, packaged for a renderer (no re-layout)."""
        levels = resolve_levels(self._graph)
        return LayoutResult(
            graph=self.current_graph(),
            levels=levels,
            connections=rendered_connections(self._graph, levels),
            workspace=self.workspace,
            viewport=self.viewport,
        )

    @property
    def connecting(self) -> bool:
        return self.connect_state is not None

    # ── Internals ──

    def _node(self, node_id: str) -> Node | None:
        return self._graph.node(node_id)

    def _new_node_id(self) -> str:
        existing = {node.id for node in self._graph.nodes}
        while True:
            candidate = f"node-{uuid.uuid4().hex[:8]}"
            if candidate not in existing:
                return candidate

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.current_graph())

    def _commit(self) -> None:
        self.history.push(self._graph)
        self._notify()

    def _replace(self, graph: Graph) -> None:
        """Swap in a new live graph and drop state pointing at vanished nodes."""
        self._graph = graph
        ids = {node.id for node in graph.nodes}
        self.selection &= ids
        if self.drag_state is not None and self.drag_state.node_id not in ids:
            self.drag_state = None
        if self.edit_state is not None and self.edit_state.node_id not in ids:
            self.edit_state = None
        if self.connect_state is not None and self.connect_state.source_id not in (None, *ids):
            self.connect_state = None

    # ── Selection ──

    def click_node(self, node_id: str, modified: bool = False) -> None:
        """Handle a click on a node.

        While connect mode is armed the click picks the source or target.
        Otherwise a plain click selects only this node and a modified click
        toggles it in or out of the selection.
        """
        if self._node(node_id) is None:
            return
        if self.connect_state is not None:
            self._connect_click(node_id)
            return
        if modified:
            self.selection ^= {node_id}
        else:
            self.selection = {node_id}

    def click_canvas(self) -> None:
        self.selection.clear()

    def select_all(self) -> None:
        self.selection = {node.id for node in self._graph.nodes}

    # ── Connect ──

    def arm_connect(self, source_id: str | None = None) -> None:
        """Enter connect mode, optionally with the source already chosen."""
        if source_id is not None and self._node(source_id) is None:
            source_id = None
        self.connect_state = ConnectState(source_id=source_id)

    def cancel_connect(self) -> None:
        self.connect_state = None

    def _connect_click(self, node_id: str) -> None:
        state = self.connect_state
        if state is None:
            return
        if state.source_id is None:
            state.source_id = node_id
            return
        if node_id == state.source_id:
            return
        self.connect_state = None
        self.connect(state.source_id, node_id)

    def connect(self, from_id: str, to_id: str) -> bool:
        """Add ``from_id → to_id`` unless the pair is already linked either way."""
        if from_id == to_id or self._node(from_id) is None or self._node(to_id) is None:
            return False
        if has_connection_between(self._graph, from_id, to_id):
            logger.debug("Ignoring duplicate connection %s -> %s", from_id, to_id)
            return False
        self._graph.connections.append(Connection(from_id=from_id, to_id=to_id))
        self._commit()
        return True

    def disconnect(self, from_id: str, to_id: str) -> bool:
        kept = [c for c in self._graph.connections if c.pair != (from_id, to_id)]
        if len(kept) == len(self._graph.connections):
            return False
        self._graph.connections = kept
        self._commit()
        return True

    # ── Drag ──

    def begin_drag(self, node_id: str, pointer_x: float, pointer_y: float) -> None:
        """Start dragging; pointer coordinates are in canvas space."""
        node = self._node(node_id)
        if node is None:
            return
        self.drag_state = DragState(
            node_id=node_id,
            offset_x=pointer_x - node.x,
            offset_y=pointer_y - node.y,
            origin_x=node.x,
            origin_y=node.y,
        )

    def move_drag(self, pointer_x: float, pointer_y: float) -> None:
        state = self.drag_state
        if state is None:
            return
        node = self._node(state.node_id)
        if node is None:
            self.drag_state = None
            return
        node.x = pointer_x - state.offset_x
        node.y = pointer_y - state.offset_y

    def end_drag(self) -> bool:
        """Finish the drag; records one history entry if the node moved."""
        state = self.drag_state
        self.drag_state = None
        if state is None:
            return False
        node = self._node(state.node_id)
        if node is None or (node.x, node.y) == (state.origin_x, state.origin_y):
            return False
        self._commit()
        return True

    # ── Edit ──

    def begin_edit(self, node_id: str, field: EditField | str) -> None:
        node = self._node(node_id)
        if node is None:
            return
        field = EditField(field)
        current = node.name if field is EditField.NAME else node.description
        self.edit_state = EditState(node_id=node_id, field=field, pending_value=current)

    def update_edit(self, value: str) -> None:
        if self.edit_state is not None:
            self.edit_state.pending_value = value

    def commit_edit(self) -> bool:
        """Apply the pending value. Blank names and unchanged values are no-ops."""
        state = self.edit_state
        self.edit_state = None
        if state is None:
            return False
        node = self._node(state.node_id)
        if node is None:
            return False

        if state.field is EditField.NAME:
            value = state.pending_value.strip()
            if not value or value == node.name:
                return False
            node.name = value
        else:
            if state.pending_value == node.description:
                return False
            node.description = state.pending_value
        self._commit()
        return True

    def cancel_edit(self) -> None:
        self.edit_state = None

    def rename_node(self, node_id: str, name: str) -> bool:
        self.begin_edit(node_id, EditField.NAME)
        self.update_edit(name)
        return self.commit_edit()

    def set_description(self, node_id: str, description: str) -> bool:
        self.begin_edit(node_id, EditField.DESCRIPTION)
        self.update_edit(description)
        return self.commit_edit()

    # ── Delete ──

    def delete_node(self, node_id: str) -> bool:
        return self._delete({node_id}) > 0

    def delete_selected(self) -> int:
        return self._delete(set(self.selection))

    def _delete(self, ids: set[str]) -> int:
        """Remove nodes and every connection touching them.

        Former children are not re-attached to the deleted node's parent.
        """
        doomed = ids & {node.id for node in self._graph.nodes}
        if not doomed:
            return 0
        graph = Graph(
            nodes=[node for node in self._graph.nodes if node.id not in doomed],
            connections=[
                conn
                for conn in self._graph.connections
                if conn.from_id not in doomed and conn.to_id not in doomed
            ],
        )
        self._replace(graph)
        self._commit()
        return len(doomed)

    # ── Add ──

    def add_node(self, x: float, y: float, name: str | None = None, description: str = "") -> str:
        """Create a node at canvas position ``(x, y)`` and return its id."""
        node_id = self._new_node_id()
        self._graph.nodes.append(
            Node(id=node_id, name=name or NEW_NODE_NAME, description=description, x=x, y=y)
        )
        self._commit()
        return node_id

    def add_child(self, parent_id: str, name: str | None = None) -> str | None:
        """Create a node one column right of ``parent_id``, below its children."""
        parent = self._node(parent_id)
        if parent is None:
            return None
        child_ids = {c.to_id for c in self._graph.connections if c.from_id == parent_id}
        siblings = [node for node in self._graph.nodes if node.id in child_ids]
        y = max(node.y for node in siblings) + VERTICAL_SPACING if siblings else parent.y

        node_id = self._new_node_id()
        self._graph.nodes.append(
            Node(
                id=node_id,
                name=name or NEW_NODE_NAME,
                x=parent.x + HORIZONTAL_SPACING,
                y=y,
                level=parent.level + 1 if parent.level is not None else None,
            )
        )
        self._graph.connections.append(Connection(from_id=parent_id, to_id=node_id))
        parent.is_parent = True
        self._commit()
        return node_id

    # ── History ──

    def undo(self) -> bool:
        graph = self.history.undo()
        if graph is None:
            return False
        self._replace(graph)
        self._notify()
        return True

    def redo(self) -> bool:
        graph = self.history.redo()
        if graph is None:
            return False
        self._replace(graph)
        self._notify()
        return True

    # ── Clipboard ──

    def copy(self) -> int:
        """Copy the selected nodes and the connections among them."""
        nodes = [node for node in self._graph.nodes if node.id in self.selection]
        if not nodes:
            return 0
        internal = [
            conn
            for conn in self._graph.connections
            if conn.from_id in self.selection and conn.to_id in self.selection
        ]
        self.clipboard.set(CLIPBOARD_KEY, serialize_graph(Graph(nodes=nodes, connections=internal), indent=None))
        return len(nodes)

    def paste(self, x: float | None = None, y: float | None = None) -> list[str]:
        """Paste clipboard nodes with fresh ids.

        The top-left of the copied group is anchored at ``(x, y)``; without a
        paste point the group lands ``PASTE_OFFSET`` below-right of the
        originals. Connections among the copied nodes are recreated. The
        pasted nodes become the selection.
        """
        raw = self.clipboard.get(CLIPBOARD_KEY)
        if not raw:
            return []
        try:
            copied = parse_graph(raw)
        except GraphValidationError as exc:
            logger.warning("Ignoring unreadable clipboard contents: %s", exc)
            return []
        if not copied.nodes:
            return []

        min_x = min(node.x for node in copied.nodes)
        min_y = min(node.y for node in copied.nodes)
        dx = PASTE_OFFSET if x is None else x - min_x
        dy = PASTE_OFFSET if y is None else y - min_y

        id_map: dict[str, str] = {}
        for node in copied.nodes:
            new_id = self._new_node_id()
            id_map[node.id] = new_id
            self._graph.nodes.append(node.model_copy(update={"id": new_id, "x": node.x + dx, "y": node.y + dy}))
        for conn in copied.connections:
            self._graph.connections.append(Connection(from_id=id_map[conn.from_id], to_id=id_map[conn.to_id]))

        self.selection = set(id_map.values())
        self._commit()
        return list(id_map.values())

    # ── Layout ──

    def auto_layout(self) -> LayoutResult:
        """Re-run the hierarchical layout over the live graph."""
        result = layout_graph(self._graph, self.workspace)
        self.workspace = result.workspace
        if not result.graph.nodes:
            return result
        self._replace(result.graph)
        self.viewport = result.viewport
        self._commit()
        return result

    def load(self, graph: Graph) -> LayoutResult:
        """Replace the live graph with a laid-out copy of ``graph``."""
        result = layout_graph(normalize(graph), self.workspace)
        self.selection.clear()
        self.drag_state = None
        self.connect_state = None
        self.edit_state = None
        self._replace(result.graph)
        self.workspace = result.workspace
        self.viewport = result.viewport
        self._commit()
        return result

    # ── View ──

    def set_zoom(self, zoom: float) -> None:
        self.viewport = Viewport(zoom=clamp_zoom(zoom), pan_x=self.viewport.pan_x, pan_y=self.viewport.pan_y)

    def zoom_in(self) -> None:
        self.set_zoom(self.viewport.zoom + ZOOM_STEP)

    def zoom_out(self) -> None:
        self.set_zoom(self.viewport.zoom - ZOOM_STEP)

    def begin_pan(self, pointer_x: float, pointer_y: float) -> None:
        self.pan_state = PanState(pointer_x, pointer_y, self.viewport.pan_x, self.viewport.pan_y)

    def move_pan(self, pointer_x: float, pointer_y: float) -> None:
        state = self.pan_state
        if state is None:
            return
        self.viewport = Viewport(
            zoom=self.viewport.zoom,
            pan_x=state.origin_pan_x + pointer_x - state.pointer_x,
            pan_y=state.origin_pan_y + pointer_y - state.pointer_y,
        )

    def end_pan(self) -> None:
        self.pan_state = None

    # ── Generation ──

    def cancel_generation(self) -> None:
        """Invalidate any in-flight generation so its result is discarded."""
        self._generation_ticket += 1

    async def regenerate(
        self,
        adapter: GenerationAdapter,
        description: str | None = None,
        document: str | None = None,
    ) -> Graph | None:
        """Generate a new graph and load it, unless a newer request superseded this one.

        Returns the loaded graph, or None when the result was discarded.
        """
        self._generation_ticket += 1
        ticket = self._generation_ticket
        graph = await adapter.generate(description, document)
        if ticket != self._generation_ticket:
            logger.debug("Discarding superseded generation (ticket %d)", ticket)
            return None
        self.load(graph)
        return self.current_graph()

