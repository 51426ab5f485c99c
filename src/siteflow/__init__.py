"""siteflow: site-flow graph engine.

Pages are nodes, navigation links are directed connections. The package
normalizes graphs, resolves hierarchical levels, infers display-only parent
links, lays the result out in left-to-right columns and drives an
interactive editing session with undo/redo, clipboard and AI generation.
"""

from __future__ import annotations

from siteflow.errors import GenerationError, GraphValidationError, SiteflowError, StorageError
from siteflow.generation import GenerationAdapter, fallback_graph
from siteflow.graph import Connection, Graph, Node, normalize
from siteflow.inference import RenderedConnection, infer_connections, rendered_connections
from siteflow.layout import LayoutResult, Viewport, Workspace, layout_graph
from siteflow.levels import find_roots, resolve_levels
from siteflow.session import EditorSession

__version__ = "0.1.0"

__all__ = [
    "Connection",
    "EditorSession",
    "GenerationAdapter",
    "GenerationError",
    "Graph",
    "GraphValidationError",
    "LayoutResult",
    "Node",
    "RenderedConnection",
    "SiteflowError",
    "StorageError",
    "Viewport",
    "Workspace",
    "fallback_graph",
    "find_roots",
    "infer_connections",
    "layout_graph",
    "normalize",
    "rendered_connections",
    "resolve_levels",
]
