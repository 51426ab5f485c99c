"""Renderer seam: turns a laid-out site flow into an output document."""

from __future__ import annotations

from typing import Protocol

from siteflow.layout import LayoutResult


class Renderer(Protocol):
    """Anything that can draw a ``LayoutResult``.

    Implementations read node positions from ``result.graph`` and draw
    ``result.connections`` (real and synthetic). An empty graph renders to
    an empty string.
    """

    def render(self, result: LayoutResult) -> str: ...
