"""Clipboard storage for copy/paste.

The session talks to a small key-value interface so the backing store can be
swapped (per-process memory, a browser bridge, a file) without the editor
knowing about it.
"""

from __future__ import annotations

from typing import Protocol

CLIPBOARD_KEY = "siteflow.clipboard"


class KeyValueStore(Protocol):
    """Minimal string key-value store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryClipboard:
    """In-process ``KeyValueStore``; share one instance to copy across sessions."""

    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value
