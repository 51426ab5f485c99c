"""Persistence collaborator — named project records holding a site flow.

The graph is stored exactly in its wire shape; nothing engine-specific is
added at the storage boundary.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from siteflow.config import Settings, get_settings
from siteflow.errors import StorageError
from siteflow.graph import Graph, normalize

logger = logging.getLogger(__name__)

_UPDATABLE = frozenset({"title", "description", "content", "site_flow"})


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectRecord(BaseModel):
    """A saved project: metadata plus its site-flow graph."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    description: str = ""
    content: str = ""
    site_flow: Graph = Field(default_factory=Graph)
    created_at: str = Field(default_factory=utc_timestamp)
    updated_at: str = Field(default_factory=utc_timestamp)


class ProjectStore(Protocol):
    def save(self, title: str, description: str, graph: Graph, content: str = "") -> ProjectRecord: ...

    def get(self, project_id: str) -> ProjectRecord | None: ...

    def update(self, project_id: str, **changes: Any) -> ProjectRecord | None: ...

    def delete(self, project_id: str) -> bool: ...

    def all(self) -> list[ProjectRecord]: ...


def _apply_changes(record: ProjectRecord, changes: dict[str, Any]) -> ProjectRecord:
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValueError(f"cannot update fields: {', '.join(sorted(unknown))}")
    if "site_flow" in changes:
        changes = {**changes, "site_flow": normalize(changes["site_flow"])}
    return record.model_copy(update={**changes, "updated_at": utc_timestamp()})


class InMemoryProjectStore:
    """Process-local store, mainly for tests and embedding."""

    def __init__(self) -> None:
        self._records: dict[str, ProjectRecord] = {}

    def save(self, title: str, description: str, graph: Graph, content: str = "") -> ProjectRecord:
        record = ProjectRecord(title=title, description=description, content=content, site_flow=normalize(graph))
        self._records[record.id] = record
        return record.model_copy(deep=True)

    def get(self, project_id: str) -> ProjectRecord | None:
        record = self._records.get(project_id)
        return record.model_copy(deep=True) if record else None

    def update(self, project_id: str, **changes: Any) -> ProjectRecord | None:
        record = self._records.get(project_id)
        if record is None:
            return None
        updated = _apply_changes(record, changes)
        self._records[project_id] = updated
        return updated.model_copy(deep=True)

    def delete(self, project_id: str) -> bool:
        return self._records.pop(project_id, None) is not None

    def all(self) -> list[ProjectRecord]:
        return [record.model_copy(deep=True) for record in self._records.values()]


class JsonFileProjectStore:
    """All records in one JSON array file.

    A missing or unreadable file reads as an empty store; write failures
    raise ``StorageError``.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> JsonFileProjectStore:
        settings = settings or get_settings()
        return cls(settings.store_path)

    def _load(self) -> list[ProjectRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [ProjectRecord.model_validate(item) for item in raw]
        except (OSError, ValueError, TypeError, ValidationError) as exc:
            logger.error("Error reading project store %s: %s", self.path, exc)
            return []

    def _write(self, records: list[ProjectRecord]) -> None:
        payload = [record.model_dump(by_alias=True) for record in records]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"cannot write project store {self.path}: {exc}") from exc
        logger.info("Saved %d projects to %s", len(records), self.path)

    def save(self, title: str, description: str, graph: Graph, content: str = "") -> ProjectRecord:
        records = self._load()
        record = ProjectRecord(title=title, description=description, content=content, site_flow=normalize(graph))
        records.append(record)
        self._write(records)
        return record

    def get(self, project_id: str) -> ProjectRecord | None:
        return next((record for record in self._load() if record.id == project_id), None)

    def update(self, project_id: str, **changes: Any) -> ProjectRecord | None:
        records = self._load()
        for index, record in enumerate(records):
            if record.id == project_id:
                records[index] = _apply_changes(record, changes)
                self._write(records)
                return records[index]
        return None

    def delete(self, project_id: str) -> bool:
        records = self._load()
        kept = [record for record in records if record.id != project_id]
        if len(kept) == len(records):
            return False
        self._write(kept)
        return True

    def all(self) -> list[ProjectRecord]:
        return self._load()
