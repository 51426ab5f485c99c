"""Generation adapter — description/document → normalized site-flow graph.

The adapter never surfaces a failure to the editor: when no generator is
configured, or the generator fails, or its answer cannot be turned into a
graph, the deterministic ``fallback_graph`` is returned instead.

Accepted response shapes (one JSON object, optionally wrapped in prose or a
code fence):

  {"nodes": [{"id", "name", "description", "level"}...], "connections": [{"from", "to"}...]}
  {"pages": [{"name", "description", "level", "parentId"}...], "connections": [{"from", "to"}...]}

In the page form, connections and ``parentId`` refer to page names.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from siteflow.config import Settings, get_settings
from siteflow.errors import GenerationError
from siteflow.graph import Graph, normalize
from siteflow.llm import ChatCompletionsClient, TextGenerator
from siteflow.prompts import build_request

logger = logging.getLogger(__name__)

# ─── Response Parsing ─────────────────────────────────────────────────────────

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json(text: str) -> str | None:
    """Return the JSON-object substring of ``text``, or None.

    A fenced block is preferred when present; otherwise the span from the
    first ``{`` to the last ``}`` is taken, dropping surrounding prose.
    """
    match = _FENCE_RE.search(text)
    candidate = match.group(1) if match else text
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end <= start:
        return None
    return candidate[start : end + 1]


def _ref_to_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


class GeneratedPage(BaseModel):
    """A node or page as produced by the generator."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    name: str | None = None
    description: str | None = None
    level: int | None = None
    parent: str | None = Field(default=None, validation_alias=AliasChoices("parentId", "parent_id", "parent"))

    @field_validator("id", "parent", mode="before")
    @classmethod
    def _coerce_ref(cls, value: Any) -> Any:
        return _ref_to_str(value) or None


class GeneratedConnection(BaseModel):
    from_ref: str | None = Field(default=None, validation_alias=AliasChoices("from", "source"))
    to_ref: str | None = Field(default=None, validation_alias=AliasChoices("to", "target"))

    @field_validator("from_ref", "to_ref", mode="before")
    @classmethod
    def _coerce_ref(cls, value: Any) -> Any:
        return _ref_to_str(value) or None


class GeneratedSiteFlow(BaseModel):
    pages: list[GeneratedPage] = Field(validation_alias=AliasChoices("nodes", "pages"))
    connections: list[GeneratedConnection] = Field(default_factory=list)


def to_graph(flow: GeneratedSiteFlow) -> Graph:
    """Convert a validated response into a normalized graph.

    Pages without an id get ``page-N``. References (connection endpoints and
    parents) resolve against ids first, then page names.
    """
    ids: list[str] = []
    taken = {page.id for page in flow.pages if page.id}
    by_name: dict[str, str] = {}
    for index, page in enumerate(flow.pages, start=1):
        page_id = page.id
        if not page_id or page_id in ids:
            page_id = f"page-{index}"
            while page_id in taken:
                page_id += "_"
            taken.add(page_id)
        ids.append(page_id)
        name = (page.name or "").strip()
        if name:
            by_name.setdefault(name, page_id)

    known = set(ids)

    def resolve(ref: str | None) -> str | None:
        if not ref:
            return None
        if ref in known:
            return ref
        return by_name.get(ref)

    connections: list[dict[str, str]] = []
    seen: set[tuple[str, str]] = set()

    def link(src: str | None, tgt: str | None) -> None:
        if src is None or tgt is None or src == tgt or (src, tgt) in seen:
            return
        seen.add((src, tgt))
        connections.append({"from": src, "to": tgt})

    for page_id, page in zip(ids, flow.pages):
        link(resolve(page.parent), page_id)
    for conn in flow.connections:
        link(resolve(conn.from_ref), resolve(conn.to_ref))

    nodes = [
        {
            "id": page_id,
            "name": page.name,
            "description": page.description or "",
            "level": page.level,
        }
        for page_id, page in zip(ids, flow.pages)
    ]
    return normalize({"nodes": nodes, "connections": connections})


def parse_response(text: str) -> Graph:
    """Parse generator output into a normalized graph.

    Raises:
        GenerationError: no JSON object, invalid JSON, wrong shape, or no pages.
    """
    payload = extract_json(text)
    if payload is None:
        raise GenerationError("response contains no JSON object")
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise GenerationError(f"response JSON is invalid: {exc}") from exc
    try:
        flow = GeneratedSiteFlow.model_validate(data)
    except ValidationError as exc:
        raise GenerationError(f"response does not match the site-flow shape: {exc}") from exc
    if not flow.pages:
        raise GenerationError("response has no pages")
    return to_graph(flow)


# ─── Fallback ─────────────────────────────────────────────────────────────────

# (keywords, id, name, description)
_KEYWORD_PAGES: list[tuple[tuple[str, ...], str, str, str]] = [
    (("login", "auth", "sign in", "signup", "sign up"), "login", "Login", "User authentication"),
    (("dashboard",), "dashboard", "Dashboard", "User dashboard"),
    (("product", "shop", "store", "catalog"), "products", "Products", "Product listing"),
]

_GENERIC_PAGES: list[tuple[str, str, str]] = [
    ("features", "Features", "Overview of what the app offers"),
    ("about", "About", "About the app and its team"),
    ("contact", "Contact", "Ways to get in touch"),
]


def fallback_graph(description: str | None = None) -> Graph:
    """Deterministic site flow used whenever generation is unavailable.

    A ``Home`` root plus one page per recognised keyword in the description,
    or a generic set of pages when nothing matches.
    """
    text = (description or "").lower()
    pages = [(page_id, name, desc) for keywords, page_id, name, desc in _KEYWORD_PAGES if any(k in text for k in keywords)]
    if not pages:
        pages = list(_GENERIC_PAGES)

    nodes: list[dict[str, Any]] = [
        {"id": "home", "name": "Home", "description": "Landing page", "level": 0, "isParent": True}
    ]
    connections: list[dict[str, str]] = []
    for page_id, name, desc in pages:
        nodes.append({"id": page_id, "name": name, "description": desc, "level": 1})
        connections.append({"from": "home", "to": page_id})
    return normalize({"nodes": nodes, "connections": connections})


# ─── Adapter ──────────────────────────────────────────────────────────────────


class GenerationAdapter:
    """Turns descriptions into graphs through an optional ``TextGenerator``."""

    def __init__(self, generator: TextGenerator | None = None) -> None:
        self.generator = generator

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> GenerationAdapter:
        settings = settings or get_settings()
        if not settings.is_ai_configured:
            logger.info("No AI provider configured; site flows will use the built-in fallback")
            return cls()
        return cls(ChatCompletionsClient.from_settings(settings))

    @property
    def available(self) -> bool:
        return self.generator is not None

    def generate_fallback(self, description: str | None = None, document: str | None = None) -> Graph:
        """Synchronous path: the deterministic fallback for this input."""
        return fallback_graph(" ".join(part for part in (description, document) if part))

    async def generate(self, description: str | None = None, document: str | None = None) -> Graph:
        """Generate a normalized site-flow graph. Never raises.

        This is always a coroutine. Without a generator it completes without
        suspending, but callers outside an event loop that only need the
        unconfigured result should call ``generate_fallback`` instead.
        """
        if self.generator is None:
            return self.generate_fallback(description, document)

        request = build_request(description, document)
        try:
            text = await self.generator.complete(request)
            graph = parse_response(text)
        except GenerationError as exc:
            logger.warning("Site flow generation failed, using fallback: %s", exc)
            return self.generate_fallback(description, document)
        except Exception:
            logger.exception("Text generator raised unexpectedly, using fallback")
            return self.generate_fallback(description, document)

        logger.info("Generated site flow with %d pages", len(graph.nodes))
        return graph
