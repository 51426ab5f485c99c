"""Tests for generation.py — response parsing, fallback and the adapter."""

from __future__ import annotations

import logging

import pytest

from siteflow.config import Settings
from siteflow.errors import GenerationError
from siteflow.generation import GenerationAdapter, extract_json, fallback_graph, parse_response
from siteflow.llm import ChatCompletionsClient
from siteflow.prompts import DESCRIPTION_INSTRUCTION, DOCUMENT_INSTRUCTION, GenerationRequest, build_request


class FakeGenerator:
    def __init__(self, text: str = "", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def complete(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.text


def names(graph) -> list[str]:
    return [node.name for node in graph.nodes]


# ─── Extraction ───────────────────────────────────────────────────────────────


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"a": 1}') == '{"a": 1}'

    def test_strips_prose(self):
        assert extract_json('Sure! Here it is: {"a": {"b": 2}} Enjoy.') == '{"a": {"b": 2}}'

    def test_prefers_fenced_block(self):
        text = 'Example {"x": 0}\n```json\n{"a": 1}\n```\n'
        assert extract_json(text) == '{"a": 1}'

    def test_no_object(self):
        assert extract_json("no json here") is None
        assert extract_json("} backwards {") is None


# ─── Parsing ──────────────────────────────────────────────────────────────────


class TestParseResponse:
    def test_node_shape(self):
        graph = parse_response(
            '{"nodes": [{"id": 1, "name": "Home", "level": 0}, {"id": 2, "name": "About", "level": 1}],'
            ' "connections": [{"from": 1, "to": 2}]}'
        )
        assert [n.id for n in graph.nodes] == ["1", "2"]
        assert [c.pair for c in graph.connections] == [("1", "2")]
        assert graph.nodes[1].level == 1

    def test_page_shape_resolves_names(self):
        graph = parse_response(
            """```json
            {"pages": [
                {"name": "Home", "description": "Start", "level": 0},
                {"name": "Shop", "level": 1, "parentId": "Home"},
                {"name": "Cart", "level": 2}
            ],
             "connections": [{"from": "Shop", "to": "Cart"}, {"from": "Shop", "to": "Nowhere"}]}
            ```"""
        )
        assert names(graph) == ["Home", "Shop", "Cart"]
        assert [n.id for n in graph.nodes] == ["page-1", "page-2", "page-3"]
        assert [c.pair for c in graph.connections] == [("page-1", "page-2"), ("page-2", "page-3")]

    def test_parent_link_and_explicit_connection_are_not_duplicated(self):
        graph = parse_response(
            '{"pages": [{"name": "Home"}, {"name": "Docs", "parentId": "Home"}],'
            ' "connections": [{"source": "Home", "target": "Docs"}]}'
        )
        assert len(graph.connections) == 1

    def test_missing_fields_are_normalized(self):
        graph = parse_response('{"nodes": [{"id": "a"}, {"id": "a", "name": null}]}')
        assert names(graph) == ["Untitled", "Untitled"]
        assert len({n.id for n in graph.nodes}) == 2

    @pytest.mark.parametrize(
        "text",
        [
            "I could not do that.",
            '{"nodes": [1, 2,]}',
            '{"screens": []}',
            '{"nodes": []}',
            '{"nodes": "Home"}',
        ],
    )
    def test_unusable_responses_raise(self, text):
        with pytest.raises(GenerationError):
            parse_response(text)


# ─── Fallback ─────────────────────────────────────────────────────────────────


class TestFallbackGraph:
    def test_keywords_add_pages(self):
        graph = fallback_graph("A shop with login and a dashboard")
        assert names(graph) == ["Home", "Login", "Dashboard", "Products"]
        assert all(c.from_id == "home" for c in graph.connections)
        assert len(graph.connections) == 3

    def test_generic_pages_without_keywords(self):
        graph = fallback_graph("a recipe sharing site")
        assert names(graph) == ["Home", "Features", "About", "Contact"]

    def test_empty_description(self):
        assert len(fallback_graph(None).nodes) == 4

    def test_deterministic(self):
        assert fallback_graph("login") == fallback_graph("login")


# ─── Prompts ──────────────────────────────────────────────────────────────────


class TestBuildRequest:
    def test_description_request(self):
        request = build_request("A todo app")
        assert request.instruction == DESCRIPTION_INSTRUCTION
        assert '"A todo app"' in request.context
        assert '"nodes"' in request.context

    def test_document_request(self):
        request = build_request("Todo", "# PRD\nUsers can add tasks.")
        assert request.instruction == DOCUMENT_INSTRUCTION
        assert "Users can add tasks." in request.context
        assert "summarized as: Todo" in request.context


# ─── Adapter ──────────────────────────────────────────────────────────────────


class TestGenerationAdapter:
    @pytest.mark.asyncio
    async def test_uses_generator_output(self):
        generator = FakeGenerator('{"nodes": [{"id": "h", "name": "Welcome", "level": 0}]}')
        graph = await GenerationAdapter(generator).generate("an app")
        assert names(graph) == ["Welcome"]
        assert generator.requests[0].instruction == DESCRIPTION_INSTRUCTION

    @pytest.mark.asyncio
    async def test_document_switches_prompt(self):
        generator = FakeGenerator('{"nodes": [{"name": "Home"}]}')
        await GenerationAdapter(generator).generate(None, "long requirements")
        assert generator.requests[0].instruction == DOCUMENT_INSTRUCTION

    @pytest.mark.asyncio
    async def test_generation_error_falls_back(self, caplog):
        adapter = GenerationAdapter(FakeGenerator(error=GenerationError("timeout")))
        with caplog.at_level(logging.WARNING, logger="siteflow.generation"):
            graph = await adapter.generate("store with login")
        assert names(graph) == ["Home", "Login", "Products"]
        assert "timeout" in caplog.text

    @pytest.mark.asyncio
    async def test_garbage_output_falls_back(self):
        graph = await GenerationAdapter(FakeGenerator("sorry")).generate("anything")
        assert names(graph)[0] == "Home"

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back(self):
        graph = await GenerationAdapter(FakeGenerator(error=RuntimeError("boom"))).generate("x")
        assert names(graph)[0] == "Home"

    @pytest.mark.asyncio
    async def test_unconfigured_adapter_uses_fallback(self):
        adapter = GenerationAdapter()
        assert not adapter.available
        assert await adapter.generate("dashboard") == fallback_graph("dashboard")

    def test_generate_fallback_is_synchronous(self):
        adapter = GenerationAdapter()
        graph = adapter.generate_fallback("shop", "members must sign in")
        assert graph == fallback_graph("shop members must sign in")
        assert names(graph) == ["Home", "Login", "Products"]

    def test_from_settings_without_key(self):
        assert GenerationAdapter.from_settings(Settings()).generator is None

    def test_from_settings_with_key(self):
        adapter = GenerationAdapter.from_settings(Settings(ai_provider="openai", ai_api_key="sk-test"))
        assert isinstance(adapter.generator, ChatCompletionsClient)
        assert adapter.generator.base_url == "https://api.openai.com/v1"
