"""Tests for the HTTP embedding provider clients and EmbedClientManager."""

import json

import httpx
import pytest

from fakes import make_config
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.EmbeddingAdapter import SHAPE_BATCH_ONLY, SHAPE_BOTH
from shared.clients.embed.gemini.EmbedClientGemini import EmbedClientGemini
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.models.errors import DimensionMismatch, ProviderUnavailable


def _vector(seed: float, dimension: int = 4) -> list[float]:
    return [seed] * dimension


class TestOllama:
    @pytest.mark.asyncio
    async def test_embed_batch(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            assert request.url.path == "/api/embed"
            return httpx.Response(200, json={"embeddings": [_vector(0.1), _vector(0.2)]})

        client = EmbedClientOllama(helper_config=make_config(EMBED_OLLAMA_BASE_URL="http://ollama.test:11434", EMBED_DIMENSION="4"))
        await client.boot(transport=httpx.MockTransport(handler))

        vectors = await client.embed_batch(["a", "b"])

        assert vectors == [_vector(0.1), _vector(0.2)]
        assert seen == [{"model": "nomic-embed-text", "input": ["a", "b"]}]

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        client = EmbedClientOllama(helper_config=make_config(EMBED_OLLAMA_BASE_URL="http://ollama.test:11434"))
        await client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="model not loaded")))

        with pytest.raises(Exception, match="status 500"):
            await client.embed_batch(["a"])


class TestGemini:
    @pytest.mark.asyncio
    async def test_single_and_batch_endpoints(self):
        paths: list[str] = []
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            paths.append(request.url.path)
            bodies.append(json.loads(request.content))
            assert request.headers["x-goog-api-key"] == "g-key"
            if request.url.path.endswith(":batchEmbedContents"):
                return httpx.Response(200, json={"embeddings": [{"values": _vector(0.3)}, {"values": _vector(0.4)}]})
            return httpx.Response(200, json={"embedding": {"values": _vector(0.5)}})

        client = EmbedClientGemini(helper_config=make_config(EMBED_GEMINI_API_KEY="g-key", EMBED_DIMENSION="4"))
        await client.boot(transport=httpx.MockTransport(handler))

        assert await client.embed_single("refund") == _vector(0.5)
        assert await client.embed_batch(["a", "b"]) == [_vector(0.3), _vector(0.4)]
        assert paths == [
            "/v1beta/models/gemini-embedding-001:embedContent",
            "/v1beta/models/gemini-embedding-001:batchEmbedContents",
        ]
        assert bodies[0]["outputDimensionality"] == 4
        assert len(bodies[1]["requests"]) == 2

    def test_api_key_is_required(self):
        with pytest.raises(ValueError, match="EMBED_GEMINI_API_KEY"):
            EmbedClientGemini(helper_config=make_config())


class TestOpenai:
    @pytest.mark.asyncio
    async def test_results_are_reordered_by_index(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert body["dimensions"] == 4
            assert request.headers["Authorization"] == "Bearer o-key"
            return httpx.Response(200, json={"data": [
                {"index": 1, "embedding": _vector(0.2)},
                {"index": 0, "embedding": _vector(0.1)},
            ]})

        client = EmbedClientOpenai(helper_config=make_config(EMBED_OPENAI_API_KEY="o-key", EMBED_DIMENSION="4"))
        await client.boot(transport=httpx.MockTransport(handler))

        assert await client.embed_batch(["first", "second"]) == [_vector(0.1), _vector(0.2)]


class TestManager:
    def test_builds_adapter_for_configured_engine(self):
        manager = EmbedClientManager(helper_config=make_config(EMBED_ENGINE="gemini", EMBED_GEMINI_API_KEY="g-key", EMBED_DIMENSION="4"))

        assert isinstance(manager.get_client(), EmbedClientGemini)
        assert manager.get_adapter().shape == SHAPE_BOTH
        assert manager.get_adapter().dimension == 4

    def test_batch_only_engine(self):
        manager = EmbedClientManager(helper_config=make_config(EMBED_ENGINE="ollama", EMBED_OLLAMA_BASE_URL="http://ollama.test:11434"))
        assert manager.get_adapter().shape == SHAPE_BATCH_ONLY
        assert manager.get_adapter().dimension == 3072

    def test_unknown_engine(self):
        with pytest.raises(ValueError, match="Unsupported Embed engine"):
            EmbedClientManager(helper_config=make_config(EMBED_ENGINE="word2vec"))

    @pytest.mark.asyncio
    async def test_adapter_maps_http_failures_and_dimensions(self):
        responses = [
            httpx.Response(503, text="overloaded"),
            httpx.Response(200, json={"embeddings": [_vector(0.1, dimension=3)]}),
        ]
        manager = EmbedClientManager(helper_config=make_config(EMBED_ENGINE="ollama", EMBED_OLLAMA_BASE_URL="http://ollama.test:11434", EMBED_DIMENSION="4"))
        await manager.get_client().boot(transport=httpx.MockTransport(lambda request: responses.pop(0)))
        adapter = manager.get_adapter()

        with pytest.raises(ProviderUnavailable):
            await adapter.embed_one("refund")
        with pytest.raises(DimensionMismatch):
            await adapter.embed_one("refund")
