"""Tests for RAGClientQdrant against a mocked Qdrant REST API."""

import json

import httpx
import pytest

from fakes import RecordingQdrant, make_config
from shared.clients.rag.RAGClientInterface import make_point_id
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant

BASE_URL = "http://qdrant.test:6333"


async def _client(handler: RecordingQdrant, **overrides) -> RAGClientQdrant:
    config = make_config(RAG_QDRANT_BASE_URL=BASE_URL, RAG_QDRANT_API_KEY="secret", **overrides)
    client = RAGClientQdrant(helper_config=config)
    await client.boot(transport=httpx.MockTransport(handler))
    return client


def _must(body: dict) -> list[dict]:
    return body["filter"]["must"]


class TestConfiguration:
    def test_base_url_is_required(self):
        with pytest.raises(ValueError, match="RAG_QDRANT_BASE_URL"):
            RAGClientQdrant(helper_config=make_config())

    def test_manager_builds_qdrant_by_default(self):
        manager = RAGClientManager(helper_config=make_config(RAG_QDRANT_BASE_URL=BASE_URL))
        assert isinstance(manager.get_client(), RAGClientQdrant)

    def test_manager_rejects_unknown_engine(self):
        with pytest.raises(ValueError, match="Unsupported RAG engine"):
            RAGClientManager(helper_config=make_config(RAG_ENGINE="pinecone"))

    def test_point_ids_are_deterministic_and_tenant_specific(self):
        assert make_point_id("org_a", "doc1") == make_point_id("org_a", "doc1")
        assert make_point_id("org_a", "doc1") != make_point_id("org_b", "doc1")

    @pytest.mark.asyncio
    async def test_request_before_boot_fails(self):
        client = RAGClientQdrant(helper_config=make_config(RAG_QDRANT_BASE_URL=BASE_URL))
        with pytest.raises(Exception, match="boot"):
            await client.do_existence_check()


class TestTenantFilter:
    @pytest.mark.asyncio
    async def test_upsert_writes_tenant_and_document_into_payload(self):
        handler = RecordingQdrant()
        client = await _client(handler)

        await client.do_upsert("org_a", "doc1", [0.1, 0.2], VectorPoint(document_id="doc1", title="Refunds", fingerprint="abc", created_at=5))

        request = handler.requests[-1]
        assert request.method == "PUT"
        assert request.url.path == "/collections/knowledge_base/points"
        assert request.headers["api-key"] == "secret"
        point = handler.body()["points"][0]
        assert point["id"] == make_point_id("org_a", "doc1")
        assert point["vector"] == [0.1, 0.2]
        assert point["payload"]["tenant_id"] == "org_a"
        assert point["payload"]["document_id"] == "doc1"
        assert point["payload"]["fingerprint"] == "abc"

    @pytest.mark.asyncio
    async def test_search_is_filtered_and_sorted(self):
        handler = RecordingQdrant(responses={
            "/collections/knowledge_base/points/search": [{
                "result": [
                    {"id": "p2", "score": 0.4, "payload": {"document_id": "doc2", "fingerprint": "f2"}},
                    {"id": "p1", "score": 0.9, "payload": {"document_id": "doc1", "fingerprint": "f1"}},
                    {"id": "p3", "score": 0.99, "payload": {}},
                ],
                "status": "ok",
            }],
        })
        client = await _client(handler)

        hits = await client.do_search("org_a", [0.1, 0.2], 5)

        assert [(h.document_id, h.fingerprint) for h in hits] == [("doc1", "f1"), ("doc2", "f2")]
        body = handler.body()
        assert body["limit"] == 5
        assert _must(body) == [{"key": "tenant_id", "match": {"value": "org_a"}}]

    @pytest.mark.asyncio
    async def test_search_with_zero_k_sends_nothing(self):
        handler = RecordingQdrant()
        client = await _client(handler)

        assert await client.do_search("org_a", [0.1], 0) == []
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_delete_targets_one_document_of_one_tenant(self):
        handler = RecordingQdrant()
        client = await _client(handler)

        await client.do_delete("org_a", "doc1")

        assert handler.requests[-1].url.path == "/collections/knowledge_base/points/delete"
        assert _must(handler.body()) == [
            {"key": "tenant_id", "match": {"value": "org_a"}},
            {"key": "document_id", "match": {"value": "doc1"}},
        ]

    @pytest.mark.asyncio
    async def test_custom_tenant_field(self):
        handler = RecordingQdrant()
        client = await _client(handler, RAG_QDRANT_TENANT_FIELD="organization_id")

        await client.do_search("org_a", [0.1], 3)
        await client.do_upsert("org_a", "doc1", [0.1])

        assert _must(handler.body(0)) == [{"key": "organization_id", "match": {"value": "org_a"}}]
        assert handler.body(1)["points"][0]["payload"]["organization_id"] == "org_a"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tenant_id", ["", "   ", None])
    async def test_missing_tenant_is_rejected_before_any_request(self, tenant_id):
        handler = RecordingQdrant()
        client = await _client(handler)

        with pytest.raises(ValueError, match="tenant id is required"):
            await client.do_search(tenant_id, [0.1], 3)
        with pytest.raises(ValueError):
            await client.do_delete(tenant_id, "doc1")
        with pytest.raises(ValueError):
            await client.do_upsert(tenant_id, "doc1", [0.1])
        assert handler.requests == []


class TestCollectionAndScroll:
    @pytest.mark.asyncio
    async def test_existence_and_vector_size(self):
        handler = RecordingQdrant(responses={
            "/collections/knowledge_base/exists": [{"result": {"exists": True}}],
            "/collections/knowledge_base": [{"result": {"config": {"params": {"vectors": {"size": 3072, "distance": "Cosine"}}}}}],
        })
        client = await _client(handler)

        assert await client.do_existence_check() is True
        assert await client.do_fetch_vector_size() == 3072

    @pytest.mark.asyncio
    async def test_ensure_collection_accepts_matching_size(self):
        handler = RecordingQdrant(responses={
            "/collections/knowledge_base/exists": [{"result": {"exists": True}}],
            "/collections/knowledge_base": [{"result": {"config": {"params": {"vectors": {"size": 768}}}}}],
        })
        client = await _client(handler)

        await client.do_ensure_collection(768)

        assert [r.method for r in handler.requests] == ["GET", "GET"]

    @pytest.mark.asyncio
    async def test_create_collection_payload(self):
        handler = RecordingQdrant()
        client = await _client(handler, RAG_QDRANT_COLLECTION="kb_test")

        await client.do_create_collection(768, "Cosine")

        assert handler.requests[-1].method == "PUT"
        assert handler.requests[-1].url.path == "/collections/kb_test"
        assert handler.body() == {"vectors": {"size": 768, "distance": "Cosine"}}

    @pytest.mark.asyncio
    async def test_scroll_all_follows_pages(self):
        handler = RecordingQdrant(responses={
            "/collections/knowledge_base/points/scroll": [
                {"result": {"points": [{"id": "p1", "payload": {"document_id": "doc1"}}], "next_page_offset": "p2"}},
                {"result": {"points": [{"id": "p2", "payload": {"document_id": "doc2"}}], "next_page_offset": None}},
            ],
        })
        client = await _client(handler)

        result = await client.do_scroll_all("org_a", page_size=1)

        assert result.document_ids() == {"doc1", "doc2"}
        assert handler.body(1)["offset"] == "p2"
        assert all(_must(json.loads(r.content))[0]["match"]["value"] == "org_a" for r in handler.requests)

    @pytest.mark.asyncio
    async def test_count(self):
        handler = RecordingQdrant(responses={"/collections/knowledge_base/points/count": [{"result": {"count": 7}}]})
        client = await _client(handler)

        assert await client.do_count("org_a") == 7

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        client = await _client(RecordingQdrant(status_code=503))
        with pytest.raises(Exception, match="status 503"):
            await client.do_search("org_a", [0.1], 3)
