"""Tests for KnowledgeBaseService — document CRUD wired to the embedding pipeline."""

import pytest

from fakes import FlakyProvider, build_stack
from shared.models.document import DocumentCreate, DocumentUpdate
from shared.models.errors import DocumentNotFound, ValidationFailed
from shared.models.job import JobStatus

TENANT = "org_a"


def _fields(**overrides) -> DocumentCreate:
    values = {"title": "Refunds", "content": "Refunds take 5 days", "mime_type": "text/plain", "file_name": "refunds.txt"}
    values.update(overrides)
    return DocumentCreate(**values)


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_schedules_embedding(self, stack):
        doc = await stack.service.create(TENANT, _fields())
        await stack.pipeline.drain()

        stored = await stack.service.get_one(TENANT, doc.id)
        assert stored.embedding is not None
        assert (TENANT, doc.id) in stack.index.points

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["title", "content"])
    async def test_blank_fields_are_rejected(self, stack, field):
        with pytest.raises(ValidationFailed, match="cannot be empty"):
            await stack.service.create(TENANT, _fields(**{field: "   "}))
        assert await stack.service.get_all(TENANT) == []

    @pytest.mark.asyncio
    async def test_overlong_title_is_rejected(self, stack):
        with pytest.raises(ValidationFailed):
            await stack.service.create(TENANT, _fields(title="x" * 201))


class TestRead:
    @pytest.mark.asyncio
    async def test_get_one_from_other_tenant_is_not_found(self, stack):
        doc = await stack.service.create(TENANT, _fields())

        with pytest.raises(DocumentNotFound):
            await stack.service.get_one("org_b", doc.id)

    @pytest.mark.asyncio
    async def test_get_all_is_tenant_scoped(self, stack):
        await stack.service.create(TENANT, _fields())
        await stack.service.create("org_b", _fields(title="Shipping", content="Shipping is free over $50"))

        docs = await stack.service.get_all(TENANT)

        assert [d.title for d in docs] == ["Refunds"]


class TestUpdate:
    @pytest.mark.asyncio
    async def test_content_change_clears_then_re_embeds(self, stack):
        doc = await stack.service.create(TENANT, _fields())
        await stack.pipeline.drain()

        updated = await stack.service.update(TENANT, doc.id, DocumentUpdate(content="Refunds take 10 days"))
        assert updated.embedding is None

        await stack.pipeline.drain()
        stored = await stack.service.get_one(TENANT, doc.id)
        assert stored.embedding is not None
        assert stored.content == "Refunds take 10 days"

    @pytest.mark.asyncio
    async def test_rename_does_not_re_embed(self, stack):
        doc = await stack.service.create(TENANT, _fields())
        await stack.pipeline.drain()
        calls = len(stack.provider.single_calls)

        await stack.service.update(TENANT, doc.id, DocumentUpdate(title="Refund policy"))
        await stack.pipeline.drain()

        assert len(stack.provider.single_calls) == calls

    @pytest.mark.asyncio
    async def test_blank_update_is_rejected(self, stack):
        doc = await stack.service.create(TENANT, _fields())
        with pytest.raises(ValidationFailed):
            await stack.service.update(TENANT, doc.id, DocumentUpdate(content=""))

    @pytest.mark.asyncio
    async def test_update_missing_document(self, stack):
        with pytest.raises(DocumentNotFound):
            await stack.service.update(TENANT, "missing", DocumentUpdate(title="x"))


class TestRemove:
    @pytest.mark.asyncio
    async def test_remove_cascades_to_blob_and_index(self, stack):
        stack.blobs.put("storage_1", b"%PDF-")
        doc = await stack.service.create(TENANT, _fields(storage_id="storage_1"))
        await stack.pipeline.drain()

        await stack.service.remove(TENANT, doc.id)

        assert stack.blobs.exists("storage_1") is False
        assert (TENANT, doc.id) not in stack.index.points
        with pytest.raises(DocumentNotFound):
            await stack.service.get_one(TENANT, doc.id)

    @pytest.mark.asyncio
    async def test_remove_from_other_tenant_is_not_found(self, stack):
        doc = await stack.service.create(TENANT, _fields())

        with pytest.raises(DocumentNotFound):
            await stack.service.remove("org_b", doc.id)
        assert await stack.service.get_one(TENANT, doc.id) is not None


class TestRegenerate:
    @pytest.mark.asyncio
    async def test_regenerate_up_to_date_document_is_a_no_op(self, stack):
        doc = await stack.service.create(TENANT, _fields())
        await stack.pipeline.drain()

        outcome = await stack.service.regenerate(TENANT, doc.id)

        assert outcome.status == JobStatus.UP_TO_DATE

    @pytest.mark.asyncio
    async def test_repeated_regenerate_calls_collapse(self):
        stack = build_stack(FlakyProvider(failures=0))
        doc = await stack.store.do_create(TENANT, _fields())

        outcomes = [await stack.service.regenerate(TENANT, doc.id) for _ in range(3)]

        assert [o.status for o in outcomes] == [JobStatus.SUCCEEDED, JobStatus.UP_TO_DATE, JobStatus.UP_TO_DATE]
        assert stack.provider.calls == 1

    @pytest.mark.asyncio
    async def test_regenerate_missing_document(self, stack):
        with pytest.raises(DocumentNotFound):
            await stack.service.regenerate(TENANT, "missing")

    @pytest.mark.asyncio
    async def test_reconcile(self, stack):
        await stack.store.do_create(TENANT, _fields())

        report = await stack.service.reconcile(TENANT)

        assert report.embedded == 1
