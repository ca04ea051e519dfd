"""Tests for EmbeddingPipeline — fingerprints, supersede ordering, retries, deletes."""

import asyncio

import pytest

from fakes import (
    BothShapesProvider,
    FlakyProvider,
    GatedProvider,
    HeldReadStore,
    WrongDimensionProvider,
    build_stack,
    keyword_vector,
    make_config,
)
from shared.helper.HelperFingerprint import content_fingerprint
from shared.models.document import DocumentCreate, DocumentUpdate, EmbeddingStatus
from shared.models.job import JobStatus

TENANT = "org_a"

OLD = "Refunds take 5 days"
NEW = "Refunds take 10 days, shipping is refunded too"


async def _create(stack, content: str = OLD, title: str = "Refunds"):
    return await stack.store.do_create(TENANT, DocumentCreate(title=title, content=content))


async def _wait(event: asyncio.Event) -> None:
    await asyncio.wait_for(event.wait(), timeout=1.0)


class TestSubmit:
    @pytest.mark.asyncio
    async def test_successful_submit_stores_embedding_and_fingerprint(self, stack):
        doc = await _create(stack)

        outcome = await stack.pipeline.submit(TENANT, doc.id)

        assert outcome.status == JobStatus.SUCCEEDED
        assert outcome.attempts == 1
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding == keyword_vector(OLD)
        assert stored.embedding_fingerprint == content_fingerprint(OLD)
        assert stack.index.points[(TENANT, doc.id)]["payload"]["fingerprint"] == content_fingerprint(OLD)
        assert stored.embedding_status == EmbeddingStatus.READY

    @pytest.mark.asyncio
    async def test_unchanged_content_is_a_no_op(self, stack):
        doc = await _create(stack)
        await stack.pipeline.submit(TENANT, doc.id)

        outcome = await stack.pipeline.submit(TENANT, doc.id)

        assert outcome.status == JobStatus.UP_TO_DATE
        assert stack.provider.single_calls == [OLD]

    @pytest.mark.asyncio
    async def test_unknown_document(self, stack):
        outcome = await stack.pipeline.submit(TENANT, "missing")
        assert outcome.status == JobStatus.NOT_FOUND
        assert stack.provider.single_calls == []

    @pytest.mark.asyncio
    async def test_content_update_clears_embedding_immediately(self, stack):
        doc = await _create(stack)
        await stack.pipeline.submit(TENANT, doc.id)

        updated = await stack.store.do_update(TENANT, doc.id, DocumentUpdate(content=NEW))

        assert updated.embedding is None
        assert updated.embedding_fingerprint is None
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding is None

    @pytest.mark.asyncio
    async def test_title_only_update_keeps_embedding(self, stack):
        doc = await _create(stack)
        await stack.pipeline.submit(TENANT, doc.id)

        updated = await stack.store.do_update(TENANT, doc.id, DocumentUpdate(title="Refund policy"))

        assert updated.embedding == keyword_vector(OLD)

    @pytest.mark.asyncio
    async def test_background_submit_and_drain(self, stack):
        doc = await _create(stack)

        stack.pipeline.submit_background(TENANT, doc.id)
        await stack.pipeline.drain()

        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding is not None


class TestConcurrentSubmissions:
    @pytest.mark.asyncio
    async def test_same_fingerprint_joins_the_in_flight_job(self):
        provider = GatedProvider()
        stack = build_stack(provider)
        doc = await _create(stack)
        provider.gate(OLD)

        first = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(OLD))
        second = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        for _ in range(3):
            await asyncio.sleep(0)
        provider.release(OLD)

        outcomes = await asyncio.gather(first, second)
        assert [o.status for o in outcomes] == [JobStatus.SUCCEEDED, JobStatus.SUCCEEDED]
        assert provider.calls == [OLD]

    @pytest.mark.asyncio
    async def test_newer_submission_wins_when_older_finishes_last(self):
        provider = GatedProvider()
        stack = build_stack(provider)
        doc = await _create(stack)
        provider.gate(OLD)

        older = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(OLD))
        await stack.store.do_update(TENANT, doc.id, DocumentUpdate(content=NEW))
        newer = await stack.pipeline.submit(TENANT, doc.id)
        provider.release(OLD)
        older_outcome = await older

        assert newer.status == JobStatus.SUCCEEDED
        assert older_outcome.status == JobStatus.SUPERSEDED
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding == keyword_vector(NEW)
        assert stored.embedding_fingerprint == content_fingerprint(NEW)
        assert stack.index.points[(TENANT, doc.id)]["payload"]["fingerprint"] == content_fingerprint(NEW)

    @pytest.mark.asyncio
    async def test_newer_submission_wins_when_older_finishes_first(self):
        provider = GatedProvider()
        stack = build_stack(provider)
        doc = await _create(stack)
        provider.gate(OLD)
        provider.gate(NEW)

        older = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(OLD))
        await stack.store.do_update(TENANT, doc.id, DocumentUpdate(content=NEW))
        newer = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(NEW))

        provider.release(OLD)
        assert (await older).status == JobStatus.SUPERSEDED
        assert (await stack.store.do_get(TENANT, doc.id)).embedding is None

        provider.release(NEW)
        assert (await newer).status == JobStatus.SUCCEEDED
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding_fingerprint == content_fingerprint(NEW)

    @pytest.mark.asyncio
    async def test_slow_read_of_older_content_joins_the_newer_job(self, config):
        provider = GatedProvider()
        store = HeldReadStore(helper_config=config)
        stack = build_stack(provider, config=config, store=store)
        doc = await _create(stack)
        provider.gate(NEW)

        store.hold_next_read = True
        older = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(store.read_done)
        await stack.store.do_update(TENANT, doc.id, DocumentUpdate(content=NEW))
        newer = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(NEW))

        # the older submit now claims with the fingerprint of content that is already gone
        store.resume.set()
        for _ in range(5):
            await asyncio.sleep(0)
        provider.release(NEW)

        outcomes = await asyncio.gather(older, newer)
        assert [o.status for o in outcomes] == [JobStatus.SUCCEEDED, JobStatus.SUCCEEDED]
        assert provider.calls == [NEW]
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding == keyword_vector(NEW)
        assert stored.embedding_fingerprint == content_fingerprint(NEW)

    @pytest.mark.asyncio
    async def test_edit_without_resubmit_discards_the_old_result(self):
        provider = GatedProvider()
        stack = build_stack(provider)
        doc = await _create(stack)
        provider.gate(OLD)

        job = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(OLD))
        await stack.store.do_update(TENANT, doc.id, DocumentUpdate(content=NEW))
        provider.release(OLD)

        assert (await job).status == JobStatus.DISCARDED
        assert (await stack.store.do_get(TENANT, doc.id)).embedding is None
        assert (TENANT, doc.id) not in stack.index.points

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_the_job(self):
        provider = GatedProvider()
        stack = build_stack(provider)
        doc = await _create(stack)
        provider.gate(OLD)

        caller = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(OLD))
        job_task = stack.pipeline._registry.get(TENANT, doc.id).task
        caller.cancel()
        provider.release(OLD)

        assert (await job_task).status == JobStatus.SUCCEEDED
        assert (await stack.store.do_get(TENANT, doc.id)).embedding is not None


class TestRetries:
    @pytest.mark.asyncio
    async def test_transient_failures_are_retried_with_backoff(self):
        stack = build_stack(FlakyProvider(failures=2))
        doc = await _create(stack)

        outcome = await stack.pipeline.submit(TENANT, doc.id)

        assert outcome.status == JobStatus.SUCCEEDED
        assert outcome.attempts == 3
        assert stack.sleeps == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_and_leave_no_embedding(self):
        stack = build_stack(FlakyProvider(failures=10))
        doc = await _create(stack)

        outcome = await stack.pipeline.submit(TENANT, doc.id)

        assert outcome.status == JobStatus.FAILED
        assert outcome.attempts == 3
        assert "after 3 attempt" in outcome.error
        assert stack.sleeps == [0.5, 1.0]
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding is None
        assert stored.embedding_status == EmbeddingStatus.FAILED
        assert "after 3 attempt" in stored.embedding_error
        assert stack.index.points == {}

    @pytest.mark.asyncio
    async def test_resubmit_after_failure_clears_the_flag(self):
        stack = build_stack(FlakyProvider(failures=3))
        doc = await _create(stack)
        assert (await stack.pipeline.submit(TENANT, doc.id)).status == JobStatus.FAILED

        outcome = await stack.pipeline.submit(TENANT, doc.id)

        assert outcome.status == JobStatus.SUCCEEDED
        stored = await stack.store.do_get(TENANT, doc.id)
        assert stored.embedding_status == EmbeddingStatus.READY
        assert stored.embedding_error is None

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self):
        config = make_config(
            EMBED_PIPELINE_MAX_ATTEMPTS="4",
            EMBED_PIPELINE_BACKOFF_BASE="1",
            EMBED_PIPELINE_BACKOFF_MAX="1.5",
        )
        stack = build_stack(FlakyProvider(failures=10), config=config)
        doc = await _create(stack)

        await stack.pipeline.submit(TENANT, doc.id)

        assert stack.sleeps == [1.0, 1.5, 1.5]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_not_retried(self):
        provider = WrongDimensionProvider()
        stack = build_stack(provider)
        doc = await _create(stack)

        outcome = await stack.pipeline.submit(TENANT, doc.id)

        assert outcome.status == JobStatus.FAILED
        assert provider.calls == 1
        assert stack.sleeps == []
        assert "Expected embedding dimension" in outcome.error


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_removes_store_record_and_vector(self, stack):
        doc = await _create(stack)
        await stack.pipeline.submit(TENANT, doc.id)

        deleted = await stack.pipeline.delete_document(TENANT, doc.id)

        assert deleted.id == doc.id
        assert await stack.store.do_get(TENANT, doc.id) is None
        assert (TENANT, doc.id) not in stack.index.points

    @pytest.mark.asyncio
    async def test_delete_missing_document_returns_none(self, stack):
        assert await stack.pipeline.delete_document(TENANT, "missing") is None

    @pytest.mark.asyncio
    async def test_delete_while_job_in_flight_never_resurrects(self):
        provider = GatedProvider()
        stack = build_stack(provider)
        doc = await _create(stack)
        provider.gate(OLD)

        job = asyncio.create_task(stack.pipeline.submit(TENANT, doc.id))
        await _wait(provider.started(OLD))
        await stack.pipeline.delete_document(TENANT, doc.id)
        provider.release(OLD)

        assert (await job).status == JobStatus.SUPERSEDED
        assert await stack.store.do_get(TENANT, doc.id) is None
        assert (TENANT, doc.id) not in stack.index.points


class TestReconcile:
    @pytest.mark.asyncio
    async def test_reconcile_embeds_stale_documents_and_removes_orphans(self, stack):
        embedded = await _create(stack, content="Shipping is free over $50", title="Shipping")
        await stack.pipeline.submit(TENANT, embedded.id)
        pending = await _create(stack)
        await stack.index.do_upsert(TENANT, "ghost", keyword_vector("ghost"))
        await stack.index.do_upsert("org_b", "other", keyword_vector("other"))

        report = await stack.pipeline.reconcile(TENANT)

        assert report.documents == 2
        assert report.up_to_date == 1
        assert report.embedded == 1
        assert report.failed == 0
        assert report.orphans_removed == 1
        assert stack.index.document_ids(TENANT) == {embedded.id, pending.id}
        assert stack.index.document_ids("org_b") == {"other"}

    @pytest.mark.asyncio
    async def test_reconcile_counts_failures(self):
        stack = build_stack(FlakyProvider(failures=100))
        await _create(stack)

        report = await stack.pipeline.reconcile(TENANT)

        assert report.failed == 1
        assert report.embedded == 0


def test_retry_defaults():
    stack = build_stack(BothShapesProvider())
    assert stack.pipeline.max_attempts == 3
    assert stack.pipeline.backoff_base == 0.5
    assert stack.pipeline.backoff_max == 8.0
