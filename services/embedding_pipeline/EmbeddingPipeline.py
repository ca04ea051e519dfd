"""Embedding pipeline.

Keeps each document's stored embedding consistent with its current content:

  submit → fingerprint current content → no-op if the stored embedding matches
         → otherwise join or supersede the live job for the document
         → embed with bounded exponential backoff
         → under the document lock: upsert into the vector index, then the
           conditional store write (document exists and content unchanged)

A superseded job finishes without writing anything. Newest submission wins.
A job that gives up flags the document as failed, under the same content condition.
"""

import asyncio
from typing import Awaitable, Callable

from services.embedding_pipeline.JobRegistry import JobRegistry
from shared.clients.embed.EmbeddingAdapter import EmbeddingAdapter
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperFingerprint import content_fingerprint
from shared.models.document import Document
from shared.models.errors import DimensionMismatch, EmbeddingFailed, ProviderUnavailable
from shared.models.job import EmbeddingJob, JobOutcome, JobStatus, ReconcileReport

RECONCILE_CONCURRENCY = 5  # max parallel submits during reconcile()


class EmbeddingPipeline:
    """Drives (re)embedding of knowledge base documents."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStoreInterface,
        rag_client: RAGClientInterface,
        embed_adapter: EmbeddingAdapter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = document_store
        self._rag = rag_client
        self._adapter = embed_adapter
        self._sleep = sleep
        self._registry = JobRegistry()
        self._background: set[asyncio.Task] = set()

        self.max_attempts = max(1, int(helper_config.get_number_val("EMBED_PIPELINE_MAX_ATTEMPTS", default=3)))
        self.backoff_base = float(helper_config.get_number_val("EMBED_PIPELINE_BACKOFF_BASE", default=0.5))
        self.backoff_max = float(helper_config.get_number_val("EMBED_PIPELINE_BACKOFF_MAX", default=8.0))

    ##########################################
    ################ SUBMIT ##################
    ##########################################

    async def submit(self, tenant_id: str, document_id: str) -> JobOutcome:
        """Bring the document's embedding up to date with its content.

        Args:
            tenant_id (str): Owning tenant.
            document_id (str): Document to embed.

        Returns:
            JobOutcome: UP_TO_DATE without any provider call if the stored embedding
                        already matches; otherwise the outcome of the (joined or new) job.
        """
        # taken before the read, so a slow read can never displace a job built from a later one
        sequence = self._registry.next_sequence()
        doc = await self._store.do_get(tenant_id, document_id)
        if doc is None:
            return JobOutcome(tenant_id=tenant_id, document_id=document_id, status=JobStatus.NOT_FOUND)

        fingerprint = content_fingerprint(doc.content)
        if doc.embedding is not None and doc.embedding_fingerprint == fingerprint:
            return JobOutcome(tenant_id=tenant_id, document_id=document_id, fingerprint=fingerprint, status=JobStatus.UP_TO_DATE)

        job, joined = self._registry.claim(tenant_id, document_id, fingerprint, doc.content, self._run, sequence=sequence)
        if joined:
            self.logging.debug("Joined in-flight embedding job for document %s.", document_id)
        # shield: a caller that gives up must not cancel a job others may be waiting on
        return await asyncio.shield(job.task)

    def submit_background(self, tenant_id: str, document_id: str) -> asyncio.Task:
        """Fire-and-forget submit, used after uploads and edits."""
        task = asyncio.create_task(self.submit(tenant_id, document_id))
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logging.error("Background embedding submit crashed: %s", exc)

    async def drain(self) -> None:
        """Wait for all background submits to finish (shutdown and tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def delete_document(self, tenant_id: str, document_id: str) -> Document | None:
        """Delete a document from the store and its vector from the index.

        A job still in flight for the document is superseded and, because the
        conditional write can no longer succeed, its result is discarded.

        Returns:
            Document | None: The deleted record, None if it did not exist.
        """
        if self._registry.supersede(tenant_id, document_id):
            self.logging.info("Document %s deleted while an embedding job was in flight; the job will be discarded.", document_id)
        async with self._registry.lock_for(tenant_id, document_id):
            deleted = await self._store.do_delete(tenant_id, document_id)
            await self._rag.do_delete(tenant_id, document_id)
        return deleted

    ##########################################
    ################## JOB ###################
    ##########################################

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)

    async def _run(self, job: EmbeddingJob) -> JobOutcome:
        try:
            return await self._execute(job)
        finally:
            self._registry.release(job)

    async def _execute(self, job: EmbeddingJob) -> JobOutcome:
        job.status = JobStatus.IN_FLIGHT
        vector: list[float] | None = None
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            if job.superseded:
                return self._discard_stale(job)
            job.attempts = attempt
            try:
                vector = await self._adapter.embed_one(job.content)
                break
            except DimensionMismatch as exc:
                # configuration defect, retrying cannot help
                last_error = exc
                break
            except ProviderUnavailable as exc:
                last_error = exc
                self.logging.warning(
                    "Embedding attempt %d/%d for document %s failed: %s",
                    attempt, self.max_attempts, job.document_id, exc,
                )
                if attempt < self.max_attempts:
                    await self._sleep(self._backoff_delay(attempt))

        if vector is None:
            return await self._fail(job, EmbeddingFailed(job.document_id, job.attempts, last_error))

        return await self._write(job, vector)

    async def _write(self, job: EmbeddingJob, vector: list[float]) -> JobOutcome:
        async with self._registry.lock_for(job.tenant_id, job.document_id):
            if job.superseded:
                return self._discard_stale(job)

            doc = await self._store.do_get(job.tenant_id, job.document_id)
            if doc is None or content_fingerprint(doc.content) != job.fingerprint:
                job.status = JobStatus.DISCARDED
                self.logging.info("Embedding for document %s discarded: document deleted or changed.", job.document_id)
                return job.to_outcome()

            point = VectorPoint(document_id=doc.id, title=doc.title, fingerprint=job.fingerprint, created_at=doc.created_at)
            try:
                await self._rag.do_upsert(job.tenant_id, job.document_id, vector, point)
            except Exception as exc:
                return await self._fail(job, EmbeddingFailed(job.document_id, job.attempts, exc))

            if not await self._store.do_set_embedding_if_current(job.tenant_id, job.document_id, job.fingerprint, vector):
                # lost the race against an edit or delete between the read above and this write
                await self._rag.do_delete(job.tenant_id, job.document_id)
                job.status = JobStatus.DISCARDED
                self.logging.info("Embedding for document %s discarded: conditional write rejected.", job.document_id)
                return job.to_outcome()

        job.status = JobStatus.SUCCEEDED
        self.logging.info("Embedded document %s (%s) in %d attempt(s).", job.document_id, doc.title, job.attempts)
        return job.to_outcome()

    def _discard_stale(self, job: EmbeddingJob) -> JobOutcome:
        job.status = JobStatus.SUPERSEDED
        self.logging.info("Stale embedding job discarded for document %s (fingerprint %s…).", job.document_id, job.fingerprint[:12])
        return job.to_outcome()

    async def _fail(self, job: EmbeddingJob, error: EmbeddingFailed) -> JobOutcome:
        job.status = JobStatus.FAILED
        self.logging.error("%s", error)
        if not job.superseded:
            await self._store.do_mark_failed_if_current(job.tenant_id, job.document_id, job.fingerprint, str(error))
        return job.to_outcome(error=str(error))

    ##########################################
    ############### RECONCILE ################
    ##########################################

    async def reconcile(self, tenant_id: str) -> ReconcileReport:
        """Re-embed the tenant's documents lacking a current embedding and drop orphaned index points.

        Returns:
            ReconcileReport: Counts of what was found and done.
        """
        report = ReconcileReport(tenant_id=tenant_id)
        docs = await self._store.do_list(tenant_id)
        report.documents = len(docs)

        sem = asyncio.Semaphore(RECONCILE_CONCURRENCY)

        async def _submit(doc: Document) -> JobOutcome:
            async with sem:
                return await self.submit(tenant_id, doc.id)

        outcomes = await asyncio.gather(*[_submit(doc) for doc in docs])
        for outcome in outcomes:
            if outcome.status == JobStatus.UP_TO_DATE:
                report.up_to_date += 1
            elif outcome.status == JobStatus.SUCCEEDED:
                report.embedded += 1
            elif outcome.status == JobStatus.FAILED:
                report.failed += 1

        store_ids = {doc.id for doc in docs}
        try:
            indexed_ids = (await self._rag.do_scroll_all(tenant_id)).document_ids()
        except Exception as exc:
            self.logging.error("Orphan cleanup scroll failed for tenant %s: %s. Skipping cleanup.", tenant_id, exc)
            return report

        for orphan_id in indexed_ids - store_ids:
            async with self._registry.lock_for(tenant_id, orphan_id):
                # re-check under the lock, the document may have been created meanwhile
                if await self._store.do_get(tenant_id, orphan_id) is not None:
                    continue
                try:
                    await self._rag.do_delete(tenant_id, orphan_id)
                    report.orphans_removed += 1
                except Exception as exc:
                    self.logging.error("Failed to delete orphaned vector for document %s: %s", orphan_id, exc)

        self.logging.info(
            "Reconcile for tenant %s: %d documents, %d up to date, %d embedded, %d failed, %d orphans removed.",
            tenant_id, report.documents, report.up_to_date, report.embedded, report.failed, report.orphans_removed,
        )
        return report
