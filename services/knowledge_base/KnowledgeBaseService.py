"""Knowledge base document service.

Tenant-scoped create / read / update / delete of documents, wired to the
embedding pipeline: uploads and content edits schedule (re)embedding, deletes
go through the pipeline so an in-flight job can never resurrect the document.
"""

from services.embedding_pipeline.EmbeddingPipeline import EmbeddingPipeline
from shared.clients.store.BlobStoreInterface import BlobStoreInterface
from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, DocumentCreate, DocumentUpdate
from shared.models.errors import DocumentNotFound, ValidationFailed
from shared.models.job import JobOutcome, JobStatus, ReconcileReport

MAX_TITLE_LENGTH = 200


class KnowledgeBaseService:
    def __init__(
        self,
        helper_config: HelperConfig,
        document_store: DocumentStoreInterface,
        blob_store: BlobStoreInterface,
        pipeline: EmbeddingPipeline,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._store = document_store
        self._blobs = blob_store
        self._pipeline = pipeline

    ##########################################
    ############### CHECKER ##################
    ##########################################

    @staticmethod
    def _validate_title(title: str) -> None:
        if not title.strip():
            raise ValidationFailed("Title cannot be empty")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationFailed(f"Title must be at most {MAX_TITLE_LENGTH} characters")

    @staticmethod
    def _validate_content(content: str) -> None:
        if not content.strip():
            raise ValidationFailed("Content cannot be empty")

    ##########################################
    ################# READ ###################
    ##########################################

    async def get_all(self, tenant_id: str) -> list[Document]:
        """All documents of the tenant, newest first."""
        return await self._store.do_list(tenant_id)

    async def get_one(self, tenant_id: str, document_id: str) -> Document:
        """
        Raises:
            DocumentNotFound: If the document does not exist for this tenant.
        """
        doc = await self._store.do_get(tenant_id, document_id)
        if doc is None:
            raise DocumentNotFound(tenant_id, document_id)
        return doc

    ##########################################
    ################ WRITE ###################
    ##########################################

    async def create(self, tenant_id: str, fields: DocumentCreate) -> Document:
        """Store a new document and schedule its embedding in the background.

        Raises:
            ValidationFailed: If title or content is blank.
        """
        self._validate_title(fields.title)
        self._validate_content(fields.content)
        doc = await self._store.do_create(tenant_id, fields)
        self.logging.info("Created document %s (%s) for tenant %s.", doc.id, doc.title, tenant_id)
        self._pipeline.submit_background(tenant_id, doc.id)
        return doc

    async def update(self, tenant_id: str, document_id: str, changes: DocumentUpdate) -> Document:
        """Rename and/or edit a document.

        A content change clears the stored embedding in the same write and
        schedules a new embedding job, which supersedes any job still running
        for the old content.

        Raises:
            ValidationFailed: If a supplied title or content is blank.
            DocumentNotFound: If the document does not exist for this tenant.
        """
        if changes.title is not None:
            self._validate_title(changes.title)
        if changes.content is not None:
            self._validate_content(changes.content)

        doc = await self._store.do_update(tenant_id, document_id, changes)
        if doc is None:
            raise DocumentNotFound(tenant_id, document_id)

        if changes.content is not None:
            self.logging.info("Content of document %s changed; re-embedding.", document_id)
            self._pipeline.submit_background(tenant_id, document_id)
        return doc

    async def remove(self, tenant_id: str, document_id: str) -> Document:
        """Delete a document, its vector and its stored file.

        Raises:
            DocumentNotFound: If the document does not exist for this tenant.
        """
        deleted = await self._pipeline.delete_document(tenant_id, document_id)
        if deleted is None:
            raise DocumentNotFound(tenant_id, document_id)

        if deleted.storage_id:
            if not await self._blobs.do_delete(deleted.storage_id):
                self.logging.warning("Stored file %s of document %s was already gone.", deleted.storage_id, document_id)
        self.logging.info("Deleted document %s for tenant %s.", document_id, tenant_id)
        return deleted

    ##########################################
    ############### EMBEDDING ################
    ##########################################

    async def regenerate(self, tenant_id: str, document_id: str) -> JobOutcome:
        """User-triggered re-embedding. Waits for the job and returns its outcome.

        Raises:
            DocumentNotFound: If the document does not exist for this tenant.
        """
        outcome = await self._pipeline.submit(tenant_id, document_id)
        if outcome.status == JobStatus.NOT_FOUND:
            raise DocumentNotFound(tenant_id, document_id)
        return outcome

    async def reconcile(self, tenant_id: str) -> ReconcileReport:
        return await self._pipeline.reconcile(tenant_id)
