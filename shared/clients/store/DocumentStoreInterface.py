from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, DocumentCreate, DocumentUpdate, EmbeddingStatus, now_ms


class DocumentStoreInterface(ABC):
    """Tenant-scoped persistence of knowledge base documents.

    Backends implement the primitive operations. The embedding invariants live in
    the concrete methods of this interface so no backend can skip them:

    - an update that touches ``content`` clears ``embedding`` and
      ``embedding_fingerprint`` in the same write;
    - an embedding is only written when the document still exists and its
      current content hashes to the fingerprint the embedding was computed for;
    - a failure flag follows the same condition and never overwrites an embedding.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ##########################################
    ############ BACKEND PRIMITIVES ##########
    ##########################################

    @abstractmethod
    async def do_get(self, tenant_id: str, document_id: str) -> Document | None:
        """
        Returns the document, or None if it does not exist for this tenant.
        """
        pass

    @abstractmethod
    async def do_create(self, tenant_id: str, fields: DocumentCreate) -> Document:
        """
        Persists a new document without an embedding and returns it.
        """
        pass

    @abstractmethod
    async def do_delete(self, tenant_id: str, document_id: str) -> Document | None:
        """
        Deletes the document and returns the deleted record, or None if it did not exist.
        """
        pass

    @abstractmethod
    async def do_list(self, tenant_id: str) -> list[Document]:
        """
        Returns all documents of the tenant, newest first.
        """
        pass

    @abstractmethod
    async def _do_patch(self, tenant_id: str, document_id: str, patch: dict) -> Document | None:
        """
        Applies a field patch atomically. Returns the updated document, or None if missing.
        """
        pass

    @abstractmethod
    async def _do_set_embedding_if_current(self, tenant_id: str, document_id: str, fingerprint: str, vector: list[float]) -> bool:
        """
        Atomically writes embedding and fingerprint if the document exists and
        content_fingerprint(document.content) == fingerprint.

        Returns:
            bool: True if written, False if the condition failed.
        """
        pass

    @abstractmethod
    async def _do_mark_failed_if_current(self, tenant_id: str, document_id: str, fingerprint: str, error: str) -> bool:
        """
        Atomically flags the document as failed if it exists, has no embedding and
        content_fingerprint(document.content) == fingerprint.

        Returns:
            bool: True if flagged, False if the condition failed.
        """
        pass

    ##########################################
    ############ INVARIANT GUARDS ############
    ##########################################

    @staticmethod
    def build_update_patch(changes: DocumentUpdate) -> dict:
        """Translate a partial update into a field patch.

        A content change always carries the embedding reset with it.
        """
        patch: dict = {"updated_at": now_ms()}
        if changes.title is not None:
            patch["title"] = changes.title
        if changes.content is not None:
            patch["content"] = changes.content
            patch["embedding"] = None
            patch["embedding_fingerprint"] = None
            patch["embedding_status"] = EmbeddingStatus.PENDING
            patch["embedding_error"] = None
        return patch

    async def do_update(self, tenant_id: str, document_id: str, changes: DocumentUpdate) -> Document | None:
        """Rename and/or edit a document.

        Returns:
            Document | None: The updated document, None if it does not exist.
        """
        return await self._do_patch(tenant_id, document_id, self.build_update_patch(changes))

    async def do_set_embedding_if_current(self, tenant_id: str, document_id: str, fingerprint: str, vector: list[float]) -> bool:
        """Conditional final write of an embedding job."""
        written = await self._do_set_embedding_if_current(tenant_id, document_id, fingerprint, vector)
        if not written:
            self.logging.debug("Conditional embedding write rejected for document %s (fingerprint %s…).", document_id, fingerprint[:12])
        return written

    async def do_mark_failed_if_current(self, tenant_id: str, document_id: str, fingerprint: str, error: str) -> bool:
        """Record that embedding the given content gave up, so the document reads as failed rather than pending."""
        flagged = await self._do_mark_failed_if_current(tenant_id, document_id, fingerprint, error)
        if not flagged:
            self.logging.debug("Failure flag skipped for document %s: content changed, deleted or already embedded.", document_id)
        return flagged
