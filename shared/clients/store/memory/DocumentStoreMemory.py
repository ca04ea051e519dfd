import asyncio
import uuid

from shared.clients.store.DocumentStoreInterface import DocumentStoreInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperFingerprint import content_fingerprint
from shared.models.document import Document, DocumentCreate, EmbeddingStatus


class DocumentStoreMemory(DocumentStoreInterface):
    """In-process document store. One asyncio.Lock makes every primitive atomic.

    Records are copied on the way in and out, so callers never share state with the store.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._documents: dict[tuple[str, str], Document] = {}
        self._lock = asyncio.Lock()

    def _get_engine_name(self) -> str:
        return "Memory"

    async def do_get(self, tenant_id: str, document_id: str) -> Document | None:
        async with self._lock:
            doc = self._documents.get((tenant_id, document_id))
            return doc.model_copy(deep=True) if doc else None

    async def do_create(self, tenant_id: str, fields: DocumentCreate) -> Document:
        doc = Document(tenant_id=tenant_id, id=uuid.uuid4().hex, **fields.model_dump())
        async with self._lock:
            self._documents[(tenant_id, doc.id)] = doc
        return doc.model_copy(deep=True)

    async def do_delete(self, tenant_id: str, document_id: str) -> Document | None:
        async with self._lock:
            return self._documents.pop((tenant_id, document_id), None)

    async def do_list(self, tenant_id: str) -> list[Document]:
        async with self._lock:
            docs = [d.model_copy(deep=True) for (tenant, _), d in self._documents.items() if tenant == tenant_id]
        return sorted(docs, key=lambda d: d.created_at, reverse=True)

    async def _do_patch(self, tenant_id: str, document_id: str, patch: dict) -> Document | None:
        async with self._lock:
            doc = self._documents.get((tenant_id, document_id))
            if doc is None:
                return None
            updated = doc.model_copy(update=patch, deep=True)
            self._documents[(tenant_id, document_id)] = updated
            return updated.model_copy(deep=True)

    async def _do_set_embedding_if_current(self, tenant_id: str, document_id: str, fingerprint: str, vector: list[float]) -> bool:
        async with self._lock:
            doc = self._documents.get((tenant_id, document_id))
            if doc is None or content_fingerprint(doc.content) != fingerprint:
                return False
            self._documents[(tenant_id, document_id)] = doc.model_copy(
                update={
                    "embedding": list(vector),
                    "embedding_fingerprint": fingerprint,
                    "embedding_status": EmbeddingStatus.READY,
                    "embedding_error": None,
                },
                deep=True,
            )
            return True

    async def _do_mark_failed_if_current(self, tenant_id: str, document_id: str, fingerprint: str, error: str) -> bool:
        async with self._lock:
            doc = self._documents.get((tenant_id, document_id))
            if doc is None or doc.embedding is not None or content_fingerprint(doc.content) != fingerprint:
                return False
            self._documents[(tenant_id, document_id)] = doc.model_copy(
                update={"embedding_status": EmbeddingStatus.FAILED, "embedding_error": error},
                deep=True,
            )
            return True
