from pydantic import BaseModel

from shared.models.document import Document, EmbeddingStatus
from shared.models.search import SourceReference


class RetrieveResponse(BaseModel):
    status: str
    context: str
    sources: list[SourceReference]
    tokens_used: int


class DocumentResponse(BaseModel):
    """A stored document as exposed over the API. The raw embedding is never sent."""

    id: str
    title: str
    content: str
    mime_type: str
    file_name: str
    embed_url: str | None
    storage_id: str | None
    has_embedding: bool
    embedding_status: EmbeddingStatus
    embedding_error: str | None
    created_at: int
    updated_at: int | None

    @classmethod
    def from_document(cls, doc: Document) -> "DocumentResponse":
        return cls(
            id=doc.id,
            title=doc.title,
            content=doc.content,
            mime_type=doc.mime_type,
            file_name=doc.file_name,
            embed_url=doc.embed_url,
            storage_id=doc.storage_id,
            has_embedding=doc.has_embedding(),
            embedding_status=doc.embedding_status,
            embedding_error=doc.embedding_error,
            created_at=doc.created_at,
            updated_at=doc.updated_at,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int
