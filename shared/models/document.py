"""Pydantic models for knowledge base documents.

Hierarchy:
  DocumentCreate  — fields supplied on upload.
  DocumentUpdate  — partial update (rename and/or content edit).
  Document        — stored record, tenant-scoped, with its optional embedding
                    and the status of the last embedding attempt.
"""

import time
from enum import Enum

from pydantic import BaseModel, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class EmbeddingStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    # embedding jobs gave up; the document stays out of retrieval until resubmitted
    FAILED = "failed"


class DocumentCreate(BaseModel):
    """Fields supplied when a document is uploaded to the knowledge base."""

    title: str
    content: str
    mime_type: str = "text/plain"
    file_name: str = ""
    embed_url: str | None = None
    storage_id: str | None = None


class DocumentUpdate(BaseModel):
    """Partial update. Only title and content are mutable after upload."""

    title: str | None = None
    content: str | None = None


class Document(BaseModel):
    """A knowledge base document owned by exactly one tenant.

    ``embedding`` and ``embedding_fingerprint`` are always set and cleared
    together. A document without an embedding is excluded from retrieval.
    """

    tenant_id: str
    id: str
    title: str
    content: str
    mime_type: str = "text/plain"
    file_name: str = ""
    embed_url: str | None = None
    storage_id: str | None = None
    embedding: list[float] | None = None
    embedding_fingerprint: str | None = None
    embedding_status: EmbeddingStatus = EmbeddingStatus.PENDING
    embedding_error: str | None = None
    created_at: int = Field(default_factory=now_ms)
    updated_at: int | None = None

    def has_embedding(self) -> bool:
        return self.embedding is not None
