"""VectorPoint model — metadata stored alongside each document vector in the index."""

from pydantic import BaseModel


class VectorPoint(BaseModel):
    """Payload stored next to a document's embedding.

    The tenant id is not part of this model: the RAG client writes it under its
    configured tenant filter field on every upsert, so it can never be missing.

    Attributes:
        document_id:  Document id, unique within the tenant.
        title:        Document title, for debugging and index-side inspection.
        fingerprint:  SHA-256 of the content that was embedded. Retrieval drops hits
                      whose fingerprint no longer matches the stored document.
        created_at:   Creation time of the document in epoch milliseconds.
    """

    document_id: str
    title: str = ""
    fingerprint: str | None = None
    created_at: int | None = None
