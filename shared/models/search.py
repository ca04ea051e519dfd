"""Pydantic models for retrieval requests and results."""

from pydantic import BaseModel


class VectorHit(BaseModel):
    """A single nearest-neighbour hit returned by the vector index."""

    document_id: str
    score: float
    fingerprint: str | None = None


class SourceReference(BaseModel):
    """Attribution for one block of text included in the assembled context."""

    id: str
    title: str
    score: float = 0.0
    truncated: bool = False


class RetrievalResult(BaseModel):
    """Ranked, token-budgeted context handed to the AI agent.

    ``status`` is "unavailable" when retrieval could not run (query embedding
    failed, index unreachable, timeout). The agent then answers without context.
    """

    query: str
    tenant_id: str
    status: str = "ok"
    context: str = ""
    sources: list[SourceReference] = []
    tokens_used: int = 0
    candidates: int = 0

    @classmethod
    def unavailable(cls, query: str, tenant_id: str) -> "RetrievalResult":
        return cls(query=query, tenant_id=tenant_id, status="unavailable")

    def is_available(self) -> bool:
        return self.status == "ok"
