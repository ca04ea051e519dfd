"""Domain exceptions of the retrieval and embedding engine.

StaleJobDiscarded is deliberately absent: a superseded embedding job is an
expected outcome, reported through JobStatus.SUPERSEDED and never raised.
"""


class KnowledgeBaseError(Exception):
    """Base class for all knowledge base errors."""


class ProviderUnavailable(KnowledgeBaseError):
    """The embedding provider could not serve the call. Transient, retried with backoff."""


class DimensionMismatch(KnowledgeBaseError):
    """A vector does not have the configured dimensionality. Configuration defect, never retried."""

    def __init__(self, expected: int, actual: int, context: str = ""):
        self.expected = expected
        self.actual = actual
        where = f" ({context})" if context else ""
        super().__init__(f"Expected embedding dimension {expected}, got {actual}{where}.")


class EmbeddingFailed(KnowledgeBaseError):
    """Terminal failure of an embedding job after the retry ceiling."""

    def __init__(self, document_id: str, attempts: int, cause: Exception | None = None):
        self.document_id = document_id
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Embedding failed for document {document_id!r} after {attempts} attempt(s): {cause}")


class QueryEmbeddingFailed(KnowledgeBaseError):
    """The query text could not be embedded; retrieval degrades to no augmentation."""


class DocumentNotFound(KnowledgeBaseError):
    """The document does not exist for the requesting tenant."""

    def __init__(self, tenant_id: str, document_id: str):
        self.tenant_id = tenant_id
        self.document_id = document_id
        super().__init__(f"Document {document_id!r} not found.")


class ValidationFailed(KnowledgeBaseError):
    """A document field failed validation (e.g. blank title or content)."""
