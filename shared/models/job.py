"""Models describing embedding jobs and their outcomes."""

import asyncio
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    # terminal outcomes that never write an embedding
    SUPERSEDED = "superseded"
    DISCARDED = "discarded"
    UP_TO_DATE = "up_to_date"
    NOT_FOUND = "not_found"


class JobOutcome(BaseModel):
    """What a caller of EmbeddingPipeline.submit() gets back.

    Attributes:
        tenant_id:   Owning tenant.
        document_id: Document the job was submitted for.
        fingerprint: Content fingerprint the job embedded, if the document resolved.
        status:      Terminal status of the job.
        attempts:    Provider attempts made (0 when no provider call happened).
        error:       Error message for FAILED outcomes.
    """

    tenant_id: str
    document_id: str
    fingerprint: str | None = None
    status: JobStatus
    attempts: int = 0
    error: str | None = None


class EmbeddingJob(BaseModel):
    """In-memory job record, at most one live record per document in the JobRegistry."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    tenant_id: str
    document_id: str
    fingerprint: str
    content: str = Field(default="", repr=False)
    sequence: int = 0
    status: JobStatus = JobStatus.PENDING
    superseded: bool = False
    attempts: int = 0
    task: asyncio.Task | None = Field(default=None, repr=False)

    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.IN_FLIGHT)

    def to_outcome(self, error: str | None = None) -> JobOutcome:
        return JobOutcome(
            tenant_id=self.tenant_id,
            document_id=self.document_id,
            fingerprint=self.fingerprint,
            status=self.status,
            attempts=self.attempts,
            error=error,
        )


class ReconcileReport(BaseModel):
    """Summary of EmbeddingPipeline.reconcile() for one tenant."""

    tenant_id: str
    documents: int = 0
    up_to_date: int = 0
    embedded: int = 0
    failed: int = 0
    orphans_removed: int = 0
