"""Registry of live embedding jobs, one slot per document.

All methods are synchronous, so claiming a slot is atomic on the event loop:
no other coroutine can run between looking at the current job and replacing it.
"""

import asyncio
import itertools
import weakref
from typing import Awaitable, Callable

from shared.models.job import EmbeddingJob, JobOutcome

JobKey = tuple[str, str]


class JobRegistry:
    def __init__(self) -> None:
        self._jobs: dict[JobKey, EmbeddingJob] = {}
        self._sequence = itertools.count(1)
        # a lock lives as long as somebody holds or waits on it
        self._locks: weakref.WeakValueDictionary[JobKey, asyncio.Lock] = weakref.WeakValueDictionary()

    def get(self, tenant_id: str, document_id: str) -> EmbeddingJob | None:
        return self._jobs.get((tenant_id, document_id))

    def next_sequence(self) -> int:
        """Ticket taken by a submission before it reads the document. Later reads get higher tickets."""
        return next(self._sequence)

    def claim(
        self,
        tenant_id: str,
        document_id: str,
        fingerprint: str,
        content: str,
        runner: Callable[[EmbeddingJob], Awaitable[JobOutcome]],
        sequence: int = 0,
    ) -> tuple[EmbeddingJob, bool]:
        """Join the live job for this fingerprint or start a new one.

        A live job for a different fingerprint is marked superseded; it keeps
        running but its result will be discarded. A live job whose submission
        read the document later than this one (higher sequence) is never
        superseded: the caller joins it instead, since its own read is stale.

        Returns:
            tuple[EmbeddingJob, bool]: The job to wait on, and whether an existing job was joined.
        """
        key = (tenant_id, document_id)
        current = self._jobs.get(key)
        if current is not None and current.is_active() and not current.superseded:
            if current.fingerprint == fingerprint or current.sequence > sequence:
                return current, True
            current.superseded = True

        job = EmbeddingJob(tenant_id=tenant_id, document_id=document_id, fingerprint=fingerprint, content=content, sequence=sequence)
        self._jobs[key] = job
        job.task = asyncio.create_task(runner(job))
        return job, False

    def supersede(self, tenant_id: str, document_id: str) -> bool:
        """Mark the live job of a document as superseded, e.g. because the document is being deleted.

        Returns:
            bool: True if a live job was found.
        """
        current = self._jobs.get((tenant_id, document_id))
        if current is None or not current.is_active():
            return False
        current.superseded = True
        return True

    def release(self, job: EmbeddingJob) -> None:
        """Drop a finished job, unless a newer job already took its slot."""
        key = (job.tenant_id, job.document_id)
        if self._jobs.get(key) is job:
            del self._jobs[key]

    def lock_for(self, tenant_id: str, document_id: str) -> asyncio.Lock:
        """Per-document lock serialising the final write and deletion."""
        key = (tenant_id, document_id)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def active_count(self) -> int:
        return sum(1 for job in self._jobs.values() if job.is_active())
