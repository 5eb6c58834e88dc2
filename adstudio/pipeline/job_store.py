"""Job store interface and thread-safe in-memory implementation."""

import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from ..errors import JobNotFound
from .models import Job, new_job_id


class JobStore(ABC):
    """Single authoritative source of job state."""

    @abstractmethod
    def create(self, job: Job) -> Job:
        """Insert a new job. Returns the stored job (its id may be reassigned on collision)."""
        ...

    @abstractmethod
    def get(self, job_id: str) -> Job:
        """Snapshot of a job. Raises JobNotFound."""
        ...

    @abstractmethod
    def mutate(self, job_id: str, fn: Callable[[Job], None]) -> Job:
        """Apply `fn` to the job under its exclusive lock. Returns a snapshot."""
        ...

    @abstractmethod
    def list(self) -> List[Job]:
        """Snapshots of every job."""
        ...


class InMemoryJobStore(JobStore):
    """
    Dict of jobs guarded by two levels of locking:
      - one structural lock for insert / lookup / iteration
      - one lock per job for mutation, so unrelated jobs never contend

    Readers get copies, never the live record, so a status query can't observe
    a half-applied mutation.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: Dict[str, Job] = {}
        self._job_locks: Dict[str, threading.Lock] = {}

    def create(self, job: Job) -> Job:
        with self._lock:
            while job.id in self._jobs:
                job.id = new_job_id()
            self._jobs[job.id] = job
            self._job_locks[job.id] = threading.Lock()
        return job.model_copy()

    def _entry(self, job_id: str):
        with self._lock:
            job = self._jobs.get(job_id)
            lock = self._job_locks.get(job_id)
        if job is None or lock is None:
            raise JobNotFound(job_id)
        return job, lock

    def get(self, job_id: str) -> Job:
        job, lock = self._entry(job_id)
        with lock:
            return job.model_copy()

    def mutate(self, job_id: str, fn: Callable[[Job], None]) -> Job:
        job, lock = self._entry(job_id)
        with lock:
            fn(job)
            return job.model_copy()

    def list(self) -> List[Job]:
        with self._lock:
            entries = [(self._jobs[jid], self._job_locks[jid]) for jid in self._jobs]
        snapshots = []
        for job, lock in entries:
            with lock:
                snapshots.append(job.model_copy())
        return snapshots

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
