"""In-memory registry of bulk import jobs."""

import collections.abc
import dataclasses
import enum
import functools
import logging
import threading
import time
import uuid
from typing import Any

import common.settings

from ..errors import NotFoundError
from .pipeline import BulkImporter, BulkImportResult

logger = logging.getLogger(__name__)

FAILED_STATUS_MESSAGE = 'Upload failed'


class JobStatus(enum.StrEnum):
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    FAILED = 'failed'


@dataclasses.dataclass
class JobProgress:
    index: int = 0
    total: int = 0
    address: str = ''
    status: str = 'Starting bulk upload...'

    @property
    def percentage(self) -> int:
        return round(self.index / self.total * 100) if self.total else 100


@dataclasses.dataclass
class BulkImportJob:
    """One bulk import, visible only to the device that started it."""

    device_id: str
    group_id: str
    addresses: list[str]
    job_id: str = dataclasses.field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.RUNNING
    progress: JobProgress = dataclasses.field(default_factory=JobProgress)
    result: BulkImportResult | None = None
    cancel_event: threading.Event = dataclasses.field(default_factory=threading.Event)
    finished_at: float | None = None

    @property
    def total(self) -> int:
        return len(self.addresses)

    @property
    def failed_addresses(self) -> list[str]:
        if self.result is None:
            return []
        return [entry['address'] for entry in self.result.failed]

    def update_progress(self, index: int, total: int, address: str, status: str) -> None:
        self.progress = JobProgress(index=index, total=total, address=address, status=status)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the job status endpoint."""
        return {
            'jobId': self.job_id,
            'groupId': self.group_id,
            'status': self.status.value,
            'total': self.total,
            'progress': {
                'current': self.progress.index,
                'total': self.progress.total,
                'percentage': self.progress.percentage,
                'address': self.progress.address,
                'status': self.progress.status,
            },
            'result': self.result.to_dict() if self.result else None,
        }


class BulkImportJobs:
    """Job id to job mapping, scoped by device on every lookup.

    Finished jobs of any device are dropped by the next ``create`` once they
    have been over for ``retention`` seconds.
    """

    def __init__(
        self,
        retention: float = 3600,
        clock: collections.abc.Callable[[], float] = time.monotonic,
    ) -> None:
        self._jobs: dict[str, BulkImportJob] = {}
        self._lock = threading.Lock()
        self.retention = retention
        self.clock = clock

    def create(self, device_id: str, group_id: str, addresses: list[str]) -> BulkImportJob:
        job = BulkImportJob(device_id=device_id, group_id=group_id, addresses=list(addresses))
        job.progress = JobProgress(total=job.total)
        self.prune_expired()
        with self._lock:
            self._jobs[job.job_id] = job
        return job

    def get(self, job_id: str, device_id: str) -> BulkImportJob:
        """Look up a job owned by the device.

        Raises:
            NotFoundError: If the job is unknown or belongs to another device.
        """
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None or job.device_id != device_id:
            raise NotFoundError('Import job not found')
        return job

    def cancel(self, job_id: str, device_id: str) -> BulkImportJob:
        """Ask a running job to stop before its next address."""
        job = self.get(job_id, device_id)
        job.cancel_event.set()
        return job

    def discard_finished(self, device_id: str) -> int:
        """Forget the device's finished jobs, returning how many were dropped."""
        return self._discard(
            lambda job: job.device_id == device_id and job.status != JobStatus.RUNNING
        )

    def prune_expired(self) -> int:
        """Forget jobs of any device that finished more than ``retention`` ago."""
        cutoff = self.clock() - self.retention
        return self._discard(
            lambda job: job.finished_at is not None and job.finished_at <= cutoff
        )

    def _discard(self, predicate: collections.abc.Callable[[BulkImportJob], bool]) -> int:
        with self._lock:
            doomed = [job_id for job_id, job in self._jobs.items() if predicate(job)]
            for job_id in doomed:
                del self._jobs[job_id]
        return len(doomed)

    async def run(self, job: BulkImportJob, importer: BulkImporter) -> None:
        """Drive a job to completion, recording its result and final status.

        An unexpected error ends the job as failed instead of leaving it
        running forever.
        """
        logger.info('Starting bulk import %s (%d addresses)', job.job_id, job.total)
        try:
            job.result = await importer.run(
                job.group_id,
                job.device_id,
                job.addresses,
                cancel_event=job.cancel_event,
                progress=job.update_progress,
            )
        except Exception:
            logger.exception('Bulk import %s failed', job.job_id)
            job.status = JobStatus.FAILED
            job.progress = dataclasses.replace(job.progress, status=FAILED_STATUS_MESSAGE)
        else:
            job.status = JobStatus.CANCELLED if job.result.cancelled else JobStatus.COMPLETED
            logger.info('Bulk import %s %s', job.job_id, job.status.value)
        finally:
            job.finished_at = self.clock()


@functools.cache
def get_jobs() -> BulkImportJobs:
    """Get the process-wide job registry."""
    return BulkImportJobs(retention=common.settings.BULK_JOB_RETENTION_SECONDS)
