"""Durable job queue built on top of the key/value store."""

import logging
import time
import uuid
from typing import Optional, Union

from seo_audit.config import Config
from seo_audit.constants import (
    JOB_KEY_PREFIX,
    JOB_STATUSES,
    PROCESSING_QUEUE_KEY,
    QUEUE_KEY,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    STATUS_QUEUED,
)
from seo_audit.exceptions import JobNotFound, StoreUnavailable
from seo_audit.models import Job
from seo_audit.store import AbstractStore

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class JobQueue:
    """Job lifecycle management over an injected store.

    Job records live at ``<job_prefix><id>``. Waiting ids live in a list at
    ``queue_key`` and claimed ids in a list at ``processing_queue_key``. An id
    is in at most one of the two lists at a time.
    """

    def __init__(
        self,
        store: AbstractStore,
        job_prefix: str = JOB_KEY_PREFIX,
        queue_key: str = QUEUE_KEY,
        processing_queue_key: str = PROCESSING_QUEUE_KEY,
    ):
        self.store = store
        self.job_prefix = job_prefix
        self.queue_key = queue_key
        self.processing_queue_key = processing_queue_key

    @classmethod
    def from_config(cls, store: AbstractStore, config: Config) -> "JobQueue":
        return cls(
            store,
            job_prefix=config.job_prefix,
            queue_key=config.queue_key,
            processing_queue_key=config.processing_queue_key,
        )

    def _job_key(self, job_id: str) -> str:
        return f"{self.job_prefix}{job_id}"

    async def create_job(self, fields: dict) -> str:
        """Create a job and append it to the waiting list.

        The job record is written before its id is queued, so a consumer that
        dequeues the id always finds the record.

        Args:
            fields: Job fields; at least ``type`` and ``params``. An ``id`` is
                generated when absent.

        Returns:
            The job id.
        """
        job_id = fields.get("id") or uuid.uuid4().hex
        timestamp = now_ms()
        job = Job.from_dict({
            **fields,
            "id": job_id,
            "status": STATUS_QUEUED,
            "progress": 0,
            "created": timestamp,
            "updated": timestamp,
        })

        await self.store.set(self._job_key(job_id), job.to_dict())
        await self.store.push_end(self.queue_key, job_id)

        logger.info(f"Created {job.type} job {job_id} for {job.url}")
        return job_id

    async def get_job(self, job_id: str) -> Optional[Job]:
        data = await self.store.get(self._job_key(job_id))
        if data is None:
            return None
        return Job.from_dict(data)

    async def update_job(self, job_id: str, patch: dict) -> Job:
        """Merge a patch into a stored job and bump its ``updated`` time.

        Raises:
            JobNotFound: If no job is stored under job_id.
        """
        data = await self.store.get(self._job_key(job_id))
        if data is None:
            raise JobNotFound(job_id)

        data.update({k: v for k, v in patch.items() if k != "id"})
        data["updated"] = now_ms()
        job = Job.from_dict(data)

        await self.store.set(self._job_key(job_id), job.to_dict())
        return job

    async def complete_job(self, job_id: str, results: dict) -> Job:
        logger.info(f"Completing job {job_id}")
        return await self.update_job(job_id, {
            "status": STATUS_COMPLETED,
            "progress": 100,
            "results": results,
            "completed": now_ms(),
        })

    async def fail_job(self, job_id: str, error: Union[BaseException, str, dict]) -> Job:
        """Mark a job failed, keeping whatever progress it had reached."""
        if isinstance(error, BaseException):
            error_data = {
                "message": str(error) or type(error).__name__,
                "type": type(error).__name__,
            }
        elif isinstance(error, dict):
            error_data = dict(error)
            error_data.setdefault("message", "Unknown error")
        else:
            error_data = {"message": str(error)}

        logger.error(f"Failing job {job_id}: {error_data['message']}")
        return await self.update_job(job_id, {
            "status": STATUS_FAILED,
            "error": error_data,
            "completed": now_ms(),
        })

    async def get_next_batch(self, batch_size: int) -> list[str]:
        """Claim up to batch_size waiting jobs.

        Ids are popped from the head of the waiting list one at a time, moved
        to the processing list and flipped to ``processing``. An empty queue
        yields a short (possibly empty) batch.

        A store failure after some ids were claimed ends the batch early and
        returns those ids so the caller still runs them.

        Raises:
            StoreUnavailable: If the store fails before any id is claimed.
        """
        job_ids: list[str] = []

        for _ in range(max(batch_size, 0)):
            try:
                popped = await self.store.pop_start(self.queue_key)
                if not popped:
                    break

                job_id = popped[0]
                job_ids.append(job_id)
                await self.store.push_end(self.processing_queue_key, job_id)
                try:
                    await self.update_job(job_id, {"status": STATUS_PROCESSING})
                except JobNotFound:
                    # The worker logs and discards ids without a record
                    logger.warning(f"Dequeued job {job_id} has no stored record")
            except StoreUnavailable as e:
                if not job_ids:
                    raise
                logger.error(f"Store failed while dequeuing; keeping {len(job_ids)} claimed job(s): {e}")
                break

        if job_ids:
            logger.info(f"Dequeued {len(job_ids)} job(s) for processing")
        return job_ids

    async def remove_from_processing(self, job_id: str) -> None:
        """Rebuild the processing list without job_id."""
        processing = await self.store.range(self.processing_queue_key, 0, -1)
        remaining = [item for item in processing if item != job_id]
        if len(remaining) == len(processing):
            return

        await self.store.delete(self.processing_queue_key)
        if remaining:
            await self.store.push_end(self.processing_queue_key, *remaining)

    async def get_stats(self) -> dict:
        """Queue lengths plus a per-status count over every stored job."""
        waiting = await self.store.length(self.queue_key)
        processing = await self.store.length(self.processing_queue_key)

        counts = {status: 0 for status in JOB_STATUSES}
        total_jobs = 0
        for key in await self.store.scan_keys(f"{self.job_prefix}*"):
            data = await self.store.get(key)
            if not isinstance(data, dict):
                continue
            total_jobs += 1
            status = data.get("status")
            if status in counts:
                counts[status] += 1

        return {
            "queue": {
                "waiting": waiting,
                "processing": processing,
                "total": waiting + processing,
            },
            "jobs": counts,
            "total_jobs": total_jobs,
        }
