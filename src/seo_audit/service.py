"""Submission, status and results surface over the job queue."""

import logging
from typing import Optional
from urllib.parse import urlparse

from seo_audit.constants import JOB_TYPES, JOB_TYPE_SITE_AUDIT, STATUS_COMPLETED, STATUS_FAILED
from seo_audit.crawler import CRAWL_OPTION_TYPES
from seo_audit.exceptions import JobNotFound, ResultsNotReady, ValidationError
from seo_audit.job_queue import JobQueue

logger = logging.getLogger(__name__)

# Options accepted on submission and the types they must have
OPTION_TYPES = {
    **CRAWL_OPTION_TYPES,
    "include_details": bool,
}

POSITIVE_OPTIONS = ("max_pages", "timeout_ms")


def validate_url(url) -> str:
    """Require an absolute http(s) URL with a host.

    Raises:
        ValidationError: If the URL is malformed.
    """
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("URL is required")

    url = url.strip()
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as e:
        raise ValidationError(f"Invalid URL: {url} ({e})") from e

    if parsed.scheme not in ("http", "https"):
        raise ValidationError(f"Invalid URL: {url} (scheme must be http or https)")
    if not hostname:
        raise ValidationError(f"Invalid URL: {url} (missing host)")
    return url


def validate_options(options: Optional[dict]) -> dict:
    """Check option names and value types.

    Raises:
        ValidationError: On unknown keys, wrong types or out-of-range limits.
    """
    if options is None:
        return {}
    if not isinstance(options, dict):
        raise ValidationError("Options must be an object")

    for key, value in options.items():
        expected = OPTION_TYPES.get(key)
        if expected is None:
            raise ValidationError(f"Unknown option: {key}")
        if value is None:
            continue
        # bool is a subclass of int; reject it where a number is expected
        if (expected is int and isinstance(value, bool)) or not isinstance(value, expected):
            raise ValidationError(f"Option {key} must be of type {expected.__name__}")
        if key in POSITIVE_OPTIONS and value < 1:
            raise ValidationError(f"Option {key} must be at least 1")
        if key == "max_depth" and value < 0:
            raise ValidationError("Option max_depth must not be negative")

    return dict(options)


class AuditService:
    """Entry point used by the HTTP front door and the CLI."""

    def __init__(self, queue: JobQueue):
        self.queue = queue

    async def submit(
        self,
        url: str,
        options: Optional[dict] = None,
        job_type: str = JOB_TYPE_SITE_AUDIT,
    ) -> dict:
        """Validate and enqueue an audit.

        Returns:
            ``{"job_id": ...}``

        Raises:
            ValidationError: Before any job is created, if the request is malformed.
        """
        if job_type not in JOB_TYPES:
            raise ValidationError(f"Unknown job type: {job_type}")
        url = validate_url(url)
        options = validate_options(options)

        job_id = await self.queue.create_job({
            "type": job_type,
            "params": {"url": url, "options": options},
        })
        return {"job_id": job_id}

    async def get_status(self, job_id: str) -> dict:
        """Public view of a job; failed jobs expose only their error.

        Raises:
            JobNotFound: If no such job exists.
        """
        job = await self.queue.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)

        status = {
            "id": job.id,
            "type": job.type,
            "status": job.status,
            "progress": job.progress,
            "message": job.message,
            "created": job.created,
            "updated": job.updated,
            "started": job.started,
            "completed": job.completed,
        }
        if job.status == STATUS_FAILED:
            status["error"] = {"message": (job.error or {}).get("message", "Unknown error")}
        return status

    async def get_results(self, job_id: str) -> dict:
        """Results of a completed job.

        Raises:
            JobNotFound: If no such job exists.
            ResultsNotReady: If the job has not completed.
        """
        job = await self.queue.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        if job.status != STATUS_COMPLETED:
            raise ResultsNotReady(job_id, job.status)
        return job.results

    async def get_stats(self) -> dict:
        return await self.queue.get_stats()
