"""Exception hierarchy for the audit pipeline."""

from typing import Optional


class AuditError(Exception):
    """Base class for all audit pipeline errors."""


class StoreUnavailable(AuditError):
    """Raised when the key/value store cannot complete an operation.

    Callers treat this as retryable; the worker retries on its next tick.
    """


class NotFound(AuditError):
    """Raised when a referenced record does not exist."""


class JobNotFound(NotFound):
    """Raised when a job id has no stored record."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


class ValidationError(AuditError):
    """Raised when a submitted URL or option set is malformed."""


class ResultsNotReady(AuditError):
    """Raised when results are requested for a job that has not completed."""

    def __init__(self, job_id: str, status: str):
        self.job_id = job_id
        self.status = status
        super().__init__(f"Job {job_id} is {status}; results are not available yet")


class FetchError(AuditError):
    """Raised when a page cannot be fetched (network error or timeout)."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.message = message
        self.url = url
        super().__init__(message)


class AnalysisError(AuditError):
    """Raised inside an analyzer; converted to a synthetic issue by the caller."""


class JobTimeout(AuditError):
    """Raised when a job exceeds its allotted processing time."""

    def __init__(self, job_id: str, timeout_ms: int):
        self.job_id = job_id
        self.timeout_ms = timeout_ms
        super().__init__(f"Job {job_id} timed out after {timeout_ms}ms")
