"""Tests for the submission and status service."""

import pytest

from seo_audit.exceptions import JobNotFound, ResultsNotReady, ValidationError
from seo_audit.service import AuditService, validate_options, validate_url


@pytest.fixture
def service(queue):
    return AuditService(queue)


class TestValidation:
    """Test cases for request validation."""

    def test_valid_url(self):
        """Test http and https URLs are accepted and trimmed."""
        assert validate_url(" https://example.com/page ") == "https://example.com/page"
        assert validate_url("http://localhost:8080") == "http://localhost:8080"

    @pytest.mark.parametrize("url", [None, "", "example.com", "ftp://example.com", "https://", "http://[::1"])
    def test_invalid_url(self, url):
        """Test malformed URLs are rejected."""
        with pytest.raises(ValidationError):
            validate_url(url)

    def test_valid_options(self):
        """Test known options with the right types."""
        options = {"max_pages": 10, "max_depth": 0, "render_js": False, "include_details": True}
        assert validate_options(options) == options
        assert validate_options(None) == {}

    @pytest.mark.parametrize("options, message", [
        ({"max_pagez": 10}, "Unknown option"),
        ({"max_pages": "10"}, "must be of type int"),
        ({"max_pages": True}, "must be of type int"),
        ({"max_pages": 0}, "at least 1"),
        ({"timeout_ms": -5}, "at least 1"),
        ({"max_depth": -1}, "must not be negative"),
        ({"render_js": "yes"}, "must be of type bool"),
    ])
    def test_invalid_options(self, options, message):
        """Test each kind of invalid option."""
        with pytest.raises(ValidationError, match=message):
            validate_options(options)

    def test_options_must_be_dict(self):
        """Test a non-mapping option set."""
        with pytest.raises(ValidationError):
            validate_options(["max_pages"])


class TestAuditService:
    """Test cases for AuditService."""

    @pytest.mark.asyncio
    async def test_submit(self, service, queue):
        """Test submission creates a queued job."""
        result = await service.submit("https://example.com", {"max_pages": 5})
        job = await queue.get_job(result["job_id"])

        assert job.type == "site_audit"
        assert job.params == {"url": "https://example.com", "options": {"max_pages": 5}}

    @pytest.mark.asyncio
    async def test_invalid_submission_creates_no_job(self, service, queue):
        """Test validation happens before anything is stored."""
        with pytest.raises(ValidationError):
            await service.submit("not a url")
        with pytest.raises(ValidationError):
            await service.submit("https://example.com", job_type="keyword_audit")

        assert (await queue.get_stats())["total_jobs"] == 0

    @pytest.mark.asyncio
    async def test_status(self, service):
        """Test the public status view of a queued job."""
        job_id = (await service.submit("https://example.com"))["job_id"]
        status = await service.get_status(job_id)

        assert status["id"] == job_id
        assert status["status"] == "queued"
        assert status["progress"] == 0
        assert "error" not in status
        assert "results" not in status

    @pytest.mark.asyncio
    async def test_failed_status_exposes_only_message(self, service, queue):
        """Test failed jobs show the error message without internals."""
        job_id = (await service.submit("https://example.com"))["job_id"]
        await queue.fail_job(job_id, RuntimeError("crawler crashed"))

        status = await service.get_status(job_id)

        assert status["status"] == "failed"
        assert status["error"] == {"message": "crawler crashed"}

    @pytest.mark.asyncio
    async def test_unknown_job(self, service):
        """Test status and results of an unknown job."""
        with pytest.raises(JobNotFound):
            await service.get_status("missing")
        with pytest.raises(JobNotFound):
            await service.get_results("missing")

    @pytest.mark.asyncio
    async def test_results_not_ready(self, service):
        """Test results of a job that has not completed."""
        job_id = (await service.submit("https://example.com"))["job_id"]

        with pytest.raises(ResultsNotReady) as exc_info:
            await service.get_results(job_id)
        assert exc_info.value.status == "queued"

    @pytest.mark.asyncio
    async def test_results(self, service, queue):
        """Test results of a completed job."""
        job_id = (await service.submit("https://example.com"))["job_id"]
        await queue.complete_job(job_id, {"report": {"id": job_id}})

        assert await service.get_results(job_id) == {"report": {"id": job_id}}

    @pytest.mark.asyncio
    async def test_stats(self, service):
        """Test stats pass through from the queue."""
        await service.submit("https://example.com")
        stats = await service.get_stats()
        assert stats["queue"]["waiting"] == 1
