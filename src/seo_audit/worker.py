"""Background worker that claims queued audits and drives them to completion."""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from seo_audit.analyzer import SiteAnalyzer
from seo_audit.config import AnalysisThresholds, Config
from seo_audit.constants import (
    JOB_TYPE_PAGE_AUDIT,
    JOB_TYPE_SITE_AUDIT,
    PAGE_AUDIT_PROGRESS,
    PAGE_STATUS_ERROR,
    SITE_AUDIT_PROGRESS,
    STATUS_COMPLETED,
    STATUS_PROCESSING,
)
from seo_audit.crawler import CrawlPolicy, SiteCrawler
from seo_audit.exceptions import (
    FetchError,
    JobNotFound,
    JobTimeout,
    StoreUnavailable,
    ValidationError,
)
from seo_audit.job_queue import JobQueue, now_ms
from seo_audit.models import CrawlResult, Job
from seo_audit.report_generator import ReportGenerator

logger = logging.getLogger(__name__)

CrawlerFactory = Callable[[CrawlPolicy], SiteCrawler]


class AuditWorker:
    """Polls the job queue and processes audits concurrently.

    At most ``config.batch_size`` jobs are in flight at once. Every job runs
    in its own task under ``config.job_timeout_ms``; a job that overruns is
    cancelled and marked failed.
    """

    def __init__(
        self,
        queue: JobQueue,
        config: Optional[Config] = None,
        crawler_factory: Optional[CrawlerFactory] = None,
        analyzer: Optional[SiteAnalyzer] = None,
        report_generator: Optional[ReportGenerator] = None,
        thresholds: Optional[AnalysisThresholds] = None,
    ):
        """Initialize the worker.

        Args:
            queue: Job queue to claim work from
            config: Batch size, polling interval, timeout and crawl defaults
            crawler_factory: Builds a crawler for a policy (tests inject one
                with a mock transport)
            analyzer: Page/site analyzer
            report_generator: Site report builder
            thresholds: Rubric thresholds for the default analyzer
        """
        self.queue = queue
        self.config = config or Config()
        self.crawler_factory = crawler_factory or SiteCrawler
        self.analyzer = analyzer or SiteAnalyzer(thresholds)
        self.report_generator = report_generator or ReportGenerator()

        self._in_flight: dict[str, asyncio.Task] = {}
        self._poll_task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Process one batch immediately, then keep polling in the background."""
        if self._running:
            logger.warning("Worker is already running")
            return

        self._running = True
        logger.info(
            f"Starting worker (batch_size={self.config.batch_size}, "
            f"interval={self.config.processing_interval_ms}ms, "
            f"timeout={self.config.job_timeout_ms}ms)"
        )
        await self.process_batch()
        self._poll_task = asyncio.create_task(self._poll_loop(), name="audit-worker-poll")

    async def stop(self) -> None:
        """Stop polling and wait for in-flight jobs to settle."""
        if not self._running:
            return

        logger.info("Stopping worker")
        self._running = False

        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self._in_flight:
            logger.info(f"Waiting for {len(self._in_flight)} in-flight job(s)")
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)

        logger.info("Worker stopped")

    async def _poll_loop(self) -> None:
        interval = self.config.processing_interval_ms / 1000
        while self._running:
            await asyncio.sleep(interval)
            try:
                await self.process_batch()
            except Exception as e:
                logger.error(f"Error in worker tick: {e}")

    async def process_batch(self) -> list[str]:
        """Claim as many jobs as there are free slots and start them.

        Returns:
            The job ids started on this tick.
        """
        available = self.config.batch_size - len(self._in_flight)
        if available <= 0:
            logger.debug(f"No free slots ({len(self._in_flight)} job(s) in flight)")
            return []

        try:
            job_ids = await self.queue.get_next_batch(available)
        except StoreUnavailable as e:
            logger.error(f"Could not dequeue jobs, retrying next tick: {e}")
            return []

        for job_id in job_ids:
            task = asyncio.create_task(self._run_job(job_id), name=f"audit-job-{job_id}")
            self._in_flight[job_id] = task
            task.add_done_callback(lambda _, job_id=job_id: self._in_flight.pop(job_id, None))

        return job_ids

    async def wait_idle(self) -> None:
        """Wait until every in-flight job has settled."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def _run_job(self, job_id: str) -> None:
        timeout_ms = self.config.job_timeout_ms
        try:
            await asyncio.wait_for(self.process_job(job_id), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            logger.error(f"Job {job_id} timed out after {timeout_ms}ms")
            await self._fail(job_id, JobTimeout(job_id, timeout_ms))
        except JobNotFound:
            logger.warning(f"Job {job_id} has no stored record; removing it from processing")
            await self._remove(job_id)
        except Exception as e:
            logger.error(f"Error processing job {job_id}: {e}")
            await self._fail(job_id, e)

    async def _fail(self, job_id: str, error: BaseException) -> None:
        try:
            job = await self.queue.get_job(job_id)
            if job is not None and job.status == STATUS_COMPLETED:
                # Finished before the error; only the processing entry is left
                logger.warning(f"Job {job_id} already completed; not marking it failed ({error})")
            else:
                await self.queue.fail_job(job_id, error)
        except JobNotFound:
            logger.warning(f"Cannot fail job {job_id}: record is missing")
        except StoreUnavailable as e:
            logger.error(f"Cannot record failure of job {job_id}: {e}")
        await self._remove(job_id)

    async def _remove(self, job_id: str) -> None:
        try:
            await self.queue.remove_from_processing(job_id)
        except StoreUnavailable as e:
            logger.error(f"Cannot remove job {job_id} from processing: {e}")

    async def process_job(self, job_id: str) -> dict:
        """Run one job end to end and record its results.

        Raises:
            JobNotFound: If the job record does not exist.
            ValidationError: If the job type is unknown.
        """
        job = await self.queue.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)

        job = await self.queue.update_job(job_id, {
            "status": STATUS_PROCESSING,
            "started": now_ms(),
        })
        logger.info(f"Processing {job.type} job {job_id} for {job.url}")

        if job.type == JOB_TYPE_SITE_AUDIT:
            results = await self._process_site_audit(job)
        elif job.type == JOB_TYPE_PAGE_AUDIT:
            results = await self._process_page_audit(job)
        else:
            raise ValidationError(f"Unknown job type: {job.type}")

        await self.queue.complete_job(job_id, results)
        await self.queue.remove_from_processing(job_id)
        logger.info(f"Job {job_id} completed")
        return results

    async def _progress(self, job_id: str, progress: int, message: str) -> None:
        await self.queue.update_job(job_id, {"progress": progress, "message": message})

    def _stats(self, crawl_result: CrawlResult) -> dict:
        return {
            "pages_scanned": crawl_result.pages_visited,
            "crawl_duration_ms": crawl_result.duration_ms,
            "analysis_timestamp": datetime.now().isoformat(),
        }

    async def _process_site_audit(self, job: Job) -> dict:
        await self._progress(job.id, SITE_AUDIT_PROGRESS["crawl"], "Crawling website")
        policy = CrawlPolicy.from_options(job.options, self.config)
        crawl_result = await self.crawler_factory(policy).crawl(job.url)

        await self._progress(
            job.id, SITE_AUDIT_PROGRESS["analyze"],
            f"Analyzing {crawl_result.pages_visited} page(s)",
        )
        site_analysis = await self.analyzer.analyze_site(crawl_result, job.options)

        await self._progress(job.id, SITE_AUDIT_PROGRESS["report"], "Generating report")
        report = self.report_generator.generate_report(
            site_analysis,
            report_id=job.id,
            include_details=job.options.get("include_details", True),
        )

        return {"report": report, "stats": self._stats(crawl_result)}

    async def _process_page_audit(self, job: Job) -> dict:
        await self._progress(job.id, PAGE_AUDIT_PROGRESS["crawl"], "Fetching page")
        policy = CrawlPolicy.from_options(
            {**job.options, "max_pages": 1, "max_depth": 0}, self.config
        )
        crawl_result = await self.crawler_factory(policy).crawl(job.url)

        page = next(iter(crawl_result.pages.values()), None)
        if page is None:
            raise FetchError(f"Failed to crawl page {job.url}", url=job.url)
        if page.status == PAGE_STATUS_ERROR:
            raise FetchError((page.error or {}).get("message", f"Failed to crawl page {job.url}"), url=job.url)

        await self._progress(job.id, PAGE_AUDIT_PROGRESS["analyze"], "Analyzing page")
        analysis = await self.analyzer.analyze_page(page, job.options)

        await self._progress(job.id, PAGE_AUDIT_PROGRESS["report"], "Preparing results")
        return {"analysis": analysis.to_dict(), "stats": self._stats(crawl_result)}
