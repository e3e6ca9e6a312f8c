"""Command-line interface for the SEO audit pipeline."""

import asyncio
import json
import os
import signal
import sys
from typing import Optional

from seo_audit.analyzer import SiteAnalyzer
from seo_audit.config import AnalysisThresholds, Config
from seo_audit.constants import (
    CLI_STORE_BACKEND,
    JOB_TYPE_PAGE_AUDIT,
    JOB_TYPE_SITE_AUDIT,
    PAGE_STATUS_ERROR,
)
from seo_audit.crawler import CrawlPolicy, SiteCrawler
from seo_audit.exceptions import AuditError, FetchError, NotFound, ValidationError
from seo_audit.job_queue import JobQueue
from seo_audit.logging_config import setup_logging
from seo_audit.report_generator import ReportGenerator
from seo_audit.service import AuditService, validate_options, validate_url
from seo_audit.store import AbstractStore, get_store
from seo_audit.worker import AuditWorker


def _open_store(config: Config) -> AbstractStore:
    return get_store(config.store_backend, path=config.store_path)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _load_thresholds(args) -> AnalysisThresholds:
    """Rubric thresholds from --thresholds, else from SEO_THRESHOLD_* variables."""
    path = getattr(args, "thresholds", None)
    if not path:
        return AnalysisThresholds.from_env()
    if not os.path.exists(path):
        raise ValidationError(f"Thresholds file not found: {path}")
    return AnalysisThresholds.from_file(path)


def print_report_summary(report: dict) -> None:
    """Print a site report in a readable form."""
    summary = report["summary"]

    print(f"\n{'=' * 60}")
    print(f"SEO Audit for: {report['audit_target']['base_url']}")
    print(f"{'=' * 60}")
    print(f"\nOverall Score: {summary['overall_score']}/100 ({summary['health_status']})")
    print("\nCategory Scores:")
    for name, score in summary["category_scores"].items():
        print(f"  - {name.capitalize()}: {score}/100")

    print(f"\n{summary['text']}")

    print("\nStrengths:")
    for strength in summary["top_strengths"]:
        print(f"  - {strength}")

    print("\nWeaknesses:")
    for weakness in summary["top_weaknesses"]:
        print(f"  - {weakness}")

    if report["prioritized_recommendations"]:
        print("\nTop Recommendations:")
        for rec in report["prioritized_recommendations"]:
            print(f"  - [{rec['impact']}] {rec['title']} ({rec['affected_pages']} page(s))")

    print(f"\n{'=' * 60}\n")


def print_page_summary(analysis: dict) -> None:
    """Print a single-page analysis in a readable form."""
    scores = analysis["scores"]

    print(f"\n{'=' * 60}")
    print(f"SEO Audit for page: {analysis['url']}")
    print(f"{'=' * 60}")
    print(f"\nOverall Score: {scores['overall']}/100")
    for name in ("meta", "content", "technical"):
        print(f"  - {name.capitalize()}: {scores.get(name, 0)}/100")

    if analysis["recommendations"]:
        print("\nRecommendations:")
        for rec in analysis["recommendations"]:
            print(f"  - [{rec['impact']}] {rec['message']}")

    print(f"\n{'=' * 60}\n")


async def _run_worker(config: Config, thresholds: AnalysisThresholds) -> None:
    store = _open_store(config)
    worker = AuditWorker(JobQueue.from_config(store, config), config, thresholds=thresholds)
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass  # signal handlers are unavailable on this platform

    try:
        await worker.start()
        print("Worker running. Press Ctrl+C to stop.")
        await stop_event.wait()
    finally:
        await worker.stop()
        await store.close()


def worker_command(args, config: Config):
    """Run the audit worker until interrupted."""
    thresholds = _load_thresholds(args)
    try:
        asyncio.run(_run_worker(config, thresholds))
    except KeyboardInterrupt:
        pass


def _build_options(args) -> dict:
    options = {}
    if getattr(args, "max_pages", None) is not None:
        options["max_pages"] = args.max_pages
    if getattr(args, "depth", None) is not None:
        options["max_depth"] = args.depth
    if getattr(args, "ignore_robots", False):
        options["ignore_robots_txt"] = True
    if getattr(args, "render_js", False):
        options["render_js"] = True
    if getattr(args, "use_sitemap", False):
        options["use_sitemap"] = True
    return options


async def _with_service(config: Config, action):
    store = _open_store(config)
    try:
        return await action(AuditService(JobQueue.from_config(store, config)))
    finally:
        await store.close()


def submit_command(args, config: Config):
    """Queue a site or page audit."""
    job_type = JOB_TYPE_PAGE_AUDIT if args.page else JOB_TYPE_SITE_AUDIT
    options = _build_options(args)
    result = asyncio.run(_with_service(
        config, lambda service: service.submit(args.url, options, job_type)
    ))
    print(f"Submitted {job_type} job: {result['job_id']}")


def status_command(args, config: Config):
    """Show the status of a job."""
    _print_json(asyncio.run(_with_service(
        config, lambda service: service.get_status(args.job_id)
    )))


def results_command(args, config: Config):
    """Show (or render) the results of a completed job."""
    results = asyncio.run(_with_service(
        config, lambda service: service.get_results(args.job_id)
    ))

    if args.html:
        if "report" not in results:
            print("Error: HTML rendering is only available for site audits", file=sys.stderr)
            sys.exit(1)
        ReportGenerator().save_html(results["report"], args.html)
        print(f"HTML report written to {args.html}")
    else:
        _print_json(results)


def stats_command(args, config: Config):
    """Show queue statistics."""
    _print_json(asyncio.run(_with_service(config, lambda service: service.get_stats())))


async def _run_audit(
    url: str,
    options: dict,
    config: Config,
    page_only: bool,
    thresholds: Optional[AnalysisThresholds] = None,
) -> dict:
    analyzer = SiteAnalyzer(thresholds or AnalysisThresholds.from_env())
    if page_only:
        options = {**options, "max_pages": 1, "max_depth": 0}
    policy = CrawlPolicy.from_options(options, config)
    crawl_result = await SiteCrawler(policy).crawl(url)

    if page_only:
        page = next(iter(crawl_result.pages.values()), None)
        if page is None or page.status == PAGE_STATUS_ERROR:
            message = (page.error or {}).get("message") if page else None
            raise FetchError(message or f"Failed to crawl page {url}", url=url)
        analysis = await analyzer.analyze_page(page, options)
        return {"analysis": analysis.to_dict()}

    site_analysis = await analyzer.analyze_site(crawl_result, options)
    return {"report": ReportGenerator().generate_report(site_analysis)}


def audit_command(args, config: Config):
    """Run an audit inline, without the queue."""
    url = validate_url(args.url)
    options = validate_options(_build_options(args))
    thresholds = _load_thresholds(args)
    result = asyncio.run(_run_audit(url, options, config, args.page, thresholds))

    if "report" in result:
        print_report_summary(result["report"])
        if args.html:
            ReportGenerator().save_html(result["report"], args.html)
            print(f"HTML report written to {args.html}")
        output = result["report"]
    else:
        print_page_summary(result["analysis"])
        output = result["analysis"]

    if args.json:
        with open(args.json, "w") as f:
            json.dump(output, f, indent=2, default=str)
        print(f"Results written to {args.json}")


def _add_crawl_arguments(parser) -> None:
    parser.add_argument("url", help="URL to audit")
    parser.add_argument(
        "--page",
        action="store_true",
        help="Audit a single page instead of crawling the site",
    )
    parser.add_argument("--max-pages", type=int, help="Maximum pages to crawl")
    parser.add_argument("--depth", type=int, help="Maximum link depth from the start URL")
    parser.add_argument(
        "--ignore-robots",
        action="store_true",
        help="Ignore robots.txt rules",
    )
    parser.add_argument(
        "--render-js",
        action="store_true",
        help="Render pages in headless Chromium (requires the 'browser' extra)",
    )
    parser.add_argument(
        "--use-sitemap",
        action="store_true",
        help="Seed the crawl with URLs from the site's sitemap",
    )


def _add_thresholds_argument(parser) -> None:
    parser.add_argument(
        "--thresholds",
        metavar="PATH",
        help="JSON file of rubric thresholds (default: SEO_THRESHOLD_* variables)",
    )


def main(argv: Optional[list[str]] = None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="SEO Audit - Crawl websites and score them against an SEO rubric"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging verbosity (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )
    parser.add_argument(
        "--store",
        choices=["memory", "sqlite"],
        help=f"Store backend (default: STORE_BACKEND or {CLI_STORE_BACKEND})",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    worker_parser = subparsers.add_parser("worker", help="Run the audit worker.")
    _add_thresholds_argument(worker_parser)
    worker_parser.set_defaults(func=worker_command)

    submit_parser = subparsers.add_parser("submit", help="Queue an audit job.")
    _add_crawl_arguments(submit_parser)
    submit_parser.set_defaults(func=submit_command)

    status_parser = subparsers.add_parser("status", help="Show a job's status.")
    status_parser.add_argument("job_id", help="Job id returned by submit")
    status_parser.set_defaults(func=status_command)

    results_parser = subparsers.add_parser("results", help="Show a completed job's results.")
    results_parser.add_argument("job_id", help="Job id returned by submit")
    results_parser.add_argument("--html", help="Write the site report as HTML to this path")
    results_parser.set_defaults(func=results_command)

    stats_parser = subparsers.add_parser("stats", help="Show queue statistics.")
    stats_parser.set_defaults(func=stats_command)

    audit_parser = subparsers.add_parser("audit", help="Run an audit immediately, without the queue.")
    _add_crawl_arguments(audit_parser)
    audit_parser.add_argument("--html", help="Write the site report as HTML to this path")
    audit_parser.add_argument("--json", help="Write the full results as JSON to this path")
    _add_thresholds_argument(audit_parser)
    audit_parser.set_defaults(func=audit_command)

    args = parser.parse_args(argv)

    config = Config.from_env()
    if args.store:
        config.store_backend = args.store
    elif not os.getenv("STORE_BACKEND"):
        config.store_backend = CLI_STORE_BACKEND

    # Configure logging based on flags
    setup_logging(
        level=args.log_level or config.log_level,
        log_file=args.log_file or config.log_file,
    )

    if not hasattr(args, "func"):
        parser.print_help()
        return

    try:
        args.func(args, config)
    except NotFound as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except AuditError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
