"""Report sources and the top-level report run.

Functions:
    build_sources(config)                   -> list[ReportSource]
    generate_report(config, flags, sources) -> Report
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from ci_signal_report.client import ApiClient
from ci_signal_report.config import Config, Flags
from ci_signal_report.models import Report
from ci_signal_report.reports.base import ReportSource
from ci_signal_report.reports.github import GithubReport
from ci_signal_report.reports.testgrid import TestgridReport

logger = logging.getLogger(__name__)

GITHUB_ACCEPT = "application/vnd.github+json"


def build_sources(config: Config) -> list[ReportSource]:
    """GitHub source (token auth) and TestGrid source (anonymous)."""
    github = ApiClient(
        config.github.api_url,
        token=config.token,
        timeout=config.timeout,
        retries=config.retries,
        backoff=config.backoff,
        max_concurrent_requests=config.max_concurrent_requests,
        accept=GITHUB_ACCEPT,
    )
    testgrid = ApiClient(
        config.testgrid.base_url,
        timeout=config.timeout,
        retries=config.retries,
        backoff=config.backoff,
        max_concurrent_requests=config.max_concurrent_requests,
    )
    return [GithubReport(github), TestgridReport(testgrid)]


def generate_report(
    config: Config,
    flags: Flags,
    sources: list[ReportSource] | None = None,
) -> Report:
    """Fetch every source concurrently and concatenate their contributions."""
    if sources is None:
        sources = build_sources(config)

    report = Report()
    with ThreadPoolExecutor(max_workers=max(len(sources), 1), thread_name_prefix="source") as executor:
        futures = {executor.submit(source.fetch, config, flags): source for source in sources}
        for future in as_completed(futures):
            contribution = future.result()
            logger.info(
                "Source '%s' done: %d sections, %d failed",
                futures[future].name, len(contribution.sections), len(contribution.failures),
            )
            report.extend(contribution)
    return report


__all__ = ["ReportSource", "build_sources", "generate_report"]
