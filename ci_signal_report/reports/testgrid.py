"""TestGrid report source: dashboard health summaries and job severity.

Functions:
    dashboards_for(release_versions, emojis)  -> list[Dashboard]
    parse_recent_runs(status_text)            -> (passes, runs)
    score_severity(passes, runs)              -> (Severity, new_test)
    summarize(jobs)                           -> JobRecord   (summary record)
    job_details(job, dashboard_url, markers)  -> JobRecord   (detail record)

The summary document of a dashboard (``<base>/sig-release-<name>/summary``)
maps every job name to its status, e.g.::

    {"ci-kubernetes-e2e-gci-gce": {
        "overall_status": "FLAKY",
        "status": "8 of 9 (88.9%) recent columns passed (19455 of 19458 or 100.0% cells)",
        "tests": [{"test_name": "[sig-node] Pods should ..."}]}}
"""

import logging
import re
from dataclasses import dataclass
from functools import partial

from ci_signal_report.client import ApiClient, DecodeError
from ci_signal_report.config import Config, Emojis, Flags
from ci_signal_report.merger import ReportMerger
from ci_signal_report.models import (
    DETAIL_RECORD,
    SUMMARY_RECORD,
    DashboardJob,
    JobRecord,
    OverallStatus,
    Report,
    ReportField,
    Severity,
)
from ci_signal_report.reports.base import ReportSource

logger = logging.getLogger(__name__)

DASHBOARD_PREFIX = "sig-release-"

#: A job with this many recent runs or fewer is too new to judge.
NEW_TEST_MAX_RUNS = 5
HIGH_SEVERITY_RATE = 0.5
MEDIUM_SEVERITY_RATE = 0.8

_RECENT_RUNS_RE = re.compile(r"(?P<passes>\d+)\s+of\s+(?P<runs>\d+)")
_SIG_TEST_RE = re.compile(r"sig-[a-zA-Z]+")


@dataclass(frozen=True)
class Dashboard:
    name: str
    title: str
    emoji: str

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/{DASHBOARD_PREFIX}{self.name}"


@dataclass(frozen=True)
class SeverityMarkers:
    failing: str
    flaky: str
    new_test: str

    @classmethod
    def from_emojis(cls, emojis: Emojis, emoji_off: bool = False) -> "SeverityMarkers":
        if emoji_off:
            return cls(failing="[failing]", flaky="[flaky]", new_test="[new test]")
        return cls(
            failing=emojis.status_failing,
            flaky=emojis.status_flaky,
            new_test=emojis.status_new_test,
        )


def dashboards_for(release_versions: list[str], emojis: Emojis) -> list[Dashboard]:
    """master-blocking and master-informing, plus one pair per release version."""
    dashboards = [
        Dashboard("master-blocking", "Master-Blocking", emojis.master_blocking),
        Dashboard("master-informing", "Master-Informing", emojis.master_informing),
    ]
    for version in release_versions:
        dashboards.append(Dashboard(f"{version}-blocking", f"{version}-blocking", emojis.master_blocking))
        dashboards.append(Dashboard(f"{version}-informing", f"{version}-informing", emojis.master_informing))
    return dashboards


# ---------------------------------------------------------------------------
# Job scoring
# ---------------------------------------------------------------------------

def parse_recent_runs(status_text: str) -> tuple[int, int]:
    """Extract ``(passes, runs)`` from e.g. ``"8 of 9 (88.9%) recent columns passed"``.

    Raises:
        DecodeError: the status text has no ``<passes> of <runs>`` part.
    """
    match = _RECENT_RUNS_RE.search(status_text)
    if match is None:
        raise DecodeError(f"No recent run count in status '{status_text}'")
    return int(match.group("passes")), int(match.group("runs"))


def score_severity(passes: int, runs: int) -> tuple[Severity, bool]:
    """Return the severity and whether the job counts as a new test.

    New tests always score LIGHT, however many of their runs failed.
    """
    if runs <= NEW_TEST_MAX_RUNS:
        return Severity.LIGHT, True
    rate = passes / runs
    if rate <= HIGH_SEVERITY_RATE:
        return Severity.HIGH, False
    if rate <= MEDIUM_SEVERITY_RATE:
        return Severity.MEDIUM, False
    return Severity.LIGHT, False


def highlight_for(status: OverallStatus, severity: Severity, new_test: bool,
                  markers: SeverityMarkers) -> str:
    if new_test:
        marker = markers.new_test
    elif status == OverallStatus.FAILING:
        marker = markers.failing
    else:
        marker = markers.flaky
    return marker * int(severity)


def sigs_involved(test_names: list[str]) -> list[str]:
    sigs = set()
    for name in test_names:
        sigs.update(_SIG_TEST_RE.findall(name))
    return sorted(sigs)


def summarize(jobs: list[DashboardJob]) -> JobRecord:
    """Aggregate record counting the jobs of one dashboard by status."""
    counts = {"total": len(jobs), "passing": 0, "flaky": 0, "failing": 0, "stale": 0}
    for job in jobs:
        counts[job.overall_status.value.lower()] += 1

    notes = [f"{counts[key]} jobs {key}" for key in ("total", "passing", "flaky", "failing")]
    if counts["stale"]:
        notes.append(f"{counts['stale']} jobs stale")
    return JobRecord(id=SUMMARY_RECORD, title="summary", notes=notes, counts=counts)


def job_details(job: DashboardJob, dashboard_url: str, markers: SeverityMarkers) -> JobRecord:
    """Detail record for a job that is not passing."""
    record = JobRecord(
        id=DETAIL_RECORD,
        title=job.name,
        status=job.overall_status.value,
        url=f"{dashboard_url}#{job.name}",
    )

    if job.overall_status == OverallStatus.FAILING:
        sigs = sigs_involved(job.tests)
        record.notes.append(f"SIGs involved: {', '.join(sigs) if sigs else 'none'}")
        record.notes.append(f"Currently {len(job.tests)} tests are failing")

    try:
        passes, runs = parse_recent_runs(job.status_text)
    except DecodeError as exc:
        logger.warning("Job '%s': %s", job.name, exc)
        record.notes.append("recent runs unavailable")
        return record

    record.severity, record.new_test = score_severity(passes, runs)
    record.highlight = highlight_for(job.overall_status, record.severity, record.new_test, markers)
    record.notes.append(f"{passes} of {runs} passed recently")
    if record.new_test:
        record.notes.append(f"new test, only {runs} recent runs")
    return record


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class TestgridJobAggregator:
    """Fetches dashboard summaries and turns them into job records."""

    __test__ = False

    def __init__(self, client: ApiClient, markers: SeverityMarkers, short: bool = False) -> None:
        self._client = client
        self._markers = markers
        self._short = short

    def fetch_jobs(self, dashboard: Dashboard) -> list[DashboardJob]:
        data = self._client.get(f"/{DASHBOARD_PREFIX}{dashboard.name}/summary")
        if not isinstance(data, dict):
            raise DecodeError(f"Summary of '{dashboard.name}' is not a JSON object")
        return [DashboardJob.from_api(name, raw) for name, raw in data.items()]

    def dashboard_records(self, dashboard: Dashboard) -> list[JobRecord]:
        jobs = self.fetch_jobs(dashboard)
        records = [summarize(jobs)]
        if self._short:
            return records

        dashboard_url = dashboard.url(self._client.base_url)
        for job in jobs:
            if job.overall_status != OverallStatus.PASSING:
                records.append(job_details(job, dashboard_url, self._markers))
        return records


class TestgridReport(ReportSource):
    name = "testgrid"
    __test__ = False

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    def fetch(self, config: Config, flags: Flags) -> Report:
        aggregator = TestgridJobAggregator(
            self._client,
            SeverityMarkers.from_emojis(config.emojis, flags.emoji_off),
            short=flags.short,
        )
        producers = [
            (ReportField(d.emoji, d.title), partial(aggregator.dashboard_records, d))
            for d in dashboards_for(config.testgrid.release_versions, config.emojis)
        ]
        return ReportMerger(config.max_workers).merge(producers)
