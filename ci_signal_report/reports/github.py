"""GitHub report source: failing-test issues and CI signal board triage state.

Sections:
    Failing Tests          open issues matching the configured label filter
    New/Not Yet Started    board column cards
    In flight              board column cards
    Observing              board column cards  (omitted in short mode)
    Resolved               board column cards  (omitted in short mode)
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Callable

from ci_signal_report.classifier import NoteMarkers, card_sig, classify_issue
from ci_signal_report.client import ApiClient, DecodeError, ResolutionError
from ci_signal_report.config import Config, Flags, GithubSettings
from ci_signal_report.merger import ReportMerger
from ci_signal_report.models import Issue, IssueRecord, Report, ReportField
from ci_signal_report.reports.base import ReportSource

logger = logging.getLogger(__name__)

FAILING_TEST_TITLE_PREFIX = "[Failing Test]"


@dataclass(frozen=True)
class BoardBucket:
    title: str
    emoji: str
    column_id: Callable[[], int]
    omit_when_short: bool = False


def clean_title(title: str) -> str:
    return title.replace(FAILING_TEST_TITLE_PREFIX, "").strip()


# ---------------------------------------------------------------------------
# Board cards
# ---------------------------------------------------------------------------

class CardResolver:
    """Resolves board columns and the issues referenced by their cards."""

    def __init__(self, client: ApiClient, page_size: int = 100, max_workers: int = 8) -> None:
        self._client = client
        self._page_size = page_size
        self._max_workers = max_workers

    def find_column_id(self, project_id: int, name: str) -> int:
        """Return the id of the column called *name*; the lowest id wins on duplicates.

        Raises:
            ResolutionError: no column has that exact name.
            DecodeError: a matching column has no usable id.
        """
        ids = []
        for page in self._client.iter_pages(f"/projects/{project_id}/columns", {}, self._page_size):
            for column in page:
                if isinstance(column, dict) and column.get("name") == name:
                    try:
                        ids.append(int(column["id"]))
                    except (KeyError, TypeError, ValueError) as exc:
                        raise DecodeError(f"Column '{name}' on project {project_id} has no valid id") from exc
        if not ids:
            raise ResolutionError(f"No column named '{name}' on project {project_id}")
        if len(ids) > 1:
            logger.debug("Columns %s are all named '%s'; using %d", ids, name, min(ids))
        return min(ids)

    def resolve_card(self, card: Any) -> IssueRecord | None:
        """Fetch the issue a card points to. Cards without content (notes) give None."""
        if not isinstance(card, dict):
            raise DecodeError(f"Expected a card object, got {type(card).__name__}")
        content_url = card.get("content_url")
        if not content_url:
            return None
        issue = Issue.from_api(self._client.get(content_url))
        return IssueRecord(
            id=issue.number,
            url=issue.html_url,
            title=clean_title(issue.title),
            sig=card_sig(issue.labels),
        )

    def column_records(self, column_id: int | Callable[[], int]) -> list[IssueRecord]:
        """Resolve every card of a column concurrently.

        Card workers for a page are started as soon as that page arrives;
        the call returns once all of them have finished.
        """
        if callable(column_id):
            column_id = column_id()

        records: list[IssueRecord] = []
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="card") as executor:
            futures = []
            for page in self._client.iter_pages(f"/projects/columns/{column_id}/cards", {}, self._page_size):
                futures.extend(executor.submit(self.resolve_card, card) for card in page)
            for future in as_completed(futures):
                record = future.result()
                if record is not None:
                    records.append(record)
        return records


# ---------------------------------------------------------------------------
# Report source
# ---------------------------------------------------------------------------

class GithubReport(ReportSource):
    name = "github"

    def __init__(self, client: ApiClient, now: datetime | None = None) -> None:
        self._client = client
        self._now = now

    def fetch(self, config: Config, flags: Flags) -> Report:
        settings = config.github
        emojis = config.emojis
        markers = NoteMarkers.from_emojis(emojis, flags.emoji_off)
        resolver = CardResolver(self._client, settings.page_size, config.max_workers)

        buckets = [
            BoardBucket("New/Not Yet Started", emojis.not_yet_started, lambda: settings.new_column_id),
            BoardBucket("In flight", emojis.in_flight, lambda: settings.in_flight_column_id),
            BoardBucket("Observing", emojis.observing, lambda: settings.observing_column_id,
                        omit_when_short=True),
            BoardBucket(
                "Resolved",
                emojis.resolved,
                partial(resolver.find_column_id, settings.project_id, settings.resolved_column_name),
                omit_when_short=True,
            ),
        ]

        producers = [
            (ReportField(emojis.failing_tests, "Failing Tests"),
             partial(self.failing_test_issues, settings, markers)),
        ]
        for bucket in buckets:
            if bucket.omit_when_short and flags.short:
                logger.debug("Short mode: skipping '%s'", bucket.title)
                continue
            producers.append(
                (ReportField(bucket.emoji, bucket.title), partial(resolver.column_records, bucket.column_id))
            )

        return ReportMerger(config.max_workers).merge(producers)

    def failing_test_issues(self, settings: GithubSettings, markers: NoteMarkers) -> list[IssueRecord]:
        """List open failing-test issues, classifying each page as it arrives."""
        now = self._now or datetime.now(timezone.utc)
        params: dict[str, Any] = {
            "state": "open",
            "labels": settings.issue_labels,
            "sort": "created",
            "direction": "desc",
        }
        if settings.since_days is not None:
            since = now - timedelta(days=int(settings.since_days))
            params["since"] = since.strftime("%Y-%m-%dT%H:%M:%SZ")

        endpoint = f"/repos/{settings.owner}/{settings.repo}/issues"
        records: dict[int, IssueRecord] = {}
        for page in self._client.iter_pages(endpoint, params, settings.page_size):
            for raw in page:
                issue = Issue.from_api(raw)
                result = classify_issue(issue, now, markers)
                # Later pages carry the latest state of a repeated issue number
                if not result.include:
                    records.pop(issue.number, None)
                    continue
                records[issue.number] = IssueRecord(
                    id=issue.number,
                    url=issue.html_url,
                    title=issue.title,
                    sig=result.sig,
                    notes=result.notes,
                    highlight=result.age_highlight,
                )
        return list(records.values())
