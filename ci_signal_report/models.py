"""Data models for CI signal reports.

Contains the dataclasses shared by both report sources:
    - ReportField   key of one report section
    - IssueRecord   GitHub-derived record
    - JobRecord     TestGrid-derived record (summary or detail)
    - Report        section mapping plus failed sections
    - Issue         GitHub issue as returned by the API
    - DashboardJob  TestGrid job entry as returned by a dashboard summary
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Union

from ci_signal_report.client import DecodeError

#: Reserved ``JobRecord.id`` values separating the aggregate record of a
#: dashboard from its per-job records.
SUMMARY_RECORD = 0
DETAIL_RECORD = 1


class OverallStatus(str, Enum):
    PASSING = "PASSING"
    FAILING = "FAILING"
    FLAKY = "FLAKY"
    STALE = "STALE"

    @classmethod
    def parse(cls, value: Any) -> "OverallStatus":
        """Anything that is not explicitly passing, failing or flaky is stale."""
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.STALE


class Severity(IntEnum):
    NONE = 0
    LIGHT = 1
    MEDIUM = 2
    HIGH = 3


# ---------------------------------------------------------------------------
# Report structure
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReportField:
    emoji: str
    title: str


@dataclass
class IssueRecord:
    id: int
    url: str
    title: str
    sig: str = ""
    notes: list[str] = field(default_factory=list)
    highlight: str = ""


@dataclass
class JobRecord:
    id: int
    title: str
    status: str = ""
    severity: Severity = Severity.NONE
    highlight: str = ""
    url: str = ""
    notes: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    new_test: bool = False


Record = Union[IssueRecord, JobRecord]


def sort_records(records: list[Record]) -> list[Record]:
    """Return *records* in presentation order.

    Issue records sort by SIG, then by issue number. Job records put the
    dashboard summary first, then details by descending severity and name.
    """
    def key(record: Record):
        if isinstance(record, JobRecord):
            return (1, record.id, -int(record.severity), record.title)
        return (0, record.sig.lower(), record.id, "")

    return sorted(records, key=key)


@dataclass
class Report:
    """Mapping of report sections to their records.

    ``failures`` holds the sections whose producer raised, with the error
    message, so a partial report can still be presented. ``collisions`` lists
    fields that were emitted more than once.
    """

    sections: dict[ReportField, list[Record]] = field(default_factory=dict)
    failures: dict[ReportField, str] = field(default_factory=dict)
    collisions: list[ReportField] = field(default_factory=list)

    def __getitem__(self, key: ReportField) -> list[Record]:
        return self.sections[key]

    def __contains__(self, key: object) -> bool:
        return key in self.sections

    def __len__(self) -> int:
        return len(self.sections)

    def field_by_title(self, title: str) -> ReportField:
        for report_field in list(self.sections) + list(self.failures):
            if report_field.title == title:
                return report_field
        raise KeyError(title)

    def extend(self, other: "Report") -> None:
        """Concatenate another source's contribution into this report."""
        for key, records in other.sections.items():
            if key in self.sections:
                self.collisions.append(key)
            self.sections[key] = records
        self.failures.update(other.failures)
        self.collisions.extend(other.collisions)

    def sorted_fields(self) -> list[ReportField]:
        return sorted(self.sections, key=lambda f: f.title.lower())


# ---------------------------------------------------------------------------
# Upstream documents
# ---------------------------------------------------------------------------

def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise DecodeError(f"Invalid timestamp '{value}'") from exc


@dataclass
class Issue:
    number: int
    html_url: str
    title: str
    labels: list[str] = field(default_factory=list)
    milestone: str | None = None
    comments: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_api(cls, raw: Any) -> "Issue":
        """Build an Issue from a GitHub issue document.

        Raises:
            DecodeError: if the document is not a mapping, lacks
                         ``number`` / ``html_url``, or has malformed fields.
        """
        if not isinstance(raw, dict):
            raise DecodeError(f"Expected an issue object, got {type(raw).__name__}")
        try:
            number = int(raw["number"])
            html_url = str(raw["html_url"])
            comments = int(raw.get("comments") or 0)
        except (KeyError, TypeError, ValueError) as exc:
            raise DecodeError(f"Issue document has missing or malformed fields: {exc!r}") from exc

        raw_labels = raw.get("labels") or []
        if not isinstance(raw_labels, list):
            raise DecodeError(f"Issue #{number} labels are not a list")
        labels = []
        for label in raw_labels:
            name = label.get("name") if isinstance(label, dict) else label
            if name:
                labels.append(str(name))

        milestone = raw.get("milestone")
        if isinstance(milestone, dict):
            milestone = milestone.get("title")

        return cls(
            number=number,
            html_url=html_url,
            title=str(raw.get("title") or ""),
            labels=labels,
            milestone=milestone or None,
            comments=comments,
            created_at=_parse_timestamp(raw.get("created_at")),
            updated_at=_parse_timestamp(raw.get("updated_at")),
        )


@dataclass
class DashboardJob:
    name: str
    overall_status: OverallStatus
    status_text: str = ""
    tests: list[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, name: str, raw: Any) -> "DashboardJob":
        """Build a job from one value of a TestGrid ``/summary`` document."""
        if not isinstance(raw, dict):
            raise DecodeError(f"Job '{name}' is not an object")
        tests = [
            str(t.get("test_name") or t.get("display_name") or "")
            for t in raw.get("tests") or []
            if isinstance(t, dict)
        ]
        return cls(
            name=name,
            overall_status=OverallStatus.parse(raw.get("overall_status")),
            status_text=str(raw.get("status") or ""),
            tests=tests,
        )
