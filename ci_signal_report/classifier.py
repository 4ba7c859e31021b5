"""Per-issue classification: exclusion, SIG extraction, age highlight, notes.

Functions:
    is_excluded(issue)                     -> bool
    filter_issues(issues)                  -> list[Issue]
    extract_sigs(labels)                   -> list[str]   (issue path)
    card_sig(labels)                       -> str         (card path)
    classify_issue(issue, now, markers)    -> Classification
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from ci_signal_report.config import Emojis
from ci_signal_report.models import Issue

EXCLUDED_LABELS = frozenset({
    "priority/backlog",
    "triage/accepted",
    "lifecycle/rotten",
    "lifecycle/stale",
})

STALE_AFTER = timedelta(days=90)
FRESH_WITHIN = timedelta(days=5)

_SIG_LABEL_RE = re.compile(r"^sig/(?P<name>.+)$")


@dataclass(frozen=True)
class NoteMarkers:
    """Markers used in issue notes and highlights."""

    priority: str
    kind: str
    stale_old: str
    fresh: str

    @classmethod
    def from_emojis(cls, emojis: Emojis, emoji_off: bool = False) -> "NoteMarkers":
        if emoji_off:
            return cls(priority="[priority]", kind="[kind]", stale_old="[old]", fresh="[new]")
        return cls(
            priority=emojis.priority,
            kind=emojis.kind,
            stale_old=emojis.stale_old,
            fresh=emojis.fresh,
        )


@dataclass
class Classification:
    include: bool
    sig: str
    sigs: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    age_highlight: str = ""


# ---------------------------------------------------------------------------
# Exclusion
# ---------------------------------------------------------------------------

def is_pull_request(issue: Issue) -> bool:
    return "/pull/" in issue.html_url


def is_excluded(issue: Issue) -> bool:
    """True when the issue is triaged away or is actually a pull request."""
    return is_pull_request(issue) or any(label in EXCLUDED_LABELS for label in issue.labels)


def filter_issues(issues: list[Issue]) -> list[Issue]:
    return [issue for issue in issues if not is_excluded(issue)]


# ---------------------------------------------------------------------------
# SIG extraction
# ---------------------------------------------------------------------------

def extract_sigs(labels: list[str]) -> list[str]:
    """Return the name of every ``sig/<name>`` label, in label order."""
    sigs = []
    for label in labels:
        match = _SIG_LABEL_RE.match(label)
        if match:
            sigs.append(match.group("name"))
    return sigs


def normalize_sig(name: str) -> str:
    """``cli`` -> ``CLI``, ``cluster-lifecycle`` stays lower case, else title case."""
    if name.lower() == "cli":
        return "CLI"
    if name.lower() == "cluster-lifecycle":
        return "cluster-lifecycle"
    return name.title()


def card_sig(labels: list[str]) -> str:
    """Normalized name of the first SIG label, or an empty string."""
    sigs = extract_sigs(labels)
    return normalize_sig(sigs[0]) if sigs else ""


# ---------------------------------------------------------------------------
# Highlight & notes
# ---------------------------------------------------------------------------

def age_highlight(issue: Issue, now: datetime, markers: NoteMarkers) -> str:
    if issue.created_at is None:
        return ""
    age = now - issue.created_at
    highlight = ""
    if age > STALE_AFTER:
        highlight += markers.stale_old
    if age <= FRESH_WITHIN:
        highlight += markers.fresh
    return highlight


def _format_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "unknown"


def build_notes(issue: Issue, markers: NoteMarkers) -> list[str]:
    notes = [
        f"created {_format_date(issue.created_at)}, "
        f"updated {_format_date(issue.updated_at)}, "
        f"{issue.comments} comments"
    ]

    label_parts = [
        f"{markers.priority} {label}" for label in issue.labels if label.startswith("priority/")
    ]
    label_parts += [
        f"{markers.kind} {label}" for label in issue.labels if label.startswith("kind/")
    ]
    if label_parts:
        notes.append(" ".join(label_parts))

    if issue.milestone:
        notes.append(f"milestone: {issue.milestone}")
    return notes


def classify_issue(
    issue: Issue,
    now: datetime | None = None,
    markers: NoteMarkers | None = None,
) -> Classification:
    """Classify one issue of the failing-test listing."""
    now = now or datetime.now(timezone.utc)
    markers = markers or NoteMarkers.from_emojis(Emojis())
    sigs = extract_sigs(issue.labels)
    return Classification(
        include=not is_excluded(issue),
        sig=", ".join(sigs),
        sigs=sigs,
        notes=build_notes(issue, markers),
        age_highlight=age_highlight(issue, now, markers),
    )
