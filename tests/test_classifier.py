"""Tests for ci_signal_report/classifier.py"""

from datetime import datetime, timedelta, timezone

import pytest

from ci_signal_report.classifier import (
    NoteMarkers,
    build_notes,
    card_sig,
    classify_issue,
    extract_sigs,
    filter_issues,
    is_excluded,
)
from ci_signal_report.config import Emojis
from ci_signal_report.models import Issue

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
PLAIN = NoteMarkers.from_emojis(Emojis(), emoji_off=True)


def _issue(number=1, labels=(), url=None, created_days_ago=30, milestone=None, comments=2) -> Issue:
    return Issue(
        number=number,
        html_url=url or f"https://github.com/kubernetes/kubernetes/issues/{number}",
        title=f"[Failing Test] test {number}",
        labels=list(labels),
        milestone=milestone,
        comments=comments,
        created_at=NOW - timedelta(days=created_days_ago),
        updated_at=NOW - timedelta(days=1),
    )


# ---------------------------------------------------------------------------
# Exclusion
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("label", [
    "priority/backlog", "triage/accepted", "lifecycle/rotten", "lifecycle/stale",
])
def test_excluded_labels(label):
    assert is_excluded(_issue(labels=["kind/failing-test", label]))


def test_pull_request_is_excluded():
    assert is_excluded(_issue(url="https://github.com/kubernetes/kubernetes/pull/7"))


def test_regular_issue_is_included():
    assert not is_excluded(_issue(labels=["kind/failing-test", "priority/critical-urgent"]))


def test_filtering_is_idempotent():
    issues = [
        _issue(1, ["sig/node"]),
        _issue(2, ["lifecycle/stale"]),
        _issue(3, url="https://github.com/kubernetes/kubernetes/pull/3"),
        _issue(4, ["triage/accepted", "sig/network"]),
        _issue(5),
    ]
    once = filter_issues(issues)
    assert [i.number for i in once] == [1, 5]
    assert filter_issues(once) == once


# ---------------------------------------------------------------------------
# SIG extraction
# ---------------------------------------------------------------------------

def test_extract_sigs_keeps_all_in_label_order():
    assert extract_sigs(["kind/bug", "sig/node", "sig/api-machinery"]) == ["node", "api-machinery"]


def test_extract_sigs_ignores_similar_labels():
    assert extract_sigs(["wg/sig/x", "signal/foo"]) == []


@pytest.mark.parametrize("labels,expected", [
    (["sig/cli"], "CLI"),
    (["sig/cluster-lifecycle"], "cluster-lifecycle"),
    (["sig/node"], "Node"),
    (["sig/api-machinery"], "Api-Machinery"),
    (["kind/bug"], ""),
])
def test_card_sig_normalization(labels, expected):
    assert card_sig(labels) == expected


def test_card_sig_uses_first_match():
    assert card_sig(["sig/network", "sig/node"]) == "Network"


# ---------------------------------------------------------------------------
# Age highlight & notes
# ---------------------------------------------------------------------------

def test_old_issue_is_highlighted_stale():
    assert classify_issue(_issue(created_days_ago=120), NOW, PLAIN).age_highlight == "[old]"


def test_new_issue_is_highlighted_fresh():
    assert classify_issue(_issue(created_days_ago=2), NOW, PLAIN).age_highlight == "[new]"


def test_mid_age_issue_has_no_highlight():
    assert classify_issue(_issue(created_days_ago=30), NOW, PLAIN).age_highlight == ""


def test_emoji_highlight_uses_configured_emojis():
    emojis = Emojis(fresh="*")
    markers = NoteMarkers.from_emojis(emojis)
    assert classify_issue(_issue(created_days_ago=1), NOW, markers).age_highlight == "*"


def test_notes_summary_line_always_present():
    notes = build_notes(_issue(comments=4), PLAIN)
    assert notes == ["created 2026-09-19, updated 2026-10-18, 4 comments"]


def test_notes_combine_priority_and_kind_labels():
    issue = _issue(labels=["kind/failing-test", "priority/important-soon", "sig/node"])
    notes = build_notes(issue, PLAIN)
    assert notes[1] == "[priority] priority/important-soon [kind] kind/failing-test"


def test_notes_include_milestone():
    notes = build_notes(_issue(milestone="v1.31"), PLAIN)
    assert notes[-1] == "milestone: v1.31"


def test_classify_issue_joins_all_sigs():
    result = classify_issue(_issue(labels=["sig/node", "sig/storage"]), NOW, PLAIN)
    assert result.include
    assert result.sigs == ["node", "storage"]
    assert result.sig == "node, storage"
