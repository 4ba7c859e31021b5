"""Tests for ci_signal_report/cli.py"""

import json

import pytest
from click.testing import CliRunner

from ci_signal_report.cli import cli
from ci_signal_report.models import IssueRecord, Report, ReportField


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.delenv("CI_REPORT_RELEASE_VERSIONS", raising=False)
    return CliRunner()


@pytest.fixture
def fake_report(monkeypatch):
    calls = {}

    def fake_generate_report(config, flags):
        calls["config"] = config
        calls["flags"] = flags
        record = IssueRecord(id=1, url="https://github.com/k/k/issues/1", title="flaky", sig="Node")
        return Report(sections={ReportField("?", "New/Not Yet Started"): [record]})

    monkeypatch.setattr("ci_signal_report.reports.generate_report", fake_generate_report)
    return calls


def test_init_writes_template(runner, tmp_path):
    result = runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    assert (tmp_path / "ci-signal-report.yaml").exists()


def test_init_refuses_to_overwrite(runner, tmp_path):
    (tmp_path / "ci-signal-report.yaml").write_text("x")
    result = runner.invoke(cli, ["init"])
    assert result.exit_code == 1


def test_report_without_token_fails_before_fetching(runner, fake_report):
    result = runner.invoke(cli, ["report"])
    assert result.exit_code == 1
    assert "github.token" in result.output
    assert fake_report == {}


def test_report_text(runner, fake_report, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    result = runner.invoke(cli, ["report", "--short", "--release-version", "1.30"])

    assert result.exit_code == 0
    assert "NEW/NOT YET STARTED" in result.output
    assert "- #1 https://github.com/k/k/issues/1 flaky" in result.output
    assert fake_report["flags"].short
    assert fake_report["config"].testgrid.release_versions == ["1.30"]


def test_report_json_to_file(runner, fake_report, monkeypatch, tmp_path):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    result = runner.invoke(cli, ["report", "--json", "--emoji-off", "--output", "out.json"])

    assert result.exit_code == 0
    data = json.loads((tmp_path / "out.json").read_text(encoding="utf-8"))
    assert data["sections"][0]["title"] == "New/Not Yet Started"
    assert data["sections"][0]["emoji"] == ""


def test_report_exits_nonzero_when_every_section_failed(runner, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    monkeypatch.setattr(
        "ci_signal_report.reports.generate_report",
        lambda config, flags: Report(failures={ReportField("!", "Failing Tests"): "HTTP 502"}),
    )
    result = runner.invoke(cli, ["report"])

    assert result.exit_code == 1
    assert "- Failing Tests: HTTP 502" in result.output
    assert "Every section failed to fetch." in result.output


def test_report_invalid_numeric_config(runner, tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_test")
    (tmp_path / "ci-signal-report.yaml").write_text("github:\n  page_size: lots\n", encoding="utf-8")
    result = runner.invoke(cli, ["report"])

    assert result.exit_code == 1
    assert "Configuration error" in result.output
    assert "must be an integer" in result.output
