"""Console and JSON presentation of a Report.

Both renderers sort explicitly (``Report.sorted_fields`` and ``sort_records``);
the order in which sections and records were collected is never used.
"""

import json
from dataclasses import asdict
from datetime import datetime, timezone
from itertools import groupby

from ci_signal_report.config import Flags
from ci_signal_report.models import SUMMARY_RECORD, IssueRecord, JobRecord, Report, ReportField, sort_records


def _header(report_field: ReportField, text: str, flags: Flags) -> str:
    if flags.emoji_off or not report_field.emoji:
        return text
    return f"{report_field.emoji} {text}"


def _issue_section(report_field: ReportField, records: list[IssueRecord], flags: Flags) -> list[str]:
    lines = [_header(report_field, report_field.title.upper(), flags)]
    if not records:
        lines.append("(no issues)")
        return lines

    for _, group in groupby(records, key=lambda r: r.sig.lower()):
        group = list(group)
        lines.append(f"SIG {group[0].sig or 'unknown'}")
        for record in group:
            highlight = f" {record.highlight}" if record.highlight else ""
            lines.append(f"- #{record.id} {record.url} {record.title}{highlight}")
            lines.extend(f"  - {note}" for note in record.notes)
        lines.append("")
    return lines


def _job_section(report_field: ReportField, records: list[JobRecord], flags: Flags) -> list[str]:
    lines = [_header(report_field, f"Tests in {report_field.title}", flags)]
    for record in records:
        if record.id == SUMMARY_RECORD:
            lines.extend(f"- {note}" for note in record.notes)
            lines.append("")
            if not flags.short:
                lines.append("Job details:")
            continue

        if flags.emoji_off:
            lines.append(f"{record.status} severity:{int(record.severity)}, {record.title}")
        else:
            lines.append(f"{record.status} {record.highlight} {record.title}")
        lines.append(f"- {record.url}")
        lines.extend(f"- {note}" for note in record.notes)
    return lines


def render_text(report: Report, flags: Flags) -> str:
    """Render the report as plain console text."""
    lines: list[str] = []
    for report_field in report.sorted_fields():
        records = sort_records(report[report_field])
        lines.append("")
        if any(isinstance(r, JobRecord) for r in records):
            lines.extend(_job_section(report_field, records, flags))
        else:
            lines.extend(_issue_section(report_field, records, flags))

    if report.failures:
        lines.append("")
        lines.append("Sections that could not be fetched:")
        for report_field in sorted(report.failures, key=lambda f: f.title.lower()):
            lines.append(f"- {report_field.title}: {report.failures[report_field]}")

    return "\n".join(lines).strip("\n") + "\n"


def report_to_dict(report: Report, flags: Flags) -> dict:
    sections = []
    for report_field in report.sorted_fields():
        sections.append({
            "title": report_field.title,
            "emoji": "" if flags.emoji_off else report_field.emoji,
            "records": [asdict(r) for r in sort_records(report[report_field])],
        })
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "sections": sections,
        "failures": [
            {"title": f.title, "error": report.failures[f]}
            for f in sorted(report.failures, key=lambda f: f.title.lower())
        ],
    }


def render_json(report: Report, flags: Flags, pretty: bool = False) -> str:
    return json.dumps(report_to_dict(report, flags), indent=2 if pretty else None, ensure_ascii=False)
