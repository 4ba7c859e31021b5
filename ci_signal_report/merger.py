"""Fan-in of concurrently produced report sections.

Usage:
    merger = ReportMerger(max_workers=8)
    report = merger.merge([(field, produce_section), ...])

Each producer is a callable returning the records of its section. Producers
run on a bounded thread pool; results are collected in completion order and
``merge`` returns only after every producer has finished.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable

from ci_signal_report.client import CIReportError
from ci_signal_report.models import Record, Report, ReportField

logger = logging.getLogger(__name__)

Producer = Callable[[], list[Record]]


class ReportMerger:
    def __init__(self, max_workers: int = 8) -> None:
        self._max_workers = max_workers

    def merge(self, producers: Iterable[tuple[ReportField, Producer]]) -> Report:
        """Run every producer and collect its section into one Report.

        A producer raising CIReportError marks its section as failed in
        ``Report.failures``; the other sections are still collected. A field
        produced twice keeps the last result and is listed in
        ``Report.collisions``.
        """
        report = Report()
        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="section") as executor:
            futures = {
                executor.submit(produce): report_field
                for report_field, produce in producers
            }
            for future in as_completed(futures):
                report_field = futures[future]
                try:
                    records = future.result()
                except CIReportError as exc:
                    logger.error("Section '%s' failed: %s", report_field.title, exc)
                    report.failures[report_field] = str(exc)
                    continue

                if report_field in report.sections:
                    logger.warning("Section '%s' produced twice; keeping the last result", report_field.title)
                    report.collisions.append(report_field)
                report.sections[report_field] = records
                logger.debug("Section '%s' collected (%d records)", report_field.title, len(records))
        return report
