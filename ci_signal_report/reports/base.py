"""Common interface of the report sources."""

from ci_signal_report.config import Config, Flags
from ci_signal_report.models import Report


class ReportSource:
    """A source contributes one or more sections to the final report.

    ``fetch`` returns a partial Report; sections that could not be produced
    are listed in ``Report.failures`` rather than raised.
    """

    name = "source"

    def fetch(self, config: Config, flags: Flags) -> Report:
        raise NotImplementedError
