from ci_signal_report.cli import cli

cli(prog_name="ci-signal-report")
