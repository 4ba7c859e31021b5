"""CLI entry point — command definitions using Click.

Commands:
    init      Generate a template config file
    report    Fetch GitHub and TestGrid signal and print the report
"""

import logging
import sys

import click

from ci_signal_report import __version__


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_config(ctx: click.Context, release_versions: tuple[str, ...]):
    """Load config before any request is made. Exits on error."""
    from ci_signal_report.config import ConfigError, load

    try:
        config = load(ctx.obj["config_path"])
    except ConfigError as exc:
        click.echo(f"Configuration error: {exc}", err=True)
        sys.exit(1)

    if release_versions:
        config.testgrid.release_versions = list(release_versions)
    return config


def _emit(text: str, output_path: str | None) -> None:
    """Write to stdout or to the file specified by --output."""
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        click.echo(f"Report written to '{output_path}'", err=True)
    else:
        click.echo(text)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=None,
              help="Path to the configuration file (default: ci-signal-report.yaml if present).")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable verbose logging.")
@click.version_option(__version__, prog_name="ci-signal-report")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """CI signal report — GitHub board triage state and TestGrid health."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="ci-signal-report.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template ci-signal-report.yaml file."""
    from ci_signal_report.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your GitHub token, or export GITHUB_TOKEN.")
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


# ---------------------------------------------------------------------------
# report
# ---------------------------------------------------------------------------

@cli.command("report")
@click.option("--short", is_flag=True, default=False,
              help="Summary only: skip Observing/Resolved and TestGrid job details.")
@click.option("--emoji-off", is_flag=True, default=False,
              help="Print plain text markers instead of emojis.")
@click.option("--json", "json_out", is_flag=True, default=False,
              help="Emit the report as JSON.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--output", "output_path", default=None,
              help="Write the report to a file instead of stdout.")
@click.option("--release-version", "release_versions", multiple=True,
              help="Also report <version>-blocking/-informing dashboards (repeatable).")
@click.pass_context
def report_command(ctx: click.Context, short: bool, emoji_off: bool, json_out: bool,
                   pretty: bool, output_path: str | None, release_versions: tuple[str, ...]) -> None:
    """Fetch GitHub and TestGrid data and print the CI signal report."""
    from ci_signal_report.config import Flags
    from ci_signal_report.render import render_json, render_text
    from ci_signal_report.reports import generate_report

    config = _load_config(ctx, release_versions)
    flags = Flags(short=short, emoji_off=emoji_off)

    if ctx.obj["verbose"]:
        click.echo(f"[verbose] Reporting on {config.github.owner}/{config.github.repo} "
                   f"and {len(config.testgrid.release_versions) + 1} TestGrid release(s)", err=True)

    report = generate_report(config, flags)

    if json_out:
        _emit(render_json(report, flags, pretty=pretty), output_path)
    else:
        _emit(render_text(report, flags), output_path)

    if report.failures and not report.sections:
        click.echo("Every section failed to fetch.", err=True)
        sys.exit(1)
