"""Configuration loading and validation.

Usage:
    config = load("ci-signal-report.yaml")      # raises ConfigError on bad config
    config = load()                             # default file if present, else env only
    generate_template("ci-signal-report.yaml")  # writes example file to disk
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = "ci-signal-report.yaml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------

@dataclass
class GithubSettings:
    api_url: str = "https://api.github.com"
    owner: str = "kubernetes"
    repo: str = "kubernetes"
    # CI signal project board and its fixed columns
    project_id: int = 2093513
    new_column_id: int = 4212817
    in_flight_column_id: int = 4212819
    observing_column_id: int = 4212821
    resolved_column_name: str = "Resolved"
    issue_labels: str = "kind/failing-test"
    since_days: int | None = None
    page_size: int = 100


@dataclass
class DashboardSettings:
    base_url: str = "https://testgrid.k8s.io"
    release_versions: list[str] = field(default_factory=list)


@dataclass
class Emojis:
    not_yet_started: str = "\U0001F914"
    in_flight: str = "\U0001F6EB"
    observing: str = "\U0001F440"
    resolved: str = "\U0001F389"
    failing_tests: str = "\U0001F6A8"
    master_blocking: str = "\U000026D4"
    master_informing: str = "\U0001F4A1"
    status_failing: str = "\U0001F534"
    status_flaky: str = "\U0001F7E1"
    status_new_test: str = "\U0001F195"
    priority: str = "\U0001F525"
    kind: str = "\U0001F3F7"
    stale_old: str = "\U0001F578"
    fresh: str = "\U0001F331"


@dataclass
class Config:
    token: str
    github: GithubSettings = field(default_factory=GithubSettings)
    testgrid: DashboardSettings = field(default_factory=DashboardSettings)
    emojis: Emojis = field(default_factory=Emojis)
    max_workers: int = 8
    max_concurrent_requests: int = 8
    timeout: int = 30
    retries: int = 3
    backoff: float = 0.5


@dataclass
class Flags:
    """Per-run switches supplied on the command line."""

    short: bool = False
    emoji_off: bool = False


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str | None = None) -> Config:
    """Load and validate configuration.

    When *config_path* is None, ``ci-signal-report.yaml`` in the working
    directory is read if it exists; otherwise defaults are used. An explicit
    path that does not exist is an error.

    Environment variables GITHUB_TOKEN and CI_REPORT_RELEASE_VERSIONS
    (comma separated) override file values.

    Raises:
        ConfigError: if the file is missing, malformed, or required fields
                     are absent.
    """
    raw: dict = {}
    if config_path is None:
        if Path(DEFAULT_CONFIG_PATH).exists():
            raw = _read_yaml(DEFAULT_CONFIG_PATH)
    else:
        if not Path(config_path).exists():
            raise ConfigError(
                f"Config file not found: '{config_path}'\n"
                "Run `python -m ci_signal_report init` to generate a template."
            )
        raw = _read_yaml(config_path)

    github_raw = raw.get("github") or {}
    testgrid_raw = raw.get("testgrid") or {}

    token = os.environ.get("GITHUB_TOKEN") or github_raw.get("token", "")
    env_versions = os.environ.get("CI_REPORT_RELEASE_VERSIONS")
    if env_versions:
        versions = [v.strip() for v in env_versions.split(",") if v.strip()]
    else:
        versions = [str(v) for v in testgrid_raw.get("release_versions") or []]

    config = Config(
        token=str(token).strip(),
        github=_build(GithubSettings, github_raw, "github"),
        testgrid=DashboardSettings(
            base_url=str(testgrid_raw.get("base_url") or DashboardSettings.base_url),
            release_versions=versions,
        ),
        emojis=_build(Emojis, raw.get("emojis") or {}, "emojis"),
        **{k: raw[k] for k in ("max_workers", "max_concurrent_requests", "timeout", "retries", "backoff")
           if k in raw},
    )
    _validate(config)
    return config


def _read_yaml(config_path: str) -> dict:
    try:
        with Path(config_path).open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")
    return raw


def _build(cls, values: Any, section: str):
    """Instantiate a settings dataclass from a YAML mapping, ignoring ``token``."""
    if not isinstance(values, dict):
        raise ConfigError(f"'{section}' must be a mapping.")
    known = {f.name for f in fields(cls)}
    unknown = set(values) - known - {"token"}
    if unknown:
        raise ConfigError(f"Unknown key(s) in '{section}': {', '.join(sorted(unknown))}")
    return cls(**{k: v for k, v in values.items() if k in known})


def _as_int(value: Any, key: str, errors: list[str]) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        errors.append(f"  - '{key}' must be an integer")
        return None


def _validate(config: Config) -> None:
    """Raise ConfigError if required fields are missing or out of range."""
    errors: list[str] = []

    if not config.token:
        errors.append(
            "  - 'github.token' is missing (or set the GITHUB_TOKEN environment variable)"
        )
    if not config.github.owner or not config.github.repo:
        errors.append("  - 'github.owner' and 'github.repo' must both be set")
    page_size = _as_int(config.github.page_size, "github.page_size", errors)
    if page_size is not None and not 1 <= page_size <= 100:
        errors.append("  - 'github.page_size' must be between 1 and 100")
    if config.github.since_days is not None:
        since_days = _as_int(config.github.since_days, "github.since_days", errors)
        if since_days is not None and since_days < 0:
            errors.append("  - 'github.since_days' must not be negative")
    if not config.testgrid.base_url:
        errors.append("  - 'testgrid.base_url' is missing")
    for name in ("max_workers", "max_concurrent_requests", "timeout"):
        value = _as_int(getattr(config, name), name, errors)
        if value is not None and value < 1:
            errors.append(f"  - '{name}' must be at least 1")
    retries = _as_int(config.retries, "retries", errors)
    if retries is not None and retries < 0:
        errors.append("  - 'retries' must not be negative")

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
github:
  token: "ghp_xxxxxxxxxxxx"       # or set GITHUB_TOKEN
  owner: "kubernetes"
  repo: "kubernetes"
  project_id: 2093513             # CI signal board
  new_column_id: 4212817
  in_flight_column_id: 4212819
  observing_column_id: 4212821
  resolved_column_name: "Resolved"
  issue_labels: "kind/failing-test"
  # since_days: 30

testgrid:
  base_url: "https://testgrid.k8s.io"
  release_versions: []            # e.g. ["1.30", "1.29"], or CI_REPORT_RELEASE_VERSIONS

max_workers: 8
max_concurrent_requests: 8
timeout: 30
retries: 3
"""


def generate_template(output_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write a template ci-signal-report.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting secrets).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
