"""Configuration loading and validation.

Usage:
    config = load("sonar-ingest.yaml")        # raises ConfigError on bad config
    policy = config.recovery_policy()          # strict / tolerant
    generate_template("sonar-ingest.yaml")    # writes example file to disk
"""

import codecs
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from sonar_ingest.recovery import ErrorRecoveryPolicy

DEFAULT_CONFIG_PATH = "sonar-ingest.yaml"
DEFAULT_ENCODING = "UTF-8"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass
class Config:
    project_key: str
    base_dir: Path = Path(".")
    error_recovery: bool = True
    report_paths: list[str] = field(default_factory=list)
    xslt: str | None = None
    encoding: str = DEFAULT_ENCODING
    compilation_database: str | None = None
    build_logs: list[str] = field(default_factory=list)
    repository: str = "cxx"

    def recovery_policy(self) -> ErrorRecoveryPolicy:
        return ErrorRecoveryPolicy(tolerant=self.error_recovery)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load(config_path: str = DEFAULT_CONFIG_PATH) -> Config:
    """Load and validate configuration from a YAML file.

    Environment variables override file values:
        SONAR_INGEST_ERROR_RECOVERY   recovery.error_recovery (true/false)
        SONAR_INGEST_XSLT             xunit.xslt

    ``project.base_dir`` is resolved relative to the config file.

    Raises:
        ConfigError: if the file is missing, malformed, or a field is invalid.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `sonar-ingest init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")

    errors: list[str] = []
    project = _section(raw, "project", errors)
    recovery = _section(raw, "recovery", errors)
    xunit = _section(raw, "xunit", errors)
    reports = _section(raw, "reports", errors)
    build = _section(raw, "build", errors)
    issues = _section(raw, "issues", errors)

    error_recovery = recovery.get("error_recovery", True)
    env_recovery = os.environ.get("SONAR_INGEST_ERROR_RECOVERY")
    if env_recovery is not None:
        error_recovery = _parse_bool(env_recovery, "SONAR_INGEST_ERROR_RECOVERY", errors)
    elif not isinstance(error_recovery, bool):
        errors.append("  - 'recovery.error_recovery' must be true or false")

    base_dir = Path(str(project.get("base_dir") or "."))
    if not base_dir.is_absolute():
        base_dir = path.parent / base_dir

    config = Config(
        project_key=str(project.get("key") or "").strip(),
        base_dir=base_dir.resolve(),
        error_recovery=bool(error_recovery),
        report_paths=_string_list(xunit, "report_paths", "xunit", errors),
        xslt=os.environ.get("SONAR_INGEST_XSLT") or xunit.get("xslt") or None,
        encoding=str(reports.get("encoding") or DEFAULT_ENCODING).strip(),
        compilation_database=build.get("compilation_database") or None,
        build_logs=_string_list(build, "build_logs", "build", errors),
        repository=str(issues.get("repository") or "cxx").strip(),
    )
    _validate(config, errors)
    return config


def _validate(config: Config, errors: list[str]) -> None:
    """Raise ConfigError if any field is invalid."""
    if not config.project_key:
        errors.append("  - 'project.key' is missing")
    try:
        codecs.lookup(config.encoding)
    except LookupError:
        errors.append(f"  - 'reports.encoding' is not a known encoding: '{config.encoding}'")
    if not config.repository:
        errors.append("  - 'issues.repository' must not be empty")

    if errors:
        raise ConfigError("Invalid configuration:\n" + "\n".join(errors))


def _section(raw: dict, name: str, errors: list[str]) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        errors.append(f"  - '{name}' must be a mapping")
        return {}
    return value


def _string_list(section: dict, key: str, prefix: str, errors: list[str]) -> list[str]:
    value = section.get(key) or []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        errors.append(f"  - '{prefix}.{key}' must be a list of path patterns")
        return []
    return value


def _parse_bool(value: str, name: str, errors: list[str]) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    errors.append(f"  - '{name}' must be true or false, got '{value}'")
    return True


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
project:
  key: "my-project"
  base_dir: "."                 # relative to this file

recovery:
  error_recovery: true          # false = strict: abort on the first bad report

xunit:
  report_paths:
    - "build/test-results/**/*.xml"
  xslt: null                    # e.g. "cppunit-1.x-to-junit-1.0.xsl" or an URL

reports:
  encoding: "UTF-8"             # build logs, and XML reports without declaration

build:
  compilation_database: null    # e.g. "build/compile_commands.json"
  build_logs: []                # MSBuild logs, detailed verbosity

issues:
  repository: "cxx"
"""


def generate_template(output_path: str = DEFAULT_CONFIG_PATH) -> None:
    """Write a template sonar-ingest.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists.
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
