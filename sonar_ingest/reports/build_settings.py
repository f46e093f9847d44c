"""Preprocessor settings from compilation databases and build logs.

Functions:
    parse_compilation_database(path, encoding)   -> BuildSettings  (per file)
    parse_build_log(path, encoding)              -> BuildSettings  (global)

A compilation database is the ``compile_commands.json`` format written by
CMake and others. Build logs are MSBuild logs at detailed verbosity or above,
where every compiler call appears as a ``CL.exe`` command line.
"""

import json
import logging
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from sonar_ingest.errors import EmptyReportError, MalformedReportError

logger = logging.getLogger(__name__)

_CL_EXE_RE = re.compile(r"\bcl(?:\.exe)?\s+(?P<args>.*)$", re.IGNORECASE)


@dataclass
class FileSettings:
    defines: dict[str, str] = field(default_factory=dict)
    include_dirs: list[str] = field(default_factory=list)


@dataclass
class BuildSettings:
    defines: dict[str, str] = field(default_factory=dict)
    include_dirs: list[str] = field(default_factory=list)
    files: dict[str, FileSettings] = field(default_factory=dict)

    def merge(self, other: "BuildSettings") -> None:
        self.defines.update(other.defines)
        for directory in other.include_dirs:
            if directory not in self.include_dirs:
                self.include_dirs.append(directory)
        self.files.update(other.files)

    def to_dict(self) -> dict:
        return {
            "defines": dict(sorted(self.defines.items())),
            "include_dirs": self.include_dirs,
            "files": {
                path: {"defines": dict(sorted(s.defines.items())), "include_dirs": s.include_dirs}
                for path, s in sorted(self.files.items())
            },
        }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_compilation_database(path: Path | str, encoding: str = "UTF-8") -> BuildSettings:
    """Read per-file defines and include directories from compile_commands.json.

    Raises:
        EmptyReportError:     the file is empty
        MalformedReportError: unreadable, not JSON, or not a list of entries
    """
    path = Path(path)
    text = _read_text(path, encoding)
    try:
        entries = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedReportError(path, f"invalid JSON: {exc}") from exc
    if not isinstance(entries, list):
        raise MalformedReportError(path, "a compilation database must be a JSON array")

    settings = BuildSettings()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or "file" not in entry:
            raise MalformedReportError(path, f"entry #{index} has no 'file'")
        directory = Path(entry.get("directory") or path.parent)
        if "arguments" in entry:
            arguments = [str(a) for a in entry["arguments"]]
        elif "command" in entry:
            try:
                arguments = shlex.split(entry["command"])
            except ValueError as exc:
                raise MalformedReportError(path, f"entry #{index}: {exc}") from exc
        else:
            raise MalformedReportError(path, f"entry #{index} has neither 'command' nor 'arguments'")

        file_settings = FileSettings()
        _apply_options(arguments, file_settings.defines, file_settings.include_dirs, directory, "-")
        source = (directory / entry["file"]).resolve()
        settings.files[str(source)] = file_settings

    logger.debug("Read %d compilation unit(s) from '%s'", len(settings.files), path)
    return settings


def parse_build_log(path: Path | str, encoding: str = "UTF-8") -> BuildSettings:
    """Collect the defines and include directories of every cl.exe call.

    Raises:
        EmptyReportError:     the log is empty
        MalformedReportError: unreadable or not decodable with *encoding*
    """
    path = Path(path)
    settings = BuildSettings()
    calls = 0
    for line in _read_text(path, encoding).splitlines():
        match = _CL_EXE_RE.search(line)
        if not match:
            continue
        calls += 1
        arguments = [a.strip('"') for a in shlex.split(match.group("args"), posix=False)]
        _apply_options(arguments, settings.defines, settings.include_dirs, None, "/-")

    logger.debug("Found %d compiler call(s) in '%s'", calls, path)
    return settings


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _read_text(path: Path, encoding: str) -> str:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise MalformedReportError(path, f"cannot read: {exc}") from exc
    if not data.strip():
        raise EmptyReportError(path)
    try:
        return data.decode(encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise MalformedReportError(path, f"cannot decode as {encoding}: {exc}") from exc


def _apply_options(
    arguments: list[str],
    defines: dict[str, str],
    include_dirs: list[str],
    directory: Path | None,
    prefixes: str,
) -> None:
    """Read ``-D``/``-I`` (or ``/D``/``/I``) options, attached or separate."""
    pending: str | None = None
    for arg in arguments:
        if pending is not None:
            _store(pending, arg, defines, include_dirs, directory)
            pending = None
            continue
        if len(arg) < 2 or arg[0] not in prefixes or arg[1] not in "DI":
            continue
        if len(arg) == 2:
            pending = arg[1]
        else:
            _store(arg[1], arg[2:], defines, include_dirs, directory)


def _store(
    option: str,
    value: str,
    defines: dict[str, str],
    include_dirs: list[str],
    directory: Path | None,
) -> None:
    value = value.strip('"')
    if option == "D":
        name, sep, macro = value.partition("=")
        defines[name] = macro if sep else "1"
        return
    include = Path(value)
    if directory is not None and not include.is_absolute():
        include = (directory / include).resolve()
    if str(include) not in include_dirs:
        include_dirs.append(str(include))
