"""Project units: the project itself and the files analyzed inside it."""

from dataclasses import dataclass
from pathlib import Path

from sonar_ingest.metrics import FILE, PROJECT


@dataclass(frozen=True)
class Unit:
    """Anything a measure or an issue can be attached to."""

    key: str
    qualifier: str

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class InputFile(Unit):
    path: Path = Path()


class ProjectFileSystem:
    """Maps report- or analysis-relative paths to project units."""

    def __init__(self, base_dir: Path | str, project_key: str) -> None:
        self.base_dir = Path(base_dir).resolve()
        self.project = Unit(key=project_key, qualifier=PROJECT)

    def input_file(self, path: Path | str) -> InputFile | None:
        """Return the unit for *path*, or None if it is not a project file.

        Relative paths resolve from the base directory.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.base_dir / candidate
        candidate = candidate.resolve()
        if not candidate.is_file():
            return None
        try:
            relative = candidate.relative_to(self.base_dir)
        except ValueError:
            return None
        return InputFile(
            key=f"{self.project.key}:{relative.as_posix()}",
            qualifier=FILE,
            path=candidate,
        )
