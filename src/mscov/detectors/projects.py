"""Test project detection — find MSTest projects and attribute reports to them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

logger = logging.getLogger(__name__)

PROJECT_FILE_SUFFIX = ".csproj"

DEFAULT_FRAMEWORK_MARKERS: tuple[str, ...] = ("MSTest.TestAdapter", "MSTest.TestFramework")

# Directories that never contain project sources worth scanning.
DEFAULT_SKIP_DIRS: frozenset[str] = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".vs",
        ".idea",
        "node_modules",
        "packages",
        "bin",
        "obj",
    }
)

UNKNOWN_PROJECT = "Unknown"


@dataclass(frozen=True)
class TestProject:
    """A project whose project file references the target test framework."""

    __test__ = False

    name: str
    project_file: Path
    directory: Path


def walk_files(root: Path, skip_dirs: frozenset[str]) -> list[Path]:
    """Recursively collect all files under *root*, skipping *skip_dirs*."""
    result: list[Path] = []
    try:
        entries = sorted(root.iterdir())
    except OSError:
        return result
    for child in entries:
        if child.is_dir():
            if child.name not in skip_dirs:
                result.extend(walk_files(child, skip_dirs))
        elif child.is_file():
            result.append(child)
    return result


def is_test_project(project_file: Path, markers: Sequence[str]) -> bool:
    """Return True if *project_file* mentions every marker in *markers*."""
    try:
        content = project_file.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Skipping unreadable project file %s: %s", project_file, e)
        return False
    return all(marker in content for marker in markers)


def find_test_projects(
    root: str | Path,
    *,
    markers: Sequence[str] = DEFAULT_FRAMEWORK_MARKERS,
    skip_dirs: frozenset[str] = DEFAULT_SKIP_DIRS,
) -> list[TestProject]:
    """Scan *root* for project files that reference all framework *markers*."""
    root_path = Path(root)
    if not root_path.is_dir():
        return []

    projects: list[TestProject] = []
    for path in walk_files(root_path, skip_dirs):
        if path.suffix.lower() != PROJECT_FILE_SUFFIX or path.name.startswith("."):
            continue
        if is_test_project(path, markers):
            projects.append(
                TestProject(name=path.stem, project_file=path, directory=path.parent.resolve())
            )

    logger.debug("Found %d test project(s) under %s", len(projects), root_path)
    return projects


def _is_within(path: Path, directory: Path) -> bool:
    """Case-insensitive containment check on resolved paths."""
    candidate = str(path).lower()
    base = str(directory).lower().rstrip("/\\")
    return candidate == base or candidate.startswith((base + "/", base + "\\"))


def belongs_to_projects(
    report_path: Path,
    projects: Iterable[TestProject],
    *,
    name_hint: str = "MSTest",
) -> bool:
    """Return True if the report at *report_path* can be attributed to *projects*.

    A report matches when its path mentions *name_hint* or when it lives
    inside one of the project directories.
    """
    if name_hint and name_hint in str(report_path):
        return True
    report_dir = report_path.resolve().parent
    return any(_is_within(report_dir, project.directory) for project in projects)


def resolve_project_name(report_path: Path) -> str:
    """Derive a project name from the directory layout around *report_path*.

    Walks upward from the report's directory and returns the stem of the first
    project file named after its own directory (``Foo/Foo.csproj``), or
    ``"Unknown"`` when the filesystem root is reached.
    """
    current = report_path.resolve().parent
    while True:
        candidate = current / f"{current.name}{PROJECT_FILE_SUFFIX}"
        if current.name and candidate.is_file():
            return candidate.stem
        if current.parent == current:
            return UNKNOWN_PROJECT
        current = current.parent


def project_for_source(source_path: Path, projects: Iterable[TestProject]) -> str | None:
    """Return the name of the innermost project directory containing *source_path*."""
    best: TestProject | None = None
    for project in projects:
        if _is_within(source_path, project.directory) and (
            best is None or len(str(project.directory)) > len(str(best.directory))
        ):
            best = project
    return best.name if best is not None else None
