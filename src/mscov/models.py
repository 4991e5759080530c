"""Normalized coverage data model.

Every report format is translated into these types.  Counts and percentages
are always derived from the per-line status map, never stored separately.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


class CoverageParseError(Exception):
    """Error parsing a coverage report."""


class LineCoverageStatus(Enum):
    NOT_COVERED = "not_covered"
    PARTIALLY_COVERED = "partially_covered"
    COVERED = "covered"

    @property
    def is_hit(self) -> bool:
        """Return True if the line counts towards covered lines."""
        return self is not LineCoverageStatus.NOT_COVERED


class CoverageFormat(Enum):
    """Coverage report format identifiers."""

    COBERTURA = "cobertura"
    OPENCOVER = "opencover"
    VISUAL_STUDIO_BINARY = "visualstudio"
    UNKNOWN = "unknown"


def _percentage(covered: int, coverable: int) -> float:
    if coverable == 0:
        return 0.0
    return (covered / coverable) * 100.0


@dataclass
class FileCoverageRecord:
    """Coverage data for a single source file."""

    file_path: str
    """Path as recorded by the tool that produced the report (not normalized)."""

    line_status: dict[int, LineCoverageStatus] = field(default_factory=dict)
    """1-based line number → status."""

    def set_line(self, line_number: int, status: LineCoverageStatus) -> None:
        """Record *status* for *line_number*; a later call for the same line wins."""
        self.line_status[line_number] = status

    @property
    def coverable_lines(self) -> int:
        """Number of instrumented lines."""
        return len(self.line_status)

    @property
    def covered_lines(self) -> int:
        """Number of lines that are covered or partially covered."""
        return sum(1 for status in self.line_status.values() if status.is_hit)

    @property
    def coverage_percentage(self) -> float:
        """Return line coverage percentage (0.0-100.0), 0.0 for files with no lines."""
        return _percentage(self.covered_lines, self.coverable_lines)

    @property
    def uncovered_lines(self) -> list[int]:
        return sorted(
            line
            for line, status in self.line_status.items()
            if status is LineCoverageStatus.NOT_COVERED
        )

    @property
    def partially_covered_lines(self) -> list[int]:
        return sorted(
            line
            for line, status in self.line_status.items()
            if status is LineCoverageStatus.PARTIALLY_COVERED
        )


@dataclass(frozen=True)
class ProjectCoverageSummary:
    """Aggregate coverage for one project.

    The percentage is computed from summed line counts, so large files weigh
    more than small ones.
    """

    name: str
    coverable_lines: int = 0
    covered_lines: int = 0
    file_count: int = 0

    @property
    def coverage_percentage(self) -> float:
        return _percentage(self.covered_lines, self.coverable_lines)

    @classmethod
    def from_records(
        cls, name: str, records: Iterable[FileCoverageRecord]
    ) -> ProjectCoverageSummary:
        """Build a summary by summing counts across *records*."""
        coverable = 0
        covered = 0
        count = 0
        for record in records:
            coverable += record.coverable_lines
            covered += record.covered_lines
            count += 1
        return cls(name=name, coverable_lines=coverable, covered_lines=covered, file_count=count)


@dataclass
class ParsedReport:
    """Output of a single parser run over one report file."""

    format: CoverageFormat
    source_path: Path
    files: dict[str, FileCoverageRecord] = field(default_factory=dict)
    """Raw report path → record."""

    overall_percentage: float = 0.0
    """Tool-reported overall percentage (line-rate or sequence-point ratio)."""

    project_name: str = ""

    notes: list[str] = field(default_factory=list)
    """Informational messages (e.g. unsupported-format placeholders)."""


@dataclass
class CoverageSnapshot:
    """Result of one full scan.

    A snapshot is built once per scan and never mutated after being handed
    to callers.
    """

    files: dict[str, FileCoverageRecord] = field(default_factory=dict)
    """Normalized absolute path → record."""

    projects: dict[str, ProjectCoverageSummary] = field(default_factory=dict)

    source_path: str | None = None
    """Primary report file used for this snapshot."""

    format: CoverageFormat = CoverageFormat.UNKNOWN

    project_of: dict[str, str] = field(default_factory=dict)
    """Normalized path → project name the file was attributed to."""

    notes: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> CoverageSnapshot:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.files

    @property
    def coverable_lines(self) -> int:
        return sum(record.coverable_lines for record in self.files.values())

    @property
    def covered_lines(self) -> int:
        return sum(record.covered_lines for record in self.files.values())

    @property
    def overall_percentage(self) -> float:
        """Solution-level percentage from summed line counts."""
        return _percentage(self.covered_lines, self.coverable_lines)

    def summary_view(self) -> dict[str, float]:
        """Return project name → coverage percentage."""
        return {name: summary.coverage_percentage for name, summary in self.projects.items()}

    def to_dict(self, *, include_lines: bool = False) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        files: list[dict[str, Any]] = []
        for path in sorted(self.files):
            record = self.files[path]
            entry: dict[str, Any] = {
                "path": path,
                "project": self.project_of.get(path, ""),
                "coverable_lines": record.coverable_lines,
                "covered_lines": record.covered_lines,
                "coverage_percentage": round(record.coverage_percentage, 2),
            }
            if include_lines:
                entry["lines"] = {
                    str(line): status.value for line, status in sorted(record.line_status.items())
                }
            files.append(entry)

        return {
            "source_path": self.source_path,
            "format": self.format.value,
            "overall_percentage": round(self.overall_percentage, 2),
            "projects": [
                {
                    "name": summary.name,
                    "coverable_lines": summary.coverable_lines,
                    "covered_lines": summary.covered_lines,
                    "file_count": summary.file_count,
                    "coverage_percentage": round(summary.coverage_percentage, 2),
                }
                for summary in sorted(self.projects.values(), key=lambda s: s.name)
            ],
            "files": files,
            "notes": list(self.notes),
        }


class ScanStatus(Enum):
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass
class ScanResult:
    """Terminal outcome of a scan.

    "No coverage data yet" (``EMPTY``) is distinct from a failure (``ERROR``).
    """

    status: ScanStatus
    message: str
    snapshot: CoverageSnapshot = field(default_factory=CoverageSnapshot.empty)

    @property
    def succeeded(self) -> bool:
        return self.status in {ScanStatus.OK, ScanStatus.EMPTY}

    def to_dict(self, *, include_lines: bool = False) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "snapshot": self.snapshot.to_dict(include_lines=include_lines),
        }
