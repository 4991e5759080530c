"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mscov.config import DisplayConfig
from mscov.models import LineCoverageStatus, ScanStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.status import Status

    from mscov.detectors.projects import TestProject
    from mscov.models import CoverageSnapshot, FileCoverageRecord, ScanResult

console = Console()

_MAX_FILE_PATH_LENGTH = 60
_MAX_RANGES_DISPLAY = 12

_STATUS_STYLE = {
    LineCoverageStatus.COVERED: ("green", "covered"),
    LineCoverageStatus.PARTIALLY_COVERED: ("yellow", "partial"),
    LineCoverageStatus.NOT_COVERED: ("red", "not covered"),
}


def _line_ranges(lines: Sequence[int]) -> list[str]:
    """Collapse sorted line numbers into ``"3-7"`` style ranges."""
    ranges: list[str] = []
    start: int | None = None
    prev: int | None = None
    for line in lines:
        if start is None:
            start = prev = line
            continue
        if prev is not None and line == prev + 1:
            prev = line
            continue
        ranges.append(f"{start}-{prev}" if start != prev else str(start))
        start = prev = line
    if start is not None:
        ranges.append(f"{start}-{prev}" if start != prev else str(start))
    return ranges


class CLIReporter:
    """Rich terminal output for coverage scans."""

    def __init__(self, display: DisplayConfig | None = None) -> None:
        self.console = console
        self.display = display or DisplayConfig()

    def print_header(self, title: str) -> None:
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        self.console.print(f"[dim]{message}[/dim]")

    def create_status(self, message: str) -> Status:
        """Create a Rich Status spinner for long-running operations."""
        return self.console.status(message)

    def _get_coverage_color(self, percentage: float) -> str:
        if percentage >= self.display.good_threshold:
            return "green"
        if percentage >= self.display.warn_threshold:
            return "yellow"
        return "red"

    def _pct(self, percentage: float, *, bold: bool = False) -> str:
        color = self._get_coverage_color(percentage)
        style = f"bold {color}" if bold else color
        return f"[{style}]{percentage:.1f}%[/{style}]"

    def _display_path(self, file_path: str, root: Path | None) -> str:
        shown = file_path
        if root is not None:
            try:
                shown = str(Path(file_path).relative_to(str(root).lower()))
            except ValueError:
                shown = file_path
        if len(shown) > _MAX_FILE_PATH_LENGTH:
            shown = "..." + shown[-(_MAX_FILE_PATH_LENGTH - 3) :]
        return shown

    # ── Scan output ───────────────────────────────────────────────

    def print_scan_result(self, result: ScanResult, *, root: Path | None = None) -> None:
        """Print the outcome of a scan, with tables when data was found."""
        if result.status is ScanStatus.ERROR:
            self.print_error(result.message)
            return
        if result.status is ScanStatus.CANCELLED:
            self.print_warning(result.message)
            return

        snapshot = result.snapshot
        for note in snapshot.notes:
            self.print_warning(note)

        if result.status is ScanStatus.EMPTY:
            self.print_info(result.message)
            return

        self.print_header("MSTest Coverage")
        self.print_success(result.message)
        if snapshot.source_path:
            self.print_info(f"Report: {snapshot.source_path} ({snapshot.format.value})")
        self.print_project_summary(snapshot)
        self.print_file_table(snapshot, root=root)

    def print_project_summary(self, snapshot: CoverageSnapshot) -> None:
        """Print per-project coverage with an overall row."""
        table = Table(title="Coverage by Project", title_style="bold cyan")
        table.add_column("Project", style="bold")
        table.add_column("Files", justify="right")
        table.add_column("Lines", justify="right")
        table.add_column("Coverage", justify="right")

        for name in sorted(snapshot.projects):
            summary = snapshot.projects[name]
            table.add_row(
                name,
                str(summary.file_count),
                f"{summary.covered_lines}/{summary.coverable_lines}",
                self._pct(summary.coverage_percentage),
            )

        table.add_section()
        table.add_row(
            "[bold]Overall[/bold]",
            str(len(snapshot.files)),
            f"{snapshot.covered_lines}/{snapshot.coverable_lines}",
            self._pct(snapshot.overall_percentage, bold=True),
        )
        self.console.print(table)

    def print_file_table(self, snapshot: CoverageSnapshot, *, root: Path | None = None) -> None:
        """Print per-file coverage, lowest coverage first."""
        table = Table(title="Coverage by File", title_style="bold cyan")
        table.add_column("File", style="bold")
        table.add_column("Project")
        table.add_column("Lines", justify="right")
        table.add_column("Coverage", justify="right")

        ordered = sorted(
            snapshot.files.items(), key=lambda item: (item[1].coverage_percentage, item[0])
        )
        limit = self.display.max_files
        shown = ordered[:limit] if limit else ordered

        for path, record in shown:
            table.add_row(
                self._display_path(path, root),
                snapshot.project_of.get(path, ""),
                f"{record.covered_lines}/{record.coverable_lines}",
                self._pct(record.coverage_percentage),
            )

        self.console.print(table)
        hidden = len(ordered) - len(shown)
        if hidden > 0:
            self.print_info(f"... and {hidden} more file(s)")

    def print_summary_view(self, summary: dict[str, float]) -> None:
        """Print the quick project name → percentage view."""
        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("Project", style="bold")
        table.add_column("Coverage", justify="right")
        for name in sorted(summary):
            table.add_row(name, self._pct(summary[name]))
        self.console.print(table)

    def print_file_coverage(self, path: str, record: FileCoverageRecord) -> None:
        """Print line-level detail for one file."""
        body = [
            f"Lines: {record.covered_lines}/{record.coverable_lines} "
            f"({self._pct(record.coverage_percentage)})",
        ]
        for status in (LineCoverageStatus.NOT_COVERED, LineCoverageStatus.PARTIALLY_COVERED):
            color, label = _STATUS_STYLE[status]
            lines = (
                record.uncovered_lines
                if status is LineCoverageStatus.NOT_COVERED
                else record.partially_covered_lines
            )
            if not lines:
                continue
            ranges = _line_ranges(lines)
            text = ", ".join(ranges[:_MAX_RANGES_DISPLAY])
            if len(ranges) > _MAX_RANGES_DISPLAY:
                text += f", ... (+{len(ranges) - _MAX_RANGES_DISPLAY})"
            body.append(f"[{color}]{label}:[/{color}] {text}")

        self.console.print(Panel("\n".join(body), title=path, border_style="cyan"))

    def print_test_projects(self, projects: Sequence[TestProject]) -> None:
        """Print detected test projects."""
        if not projects:
            self.print_info("No MSTest projects found.")
            return
        table = Table(title="Test Projects", title_style="bold cyan")
        table.add_column("Project", style="bold")
        table.add_column("Project File")
        for project in projects:
            table.add_row(project.name, str(project.project_file))
        self.console.print(table)


# Singleton instance for easy import
reporter = CLIReporter()
