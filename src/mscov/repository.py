"""Coverage repository — scan a solution root into a ``CoverageSnapshot``.

The repository discovers reports, parses them, normalizes and filters the
file paths, and aggregates per-project statistics.  Every per-file failure is
contained; ``scan`` always returns a single ``ScanResult``.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import defaultdict
from pathlib import Path, PureWindowsPath
from typing import TYPE_CHECKING

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError as DefusedParseError

from mscov.config import ScanConfig
from mscov.detectors.projects import (
    UNKNOWN_PROJECT,
    TestProject,
    belongs_to_projects,
    find_test_projects,
    project_for_source,
)
from mscov.discovery import ScanCancelledError, check_cancelled, find_coverage_reports
from mscov.models import (
    CoverageParseError,
    CoverageSnapshot,
    FileCoverageRecord,
    ParsedReport,
    ProjectCoverageSummary,
    ScanResult,
    ScanStatus,
)
from mscov.parsers import parse_report

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = (
    "No MSTest coverage data found. Run your tests with coverage collection enabled, "
    'e.g. dotnet test --collect:"XPlat Code Coverage".'
)


def canonical_key(path: str | Path) -> str:
    """Return the case-insensitive lookup key for an absolute path."""
    return str(Path(path).resolve()).lower()


def _to_native(raw_path: str) -> Path:
    if os.sep == "/" and "\\" in raw_path:
        windows = PureWindowsPath(raw_path)
        if windows.drive:
            # A drive-qualified path can never exist on this host; keep it verbatim.
            return Path(raw_path)
        return Path(*windows.parts)
    return Path(raw_path)


def resolve_source_path(raw_path: str, report_dir: Path, root: Path) -> Path:
    """Make a report-recorded path absolute.

    Relative paths are tried against the report's directory first, then the
    scan root.
    """
    candidate = _to_native(raw_path)
    if candidate.is_absolute():
        return candidate.resolve()
    for base in (report_dir, root):
        joined = (base / candidate).resolve()
        if joined.exists():
            return joined
    return (report_dir / candidate).resolve()


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


class CoverageRepository:
    """Discovers, parses and aggregates coverage reports.

    The only state kept between scans is the last good snapshot, swapped in as
    a whole under a lock so concurrent readers never see a partial result.
    """

    def __init__(self, config: ScanConfig | None = None) -> None:
        self._config = config or ScanConfig()
        self._lock = threading.Lock()
        self._last_snapshot = CoverageSnapshot.empty()
        self._listeners: list[Callable[[ScanResult], None]] = []

    @property
    def config(self) -> ScanConfig:
        return self._config

    @property
    def last_snapshot(self) -> CoverageSnapshot:
        with self._lock:
            return self._last_snapshot

    def add_listener(self, listener: Callable[[ScanResult], None]) -> None:
        """Register *listener* to be called after every successful scan."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[ScanResult], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ── Scanning ──────────────────────────────────────────────────

    def scan(
        self,
        root: str | Path,
        *,
        project_filter: Sequence[TestProject] | None = None,
        merge_all: bool | None = None,
        cancel: threading.Event | None = None,
    ) -> ScanResult:
        """Scan *root* for coverage reports and build a fresh snapshot.

        Args:
            root: Solution root directory.
            project_filter: Restrict reports to these projects.  When None and
                ``mstest_only`` is configured, MSTest projects are detected.
            merge_all: Merge all reports instead of using the newest one.
                Defaults to the configured value.
            cancel: Event checked at every enumeration and parse boundary.

        Returns:
            The scan outcome; never raises.
        """
        try:
            result = self._scan(
                Path(root),
                project_filter=project_filter,
                merge_all=self._config.merge_all if merge_all is None else merge_all,
                cancel=cancel,
            )
        except ScanCancelledError:
            logger.info("Coverage scan of %s cancelled", root)
            return ScanResult(status=ScanStatus.CANCELLED, message="Coverage scan cancelled.")
        except Exception as e:
            logger.exception("Error analyzing coverage under %s", root)
            return ScanResult(status=ScanStatus.ERROR, message=f"Error analyzing coverage: {e}")

        with self._lock:
            self._last_snapshot = result.snapshot
        self._notify(result)
        return result

    def _scan(
        self,
        root: Path,
        *,
        project_filter: Sequence[TestProject] | None,
        merge_all: bool,
        cancel: threading.Event | None,
    ) -> ScanResult:
        if not root.is_dir():
            return ScanResult(
                status=ScanStatus.EMPTY,
                message=f"Coverage root {root} does not exist or is not a directory.",
            )
        root = root.resolve()

        candidates = find_coverage_reports(root, self._config, cancel=cancel)
        if not candidates:
            return ScanResult(status=ScanStatus.EMPTY, message=NO_DATA_MESSAGE)

        projects = self._target_projects(root, project_filter)
        check_cancelled(cancel)
        if projects is not None:
            candidates = [
                path
                for path in candidates
                if belongs_to_projects(path, projects, name_hint=self._config.name_hint)
            ]
            if not candidates:
                logger.info("No coverage reports belong to the %d target project(s)", len(projects))
                return ScanResult(status=ScanStatus.EMPTY, message=NO_DATA_MESSAGE)

        reports = self._parse_reports(candidates, merge_all=merge_all, cancel=cancel)
        snapshot = self._build_snapshot(root, reports, projects or [])

        if snapshot.is_empty:
            return ScanResult(status=ScanStatus.EMPTY, message=NO_DATA_MESSAGE, snapshot=snapshot)

        return ScanResult(
            status=ScanStatus.OK,
            message=(
                f"Found coverage data for {len(snapshot.projects)} project(s) "
                f"across {len(snapshot.files)} file(s)"
            ),
            snapshot=snapshot,
        )

    def _target_projects(
        self, root: Path, project_filter: Sequence[TestProject] | None
    ) -> list[TestProject] | None:
        if project_filter is not None:
            return list(project_filter)
        if not self._config.mstest_only:
            return None
        return find_test_projects(
            root,
            markers=self._config.framework_markers,
            skip_dirs=frozenset(self._config.skip_dirs),
        )

    def _parse_reports(
        self,
        candidates: list[Path],
        *,
        merge_all: bool,
        cancel: threading.Event | None,
    ) -> list[ParsedReport]:
        """Parse *candidates* (newest first), skipping files that fail."""
        binary_extensions = frozenset(self._config.binary_extensions)
        parsed: list[ParsedReport] = []
        seen_projects: set[str] = set()

        for path in candidates:
            check_cancelled(cancel)
            try:
                report = parse_report(path, binary_extensions=binary_extensions)
            except (
                CoverageParseError,
                DefusedParseError,
                DefusedXmlException,
                OSError,
            ) as e:
                logger.warning("Skipping coverage report %s: %s", path, e)
                continue

            if not report.files:
                # Placeholders and empty reports only contribute notes.
                parsed.append(report)
                continue

            if merge_all:
                name = report.project_name or UNKNOWN_PROJECT
                if name in seen_projects:
                    logger.debug("Skipping %s: project %s already loaded", path, name)
                    continue
                seen_projects.add(name)
                parsed.append(report)
                continue

            parsed.append(report)
            break

        return parsed

    def _build_snapshot(
        self,
        root: Path,
        reports: list[ParsedReport],
        projects: list[TestProject],
    ) -> CoverageSnapshot:
        files: dict[str, FileCoverageRecord] = {}
        project_of: dict[str, str] = {}
        notes: list[str] = []
        primary: ParsedReport | None = None

        for report in reports:
            notes.extend(report.notes)
            if not report.files:
                continue
            if primary is None:
                primary = report

            report_dir = report.source_path.parent
            for raw_path, record in report.files.items():
                source = resolve_source_path(raw_path, report_dir, root)
                if not source.is_file() or not _is_under(source, root):
                    logger.debug("Dropping stale coverage entry %s", raw_path)
                    continue
                key = str(source).lower()
                if key in files:
                    continue
                files[key] = record
                project_of[key] = self._attribute(report, key, projects)

        grouped: dict[str, list[FileCoverageRecord]] = defaultdict(list)
        for key, record in files.items():
            grouped[project_of[key]].append(record)

        summaries = {
            name: ProjectCoverageSummary.from_records(name, records)
            for name, records in grouped.items()
        }

        snapshot = CoverageSnapshot(
            files=files,
            projects=summaries,
            project_of=project_of,
            notes=notes,
        )
        if primary is not None:
            snapshot.source_path = str(primary.source_path)
            snapshot.format = primary.format
        elif reports:
            snapshot.source_path = str(reports[0].source_path)
            snapshot.format = reports[0].format
        return snapshot

    @staticmethod
    def _attribute(report: ParsedReport, key: str, projects: list[TestProject]) -> str:
        if report.project_name and report.project_name != UNKNOWN_PROJECT:
            return report.project_name
        return project_for_source(Path(key), projects) or UNKNOWN_PROJECT

    def _notify(self, result: ScanResult) -> None:
        for listener in list(self._listeners):
            try:
                listener(result)
            except Exception:
                logger.exception("Coverage listener %r failed", listener)

    # ── Point lookups against the last snapshot ───────────────────

    def file_coverage_map(self) -> dict[str, FileCoverageRecord]:
        """Return the per-file detail map of the last snapshot."""
        return dict(self.last_snapshot.files)

    def summary_view(self) -> dict[str, float]:
        """Return project name → coverage percentage for the last snapshot."""
        return self.last_snapshot.summary_view()

    def get_file_coverage(self, file_path: str | Path) -> FileCoverageRecord | None:
        """Look up coverage for *file_path* in the last snapshot.

        Falls back to matching on the file name alone when exactly one entry
        has that name.
        """
        if not str(file_path):
            return None
        files = self.last_snapshot.files

        record = files.get(canonical_key(_to_native(str(file_path))))
        if record is not None:
            return record

        name = _to_native(str(file_path)).name.lower()
        matches = [rec for key, rec in files.items() if Path(key).name == name]
        if len(matches) == 1:
            return matches[0]
        return None
