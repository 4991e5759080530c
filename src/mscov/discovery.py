"""Coverage report discovery under a solution root."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from mscov.config import ScanConfig
from mscov.detectors.projects import walk_files
from mscov.models import CoverageFormat
from mscov.parsers.detector import read_header, sniff_format

if TYPE_CHECKING:
    from threading import Event

logger = logging.getLogger(__name__)

_RESULT_SUFFIXES = (".cobertura.xml", ".opencover.xml")


class ScanCancelledError(Exception):
    """Raised at an enumeration or parse boundary when the caller abandons a scan."""


def check_cancelled(cancel: Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ScanCancelledError


def _in_results_dir(path: Path, root: Path, results_dirs: set[str]) -> bool:
    try:
        parts = path.relative_to(root).parts[:-1]
    except ValueError:
        return False
    return any(part.lower() in results_dirs for part in parts)


def _looks_like_coverage_xml(path: Path) -> bool:
    try:
        header = read_header(path)
    except OSError:
        return False
    return sniff_format(header) is not CoverageFormat.UNKNOWN


def is_candidate(path: Path, root: Path, config: ScanConfig) -> bool:
    """Return True if *path* should be considered a coverage report."""
    name = path.name.lower()
    if name in {n.lower() for n in config.report_names}:
        return True

    if not _in_results_dir(path, root, {d.lower() for d in config.results_dirs}):
        return False

    if name.endswith(_RESULT_SUFFIXES):
        return True
    if path.suffix.lower() in set(config.binary_extensions):
        return True
    return name.endswith(".xml") and _looks_like_coverage_xml(path)


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def find_coverage_reports(
    root: str | Path,
    config: ScanConfig | None = None,
    *,
    cancel: Event | None = None,
) -> list[Path]:
    """Return coverage reports under *root*, most recently modified first.

    A missing or unreadable root yields an empty list.
    """
    effective = config or ScanConfig()
    root_path = Path(root)
    if not root_path.is_dir():
        logger.info("Coverage root %s is not a directory", root_path)
        return []

    skip = frozenset(effective.skip_dirs) - frozenset(effective.results_dirs)
    seen: set[Path] = set()
    reports: list[Path] = []
    for path in walk_files(root_path, skip):
        check_cancelled(cancel)
        if not is_candidate(path, root_path, effective):
            continue
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        reports.append(resolved)

    reports.sort(key=_mtime, reverse=True)
    logger.debug("Discovered %d coverage report(s) under %s", len(reports), root_path)
    return reports
