"""Cobertura XML parser.

Cobertura is what ``dotnet test --collect:"XPlat Code Coverage"`` (coverlet)
produces by default::

    <coverage line-rate="0.85" branch-rate="0.5" ...>
      <packages>
        <package name="MyApp">
          <classes>
            <class name="MyApp.Calculator" filename="src/Calculator.cs">
              <lines>
                <line number="10" hits="2"/>
                <line number="14" hits="1" branch="true" condition-coverage="50% (1/2)"/>
              </lines>
            </class>
          </classes>
        </package>
      </packages>
    </coverage>
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from defusedxml import DefusedXmlException, ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from mscov.detectors.projects import resolve_project_name
from mscov.models import (
    CoverageFormat,
    CoverageParseError,
    FileCoverageRecord,
    LineCoverageStatus,
    ParsedReport,
)
from mscov.parsers.base import CoverageParser, children, first_child, local_name, parse_int

if TYPE_CHECKING:
    from pathlib import Path
    from xml.etree.ElementTree import Element as XmlElement

logger = logging.getLogger(__name__)

_CONDITION_RE = re.compile(r"\(\s*(\d+)\s*/\s*(\d+)\s*\)")


def parse_condition_coverage(value: str) -> tuple[int, int] | None:
    """Extract ``(covered, total)`` from a ``"50% (1/2)"`` condition-coverage string."""
    match = _CONDITION_RE.search(value)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def line_status(line_elem: XmlElement) -> tuple[int, LineCoverageStatus] | None:
    """Return ``(line_number, status)`` for a ``<line>`` element, or None to skip it."""
    number = parse_int(line_elem.get("number"))
    hits = parse_int(line_elem.get("hits"))
    if number is None or hits is None:
        return None

    status = LineCoverageStatus.COVERED if hits > 0 else LineCoverageStatus.NOT_COVERED

    if line_elem.get("branch", "false").lower() == "true":
        branches = parse_condition_coverage(line_elem.get("condition-coverage", ""))
        if branches is not None:
            covered, total = branches
            if 0 < covered < total:
                status = LineCoverageStatus.PARTIALLY_COVERED

    return number, status


def line_rate_percentage(root: XmlElement) -> float:
    """Return the root ``line-rate`` scaled to a percentage (0.0 if absent)."""
    raw = root.get("line-rate")
    if raw is None:
        return 0.0
    try:
        return float(raw) * 100.0
    except ValueError:
        return 0.0


def package_name(root: XmlElement) -> str:
    """Return the ``name`` of the first package, or an empty string."""
    package = first_child(first_child(root, "packages"), "package")
    if package is None:
        return ""
    return package.get("name", "").strip()


def _process_class(class_elem: XmlElement, files: dict[str, FileCoverageRecord]) -> None:
    filename = class_elem.get("filename", "")
    if not filename:
        return

    record = files.get(filename)
    if record is None:
        record = FileCoverageRecord(file_path=filename)
        files[filename] = record

    for line_elem in children(first_child(class_elem, "lines"), "line"):
        parsed = line_status(line_elem)
        if parsed is not None:
            record.set_line(*parsed)


class CoberturaParser(CoverageParser):
    """Parser for Cobertura XML reports."""

    @property
    def format(self) -> CoverageFormat:
        return CoverageFormat.COBERTURA

    def parse(self, path: Path) -> ParsedReport:
        try:
            tree = ElementTree.parse(path)
        except (DefusedParseError, DefusedXmlException, OSError) as e:
            raise CoverageParseError(f"Invalid Cobertura XML {path}: {e}") from e

        root = tree.getroot()
        if local_name(root) != "coverage":
            raise CoverageParseError(f"Cobertura root is not <coverage>: {root.tag}")

        files: dict[str, FileCoverageRecord] = {}
        for package in children(first_child(root, "packages"), "package"):
            for class_elem in children(first_child(package, "classes"), "class"):
                _process_class(class_elem, files)

        name = package_name(root) or resolve_project_name(path)

        logger.debug("Parsed Cobertura report %s: %d file(s)", path, len(files))
        return ParsedReport(
            format=CoverageFormat.COBERTURA,
            source_path=path,
            files=files,
            overall_percentage=line_rate_percentage(root),
            project_name=name,
        )
