r"""OpenCover XML parser.

OpenCover (and coverlet's ``opencover`` output format) report per-sequence-point
visit counts::

    <CoverageSession>
      <Summary sequencePoints="10" visitedSequencePoints="7" .../>
      <Modules>
        <Module hash="...">
          <ModuleName>MyApp</ModuleName>
          <Files>
            <File uid="1" fullPath="C:\src\MyApp\Calculator.cs"/>
          </Files>
          <Classes>
            <Class>
              <Methods>
                <Method>
                  <SequencePoints>
                    <SequencePoint vc="5" sl="10" el="10" sc="9" ec="10" fileid="1"/>
                  </SequencePoints>
                </Method>
              </Methods>
            </Class>
          </Classes>
        </Module>
      </Modules>
    </CoverageSession>

``vc`` is the visit count and ``sl`` the start line.  When several sequence
points land on the same line, the one processed last decides the line's
status; this is a known simplification, not an aggregation rule.
"""

from __future__ import annotations

import logging
import ntpath
from typing import TYPE_CHECKING

from defusedxml import DefusedXmlException, ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

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

_MODULE_NAME_ATTRS = ("moduleId", "name", "module")

_ASSEMBLY_EXTENSIONS = frozenset({".dll", ".exe"})


def summary_percentage(root: XmlElement) -> float:
    """Return visited/total sequence points as a percentage (0.0 when total is 0)."""
    summary = first_child(root, "Summary")
    if summary is None:
        return 0.0
    total = parse_int(summary.get("sequencePoints"))
    visited = parse_int(summary.get("visitedSequencePoints"))
    if total is None or visited is None or total == 0:
        return 0.0
    return (visited / total) * 100.0


def _strip_path(value: str) -> str:
    # ntpath splits on both separators, so Windows paths work on any host.
    base = ntpath.basename(value)
    stem, ext = ntpath.splitext(base)
    return stem if ext.lower() in _ASSEMBLY_EXTENSIONS else base


def module_name(root: XmlElement) -> str:
    """Return the name of the first module, or an empty string."""
    module = first_child(first_child(root, "Modules"), "Module")
    if module is None:
        return ""
    for attr in _MODULE_NAME_ATTRS:
        value = (module.get(attr) or "").strip()
        if value:
            return _strip_path(value)
    name_elem = first_child(module, "ModuleName")
    if name_elem is not None and name_elem.text and name_elem.text.strip():
        return _strip_path(name_elem.text.strip())
    return ""


def file_id_map(module: XmlElement) -> dict[str, str]:
    """Map ``File/@uid`` to ``File/@fullPath`` for one module."""
    mapping: dict[str, str] = {}
    for file_elem in children(first_child(module, "Files"), "File"):
        uid = file_elem.get("uid", "")
        full_path = file_elem.get("fullPath", "")
        if uid and full_path:
            mapping[uid] = full_path
    return mapping


def sequence_point_status(sp: XmlElement) -> tuple[int, LineCoverageStatus] | None:
    """Return ``(line_number, status)`` for a ``<SequencePoint>``, or None to skip it."""
    line = parse_int(sp.get("sl"))
    visits = parse_int(sp.get("vc"))
    if line is None or visits is None:
        return None

    status = LineCoverageStatus.COVERED if visits > 0 else LineCoverageStatus.NOT_COVERED

    # Best-effort proxy for partial branch coverage; not a documented schema rule.
    offset_chain = parse_int(sp.get("offsetchain"))
    if offset_chain is not None and offset_chain > 0:
        status = LineCoverageStatus.PARTIALLY_COVERED

    return line, status


def _sequence_points(module: XmlElement) -> list[XmlElement]:
    points: list[XmlElement] = []
    for class_elem in children(first_child(module, "Classes"), "Class"):
        for method in children(first_child(class_elem, "Methods"), "Method"):
            points.extend(children(first_child(method, "SequencePoints"), "SequencePoint"))
    return points


def _process_module(module: XmlElement, files: dict[str, FileCoverageRecord]) -> None:
    # File ids are only unique within a module.
    id_to_path = file_id_map(module)
    if not id_to_path:
        return

    for sp in _sequence_points(module):
        file_path = id_to_path.get(sp.get("fileid", ""))
        if file_path is None:
            continue
        parsed = sequence_point_status(sp)
        if parsed is None:
            continue

        record = files.get(file_path)
        if record is None:
            record = FileCoverageRecord(file_path=file_path)
            files[file_path] = record
        record.set_line(*parsed)


class OpenCoverParser(CoverageParser):
    """Parser for OpenCover XML reports."""

    @property
    def format(self) -> CoverageFormat:
        return CoverageFormat.OPENCOVER

    def parse(self, path: Path) -> ParsedReport:
        try:
            tree = ElementTree.parse(path)
        except (DefusedParseError, DefusedXmlException, OSError) as e:
            raise CoverageParseError(f"Invalid OpenCover XML {path}: {e}") from e

        root = tree.getroot()
        if local_name(root) != "CoverageSession":
            raise CoverageParseError(f"OpenCover root is not <CoverageSession>: {root.tag}")

        files: dict[str, FileCoverageRecord] = {}
        for module in children(first_child(root, "Modules"), "Module"):
            _process_module(module, files)

        logger.debug("Parsed OpenCover report %s: %d file(s)", path, len(files))
        return ParsedReport(
            format=CoverageFormat.OPENCOVER,
            source_path=path,
            files=files,
            overall_percentage=summary_percentage(root),
            project_name=module_name(root),
        )
