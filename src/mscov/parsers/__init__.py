"""Coverage report parsers and format dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mscov.models import CoverageFormat, CoverageParseError
from mscov.parsers.base import CoverageParser
from mscov.parsers.cobertura import CoberturaParser
from mscov.parsers.detector import BINARY_EXTENSIONS, detect_format, sniff_format
from mscov.parsers.opencover import OpenCoverParser
from mscov.parsers.visual_studio import VisualStudioBinaryParser

if TYPE_CHECKING:
    from pathlib import Path

    from mscov.models import ParsedReport

PARSER_BY_FORMAT: dict[CoverageFormat, CoverageParser] = {
    parser.format: parser
    for parser in (CoberturaParser(), OpenCoverParser(), VisualStudioBinaryParser())
}

__all__ = [
    "BINARY_EXTENSIONS",
    "PARSER_BY_FORMAT",
    "CoberturaParser",
    "CoverageParser",
    "OpenCoverParser",
    "VisualStudioBinaryParser",
    "detect_format",
    "get_parser",
    "parse_report",
    "sniff_format",
]


def get_parser(fmt: CoverageFormat) -> CoverageParser | None:
    """Return the parser registered for *fmt*, or None."""
    return PARSER_BY_FORMAT.get(fmt)


def parse_report(
    path: Path,
    *,
    fmt: CoverageFormat | None = None,
    binary_extensions: frozenset[str] = BINARY_EXTENSIONS,
) -> ParsedReport:
    """Detect the format of *path* (unless *fmt* is given) and parse it.

    Raises:
        CoverageParseError: If the format is unknown or parsing fails.
    """
    effective = fmt or detect_format(path, binary_extensions=binary_extensions)
    parser = get_parser(effective)
    if parser is None:
        raise CoverageParseError(f"Could not detect coverage format for: {path}")
    return parser.parse(path)
