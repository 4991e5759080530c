"""Coverage report format detection.

Classification is a cheap header sniff first, then a full XML parse of the
root element when the header is inconclusive.  Failures never propagate: an
unreadable or malformed file is simply ``UNKNOWN``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from defusedxml import DefusedXmlException, ElementTree
from defusedxml.ElementTree import ParseError as DefusedParseError

from mscov.models import CoverageFormat
from mscov.parsers.base import local_name

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

BINARY_EXTENSIONS: frozenset[str] = frozenset({".coverage"})

_HEADER_BYTES = 2048

_COBERTURA_DTD_MARKERS = (
    "cobertura.sourceforge.net",
    "coverage-04.dtd",
    "coverage-03.dtd",
)

_ROOT_FORMATS = {
    "coverage": CoverageFormat.COBERTURA,
    "CoverageSession": CoverageFormat.OPENCOVER,
}


def sniff_format(header: str) -> CoverageFormat:
    """Classify a report from its leading text, or ``UNKNOWN`` if inconclusive."""
    if "<CoverageSession" in header:
        return CoverageFormat.OPENCOVER
    if any(marker in header for marker in _COBERTURA_DTD_MARKERS):
        return CoverageFormat.COBERTURA
    if "<coverage" in header:
        return CoverageFormat.COBERTURA
    return CoverageFormat.UNKNOWN


def read_header(path: Path, size: int = _HEADER_BYTES) -> str:
    """Read the first *size* bytes of *path* as text (undecodable bytes dropped)."""
    with path.open("rb") as f:
        return f.read(size).decode("utf-8", errors="ignore")


def _root_format(path: Path) -> CoverageFormat:
    try:
        root = ElementTree.parse(path).getroot()
    except (DefusedParseError, DefusedXmlException, OSError) as e:
        logger.debug("Could not parse %s as XML: %s", path, e)
        return CoverageFormat.UNKNOWN
    return _ROOT_FORMATS.get(local_name(root), CoverageFormat.UNKNOWN)


def detect_format(
    path: Path, *, binary_extensions: frozenset[str] = BINARY_EXTENSIONS
) -> CoverageFormat:
    """Return the coverage format of the report at *path*."""
    if path.suffix.lower() in binary_extensions:
        return CoverageFormat.VISUAL_STUDIO_BINARY

    try:
        header = read_header(path)
    except OSError as e:
        logger.debug("Could not read %s: %s", path, e)
        return CoverageFormat.UNKNOWN

    sniffed = sniff_format(header)
    if sniffed is not CoverageFormat.UNKNOWN:
        return sniffed

    return _root_format(path)
