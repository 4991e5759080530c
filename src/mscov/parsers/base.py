"""Base class and shared XML helpers for coverage report parsers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path
    from xml.etree.ElementTree import Element as XmlElement

    from mscov.models import CoverageFormat, ParsedReport


def local_name(elem: XmlElement) -> str:
    """Return the tag of *elem* without any ``{namespace}`` prefix."""
    return elem.tag.split("}")[-1] if "}" in elem.tag else elem.tag


def parse_int(value: str | None) -> int | None:
    """Parse *value* as an integer, returning ``None`` when it is missing or invalid."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def children(elem: XmlElement | None, name: str) -> list[XmlElement]:
    """Return direct children of *elem* whose local name is *name*."""
    if elem is None:
        return []
    return [child for child in elem if local_name(child) == name]


def first_child(elem: XmlElement | None, name: str) -> XmlElement | None:
    found = children(elem, name)
    return found[0] if found else None


class CoverageParser(ABC):
    """Abstract base class for coverage report parsers.

    Each concrete parser handles one report format and translates it into
    the normalized ``ParsedReport``.
    """

    @property
    @abstractmethod
    def format(self) -> CoverageFormat:
        """Report format handled by this parser."""

    @abstractmethod
    def parse(self, path: Path) -> ParsedReport:
        """Parse a coverage report file.

        Args:
            path: Path to the report file.

        Returns:
            A ParsedReport with per-file, per-line coverage.

        Raises:
            CoverageParseError: If the document cannot be read or has the
                wrong root element.
        """
