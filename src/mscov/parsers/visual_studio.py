"""Placeholder for Visual Studio binary ``.coverage`` files.

The binary container needs Microsoft's own tooling to decode, so these files
are recognized but yield no line-level data.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from mscov.models import CoverageFormat, ParsedReport
from mscov.parsers.base import CoverageParser

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

UNSUPPORTED_NOTE = (
    "Visual Studio binary coverage (.coverage) is not supported for line-level detail; "
    "export to Cobertura or OpenCover XML."
)


class VisualStudioBinaryParser(CoverageParser):
    """Recognizes binary coverage files and returns an annotated empty report."""

    @property
    def format(self) -> CoverageFormat:
        return CoverageFormat.VISUAL_STUDIO_BINARY

    def parse(self, path: Path) -> ParsedReport:
        logger.info("Skipping line-level parse of binary coverage file %s", path)
        return ParsedReport(
            format=CoverageFormat.VISUAL_STUDIO_BINARY,
            source_path=path,
            notes=[f"{path.name}: {UNSUPPORTED_NOTE}"],
        )
