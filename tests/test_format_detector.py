"""Tests for coverage format detection (parsers/detector.py)."""

from __future__ import annotations

import importlib
from pathlib import Path

import pytest

from mscov.models import CoverageFormat, CoverageParseError
from mscov.parsers import get_parser, parse_report
from mscov.parsers.detector import detect_format, sniff_format


def _write_file(root: Path, rel: str, content: str) -> Path:
    f = root / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


_COBERTURA_WITH_DTD = """\
<?xml version="1.0"?>
<!DOCTYPE coverage SYSTEM "http://cobertura.sourceforge.net/xml/coverage-04.dtd">
<coverage line-rate="1"/>
"""

_OPENCOVER = """\
<?xml version="1.0" encoding="utf-8"?>
<CoverageSession xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <Summary sequencePoints="0" visitedSequencePoints="0"/>
</CoverageSession>
"""


# ── Header sniffing ──────────────────────────────────────────────


class TestSniffFormat:
    def test_opencover(self) -> None:
        assert sniff_format("<?xml?><CoverageSession>") is CoverageFormat.OPENCOVER

    def test_cobertura_root(self) -> None:
        assert sniff_format('<coverage line-rate="0.5">') is CoverageFormat.COBERTURA

    def test_cobertura_dtd(self) -> None:
        assert sniff_format('<!DOCTYPE x SYSTEM "coverage-03.dtd">') is CoverageFormat.COBERTURA

    def test_opencover_wins_over_cobertura_markers(self) -> None:
        header = "<!-- coverage --><CoverageSession><coverage"
        assert sniff_format(header) is CoverageFormat.OPENCOVER

    def test_unknown(self) -> None:
        assert sniff_format("<TestRun/>") is CoverageFormat.UNKNOWN
        assert sniff_format("") is CoverageFormat.UNKNOWN


# ── File detection ───────────────────────────────────────────────


class TestDetectFormat:
    def test_cobertura_file(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "coverage.cobertura.xml", _COBERTURA_WITH_DTD)
        assert detect_format(path) is CoverageFormat.COBERTURA

    def test_opencover_file(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "coverage.opencover.xml", _OPENCOVER)
        assert detect_format(path) is CoverageFormat.OPENCOVER

    def test_binary_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "run.coverage"
        path.write_bytes(b"\x00\x01binary")
        assert detect_format(path) is CoverageFormat.VISUAL_STUDIO_BINARY

    def test_binary_extension_case_insensitive(self, tmp_path: Path) -> None:
        path = tmp_path / "RUN.COVERAGE"
        path.write_bytes(b"\x00")
        assert detect_format(path) is CoverageFormat.VISUAL_STUDIO_BINARY

    def test_root_parse_fallback(self, tmp_path: Path) -> None:
        padding = "x" * 4096
        path = _write_file(
            tmp_path,
            "report.xml",
            f'<?xml version="1.0"?>\n<!-- {padding} -->\n<coverage line-rate="0"/>\n',
        )
        assert detect_format(path) is CoverageFormat.COBERTURA

    def test_namespaced_root_fallback(self, tmp_path: Path) -> None:
        padding = "x" * 4096
        path = _write_file(
            tmp_path,
            "report.xml",
            f'<!-- {padding} -->\n<ns:CoverageSession xmlns:ns="urn:x"/>\n',
        )
        assert detect_format(path) is CoverageFormat.OPENCOVER

    def test_other_xml_is_unknown(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "results.trx", "<TestRun><Results/></TestRun>")
        assert detect_format(path) is CoverageFormat.UNKNOWN

    def test_entity_declaration_is_unknown(self, tmp_path: Path) -> None:
        padding = "x" * 4096
        path = _write_file(
            tmp_path,
            "report.xml",
            f"<!-- {padding} -->\n"
            '<!DOCTYPE coverage [<!ENTITY x "y">]>\n'
            "<coverage>&x;</coverage>\n",
        )
        assert detect_format(path) is CoverageFormat.UNKNOWN

    def test_malformed_is_unknown(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "broken.xml", "<not-closed")
        assert detect_format(path) is CoverageFormat.UNKNOWN

    def test_deterministic(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "coverage.opencover.xml", _OPENCOVER)
        assert {detect_format(path) for _ in range(5)} == {CoverageFormat.OPENCOVER}

    def test_missing_file_is_unknown(self, tmp_path: Path) -> None:
        assert detect_format(tmp_path / "nope.xml") is CoverageFormat.UNKNOWN


# ── Dispatch ─────────────────────────────────────────────────────


class TestParserDispatch:
    @pytest.mark.parametrize(
        "module",
        [
            "mscov.parsers.base",
            "mscov.parsers.cobertura",
            "mscov.parsers.opencover",
            "mscov.parsers.visual_studio",
        ],
    )
    def test_parser_modules_import(self, module: str) -> None:
        imported = importlib.import_module(module)
        assert not hasattr(imported, "XmlElement")

    def test_every_known_format_has_parser(self) -> None:
        for fmt in (
            CoverageFormat.COBERTURA,
            CoverageFormat.OPENCOVER,
            CoverageFormat.VISUAL_STUDIO_BINARY,
        ):
            parser = get_parser(fmt)
            assert parser is not None
            assert parser.format is fmt

    def test_unknown_has_no_parser(self) -> None:
        assert get_parser(CoverageFormat.UNKNOWN) is None

    def test_parse_report_unknown_raises(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "results.trx", "<TestRun/>")
        with pytest.raises(CoverageParseError):
            parse_report(path)

    def test_parse_report_dispatches(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "coverage.opencover.xml", _OPENCOVER)
        report = parse_report(path)
        assert report.format is CoverageFormat.OPENCOVER
        assert report.source_path == path
