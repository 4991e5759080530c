"""Tests for coverage report discovery (discovery.py)."""

from __future__ import annotations

import os
import threading
from pathlib import Path

import pytest

from mscov.config import ScanConfig
from mscov.discovery import (
    ScanCancelledError,
    check_cancelled,
    find_coverage_reports,
    is_candidate,
)


def _write_file(root: Path, rel: str, content: str) -> Path:
    f = root / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


def _set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


_COBERTURA = '<?xml version="1.0"?>\n<coverage line-rate="1"/>\n'


# ── Candidate rules ──────────────────────────────────────────────


class TestIsCandidate:
    def test_conventional_name_anywhere(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "deep/er/coverage.cobertura.xml", _COBERTURA)
        assert is_candidate(path, tmp_path, ScanConfig())

    def test_conventional_name_case_insensitive(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "Coverage.OpenCover.XML", "<CoverageSession/>")
        assert is_candidate(path, tmp_path, ScanConfig())

    def test_suffix_in_results_dir(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "TestResults/run1/MyApp.cobertura.xml", _COBERTURA)
        assert is_candidate(path, tmp_path, ScanConfig())

    def test_suffix_outside_results_dir(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "out/MyApp.cobertura.xml", _COBERTURA)
        assert not is_candidate(path, tmp_path, ScanConfig())

    def test_binary_in_results_dir(self, tmp_path: Path) -> None:
        path = tmp_path / "TestResults" / "abc" / "run.coverage"
        path.parent.mkdir(parents=True)
        path.write_bytes(b"\x00")
        assert is_candidate(path, tmp_path, ScanConfig())

    def test_sniffed_xml_in_results_dir(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "testresults/x/report.xml", _COBERTURA)
        assert is_candidate(path, tmp_path, ScanConfig())

    def test_non_coverage_xml_in_results_dir(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "TestResults/x/results.xml", "<TestRun/>")
        assert not is_candidate(path, tmp_path, ScanConfig())

    def test_custom_report_name(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "cov.xml", _COBERTURA)
        assert is_candidate(path, tmp_path, ScanConfig(report_names=["cov.xml"]))


# ── Enumeration ──────────────────────────────────────────────────


class TestFindCoverageReports:
    def test_newest_first(self, tmp_path: Path) -> None:
        old = _write_file(tmp_path, "A/TestResults/1/coverage.cobertura.xml", _COBERTURA)
        new = _write_file(tmp_path, "B/TestResults/2/coverage.cobertura.xml", _COBERTURA)
        mid = _write_file(tmp_path, "C/TestResults/3/coverage.cobertura.xml", _COBERTURA)
        _set_mtime(old, 1_000_000)
        _set_mtime(new, 3_000_000)
        _set_mtime(mid, 2_000_000)

        reports = find_coverage_reports(tmp_path)

        assert reports == [new.resolve(), mid.resolve(), old.resolve()]

    def test_skips_build_output(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "App/bin/Debug/coverage.cobertura.xml", _COBERTURA)
        _write_file(tmp_path, "App/obj/coverage.cobertura.xml", _COBERTURA)
        _write_file(tmp_path, ".git/coverage.cobertura.xml", _COBERTURA)
        assert find_coverage_reports(tmp_path) == []

    def test_results_dir_never_skipped(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "TestResults/coverage.cobertura.xml", _COBERTURA)
        config = ScanConfig(skip_dirs=["TestResults", "bin"])
        assert find_coverage_reports(tmp_path, config) == [path.resolve()]

    def test_ignores_unrelated_files(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "src/Program.cs", "class Program {}")
        _write_file(tmp_path, "src/app.xml", _COBERTURA)
        assert find_coverage_reports(tmp_path) == []

    def test_empty_root(self, tmp_path: Path) -> None:
        assert find_coverage_reports(tmp_path) == []

    def test_missing_root(self, tmp_path: Path) -> None:
        assert find_coverage_reports(tmp_path / "does-not-exist") == []

    def test_file_root(self, tmp_path: Path) -> None:
        path = _write_file(tmp_path, "coverage.cobertura.xml", _COBERTURA)
        assert find_coverage_reports(path) == []

    def test_cancelled(self, tmp_path: Path) -> None:
        _write_file(tmp_path, "TestResults/coverage.cobertura.xml", _COBERTURA)
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ScanCancelledError):
            find_coverage_reports(tmp_path, cancel=cancel)


def test_check_cancelled() -> None:
    check_cancelled(None)
    event = threading.Event()
    check_cancelled(event)
    event.set()
    with pytest.raises(ScanCancelledError):
        check_cancelled(event)
