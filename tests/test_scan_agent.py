"""Tests for the async coverage scan agent (agents/scanner.py)."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path

import pytest

from mscov.agents import CoverageScanAgent, TaskInput, TaskStatus
from mscov.config import ScanConfig
from mscov.models import ScanResult, ScanStatus
from mscov.repository import CoverageRepository


def _write_file(root: Path, rel: str, content: str) -> Path:
    f = root / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


def _seed(root: Path) -> Path:
    src = _write_file(root, "src/Calculator.cs", "class Calculator {}")
    _write_file(
        root,
        "TestResults/1/coverage.cobertura.xml",
        '<coverage line-rate="0.5"><packages><package name="App"><classes>'
        f'<class name="C" filename="{src}"><lines>'
        '<line number="1" hits="1"/><line number="2" hits="0"/>'
        "</lines></class></classes></package></packages></coverage>",
    )
    return src


def _agent() -> CoverageScanAgent:
    return CoverageScanAgent(CoverageRepository(ScanConfig(mstest_only=False)))


class _StubRepository(CoverageRepository):
    def __init__(self, result: ScanResult) -> None:
        super().__init__()
        self._result = result

    def scan(self, root, **_kwargs):  # type: ignore[no-untyped-def, override]
        return self._result


class TestCoverageScanAgent:
    def test_identity(self) -> None:
        agent = CoverageScanAgent()
        assert agent.name == "coverage-scanner"
        assert "coverage" in agent.description

    @pytest.mark.asyncio
    async def test_scan_ok(self, tmp_path: Path) -> None:
        _seed(tmp_path)
        agent = _agent()

        result = await agent.scan(str(tmp_path))

        assert result.status is ScanStatus.OK
        assert not agent.repository.last_snapshot.is_empty

    @pytest.mark.asyncio
    async def test_run_completed(self, tmp_path: Path) -> None:
        _seed(tmp_path)
        output = await _agent().run(
            TaskInput(task_type="scan", target=str(tmp_path), context={"include_lines": True})
        )

        assert output.status is TaskStatus.COMPLETED
        assert output.result["status"] == "ok"
        files = output.result["snapshot"]["files"]
        assert files[0]["lines"] == {"1": "covered", "2": "not_covered"}
        assert output.result["snapshot"]["projects"][0]["coverage_percentage"] == 50.0

    @pytest.mark.asyncio
    async def test_run_empty_is_completed(self, tmp_path: Path) -> None:
        output = await _agent().run(TaskInput(task_type="scan", target=str(tmp_path)))

        assert output.status is TaskStatus.COMPLETED
        assert output.result["status"] == "empty"
        assert output.errors == []

    @pytest.mark.asyncio
    async def test_run_error_is_failed(self) -> None:
        stub = _StubRepository(
            ScanResult(status=ScanStatus.ERROR, message="Error analyzing coverage: x")
        )
        output = await CoverageScanAgent(stub).run(TaskInput(task_type="scan", target="."))

        assert output.status is TaskStatus.FAILED
        assert output.errors == ["Error analyzing coverage: x"]

    @pytest.mark.asyncio
    async def test_run_cancelled(self) -> None:
        stub = _StubRepository(
            ScanResult(status=ScanStatus.CANCELLED, message="Coverage scan cancelled.")
        )
        output = await CoverageScanAgent(stub).run(TaskInput(task_type="scan", target="."))

        assert output.status is TaskStatus.CANCELLED
        assert output.errors == []

    @pytest.mark.asyncio
    async def test_merge_all_passed_through(self) -> None:
        seen: dict[str, object] = {}

        class _Recorder(CoverageRepository):
            def scan(self, root, **kwargs):  # type: ignore[no-untyped-def, override]
                seen.update(kwargs)
                return ScanResult(status=ScanStatus.EMPTY, message="none")

        await CoverageScanAgent(_Recorder()).run(
            TaskInput(task_type="scan", target=".", context={"merge_all": True})
        )

        assert seen["merge_all"] is True
        assert isinstance(seen["cancel"], threading.Event)

    @pytest.mark.asyncio
    async def test_task_cancellation_signals_worker(self) -> None:
        started = threading.Event()
        captured: dict[str, threading.Event] = {}

        class _Slow(CoverageRepository):
            def scan(self, root, **kwargs):  # type: ignore[no-untyped-def, override]
                captured["cancel"] = kwargs["cancel"]
                started.set()
                kwargs["cancel"].wait(timeout=5)
                return ScanResult(status=ScanStatus.CANCELLED, message="Coverage scan cancelled.")

        agent = CoverageScanAgent(_Slow())
        task = asyncio.create_task(agent.scan("."))
        await asyncio.to_thread(started.wait, 5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert captured["cancel"].is_set()
