"""CoverageScanAgent — run a repository scan on a worker thread.

The caller's event loop stays responsive while the scan runs; the outcome is
delivered as a single ``TaskOutput``.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from mscov.agents.base import BaseAgent, TaskInput, TaskOutput, TaskStatus
from mscov.models import ScanResult, ScanStatus
from mscov.repository import CoverageRepository

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    ScanStatus.OK: TaskStatus.COMPLETED,
    ScanStatus.EMPTY: TaskStatus.COMPLETED,
    ScanStatus.ERROR: TaskStatus.FAILED,
    ScanStatus.CANCELLED: TaskStatus.CANCELLED,
}


class CoverageScanAgent(BaseAgent):
    """Agent that scans a solution root for coverage reports."""

    def __init__(self, repository: CoverageRepository | None = None) -> None:
        self._repository = repository or CoverageRepository()

    @property
    def name(self) -> str:
        return "coverage-scanner"

    @property
    def description(self) -> str:
        return "Discover, parse and aggregate MSTest coverage reports under a root directory."

    @property
    def repository(self) -> CoverageRepository:
        return self._repository

    async def scan(
        self, root: str, *, merge_all: bool | None = None
    ) -> ScanResult:
        """Run ``CoverageRepository.scan`` in a worker thread.

        Cancelling the awaiting task signals the worker, which stops at its
        next boundary and discards partial results.
        """
        cancel = threading.Event()
        try:
            return await asyncio.to_thread(
                self._repository.scan, root, merge_all=merge_all, cancel=cancel
            )
        except asyncio.CancelledError:
            cancel.set()
            raise

    async def run(self, task: TaskInput) -> TaskOutput:
        """Scan *task.target*.

        Optional context keys:

        * ``merge_all`` — merge every discovered report.
        * ``include_lines`` — include per-line statuses in the result.
        """
        merge_raw = task.context.get("merge_all")
        merge_all = bool(merge_raw) if merge_raw is not None else None
        include_lines = bool(task.context.get("include_lines", False))

        result = await self.scan(task.target, merge_all=merge_all)
        status = _STATUS_MAP[result.status]
        logger.debug("Coverage scan of %s finished: %s", task.target, result.status.value)

        if status is TaskStatus.COMPLETED:
            return TaskOutput(status=status, result=result.to_dict(include_lines=include_lines))
        return TaskOutput(
            status=status,
            result={"status": result.status.value, "message": result.message},
            errors=[result.message] if status is TaskStatus.FAILED else [],
        )
