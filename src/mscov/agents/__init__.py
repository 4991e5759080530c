"""Agents that run coverage work off the caller's thread."""

from mscov.agents.base import BaseAgent, TaskInput, TaskOutput, TaskStatus
from mscov.agents.scanner import CoverageScanAgent

__all__ = ["BaseAgent", "CoverageScanAgent", "TaskInput", "TaskOutput", "TaskStatus"]
