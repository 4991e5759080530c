"""Task contract shared by background coverage agents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskStatus(Enum):
    """Terminal state of an agent task."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class TaskInput:
    """A unit of work handed to an agent."""

    task_type: str
    target: str
    """Directory (or file) the task operates on."""

    context: dict[str, Any] = field(default_factory=dict)
    """Agent-specific options, e.g. ``{"merge_all": True}``."""


@dataclass
class TaskOutput:
    """The single result delivered for a ``TaskInput``."""

    status: TaskStatus
    result: dict[str, Any] = field(default_factory=dict)
    """JSON-friendly payload."""

    errors: list[str] = field(default_factory=list)
    """Human-readable failure messages; empty unless ``status`` is FAILED."""


class BaseAgent(ABC):
    """An async worker that turns one ``TaskInput`` into one ``TaskOutput``."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, used in logs."""

    @property
    @abstractmethod
    def description(self) -> str: ...

    @abstractmethod
    async def run(self, task: TaskInput) -> TaskOutput:
        """Process *task* and return its terminal output.

        Implementations report failures through ``TaskOutput.status`` rather
        than raising.
        """
