"""Execution sink interface for delivering due prompts."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class ScheduledPrompt:
    """A due prompt, tagged with the job that produced it."""

    text: str
    job_id: str
    job_name: str

    @property
    def marker(self) -> str:
        """One-line label shown alongside the delivered prompt."""
        return f"Scheduled: {self.job_name}"


class ExecutionSink(ABC):
    """Base class for everything that can receive a due prompt.

    ``deliver`` returning normally counts as success; raising counts as an
    execution error for that job only.
    """

    sink_name: str = ""

    @abstractmethod
    async def deliver(self, prompt: ScheduledPrompt) -> None:
        """Deliver one prompt."""
        ...

    async def close(self) -> None:
        """Release any resources held by the sink."""
