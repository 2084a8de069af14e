"""Execution sinks: where due prompts are delivered."""

from schedprompt.channels.base import ExecutionSink, ScheduledPrompt

__all__ = ["ExecutionSink", "ScheduledPrompt"]
