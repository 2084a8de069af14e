"""APScheduler trigger for 6-field, seconds-first cron expressions.

APScheduler's own CronTrigger numbers weekdays from Monday=0, so cadences
are evaluated with croniter instead; validation, firing, and next-run
projection then share the same semantics.
"""

from __future__ import annotations

from datetime import datetime, tzinfo

from apscheduler.triggers.base import BaseTrigger
from croniter import croniter


class SecondsCronTrigger(BaseTrigger):
    """Fires on every match of a seconds-first cron expression."""

    __slots__ = ("expression", "timezone")

    def __init__(self, expression: str, timezone: tzinfo) -> None:
        self.expression = expression
        self.timezone = timezone
        # Fail at construction, not on the first tick
        croniter(expression, datetime.now(timezone), second_at_beginning=True)

    def get_next_fire_time(self, previous_fire_time, now):
        base = previous_fire_time or now
        it = croniter(self.expression, base.astimezone(self.timezone), second_at_beginning=True)
        return it.get_next(datetime)

    def __str__(self) -> str:
        return f"cron[{self.expression}]"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} ({self.expression!r}, timezone='{self.timezone}')>"
