"""schedprompt: schedule prompts for an agent at times, delays, or cadences."""

__version__ = "0.3.0"
