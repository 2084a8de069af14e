"""Webhook sink that POSTs due prompts to an HTTP endpoint."""

from __future__ import annotations

import logging

import httpx

from schedprompt.channels.base import ExecutionSink, ScheduledPrompt

logger = logging.getLogger("schedprompt.channels.webhook")


class WebhookSink(ExecutionSink):
    """Sends ``{"job_id", "job_name", "prompt"}`` as JSON to *url*.

    Non-2xx responses raise ``httpx.HTTPStatusError`` so the engine records
    the run as failed.
    """

    sink_name = "webhook"

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self.headers = headers or {}
        self.timeout = timeout

    async def deliver(self, prompt: ScheduledPrompt) -> None:
        payload = {
            "job_id": prompt.job_id,
            "job_name": prompt.job_name,
            "prompt": prompt.text,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.url, json=payload, headers=self.headers)
            resp.raise_for_status()
        logger.debug("Delivered %s to %s (%d)", prompt.job_id, self.url, resp.status_code)
