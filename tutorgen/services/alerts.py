"""
Budget alert webhook
"""

import asyncio
import logging
from datetime import date
from typing import Any, Optional, Set, Tuple

import httpx

logger = logging.getLogger(__name__)


class BudgetAlerter:
    """Posts one alert per (scope, day) per process to a Slack-style webhook"""

    def __init__(self, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self._transport = transport
        self._sent: Set[Tuple[str, date]] = set()
        self._pending: Set[asyncio.Task[Any]] = set()

    def schedule(self, webhook: Optional[str], scope: str, day: date, message: str) -> Optional[asyncio.Task]:
        """Post the alert in the background so the rejected request is not held up"""
        if not webhook:
            return None
        task = asyncio.create_task(self.notify(webhook, scope, day, message))
        self._pending.add(task)

        def _finished(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if t.cancelled():
                return
            if t.exception() is not None:
                logger.error(f"Budget alert for {scope} failed", exc_info=t.exception())

        task.add_done_callback(_finished)
        return task

    async def drain(self) -> None:
        """Wait for alerts still in flight"""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    async def notify(self, webhook: Optional[str], scope: str, day: date, message: str) -> bool:
        """Returns True when an alert was posted"""
        if not webhook or (scope, day) in self._sent:
            return False
        # Earlier days can no longer be alerted on
        self._sent = {sent for sent in self._sent if sent[1] >= day}
        self._sent.add((scope, day))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(webhook, json={"text": f"[tutorgen] {message}"})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Budget alert webhook failed for {scope}: {e}")
            return False
        return True
