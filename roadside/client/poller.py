"""
Dashboard Poller
================

Periodically re-runs a dashboard refresh (for example ``my_requests`` on the
driver screen) and hands each result to a callback.

  - Default interval is 30 seconds.
  - ``AuthenticationError`` ends polling: the session is gone and the user
    must log in again.
  - Any other dispatch or transport error is logged and the next tick tries
    again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from roadside.core.exceptions import AuthenticationError, DispatchError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0

Refresh = Callable[[], Awaitable[Any]]
OnUpdate = Callable[[Any], Any]


class DashboardPoller:
    def __init__(
        self,
        refresh: Refresh,
        on_update: Optional[OnUpdate] = None,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        name: str = "dashboard",
    ) -> None:
        self.refresh = refresh
        self.on_update = on_update
        self.interval = interval
        self.name = name
        self.last_result: Any = None
        self.last_error: Optional[Exception] = None
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> bool:
        """Refresh once; return False when polling should stop."""
        try:
            result = await self.refresh()
        except AuthenticationError as exc:
            logger.info("%s poller stopping: %s", self.name, exc)
            self.last_error = exc
            return False
        except (DispatchError, httpx.HTTPError) as exc:
            logger.warning("%s refresh failed, retrying next tick: %s", self.name, exc)
            self.last_error = exc
            return True

        self.last_result = result
        self.last_error = None
        if self.on_update is not None:
            outcome = self.on_update(result)
            if asyncio.iscoroutine(outcome):
                await outcome
        return True

    async def run(self) -> None:
        """Poll until stopped or the session is rejected."""
        self._stop.clear()
        while not self._stop.is_set():
            if not await self.run_once():
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.create_task(self.run(), name=f"{self.name}-poller")
        return self._task

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
