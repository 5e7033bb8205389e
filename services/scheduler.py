# services/scheduler.py
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Optional

import httpx
from sqlalchemy.orm import sessionmaker

from services.price_sync_service import PriceSynchronizer

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


class PeriodicTask:
    """
    Runs `job` every `interval` seconds on the running event loop until
    stop() is called. A failing run is logged and the loop carries on.
    """

    def __init__(self, name: str, interval: float, job: Job, *, initial_delay: float = 0.0):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = float(interval)
        self.initial_delay = max(0.0, float(initial_delay))
        self._job = job
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info("periodic_task_started name=%s interval_s=%s", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop.set()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("periodic_task_stopped name=%s runs=%d", self.name, self.runs)

    async def _sleep(self, seconds: float) -> bool:
        """Wait up to `seconds`; True if stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _loop(self) -> None:
        if self.initial_delay and await self._sleep(self.initial_delay):
            return
        while not self._stop.is_set():
            try:
                await self._job()
            except Exception:
                logger.exception("periodic_task_failed name=%s", self.name)
            self.runs += 1
            if await self._sleep(self.interval):
                return


def price_refresh_job(session_factory: sessionmaker, synchronizer: PriceSynchronizer) -> Job:
    async def run():
        db = session_factory()
        try:
            return await synchronizer.refresh_all(db)
        finally:
            db.close()

    return run


def keepalive_job(client: httpx.AsyncClient, url: str) -> Job:
    async def run():
        r = await client.get(url)
        logger.debug("keepalive_ping status=%s", r.status_code)
        return r.status_code

    return run
