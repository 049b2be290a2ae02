"""Per-endpoint polling loops with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .fetcher import SchemaFetcher
from .registry import EndpointRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 10.0
DEFAULT_MAX_POLL_INTERVAL_SECONDS = 3600.0
BACKOFF_FACTOR = 1.5

SleepFn = Callable[[float], Awaitable[None]]


def next_poll_interval(current: float, *, succeeded: bool, base: float, maximum: float) -> float:
    if succeeded:
        return base
    return min(current * BACKOFF_FACTOR, maximum)


class PollScheduler:
    """Runs one self-perpetuating fetch loop per endpoint.

    A loop ends when its endpoint leaves the registry. Backoff state lives
    only here and is never persisted.
    """

    def __init__(
        self,
        fetcher: SchemaFetcher,
        registry: EndpointRegistry,
        *,
        interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        max_interval_seconds: float = DEFAULT_MAX_POLL_INTERVAL_SECONDS,
        sleep: SleepFn | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if max_interval_seconds < interval_seconds:
            raise ValueError("max_interval_seconds must be >= interval_seconds")
        self._fetcher = fetcher
        self._registry = registry
        self._base = interval_seconds
        self._maximum = max_interval_seconds
        self._sleep = sleep or asyncio.sleep
        self._loops: dict[str, asyncio.Task[None]] = {}
        self._intervals: dict[str, float] = {}
        self._out_of_band: set[asyncio.Task[bool]] = set()

    def is_polling(self, url: str) -> bool:
        task = self._loops.get(url)
        return task is not None and not task.done()

    def interval_for(self, url: str) -> float | None:
        return self._intervals.get(url)

    def start(self, url: str) -> asyncio.Task[None]:
        task = self._loops.get(url)
        if task is not None and not task.done():
            return task
        self._intervals[url] = self._base
        task = asyncio.get_running_loop().create_task(self._poll_forever(url), name=f"chatops-rpc-poll:{url}")
        self._loops[url] = task
        return task

    def fetch_now(self, url: str) -> asyncio.Task[bool]:
        """Fetch ``url`` immediately without touching its loop's backoff."""
        task = asyncio.get_running_loop().create_task(self._fetch_once(url), name=f"chatops-rpc-fetch:{url}")
        self._out_of_band.add(task)
        task.add_done_callback(self._out_of_band.discard)
        return task

    def stop(self, url: str) -> None:
        task = self._loops.pop(url, None)
        self._intervals.pop(url, None)
        if task is not None and not task.done():
            task.cancel()

    async def close(self) -> None:
        tasks = [*self._loops.values(), *self._out_of_band]
        for task in tasks:
            task.cancel()
        self._loops.clear()
        self._intervals.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _poll_forever(self, url: str) -> None:
        interval = self._base
        while True:
            succeeded = await self._fetch_once(url)
            if url not in self._registry:
                logger.debug("endpoint %s removed; polling stopped", url)
                self._intervals.pop(url, None)
                return

            interval = next_poll_interval(interval, succeeded=succeeded, base=self._base, maximum=self._maximum)
            self._intervals[url] = interval
            logger.debug("next fetch of %s in %.2fs", url, interval)
            await self._sleep(interval)

    async def _fetch_once(self, url: str) -> bool:
        try:
            return await self._fetcher.fetch(url)
        except asyncio.CancelledError:
            raise
        except Exception:
            # One failing cycle must not end the loop.
            logger.exception("unexpected error fetching %s", url)
            return False
