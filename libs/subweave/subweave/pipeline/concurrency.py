"""Per-run concurrency limits by service class."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Literal, TypeVar

from subweave.config import ConcurrencyConfig

logger = logging.getLogger(__name__)

ServiceClass = Literal["transcription", "fast", "heavy", "local"]

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ConcurrencyState:
    active: int
    max: int


class ConcurrencyLimiter:
    """One semaphore per service class, plus active/max counters for progress."""

    def __init__(self, *, maxima: dict[ServiceClass, int]) -> None:
        self._max: dict[ServiceClass, int] = {k: max(1, int(v)) for k, v in maxima.items()}
        self._active: dict[ServiceClass, int] = {k: 0 for k in self._max}
        self._semaphores: dict[ServiceClass, asyncio.Semaphore] = {
            k: asyncio.Semaphore(v) for k, v in self._max.items()
        }

    @classmethod
    def from_config(cls, config: ConcurrencyConfig) -> "ConcurrencyLimiter":
        return cls(
            maxima={
                "transcription": int(config.transcription),
                "fast": int(config.fast),
                "heavy": int(config.heavy),
                "local": int(config.local),
            }
        )

    def snapshot(self, service: ServiceClass) -> ConcurrencyState:
        return ConcurrencyState(active=self._active.get(service, 0), max=self._max.get(service, 1))

    @asynccontextmanager
    async def acquire(self, service: ServiceClass) -> AsyncIterator[ConcurrencyState]:
        semaphore = self._semaphores[service]
        async with semaphore:
            self._active[service] += 1
            try:
                yield self.snapshot(service)
            finally:
                self._active[service] -= 1


def main_loop_concurrency(total_chunks: int, pipeline_concurrency: int, cap: int = 50) -> int:
    """Dispatch width for the chunk loop; real limits live in the semaphores."""
    return max(1, min(max(int(total_chunks), int(pipeline_concurrency), 20), int(cap)))


async def map_in_parallel(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T, int], Awaitable[R]],
    should_continue: Callable[[], bool] | None = None,
) -> list[R | None]:
    """Run ``fn(item, index)`` with at most ``limit`` in flight.

    Workers stop picking new items once ``should_continue()`` is false; items
    never started leave ``None`` in the result. The first exception raised by
    ``fn`` cancels the other workers and propagates.
    """
    results: list[R | None] = [None] * len(items)
    if not items:
        return results
    next_index = 0

    async def _worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            if should_continue is not None and not should_continue():
                return
            i = next_index
            next_index += 1
            results[i] = await fn(items[i], i)

    workers = [asyncio.create_task(_worker()) for _ in range(max(1, min(int(limit), len(items))))]
    try:
        await asyncio.gather(*workers)
    finally:
        for w in workers:
            if not w.done():
                w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
    return results
