"""Cooperative cancellation for one pipeline run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from subweave.exceptions import PipelineCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CancelListener = Callable[[str], None]


class CancellationToken:
    """A one-shot cancel signal shared by every task of a run.

    ``cancel()`` is idempotent; listeners fire once, in registration order.
    Listeners added after cancellation fire immediately.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None
        self._listeners: list[CancelListener] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "Operation cancelled") -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.info("run cancelled (reason=%s)", reason)
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError(self._reason or "Operation cancelled")

    def add_listener(self, listener: CancelListener) -> Callable[[], None]:
        """Register ``listener``; returns a handle that unregisters it."""
        if self._event.is_set():
            listener(self._reason or "Operation cancelled")
            return lambda: None
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def wait(self) -> str:
        await self._event.wait()
        return self._reason or "Operation cancelled"

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        On cancellation the inner task is cancelled and
        :class:`PipelineCancelledError` is raised.
        """
        self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if task.done() and not task.cancelled() and task.exception() is None:
            return task.result()
        if not self._event.is_set():
            return task.result()
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        raise PipelineCancelledError(self._reason or "Operation cancelled")
