"""Non-blocking holder for the run's confirmed glossary."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable

from subweave.exceptions import PipelineCancelledError
from subweave.models.glossary import GlossaryItem
from subweave.pipeline.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class GlossaryState:
    """Wraps the glossary resolution so each chunk can await it independently.

    A failed resolution degrades to an empty glossary; cancellation is not a
    failure and propagates to every waiter.
    """

    def __init__(self, resolution: Awaitable[list[GlossaryItem]]) -> None:
        self._task: asyncio.Task[list[GlossaryItem]] = asyncio.ensure_future(
            self._settle(resolution)
        )

    @classmethod
    def ready(cls, glossary: list[GlossaryItem]) -> "GlossaryState":
        async def _value() -> list[GlossaryItem]:
            return list(glossary)

        return cls(_value())

    @staticmethod
    async def _settle(resolution: Awaitable[list[GlossaryItem]]) -> list[GlossaryItem]:
        try:
            glossary = list(await resolution)
        except PipelineCancelledError:
            raise
        except Exception as exc:
            logger.error("glossary resolution failed, continuing without glossary: %s", exc)
            return []
        logger.info("glossary resolved (terms=%s)", len(glossary))
        return glossary

    @property
    def is_ready(self) -> bool:
        return self._task.done()

    async def get(self, token: CancellationToken | None = None) -> list[GlossaryItem]:
        if token is None:
            return await asyncio.shield(self._task)
        return await token.run(asyncio.shield(self._task))

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    async def close(self) -> None:
        """Cancel a pending resolution and wait for it to settle."""
        self.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    def result(self) -> list[GlossaryItem] | None:
        """The resolved glossary, or ``None`` if it never resolved."""
        if not self._task.done() or self._task.cancelled() or self._task.exception() is not None:
            return None
        return list(self._task.result())
