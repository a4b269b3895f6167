"""Glossary confirmation rendezvous.

Extraction runs concurrently with chunk processing; before refinement a chunk
needs the *confirmed* glossary. The gate turns extraction metadata into that
list, either immediately (nothing to confirm, or auto-confirm) or by blocking
on a confirmation coming from outside the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from subweave.glossary.auto_confirm import auto_confirm_terms
from subweave.exceptions import PipelineCancelledError
from subweave.models.glossary import GlossaryExtractionMetadata, GlossaryItem
from subweave.pipeline.cancellation import CancellationToken

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[GlossaryExtractionMetadata], Awaitable[list[GlossaryItem]]]


class GlossaryGate:
    """Resolve extraction metadata into the run's active glossary.

    Manual confirmation arrives either through ``on_glossary_ready`` or a
    :meth:`confirm` call; whichever comes first wins and later confirmations
    are ignored. Without either source (``on_glossary_ready`` unset and
    ``wait_for_confirmation`` off) the existing glossary is used.
    """

    def __init__(
        self,
        *,
        existing: list[GlossaryItem] | None = None,
        auto_confirm: bool = False,
        on_glossary_ready: ConfirmCallback | None = None,
        wait_for_confirmation: bool = False,
    ) -> None:
        self.existing = list(existing or [])
        self.auto_confirm = bool(auto_confirm)
        self.on_glossary_ready = on_glossary_ready
        self.wait_for_confirmation = bool(wait_for_confirmation)
        self._pending: GlossaryExtractionMetadata | None = None
        self._confirmed: asyncio.Future[list[GlossaryItem]] | None = None

    @property
    def pending(self) -> GlossaryExtractionMetadata | None:
        """Metadata awaiting confirmation (``None`` when nothing is pending)."""
        return self._pending

    @property
    def is_waiting(self) -> bool:
        return self._pending is not None

    def confirm(self, items: list[GlossaryItem]) -> bool:
        """Deliver the user's confirmed terms. Returns False if nothing was pending."""
        fut = self._confirmed
        if fut is None or fut.done():
            logger.debug("glossary confirm ignored (pending=%s)", self._pending is not None)
            return False
        fut.set_result(list(items))
        return True

    async def resolve(
        self,
        metadata: GlossaryExtractionMetadata,
        token: CancellationToken,
        *,
        on_waiting: Callable[[], None] | None = None,
    ) -> list[GlossaryItem]:
        """Return the confirmed glossary.

        ``on_waiting`` is called once right before blocking on a manual
        confirmation.
        """
        token.raise_if_cancelled()

        if metadata.total_terms == 0 and not metadata.has_failures:
            logger.info("glossary: no new terms, using existing (count=%s)", len(self.existing))
            return list(self.existing)

        if self.auto_confirm and not metadata.has_failures:
            return auto_confirm_terms(metadata, self.existing)

        if self.on_glossary_ready is None and not self.wait_for_confirmation:
            logger.info(
                "glossary: no confirmer, using existing (terms=%s, has_failures=%s)",
                metadata.total_terms,
                metadata.has_failures,
            )
            return list(self.existing)

        if on_waiting is not None:
            on_waiting()
        return await self._await_manual(metadata, token)

    async def _await_manual(
        self,
        metadata: GlossaryExtractionMetadata,
        token: CancellationToken,
    ) -> list[GlossaryItem]:
        loop = asyncio.get_running_loop()
        confirmed: asyncio.Future[list[GlossaryItem]] = loop.create_future()
        self._confirmed = confirmed
        self._pending = metadata
        remove_listener = token.add_listener(lambda _reason: self._clear_pending())
        logger.info(
            "glossary: waiting for confirmation (terms=%s, has_failures=%s)",
            metadata.total_terms,
            metadata.has_failures,
        )
        try:
            items = await token.run(self._first_confirmation(metadata, confirmed))
        finally:
            remove_listener()
            self._clear_pending()
        logger.info("glossary confirmed (count=%s)", len(items))
        return items

    async def _first_confirmation(
        self,
        metadata: GlossaryExtractionMetadata,
        confirmed: asyncio.Future[list[GlossaryItem]],
    ) -> list[GlossaryItem]:
        waiters: list[asyncio.Future[list[GlossaryItem]]] = [confirmed]
        callback_task: asyncio.Future[list[GlossaryItem]] | None = None
        if self.on_glossary_ready is not None:
            callback_task = asyncio.ensure_future(self.on_glossary_ready(metadata))
            waiters.append(callback_task)
        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if callback_task is not None and not callback_task.done():
                callback_task.cancel()
        if confirmed in done:
            if confirmed.cancelled():
                raise PipelineCancelledError()
            return confirmed.result()
        assert callback_task is not None
        return list(callback_task.result())

    def _clear_pending(self) -> None:
        self._pending = None
        fut = self._confirmed
        if fut is not None and not fut.done():
            fut.cancel()
        self._confirmed = None
