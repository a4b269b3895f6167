"""Template for one per-chunk pipeline step."""

from __future__ import annotations

import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Generic, TypeVar

from subweave.error_codes import ErrorCode
from subweave.exceptions import PipelineCancelledError, StageExecutionError
from subweave.models.progress import ChunkState, StageKey
from subweave.pipeline.concurrency import ServiceClass
from subweave.pipeline.context import StepContext

logger = logging.getLogger(__name__)

InT = TypeVar("InT")
OutT = TypeVar("OutT")


@dataclass
class StepResult(Generic[OutT]):
    output: OutT
    skipped: bool = False
    error: BaseException | None = None


class Stage(ABC, Generic[InT, OutT]):
    """Runs ``execute`` inside the common step protocol.

    1. bail out if the run is cancelled;
    2. report "waiting", acquire the service-class slot, re-check cancellation;
    3. report "processing", ``pre_check`` (may skip), ``execute``, ``post_process``.

    A failure becomes :class:`StageExecutionError` unless
    ``fallback_on_stage_error`` is on and the step defines a fallback.
    Cancellation always propagates.
    """

    name: str
    stage_key: StageKey
    error_code: ErrorCode = ErrorCode.UNKNOWN

    def service_class(self, ctx: StepContext) -> ServiceClass | None:
        return None

    async def pre_check(self, data: InT, ctx: StepContext) -> bool:
        return True

    def skip_output(self, data: InT) -> OutT:
        raise NotImplementedError(f"{self.name} cannot be skipped")

    @abstractmethod
    async def execute(self, data: InT, ctx: StepContext) -> OutT:
        """Do the step's work."""

    def post_process(self, output: OutT, data: InT, ctx: StepContext) -> OutT:
        return output

    def get_fallback(self, data: InT, error: Exception, ctx: StepContext) -> OutT | None:
        return None

    @contextlib.asynccontextmanager
    async def _slot(self, ctx: StepContext) -> AsyncIterator[None]:
        service = self.service_class(ctx)
        if service is None:
            yield
            return
        async with ctx.run.limiter.acquire(service):
            yield

    async def run(self, data: InT, ctx: StepContext) -> StepResult[OutT]:
        token = ctx.run.token
        emitter = ctx.run.emitter
        index = ctx.chunk.index

        token.raise_if_cancelled()
        emitter.chunk(index, ChunkState.PROCESSING, stage=self.stage_key, message=f"waiting: {self.name}")

        async with self._slot(ctx):
            token.raise_if_cancelled()
            emitter.chunk(index, ChunkState.PROCESSING, stage=self.stage_key, message=self.name)
            try:
                if not await self.pre_check(data, ctx):
                    logger.info("stage skipped (chunk=%s, stage=%s)", index, self.name)
                    return StepResult(output=self.skip_output(data), skipped=True)
                output = await token.run(self.execute(data, ctx))
                return StepResult(output=self.post_process(output, data, ctx))
            except PipelineCancelledError:
                raise
            except Exception as exc:
                logger.error("stage failed (chunk=%s, stage=%s): %s", index, self.name, exc)
                if ctx.settings.pipeline.fallback_on_stage_error:
                    fallback = self.get_fallback(data, exc, ctx)
                    if fallback is not None:
                        logger.warning("stage fallback used (chunk=%s, stage=%s)", index, self.name)
                        return StepResult(output=fallback, error=exc)
                if isinstance(exc, StageExecutionError):
                    raise
                raise StageExecutionError(
                    self.name,
                    str(exc),
                    chunk_index=index,
                    error_code=getattr(exc, "error_code", None) or self.error_code,
                ) from exc
