from __future__ import annotations

import asyncio

import pytest

from subweave.error_codes import ErrorCode
from subweave.exceptions import PipelineCancelledError
from subweave.pipeline.cancellation import CancellationToken
from subweave.pipeline.concurrency import ConcurrencyLimiter, main_loop_concurrency, map_in_parallel


def test_cancel_is_idempotent_and_fires_listeners_once() -> None:
    token = CancellationToken()
    calls: list[str] = []
    token.add_listener(calls.append)
    remove = token.add_listener(lambda reason: calls.append(f"removed:{reason}"))
    remove()

    token.cancel("first")
    token.cancel("second")

    assert token.cancelled
    assert token.reason == "first"
    assert calls == ["first"]

    late: list[str] = []
    token.add_listener(late.append)
    assert late == ["first"]


def test_raise_if_cancelled_carries_code() -> None:
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel("stop")
    with pytest.raises(PipelineCancelledError) as excinfo:
        token.raise_if_cancelled()
    assert excinfo.value.error_code == ErrorCode.CANCELLED


@pytest.mark.asyncio
async def test_run_returns_result_when_not_cancelled() -> None:
    async def _work() -> int:
        await asyncio.sleep(0)
        return 7

    assert await CancellationToken().run(_work()) == 7


@pytest.mark.asyncio
async def test_run_propagates_inner_errors() -> None:
    async def _work() -> int:
        raise KeyError("nope")

    with pytest.raises(KeyError):
        await CancellationToken().run(_work())


@pytest.mark.asyncio
async def test_run_cancels_inner_task_when_token_fires() -> None:
    token = CancellationToken()
    started = asyncio.Event()
    inner_cancelled = False

    async def _slow() -> None:
        nonlocal inner_cancelled
        started.set()
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            inner_cancelled = True
            raise

    runner = asyncio.create_task(token.run(_slow()))
    await started.wait()
    token.cancel("user stop")

    with pytest.raises(PipelineCancelledError, match="user stop"):
        await runner
    assert inner_cancelled


@pytest.mark.asyncio
async def test_limiter_bounds_concurrency_per_service() -> None:
    limiter = ConcurrencyLimiter(maxima={"fast": 2, "heavy": 1})
    peak = 0
    active = 0

    async def _job(_item: int, _i: int) -> None:
        nonlocal peak, active
        async with limiter.acquire("fast") as state:
            assert state.max == 2
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

    await map_in_parallel(list(range(6)), 6, _job)
    assert peak == 2
    assert limiter.snapshot("fast").active == 0


@pytest.mark.asyncio
async def test_map_in_parallel_stops_picking_when_told() -> None:
    done: list[int] = []

    async def _job(item: int, _i: int) -> int:
        done.append(item)
        return item * 10

    results = await map_in_parallel([1, 2, 3, 4], 1, _job, should_continue=lambda: len(done) < 2)
    assert results == [10, 20, None, None]


def test_main_loop_concurrency_bounds() -> None:
    assert main_loop_concurrency(3, 5) == 20
    assert main_loop_concurrency(120, 5) == 50
    assert main_loop_concurrency(30, 5, cap=25) == 25
