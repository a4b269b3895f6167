from __future__ import annotations

import asyncio

import pytest

from subweave.exceptions import PipelineCancelledError
from subweave.glossary import GlossaryGate, GlossaryState, auto_confirm_terms, merge_glossary_results
from subweave.models.glossary import (
    GlossaryExtractionMetadata,
    GlossaryExtractionResult,
    GlossaryItem,
)
from subweave.pipeline.cancellation import CancellationToken


def _metadata(*term_lists: list[GlossaryItem], failed: int = 0) -> GlossaryExtractionMetadata:
    results = [
        GlossaryExtractionResult(terms=list(terms), chunk_index=i + 1, confidence="high")
        for i, terms in enumerate(term_lists)
    ]
    results.extend(
        GlossaryExtractionResult(terms=[], chunk_index=100 + i, confidence="low") for i in range(failed)
    )
    return GlossaryExtractionMetadata.from_results(results)


def test_merge_classifies_unique_duplicate_and_conflict() -> None:
    metadata = _metadata(
        [GlossaryItem("Tokyo", "东京"), GlossaryItem("Kyoto", "京都")],
        [GlossaryItem("tokyo", "东京"), GlossaryItem("Kyoto", "京都府")],
        [GlossaryItem("Osaka", "大阪")],
    )
    merged = merge_glossary_results(metadata.results)

    assert sorted(i.term for i in merged.unique) == ["Osaka", "Tokyo"]
    assert list(merged.duplicates) == ["tokyo"]
    assert len(merged.conflicts) == 1
    assert merged.conflicts[0].term == "Kyoto"
    assert merged.conflicts[0].has_existing is False


def test_merge_flags_conflicts_with_existing_terms() -> None:
    existing = [GlossaryItem("Kyoto", "京都")]
    merged = merge_glossary_results(_metadata([GlossaryItem("KYOTO", "京都市")]).results, existing)
    assert merged.conflicts[0].has_existing is True
    assert merged.conflicts[0].options[0] is existing[0]


def test_auto_confirm_keeps_existing_and_appends_new_terms() -> None:
    existing = [GlossaryItem("Kyoto", "京都")]
    metadata = _metadata(
        [GlossaryItem("kyoto", "京都市"), GlossaryItem("Nara", "奈良")],
        [GlossaryItem("Kobe", "神户"), GlossaryItem("Kobe", "神戸")],
    )
    out = auto_confirm_terms(metadata, existing)

    assert [(i.term, i.translation) for i in out] == [
        ("Kyoto", "京都"),
        ("Nara", "奈良"),
        ("Kobe", "神户"),
    ]


@pytest.mark.asyncio
async def test_gate_without_terms_returns_existing() -> None:
    existing = [GlossaryItem("A", "a")]
    gate = GlossaryGate(existing=existing, wait_for_confirmation=True)
    out = await gate.resolve(_metadata([]), CancellationToken())
    assert out == existing
    assert not gate.is_waiting


@pytest.mark.asyncio
async def test_gate_auto_confirm_does_not_block() -> None:
    gate = GlossaryGate(auto_confirm=True, wait_for_confirmation=True)
    out = await gate.resolve(_metadata([GlossaryItem("A", "a")]), CancellationToken())
    assert [i.term for i in out] == ["A"]


@pytest.mark.asyncio
async def test_gate_auto_confirm_with_failures_waits_for_manual_confirmation() -> None:
    gate = GlossaryGate(auto_confirm=True, wait_for_confirmation=True)
    task = asyncio.create_task(
        gate.resolve(_metadata([GlossaryItem("A", "a")], failed=1), CancellationToken())
    )
    await asyncio.sleep(0)
    assert gate.is_waiting
    assert gate.pending is not None and gate.pending.has_failures

    assert gate.confirm([GlossaryItem("B", "b")]) is True
    assert [i.term for i in await task] == ["B"]
    assert not gate.is_waiting
    assert gate.confirm([GlossaryItem("C", "c")]) is False


@pytest.mark.asyncio
async def test_gate_uses_callback_result() -> None:
    seen: list[GlossaryExtractionMetadata] = []

    async def _on_ready(metadata: GlossaryExtractionMetadata) -> list[GlossaryItem]:
        seen.append(metadata)
        return [GlossaryItem("X", "x")]

    gate = GlossaryGate(on_glossary_ready=_on_ready)
    out = await gate.resolve(_metadata([GlossaryItem("A", "a")]), CancellationToken())

    assert [i.term for i in out] == ["X"]
    assert seen[0].total_terms == 1
    assert gate.pending is None


@pytest.mark.asyncio
async def test_gate_without_confirmer_falls_back_to_existing() -> None:
    existing = [GlossaryItem("E", "e")]
    gate = GlossaryGate(existing=existing)
    out = await gate.resolve(_metadata([GlossaryItem("A", "a")]), CancellationToken())
    assert out == existing


@pytest.mark.asyncio
async def test_gate_cancellation_rejects_and_clears_pending() -> None:
    token = CancellationToken()
    gate = GlossaryGate(wait_for_confirmation=True)
    task = asyncio.create_task(gate.resolve(_metadata([GlossaryItem("A", "a")]), token))
    await asyncio.sleep(0)
    assert gate.is_waiting

    token.cancel("user stop")
    with pytest.raises(PipelineCancelledError):
        await task
    assert gate.pending is None
    assert gate.confirm([]) is False


@pytest.mark.asyncio
async def test_glossary_state_degrades_failures_to_empty() -> None:
    async def _broken() -> list[GlossaryItem]:
        raise RuntimeError("extraction exploded")

    state = GlossaryState(_broken())
    assert await state.get() == []
    assert state.is_ready


@pytest.mark.asyncio
async def test_glossary_state_get_races_the_token() -> None:
    never: asyncio.Future[list[GlossaryItem]] = asyncio.get_running_loop().create_future()
    state = GlossaryState(never)
    token = CancellationToken()

    waiter = asyncio.create_task(state.get(token))
    await asyncio.sleep(0)
    token.cancel()

    with pytest.raises(PipelineCancelledError):
        await waiter
    assert not state.is_ready
    await state.close()


@pytest.mark.asyncio
async def test_glossary_state_ready() -> None:
    state = GlossaryState.ready([GlossaryItem("A", "a")])
    assert [i.term for i in await state.get()] == ["A"]
    assert state.result() == [GlossaryItem("A", "a")]


@pytest.mark.asyncio
async def test_gate_reports_waiting_only_for_manual_confirmation() -> None:
    calls: list[str] = []
    token = CancellationToken()

    auto = GlossaryGate(auto_confirm=True)
    await auto.resolve(_metadata([GlossaryItem("A", "a")]), token, on_waiting=lambda: calls.append("auto"))
    assert calls == []

    manual = GlossaryGate(wait_for_confirmation=True)
    task = asyncio.create_task(
        manual.resolve(_metadata([GlossaryItem("A", "a")]), token, on_waiting=lambda: calls.append("manual"))
    )
    await asyncio.sleep(0)
    assert calls == ["manual"]
    assert manual.confirm([GlossaryItem("B", "b")]) is True
    assert [i.term for i in await task] == ["B"]
