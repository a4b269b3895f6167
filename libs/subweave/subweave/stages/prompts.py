"""Prompt builders for the default LLM backend."""

from __future__ import annotations

import json
from typing import Any

from subweave.models.glossary import GlossaryItem
from subweave.models.segment import Segment, SpeakerProfile


def _glossary_block(glossary: list[GlossaryItem]) -> str:
    if not glossary:
        return ""
    lines = []
    for item in glossary:
        note = f" ({item.notes})" if item.notes else ""
        lines.append(f"- {item.term} => {item.translation}{note}")
    return "\n\nGlossary (use these renderings consistently):\n" + "\n".join(lines)


def _speaker_block(profiles: list[SpeakerProfile] | None) -> str:
    if not profiles:
        return ""
    names = ", ".join(p.name for p in profiles)
    return f"\n\nKnown speakers: {names}. Use exactly these names in the speaker field."


def refinement_system_prompt(
    *,
    genre: str,
    glossary: list[GlossaryItem],
    speaker_profiles: list[SpeakerProfile] | None,
    enable_diarization: bool,
) -> str:
    speaker_rule = (
        " Attribute each segment to a speaker in a `speaker` field."
        if enable_diarization
        else ""
    )
    return (
        f"You proofread automatic transcripts of {genre} content. Fix recognition errors, "
        "punctuation and segmentation. Keep the original language. Keep each segment's "
        "start/end timestamps (HH:MM:SS,mmm) unless a segment is split or merged."
        f"{speaker_rule}"
        f"{_glossary_block(glossary)}"
        f"{_speaker_block(speaker_profiles)}"
    )


def refinement_user_prompt(segments: list[Segment], *, enable_diarization: bool) -> str:
    payload: list[dict[str, Any]] = []
    for seg in segments:
        item: dict[str, Any] = {
            "id": seg.id,
            "start": seg.start_time,
            "end": seg.end_time,
            "text": seg.original,
        }
        if enable_diarization and seg.speaker:
            item["speaker"] = seg.speaker
        payload.append(item)
    return (
        "Return a JSON array of objects with keys id, start, end, text"
        + (", speaker" if enable_diarization else "")
        + ".\n\n"
        + json.dumps(payload, ensure_ascii=False)
    )


def translation_system_prompt(
    *,
    genre: str,
    target_language: str,
    glossary: list[GlossaryItem],
    speaker_profiles: list[SpeakerProfile] | None,
) -> str:
    return (
        f"You translate {genre} subtitles into {target_language}. Translate every item, "
        "keep the meaning and tone, and keep lines short enough to read on screen."
        f"{_glossary_block(glossary)}"
        f"{_speaker_block(speaker_profiles)}"
    )


def translation_user_prompt(segments: list[Segment]) -> str:
    payload = [{"id": seg.id, "text": seg.original} for seg in segments]
    return (
        f"Translate all {len(payload)} items. Return a JSON array of objects with keys "
        "id and text_translated, one per input item, same ids.\n\n"
        + json.dumps(payload, ensure_ascii=False)
    )


def glossary_system_prompt(*, genre: str, target_language: str) -> str:
    return (
        f"You extract terminology from {genre} transcripts: names, places, organisations and "
        f"domain terms that need a consistent {target_language} rendering."
    )


def glossary_user_prompt(transcript: str) -> str:
    return (
        'Return a JSON object {"terms": [{"term", "translation", "notes"}], '
        '"confidence": "high" | "medium" | "low"}.\n\nTranscript:\n' + transcript
    )


def speaker_system_prompt(*, genre: str) -> str:
    return (
        f"You identify the distinct speakers in a {genre} transcript. Use real names when "
        "the transcript reveals them, otherwise 'Speaker 1', 'Speaker 2', ..."
    )


def speaker_user_prompt(transcript: str) -> str:
    return 'Return a JSON object {"speakers": [{"name"}]}.\n\nTranscript:\n' + transcript
