"""Speaker identity helpers.

Segments reference speakers by a stable ``speaker_id`` (``spk_<uuid>``); the
``speaker`` display name on a segment is only a cache of the profile name.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import replace

from subweave.models.segment import Segment, SpeakerProfile

SPEAKER_COLORS: tuple[str, ...] = (
    "#00FFFF",
    "#FF3333",
    "#00FF00",
    "#FFFF00",
    "#FF00FF",
    "#FFA500",
    "#00BFFF",
    "#FF1493",
    "#7FFFD4",
    "#FFD700",
    "#B088FF",
    "#32CD32",
    "#FF69B4",
    "#DDA0DD",
    "#00FA9A",
    "#6495ED",
)

_DIGITS_RE = re.compile(r"\d+")


def create_speaker_id() -> str:
    return f"spk_{uuid.uuid4()}"


def speaker_color(name: str) -> str:
    """Stable palette colour: ``Speaker N`` maps by number, other names by djb2 hash."""
    if not name:
        return "#FFFFFF"
    match = _DIGITS_RE.search(name)
    if match:
        return SPEAKER_COLORS[(int(match.group(0)) - 1) % len(SPEAKER_COLORS)]
    h = 5381
    for ch in name:
        h = ((h << 5) + h + ord(ch)) & 0xFFFFFFFF
    return SPEAKER_COLORS[h % len(SPEAKER_COLORS)]


def bind_speaker_profiles(
    segments: list[Segment],
    profiles: list[SpeakerProfile],
) -> tuple[list[Segment], list[SpeakerProfile]]:
    """Resolve speaker names to profile ids, creating profiles for unknown names.

    Segments that already reference a known profile are left as they are.
    Returns new segments and ``profiles`` plus any created profiles.
    """
    by_id = {p.id: p for p in profiles}
    name_to_id = {p.name: p.id for p in profiles}
    created: list[SpeakerProfile] = []

    out: list[Segment] = []
    for seg in segments:
        if seg.speaker_id and seg.speaker_id in by_id:
            out.append(replace(seg, speaker=by_id[seg.speaker_id].name))
            continue
        name = (seg.speaker or "").strip()
        if not name:
            out.append(replace(seg, speaker_id=None))
            continue
        speaker_id = name_to_id.get(name)
        if speaker_id is None:
            profile = SpeakerProfile(
                id=create_speaker_id(),
                name=name,
                color=speaker_color(name),
                is_standard=name.startswith("Speaker "),
            )
            created.append(profile)
            by_id[profile.id] = profile
            name_to_id[name] = profile.id
            speaker_id = profile.id
        out.append(replace(seg, speaker_id=speaker_id, speaker=name))

    return out, [*profiles, *created]


def rename_speaker(
    segments: list[Segment],
    profiles: list[SpeakerProfile],
    speaker_id: str,
    new_name: str,
) -> tuple[list[Segment], list[SpeakerProfile]]:
    name = str(new_name or "").strip()
    if not name:
        raise ValueError("speaker name must not be empty")
    if not any(p.id == speaker_id for p in profiles):
        raise KeyError(speaker_id)

    new_profiles = [
        replace(p, name=name, is_standard=False) if p.id == speaker_id else p for p in profiles
    ]
    new_segments = [
        replace(seg, speaker=name) if seg.speaker_id == speaker_id else seg for seg in segments
    ]
    return new_segments, new_profiles


def assign_speaker(segment: Segment, profile: SpeakerProfile | None) -> Segment:
    """Point a segment at ``profile`` (``None`` clears the speaker)."""
    if profile is None:
        return replace(segment, speaker_id=None, speaker=None)
    return replace(segment, speaker_id=profile.id, speaker=profile.name)
