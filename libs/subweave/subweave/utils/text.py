"""Subtitle text clean-up helpers."""

from __future__ import annotations

import re

# Sound descriptions ASR models emit as [MUSIC], (laughter), *coughing*.
NON_SPEECH_KEYWORDS: tuple[str, ...] = (
    "laughter",
    "laughing",
    "laugh",
    "music",
    "music playing",
    "applause",
    "clapping",
    "cough",
    "coughing",
    "sigh",
    "sighing",
    "door",
    "footsteps",
    "silence",
    "pause",
    "inaudible",
    "unintelligible",
    "background noise",
    "static",
    "笑",
    "笑い",
    "笑い声",
    "音楽",
    "音楽再生",
    "拍手",
    "咳",
    "咳払い",
    "ため息",
    "笑声",
    "掌声",
    "音乐",
)

_KEYWORDS = "|".join(re.escape(k) for k in NON_SPEECH_KEYWORDS)
_NON_SPEECH_RE = re.compile(
    rf"\s*(?:\[[^\]]*(?:{_KEYWORDS})[^\]]*\]"
    rf"|\([^)]*(?:{_KEYWORDS})[^)]*\)"
    rf"|\*[^*]*(?:{_KEYWORDS})[^*]*\*)\s*",
    re.IGNORECASE,
)
_WS_RE = re.compile(r"\s+")
_TRAILING_PUNCT_RE = re.compile(r"[\s。！？，、；：…．·.!?,;:\-—–]+$")


def clean_non_speech_annotations(text: str) -> str:
    """Drop known non-speech annotations and collapse whitespace."""
    cleaned = _NON_SPEECH_RE.sub(" ", str(text or ""))
    return _WS_RE.sub(" ", cleaned).strip()


def strip_trailing_punctuation(text: str) -> str:
    return _TRAILING_PUNCT_RE.sub("", str(text or ""))
