"""Canonical error codes surfaced to callers/UI."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    UNKNOWN = "UNKNOWN"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"

    DECODE_FAILED = "DECODE_FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    LLM_FAILED = "LLM_FAILED"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    ALIGNMENT_FAILED = "ALIGNMENT_FAILED"
    GLOSSARY_FAILED = "GLOSSARY_FAILED"
    CANCELLED = "CANCELLED"

    PROVIDER_FAILED = "PROVIDER_FAILED"
