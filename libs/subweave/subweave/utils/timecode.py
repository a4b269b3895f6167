"""SRT-style timecode conversion."""

from __future__ import annotations

import re

_NON_TIME_RE = re.compile(r"[^0-9:.,]")


def format_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS,mmm`` (negative values clamp to zero)."""
    total_ms = int(round(max(0.0, float(seconds)) * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{ms:03d}"


def time_to_seconds(text: str) -> float:
    """Parse ``HH:MM:SS,mmm`` / ``HH:MM:SS.mmm`` / ``MM:SS(,mmm)`` into seconds.

    Junk characters are ignored; an empty or unparseable value is 0.0.
    """
    raw = _NON_TIME_RE.sub("", str(text or "")).replace(",", ".")
    if not raw:
        return 0.0
    parts = raw.split(":")
    try:
        if len(parts) >= 3:
            h, m, s = parts[-3], parts[-2], parts[-1]
            return int(h or 0) * 3600 + int(m or 0) * 60 + float(s or 0)
        if len(parts) == 2:
            return int(parts[0] or 0) * 60 + float(parts[1] or 0)
        return float(parts[0])
    except ValueError:
        return 0.0
