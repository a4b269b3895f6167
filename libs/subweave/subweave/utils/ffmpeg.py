"""Locate the ffmpeg executable used for audio decoding."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

import imageio_ffmpeg

logger = logging.getLogger(__name__)


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def resolve_ffmpeg_bin(ffmpeg_bin: str | None = "ffmpeg") -> str:
    """Return a runnable ffmpeg path.

    Order: an explicit file path, a name found on ``PATH``, then the binary
    shipped with ``imageio-ffmpeg``. When nothing resolves the configured
    value is returned unchanged and the decoder reports the failure.
    """
    name = str(ffmpeg_bin or "").strip() or "ffmpeg"

    candidate = Path(name).expanduser()
    if candidate.is_absolute() or os.sep in name:
        if _is_executable(candidate):
            return str(candidate)
        logger.warning("configured ffmpeg is not executable (path=%s)", candidate)

    found = shutil.which(candidate.name if os.sep in name else name)
    if found:
        return found

    try:
        bundled = imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as exc:
        logger.warning("bundled ffmpeg unavailable (error=%s, fallback=%s)", exc, name)
        return name
    logger.info("using bundled ffmpeg (path=%s)", bundled)
    return str(bundled)
