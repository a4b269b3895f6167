"""Async-friendly subprocess helpers.

Commands run through ``subprocess.run()`` inside ``asyncio.to_thread()`` so a
slow decoder never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def stderr_tail(self) -> str:
        text = self.stderr.decode("utf-8", errors="replace").strip()
        return text[-2000:]


async def run_subprocess(
    args: Sequence[str],
    *,
    timeout_s: float | None = None,
    check: bool = False,
) -> RunResult:
    def _run() -> subprocess.CompletedProcess[bytes]:
        return subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=check,
            timeout=timeout_s,
        )

    cp = await asyncio.to_thread(_run)
    return RunResult(
        returncode=int(cp.returncode),
        stdout=cp.stdout or b"",
        stderr=cp.stderr or b"",
    )
