"""Generate / post-process / validate retry loop."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Generic, Literal, TypeVar

logger = logging.getLogger(__name__)

IssueType = Literal["corrupted_range", "regression", "excessive_duration"]

RawT = TypeVar("RawT")
OutT = TypeVar("OutT")


@dataclass
class PostCheckIssue:
    type: IssueType
    affected_ids: list[str] = field(default_factory=list)
    details: str = ""
    retryable: bool = False


@dataclass
class PostCheckResult:
    is_valid: bool
    issues: list[PostCheckIssue] = field(default_factory=list)

    @property
    def retryable(self) -> bool:
        return any(issue.retryable for issue in self.issues)


@dataclass
class PostProcessOutput(Generic[OutT]):
    result: OutT
    check_result: PostCheckResult


PostProcessFn = Callable[
    [RawT, bool],
    "PostProcessOutput[OutT] | Awaitable[PostProcessOutput[OutT]]",
]


async def with_post_check(
    generate: Callable[[], Awaitable[RawT]],
    post_process: PostProcessFn,
    *,
    max_retries: int,
    step_name: str = "",
) -> PostProcessOutput[OutT]:
    """Run ``generate`` then ``post_process`` until the output is acceptable.

    At most ``max_retries + 1`` generations are made. ``post_process`` receives
    ``is_final_attempt=True`` only on the last permitted attempt. A valid or
    non-retryable check returns immediately; when retries run out the last
    output is returned as-is (this never raises for quality reasons).
    Exceptions from ``generate``/``post_process`` propagate unchanged.
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0 (got {max_retries})")

    last_output: PostProcessOutput[OutT] | None = None
    for attempt in range(max_retries + 1):
        is_final_attempt = attempt == max_retries
        raw = await generate()
        output = post_process(raw, is_final_attempt)
        if inspect.isawaitable(output):
            output = await output
        last_output = output

        check = output.check_result
        if check.is_valid or not check.retryable:
            if attempt > 0 and check.is_valid:
                logger.info("postcheck succeeded on retry (step=%s, attempt=%s)", step_name, attempt)
            return output

        if attempt < max_retries:
            logger.warning(
                "postcheck retryable issues, retrying (step=%s, retry=%s/%s, issues=%s)",
                step_name,
                attempt + 1,
                max_retries,
                [issue.type for issue in check.issues],
            )

    logger.error("postcheck issues persisted (step=%s, retries=%s)", step_name, max_retries)
    assert last_output is not None
    return last_output
