"""Post-processors plugged into :func:`with_post_check`."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from subweave.exceptions import ProviderError
from subweave.models.segment import Segment
from subweave.subtitle.postcheck import PostCheckIssue, PostCheckResult, PostProcessOutput
from subweave.subtitle.timeline import (
    TimelineValidationResult,
    mark_corrupted_ranges,
    mark_regression_issues,
    validate_timeline,
)
from subweave.utils.text import clean_non_speech_annotations

logger = logging.getLogger(__name__)

RetryMissingFn = Callable[[list[Segment]], Awaitable[dict[str, str]]]


def timeline_check_result(validation: TimelineValidationResult) -> PostCheckResult:
    issues: list[PostCheckIssue] = []
    for r in validation.corrupted_ranges:
        issues.append(
            PostCheckIssue(
                type="corrupted_range",
                affected_ids=[],
                details=f"Range {r.start_id} -> {r.end_id} ({r.affected_count} segments)",
                retryable=True,
            )
        )
    for a in validation.independent_anomalies:
        issues.append(
            PostCheckIssue(
                type="regression" if a.type == "time_regression" else "excessive_duration",
                affected_ids=[a.id],
                details=a.details,
                retryable=False,
            )
        )
    return PostCheckResult(is_valid=validation.is_valid, issues=issues)


def create_refinement_post_processor() -> Callable[
    [list[Segment], bool], PostProcessOutput[list[Segment]]
]:
    """Clean, drop empty, validate the timeline; mark issues only on the final attempt."""

    def _post_process(
        segments: list[Segment], is_final_attempt: bool = False
    ) -> PostProcessOutput[list[Segment]]:
        processed = [
            replace(seg, original=clean_non_speech_annotations(seg.original)) for seg in segments
        ]
        processed = [seg for seg in processed if seg.original]

        validation = validate_timeline(processed)
        check = timeline_check_result(validation)

        if is_final_attempt and not check.is_valid:
            if validation.independent_anomalies:
                processed = mark_regression_issues(processed, validation.independent_anomalies)
            if validation.corrupted_ranges:
                processed = mark_corrupted_ranges(processed, validation.corrupted_ranges)

        return PostProcessOutput(result=processed, check_result=check)

    return _post_process


def create_translation_post_processor(
    batch: list[Segment],
    *,
    retry_missing: RetryMissingFn | None = None,
) -> Callable[[dict[str, str], bool], Awaitable[PostProcessOutput[list[Segment]]]]:
    """Build translated segments for ``batch`` from an ``id -> text`` map.

    Missing entries fall back to the original text. Before the final attempt a
    partial loss is first re-requested through ``retry_missing`` (one call for
    the missing items only). The batch is invalid when anything is still
    missing and retryable only when the loss is partial.
    """

    async def _post_process(
        translations: dict[str, str], is_final_attempt: bool
    ) -> PostProcessOutput[list[Segment]]:
        trans_map = dict(translations or {})

        def _is_missing(seg: Segment) -> bool:
            return not str(trans_map.get(seg.id) or "").strip()

        missing = [seg for seg in batch if _is_missing(seg)]
        if retry_missing is not None and not is_final_attempt and 0 < len(missing) < len(batch):
            logger.info("retrying missing translations (count=%s)", len(missing))
            try:
                recovered = await retry_missing(missing)
            except (ProviderError, ValueError) as exc:
                logger.warning("missing translation retry failed: %s", exc)
                recovered = {}
            count = 0
            for seg_id, text in (recovered or {}).items():
                if str(text or "").strip():
                    trans_map[str(seg_id)] = str(text)
                    count += 1
            if count:
                logger.info("recovered translations (count=%s, missing=%s)", count, len(missing))
            missing = [seg for seg in batch if _is_missing(seg)]

        result: list[Segment] = []
        for seg in batch:
            text = str(trans_map.get(seg.id) or "")
            if text.strip():
                result.append(replace(seg, translated=text))
            else:
                if is_final_attempt:
                    logger.warning("translation missing, using original (id=%s)", seg.id)
                result.append(replace(seg, translated=seg.original))

        issues: list[PostCheckIssue] = []
        if missing:
            issues.append(
                PostCheckIssue(
                    type="corrupted_range",
                    affected_ids=[seg.id for seg in missing],
                    details=f"{len(missing)} translations missing",
                    retryable=len(missing) < len(batch),
                )
            )
            if is_final_attempt:
                logger.warning(
                    "translation fallback to original (missing=%s, batch=%s)",
                    len(missing),
                    len(batch),
                )
        return PostProcessOutput(
            result=result,
            check_result=PostCheckResult(is_valid=not missing, issues=issues),
        )

    return _post_process
