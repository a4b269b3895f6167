from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from pathlib import Path

from subweave.config import Settings
from subweave.formatters import SRTFormatter
from subweave.models.progress import ChunkStatus, RunStatus
from subweave.pipeline import CancellationToken, PipelineOrchestrator
from subweave.stages import LLMStageBackend
from subweave.utils.logging_setup import setup_logging

logger = logging.getLogger("subweave.scripts.run_local_pipeline")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate subtitles for a local media file.")
    parser.add_argument("--media", required=True, help="Path to local video/audio file")
    parser.add_argument("--output", default=None, help="SRT output path (defaults to <media>.srt)")
    parser.add_argument("--source-language", default=None, help="Source language code (optional)")
    parser.add_argument("--target-language", default=None, help="Target language name")
    parser.add_argument("--chunk-duration-s", type=float, default=None, help="Chunk length in seconds")
    parser.add_argument(
        "--sample-minutes",
        type=float,
        default=None,
        help="Only sample the first N minutes for glossary extraction",
    )
    parser.add_argument("--no-glossary", action="store_true", help="Skip glossary extraction")
    parser.add_argument("--speakers", action="store_true", help="Enable speaker pre-analysis")
    parser.add_argument("--mono", action="store_true", help="Write translated lines only")
    parser.add_argument("--include-speaker", action="store_true", help="Prefix lines with speaker names")
    return parser.parse_args()


def _print_progress(update: ChunkStatus) -> None:
    stage = update.stage.value if update.stage is not None else "-"
    logger.info(
        "progress (id=%s, total=%s, status=%s, stage=%s, message=%s)",
        update.id,
        update.total,
        update.status.value,
        stage,
        update.message,
    )


async def _run() -> int:
    args = _parse_args()
    media_path = Path(args.media)
    if not media_path.exists():
        raise SystemExit(f"Media not found: {media_path}")

    settings = Settings()
    setup_logging(settings)
    if args.source_language is not None:
        settings.pipeline.source_language = str(args.source_language)
    if args.target_language is not None:
        settings.pipeline.target_language = str(args.target_language)
    if args.chunk_duration_s is not None:
        settings.pipeline.chunk_duration_s = float(args.chunk_duration_s)
    if args.sample_minutes is not None:
        settings.glossary.sample_minutes = float(args.sample_minutes)
    if args.no_glossary:
        settings.glossary.enabled = False
    if args.speakers:
        settings.pipeline.enable_speaker_pre_analysis = True
    settings.glossary.auto_confirm = True

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "Interrupted")
    except NotImplementedError:
        pass

    backend = LLMStageBackend(settings)
    orchestrator = PipelineOrchestrator(settings, backend)
    try:
        result = await orchestrator.run(media_path, on_progress=_print_progress, token=token)
    finally:
        await backend.close()

    output = Path(args.output) if args.output else media_path.with_suffix(".srt")
    formatter = SRTFormatter(include_speaker=bool(args.include_speaker))
    output.write_text(formatter.format(result.segments, bilingual=not args.mono), encoding="utf-8")

    print(f"status={result.status.value} segments={len(result.segments)} output={output}")
    if result.error:
        print(f"error_code={result.error_code} error={result.error}")
    return 0 if result.status == RunStatus.COMPLETED else 1


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
