"""Command-line interface for captioning rendered videos.

WHY: Operators run captioning as one step of a batch over many videos and
languages. The CLI turns a list of video IDs and languages into a strictly
sequential series of caption requests and reports which ones failed.

HOW: Uses argparse for --videos / --languages / --input-dir. Settings come
from the environment (config.load_settings) and are validated before any
remote call. caption_videos() walks videos × languages in order; each
language is isolated so one failure never stops its siblings.

RULES:
- Videos and languages are processed one at a time (provider rate limits)
- CLI values win over DEFAULT_VIDEOS / DEFAULT_LANGUAGES from the environment
- Languages are upper-cased (ENGLISH, SPANISH, …)
- A missing rendered video or reference text fails only that language
- Exit code 0 if every language succeeded, 1 otherwise (including config errors)
- Log output goes to stderr
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from caption_orchestrator.config import (
    ConfigurationError,
    load_settings,
    read_csv_env,
)
from caption_orchestrator.core.orchestrator import (
    CaptionOrchestrator,
    CaptionRequest,
    open_orchestrator,
)
from caption_orchestrator.workspace import VideoWorkspace

logger = logging.getLogger(__name__)

FALLBACK_LANGUAGES = ["RUSSIAN"]


@dataclass
class LanguageOutcome:
    """Result of captioning one (video, language) pair."""

    video_id: str
    language: str
    output_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_csv_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


async def caption_video(
    orchestrator: CaptionOrchestrator,
    workspace: VideoWorkspace,
    languages: List[str],
) -> List[LanguageOutcome]:
    """Caption one video in every language, isolating per-language failures."""
    outcomes: List[LanguageOutcome] = []
    try:
        texts = workspace.load_generated_texts()
    except ValueError as exc:
        logger.error("[%s] Cannot read reference texts: %s", workspace.video_id, exc)
        return [LanguageOutcome(workspace.video_id, lang, error=str(exc)) for lang in languages]

    for language in languages:
        outcome = LanguageOutcome(workspace.video_id, language)
        reference_script = texts.get(language)
        if not reference_script:
            outcome.error = "Missing generated text for language: {}".format(language)
            logger.error("[%s] %s", workspace.video_id, outcome.error)
            outcomes.append(outcome)
            continue

        request = CaptionRequest(
            source_video_path=workspace.rendered_video_path(language),
            output_path=workspace.captioned_video_path(language),
            language=language,
            reference_script=reference_script,
        )
        try:
            outcome.output_path = await orchestrator.produce_captioned_video(request)
        except Exception as exc:
            logger.exception("[%s] Captioning failed for %s", workspace.video_id, language)
            outcome.error = str(exc)
        outcomes.append(outcome)

    return outcomes


async def caption_videos(
    orchestrator: CaptionOrchestrator,
    input_root: Path,
    video_ids: List[str],
    languages: List[str],
) -> List[LanguageOutcome]:
    """Caption every video in order; returns one outcome per (video, language)."""
    outcomes: List[LanguageOutcome] = []
    for video_id in video_ids:
        logger.info("Processing video: %s", video_id)
        outcomes.extend(
            await caption_video(orchestrator, VideoWorkspace(input_root, video_id), languages)
        )
    return outcomes


def _log_summary(outcomes: List[LanguageOutcome]) -> None:
    for outcome in outcomes:
        if outcome.ok:
            logger.info("OK   %s/%s -> %s", outcome.video_id, outcome.language, outcome.output_path)
        else:
            logger.error("FAIL %s/%s: %s", outcome.video_id, outcome.language, outcome.error)


async def _run_pipeline(args: argparse.Namespace) -> int:
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print("Error: {}".format(exc), file=sys.stderr)
        return 1

    video_ids = parse_csv_list(args.videos) or read_csv_env("DEFAULT_VIDEOS")
    if not video_ids:
        print(
            "Error: No videos specified. Pass --videos video_1,video_2 "
            "or set DEFAULT_VIDEOS in .env",
            file=sys.stderr,
        )
        return 1

    languages = [
        lang.upper()
        for lang in (
            parse_csv_list(args.languages) or read_csv_env("DEFAULT_LANGUAGES") or FALLBACK_LANGUAGES
        )
    ]
    input_root = Path(args.input_dir) if args.input_dir else settings.input_dir

    async with open_orchestrator(settings) as orchestrator:
        outcomes = await caption_videos(orchestrator, input_root, video_ids, languages)

    _log_summary(outcomes)
    return 0 if all(o.ok for o in outcomes) else 1


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="caption_orchestrator",
        description="Add burned-in captions to rendered videos using a remote "
                    "captioning provider, with transcript spelling correction.",
    )
    parser.add_argument(
        "--videos",
        default=None,
        help="Comma-separated video IDs (directories under the input dir).",
    )
    parser.add_argument(
        "--languages",
        default=None,
        help="Comma-separated languages, e.g. ENGLISH,SPANISH.",
    )
    parser.add_argument(
        "--input-dir",
        default=None,
        help="Root directory containing one folder per video (default: $INPUT_DIR or ./input).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m caption_orchestrator`` and the console script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    sys.exit(asyncio.run(_run_pipeline(args)))


if __name__ == "__main__":
    main()
