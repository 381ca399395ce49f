"""ffprobe/ffmpeg helpers for inspecting and normalizing captioned videos.

WHY: The captioning provider returns videos whose audio sample rate varies
from render to render. Downstream consumers expect one rate, so every
download is probed and, only when needed, re-encoded.

HOW: Thin subprocess wrappers around ffprobe and ffmpeg. The resample step
writes to a temporary sibling and, only once that file is fully written,
swaps it over the original with an atomic rename (Path.replace).

RULES:
- Same rate → the file is not touched and no temp file is created
- Video stream is copied bit-for-bit (-c:v copy); only audio is re-encoded
- A failed encode or a failed swap removes the temp file and leaves the
  original intact
- These functions are blocking; async callers wrap them in asyncio.to_thread
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import List

from caption_orchestrator.config import DEFAULT_TARGET_SAMPLE_RATE

logger = logging.getLogger(__name__)


class MediaProbeError(Exception):
    """Raised when a media file cannot be probed or its output is unusable."""


class MediaEncodeError(Exception):
    """Raised when ffmpeg fails or the re-encoded file cannot be moved into place."""


def _run(cmd: List[str], error_cls: type, fail_msg: str) -> str:
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise error_cls("{}: {}".format(fail_msg, exc)) from exc
    if proc.returncode != 0:
        detail = (proc.stderr or proc.stdout or "").strip()
        raise error_cls("{} (exit {}): {}".format(fail_msg, proc.returncode, detail))
    return proc.stdout or ""


def probe_duration_seconds(media_path: Path) -> float:
    """Return the container duration of a media file in seconds."""
    stdout = _run(
        [
            "ffprobe",
            "-v",
            "error",
            "-show_entries",
            "format=duration",
            "-of",
            "default=noprint_wrappers=1:nokey=1",
            str(media_path),
        ],
        MediaProbeError,
        "ffprobe failed for {}".format(media_path),
    )
    try:
        return float(stdout.strip())
    except ValueError as exc:
        raise MediaProbeError("Unable to parse media duration: {}".format(media_path)) from exc


def probe_sample_rate(media_path: Path) -> int:
    """Return the sample rate (Hz) of the first audio stream."""
    stdout = _run(
        [
            "ffprobe",
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_streams",
            "-select_streams",
            "a",
            str(media_path),
        ],
        MediaProbeError,
        "ffprobe failed for {}".format(media_path),
    )
    try:
        streams = json.loads(stdout or "{}").get("streams") or []
    except (ValueError, AttributeError) as exc:
        raise MediaProbeError("ffprobe returned invalid JSON for {}".format(media_path)) from exc

    if not streams or not streams[0].get("sample_rate"):
        raise MediaProbeError("Audio sample_rate was not found: {}".format(media_path))

    try:
        return int(streams[0]["sample_rate"])
    except (TypeError, ValueError) as exc:
        raise MediaProbeError("Audio sample_rate is invalid: {}".format(media_path)) from exc


def resampled_path(media_path: Path, target_rate: int) -> Path:
    return media_path.with_name(
        "{}_resampled_{}{}".format(media_path.stem, target_rate, media_path.suffix)
    )


def resample_audio_if_needed(
    media_path: Path,
    target_rate: int = DEFAULT_TARGET_SAMPLE_RATE,
) -> Path:
    """Re-encode a file's audio to target_rate in place, if it differs.

    Returns:
        media_path, now guaranteed to carry audio at target_rate.
    """
    media_path = Path(media_path)
    sample_rate = probe_sample_rate(media_path)
    if sample_rate == target_rate:
        logger.debug("%s already at %d Hz", media_path.name, target_rate)
        return media_path

    logger.info("Resampling %s audio: %d Hz -> %d Hz", media_path.name, sample_rate, target_rate)
    temp_path = resampled_path(media_path, target_rate)
    try:
        _run(
            [
                "ffmpeg",
                "-i",
                str(media_path),
                "-c:v",
                "copy",
                "-c:a",
                "aac",
                "-ar",
                str(target_rate),
                "-y",
                str(temp_path),
            ],
            MediaEncodeError,
            "ffmpeg failed to resample {}".format(media_path),
        )
    except MediaEncodeError:
        temp_path.unlink(missing_ok=True)
        raise

    # Atomic swap: the original stays in place until the new file replaces it.
    try:
        temp_path.replace(media_path)
    except OSError as exc:
        temp_path.unlink(missing_ok=True)
        raise MediaEncodeError(
            "Could not move resampled file over {}: {}".format(media_path, exc)
        ) from exc

    return media_path
