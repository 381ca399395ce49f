"""Captioned-video orchestration: one remote caption job per attempt, retried whole.

WHY: Producing a captioned video takes nine dependent remote steps across
two external services, any of which can fail transiently. The provider's
jobs cannot be resumed reliably, so the unit of retry is the whole sequence:
a failed attempt abandons its remote job and the next attempt starts fresh.

HOW: Three pieces:
  run_with_retries : generic retry loop with linear backoff; knows nothing
                       about captions
  CaptionOrchestrator: the phase sequence of one attempt plus the
                       idempotency gate on the output file
  open_orchestrator: wires real clients from CaptionSettings

Phase sequence of one attempt (AttemptPhase):
  STARTED → UPLOADED → TASK_CREATED → TRANSCRIPT_READY → CORRECTED →
  TRANSCRIPT_APPLIED → APPROVED → RENDER_COMPLETE → DOWNLOADED
Any phase may end in FAILED.

RULES:
- output_path existing ⇒ return it with zero remote calls (checked once)
- Each attempt creates its own RemoteJobHandle; handles are never reused
- Backoff between attempts is base_delay × attempt number (1, 2, 3… units)
- ConfigurationError / UnsupportedLanguageError / a missing source file
  are never retried
- After max_attempts failures, CaptionFailedError carries the last cause
- The transcript wait must end with a transcript URL and the render wait
  with a download URL; a missing URL is a ProviderError for that attempt
- The download lands on a ".part" sibling and is only moved onto
  output_path after normalization, so a failed attempt never leaves a file
  at the idempotency key
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import functools
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

import httpx

from caption_orchestrator.api.client import CaptionClient
from caption_orchestrator.api.correction import CorrectionClient, correct_transcript
from caption_orchestrator.api.errors import ProviderError, UnsupportedLanguageError
from caption_orchestrator.api.models import JobStatus, RemoteJobHandle, TaskState
from caption_orchestrator.config import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_POLL_INTERVAL_S,
    DEFAULT_RETRY_DELAY_S,
    DEFAULT_TARGET_SAMPLE_RATE,
    CaptionSettings,
    ConfigurationError,
    provider_language_code,
)
from caption_orchestrator.core.download import download_file
from caption_orchestrator.core.media import resample_audio_if_needed
from caption_orchestrator.core.polling import poll_until

logger = logging.getLogger(__name__)

T = TypeVar("T")

NON_RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    ConfigurationError,
    UnsupportedLanguageError,
)


class AttemptPhase(str, enum.Enum):
    """Progress of one attempt through the remote caption workflow."""

    STARTED = "started"
    UPLOADED = "uploaded"
    TASK_CREATED = "task_created"
    TRANSCRIPT_READY = "transcript_ready"
    CORRECTED = "corrected"
    TRANSCRIPT_APPLIED = "transcript_applied"
    APPROVED = "approved"
    RENDER_COMPLETE = "render_complete"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptionRequest:
    """Input to one orchestration run. output_path is the idempotency key."""

    source_video_path: Path
    output_path: Path
    language: str
    reference_script: str


@dataclass
class RetryState:
    """Attempt bookkeeping for one request; discarded when the run ends."""

    max_attempts: int
    attempt: int = 0
    last_error: Optional[BaseException] = None


class CaptionFailedError(Exception):
    """Raised when every attempt failed.

    RULES:
    - last_error is the cause of the final attempt's failure (also __cause__)
    - attempts is how many full attempts were made
    """

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException]) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            "{} after {} attempt(s): {!r}".format(message, attempts, last_error)
        )


# ---------------------------------------------------------------------------
# Generic retry loop
# ---------------------------------------------------------------------------


async def run_with_retries(
    attempt_fn: Callable[[RetryState], Awaitable[T]],
    max_attempts: int,
    base_delay_s: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
    non_retryable: Tuple[Type[BaseException], ...] = NON_RETRYABLE_ERRORS,
) -> T:
    """Run attempt_fn until it succeeds or max_attempts is exhausted.

    WHY: Keeps backoff policy out of the caption workflow. The workflow
    supplies one attempt; this function decides whether and when to try
    again.

    HOW: Calls attempt_fn with a shared RetryState. Every Exception is
    caught at this boundary, recorded as last_error, and logged. Between
    attempts it sleeps base_delay_s * attempt (linear backoff). No sleep
    follows the final attempt.

    RULES:
    - max_attempts must be >= 1
    - Exceptions in non_retryable are re-raised immediately, unwrapped
    - Exhaustion raises CaptionFailedError chained to the last error
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1, got {}".format(max_attempts))

    state = RetryState(max_attempts=max_attempts)
    for attempt in range(1, max_attempts + 1):
        state.attempt = attempt
        try:
            return await attempt_fn(state)
        except non_retryable:
            raise
        except Exception as exc:
            state.last_error = exc
            logger.exception(
                "Attempt %d/%d failed for %s", attempt, max_attempts, description
            )
            if attempt < max_attempts:
                delay = base_delay_s * attempt
                logger.warning("Retrying %s in %.1fs", description, delay)
                await sleep(delay)

    raise CaptionFailedError(
        "Failed to produce {}".format(description),
        attempts=state.attempt,
        last_error=state.last_error,
    ) from state.last_error


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


def partial_output_path(output_path: Path) -> Path:
    """Return the sibling path an attempt downloads to before finalizing."""
    return output_path.with_name("{}.part{}".format(output_path.stem, output_path.suffix))


class CaptionOrchestrator:
    """Drives the remote caption workflow for one request at a time.

    WHY: The orchestrator is the only component that knows the order of
    the remote steps and which outcome ends the whole request. Clients,
    polling, correction, download and media normalization stay ignorant of
    each other.

    HOW: produce_captioned_video() applies the idempotency gate, validates
    the language and source file, then hands _run_attempt to
    run_with_retries. Collaborators are injected so tests can replace any
    of them.

    RULES:
    - caption_client and corrector must already be entered (async with)
    - sleep is shared by polling and backoff
    - download(url, path) and normalize(path, rate) are replaceable hooks
    - on_phase(phase, retry_state), if given, sees every phase transition
    """

    def __init__(
        self,
        caption_client: CaptionClient,
        corrector: CorrectionClient,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay_s: float = DEFAULT_RETRY_DELAY_S,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        target_sample_rate: int = DEFAULT_TARGET_SAMPLE_RATE,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        download: Callable[[str, Path], Awaitable[Any]] = download_file,
        normalize: Callable[[Path, int], Any] = resample_audio_if_needed,
        on_phase: Optional[Callable[[AttemptPhase, RetryState], None]] = None,
    ) -> None:
        self._client = caption_client
        self._corrector = corrector
        self.max_attempts = max_attempts
        self.retry_delay_s = retry_delay_s
        self.poll_interval_s = poll_interval_s
        self.target_sample_rate = target_sample_rate
        self._sleep = sleep
        self._download = download
        self._normalize = normalize
        self._on_phase = on_phase

    async def produce_captioned_video(self, request: CaptionRequest) -> Path:
        """Return the path of the captioned video, producing it if needed.

        Raises:
            UnsupportedLanguageError: the language has no provider code.
            FileNotFoundError: the source video does not exist.
            CaptionFailedError: every attempt failed.
        """
        output_path = Path(request.output_path)
        if output_path.exists():
            logger.info("[%s] Captioned file already exists: %s", request.language, output_path)
            return output_path

        if provider_language_code(request.language) is None:
            raise UnsupportedLanguageError(request.language)

        if not Path(request.source_video_path).is_file():
            raise FileNotFoundError(
                "Source video not found: {}".format(request.source_video_path)
            )

        async def attempt(state: RetryState) -> Path:
            return await self._run_attempt(request, state)

        return await run_with_retries(
            attempt,
            max_attempts=self.max_attempts,
            base_delay_s=self.retry_delay_s,
            sleep=self._sleep,
            description="captioned video {} ({})".format(output_path.name, request.language),
        )

    async def _run_attempt(self, request: CaptionRequest, state: RetryState) -> Path:
        output_path = Path(request.output_path)
        partial_path = partial_output_path(output_path)
        handle: Optional[RemoteJobHandle] = None
        phase = AttemptPhase.STARTED

        def advance(next_phase: AttemptPhase) -> None:
            nonlocal phase
            phase = next_phase
            logger.info(
                "[%s] attempt %d/%d: %s%s",
                request.language,
                state.attempt,
                state.max_attempts,
                phase.value,
                " (video={}, task={})".format(handle.video_id, handle.task_id) if handle else "",
            )
            if self._on_phase:
                self._on_phase(phase, state)

        advance(AttemptPhase.STARTED)
        try:
            video_id = await self._client.upload_video(Path(request.source_video_path))
            advance(AttemptPhase.UPLOADED)

            task_id = await self._client.create_task(video_id, request.language)
            handle = RemoteJobHandle(video_id=video_id, task_id=task_id)
            advance(AttemptPhase.TASK_CREATED)

            ready = await self._wait_for(handle, TaskState.TRANSCRIPT_READY, request.language)
            if not ready.transcript_url:
                raise ProviderError("Provider did not supply a transcript URL")
            advance(AttemptPhase.TRANSCRIPT_READY)

            chunks = await self._client.fetch_transcript(ready.transcript_url)
            corrected = await correct_transcript(self._corrector, request.reference_script, chunks)
            advance(AttemptPhase.CORRECTED)

            await self._client.put_transcript(handle.video_id, handle.task_id, corrected)
            advance(AttemptPhase.TRANSCRIPT_APPLIED)

            await self._client.approve_transcript(handle.video_id, handle.task_id)
            advance(AttemptPhase.APPROVED)

            completed = await self._wait_for(handle, TaskState.COMPLETED, request.language)
            if not completed.download_url:
                raise ProviderError("Provider did not supply a download URL")
            advance(AttemptPhase.RENDER_COMPLETE)

            await self._download(completed.download_url, partial_path)
            await asyncio.to_thread(self._normalize, partial_path, self.target_sample_rate)
            partial_path.replace(output_path)
            advance(AttemptPhase.DOWNLOADED)
        except Exception:
            partial_path.unlink(missing_ok=True)
            logger.warning(
                "[%s] attempt %d abandoned after phase %s",
                request.language,
                state.attempt,
                phase.value,
            )
            advance(AttemptPhase.FAILED)
            raise

        return output_path

    async def _wait_for(self, handle: RemoteJobHandle, target: TaskState, language: str) -> JobStatus:
        def log_status(status: JobStatus) -> None:
            logger.info("[%s] task %s: %s", language, handle.task_id, status.raw_status)

        return await poll_until(
            lambda: self._client.fetch_status(handle.video_id, handle.task_id),
            lambda status: status.state is target,
            interval_s=self.poll_interval_s,
            sleep=self._sleep,
            on_status=log_status,
        )


@contextlib.asynccontextmanager
async def open_orchestrator(
    settings: CaptionSettings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **overrides: Any,
) -> AsyncIterator[CaptionOrchestrator]:
    """Yield a CaptionOrchestrator with live provider and correction clients.

    RULES:
    - transport reaches every HTTP call: both clients and the download hook
    - overrides (sleep, normalize, on_phase, ...) replace the settings-derived
      CaptionOrchestrator arguments
    """
    options: Dict[str, Any] = {
        "max_attempts": settings.max_attempts,
        "retry_delay_s": settings.retry_delay_s,
        "poll_interval_s": settings.poll_interval_s,
        "target_sample_rate": settings.target_sample_rate,
        "download": functools.partial(download_file, transport=transport),
    }
    options.update(overrides)

    async with CaptionClient(
        api_key=settings.provider_api_key,
        template_id=settings.template_id,
        base_url=settings.provider_base_url,
        transport=transport,
    ) as caption_client, CorrectionClient(
        api_key=settings.openai_api_key,
        model=settings.review_model,
        base_url=settings.openai_base_url,
        transport=transport,
    ) as corrector:
        yield CaptionOrchestrator(caption_client, corrector, **options)
