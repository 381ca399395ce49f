"""Shared test fixtures for the caption_orchestrator test suite.

WHY: The orchestrator, CLI and correction tests all need stand-ins for the
captioning provider and the correction model that record every call and
can be scripted to fail. Centralizing them keeps each test focused on the
behavior under test.

HOW: FakeCaptionClient and FakeCorrector mirror the async method surface of
CaptionClient and CorrectionClient. Status sequences are scripted per
attempt; call logs are plain lists of tuples. SleepRecorder replaces
asyncio.sleep so backoff and poll intervals are observable and instant.

RULES:
- No network, no ffmpeg: every external effect is faked
- Fakes issue fresh, numbered IDs so handle reuse is detectable
"""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from caption_orchestrator.api.models import JobStatus, TaskState

SAMPLE_TRANSCRIPT: List[Dict[str, Any]] = [
    {"text": "helo", "start": 0.0, "end": 0.4, "id": "w1"},
    {"start": 0.4, "end": 0.6, "type": "pause"},
    {"text": "wrold", "start": 0.6, "end": 1.1, "id": "w2"},
]

CORRECTED_TEXTS: List[Dict[str, str]] = [{"text": "hello"}, {"text": "world"}]


def status(state: TaskState, **kwargs: Any) -> JobStatus:
    """Build a JobStatus without going through provider parsing."""
    return JobStatus(state=state, raw_status=state.value, **kwargs)


READY = status(TaskState.TRANSCRIPT_READY, transcript_url="https://cdn.test/transcript.json")
DONE = status(TaskState.COMPLETED, download_url="https://cdn.test/video.mp4")


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeCaptionClient:
    """Scriptable in-memory captioning provider.

    statuses: JobStatus values returned in order by fetch_status, across
    all attempts.
    fail_on: method name that raises `error` every time it is called.
    """

    def __init__(
        self,
        statuses: Optional[List[JobStatus]] = None,
        transcript: Optional[List[Dict[str, Any]]] = None,
        fail_on: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._statuses = list(statuses if statuses is not None else [READY, DONE])
        self.transcript = transcript if transcript is not None else [dict(c) for c in SAMPLE_TRANSCRIPT]
        self.fail_on = fail_on
        self.error = error or RuntimeError("provider unavailable")
        self.calls: List[tuple] = []
        self.put_payloads: List[List[Dict[str, Any]]] = []
        self._ids = itertools.count(1)

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name,) + args)
        if self.fail_on == name:
            raise self.error

    async def upload_video(self, video_path: Path) -> str:
        self._record("upload_video", video_path)
        return "video-{}".format(next(self._ids))

    async def create_task(self, video_id: str, language: str) -> str:
        self._record("create_task", video_id, language)
        return "task-{}".format(next(self._ids))

    async def fetch_status(self, video_id: str, task_id: str) -> JobStatus:
        self._record("fetch_status", video_id, task_id)
        if not self._statuses:
            raise AssertionError("fetch_status called more times than scripted")
        return self._statuses.pop(0)

    async def fetch_transcript(self, transcript_url: str) -> List[Dict[str, Any]]:
        self._record("fetch_transcript", transcript_url)
        return [dict(c) for c in self.transcript]

    async def put_transcript(self, video_id: str, task_id: str, chunks: List[Dict[str, Any]]) -> None:
        self._record("put_transcript", video_id, task_id)
        self.put_payloads.append(chunks)

    async def approve_transcript(self, video_id: str, task_id: str) -> None:
        self._record("approve_transcript", video_id, task_id)

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeCorrector:
    """Correction model stand-in returning scripted responses in order."""

    def __init__(self, responses: Optional[List[List[Dict[str, str]]]] = None) -> None:
        self._responses = list(responses) if responses is not None else None
        self.calls: List[tuple] = []

    async def correct_chunks(self, reference_script: str, chunks: List[Dict[str, str]]) -> List[Dict[str, str]]:
        self.calls.append((reference_script, chunks))
        if self._responses is None:
            return [dict(c) for c in CORRECTED_TEXTS]
        return self._responses.pop(0)


async def fake_download(url: str, destination: Path) -> Path:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(b"captioned video from " + url.encode())
    return destination


def noop_normalize(path: Path, target_rate: int) -> Path:
    return path


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def source_video(tmp_path):
    path = tmp_path / "rendered_ENGLISH.mp4"
    path.write_bytes(b"rendered video")
    return path
