"""Tests for the fixed-interval poll_until primitive."""

from __future__ import annotations

import asyncio

import pytest

from caption_orchestrator.api.errors import NetworkError
from caption_orchestrator.api.models import TaskState
from caption_orchestrator.core.polling import RemoteJobFailedError, poll_until
from conftest import DONE, READY, SleepRecorder, status


def _scripted(statuses):
    calls = []

    async def fetch():
        calls.append(1)
        item = statuses[len(calls) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    return fetch, calls


def _is(state):
    return lambda s: s.state is state


class TestPollUntil:
    def test_returns_first_terminal_status(self):
        fetch, calls = _scripted([
            status(TaskState.QUEUED),
            status(TaskState.TRANSCRIBING),
            READY,
        ])
        sleep = SleepRecorder()

        result = asyncio.run(poll_until(fetch, _is(TaskState.TRANSCRIPT_READY), 2.0, sleep=sleep))

        assert result is READY
        assert len(calls) == 3
        assert sleep.delays == [2.0, 2.0]

    def test_immediate_terminal_does_not_sleep(self):
        fetch, calls = _scripted([DONE])
        sleep = SleepRecorder()
        result = asyncio.run(poll_until(fetch, _is(TaskState.COMPLETED), 5.0, sleep=sleep))
        assert result is DONE
        assert sleep.delays == []

    def test_failed_status_short_circuits(self):
        fetch, calls = _scripted([
            status(TaskState.RENDERING),
            status(TaskState.FAILED, reason="render crashed"),
            DONE,
        ])
        sleep = SleepRecorder()

        with pytest.raises(RemoteJobFailedError) as exc_info:
            asyncio.run(poll_until(fetch, _is(TaskState.COMPLETED), 1.0, sleep=sleep))

        assert exc_info.value.reason == "render crashed"
        assert len(calls) == 2
        assert sleep.delays == [1.0]

    def test_non_target_states_keep_polling(self):
        # A completed status while waiting for the transcript is not terminal.
        fetch, calls = _scripted([status(TaskState.RENDERING), DONE, READY])
        result = asyncio.run(
            poll_until(fetch, _is(TaskState.TRANSCRIPT_READY), 0.5, sleep=SleepRecorder())
        )
        assert result is READY
        assert len(calls) == 3

    def test_fetch_errors_propagate(self):
        fetch, calls = _scripted([status(TaskState.QUEUED), NetworkError("reset")])
        with pytest.raises(NetworkError):
            asyncio.run(poll_until(fetch, _is(TaskState.COMPLETED), 1.0, sleep=SleepRecorder()))
        assert len(calls) == 2

    def test_on_status_sees_every_probe(self):
        fetch, _ = _scripted([status(TaskState.QUEUED), READY])
        seen = []
        asyncio.run(
            poll_until(
                fetch,
                _is(TaskState.TRANSCRIPT_READY),
                1.0,
                sleep=SleepRecorder(),
                on_status=lambda s: seen.append(s.state),
            )
        )
        assert seen == [TaskState.QUEUED, TaskState.TRANSCRIPT_READY]
