"""Fixed-interval polling for remote caption task status.

WHY: Both waiting phases of an attempt (transcript ready, render complete)
are the same loop: probe, check, sleep, repeat. Keeping that loop generic
separates "how to wait" from "what to wait for" and keeps the provider
client free of loops.

HOW: poll_until() awaits fetch_status() forever at a constant interval and
returns the first status accepted by is_terminal. A FAILED status ends the
loop immediately with RemoteJobFailedError.

RULES:
- Fixed interval: no jitter, no backoff
- No attempt ceiling and no timeout; a task that never progresses and never
  fails is polled indefinitely (a known hang risk, left as-is so slow
  renders are not cut off)
- FAILED raises on the probe that reports it; no further probes are made
- Exceptions from fetch_status propagate unchanged
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from caption_orchestrator.api.models import JobStatus

logger = logging.getLogger(__name__)


class RemoteJobFailedError(Exception):
    """Raised when the provider reports a caption task as failed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("Caption task failed: {}".format(reason))


async def poll_until(
    fetch_status: Callable[[], Awaitable[JobStatus]],
    is_terminal: Callable[[JobStatus], bool],
    interval_s: float,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_status: Optional[Callable[[JobStatus], None]] = None,
) -> JobStatus:
    """Probe until a terminal status is observed.

    Args:
        fetch_status: Zero-argument coroutine function doing one probe.
        is_terminal: Predicate that ends the wait successfully.
        interval_s: Seconds to sleep between probes.
        sleep: Injected sleep (tests pass a recorder).
        on_status: Optional callback invoked with every probed status.

    Returns:
        The first status for which is_terminal returned True.
    """
    probes = 0
    while True:
        status = await fetch_status()
        probes += 1

        if on_status:
            on_status(status)
        logger.debug("Probe %d: %s", probes, status.raw_status)

        if is_terminal(status):
            return status

        if status.is_failed:
            raise RemoteJobFailedError(status.reason or "unknown error")

        await sleep(interval_s)
