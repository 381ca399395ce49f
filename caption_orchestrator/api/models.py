"""Captioning provider response types.

WHY: The provider reports task progress as ad-hoc status strings. Matching
raw strings inside a poll loop lets a new or misspelled state fall through
silently and poll forever. Mapping them once into a closed enum makes every
unexpected state fail loudly at parse time.

HOW: TaskState is the closed set of states the workflow understands.
JobStatus.from_dict maps the provider's JSON through _PROVIDER_STATES and
keeps whichever URLs the payload carries. Whether a URL is required depends
on which phase is waiting, so the orchestrator checks it after each wait.

RULES:
- A payload that is not a JSON object raises ProviderError
- Unknown provider status strings raise ProviderError
- FAILED carries the provider reason, defaulting to "unknown error"
- RemoteJobHandle is immutable and belongs to exactly one attempt
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

from caption_orchestrator.api.errors import ProviderError


class TaskState(str, enum.Enum):
    """States of a remote captioning task, as understood by the orchestrator."""

    QUEUED = "queued"
    TRANSCRIBING = "transcribing"
    TRANSCRIPT_READY = "transcript_ready"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


# Provider status string → TaskState
_PROVIDER_STATES: Dict[str, TaskState] = {
    "pending": TaskState.QUEUED,
    "queued": TaskState.QUEUED,
    "transcribing": TaskState.TRANSCRIBING,
    "transcriptionCompleted": TaskState.TRANSCRIPT_READY,
    "approved": TaskState.RENDERING,
    "rendering": TaskState.RENDERING,
    "completed": TaskState.COMPLETED,
    "failed": TaskState.FAILED,
}


@dataclass(frozen=True)
class RemoteJobHandle:
    """Provider identifiers for one upload + caption task pair."""

    video_id: str
    task_id: str


@dataclass(frozen=True)
class JobStatus:
    """One status probe result for a remote captioning task.

    RULES:
    - state is always set; the optional fields depend on it
    - raw_status keeps the provider's original string for logging
    """

    state: TaskState
    raw_status: str
    transcript_url: Optional[str] = None
    download_url: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> JobStatus:
        """Parse a provider status payload into a JobStatus.

        RULES:
        - Raises ProviderError for a non-object payload
        - Raises ProviderError for a missing or unknown status
        - Empty URL fields are normalized to None
        """
        if not isinstance(data, dict):
            raise ProviderError("Status payload is not an object")

        raw = data.get("status")
        if not isinstance(raw, str) or raw not in _PROVIDER_STATES:
            raise ProviderError("Unknown caption task status: {!r}".format(raw))

        state = _PROVIDER_STATES[raw]
        return cls(
            state=state,
            raw_status=raw,
            transcript_url=data.get("transcript") or None,
            download_url=data.get("downloadUrl") or None,
            reason=(data.get("error") or "unknown error") if state is TaskState.FAILED else None,
        )

    @property
    def is_failed(self) -> bool:
        return self.state is TaskState.FAILED
