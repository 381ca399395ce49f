"""HTTP clients for the captioning provider and the correction model.

RULES:
- All provider HTTP goes through CaptionClient
- All correction-model HTTP goes through CorrectionClient
- Neither client retries; the orchestrator owns retry
"""

from caption_orchestrator.api.client import CaptionClient
from caption_orchestrator.api.correction import CorrectionClient, correct_transcript
from caption_orchestrator.api.errors import NetworkError, ProviderError, UnsupportedLanguageError
from caption_orchestrator.api.models import JobStatus, RemoteJobHandle, TaskState

__all__ = [
    "CaptionClient",
    "CorrectionClient",
    "JobStatus",
    "NetworkError",
    "ProviderError",
    "RemoteJobHandle",
    "TaskState",
    "UnsupportedLanguageError",
    "correct_transcript",
]
