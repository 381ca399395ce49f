"""Async HTTP client for the remote captioning provider API.

WHY: The orchestrator needs to upload a rendered video, create a caption
task, probe its status, fetch the machine transcript, push a corrected
transcript back, and approve it for final render. This module hides the
HTTP details of those calls behind one client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. CaptionClient is an
async context manager; enter it to get an authenticated client, exit to
close the connection pool. Each provider operation is one method and one
request:
upload_video → create_task → fetch_status → fetch_transcript →
put_transcript → approve_transcript.

RULES:
- Always use the async context manager (async with CaptionClient(...) as client:)
- No method retries or loops; retry is owned by the orchestrator and
  looping by core.polling.poll_until
- Non-2xx responses raise ProviderError; transport failures raise NetworkError
- The API key is sent as the x-api-key header, never to transcript URLs
- Timeouts live here, not in the orchestrator
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from caption_orchestrator.api.errors import (
    NetworkError,
    ProviderError,
    UnsupportedLanguageError,
)
from caption_orchestrator.api.models import JobStatus
from caption_orchestrator.config import DEFAULT_PROVIDER_BASE_URL, provider_language_code

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT = httpx.Timeout(300.0, connect=30.0)


class CaptionClient:
    """Async client for the captioning provider's task API.

    RULES:
    - Use as: async with CaptionClient(api_key, template_id) as client: ...
    - transport is for tests (httpx.MockTransport); production leaves it None
    - Tasks are always created with autoApprove disabled so the corrected
      transcript can be pushed before rendering
    """

    def __init__(
        self,
        api_key: str,
        template_id: str,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._template_id = template_id
        self._base_url = (base_url or DEFAULT_PROVIDER_BASE_URL).rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> CaptionClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-api-key": self._api_key},
            timeout=_REQUEST_TIMEOUT,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "CaptionClient must be used as an async context manager: "
                "async with CaptionClient(...) as client: ..."
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._ensure_client()
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError("{} {} failed: {}".format(method, url, exc)) from exc

        if not resp.is_success:
            raise ProviderError(resp.text, status_code=resp.status_code)
        return resp

    # ------------------------------------------------------------------
    # Upload + task creation
    # ------------------------------------------------------------------

    async def upload_video(self, video_path: Path) -> str:
        """Upload a rendered video and return the provider's video ID.

        HOW: multipart/form-data POST /videos with the file content.

        RULES:
        - Raises ProviderError if the response has no "id"
        """
        video_path = Path(video_path)
        with open(video_path, "rb") as f:
            resp = await self._request(
                "POST",
                "/videos",
                files={"file": (video_path.name, f, "video/mp4")},
            )

        video_id = _json_field(resp, "id")
        if not video_id:
            raise ProviderError("Upload response does not contain a video id")
        return str(video_id)

    async def create_task(self, video_id: str, language: str) -> str:
        """Create a caption task for an uploaded video and return its task ID.

        RULES:
        - Raises UnsupportedLanguageError before any request if the language
          has no provider code
        - Raises ProviderError if the response has no "taskId"
        """
        language_code = provider_language_code(language)
        if language_code is None:
            raise UnsupportedLanguageError(language)

        resp = await self._request(
            "POST",
            "/videos/{}/task".format(video_id),
            json={
                "templateId": self._template_id,
                "autoApprove": False,
                "language": language_code,
            },
        )

        task_id = _json_field(resp, "taskId")
        if not task_id:
            raise ProviderError("Task response does not contain a taskId")
        return str(task_id)

    # ------------------------------------------------------------------
    # Status + transcript
    # ------------------------------------------------------------------

    async def fetch_status(self, video_id: str, task_id: str) -> JobStatus:
        """Probe the task once and return its parsed status."""
        resp = await self._request("GET", "/videos/{}/task/{}".format(video_id, task_id))
        return JobStatus.from_dict(_json_body(resp))

    async def fetch_transcript(self, transcript_url: str) -> List[Dict[str, Any]]:
        """Download the machine transcript referenced by a ready status.

        WHY: The provider hands out transcripts as a separate URL, typically
        on a storage host that must not receive our API key.

        HOW: One-off unauthenticated GET. The body is either a JSON array of
        chunks or a JSON string that itself encodes that array.

        RULES:
        - Returns the chunk dicts exactly as received
        - Raises ProviderError if the payload is not a list of objects
        """
        async with httpx.AsyncClient(
            timeout=_REQUEST_TIMEOUT,
            follow_redirects=True,
            max_redirects=3,
            transport=self._transport,
        ) as plain_client:
            try:
                resp = await plain_client.get(transcript_url)
            except httpx.TransportError as exc:
                raise NetworkError("Transcript download failed: {}".format(exc)) from exc

        if not resp.is_success:
            raise ProviderError(resp.text, status_code=resp.status_code)

        transcript: Any = _json_body(resp)
        if isinstance(transcript, str):
            try:
                transcript = json.loads(transcript)
            except ValueError as exc:
                raise ProviderError("Transcript payload is not valid JSON") from exc

        if not isinstance(transcript, list) or not all(isinstance(c, dict) for c in transcript):
            raise ProviderError("Transcript format is invalid: expected a list of chunks")
        return transcript

    async def put_transcript(
        self,
        video_id: str,
        task_id: str,
        chunks: List[Dict[str, Any]],
    ) -> None:
        """Replace the task's transcript with the given chunk list."""
        await self._request(
            "PUT",
            "/videos/{}/task/{}/transcript".format(video_id, task_id),
            json=chunks,
        )

    async def approve_transcript(self, video_id: str, task_id: str) -> None:
        """Approve the current transcript so the provider starts rendering."""
        await self._request(
            "POST",
            "/videos/{}/task/{}/approve-transcript".format(video_id, task_id),
            json={},
        )


# ---------------------------------------------------------------------------
# Response helpers (module-private)
# ---------------------------------------------------------------------------


def _json_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise ProviderError("Response body is not valid JSON") from exc


def _json_field(resp: httpx.Response, key: str) -> Optional[Any]:
    data = _json_body(resp)
    if not isinstance(data, dict):
        return None
    return data.get(key)
