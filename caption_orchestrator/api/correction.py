"""Transcript spelling correction via the OpenAI Responses API.

WHY: Machine transcripts misspell names and uncommon words that the
voiceover script already spells correctly. A text model can fix those
spellings, but only if it is held to a strict structural contract: same
number of entries, same order, text changes only.

HOW: CorrectionClient posts the reference script and the text-only chunk
list to POST /responses with a strict JSON-schema output format, then
parses and validates the reply with jsonschema. correct_transcript() is the
adapter the orchestrator calls: it extracts text chunks, calls the model,
and merges the results back with core.transcript.merge_corrections.

RULES:
- Always use the async context manager (async with CorrectionClient(...) as c:)
- Only {"text": ...} entries are sent; timings and metadata never leave
- Empty, non-JSON, or schema-invalid replies raise CorrectionResponseError
- A count mismatch raises CorrectionShapeError (from merge_corrections)
- Transcripts with no text chunks skip the model call entirely
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

import httpx
import jsonschema

from caption_orchestrator.api.errors import NetworkError, ProviderError
from caption_orchestrator.config import DEFAULT_OPENAI_BASE_URL, DEFAULT_REVIEW_MODEL
from caption_orchestrator.core.transcript import extract_correction_input, merge_corrections

logger = logging.getLogger(__name__)

CORRECTION_INSTRUCTIONS = (
    "Check transcript chunks against the original text. Fix only word "
    "spelling errors. Do not change order, do not change array size, and "
    "keep punctuation placeholders."
)

CORRECTION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {"text": {"type": "string"}},
                "required": ["text"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["items"],
    "additionalProperties": False,
}


class CorrectionResponseError(ProviderError):
    """Raised when the correction model's reply cannot be used."""


class CorrectionClient:
    """Async client for the transcript correction model.

    RULES:
    - Bearer auth with the OpenAI API key
    - model defaults to DEFAULT_REVIEW_MODEL ("o3"), reasoning effort "high"
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        base_url: str | None = None,
        reasoning_effort: str = "high",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model or DEFAULT_REVIEW_MODEL
        self._base_url = (base_url or DEFAULT_OPENAI_BASE_URL).rstrip("/")
        self._reasoning_effort = reasoning_effort
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> CorrectionClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(600.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "CorrectionClient must be used as an async context manager: "
                "async with CorrectionClient(...) as client: ..."
            )
        return self._client

    def build_request(self, reference_script: str, chunks: List[Dict[str, str]]) -> Dict[str, Any]:
        """Build the Responses API request body."""
        return {
            "model": self._model,
            "reasoning": {"effort": self._reasoning_effort},
            "input": [
                {
                    "role": "developer",
                    "content": [{"type": "input_text", "text": CORRECTION_INSTRUCTIONS}],
                },
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "input_text",
                            "text": "Original text: {}\n\nTranscript chunks: {}".format(
                                reference_script,
                                json.dumps(chunks, indent=2, ensure_ascii=False),
                            ),
                        }
                    ],
                },
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "corrected_transcript",
                    "strict": True,
                    "schema": CORRECTION_SCHEMA,
                }
            },
        }

    async def correct_chunks(
        self,
        reference_script: str,
        chunks: List[Dict[str, str]],
    ) -> List[Dict[str, str]]:
        """Ask the model to correct spelling in text-only chunks.

        RULES:
        - Returns the model's "items" list, validated against CORRECTION_SCHEMA
        - Does not check the item count; that is merge_corrections' job
        """
        client = self._ensure_client()
        try:
            resp = await client.post("/responses", json=self.build_request(reference_script, chunks))
        except httpx.TransportError as exc:
            raise NetworkError("Correction request failed: {}".format(exc)) from exc

        if not resp.is_success:
            raise ProviderError(resp.text, status_code=resp.status_code)

        try:
            body = resp.json()
        except ValueError as exc:
            raise CorrectionResponseError("Correction response is not valid JSON") from exc

        output_text = _extract_output_text(body)
        if not output_text:
            raise CorrectionResponseError("Correction model did not return corrected transcript")

        try:
            parsed = json.loads(output_text)
            jsonschema.validate(instance=parsed, schema=CORRECTION_SCHEMA)
        except ValueError as exc:
            raise CorrectionResponseError("Corrected transcript is not valid JSON") from exc
        except jsonschema.ValidationError as exc:
            raise CorrectionResponseError(
                "Corrected transcript response format is invalid: {}".format(exc.message)
            ) from exc

        return parsed["items"]


async def correct_transcript(
    corrector: CorrectionClient,
    reference_script: str,
    chunks: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Correct a full provider transcript while preserving its structure.

    WHY: This is the single entry point the orchestrator uses for the
    correction phase. It keeps the filter/call/validate/merge steps together
    so the shape contract is enforced in exactly one place.

    RULES:
    - Returns a new list with the same length and order as chunks
    - Raises CorrectionShapeError on count mismatch
    """
    compact = extract_correction_input(chunks)
    if not compact:
        logger.info("Transcript has no text chunks; skipping correction")
        return [dict(chunk) for chunk in chunks]

    corrected = await corrector.correct_chunks(reference_script, compact)
    merged = merge_corrections(chunks, corrected)
    changed = sum(1 for before, after in zip(compact, corrected) if before["text"] != after["text"])
    logger.info("Corrected %d of %d transcript chunks", changed, len(compact))
    return merged


def _extract_output_text(body: Any) -> str:
    """Return the model's text output from a Responses API body.

    HOW: Prefers the top-level "output_text" convenience field; otherwise
    joins every output_text content part under "output".
    """
    if not isinstance(body, dict):
        return ""
    if isinstance(body.get("output_text"), str):
        return body["output_text"]

    parts: List[str] = []
    for item in body.get("output") or []:
        if not isinstance(item, dict):
            continue
        for content in item.get("content") or []:
            if isinstance(content, dict) and content.get("type") == "output_text":
                parts.append(content.get("text") or "")
    return "".join(parts)
