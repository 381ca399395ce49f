"""Streaming file download for provider-hosted artifacts."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from caption_orchestrator.api.errors import NetworkError, ProviderError

logger = logging.getLogger(__name__)

_DOWNLOAD_TIMEOUT = httpx.Timeout(30.0)
_MAX_REDIRECTS = 3


async def download_file(
    url: str,
    destination: Path,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Path:
    """Stream url to destination, creating parent directories.

    RULES:
    - Follows at most 3 redirects; 30s timeout per network operation
    - Non-2xx responses raise ProviderError, transport failures NetworkError
    - On any error the partially written destination is removed
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    async with httpx.AsyncClient(
        timeout=_DOWNLOAD_TIMEOUT,
        follow_redirects=True,
        max_redirects=_MAX_REDIRECTS,
        transport=transport,
    ) as client:
        try:
            try:
                async with client.stream("GET", url) as resp:
                    if not resp.is_success:
                        body = await resp.aread()
                        raise ProviderError(
                            body.decode("utf-8", errors="replace"),
                            status_code=resp.status_code,
                        )
                    written = 0
                    with open(destination, "wb") as f:
                        async for chunk in resp.aiter_bytes():
                            f.write(chunk)
                            written += len(chunk)
            except httpx.TransportError as exc:
                raise NetworkError("Download failed for {}: {}".format(url, exc)) from exc
        except Exception:
            destination.unlink(missing_ok=True)
            raise

    logger.info("Downloaded %d bytes to %s", written, destination)
    return destination
