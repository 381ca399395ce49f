"""Exceptions raised by the captioning provider and correction model clients.

WHY: The orchestrator needs typed exceptions to tell transient provider
trouble (retried) apart from a language the provider cannot caption at all
(fatal for that language). Both clients and the status parser raise these,
so they live in one leaf module that everything else can import.

RULES:
- ProviderError: non-2xx responses and malformed payloads (transient)
- NetworkError: transport failures (timeouts, refused connections); a
  ProviderError so callers can catch both with one clause
- UnsupportedLanguageError: no provider mapping exists (fatal, not retried)
"""

from __future__ import annotations

from typing import Optional


class ProviderError(Exception):
    """Raised when a remote service returns an error or an unusable payload.

    HOW: Wraps the HTTP status code (None for payload problems) and a
    message.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(message)
        else:
            super().__init__("Provider error {}: {}".format(status_code, message))


class NetworkError(ProviderError):
    """Raised when the HTTP request could not be completed at all."""


class UnsupportedLanguageError(ValueError):
    """Raised when a language has no captioning provider code."""

    def __init__(self, language: str) -> None:
        self.language = language
        super().__init__("Unsupported caption language: {}".format(language))
