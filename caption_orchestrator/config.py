"""Configuration constants, language mappings, and .env loading.

WHY: Centralizes every configurable value for the captioning workflow so
credentials, provider identifiers, retry policy, and language codes are
easy to find and override. Language mappings are plain data, not logic.

HOW: python-dotenv loads the .env file on import. Defaults are defined as
module-level constants. load_settings() reads the environment into a frozen
CaptionSettings and raises ConfigurationError for anything missing or
malformed, before any remote work begins.

RULES:
- LANGUAGE_MAP maps pipeline language names (upper-case) → provider codes
- Required: ZAPCAP_API_KEY, ZAPCAP_TEMPLATE_ID, OPENAI_API_KEY
- Secrets are never hardcoded and never given placeholder defaults
- ConfigurationError is fatal and never retried
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Language mapping: pipeline language name → captioning provider code
# ---------------------------------------------------------------------------

LANGUAGE_MAP: dict[str, str] = {
    "ENGLISH": "en",
    "SPANISH": "es",
    "RUSSIAN": "ru",
    "FRENCH": "fr",
    "GERMAN": "de",
    "ITALIAN": "it",
    "PORTUGUESE": "pt",
}


def provider_language_code(language: str) -> Optional[str]:
    """Return the provider code for a language name, or None if unmapped.

    Lookup is case-insensitive: "english", "English" and "ENGLISH" all map
    to "en".
    """
    return LANGUAGE_MAP.get(language.strip().upper())


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_PROVIDER_BASE_URL = "https://api.zapcap.ai"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_REVIEW_MODEL = "o3"
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_S = 2.0
DEFAULT_POLL_INTERVAL_S = 2.0
DEFAULT_TARGET_SAMPLE_RATE = 44_100
DEFAULT_INPUT_DIR = "input"


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or malformed.

    WHY: Missing credentials or template identifiers can never be fixed by
    retrying, so they must surface before the first attempt.

    RULES:
    - Message names the offending environment variable
    """


@dataclass(frozen=True)
class CaptionSettings:
    """Resolved settings for one orchestrator process."""

    provider_api_key: str
    template_id: str
    openai_api_key: str
    provider_base_url: str = DEFAULT_PROVIDER_BASE_URL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL
    review_model: str = DEFAULT_REVIEW_MODEL
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_delay_s: float = DEFAULT_RETRY_DELAY_S
    poll_interval_s: float = DEFAULT_POLL_INTERVAL_S
    target_sample_rate: int = DEFAULT_TARGET_SAMPLE_RATE
    input_dir: Path = Path(DEFAULT_INPUT_DIR)


# ---------------------------------------------------------------------------
# Environment readers
# ---------------------------------------------------------------------------


def read_required_env(name: str) -> str:
    """Read a required variable, raising ConfigurationError if missing or blank."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigurationError(
            "Missing required environment variable: {}. "
            "Add it to the .env file in the project folder.".format(name)
        )
    return value


def read_optional_env(name: str, fallback: str = "") -> str:
    value = os.getenv(name, "").strip()
    return value or fallback


def read_csv_env(name: str) -> List[str]:
    """Read a comma-separated variable as a list of trimmed, non-empty entries."""
    return [item.strip() for item in read_optional_env(name).split(",") if item.strip()]


def _read_number(name: str, fallback, cast):  # noqa: ANN001
    raw = read_optional_env(name)
    if not raw:
        return fallback
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(
            "Environment variable {} must be numeric, got {!r}".format(name, raw)
        ) from None
    if value <= 0:
        raise ConfigurationError(
            "Environment variable {} must be positive, got {!r}".format(name, raw)
        )
    return value


def load_settings() -> CaptionSettings:
    """Build CaptionSettings from the environment.

    WHY: The orchestrator, clients and CLI all need the same resolved
    values. Reading them once, up front, turns configuration problems into
    an immediate ConfigurationError rather than a failure deep inside an
    attempt.

    RULES:
    - Raises ConfigurationError for missing secrets or non-numeric numbers
    - Numeric values must be positive
    """
    return CaptionSettings(
        provider_api_key=read_required_env("ZAPCAP_API_KEY"),
        template_id=read_required_env("ZAPCAP_TEMPLATE_ID"),
        openai_api_key=read_required_env("OPENAI_API_KEY"),
        provider_base_url=read_optional_env("ZAPCAP_API_BASE_URL", DEFAULT_PROVIDER_BASE_URL),
        openai_base_url=read_optional_env("OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL),
        review_model=read_optional_env("CAPTION_REVIEW_MODEL", DEFAULT_REVIEW_MODEL),
        max_attempts=_read_number("CAPTION_MAX_RETRIES", DEFAULT_MAX_ATTEMPTS, int),
        retry_delay_s=_read_number("CAPTION_RETRY_DELAY_SECONDS", DEFAULT_RETRY_DELAY_S, float),
        poll_interval_s=_read_number("CAPTION_POLL_INTERVAL_SECONDS", DEFAULT_POLL_INTERVAL_S, float),
        target_sample_rate=_read_number("CAPTION_TARGET_SAMPLE_RATE", DEFAULT_TARGET_SAMPLE_RATE, int),
        input_dir=Path(read_optional_env("INPUT_DIR", DEFAULT_INPUT_DIR)),
    )
