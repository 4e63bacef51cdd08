"""Engine configuration.

All settings are read from the environment (``.env`` is loaded by
``main.py``) with safe defaults, then carried around as an explicit
``EngineConfig`` so adapters never look up keys on their own.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .constants import (
    DEFAULT_MAX_CLAIMS,
    DEFAULT_MAX_EVIDENCE_HINTS,
    DEFAULT_RESULT_VALIDITY_HOURS,
)


def _env_str(key: str) -> Optional[str]:
    value = os.getenv(key, "").strip()
    return value or None


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineConfig:
    """Everything the pipeline needs that is not part of the request."""

    # LLM
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4.1"
    openai_base_url: str = "https://api.openai.com/v1"
    openai_temperature: float = 0.4

    # Providers
    tavily_api_key: Optional[str] = None
    birdeye_api_key: Optional[str] = None
    provider_timeout_s: float = 5.0

    # Synthesis
    synthesis_timeout_s: float = 15.0

    # Bounds
    max_evidence_hints: int = DEFAULT_MAX_EVIDENCE_HINTS
    max_claims: int = DEFAULT_MAX_CLAIMS
    result_validity_hours: float = DEFAULT_RESULT_VALIDITY_HOURS

    # "substring" (default) or "token"
    mention_matcher: str = "substring"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables."""
        return cls(
            openai_api_key=_env_str("OPENAI_API_KEY"),
            openai_model=_env_str("OPENAI_MODEL") or "gpt-4.1",
            openai_base_url=(_env_str("OPENAI_BASE_URL") or "https://api.openai.com/v1").rstrip("/"),
            openai_temperature=_env_float("OPENAI_TEMPERATURE", 0.4),
            tavily_api_key=_env_str("TAVILY_API_KEY"),
            birdeye_api_key=_env_str("BIRDEYE_API_KEY"),
            provider_timeout_s=_env_float("PROVIDER_TIMEOUT_SECONDS", 5.0),
            synthesis_timeout_s=_env_float("SYNTHESIS_TIMEOUT_SECONDS", 15.0),
            max_evidence_hints=_env_int("MAX_EVIDENCE_HINTS", DEFAULT_MAX_EVIDENCE_HINTS),
            max_claims=_env_int("MAX_CLAIMS", DEFAULT_MAX_CLAIMS),
            result_validity_hours=_env_float("RESULT_VALIDITY_HOURS", DEFAULT_RESULT_VALIDITY_HOURS),
            mention_matcher=(_env_str("MENTION_MATCHER") or "substring").lower(),
        )
