"""Synthesis Invoker and the OpenAI-compatible completion capability.

The engine only knows the narrow capability signature
``complete(prompt, response_format, timeout) -> str``.  This module ships
the default implementation (chat completions over httpx) and the invoker
that wraps any capability with a hard timeout.

Rules:
  - Exactly one attempt per request.  No retries here or anywhere else.
  - The timeout cancels the awaiting task, which cancels the HTTP request.
  - Failures come back as a tagged ``SynthesisOutcome``, never as exceptions.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..config import EngineConfig
from ..errors import SynthesisError, SynthesisTimeout, SynthesisTransportError
from .http_client import get_client, get_timeout

logger = logging.getLogger(__name__)

JSON_RESPONSE_FORMAT: Dict[str, str] = {"type": "json_object"}

_DEFAULT_MAX_TOKENS = 2500


@dataclass(frozen=True)
class SynthesisPrompt:
    """System instruction plus user content.

    Fetched evidence text lives in ``user`` only.
    """

    system: str
    user: str

    def messages(self) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system},
            {"role": "user", "content": self.user},
        ]


class LLMCapability(Protocol):
    async def complete(
        self,
        prompt: SynthesisPrompt,
        response_format: Dict[str, str],
        timeout: float,
    ) -> str:
        ...


# ---------------------------------------------------------------------------
# Default capability: OpenAI-compatible chat completions
# ---------------------------------------------------------------------------
def build_payload(
    *,
    model: str,
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: float,
    response_format: Dict[str, str],
) -> Dict[str, Any]:
    """Build a chat completions payload."""
    return {
        "model": model,
        "messages": messages,
        "max_tokens": max_tokens,
        "temperature": temperature,
        "response_format": response_format,
    }


class OpenAIChatCapability:
    """Calls ``{base_url}/chat/completions`` and returns the raw message text."""

    def __init__(
        self,
        config: EngineConfig,
        client: Optional[httpx.AsyncClient] = None,
        max_tokens: int = _DEFAULT_MAX_TOKENS,
    ) -> None:
        self._config = config
        self._http = client
        self._max_tokens = max_tokens

    async def complete(
        self,
        prompt: SynthesisPrompt,
        response_format: Dict[str, str],
        timeout: float,
    ) -> str:
        api_key = self._config.openai_api_key
        if not api_key:
            raise SynthesisTransportError("OPENAI_API_KEY not set")

        model = self._config.openai_model
        payload = build_payload(
            model=model,
            messages=prompt.messages(),
            max_tokens=self._max_tokens,
            temperature=self._config.openai_temperature,
            response_format=response_format,
        )
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        client = self._http or await get_client()

        t0 = time.perf_counter()
        logger.info("[SYNTHESIS] Calling %s", model)
        try:
            response = await client.post(
                f"{self._config.openai_base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=get_timeout("openai", timeout),
            )
        except httpx.TimeoutException as exc:
            raise SynthesisTimeout(f"synthesis timed out after {timeout:.1f}s") from exc
        except httpx.HTTPError as exc:
            raise SynthesisTransportError(f"synthesis transport error: {exc}") from exc

        logger.info(
            "[SYNTHESIS] HTTP %d (%.1fs)", response.status_code, time.perf_counter() - t0
        )
        if response.status_code != 200:
            logger.warning("[SYNTHESIS] Error response: %s", response.text[:400])
            raise SynthesisTransportError(f"synthesis HTTP {response.status_code}")

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SynthesisTransportError("malformed completion envelope") from exc

        usage = data.get("usage")
        if usage:
            logger.info(
                "[SYNTHESIS] Tokens used: prompt=%s, completion=%s",
                usage.get("prompt_tokens", "?"),
                usage.get("completion_tokens", "?"),
            )
        return content or ""


# ---------------------------------------------------------------------------
# Invoker
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SynthesisOutcome:
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SynthesisInvoker:
    """Runs one capability call under a hard timeout."""

    def __init__(self, capability: LLMCapability, timeout_s: float = 15.0) -> None:
        self._capability = capability
        self._timeout = timeout_s

    async def invoke(self, prompt: SynthesisPrompt) -> SynthesisOutcome:
        try:
            text = await asyncio.wait_for(
                self._capability.complete(prompt, JSON_RESPONSE_FORMAT, self._timeout),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("[SYNTHESIS] Aborted after %.1fs", self._timeout)
            return SynthesisOutcome(error=f"synthesis timed out after {self._timeout:.1f}s")
        except SynthesisError as exc:
            logger.warning("[SYNTHESIS] %s", exc)
            return SynthesisOutcome(error=str(exc) or exc.__class__.__name__)
        except Exception as exc:
            logger.warning("[SYNTHESIS] Unexpected error: %s", exc)
            return SynthesisOutcome(error=f"synthesis failed: {exc}")
        return SynthesisOutcome(text=text or "")
