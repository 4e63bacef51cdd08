"""Synthesis client tests: OpenAI-compatible capability and the invoker."""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import json

import httpx
import pytest

from competitive_intel.config import EngineConfig
from competitive_intel.errors import SynthesisTimeout, SynthesisTransportError
from competitive_intel.services.llm_client import (
    JSON_RESPONSE_FORMAT,
    OpenAIChatCapability,
    SynthesisInvoker,
    SynthesisPrompt,
    build_payload,
)

CONFIG = EngineConfig(openai_api_key="sk-test", openai_model="gpt-test", openai_base_url="https://llm.example/v1")
PROMPT = SynthesisPrompt(system="You are a scout.", user="Analyze this idea.")


def _complete(handler, config=CONFIG):
    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            capability = OpenAIChatCapability(config, client)
            return await capability.complete(PROMPT, JSON_RESPONSE_FORMAT, 5.0)

    return asyncio.run(_run())


class TestOpenAIChatCapability:
    def test_returns_message_content(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": '{"categoryLabel": "x"}'}}],
                    "usage": {"prompt_tokens": 10, "completion_tokens": 5},
                },
            )

        assert _complete(handler) == '{"categoryLabel": "x"}'
        assert seen["url"] == "https://llm.example/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "gpt-test"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]

    def test_missing_key(self):
        with pytest.raises(SynthesisTransportError, match="OPENAI_API_KEY"):
            _complete(lambda r: httpx.Response(200), config=EngineConfig())

    def test_non_200(self):
        with pytest.raises(SynthesisTransportError, match="synthesis HTTP 429"):
            _complete(lambda r: httpx.Response(429, json={"error": "rate limited"}))

    def test_malformed_envelope(self):
        with pytest.raises(SynthesisTransportError, match="malformed"):
            _complete(lambda r: httpx.Response(200, json={"choices": []}))

    def test_transport_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(SynthesisTimeout):
            _complete(handler)

    def test_build_payload(self):
        payload = build_payload(
            model="m",
            messages=PROMPT.messages(),
            max_tokens=100,
            temperature=0.2,
            response_format=JSON_RESPONSE_FORMAT,
        )
        assert payload["max_tokens"] == 100
        assert payload["temperature"] == 0.2


class _SlowCapability:
    async def complete(self, prompt, response_format, timeout):
        await asyncio.sleep(5)
        return "{}"


class _BrokenCapability:
    async def complete(self, prompt, response_format, timeout):
        raise RuntimeError("boom")


class TestSynthesisInvoker:
    def test_timeout_is_an_outcome(self):
        outcome = asyncio.run(SynthesisInvoker(_SlowCapability(), timeout_s=0.05).invoke(PROMPT))
        assert not outcome.ok
        assert outcome.text is None
        assert "timed out" in outcome.error

    def test_unexpected_error_is_an_outcome(self):
        outcome = asyncio.run(SynthesisInvoker(_BrokenCapability()).invoke(PROMPT))
        assert outcome.error == "synthesis failed: boom"

    def test_success(self):
        class _Echo:
            async def complete(self, prompt, response_format, timeout):
                return prompt.user

        outcome = asyncio.run(SynthesisInvoker(_Echo()).invoke(PROMPT))
        assert outcome.ok
        assert outcome.text == "Analyze this idea."
