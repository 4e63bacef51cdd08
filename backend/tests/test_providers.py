"""Provider adapter tests.

All HTTP traffic goes through httpx.MockTransport; no test touches the network.
"""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
from dataclasses import replace
from typing import List

import httpx

from competitive_intel.config import EngineConfig
from competitive_intel.errors import ProviderUnavailable
from competitive_intel.schemas.evidence_schema import EvidenceDraft, ProviderKind
from competitive_intel.services.evidence_providers import (
    BirdeyeMarketProvider,
    BirdeyeSecurityProvider,
    DefiLlamaProtocolProvider,
    DexScreenerLiquidityProvider,
    EvidenceProvider,
    ProviderContext,
    TavilySearchProvider,
    build_default_providers,
    extract_keywords,
    format_usd,
    generate_competitor_queries,
    infer_defi_bucket,
)

CONFIG = EngineConfig(tavily_api_key="tv-test", birdeye_api_key="be-test", provider_timeout_s=2.0)

LENDING_IDEA = "A lending vault that rotates between Solana money markets"
DOG_IDEA = "Dog themed memecoin with community rewards"


def _context(description=LENDING_IDEA, category="protocol-liquidity", token_address=None):
    return ProviderContext(
        idea_description=description,
        category=category,
        token_address=token_address,
    )


def _fetch(provider_cls, handler, config=CONFIG, description=LENDING_IDEA, **context):
    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = provider_cls(config, client)
            return await provider.fetch(description, _context(description, **context))

    return asyncio.run(_run())


def _unreachable(request):
    raise AssertionError(f"unexpected request to {request.url}")


class TestHelpers:
    def test_extract_keywords_skips_stop_words(self):
        assert extract_keywords("The best dog coin for the community", limit=2) == ["dog", "community"]

    def test_infer_defi_bucket(self):
        assert infer_defi_bucket(LENDING_IDEA) == "lending"
        assert infer_defi_bucket("perp exchange with leverage") == "dex"
        assert infer_defi_bucket("restaking rewards") == "staking"
        assert infer_defi_bucket("a social app") is None

    def test_format_usd(self):
        assert format_usd(2_100_000_000) == "$2.1B"
        assert format_usd(450_000) == "$450.0K"
        assert format_usd("bad") == "n/a"

    def test_two_queries_per_category(self):
        for category in ("narrative-asset", "protocol-liquidity", "agent-software"):
            assert len(generate_competitor_queries(LENDING_IDEA, category)) == 2


class TestFailureContract:
    def test_missing_tavily_key(self):
        result = _fetch(TavilySearchProvider, _unreachable, config=EngineConfig())
        assert result.ok is False
        assert result.items == []
        assert "TAVILY_API_KEY" in result.error
        assert result.provider_kind == ProviderKind.WEB_SEARCH

    def test_missing_birdeye_key(self):
        result = _fetch(BirdeyeMarketProvider, _unreachable, config=EngineConfig())
        assert result.ok is False
        assert "BIRDEYE_API_KEY" in result.error

    def test_security_without_address(self):
        result = _fetch(BirdeyeSecurityProvider, _unreachable, category="narrative-asset")
        assert result.ok is False
        assert result.provider_kind == ProviderKind.TOKEN_SECURITY

    def test_non_200_status(self):
        result = _fetch(DefiLlamaProtocolProvider, lambda request: httpx.Response(503))
        assert result.ok is False
        assert result.error == "HTTP 503"

    def test_invalid_json(self):
        result = _fetch(DefiLlamaProtocolProvider, lambda request: httpx.Response(200, text="<html>"))
        assert result.ok is False
        assert "invalid JSON" in result.error

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = _fetch(DefiLlamaProtocolProvider, handler)
        assert result.ok is False
        assert "transport error" in result.error

    def test_timeout(self):
        class SlowProvider(EvidenceProvider):
            provider_kind = ProviderKind.WEB_SEARCH

            async def _fetch(self, query, context) -> List[EvidenceDraft]:
                await asyncio.sleep(5)
                return [EvidenceDraft(title="too late")]

        config = replace(CONFIG, provider_timeout_s=0.05)
        result = _fetch(SlowProvider, _unreachable, config=config)
        assert result.ok is False
        assert result.error.startswith("timeout")

    def test_subclass_errors_are_converted(self):
        class BrokenProvider(EvidenceProvider):
            provider_kind = ProviderKind.SYSTEM

            async def _fetch(self, query, context) -> List[EvidenceDraft]:
                raise ProviderUnavailable("upstream down")

        result = _fetch(BrokenProvider, _unreachable)
        assert result.ok is False
        assert result.error == "upstream down"


class TestTavily:
    def test_dedupes_by_url(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "results": [
                        {"url": "https://a.example", "title": "Kamino", "content": "Lending leader"},
                        {"url": "https://b.example", "title": "Marginfi", "content": "Lending runner-up"},
                        {"url": "https://a.example", "title": "Kamino again", "content": "dup"},
                    ]
                },
            )

        result = _fetch(TavilySearchProvider, handler)
        assert result.ok is True
        assert len(seen) == 2
        assert [d.url for d in result.items] == ["https://a.example", "https://b.example"]
        assert result.items[0].snippet == "Lending leader"

    def test_one_failed_query_is_tolerated(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] == 1:
                return httpx.Response(500)
            return httpx.Response(200, json={"results": [{"url": "https://c.example", "title": "C"}]})

        result = _fetch(TavilySearchProvider, handler)
        assert result.ok is True
        assert [d.title for d in result.items] == ["C"]


class TestDefiLlama:
    def test_top_protocols_in_bucket(self):
        protocols = [
            {"name": "Jupiter", "category": "Dexes", "chain": "Solana", "tvl": 3e9},
            {"name": "Kamino", "category": "Lending", "chain": "Solana", "tvl": 2.1e9, "slug": "kamino"},
            {"name": "Solend", "category": "Lending", "chain": "Solana", "tvl": 1e8},
            {"name": "Marginfi", "category": "Lending", "chains": ["Solana"], "tvl": 4e8},
            {"category": "Lending", "tvl": 9e9},
        ]

        def handler(request):
            assert request.url.path == "/protocols"
            return httpx.Response(200, json=protocols)

        result = _fetch(DefiLlamaProtocolProvider, handler)
        assert result.ok is True
        assert [d.title.split(":")[0] for d in result.items] == ["Kamino", "Marginfi", "Solend"]
        assert result.items[0].title == "Kamino: TVL $2.1B (Lending, Solana)"
        assert result.items[0].url == "https://defillama.com/protocol/kamino"

    def test_caps_at_five(self):
        protocols = [{"name": f"P{i}", "category": "Lending", "tvl": i * 1e6} for i in range(10)]
        result = _fetch(DefiLlamaProtocolProvider, lambda r: httpx.Response(200, json=protocols))
        assert len(result.items) == 5
        assert result.items[0].title.startswith("P9:")


class TestDexScreener:
    def test_sorted_by_liquidity(self):
        def handler(request):
            assert request.url.params["q"] == "dog"
            return httpx.Response(
                200,
                json={
                    "pairs": [
                        {"baseToken": {"name": "Small Dog", "symbol": "SDOG"}, "liquidity": {"usd": 1000}, "dexId": "raydium"},
                        {"baseToken": {"name": "Big Dog", "symbol": "BDOG"}, "liquidity": {"usd": 5_000_000}, "dexId": "orca"},
                    ]
                },
            )

        result = _fetch(DexScreenerLiquidityProvider, handler, description=DOG_IDEA, category="narrative-asset")
        assert result.ok is True
        assert result.items[0].title.startswith("Big Dog ($BDOG) on orca")


class TestBirdeye:
    def test_trending_tokens(self):
        def handler(request):
            assert request.headers["X-API-KEY"] == "be-test"
            assert request.url.path == "/defi/token_trending"
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {"tokens": [{"name": "Bonk", "symbol": "BONK", "rank": 1, "liquidity": 2e7, "address": "Dez"}]},
                },
            )

        result = _fetch(BirdeyeMarketProvider, handler, description=DOG_IDEA, category="narrative-asset")
        assert result.ok is True
        assert result.items[0].title == "Trending #1: Bonk ($BONK)"

    def test_security_flags(self):
        def handler(request):
            assert request.url.params["address"] == "So11111111111111111111111111111111111111112"
            return httpx.Response(
                200,
                json={"success": True, "data": {"top10HolderPercent": 0.42, "freezeable": False}},
            )

        result = _fetch(
            BirdeyeSecurityProvider,
            handler,
            description=DOG_IDEA,
            category="narrative-asset",
            token_address="So11111111111111111111111111111111111111112",
        )
        assert result.ok is True
        assert "top-10 holders own 42.0%" in result.items[0].snippet
        assert "no freeze authority" in result.items[0].snippet

    def test_unsuccessful_payload(self):
        result = _fetch(
            BirdeyeMarketProvider,
            lambda r: httpx.Response(200, json={"success": False}),
            description=DOG_IDEA,
            category="narrative-asset",
        )
        assert result.ok is False


class TestFactory:
    def test_one_provider_per_kind(self):
        providers = build_default_providers(CONFIG)
        assert set(providers) == {
            ProviderKind.WEB_SEARCH,
            ProviderKind.PROTOCOL_TVL,
            ProviderKind.ON_CHAIN_LIQUIDITY,
            ProviderKind.TOKEN_MARKET_DATA,
            ProviderKind.TOKEN_SECURITY,
        }
