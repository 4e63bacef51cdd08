"""Evidence Providers.

Defines the ``EvidenceProvider`` abstract interface and concrete
implementations.  The pipeline interacts only with the interface, so a data
source can be swapped or fail without touching anything else.

Providers
---------
- ``TavilySearchProvider``: WebSearch, competitor web results.
- ``DefiLlamaProtocolProvider``: ProtocolTVL, top protocols by TVL.
- ``DexScreenerLiquidityProvider``: OnChainLiquidity, trading pairs.
- ``BirdeyeMarketProvider``: TokenMarketData, trending tokens.
- ``BirdeyeSecurityProvider``: TokenSecurity, one token's risk flags.

Contract
--------
``fetch`` never raises.  Timeouts, HTTP errors, bad payloads and missing
API keys all come back as ``ProviderResult(ok=False)`` with zero items.
Subclasses implement ``_fetch`` and may raise freely.

Adding a new provider
---------------------
1. Subclass ``EvidenceProvider`` and set ``provider_kind``.
2. Implement ``_fetch``.
3. Register it in ``build_default_providers()``.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..config import EngineConfig
from ..constants import AGENT_SOFTWARE, NARRATIVE_ASSET, PROTOCOL_LIQUIDITY
from ..errors import ProviderNotConfigured, ProviderUnavailable
from ..schemas.evidence_schema import EvidenceDraft, ProviderKind
from .http_client import get_client, get_timeout

logger = logging.getLogger(__name__)

_TAVILY_API_URL = "https://api.tavily.com/search"
_DEFILLAMA_BASE_URL = "https://api.llama.fi"
_DEXSCREENER_BASE_URL = "https://api.dexscreener.com/latest/dex"
_BIRDEYE_BASE_URL = "https://public-api.birdeye.so"

_TAVILY_RESULTS_PER_QUERY = 3
_TAVILY_MAX_RESULTS = 8
_TOP_N = 5

# ---------------------------------------------------------------------------
# Stop-words for keyword extraction from the idea text.
# ---------------------------------------------------------------------------
_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "be", "been",
        "this", "that", "it", "its", "we", "our", "they", "their", "my", "me",
        "i", "you", "your", "us", "them", "do", "does", "has", "have", "had",
        "not", "no", "so", "very", "just", "also", "about", "into", "over",
        "such", "than", "then", "each", "every", "all", "both", "more",
        "most", "some", "any", "other", "what", "which", "who", "how",
        "where", "when", "will", "can", "would", "could", "should", "if",
        "up", "out", "get", "like", "want", "need", "use", "using", "one",
        "new", "best", "top", "app", "platform", "users", "user", "based",
        "token", "coin", "crypto", "build", "launch", "lets", "let", "make",
    }
)

# Idea keywords → DeFiLlama protocol categories.
_DEFI_BUCKETS: dict[str, tuple[str, ...]] = {
    "lending": ("lend", "borrow", "loan", "money market", "credit"),
    "dex": ("dex", "swap", "amm", "exchange", "liquidity pool"),
    "staking": ("stake", "staking", "validator", "restak"),
    "derivatives": ("perp", "option", "derivative", "futures", "leverage"),
    "yield": ("yield", "vault", "farm", "auto-compound", "autocompound"),
}

_DEFILLAMA_CATEGORIES: dict[str, tuple[str, ...]] = {
    "lending": ("Lending", "CDP"),
    "dex": ("Dexes", "DEX Aggregator"),
    "staking": ("Liquid Staking", "Staking", "Restaking"),
    "derivatives": ("Derivatives", "Options", "Perpetuals"),
    "yield": ("Yield", "Yield Aggregator", "Farm"),
}


# ===================================================================== #
#  Shared types and helpers                                               #
# ===================================================================== #

@dataclass(frozen=True)
class ProviderContext:
    """Request fields an adapter may use to shape its query."""

    idea_description: str
    category: str
    idea_scope: str = ""
    token_address: Optional[str] = None


@dataclass
class ProviderResult:
    provider_kind: ProviderKind
    items: List[EvidenceDraft] = field(default_factory=list)
    ok: bool = True
    error: Optional[str] = None


def extract_keywords(text: str, limit: int = 3) -> List[str]:
    """Lowercase alpha tokens (≥ 3 chars) minus stop-words, in order of appearance."""
    seen: List[str] = []
    for token in re.split(r"[^a-zA-Z]+", (text or "").lower()):
        if len(token) < 3 or token in _STOP_WORDS or token in seen:
            continue
        seen.append(token)
        if len(seen) >= limit:
            break
    return seen


def infer_defi_bucket(description: str) -> Optional[str]:
    """Map the idea text to a DeFi bucket (lending, dex, ...) or ``None``."""
    text = (description or "").lower()
    for bucket, needles in _DEFI_BUCKETS.items():
        if any(needle in text for needle in needles):
            return bucket
    return None


def format_usd(value: Any) -> str:
    """Compact USD display string, e.g. ``$1.2M``. ``n/a`` for non-numbers."""
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return "n/a"
    if amount >= 1_000_000_000:
        return f"${amount / 1_000_000_000:.1f}B"
    if amount >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if amount >= 1_000:
        return f"${amount / 1_000:.1f}K"
    return f"${amount:.0f}"


def generate_competitor_queries(description: str, category: str) -> List[str]:
    """Two web-search queries for competitor discovery."""
    year = datetime.now().year
    short = (description or "")[:100].lower()
    keywords = extract_keywords(description, limit=2)
    queries: List[str] = []

    if category == NARRATIVE_ASSET:
        queries.append(f"top memecoin projects Solana {year}")
        if any(w in short for w in ("dog", "cat", "frog", "animal")):
            queries.append("animal themed memecoins Solana")
        elif "agent" in short or re.search(r"\bai\b", short):
            queries.append("AI agent memecoins crypto")
        elif keywords:
            queries.append(f"{' '.join(keywords)} memecoin narrative")
        else:
            queries.append("trending memecoins Solana this week")

    elif category == PROTOCOL_LIQUIDITY:
        queries.append(f"Solana DeFi protocols competitors {year}")
        bucket = infer_defi_bucket(description)
        if bucket == "lending":
            queries.append("Solana lending protocols Kamino Marginfi")
        elif bucket == "dex":
            queries.append("Solana DEX aggregators Jupiter Raydium")
        elif bucket == "yield":
            queries.append("Solana yield vaults protocols")
        elif bucket:
            queries.append(f"Solana {bucket} protocols TVL")
        else:
            queries.append("top DeFi projects Solana TVL")

    elif category == AGENT_SOFTWARE:
        queries.append(f"AI crypto projects {year} competitors")
        if "agent" in short:
            queries.append("AI agent frameworks crypto web3")
        elif "data" in short or "oracle" in short:
            queries.append("AI data oracles blockchain")
        elif keywords:
            queries.append(f"{' '.join(keywords)} AI startups")
        else:
            queries.append("top AI tokens crypto market")

    else:
        queries.append(f"{category} crypto projects {year}")

    return queries


# ===================================================================== #
#  Abstract interface                                                     #
# ===================================================================== #

class EvidenceProvider(abc.ABC):
    """Interface that every evidence source must implement."""

    provider_kind: ProviderKind
    service: str = ""

    def __init__(
        self,
        config: EngineConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config
        self._http = client
        self._timeout = config.provider_timeout_s

    async def fetch(self, query: str, context: ProviderContext) -> ProviderResult:
        """Run the adapter under its own timeout. Never raises."""
        kind = self.provider_kind.value
        try:
            drafts = await asyncio.wait_for(
                self._fetch(query, context), timeout=self._timeout
            )
        except asyncio.TimeoutError:
            logger.warning("[%s] Timeout after %.1fs", kind, self._timeout)
            return self._failure(f"timeout after {self._timeout:.1f}s")
        except ProviderNotConfigured as exc:
            logger.info("[%s] Not configured: %s", kind, exc)
            return self._failure(str(exc))
        except ProviderUnavailable as exc:
            logger.warning("[%s] Unavailable: %s", kind, exc)
            return self._failure(str(exc))
        except httpx.HTTPError as exc:
            logger.warning("[%s] Transport error: %s", kind, exc)
            return self._failure(f"transport error: {exc}")
        except Exception as exc:
            logger.warning("[%s] Unexpected error: %s", kind, exc)
            return self._failure(f"unexpected error: {exc}")

        logger.info("[%s] %d evidence items", kind, len(drafts))
        return ProviderResult(provider_kind=self.provider_kind, items=list(drafts), ok=True)

    @abc.abstractmethod
    async def _fetch(self, query: str, context: ProviderContext) -> List[EvidenceDraft]:
        ...

    # ------------------------------------------------------------------ #
    #  Internal helpers                                                    #
    # ------------------------------------------------------------------ #

    def _failure(self, error: str) -> ProviderResult:
        return ProviderResult(provider_kind=self.provider_kind, items=[], ok=False, error=error)

    async def _client(self) -> httpx.AsyncClient:
        if self._http is not None:
            return self._http
        return await get_client()

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        client = await self._client()
        response = await client.get(url, timeout=get_timeout(self.service, self._timeout), **kwargs)
        return self._decode(response)

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        client = await self._client()
        response = await client.post(url, json=payload, timeout=get_timeout(self.service, self._timeout))
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        if response.status_code != 200:
            raise ProviderUnavailable(f"HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailable(f"invalid JSON payload: {exc}") from exc


# ===================================================================== #
#  WebSearch: Tavily                                                      #
# ===================================================================== #

class TavilySearchProvider(EvidenceProvider):
    """Competitor web results via Tavily search."""

    provider_kind = ProviderKind.WEB_SEARCH
    service = "tavily"

    async def _fetch(self, query: str, context: ProviderContext) -> List[EvidenceDraft]:
        api_key = self._config.tavily_api_key
        if not api_key:
            raise ProviderNotConfigured("TAVILY_API_KEY not set")

        queries = generate_competitor_queries(query, context.category)
        responses = await asyncio.gather(
            *[
                self._post_json(
                    _TAVILY_API_URL,
                    {
                        "api_key": api_key,
                        "query": q,
                        "max_results": _TAVILY_RESULTS_PER_QUERY,
                        "search_depth": "basic",
                    },
                )
                for q in queries
            ],
            return_exceptions=True,
        )

        failures = [r for r in responses if isinstance(r, BaseException)]
        if failures and len(failures) == len(responses):
            raise failures[0]

        drafts: List[EvidenceDraft] = []
        seen_urls: set[str] = set()
        for data in responses:
            if isinstance(data, BaseException) or not isinstance(data, dict):
                continue
            for result in data.get("results") or []:
                url = result.get("url") or ""
                if not url or url in seen_urls:
                    continue
                seen_urls.add(url)
                drafts.append(
                    EvidenceDraft(
                        title=result.get("title") or url,
                        snippet=result.get("content") or "",
                        url=url,
                    )
                )
        return drafts[:_TAVILY_MAX_RESULTS]


# ===================================================================== #
#  ProtocolTVL: DeFiLlama                                                 #
# ===================================================================== #

class DefiLlamaProtocolProvider(EvidenceProvider):
    """Top protocols by TVL in the idea's DeFi bucket. No API key needed."""

    provider_kind = ProviderKind.PROTOCOL_TVL
    service = "defillama"

    async def _fetch(self, query: str, context: ProviderContext) -> List[EvidenceDraft]:
        data = await self._get_json(f"{_DEFILLAMA_BASE_URL}/protocols")
        if not isinstance(data, list):
            raise ProviderUnavailable("unexpected /protocols payload")

        bucket = infer_defi_bucket(query)
        wanted = {c.lower() for c in _DEFILLAMA_CATEGORIES.get(bucket or "", ())}

        protocols = []
        for p in data:
            if not isinstance(p, dict) or not p.get("name"):
                continue
            category = str(p.get("category") or "Unknown")
            if wanted and category.lower() not in wanted:
                continue
            try:
                tvl = float(p.get("tvl") or 0)
            except (TypeError, ValueError):
                tvl = 0.0
            protocols.append((tvl, category, p))

        protocols.sort(key=lambda row: row[0], reverse=True)

        drafts: List[EvidenceDraft] = []
        for tvl, category, p in protocols[:_TOP_N]:
            name = p["name"]
            chain = p.get("chain") or (p.get("chains") or ["Multi-chain"])[0]
            change_7d = p.get("change_7d")
            change_txt = f"{change_7d:+.1f}%" if isinstance(change_7d, (int, float)) else "n/a"
            drafts.append(
                EvidenceDraft(
                    title=f"{name}: TVL {format_usd(tvl)} ({category}, {chain})",
                    snippet=(
                        f"{name} is a {category} protocol on {chain} holding "
                        f"{format_usd(tvl)} in TVL; 7d change {change_txt}."
                    ),
                    url=f"https://defillama.com/protocol/{p.get('slug') or name.lower()}",
                )
            )
        return drafts


# ===================================================================== #
#  OnChainLiquidity: DexScreener                                          #
# ===================================================================== #

class DexScreenerLiquidityProvider(EvidenceProvider):
    """Trading pairs matching the idea's narrative keyword. No API key needed."""

    provider_kind = ProviderKind.ON_CHAIN_LIQUIDITY
    service = "dexscreener"

    async def _fetch(self, query: str, context: ProviderContext) -> List[EvidenceDraft]:
        keywords = extract_keywords(query, limit=1)
        if not keywords:
            raise ProviderUnavailable("no searchable keyword in idea text")

        data = await self._get_json(
            f"{_DEXSCREENER_BASE_URL}/search",
            params={"q": keywords[0]},
            headers={"Accept": "application/json"},
        )
        pairs = [p for p in (data or {}).get("pairs") or [] if isinstance(p, dict)]

        def _liquidity(pair: Dict[str, Any]) -> float:
            try:
                return float((pair.get("liquidity") or {}).get("usd") or 0)
            except (TypeError, ValueError):
                return 0.0

        pairs.sort(key=_liquidity, reverse=True)

        drafts: List[EvidenceDraft] = []
        for pair in pairs[:_TOP_N]:
            base = pair.get("baseToken") or {}
            name = base.get("name") or "Unknown"
            symbol = base.get("symbol") or "?"
            volume = (pair.get("volume") or {}).get("h24")
            drafts.append(
                EvidenceDraft(
                    title=f"{name} (${symbol}) on {pair.get('dexId', 'dex')}: liquidity {format_usd(_liquidity(pair))}",
                    snippet=(
                        f"{name} trades on {pair.get('chainId', 'unknown chain')} with "
                        f"{format_usd(_liquidity(pair))} liquidity, market cap "
                        f"{format_usd(pair.get('marketCap'))} and 24h volume {format_usd(volume)}."
                    ),
                    url=pair.get("url"),
                )
            )
        return drafts


# ===================================================================== #
#  TokenMarketData / TokenSecurity: Birdeye                               #
# ===================================================================== #

class _BirdeyeProvider(EvidenceProvider):
    service = "birdeye"

    async def _birdeye(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        api_key = self._config.birdeye_api_key
        if not api_key:
            raise ProviderNotConfigured("BIRDEYE_API_KEY not set")
        data = await self._get_json(
            f"{_BIRDEYE_BASE_URL}{endpoint}",
            params=params,
            headers={"accept": "application/json", "X-API-KEY": api_key, "x-chain": "solana"},
        )
        if not isinstance(data, dict) or not data.get("success", True):
            raise ProviderUnavailable(f"Birdeye {endpoint} returned no data")
        return data.get("data") or {}


class BirdeyeMarketProvider(_BirdeyeProvider):
    """Currently trending tokens, as a crowdedness signal for narratives."""

    provider_kind = ProviderKind.TOKEN_MARKET_DATA

    async def _fetch(self, query: str, context: ProviderContext) -> List[EvidenceDraft]:
        data = await self._birdeye(
            "/defi/token_trending",
            {"sort_by": "rank", "sort_type": "asc", "offset": 0, "limit": _TOP_N},
        )
        drafts: List[EvidenceDraft] = []
        for token in (data.get("tokens") or [])[:_TOP_N]:
            name = token.get("name") or "Unknown"
            symbol = token.get("symbol") or "?"
            drafts.append(
                EvidenceDraft(
                    title=f"Trending #{token.get('rank', '?')}: {name} (${symbol})",
                    snippet=(
                        f"{name} has {format_usd(token.get('liquidity'))} liquidity and "
                        f"{format_usd(token.get('volume24hUSD'))} 24h volume on Solana."
                    ),
                    url=f"https://birdeye.so/token/{token['address']}" if token.get("address") else None,
                )
            )
        return drafts


class BirdeyeSecurityProvider(_BirdeyeProvider):
    """Risk flags for the token address supplied with the request."""

    provider_kind = ProviderKind.TOKEN_SECURITY

    async def _fetch(self, query: str, context: ProviderContext) -> List[EvidenceDraft]:
        address = (context.token_address or "").strip()
        if not address:
            raise ProviderNotConfigured("no token address supplied")

        data = await self._birdeye("/defi/token_security", {"address": address})
        if not data:
            return []

        facts: List[str] = []
        top10 = data.get("top10HolderPercent", data.get("top10HolderPercentage"))
        if isinstance(top10, (int, float)):
            pct = top10 * 100 if top10 <= 1 else top10
            facts.append(f"top-10 holders own {pct:.1f}%")
        locked = data.get("isLiquidityLocked")
        if isinstance(locked, bool):
            facts.append("liquidity locked" if locked else "liquidity not locked")
        if data.get("freezeable") is not None:
            facts.append("freeze authority active" if data.get("freezeable") else "no freeze authority")
        if data.get("mutableMetadata") is not None:
            facts.append("metadata mutable" if data.get("mutableMetadata") else "metadata immutable")

        short = f"{address[:4]}...{address[-4:]}" if len(address) > 10 else address
        return [
            EvidenceDraft(
                title=f"Token security check for {short}",
                snippet="; ".join(facts) or "security data returned without recognised fields",
                url=f"https://birdeye.so/token/{address}",
            )
        ]


# ===================================================================== #
#  Provider factory                                                       #
# ===================================================================== #

def build_default_providers(
    config: EngineConfig,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[ProviderKind, EvidenceProvider]:
    """Return one adapter per provider kind, all sharing *config*."""
    providers: List[EvidenceProvider] = [
        TavilySearchProvider(config, client),
        DefiLlamaProtocolProvider(config, client),
        DexScreenerLiquidityProvider(config, client),
        BirdeyeMarketProvider(config, client),
        BirdeyeSecurityProvider(config, client),
    ]
    return {p.provider_kind: p for p in providers}
