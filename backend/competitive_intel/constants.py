"""Centralized constants shared across the engine.

This module is the SINGLE SOURCE OF TRUTH for the category allow-list,
provider routing, reliability tiers and the size limits that keep prompts
and results bounded. Reused by:
  - Category Router
  - Evidence Collector
  - Claim Normalizer
  - Result Assembler
"""

from __future__ import annotations

# ── Supported categories ────────────────────────────────────────────────
# Explicit allow-list. Anything else short-circuits the pipeline.

NARRATIVE_ASSET = "narrative-asset"
PROTOCOL_LIQUIDITY = "protocol-liquidity"
AGENT_SOFTWARE = "agent-software"

SUPPORTED_CATEGORIES: list[str] = [
    NARRATIVE_ASSET,
    PROTOCOL_LIQUIDITY,
    AGENT_SOFTWARE,
]

# Legacy category names accepted by the product form.
CATEGORY_ALIASES: dict[str, str] = {
    "memecoin": NARRATIVE_ASSET,
    "defi": PROTOCOL_LIQUIDITY,
    "ai": AGENT_SOFTWARE,
}

# ── Provider kinds ──────────────────────────────────────────────────────

WEB_SEARCH = "WebSearch"
PROTOCOL_TVL = "ProtocolTVL"
ON_CHAIN_LIQUIDITY = "OnChainLiquidity"
TOKEN_MARKET_DATA = "TokenMarketData"
TOKEN_SECURITY = "TokenSecurity"
SYSTEM = "System"

# Evidence id prefix per provider kind: ``{prefix}_{sequence}``.
EVIDENCE_ID_PREFIXES: dict[str, str] = {
    WEB_SEARCH: "web",
    PROTOCOL_TVL: "tvl",
    ON_CHAIN_LIQUIDITY: "liq",
    TOKEN_MARKET_DATA: "mkt",
    TOKEN_SECURITY: "sec",
    SYSTEM: "sys",
}

# Static reliability weight. LOCKED: never assigned by an adapter.
RELIABILITY_TIERS: dict[str, str] = {
    PROTOCOL_TVL: "high",        # aggregator data
    ON_CHAIN_LIQUIDITY: "high",  # on-chain pairs
    TOKEN_MARKET_DATA: "high",
    TOKEN_SECURITY: "high",
    WEB_SEARCH: "medium",        # freeform web results
    SYSTEM: "low",               # system-generated filler
}

# Ordered provider kinds per category.
CATEGORY_PROVIDERS: dict[str, list[str]] = {
    NARRATIVE_ASSET: [WEB_SEARCH, ON_CHAIN_LIQUIDITY, TOKEN_MARKET_DATA, TOKEN_SECURITY],
    PROTOCOL_LIQUIDITY: [WEB_SEARCH, PROTOCOL_TVL, ON_CHAIN_LIQUIDITY],
    AGENT_SOFTWARE: [WEB_SEARCH],
}

# ── Size limits ─────────────────────────────────────────────────────────

TITLE_MAX_CHARS: int = 120
SNIPPET_MAX_CHARS: int = 280
CLAIM_TEXT_MAX_CHARS: int = 220

DEFAULT_MAX_EVIDENCE_HINTS: int = 40
DEFAULT_MAX_CLAIMS: int = 12
BACKFILL_EVIDENCE_CAP: int = 3

DEFAULT_RESULT_VALIDITY_HOURS: float = 72.0

# Values that do not count as a real reference-project metric.
METRIC_SENTINELS: frozenset[str] = frozenset({"", "-", "n/a", "unknown"})

FALLBACK_CLAIM_TEXT = (
    "Competitive positioning is uncertain due to limited grounded evidence."
)

# ── Failure reason codes ────────────────────────────────────────────────

REASON_EMPTY_RESPONSE = "empty_llm_response"
REASON_INVALID_PAYLOAD = "invalid_llm_payload"
REASON_INVALID_SCHEMA = "invalid_schema_returned"
REASON_INTERNAL_ERROR = "internal_error"

# Top-level keys the model must return.
REQUIRED_MEMO_KEYS: list[str] = [
    "categoryLabel",
    "crowdednessLevel",
    "referenceProjects",
]
