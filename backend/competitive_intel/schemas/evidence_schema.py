"""Evidence models.

An ``EvidenceItem`` is one atomic fact fetched from one provider; an
``EvidencePack`` is the frozen set of items for a single request and the
only source of truth for which evidence ids are real.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProviderKind(str, Enum):
    WEB_SEARCH = "WebSearch"
    PROTOCOL_TVL = "ProtocolTVL"
    ON_CHAIN_LIQUIDITY = "OnChainLiquidity"
    TOKEN_MARKET_DATA = "TokenMarketData"
    TOKEN_SECURITY = "TokenSecurity"
    SYSTEM = "System"


class ReliabilityTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EvidenceDraft(BaseModel):
    """Raw evidence as returned by a provider, before ids are assigned."""

    title: str
    snippet: str = ""
    url: Optional[str] = None


class EvidenceItem(CamelModel):
    """One fact from one provider. Built only by the Evidence Collector."""

    model_config = ConfigDict(frozen=True)

    id: str
    provider_kind: ProviderKind
    title: str
    snippet: str
    url: Optional[str] = None
    fetched_at: datetime
    reliability_tier: ReliabilityTier


class EvidencePack(CamelModel):
    """Immutable evidence for one request."""

    model_config = ConfigDict(frozen=True)

    evidence: tuple[EvidenceItem, ...] = ()
    unavailable_sources: tuple[ProviderKind, ...] = ()
    generated_at: datetime = Field(default_factory=utc_now)

    def ids(self) -> set[str]:
        return {item.id for item in self.evidence}

    def get(self, evidence_id: str) -> Optional[EvidenceItem]:
        for item in self.evidence:
            if item.id == evidence_id:
                return item
        return None
