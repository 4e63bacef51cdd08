"""Request and result envelopes for the engine and the HTTP route."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from .evidence_schema import CamelModel, EvidencePack, ProviderKind
from .memo_schema import CompetitiveMemo


class IntelRequest(CamelModel):
    """Request body for the competitive intelligence endpoint."""

    idea_description: str = Field(
        ...,
        min_length=1,
        description="Free-text description of the product idea.",
        examples=["A lending vault on Solana that auto-rotates between money markets"],
    )
    idea_scope: str = Field("", description="Stated MVP scope.")
    idea_success_metric: str = Field("", description="How the founder defines success.")
    idea_target_metric: Optional[str] = Field(None, description="Optional numeric target.")
    category: str = Field(..., description="One of the supported categories.")
    token_address: Optional[str] = Field(
        None,
        description="Optional token mint address for the token security check.",
    )


class Provenance(CamelModel):
    category: str
    evidence_count: int = Field(..., ge=0)
    unavailable_sources: list[ProviderKind] = Field(default_factory=list)
    evidence_coverage: float = Field(0.0, ge=0.0, le=1.0)
    generated_at: datetime
    valid_until: datetime


class IntelResultOk(CamelModel):
    status: Literal["ok"] = "ok"
    memo: CompetitiveMemo
    evidence_pack: EvidencePack
    provenance: Provenance


class IntelResultNotAvailable(CamelModel):
    status: Literal["not_available"] = "not_available"
    reason: str


IntelResult = Annotated[
    Union[IntelResultOk, IntelResultNotAvailable],
    Field(discriminator="status"),
]
