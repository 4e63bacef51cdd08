"""Competitive memo models.

``Claim.support`` is never taken from the model: the Claim Normalizer
derives it from the evidence ids that survive filtering against the pack.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from ..constants import METRIC_SENTINELS
from .evidence_schema import CamelModel


class ClaimType(str, Enum):
    FACT = "fact"
    INFERENCE = "inference"


class ClaimSupport(str, Enum):
    CORROBORATED = "corroborated"
    UNCORROBORATED = "uncorroborated"


class Claim(CamelModel):
    """One assertion in the memo."""

    text: str = Field(..., max_length=220)
    claim_type: ClaimType = ClaimType.INFERENCE
    evidence_ids: list[str] = Field(default_factory=list)
    support: ClaimSupport = ClaimSupport.UNCORROBORATED


class ReferenceMetrics(CamelModel):
    """Display-string metrics for a reference project."""

    market_cap: Optional[str] = None
    tvl: Optional[str] = None
    daily_users: Optional[str] = None
    funding: Optional[str] = None
    revenue: Optional[str] = None

    def real_values(self) -> dict[str, str]:
        """Metrics that are present and not a sentinel such as ``"N/A"``."""
        real: dict[str, str] = {}
        for name, value in self.model_dump().items():
            if value is None:
                continue
            text = str(value).strip()
            if text.lower() in METRIC_SENTINELS:
                continue
            real[name] = text
        return real


class ReferenceProject(CamelModel):
    """A competitor the model compared the idea against."""

    name: str
    platform: str = Field("", alias="chainOrPlatform")
    note: str = ""
    metrics: Optional[ReferenceMetrics] = None

    def has_real_metric(self) -> bool:
        return bool(self.metrics and self.metrics.real_values())


class Verdict(CamelModel):
    """A label with its explanation (traction difficulty, differentiation)."""

    label: str = ""
    explanation: str = ""


class NarrativeSection(CamelModel):
    narrative_label: str = ""
    narrative_crowdedness: str = ""


class ProtocolSection(CamelModel):
    bucket: str = ""
    category_kings: list[str] = Field(default_factory=list)


class AgentSection(CamelModel):
    pattern: str = ""
    moat_type: str = ""


class CompetitiveMemo(CamelModel):
    """The validated competitive assessment.

    Expected label values (not enforced, the model's wording is kept):
      - crowdedness_level: empty | moderate | high | saturated
      - traction_difficulty.label: low | medium | high | extreme
      - differentiation_window.label: wide_open | narrow | closed
      - noise_vs_signal: mostly_noise | mixed | high_signal
    """

    category_label: str
    crowdedness_level: str
    short_landscape_summary: str = ""
    reference_projects: list[ReferenceProject] = Field(default_factory=list)
    traction_difficulty: Verdict = Field(default_factory=Verdict)
    differentiation_window: Verdict = Field(default_factory=Verdict)
    noise_vs_signal: str = ""
    evaluator_notes: str = ""
    claims: list[Claim] = Field(default_factory=list)
    timestamp: str = ""

    # Category-specific sections; at most one is populated.
    narrative: Optional[NarrativeSection] = None
    protocol: Optional[ProtocolSection] = None
    agent: Optional[AgentSection] = None
