"""Result Assembler.

Packages the validated memo, the evidence pack and provenance into the only
two shapes callers ever see: ``IntelResultOk`` and
``IntelResultNotAvailable``.  Also renders a compact grounding brief of a
result for downstream prompts.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import List, Optional, Union

from ..constants import DEFAULT_RESULT_VALIDITY_HOURS
from ..schemas.evidence_schema import EvidencePack, utc_now
from ..schemas.intel_schema import IntelResultNotAvailable, IntelResultOk, Provenance
from ..schemas.memo_schema import CompetitiveMemo
from .claim_normalizer import compute_evidence_coverage

_DEFAULT_BRIEF_TOKEN_BUDGET = 800


def build_ok(
    memo: CompetitiveMemo,
    pack: EvidencePack,
    category: str,
    validity_hours: float = DEFAULT_RESULT_VALIDITY_HOURS,
    now: Optional[datetime] = None,
) -> IntelResultOk:
    generated_at = now or utc_now()
    provenance = Provenance(
        category=category,
        evidence_count=len(pack.evidence),
        unavailable_sources=list(pack.unavailable_sources),
        evidence_coverage=compute_evidence_coverage(memo.claims),
        generated_at=generated_at,
        valid_until=generated_at + timedelta(hours=validity_hours),
    )
    return IntelResultOk(memo=memo, evidence_pack=pack, provenance=provenance)


def build_not_available(reason: str) -> IntelResultNotAvailable:
    return IntelResultNotAvailable(reason=reason)


def is_stale(
    result: Union[IntelResultOk, IntelResultNotAvailable],
    now: Optional[datetime] = None,
) -> bool:
    """True once an ok result is past ``valid_until``. Failures are always stale."""
    if not isinstance(result, IntelResultOk):
        return True
    return (now or utc_now()) >= result.provenance.valid_until


# ---------------------------------------------------------------------------
# Grounding brief
# ---------------------------------------------------------------------------
def estimate_prompt_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def _fit_to_token_budget(text: str, max_tokens: int) -> str:
    if estimate_prompt_tokens(text) <= max_tokens:
        return text
    max_chars = max(80, max_tokens * 4 - 64)
    return text[:max_chars].rstrip() + "\n...[truncated to fit prompt token budget]"


def format_grounding_brief(
    result: Optional[Union[IntelResultOk, IntelResultNotAvailable]],
    max_tokens: int = _DEFAULT_BRIEF_TOKEN_BUDGET,
    now: Optional[datetime] = None,
) -> str:
    """Decision-relevant text summary of a result, capped to *max_tokens*."""
    lines: List[str] = []
    if not isinstance(result, IntelResultOk):
        lines.append("[COMPETITIVE_MEMO] source=unknown | freshness=unknown")
        lines.append("- status: not_available")
        if isinstance(result, IntelResultNotAvailable):
            lines.append(f"- reason: {result.reason}")
        return _fit_to_token_budget("\n".join(lines), max_tokens)

    current = now or utc_now()
    provenance = result.provenance
    age_hours = (current - provenance.generated_at).total_seconds() / 3600
    ttl_hours = (provenance.valid_until - provenance.generated_at).total_seconds() / 3600
    tag = "STALE" if is_stale(result, current) else "FRESH"
    lines.append(
        f"[COMPETITIVE_MEMO] source=competitive_intel | {tag} | "
        f"age={round(age_hours)}h | ttl={round(ttl_hours)}h"
    )

    memo = result.memo
    names = [p.name for p in memo.reference_projects[:5]]
    lines.append(f"- categoryLabel: {memo.category_label}")
    lines.append(f"- crowdednessLevel: {memo.crowdedness_level}")
    lines.append(f"- shortLandscapeSummary: {memo.short_landscape_summary}")
    lines.append(f"- referenceProjects: {', '.join(names) or 'none'}")
    lines.append(f"- evidenceCount: {provenance.evidence_count}")
    lines.append(f"- evidenceCoverage: {provenance.evidence_coverage:.2f}")
    lines.append(
        "- unavailableSources: "
        + (", ".join(s.value for s in provenance.unavailable_sources) or "none")
    )
    return _fit_to_token_budget("\n".join(lines), max_tokens)
