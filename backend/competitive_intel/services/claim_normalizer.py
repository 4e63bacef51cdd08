"""Claim Normalizer / Grounding Validator.

Reconciles the model's claims with the evidence pack it was actually given.

CORE PRINCIPLES:
- An evidence id counts only if it exists in the pack; anything else is
  dropped silently, whatever the model says.
- ``support`` is derived: corroborated iff at least one valid id remains.
- Reference projects with real metrics but no matching claim get a
  backfilled fact claim.
- The output is never empty, never longer than the cap, never duplicated.

Pipeline (order matters):
  1. filter and rewrite raw claims
  2. backfill claims for under-cited reference projects
  3. fallback claim if nothing is left
  4. de-duplicate on lower-cased trimmed text (first wins)
  5. bound to ``max_claims``
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, List, Optional, Sequence

from ..constants import (
    BACKFILL_EVIDENCE_CAP,
    CLAIM_TEXT_MAX_CHARS,
    DEFAULT_MAX_CLAIMS,
    FALLBACK_CLAIM_TEXT,
)
from ..schemas.evidence_schema import EvidencePack
from ..schemas.memo_schema import Claim, ClaimSupport, ClaimType, ReferenceProject

# (project, claims) -> already mentioned?
ProjectMentionMatcher = Callable[[ReferenceProject, Sequence[Claim]], bool]

_METRIC_LABELS = {
    "market_cap": "market cap",
    "tvl": "TVL",
    "daily_users": "daily users",
    "funding": "funding",
    "revenue": "revenue",
}


# ===================================================================== #
#  Mention matchers                                                       #
# ===================================================================== #

def substring_mention_matcher(project: ReferenceProject, claims: Sequence[Claim]) -> bool:
    """Case-insensitive substring match of the project name in any claim text."""
    name = project.name.strip().lower()
    if not name:
        return False
    return any(name in claim.text.lower() for claim in claims)


def token_boundary_mention_matcher(project: ReferenceProject, claims: Sequence[Claim]) -> bool:
    """Like the substring matcher, but the name must stand as whole tokens.

    "Aave" does not match "Aavegotchi".
    """
    name = project.name.strip()
    if not name:
        return False
    pattern = re.compile(rf"(?<![\w]){re.escape(name)}(?![\w])", re.IGNORECASE)
    return any(pattern.search(claim.text) for claim in claims)


MENTION_MATCHERS: dict[str, ProjectMentionMatcher] = {
    "substring": substring_mention_matcher,
    "token": token_boundary_mention_matcher,
}


def get_mention_matcher(name: Optional[str]) -> ProjectMentionMatcher:
    return MENTION_MATCHERS.get((name or "").strip().lower(), substring_mention_matcher)


# ===================================================================== #
#  Helpers                                                                #
# ===================================================================== #

def _clip(text: str, limit: int = CLAIM_TEXT_MAX_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _dedupe_key(text: str) -> str:
    return text.strip().lower()


def _make_claim(text: str, claim_type: ClaimType, evidence_ids: List[str]) -> Claim:
    return Claim(
        text=_clip(text.strip()),
        claim_type=claim_type,
        evidence_ids=evidence_ids,
        support=ClaimSupport.CORROBORATED if evidence_ids else ClaimSupport.UNCORROBORATED,
    )


def filter_evidence_ids(raw_ids: Any, valid_ids: set[str]) -> List[str]:
    """Keep only ids present in the pack, in the model's order, without repeats."""
    if isinstance(raw_ids, str):
        raw_ids = [raw_ids]
    if not isinstance(raw_ids, (list, tuple)):
        return []
    kept: List[str] = []
    for raw_id in raw_ids:
        if not isinstance(raw_id, str):
            continue
        evidence_id = raw_id.strip()
        if evidence_id in valid_ids and evidence_id not in kept:
            kept.append(evidence_id)
    return kept


def _rewrite_claim(raw: Any, valid_ids: set[str]) -> Optional[Claim]:
    if not isinstance(raw, dict):
        return None
    text = raw.get("text")
    if not isinstance(text, str) or not text.strip():
        return None
    claim_type = (
        ClaimType.FACT
        if str(raw.get("claimType", "")).strip().lower() == ClaimType.FACT.value
        else ClaimType.INFERENCE
    )
    evidence_ids = filter_evidence_ids(raw.get("evidenceIds"), valid_ids)
    return _make_claim(text, claim_type, evidence_ids)


def find_supporting_evidence(
    project: ReferenceProject,
    pack: EvidencePack,
    cap: int = BACKFILL_EVIDENCE_CAP,
) -> List[str]:
    """Evidence ids whose title or snippet mentions the project name."""
    name = project.name.strip().lower()
    if not name:
        return []
    matches: List[str] = []
    for item in pack.evidence:
        if name in item.title.lower() or name in item.snippet.lower():
            matches.append(item.id)
            if len(matches) >= cap:
                break
    return matches


def backfill_claim_text(project: ReferenceProject) -> str:
    metrics = project.metrics.real_values() if project.metrics else {}
    parts = [f"{_METRIC_LABELS.get(k, k)} {v}" for k, v in metrics.items()]
    where = f" ({project.platform})" if project.platform else ""
    return f"{project.name}{where} reports {', '.join(parts)}."


# ===================================================================== #
#  Public entry points                                                    #
# ===================================================================== #

def normalize_claims(
    raw_claims: Any,
    pack: EvidencePack,
    reference_projects: Iterable[ReferenceProject] = (),
    *,
    mention_matcher: ProjectMentionMatcher = substring_mention_matcher,
    max_claims: int = DEFAULT_MAX_CLAIMS,
) -> List[Claim]:
    """Return the final, grounded, bounded claim list."""
    valid_ids = pack.ids()
    claims: List[Claim] = []

    # 1. Filter and rewrite
    if isinstance(raw_claims, list):
        for raw in raw_claims:
            claim = _rewrite_claim(raw, valid_ids)
            if claim is not None:
                claims.append(claim)

    # 2. Backfill under-cited reference projects
    for project in reference_projects or ():
        if not project.has_real_metric():
            continue
        if mention_matcher(project, claims):
            continue
        claims.append(
            _make_claim(
                backfill_claim_text(project),
                ClaimType.FACT,
                find_supporting_evidence(project, pack),
            )
        )

    # 3. Never empty
    if not claims:
        claims.append(_make_claim(FALLBACK_CLAIM_TEXT, ClaimType.INFERENCE, []))

    # 4. De-duplicate
    seen: set[str] = set()
    unique: List[Claim] = []
    for claim in claims:
        key = _dedupe_key(claim.text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(claim)

    # 5. Bound
    return unique[: max(max_claims, 1)]


def compute_evidence_coverage(claims: Sequence[Claim]) -> float:
    """Share of fact claims that are corroborated (0 when there are no facts)."""
    facts = [c for c in claims if c.claim_type == ClaimType.FACT]
    if not facts:
        return 0.0
    corroborated = [c for c in facts if c.evidence_ids]
    return round(len(corroborated) / len(facts), 2)
