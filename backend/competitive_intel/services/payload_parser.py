"""Response Parser & Schema Validator.

Turns the model's raw text into a tagged result right at the boundary:
``ParsedMemo`` when the required shape is present, ``ParseFailure`` with a
reason code otherwise.  The required fields are a binary gate; only the
optional fields are coerced leniently.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..constants import (
    REASON_EMPTY_RESPONSE,
    REASON_INVALID_PAYLOAD,
    REASON_INVALID_SCHEMA,
    REQUIRED_MEMO_KEYS,
)
from ..schemas.memo_schema import (
    AgentSection,
    CompetitiveMemo,
    NarrativeSection,
    ProtocolSection,
    ReferenceMetrics,
    ReferenceProject,
    Verdict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedMemo:
    memo: CompetitiveMemo
    raw_claims: List[Any] = field(default_factory=list)


@dataclass(frozen=True)
class ParseFailure:
    reason: str


ParseResult = Union[ParsedMemo, ParseFailure]


# ---------------------------------------------------------------------------
# JSON sanitizer
# ---------------------------------------------------------------------------
def sanitize_json(raw: str) -> str:
    """Extract a JSON object from raw LLM output.

    Handles:
      - Markdown fences (```json ... ```)
      - Leading/trailing whitespace and BOM
      - Prose before/after the object

    Raises ValueError if no JSON object is found.
    """
    text = raw.strip().lstrip("\ufeff")

    if text.startswith("```"):
        parts = text.split("```")
        text = parts[1] if len(parts) >= 3 else text[3:]

    text = text.strip()
    if text.lower().startswith("json"):
        text = text[4:].strip()

    brace_idx = text.find("{")
    if brace_idx == -1:
        raise ValueError("no '{' found")
    rbrace_idx = text.rfind("}")
    if rbrace_idx < brace_idx:
        raise ValueError("no closing '}' found")
    return text[brace_idx: rbrace_idx + 1]


def validate_required_keys(parsed: Dict[str, Any], required_keys: List[str]) -> List[str]:
    """Return the required keys that are missing or hold the wrong type.

    ``referenceProjects`` must be a list; every other required key must be a
    non-blank string.
    """
    missing = []
    for key in required_keys:
        value = parsed.get(key)
        if key == "referenceProjects":
            if not isinstance(value, list):
                missing.append(key)
        elif not isinstance(value, str) or not value.strip():
            missing.append(key)
    return missing


# ---------------------------------------------------------------------------
# Lenient coercion of optional fields
# ---------------------------------------------------------------------------
def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value).strip()
    return ""


def _metric(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    return str(value).strip()


def _verdict(value: Any) -> Verdict:
    if isinstance(value, dict):
        return Verdict(label=_text(value.get("label")), explanation=_text(value.get("explanation")))
    return Verdict(label=_text(value))


def _projects(values: List[Any]) -> List[ReferenceProject]:
    projects: List[ReferenceProject] = []
    for item in values:
        if not isinstance(item, dict):
            continue
        name = _text(item.get("name"))
        if not name:
            continue
        metrics = item.get("metrics")
        projects.append(
            ReferenceProject(
                name=name,
                platform=_text(item.get("chainOrPlatform") or item.get("platform")),
                note=_text(item.get("note")),
                metrics=ReferenceMetrics(
                    market_cap=_metric(metrics.get("marketCap")),
                    tvl=_metric(metrics.get("tvl")),
                    daily_users=_metric(metrics.get("dailyUsers")),
                    funding=_metric(metrics.get("funding")),
                    revenue=_metric(metrics.get("revenue")),
                )
                if isinstance(metrics, dict)
                else None,
            )
        )
    return projects


def _sections(parsed: Dict[str, Any]) -> Dict[str, Any]:
    sections: Dict[str, Any] = {}
    narrative = parsed.get("narrative") or parsed.get("memecoin")
    if isinstance(narrative, dict):
        sections["narrative"] = NarrativeSection(
            narrative_label=_text(narrative.get("narrativeLabel")),
            narrative_crowdedness=_text(narrative.get("narrativeCrowdedness")),
        )
    protocol = parsed.get("protocol") or parsed.get("defi")
    if isinstance(protocol, dict):
        kings = protocol.get("categoryKings") or []
        sections["protocol"] = ProtocolSection(
            bucket=_text(protocol.get("bucket") or protocol.get("defiBucket")),
            category_kings=[_text(k) for k in kings if _text(k)] if isinstance(kings, list) else [],
        )
    agent = parsed.get("agent") or parsed.get("ai")
    if isinstance(agent, dict):
        sections["agent"] = AgentSection(
            pattern=_text(agent.get("pattern") or agent.get("aiPattern")),
            moat_type=_text(agent.get("moatType")),
        )
    return sections


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------
def parse_memo_payload(raw: Optional[str]) -> ParseResult:
    """Parse the model's response text into a memo or a failure reason."""
    if raw is None or not raw.strip():
        return ParseFailure(REASON_EMPTY_RESPONSE)

    try:
        parsed = json.loads(sanitize_json(raw))
    except (ValueError, RecursionError) as exc:
        logger.warning("[PARSER] Unparsable payload: %s (first 200 chars: %r)", exc, raw[:200])
        return ParseFailure(REASON_INVALID_PAYLOAD)

    if not isinstance(parsed, dict):
        return ParseFailure(REASON_INVALID_SCHEMA)

    missing = validate_required_keys(parsed, REQUIRED_MEMO_KEYS)
    if missing:
        logger.warning("[PARSER] Invalid memo shape, missing/invalid keys: %s", missing)
        return ParseFailure(REASON_INVALID_SCHEMA)

    memo = CompetitiveMemo(
        category_label=_text(parsed["categoryLabel"]),
        crowdedness_level=_text(parsed["crowdednessLevel"]),
        short_landscape_summary=_text(parsed.get("shortLandscapeSummary")),
        reference_projects=_projects(parsed["referenceProjects"]),
        traction_difficulty=_verdict(parsed.get("tractionDifficulty")),
        differentiation_window=_verdict(parsed.get("differentiationWindow")),
        noise_vs_signal=_text(parsed.get("noiseVsSignal")),
        evaluator_notes=_text(parsed.get("evaluatorNotes")),
        timestamp=_text(parsed.get("timestamp")),
        **_sections(parsed),
    )
    raw_claims = parsed.get("claims")
    return ParsedMemo(memo=memo, raw_claims=raw_claims if isinstance(raw_claims, list) else [])
