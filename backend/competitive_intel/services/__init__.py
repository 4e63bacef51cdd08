from .category_router import CategoryRoute, route_category
from .evidence_collector import EvidenceCollector
from .evidence_providers import EvidenceProvider, ProviderContext, ProviderResult, build_default_providers
from .llm_client import OpenAIChatCapability, SynthesisInvoker, SynthesisPrompt
from .payload_parser import ParsedMemo, ParseFailure, parse_memo_payload
from .claim_normalizer import compute_evidence_coverage, normalize_claims
from .result_assembler import build_not_available, build_ok, format_grounding_brief, is_stale

__all__ = [
    "CategoryRoute",
    "route_category",
    "EvidenceCollector",
    "EvidenceProvider",
    "ProviderContext",
    "ProviderResult",
    "build_default_providers",
    "OpenAIChatCapability",
    "SynthesisInvoker",
    "SynthesisPrompt",
    "ParsedMemo",
    "ParseFailure",
    "parse_memo_payload",
    "compute_evidence_coverage",
    "normalize_claims",
    "build_not_available",
    "build_ok",
    "format_grounding_brief",
    "is_stale",
]
