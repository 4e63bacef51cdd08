# Schemas package
from .evidence_schema import (
    EvidenceDraft,
    EvidenceItem,
    EvidencePack,
    ProviderKind,
    ReliabilityTier,
)
from .memo_schema import (
    Claim,
    ClaimSupport,
    ClaimType,
    CompetitiveMemo,
    ReferenceMetrics,
    ReferenceProject,
)
from .intel_schema import (
    IntelRequest,
    IntelResult,
    IntelResultNotAvailable,
    IntelResultOk,
    Provenance,
)

__all__ = [
    "EvidenceDraft",
    "EvidenceItem",
    "EvidencePack",
    "ProviderKind",
    "ReliabilityTier",
    "Claim",
    "ClaimSupport",
    "ClaimType",
    "CompetitiveMemo",
    "ReferenceMetrics",
    "ReferenceProject",
    "IntelRequest",
    "IntelResult",
    "IntelResultNotAvailable",
    "IntelResultOk",
    "Provenance",
]
