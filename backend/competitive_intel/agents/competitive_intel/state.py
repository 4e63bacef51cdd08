from typing import Optional, TypedDict, Union

from ...schemas.evidence_schema import EvidencePack
from ...schemas.intel_schema import IntelRequest, IntelResultNotAvailable, IntelResultOk
from ...schemas.memo_schema import CompetitiveMemo
from ...services.category_router import CategoryRoute


class IntelState(TypedDict, total=False):
    request: IntelRequest

    # Populated by route_category
    route: Optional[CategoryRoute]

    # Populated by gather_evidence (frozen from here on)
    evidence_pack: Optional[EvidencePack]

    # Populated by synthesize
    raw_response: Optional[str]

    # Populated by validate_memo
    memo: Optional[CompetitiveMemo]

    # Set by any node that ends the request early
    failure_reason: Optional[str]

    # Final Output (populated by assemble_result)
    result: Union[IntelResultOk, IntelResultNotAvailable, None]

    # Metadata
    processing_errors: list[str]  # Non-fatal issues, e.g. unavailable providers
