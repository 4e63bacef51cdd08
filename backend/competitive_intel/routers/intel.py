"""
Competitive Intel Router with Timing Instrumentation

Handles the /competitive-intel endpoint. Both result shapes come back
with HTTP 200; only malformed request bodies are rejected (422).
"""

import logging
import time
from typing import Optional, Union

from fastapi import APIRouter, Depends, status

from ..agents.competitive_intel import CompetitiveIntelEngine
from ..schemas.intel_schema import IntelRequest, IntelResultNotAvailable, IntelResultOk

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/competitive-intel",
    tags=["Competitive Intelligence"],
)

_engine: Optional[CompetitiveIntelEngine] = None


def get_engine() -> CompetitiveIntelEngine:
    """Lazily build the process-wide engine from the environment."""
    global _engine
    if _engine is None:
        _engine = CompetitiveIntelEngine()
    return _engine


@router.post(
    "",
    response_model=Union[IntelResultOk, IntelResultNotAvailable],
    status_code=status.HTTP_200_OK,
    summary="Generate a Competitive Memo",
    response_description="Grounded competitive memo, or a not_available result with a reason",
)
async def competitive_intel(
    request: IntelRequest,
    engine: CompetitiveIntelEngine = Depends(get_engine),
):
    start_time = time.perf_counter()
    logger.info("[TIMING] competitive_intel_endpoint: START category=%s", request.category)

    result = await engine.run(request)

    total_duration = (time.perf_counter() - start_time) * 1000
    logger.info(
        "[TIMING] competitive_intel_endpoint: END status=%s duration=%.0fms",
        result.status,
        total_duration,
    )
    return result


@router.get(
    "/health",
    summary="Health Check",
    description="Check if the competitive intelligence service is running",
    response_description="Health status",
)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "healthy", "service": "competitive-intel"}
