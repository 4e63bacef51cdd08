"""
Competitive Intelligence Engine

Public entry point. Wires providers, the synthesis capability and config
into the pipeline graph and turns any request into exactly one result:
``IntelResultOk`` or ``IntelResultNotAvailable``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from ...config import EngineConfig
from ...constants import REASON_INTERNAL_ERROR
from ...schemas.evidence_schema import ProviderKind
from ...schemas.intel_schema import IntelRequest, IntelResultNotAvailable, IntelResultOk
from ...services.evidence_providers import EvidenceProvider, build_default_providers
from ...services.llm_client import LLMCapability, OpenAIChatCapability, SynthesisInvoker
from ...services.result_assembler import build_not_available
from .graph import create_intel_graph
from .nodes import IntelNodes
from .timing import StepTimer

logger = logging.getLogger(__name__)


class CompetitiveIntelEngine:
    """
    One engine per process is enough; nothing is cached across requests.

    ``providers`` and ``capability`` default to the real HTTP adapters and
    the OpenAI-compatible chat capability. Tests pass fakes.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        providers: Optional[Mapping[ProviderKind, EvidenceProvider]] = None,
        capability: Optional[LLMCapability] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config or EngineConfig.from_env()
        self.providers = (
            dict(providers) if providers is not None
            else build_default_providers(self.config, client)
        )
        self.capability = capability or OpenAIChatCapability(self.config, client)
        self.invoker = SynthesisInvoker(self.capability, self.config.synthesis_timeout_s)
        self.graph = create_intel_graph(
            IntelNodes(self.config, self.providers, self.invoker)
        ).compile()

    async def run(
        self,
        request: Union[IntelRequest, Dict[str, Any]],
    ) -> Union[IntelResultOk, IntelResultNotAvailable]:
        """Run the pipeline. Never raises."""
        timer = StepTimer("engine")
        try:
            if not isinstance(request, IntelRequest):
                request = IntelRequest.model_validate(request)
            async with timer.async_step("pipeline"):
                final_state = await self.graph.ainvoke(
                    {"request": request, "processing_errors": []}
                )
            for note in final_state.get("processing_errors", []):
                logger.info("[ENGINE] Degraded input: %s", note)
            return final_state["result"]
        except Exception:
            logger.exception("[ENGINE] Unexpected failure")
            return build_not_available(REASON_INTERNAL_ERROR)
