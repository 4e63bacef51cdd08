"""
Competitive Intel Pipeline Nodes

Each node reads the state, does one step and returns a partial update.
A node that ends the request sets ``failure_reason``; the graph then jumps
straight to ``assemble_result``.

    route_category -> gather_evidence -> synthesize -> validate_memo -> assemble_result
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from ...config import EngineConfig
from ...schemas.evidence_schema import ProviderKind, utc_now
from ...services.category_router import route_category, unsupported_reason
from ...services.claim_normalizer import get_mention_matcher, normalize_claims
from ...services.evidence_collector import EvidenceCollector
from ...services.evidence_providers import EvidenceProvider, ProviderContext, ProviderResult
from ...services.llm_client import SynthesisInvoker
from ...services.payload_parser import ParseFailure, parse_memo_payload
from ...services.result_assembler import build_not_available, build_ok
from .prompts import build_synthesis_prompt
from .state import IntelState
from .timing import StepTimer

logger = logging.getLogger(__name__)


class IntelNodes:
    """Pipeline steps bound to one engine's providers, invoker and config."""

    def __init__(
        self,
        config: EngineConfig,
        providers: Mapping[ProviderKind, EvidenceProvider],
        invoker: SynthesisInvoker,
    ) -> None:
        self.config = config
        self.providers = providers
        self.invoker = invoker

    # ------------------------------------------------------------------ #
    #  Nodes                                                               #
    # ------------------------------------------------------------------ #

    async def route_category(self, state: IntelState) -> Dict[str, Any]:
        request = state["request"]
        route = route_category(request.category)
        if route is None:
            logger.info("[ROUTER] Unsupported category %r, skipping pipeline", request.category)
            return {"route": None, "failure_reason": unsupported_reason(request.category)}
        logger.info(
            "[ROUTER] %s -> %s",
            route.category,
            ", ".join(k.value for k in route.provider_kinds),
        )
        return {"route": route}

    async def gather_evidence(self, state: IntelState) -> Dict[str, Any]:
        request = state["request"]
        route = state["route"]
        errors = list(state.get("processing_errors", []))
        timer = StepTimer("evidence")

        context = ProviderContext(
            idea_description=request.idea_description,
            category=route.category,
            idea_scope=request.idea_scope,
            token_address=request.token_address,
        )
        query = request.idea_description

        async with timer.async_step("providers"):
            results = await asyncio.gather(
                *[self._fetch_one(kind, query, context) for kind in route.provider_kinds]
            )

        # Results are added in routing order so ids do not depend on
        # which provider finished first.
        collector = EvidenceCollector()
        unavailable: list[ProviderKind] = []
        for result in results:
            if not result.ok:
                unavailable.append(result.provider_kind)
                errors.append(f"{result.provider_kind.value}: {result.error or 'unavailable'}")
                continue
            for draft in result.items:
                collector.add(result.provider_kind, draft.title, draft.snippet, draft.url)

        pack = collector.pack(unavailable)
        timer.summary()
        return {"evidence_pack": pack, "processing_errors": errors}

    async def synthesize(self, state: IntelState) -> Dict[str, Any]:
        prompt = build_synthesis_prompt(
            state["request"],
            state["route"].category,
            state["evidence_pack"],
            max_hints=self.config.max_evidence_hints,
        )
        timer = StepTimer("synthesis")
        async with timer.async_step("llm_call"):
            outcome = await self.invoker.invoke(prompt)
        if not outcome.ok:
            return {"failure_reason": outcome.error}
        return {"raw_response": outcome.text}

    async def validate_memo(self, state: IntelState) -> Dict[str, Any]:
        parsed = parse_memo_payload(state.get("raw_response"))
        if isinstance(parsed, ParseFailure):
            return {"failure_reason": parsed.reason}

        pack = state["evidence_pack"]
        claims = normalize_claims(
            parsed.raw_claims,
            pack,
            parsed.memo.reference_projects,
            mention_matcher=get_mention_matcher(self.config.mention_matcher),
            max_claims=self.config.max_claims,
        )
        corroborated = sum(1 for c in claims if c.evidence_ids)
        logger.info(
            "[GROUNDING] %d raw claims -> %d normalized (%d corroborated)",
            len(parsed.raw_claims),
            len(claims),
            corroborated,
        )
        update: Dict[str, Any] = {"claims": claims}
        if not parsed.memo.timestamp:
            update["timestamp"] = utc_now().isoformat()
        return {"memo": parsed.memo.model_copy(update=update)}

    async def assemble_result(self, state: IntelState) -> Dict[str, Any]:
        reason = state.get("failure_reason")
        if reason:
            logger.info("[RESULT] not_available: %s", reason)
            return {"result": build_not_available(reason)}
        result = build_ok(
            state["memo"],
            state["evidence_pack"],
            state["route"].category,
            validity_hours=self.config.result_validity_hours,
        )
        logger.info(
            "[RESULT] ok: %d evidence items, %d claims",
            result.provenance.evidence_count,
            len(result.memo.claims),
        )
        return {"result": result}

    # ------------------------------------------------------------------ #
    #  Helpers                                                             #
    # ------------------------------------------------------------------ #

    async def _fetch_one(
        self,
        kind: ProviderKind,
        query: str,
        context: ProviderContext,
    ) -> ProviderResult:
        provider: Optional[EvidenceProvider] = self.providers.get(kind)
        if provider is None:
            return ProviderResult(provider_kind=kind, ok=False, error="no provider registered")
        try:
            result = await provider.fetch(query, context)
        except Exception as exc:
            logger.warning("[%s] Provider raised past its boundary: %s", kind.value, exc)
            return ProviderResult(provider_kind=kind, ok=False, error=str(exc))
        # The route decides the kind, not the adapter.
        if result.provider_kind != kind:
            result = ProviderResult(provider_kind=kind, items=result.items, ok=result.ok, error=result.error)
        return result
