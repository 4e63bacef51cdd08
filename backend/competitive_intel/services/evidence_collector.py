"""Evidence Collector.

Single mutable builder for the gathering phase of one request. Frozen into
an ``EvidencePack`` once every provider has reported.

Rules
-----
- Ids are ``{prefix}_{n}`` with one counter per provider kind
- Title/snippet truncation happens here and nowhere else
- Reliability tier comes from the static table, never from the adapter
- Every failed provider kind lands in ``unavailable_sources``
"""

from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional, Union

from ..constants import (
    EVIDENCE_ID_PREFIXES,
    RELIABILITY_TIERS,
    SNIPPET_MAX_CHARS,
    TITLE_MAX_CHARS,
)
from ..schemas.evidence_schema import (
    EvidenceItem,
    EvidencePack,
    ProviderKind,
    ReliabilityTier,
    utc_now,
)

logger = logging.getLogger(__name__)

KindLike = Union[ProviderKind, str]


def truncate(text: Optional[str], limit: int) -> str:
    """Collapse whitespace and cut *text* to at most *limit* characters."""
    if not text:
        return ""
    cleaned = " ".join(str(text).split())
    if len(cleaned) <= limit:
        return cleaned
    return cleaned[: max(limit - 3, 0)].rstrip() + "..."


def reliability_for(provider_kind: KindLike) -> ReliabilityTier:
    kind = ProviderKind(provider_kind)
    return ReliabilityTier(RELIABILITY_TIERS[kind.value])


class EvidenceCollector:
    """Append-only evidence builder for one request."""

    def __init__(
        self,
        title_max_chars: int = TITLE_MAX_CHARS,
        snippet_max_chars: int = SNIPPET_MAX_CHARS,
    ) -> None:
        self._title_max = title_max_chars
        self._snippet_max = snippet_max_chars
        self._items: list[EvidenceItem] = []
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def add(
        self,
        provider_kind: KindLike,
        title: str,
        snippet: str = "",
        url: Optional[str] = None,
    ) -> str:
        """Insert one fact and return its id."""
        kind = ProviderKind(provider_kind)
        with self._lock:
            if self._frozen:
                raise RuntimeError("EvidenceCollector is already packed")
            seq = self._counters.get(kind.value, 0) + 1
            self._counters[kind.value] = seq
            evidence_id = f"{EVIDENCE_ID_PREFIXES[kind.value]}_{seq}"
            self._items.append(
                EvidenceItem(
                    id=evidence_id,
                    provider_kind=kind,
                    title=truncate(title, self._title_max) or "(untitled)",
                    snippet=truncate(snippet, self._snippet_max),
                    url=url or None,
                    fetched_at=utc_now(),
                    reliability_tier=reliability_for(kind),
                )
            )
        return evidence_id

    def __len__(self) -> int:
        return len(self._items)

    def pack(self, unavailable_sources: Iterable[KindLike] = ()) -> EvidencePack:
        """Freeze the collected evidence. The builder rejects adds afterwards."""
        seen: list[ProviderKind] = []
        for source in unavailable_sources:
            kind = ProviderKind(source)
            if kind not in seen:
                seen.append(kind)
        with self._lock:
            self._frozen = True
            items = tuple(self._items)
        logger.info(
            "[EVIDENCE] Packed %d items (unavailable: %s)",
            len(items),
            ", ".join(k.value for k in seen) or "none",
        )
        return EvidencePack(
            evidence=items,
            unavailable_sources=tuple(seen),
            generated_at=utc_now(),
        )
