"""Category Router.

Maps a requested category to the provider kinds to run and the synthesis
instruction variant. Unknown categories fail fast, before any I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..constants import CATEGORY_ALIASES, CATEGORY_PROVIDERS, SUPPORTED_CATEGORIES
from ..schemas.evidence_schema import ProviderKind


@dataclass(frozen=True)
class CategoryRoute:
    category: str
    provider_kinds: tuple[ProviderKind, ...]


def normalize_category(category: Optional[str]) -> str:
    key = (category or "").strip().lower()
    return CATEGORY_ALIASES.get(key, key)


def unsupported_reason(category: Optional[str]) -> str:
    return f"Category '{(category or '').strip()}' is not supported for competitive intelligence."


def route_category(category: Optional[str]) -> Optional[CategoryRoute]:
    """Return the route for *category*, or ``None`` if it is not supported."""
    normalized = normalize_category(category)
    if normalized not in SUPPORTED_CATEGORIES:
        return None
    return CategoryRoute(
        category=normalized,
        provider_kinds=tuple(ProviderKind(k) for k in CATEGORY_PROVIDERS[normalized]),
    )
