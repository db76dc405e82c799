"""Data schemas for the retrieval pipeline."""

from typing import Any, NamedTuple


class MatchType:
    """How a hit was found."""

    EXACT = "exact_match"
    SEMANTIC = "semantic_match"
    FALLBACK = "fallback_semantic"


class SearchHit(NamedTuple):
    """A snippet surfaced for a query, scored at query time and never persisted."""

    content: str
    metadata: dict[str, Any]
    relevance_score: float
    match_type: str
    distance: float | None = None  # Only set for vector matches


class QueryBundle(NamedTuple):
    """Query variants derived from one user question."""

    original: str
    structured: str = ""
    keywords: frozenset[str] = frozenset()
    expanded: tuple[str, ...] = ()

    @property
    def primary(self) -> str:
        """The text used for the main embedding search."""
        return self.structured or self.original
