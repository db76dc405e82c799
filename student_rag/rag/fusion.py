"""
Fusion of ranked hit lists.

Duplicates are detected through a dedup key computed from a hit's content.
The default key is the raw content string; `normalized_content_key` treats
snippets that differ only in whitespace or typographic quotes as the same.
"""

import hashlib
from collections.abc import Callable, Iterable

from ..core.text import normalize
from ..schemas.hit import MatchType, SearchHit

DedupKey = Callable[[str], str]


def raw_content_key(content: str) -> str:
    return content


def normalized_content_key(content: str) -> str:
    return hashlib.sha256(normalize(content).encode("utf-8")).hexdigest()


DEDUP_KEYS: dict[str, DedupKey] = {
    "raw": raw_content_key,
    "normalized": normalized_content_key,
}


def get_dedup_key(strategy: str) -> DedupKey:
    """Look up a dedup key by its configured name."""
    try:
        return DEDUP_KEYS[strategy]
    except KeyError as e:
        raise ValueError(f"Unknown dedup strategy: {strategy!r}") from e


def dedupe_hits(hits: Iterable[SearchHit], key: DedupKey = raw_content_key) -> list[SearchHit]:
    """Drop hits whose key was already seen; the first occurrence wins and order is kept."""
    seen = set()
    unique = []
    for hit in hits:
        k = key(hit.content)
        if k not in seen:
            seen.add(k)
            unique.append(hit)
    return unique


def rank_by_relevance(hits: Iterable[SearchHit], k: int) -> list[SearchHit]:
    """Sort by relevance (highest first, stable on ties) and keep the top k."""
    return sorted(hits, key=lambda hit: hit.relevance_score, reverse=True)[:k]


def rank_exact_first(hits: Iterable[SearchHit], k: int) -> list[SearchHit]:
    """Exact matches before everything else, each group by relevance, top k overall."""
    ordered = sorted(hits, key=lambda hit: (hit.match_type != MatchType.EXACT, -hit.relevance_score))
    return ordered[:k]


def fuse_exact_and_semantic(
    exact_hits: list[SearchHit],
    semantic_hits: list[SearchHit],
    k: int = 5,
    key: DedupKey = raw_content_key,
) -> list[SearchHit]:
    """
    Combine exact and semantic hits for hybrid search.

    Semantic hits that duplicate an exact hit's content are dropped; exact
    hits are never deduplicated against each other.
    """
    exact_keys = {key(hit.content) for hit in exact_hits}
    combined = list(exact_hits) + [hit for hit in semantic_hits if key(hit.content) not in exact_keys]
    return rank_exact_first(combined, k)


def fuse_variant_hits(
    pools: Iterable[list[SearchHit]],
    k: int = 5,
    key: DedupKey = raw_content_key,
) -> list[SearchHit]:
    """
    Pool hits from several query variants, deduplicate, and rank.

    Pools are consumed in variant order, so the result does not depend on the
    order in which the variant queries completed.
    """
    pooled = [hit for pool in pools for hit in pool]
    return rank_by_relevance(dedupe_hits(pooled, key), k)


def merge_additive(
    current: list[SearchHit],
    extra: Iterable[SearchHit],
    key: DedupKey = raw_content_key,
) -> list[SearchHit]:
    """Append hits from `extra` whose content is not already present. Never drops or reorders `current`."""
    seen = {key(hit.content) for hit in current}
    merged = list(current)
    for hit in extra:
        k = key(hit.content)
        if k not in seen:
            seen.add(k)
            merged.append(hit)
    return merged
