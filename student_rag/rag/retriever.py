"""Hybrid retrieval combining exact matching and vector-similarity search."""

import asyncio
import logging

from ..schemas.hit import MatchType, QueryBundle, SearchHit
from .embedder import EmbeddingGateway
from .fusion import DedupKey, fuse_exact_and_semantic, fuse_variant_hits, merge_additive, raw_content_key
from .store import DocumentStore, StoredSnippet

logger = logging.getLogger(__name__)


def _to_hit(snippet: StoredSnippet, match_type: str) -> SearchHit:
    if match_type == MatchType.EXACT:
        return SearchHit(snippet.content, snippet.metadata, 1.0, match_type)
    return SearchHit(
        content=snippet.content,
        metadata=snippet.metadata,
        relevance_score=1.0 - snippet.distance,
        match_type=match_type,
        distance=snippet.distance,
    )


async def exact_match_search(store: DocumentStore, entity_id: str, limit: int = 3) -> list[SearchHit]:
    """
    Find snippets tied to an entity ID by metadata or by substring.

    Args:
        store: Document store to query
        entity_id: The entity ID to look for
        limit: Maximum number of results

    Returns:
        Hits with relevance 1.0, metadata matches first
    """
    snippets = await store.query_exact(entity_id, limit=limit)
    hits = [_to_hit(snippet, MatchType.EXACT) for snippet in snippets]
    logger.debug(f"Exact match search for {entity_id!r} returned {len(hits)} hits")
    return hits


async def vector_search(
    store: DocumentStore,
    embedder: EmbeddingGateway,
    text: str,
    threshold: float,
    limit: int,
    match_type: str = MatchType.SEMANTIC,
) -> list[SearchHit]:
    """
    Embed `text` and return stored snippets closer than `threshold`.

    Returns:
        Hits nearest first, scored as 1 - distance
    """
    query_vector = await embedder.aembed(text)
    snippets = await store.query_by_distance(query_vector, threshold=threshold, limit=limit)
    hits = [_to_hit(snippet, match_type) for snippet in snippets]
    logger.debug(f"Vector search ({match_type}, threshold={threshold}) for {text!r} returned {len(hits)} hits")
    return hits


async def hybrid_search(
    store: DocumentStore,
    embedder: EmbeddingGateway,
    entity_id: str,
    bundle: QueryBundle,
    exact_limit: int = 3,
    threshold: float = 0.5,
    semantic_limit: int = 5,
    k: int = 5,
    key: DedupKey = raw_content_key,
) -> list[SearchHit]:
    """
    Search for a question that names an entity.

    Exact matches and a vector search over the structured query (or the
    original question) run concurrently; exact hits always rank first.

    Returns:
        At most k hits
    """
    if not entity_id:
        raise ValueError("Hybrid search requires an entity ID.")

    exact_hits, semantic_hits = await asyncio.gather(
        exact_match_search(store, entity_id, limit=exact_limit),
        vector_search(store, embedder, bundle.primary, threshold, semantic_limit),
    )
    hits = fuse_exact_and_semantic(exact_hits, semantic_hits, k=k, key=key)

    logger.info(
        f"Hybrid search for {entity_id!r}: {len(exact_hits)} exact, {len(semantic_hits)} semantic, {len(hits)} kept"
    )
    return hits


def query_variants(bundle: QueryBundle, max_expansions: int = 3) -> list[str]:
    """The primary query followed by the leading expansion phrases, skipping empty strings."""
    candidates = [bundle.primary, *bundle.expanded[:max_expansions]]
    return [variant for variant in candidates if variant]


async def semantic_search(
    store: DocumentStore,
    embedder: EmbeddingGateway,
    bundle: QueryBundle,
    threshold: float = 0.8,
    per_variant_limit: int = 3,
    max_expansions: int = 3,
    k: int = 5,
    key: DedupKey = raw_content_key,
) -> list[SearchHit]:
    """
    Search for a question without an entity ID, one vector query per variant.

    The variant queries run concurrently. If any of them fails the whole call
    fails.

    Returns:
        At most k deduplicated hits, highest relevance first
    """
    variants = query_variants(bundle, max_expansions)
    pools = await asyncio.gather(
        *(vector_search(store, embedder, variant, threshold, per_variant_limit) for variant in variants)
    )
    hits = fuse_variant_hits(pools, k=k, key=key)

    logger.info(f"Semantic search over {len(variants)} variants: {sum(map(len, pools))} pooled, {len(hits)} kept")
    return hits


def needs_fallback(hits: list[SearchHit], max_hits: int = 1) -> bool:
    """True when the primary search returned `max_hits` hits or fewer."""
    return len(hits) <= max_hits


async def fallback_search(
    store: DocumentStore,
    embedder: EmbeddingGateway,
    bundle: QueryBundle,
    hits: list[SearchHit],
    threshold: float = 1.0,
    limit: int = 5,
    key: DedupKey = raw_content_key,
) -> list[SearchHit]:
    """
    Broader vector search over the raw question, merged into `hits`.

    Only adds hits; existing hits keep their order.
    """
    extra = await vector_search(store, embedder, bundle.original, threshold, limit, match_type=MatchType.FALLBACK)
    merged = merge_additive(hits, extra, key=key)

    logger.info(f"Fallback search added {len(merged) - len(hits)} hits (total {len(merged)})")
    return merged
