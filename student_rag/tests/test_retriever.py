"""Tests for the hybrid, semantic and fallback search stages."""

import pytest

from student_rag.core.errors import ProviderError
from student_rag.rag.retriever import (
    exact_match_search,
    fallback_search,
    hybrid_search,
    needs_fallback,
    query_variants,
    semantic_search,
    vector_search,
)
from student_rag.schemas.hit import MatchType, QueryBundle, SearchHit

STRUCTURED = "Student ID 1001 quiz score"


@pytest.fixture
def bundle_1001():
    return QueryBundle(original="what is student 1001's quiz average", structured=STRUCTURED)


async def seed(store, rows):
    """Insert (content, vector, metadata) rows and return their IDs in order."""
    return [await store.insert(content, vector, metadata) for content, vector, metadata in rows]


class TestExactMatchSearch:
    async def test_hits_have_full_relevance(self, store):
        await seed(store, [("Student ID: 1001\nQuiz: 85", [0, 0, 0], {"student_id": "1001"})])
        hits = await exact_match_search(store, "1001")
        assert len(hits) == 1
        assert hits[0].relevance_score == 1.0
        assert hits[0].match_type == MatchType.EXACT
        assert hits[0].distance is None

    async def test_no_match(self, store):
        await seed(store, [("unrelated", [0, 0, 0], {})])
        assert await exact_match_search(store, "1001") == []


class TestVectorSearch:
    async def test_scores_are_one_minus_distance(self, store, make_embedder):
        await seed(store, [("near", [0.25, 0, 0], {})])
        embedder = make_embedder({"q": [0, 0, 0]})
        hits = await vector_search(store, embedder, "q", threshold=0.5, limit=5)
        assert hits[0].match_type == MatchType.SEMANTIC
        assert hits[0].distance == pytest.approx(0.25)
        assert hits[0].relevance_score == pytest.approx(0.75)


class TestHybridSearch:
    async def test_exact_hits_come_first(self, store, make_embedder, bundle_1001):
        await seed(
            store,
            [
                ("Unrelated announcement", [0.3, 0, 0], {}),
                ("Note: 1001 asked for extra practice", [0.2, 0, 0], {"type": "student_note"}),
                ("Student ID: 1001\nAvg Quiz Score: 85", [0.1, 0, 0], {"student_id": "1001"}),
                ("Far away", [5, 5, 5], {}),
            ],
        )
        embedder = make_embedder({STRUCTURED: [0, 0, 0]})

        hits = await hybrid_search(store, embedder, "1001", bundle_1001)

        assert [h.content for h in hits] == [
            "Student ID: 1001\nAvg Quiz Score: 85",
            "Note: 1001 asked for extra practice",
            "Unrelated announcement",
        ]
        assert [h.match_type for h in hits] == [MatchType.EXACT, MatchType.EXACT, MatchType.SEMANTIC]
        assert embedder.calls == [STRUCTURED]

    async def test_capped_at_five_with_exact_hits_leading(self, store, make_embedder, bundle_1001):
        rows = [(f"record {i} for 1001", [0.05 * i, 0, 0], {"student_id": "1001"}) for i in range(4)]
        rows += [(f"nearby {i}", [0, 0.05 * (i + 1), 0], {}) for i in range(5)]
        await seed(store, rows)
        embedder = make_embedder({STRUCTURED: [0, 0, 0]})

        hits = await hybrid_search(store, embedder, "1001", bundle_1001)

        assert len(hits) == 5
        assert [h.match_type for h in hits[:3]] == [MatchType.EXACT] * 3
        assert all(h.match_type == MatchType.SEMANTIC for h in hits[3:])
        assert len({h.content for h in hits}) == 5

    async def test_uses_original_question_without_structured_query(self, store, make_embedder):
        embedder = make_embedder()
        bundle = QueryBundle(original="notes on 1001")
        await hybrid_search(store, embedder, "1001", bundle)
        assert embedder.calls == ["notes on 1001"]

    async def test_requires_entity_id(self, store, embedder, bundle_1001):
        with pytest.raises(ValueError):
            await hybrid_search(store, embedder, "", bundle_1001)

    async def test_provider_failure_propagates(self, store, make_embedder, bundle_1001):
        embedder = make_embedder(fail_on={STRUCTURED})
        with pytest.raises(ProviderError):
            await hybrid_search(store, embedder, "1001", bundle_1001)


class TestQueryVariants:
    def test_primary_then_leading_expansions(self):
        bundle = QueryBundle(original="q", expanded=("a", "b", "c", "d"))
        assert query_variants(bundle) == ["q", "a", "b", "c"]

    def test_structured_replaces_original(self):
        bundle = QueryBundle(original="q", structured="s", expanded=("a",))
        assert query_variants(bundle) == ["s", "a"]

    def test_no_expansions(self):
        assert query_variants(QueryBundle(original="q")) == ["q"]


class TestSemanticSearch:
    async def test_variants_are_pooled_and_deduplicated(self, store, make_embedder):
        await seed(
            store,
            [
                ("close to question", [0.2, 0, 0], {}),
                ("close to expansion", [0, 0.9, 0], {}),
                ("between both", [0, 0.5, 0], {}),
                ("far", [5, 5, 5], {}),
            ],
        )
        embedder = make_embedder({"q": [0, 0, 0], "a": [0, 1, 0]})
        bundle = QueryBundle(original="q", expanded=("a",))

        hits = await semantic_search(store, embedder, bundle)

        assert [h.content for h in hits] == ["close to expansion", "close to question", "between both"]
        assert all(h.match_type == MatchType.SEMANTIC for h in hits)
        assert sorted(embedder.calls) == ["a", "q"]

    async def test_only_three_expansions_are_searched(self, store, make_embedder):
        embedder = make_embedder()
        bundle = QueryBundle(original="q", expanded=("a", "b", "c", "d", "e"))
        await semantic_search(store, embedder, bundle)
        assert sorted(embedder.calls) == ["a", "b", "c", "q"]

    async def test_empty_store(self, store, embedder):
        assert await semantic_search(store, embedder, QueryBundle(original="q")) == []

    async def test_failing_variant_fails_whole_search(self, store, make_embedder):
        await seed(store, [("doc", [0, 0, 0], {})])
        embedder = make_embedder({"q": [0, 0, 0]}, fail_on={"b"})
        bundle = QueryBundle(original="q", expanded=("a", "b"))
        with pytest.raises(ProviderError):
            await semantic_search(store, embedder, bundle)


class TestFallback:
    def test_needs_fallback(self):
        hit = SearchHit("a", {}, 1.0, MatchType.EXACT)
        assert needs_fallback([])
        assert needs_fallback([hit])
        assert not needs_fallback([hit, hit._replace(content="b")])

    async def test_only_adds_hits(self, store, make_embedder):
        await seed(
            store,
            [
                ("already found", [0.2, 0, 0], {}),
                ("broader match", [0.6, 0, 0], {}),
                ("far", [5, 5, 5], {}),
            ],
        )
        embedder = make_embedder({"raw question": [0, 0, 0]})
        current = [SearchHit("already found", {}, 0.9, MatchType.SEMANTIC, distance=0.1)]
        bundle = QueryBundle(original="raw question", structured="structured form")

        hits = await fallback_search(store, embedder, bundle, current)

        assert hits[0] == current[0]
        assert [h.content for h in hits] == ["already found", "broader match"]
        assert hits[1].match_type == MatchType.FALLBACK
        assert embedder.calls == ["raw question"]

    async def test_empty_store_keeps_hits(self, store, embedder):
        current = [SearchHit("x", {}, 1.0, MatchType.EXACT)]
        assert await fallback_search(store, embedder, QueryBundle(original="q"), current) == current


async def test_identical_content_from_separate_uploads_is_returned_once(store, make_embedder):
    await seed(store, [("Quiz: 85", [0.1, 0, 0], {"filename": "a.csv"}), ("Quiz: 85", [0, 0.1, 0], {"filename": "b.csv"})])
    embedder = make_embedder({"q": [0, 0, 0], "a": [0, 0.2, 0]})

    hits = await semantic_search(store, embedder, QueryBundle(original="q", expanded=("a",)))

    assert [h.content for h in hits] == ["Quiz: 85"]
