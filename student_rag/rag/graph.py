"""LangGraph orchestration for the retrieval pipeline.

The graph runs extract → expand → (hybrid | semantic) → [fallback]. Hybrid
search is chosen when the question names a student ID. The fallback stage runs
only after the primary search has finished and returned too few hits.
"""

import logging
from typing import TypedDict

from langgraph.graph import END, StateGraph

from ..core.config import Settings
from ..schemas.hit import QueryBundle, SearchHit
from .embedder import EmbeddingGateway
from .entities import extract_student_id
from .fusion import get_dedup_key
from .query_expander import expand_query
from .retriever import fallback_search, hybrid_search, needs_fallback, semantic_search
from .store import DocumentStore

logger = logging.getLogger(__name__)


class RetrievalState(TypedDict, total=False):
    """State dictionary that flows through the LangGraph nodes."""

    # Input
    query: str

    # Intermediate state
    student_id: str | None
    bundle: QueryBundle
    fallback_used: bool

    # Output
    hits: list[SearchHit]


def extract_node(state: RetrievalState) -> RetrievalState:
    """Find the student ID named in the question, if any."""
    student_id = extract_student_id(state["query"])
    logger.debug(f"Extracted student ID {student_id!r} from {state['query']!r}")
    return {**state, "student_id": student_id}


def expand_node(state: RetrievalState) -> RetrievalState:
    """Build the query bundle from the question and the extracted ID."""
    bundle = expand_query(state["query"], student_id=state.get("student_id"))
    logger.debug(f"Expanded query: structured={bundle.structured!r}, {len(bundle.expanded)} expansions")
    return {**state, "bundle": bundle}


def build_context(hits: list[SearchHit]) -> str:
    """Grounding context for the answer generator."""
    return "\n\n".join(hit.content for hit in hits)


class RetrievalPipeline:
    """
    Question in, ranked snippets out.

    Holds the document store, embedding gateway and settings it was built
    with; nothing is shared between calls to `retrieve`.
    """

    def __init__(self, store: DocumentStore, embedder: EmbeddingGateway, settings: Settings | None = None):
        self.store = store
        self.embedder = embedder
        self.settings = settings or Settings()
        self.dedup_key = get_dedup_key(self.settings.DEDUP_STRATEGY)
        self.compiled_graph = self.build_graph()

    async def hybrid_node(self, state: RetrievalState) -> RetrievalState:
        s = self.settings
        hits = await hybrid_search(
            self.store,
            self.embedder,
            state["student_id"],
            state["bundle"],
            exact_limit=s.EXACT_MATCH_LIMIT,
            threshold=s.HYBRID_DISTANCE_THRESHOLD,
            semantic_limit=s.HYBRID_SEMANTIC_LIMIT,
            k=s.HYBRID_TOP_K,
            key=self.dedup_key,
        )
        return {**state, "hits": hits}

    async def semantic_node(self, state: RetrievalState) -> RetrievalState:
        s = self.settings
        hits = await semantic_search(
            self.store,
            self.embedder,
            state["bundle"],
            threshold=s.SEMANTIC_DISTANCE_THRESHOLD,
            per_variant_limit=s.SEMANTIC_PER_VARIANT_LIMIT,
            max_expansions=s.SEMANTIC_MAX_EXPANSIONS,
            k=s.SEMANTIC_TOP_K,
            key=self.dedup_key,
        )
        return {**state, "hits": hits}

    async def fallback_node(self, state: RetrievalState) -> RetrievalState:
        logger.info(f"Primary search returned {len(state['hits'])} hits, running fallback search")
        hits = await fallback_search(
            self.store,
            self.embedder,
            state["bundle"],
            state["hits"],
            threshold=self.settings.FALLBACK_DISTANCE_THRESHOLD,
            limit=self.settings.FALLBACK_LIMIT,
            key=self.dedup_key,
        )
        return {**state, "hits": hits, "fallback_used": True}

    @staticmethod
    def route_search(state: RetrievalState) -> str:
        return "hybrid" if state.get("student_id") else "semantic"

    def route_fallback(self, state: RetrievalState) -> str:
        if needs_fallback(state.get("hits", []), self.settings.FALLBACK_TRIGGER_MAX_HITS):
            return "fallback"
        return "done"

    def build_graph(self):
        """
        Build and compile the retrieval graph.

        Returns:
            Compiled LangGraph instance ready for execution
        """
        graph = StateGraph(RetrievalState)

        graph.add_node("extract", extract_node)
        graph.add_node("expand", expand_node)
        graph.add_node("hybrid", self.hybrid_node)
        graph.add_node("semantic", self.semantic_node)
        graph.add_node("fallback", self.fallback_node)

        graph.set_entry_point("extract")
        graph.add_edge("extract", "expand")
        graph.add_conditional_edges("expand", self.route_search, {"hybrid": "hybrid", "semantic": "semantic"})
        for stage in ("hybrid", "semantic"):
            graph.add_conditional_edges(stage, self.route_fallback, {"fallback": "fallback", "done": END})
        graph.add_edge("fallback", END)

        return graph.compile()

    async def retrieve(self, query: str) -> list[SearchHit]:
        """
        Retrieve the ranked snippets for a question.

        Raises:
            ValueError: If the question is empty
            RetrievalError: If the embedding provider or the store fails
        """
        if not query or not query.strip():
            raise ValueError("Query cannot be empty.")

        final_state = await self.compiled_graph.ainvoke({"query": query, "fallback_used": False})
        hits = final_state.get("hits", [])

        if not hits:
            logger.warning(f"No snippets found for query {query!r}")
        else:
            logger.info(f"Retrieved {len(hits)} snippets for query {query!r}")
        return hits
