import logging

import anyio

from student_rag.core.config import Settings
from student_rag.rag.dspy_program import run_answerer
from student_rag.rag.graph import RetrievalPipeline, build_context
from student_rag.schemas.hit import SearchHit
from student_rag.schemas.query import ConversationTurn, HitOut, QueryResponse

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = "I couldn't find any notes or records related to your question."
DIRECT_ANSWER_MESSAGE = "Here is the information I found in the stored notes and records:\n\n{context}"


class AnswerType:
    RAG = "rag_answer"
    DIRECT = "direct_answer"
    NO_CONTEXT = "no_context"


class QAService:
    """
    Service for answering questions from retrieved snippets.

    Retrieval failures propagate to the caller. Answer generation is optional:
    without a configured language model, or when the model call fails, the
    retrieved context itself is returned.
    """

    def __init__(self, pipeline: RetrievalPipeline, settings: Settings | None = None):
        self.pipeline = pipeline
        self.settings = settings or pipeline.settings

    @property
    def generator_enabled(self) -> bool:
        return bool(self.settings.LLM_MODEL)

    async def answer(self, query: str, history: list[ConversationTurn] | None = None) -> QueryResponse:
        """
        Answer a question using the retrieval pipeline.

        Args:
            query: The user's question.
            history: Earlier conversation turns, oldest first.

        Returns:
            A QueryResponse with the answer, its type and the grounding context.
        """
        if not query or not query.strip():
            raise ValueError("Query cannot be empty.")

        logger.info(f"Answering query: {query!r}")
        hits = await self.pipeline.retrieve(query)
        context = build_context(hits)

        if not hits:
            return self._response(query, NO_CONTEXT_MESSAGE, AnswerType.NO_CONTEXT, context, hits)

        if not self.generator_enabled:
            return self._response(
                query, DIRECT_ANSWER_MESSAGE.format(context=context), AnswerType.DIRECT, context, hits
            )

        turns = [(turn.role, turn.text) for turn in history or []]
        try:
            bundle = await anyio.to_thread.run_sync(run_answerer, query, hits, turns)
        except Exception as e:
            logger.error(f"Answer generation failed, returning retrieved context: {e}", exc_info=True)
            return self._response(
                query, DIRECT_ANSWER_MESSAGE.format(context=context), AnswerType.DIRECT, context, hits
            )

        if not bundle["answer"]:
            logger.warning(f"Language model returned an empty answer for query {query!r}")
            return self._response(
                query, DIRECT_ANSWER_MESSAGE.format(context=context), AnswerType.DIRECT, context, hits
            )

        return self._response(
            query, bundle["answer"], AnswerType.RAG, context, hits, chart_suggestion=bundle["chart_suggestion"]
        )

    @staticmethod
    def _response(
        query: str,
        message: str,
        answer_type: str,
        context: str,
        hits: list[SearchHit],
        chart_suggestion: str | None = None,
    ) -> QueryResponse:
        return QueryResponse(
            message=message,
            type=answer_type,
            query=query,
            raw_context=context,
            chart_suggestion=chart_suggestion,
            hits=[HitOut(**hit._asdict()) for hit in hits],
        )
