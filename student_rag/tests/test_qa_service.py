"""Tests for the question-answering service."""

from unittest.mock import patch

import pytest

from student_rag.core.errors import ProviderError
from student_rag.rag.graph import RetrievalPipeline
from student_rag.schemas.query import ConversationTurn
from student_rag.services.qa_service import NO_CONTEXT_MESSAGE, AnswerType, QAService

RECORD = "Student ID: 1001\nAvg Quiz Score: 85"


@pytest.fixture
def llm_settings(settings):
    return settings.model_copy(update={"LLM_MODEL": "openai/gpt-4o-mini"})


@pytest.fixture
async def seeded_store(store):
    await store.insert(RECORD, [0, 0, 0], {"student_id": "1001"})
    return store


def make_service(store, embedder, settings):
    return QAService(RetrievalPipeline(store, embedder, settings))


class TestAnswer:
    async def test_no_context(self, store, embedder, settings):
        response = await make_service(store, embedder, settings).answer("What about student 1001?")
        assert response.type == AnswerType.NO_CONTEXT
        assert response.message == NO_CONTEXT_MESSAGE
        assert response.hits == []
        assert response.raw_context == ""

    async def test_direct_answer_without_language_model(self, seeded_store, embedder, settings):
        service = make_service(seeded_store, embedder, settings)
        assert not service.generator_enabled

        response = await service.answer("quiz average for student 1001")

        assert response.type == AnswerType.DIRECT
        assert RECORD in response.message
        assert response.raw_context == RECORD
        assert response.hits[0].match_type == "exact_match"
        assert response.hits[0].relevance_score == 1.0

    async def test_rag_answer(self, seeded_store, embedder, llm_settings):
        service = make_service(seeded_store, embedder, llm_settings)
        bundle = {"answer": "Student 1001 averages 85.", "chart_suggestion": "bar|Quiz scores|score per quiz"}

        with patch("student_rag.services.qa_service.run_answerer", return_value=bundle) as run:
            response = await service.answer(
                "quiz average for student 1001", [ConversationTurn(role="user", text="hi")]
            )

        assert response.type == AnswerType.RAG
        assert response.message == "Student 1001 averages 85."
        assert response.chart_suggestion == "bar|Quiz scores|score per quiz"
        question, hits, history = run.call_args.args
        assert question == "quiz average for student 1001"
        assert [h.content for h in hits] == [RECORD]
        assert history == [("user", "hi")]

    async def test_generator_failure_degrades_to_context(self, seeded_store, embedder, llm_settings):
        service = make_service(seeded_store, embedder, llm_settings)
        with patch("student_rag.services.qa_service.run_answerer", side_effect=RuntimeError("rate limited")):
            response = await service.answer("quiz average for student 1001")
        assert response.type == AnswerType.DIRECT
        assert RECORD in response.message

    async def test_empty_generated_answer(self, seeded_store, embedder, llm_settings):
        service = make_service(seeded_store, embedder, llm_settings)
        with patch(
            "student_rag.services.qa_service.run_answerer",
            return_value={"answer": "", "chart_suggestion": None},
        ):
            response = await service.answer("quiz average for student 1001")
        assert response.type == AnswerType.DIRECT

    async def test_retrieval_failure_propagates(self, seeded_store, make_embedder, settings):
        service = make_service(seeded_store, make_embedder(fail_on={"what happened"}), settings)
        with pytest.raises(ProviderError):
            await service.answer("what happened")

    async def test_empty_query(self, store, embedder, settings):
        with pytest.raises(ValueError):
            await make_service(store, embedder, settings).answer("")
