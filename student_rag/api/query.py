import logging

from fastapi import APIRouter, Depends, HTTPException

from student_rag.api.deps import get_ingestion_service, get_qa_service
from student_rag.core.errors import RetrievalError
from student_rag.schemas.query import (
    QueryRequest,
    QueryResponse,
    SearchTestRequest,
    SearchTestResponse,
    SearchTestResult,
)
from student_rag.services.ingestion_service import IngestionService
from student_rag.services.qa_service import QAService

logger = logging.getLogger(__name__)
router = APIRouter()

UNAVAILABLE_DETAIL = "Sorry, I couldn't process your question right now. Please try again later."


@router.post("/query", response_model=QueryResponse)
async def query(payload: QueryRequest, qa_service: QAService = Depends(get_qa_service)) -> QueryResponse:
    """
    Answers a question about students, staff or scores.

    Relevant snippets are retrieved (hybrid search when the question names a
    student ID, multi-variant semantic search otherwise, with a broader
    fallback when too little is found) and used as grounding context.
    """
    try:
        return await qa_service.answer(payload.query, payload.conversation_history)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except RetrievalError as e:
        logger.error(f"Retrieval failed for query {payload.query!r}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL) from e
    except Exception as e:
        logger.error(f"Unexpected error answering {payload.query!r}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred: {e}") from e


@router.post("/search/test", response_model=SearchTestResponse)
async def search_test(
    payload: SearchTestRequest, ingestion_service: IngestionService = Depends(get_ingestion_service)
) -> SearchTestResponse:
    """Lists the snippets nearest to a query with their raw distances, without any threshold."""
    try:
        snippets = await ingestion_service.nearest(payload.query, limit=payload.limit)
    except RetrievalError as e:
        logger.error(f"Test search failed: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL) from e

    results = [
        SearchTestResult(
            id=snippet.id,
            distance=snippet.distance,
            preview=snippet.content[:300],
            content_length=len(snippet.content),
        )
        for snippet in snippets
    ]
    return SearchTestResponse(query=payload.query, total_documents=len(results), results=results)
