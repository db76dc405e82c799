import logging

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile

from student_rag.api.deps import get_ingestion_service
from student_rag.core.errors import RetrievalError
from student_rag.schemas.documents import (
    ClearDocumentsRequest,
    ClearDocumentsResponse,
    ContentMatch,
    ContentSearchResponse,
    DeleteDocumentResponse,
    DocumentListResponse,
    DocumentSummary,
    DocumentUploadResponse,
    NoteRequest,
    NoteResponse,
)
from student_rag.services.ingestion_service import IngestionService

logger = logging.getLogger(__name__)
router = APIRouter()

CLEAR_CONFIRMATION = "DELETE_ALL"
STORE_UNAVAILABLE_DETAIL = "The document store is unavailable right now. Please try again later."


@router.post("/documents", status_code=201, response_model=DocumentUploadResponse)
async def upload_document(
    document: UploadFile = File(...),
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> DocumentUploadResponse:
    """
    Adds a CSV, PDF or plain-text file to the knowledge base.

    CSV files become one summary snippet plus one snippet per row; other files
    are split into sentence windows. The file itself is not kept.
    """
    data = await document.read()
    try:
        result = await ingestion_service.ingest_upload(document.filename or "", data)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except RetrievalError as e:
        logger.error(f"Failed to ingest {document.filename}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=f"Failed to process document: {e}") from e

    return DocumentUploadResponse(
        filename=result.filename,
        chunks=result.chunk_count,
        snippet_ids=result.snippet_ids,
        message=f"Document uploaded and processed into {result.chunk_count} searchable chunks",
    )


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> DocumentListResponse:
    try:
        summaries = await ingestion_service.list_documents()
    except RetrievalError as e:
        logger.error(f"Failed to list documents: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE_DETAIL) from e

    documents = [DocumentSummary(**doc) for doc in summaries]
    return DocumentListResponse(total_documents=len(documents), documents=documents)


@router.get("/documents/search", response_model=ContentSearchResponse)
async def search_documents(
    term: str = Query(..., min_length=1, description="Case-insensitive text to look for."),
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> ContentSearchResponse:
    """Checks whether any stored snippet contains a piece of text."""
    try:
        snippets = await ingestion_service.find_content(term)
    except RetrievalError as e:
        logger.error(f"Content search for {term!r} failed: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE_DETAIL) from e

    matches = [ContentMatch(id=snippet.id, preview=snippet.content[:500]) for snippet in snippets]
    return ContentSearchResponse(term=term, found=bool(matches), matches=matches)


@router.delete("/documents/{snippet_id}", response_model=DeleteDocumentResponse)
async def delete_document(
    snippet_id: str,
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> DeleteDocumentResponse:
    try:
        deleted = await ingestion_service.delete_document(snippet_id)
    except RetrievalError as e:
        logger.error(f"Failed to delete document {snippet_id}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE_DETAIL) from e

    if deleted is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return DeleteDocumentResponse(
        message=f"Document {snippet_id} deleted successfully",
        deleted_document=DocumentSummary(**deleted),
    )


@router.delete("/documents", response_model=ClearDocumentsResponse)
async def clear_documents(
    payload: ClearDocumentsRequest = Body(...),
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> ClearDocumentsResponse:
    """Deletes every snippet. Requires `{"confirm": "DELETE_ALL"}`."""
    if payload.confirm != CLEAR_CONFIRMATION:
        raise HTTPException(
            status_code=400,
            detail=f'Confirmation required: send {{"confirm": "{CLEAR_CONFIRMATION}"}} to delete all documents',
        )
    try:
        removed = await ingestion_service.clear_documents()
    except RetrievalError as e:
        logger.error(f"Failed to delete all documents: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE_DETAIL) from e
    return ClearDocumentsResponse(message=f"All {removed} documents deleted", documents_deleted=removed)


@router.post("/notes", status_code=201, response_model=NoteResponse)
async def add_note(
    payload: NoteRequest,
    ingestion_service: IngestionService = Depends(get_ingestion_service),
) -> NoteResponse:
    """Records a note about a student and makes it searchable."""
    try:
        snippet_id = await ingestion_service.add_note(payload.student_id, payload.note_text, payload.image_url)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except RetrievalError as e:
        logger.error(f"Failed to store note for student {payload.student_id}: {e}", exc_info=True)
        raise HTTPException(status_code=503, detail=f"Failed to add student note: {e}") from e
    return NoteResponse(snippet_id=snippet_id, student_id=payload.student_id)
