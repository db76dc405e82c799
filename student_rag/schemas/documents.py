from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class DocumentUploadResponse(BaseModel):
    filename: str = Field(..., description="The uploaded file's original name.")
    chunks: int = Field(..., description="The number of snippets created.")
    snippet_ids: list[str] = Field(..., description="IDs of the created snippets.")
    message: str


class DocumentSummary(BaseModel):
    id: str
    preview: str
    content_length: int
    document_type: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class DocumentListResponse(BaseModel):
    total_documents: int
    documents: list[DocumentSummary]


class DeleteDocumentResponse(BaseModel):
    message: str
    deleted_document: DocumentSummary


class ClearDocumentsRequest(BaseModel):
    confirm: str = Field(..., description='Must be "DELETE_ALL".')


class ClearDocumentsResponse(BaseModel):
    message: str
    documents_deleted: int


class ContentMatch(BaseModel):
    id: str
    preview: str


class ContentSearchResponse(BaseModel):
    term: str
    found: bool
    matches: list[ContentMatch]


class NoteRequest(BaseModel):
    student_id: str = Field(..., min_length=1, description="The student the note is about.")
    note_text: str = Field(..., min_length=1, description="The note body.")
    image_url: str | None = Field(None, description="Optional link to an attached image.")


class NoteResponse(BaseModel):
    snippet_id: str
    student_id: str
