from typing import Any

from pydantic import BaseModel, Field


class ConversationTurn(BaseModel):
    role: str = Field(..., description="Who produced the turn, e.g. 'user' or 'assistant'.")
    text: str = Field(..., description="The turn's text.")


class QueryRequest(BaseModel):
    query: str = Field(..., min_length=1, description="The question to answer.")
    conversation_history: list[ConversationTurn] = Field(
        default_factory=list, description="Earlier turns of the conversation, oldest first."
    )


class HitOut(BaseModel):
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    relevance_score: float
    match_type: str
    distance: float | None = None


class QueryResponse(BaseModel):
    message: str = Field(..., description="The answer shown to the user.")
    type: str = Field(..., description="rag_answer, direct_answer or no_context.")
    query: str = Field(..., description="The question as received.")
    raw_context: str = Field("", description="Snippet contents joined with blank lines.")
    chart_suggestion: str | None = Field(None, description="type|title|description when a chart would help.")
    hits: list[HitOut] = Field(default_factory=list, description="The ranked snippets used as context.")


class SearchTestRequest(BaseModel):
    query: str = Field(..., min_length=1)
    limit: int = Field(10, ge=1, le=50)


class SearchTestResult(BaseModel):
    id: str
    distance: float
    preview: str
    content_length: int


class SearchTestResponse(BaseModel):
    query: str
    total_documents: int
    results: list[SearchTestResult]
