"""Request-scoped access to the services wired onto `app.state` by `create_app`."""

from fastapi import Request

from student_rag.services.ingestion_service import IngestionService
from student_rag.services.qa_service import QAService


def get_qa_service(request: Request) -> QAService:
    return request.app.state.qa_service


def get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service
