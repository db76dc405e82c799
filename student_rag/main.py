import logging
from contextlib import asynccontextmanager

import dspy
import uvicorn
from fastapi import FastAPI
from tortoise import Tortoise

from student_rag.api import documents, query
from student_rag.core.config import Settings
from student_rag.rag.embedder import EmbeddingGateway
from student_rag.rag.graph import RetrievalPipeline
from student_rag.rag.pg_store import PgVectorStore
from student_rag.rag.store import DocumentStore, InMemoryStore
from student_rag.services.ingestion_service import IngestionService
from student_rag.services.qa_service import QAService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> DocumentStore:
    if settings.STORE_BACKEND == "memory":
        return InMemoryStore(dimension=settings.EMBEDDING_DIM)
    return PgVectorStore(dimension=settings.EMBEDDING_DIM)


def create_app(
    settings: Settings | None = None,
    store: DocumentStore | None = None,
    embedder: EmbeddingGateway | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application around injected dependencies."""
    settings = settings or Settings()
    store = store or build_store(settings)
    embedder = embedder or EmbeddingGateway.from_settings(settings)
    uses_database = isinstance(store, PgVectorStore)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Handle application startup and shutdown events."""
        logger.info("Starting up the application...")
        if uses_database:
            await Tortoise.init(
                db_url=settings.DATABASE_URL,
                modules={"models": ["student_rag.models", "aerich.models"]},
            )
            logger.info("Database initialized successfully")
        if settings.LLM_MODEL:
            dspy.configure(lm=dspy.LM(settings.LLM_MODEL))
            logger.info(f"Answer generation enabled with {settings.LLM_MODEL}")
        if embedder.is_offline:
            logger.warning("No embedding model configured, using offline embeddings")

        yield

        logger.info("Shutting down the application...")
        if uses_database:
            await Tortoise.close_connections()
            logger.info("Database connections closed")

    app = FastAPI(
        title="Student Records RAG",
        description="Answers questions about students, staff and scores from stored notes and records.",
        version="0.1.0",
        lifespan=lifespan,
    )

    pipeline = RetrievalPipeline(store, embedder, settings)
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.qa_service = QAService(pipeline, settings)
    app.state.ingestion_service = IngestionService(store, embedder, settings)

    # Include API routers
    app.include_router(query.router, prefix="/api/v1", tags=["QA"])
    app.include_router(documents.router, prefix="/api/v1", tags=["Documents"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Perform a health check."""
        return {"status": "ok"}

    return app


app = create_app()


def run():
    """Serve the application with uvicorn on the configured port."""
    settings = Settings()
    uvicorn.run("student_rag.main:app", host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    run()
