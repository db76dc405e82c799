import csv
import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pypdf import PdfReader

from student_rag.core import text
from student_rag.core.config import Settings
from student_rag.rag import chunker
from student_rag.rag.chunker import ChunkDraft
from student_rag.rag.embedder import EmbeddingGateway
from student_rag.rag.store import DocumentStore, StoredSnippet

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".csv", ".pdf", ".txt")


@dataclass
class IngestResult:
    """Result of storing one upload or note."""

    filename: str
    snippet_ids: list[str] = field(default_factory=list)

    @property
    def chunk_count(self) -> int:
        return len(self.snippet_ids)


def classify_document(content: str) -> str:
    """Coarse label for document listings."""
    if "Student ID" in content or "student_id" in content:
        return "Student Data"
    if re.search(r"Record .*:", content):
        return "CSV Data"
    if len(content) > 1000:
        return "Large Document"
    return "Text Document"


def parse_csv(data: bytes) -> list[dict[str, str]]:
    """Decode CSV bytes into rows keyed by header."""
    reader = csv.DictReader(io.StringIO(data.decode("utf-8-sig")))
    return [{key.strip(): value for key, value in row.items() if key is not None} for row in reader]


def extract_pdf_text(data: bytes) -> str:
    """Text of every page, pages separated by blank lines."""
    try:
        reader = PdfReader(io.BytesIO(data))
        return "\n\n".join(page.extract_text() or "" for page in reader.pages)
    except Exception as e:
        raise ValueError(f"Could not read PDF: {e}") from e


class IngestionService:
    """
    Service for turning uploads and notes into stored snippets.
    Handles parsing, chunking, embedding and persistence.
    """

    def __init__(self, store: DocumentStore, embedder: EmbeddingGateway, settings: Settings | None = None):
        self.store = store
        self.embedder = embedder
        self.settings = settings or Settings()

    async def _store_chunks(self, chunks: list[ChunkDraft]) -> list[str]:
        """Embed chunk contents in batches and insert them in order."""
        if not chunks:
            return []

        embeddings = await self.embedder.aembed_many([chunk.content for chunk in chunks])
        if embeddings.shape[0] != len(chunks):
            raise RuntimeError("Mismatch between number of chunks and generated embeddings.")

        snippet_ids = []
        for chunk, embedding in zip(chunks, embeddings, strict=True):
            snippet_ids.append(await self.store.insert(chunk.content, embedding, chunk.metadata))
        return snippet_ids

    async def ingest_table(self, rows: list[dict[str, Any]], filename: str) -> IngestResult:
        """
        Store tabular rows as one summary snippet plus one snippet per row.

        Raises:
            ValueError: If there are no data rows
        """
        chunks = chunker.chunk_table(rows, filename)
        if not chunks:
            raise ValueError("CSV file has no data rows.")

        snippet_ids = await self._store_chunks(chunks)
        logger.info(f"Stored {len(snippet_ids)} snippets (1 summary + {len(rows)} records) from {filename}")
        return IngestResult(filename=filename, snippet_ids=snippet_ids)

    async def ingest_text(self, raw_text: str, filename: str, file_type: str = ".txt") -> IngestResult:
        """
        Store free text as sentence-window snippets.

        Raises:
            ValueError: If the text is empty or too long
        """
        if len(raw_text) > self.settings.MAX_INPUT_CHARS:
            raise ValueError(f"Input text is too long (max: {self.settings.MAX_INPUT_CHARS} characters).")
        if not raw_text.strip():
            raise ValueError("No content could be extracted from the file.")

        chunks = chunker.chunk_text_document(
            raw_text,
            filename,
            file_type,
            max_sent=self.settings.CHUNK_MAX_SENTENCES,
            overlap=self.settings.CHUNK_OVERLAP_SENTENCES,
        )
        snippet_ids = await self._store_chunks(chunks)
        logger.info(f"Stored {len(snippet_ids)} snippets from {filename}")
        return IngestResult(filename=filename, snippet_ids=snippet_ids)

    async def ingest_upload(self, filename: str, data: bytes) -> IngestResult:
        """
        Parse an uploaded file by extension and store its snippets.

        Raises:
            ValueError: If the file type is unsupported or nothing could be extracted
        """
        extension = Path(filename or "").suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise ValueError(f"Unsupported file type {extension or '(none)'!r}; expected one of {SUPPORTED_EXTENSIONS}.")

        if extension == ".csv":
            return await self.ingest_table(parse_csv(data), filename)
        if extension == ".pdf":
            return await self.ingest_text(extract_pdf_text(data), filename, extension)
        return await self.ingest_text(data.decode("utf-8"), filename, extension)

    async def add_note(self, student_id: str, note_text: str, image_url: str | None = None) -> str:
        """Store a manually entered note about a student as a single snippet."""
        if not note_text or not note_text.strip():
            raise ValueError("Note text cannot be empty.")

        metadata = {
            "type": "student_note",
            "student_id": str(student_id),
            "has_image": bool(image_url),
            "created_from": "manual_entry",
        }
        if image_url:
            metadata["image_url"] = image_url

        embedding = await self.embedder.aembed(note_text)
        snippet_id = await self.store.insert(note_text, embedding, metadata)
        logger.info(f"Stored note {snippet_id} for student {student_id}")
        return snippet_id

    async def list_documents(self) -> list[dict[str, Any]]:
        return [self.summarize(snippet) for snippet in await self.store.list_snippets()]

    async def delete_document(self, snippet_id: str) -> dict[str, Any] | None:
        deleted = await self.store.delete(snippet_id)
        if deleted is None:
            return None
        logger.info(f"Deleted snippet {snippet_id}")
        return self.summarize(deleted)

    async def clear_documents(self) -> int:
        removed = await self.store.clear()
        logger.info(f"Deleted all {removed} snippets")
        return removed

    async def find_content(self, term: str) -> list[StoredSnippet]:
        return await self.store.search_content(term)

    async def nearest(self, query: str, limit: int = 10) -> list[StoredSnippet]:
        """Nearest snippets to `query` regardless of distance."""
        embedding = await self.embedder.aembed(query)
        return await self.store.query_by_distance(embedding, threshold=None, limit=limit)

    @staticmethod
    def summarize(snippet: StoredSnippet) -> dict[str, Any]:
        return {
            "id": snippet.id,
            "preview": text.preview(snippet.content),
            "content_length": len(snippet.content),
            "document_type": classify_document(snippet.content),
            "metadata": snippet.metadata,
            "created_at": snippet.created_at,
        }
