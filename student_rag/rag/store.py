"""
Document store contract and an in-memory implementation.

Snippets are immutable once inserted. Distances are Euclidean (L2) over the
embedding space, and every vector in a store has the same dimension.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, NamedTuple

import numpy as np

from ..core.errors import ConfigurationError


class StoredSnippet(NamedTuple):
    """A snippet row as returned by a store query."""

    id: str
    content: str
    metadata: dict[str, Any]
    created_at: datetime | None = None
    distance: float | None = None


class DocumentStore(ABC):
    """Persistent text store supporting exact lookups and vector-distance queries."""

    dimension: int

    @abstractmethod
    async def insert(self, content: str, embedding: np.ndarray, metadata: dict[str, Any] | None = None) -> str:
        """Store a snippet and return its generated ID."""

    @abstractmethod
    async def query_exact(self, entity_id: str, limit: int = 3) -> list[StoredSnippet]:
        """
        Snippets whose metadata `student_id` equals `entity_id` or whose content contains it.

        Metadata matches rank above content matches; ties go to longer content.
        """

    @abstractmethod
    async def query_by_distance(
        self, embedding: np.ndarray, threshold: float | None, limit: int
    ) -> list[StoredSnippet]:
        """Snippets closer than `threshold` (any distance when None), nearest first."""

    @abstractmethod
    async def get(self, snippet_id: str) -> StoredSnippet | None:
        """Fetch one snippet by ID."""

    @abstractmethod
    async def delete(self, snippet_id: str) -> StoredSnippet | None:
        """Delete one snippet, returning it, or None when it does not exist."""

    @abstractmethod
    async def clear(self) -> int:
        """Delete every snippet and return how many were removed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored snippets."""

    @abstractmethod
    async def list_snippets(self) -> list[StoredSnippet]:
        """All snippets, newest first."""

    @abstractmethod
    async def search_content(self, term: str) -> list[StoredSnippet]:
        """Case-insensitive substring lookup over content."""

    def validate(self, content: str, embedding: np.ndarray) -> np.ndarray:
        """Check an insert's content and vector, returning the vector as a flat float array."""
        if not content or not content.strip():
            raise ValueError("Snippet content cannot be empty.")
        return self.check_dimension(embedding)

    def check_dimension(self, embedding: np.ndarray) -> np.ndarray:
        vector = np.asarray(embedding, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.dimension:
            raise ConfigurationError(
                f"Embedding has dimension {vector.shape[0]} but the store holds {self.dimension}-dim vectors."
            )
        return vector


class _Row(NamedTuple):
    snippet: StoredSnippet
    vector: np.ndarray


class InMemoryStore(DocumentStore):
    """Dictionary-backed store; distances computed with numpy."""

    def __init__(self, dimension: int = 768):
        self.dimension = dimension
        self._rows: dict[str, _Row] = {}

    async def insert(self, content: str, embedding: np.ndarray, metadata: dict[str, Any] | None = None) -> str:
        vector = self.validate(content, embedding)
        snippet_id = str(uuid.uuid4())
        snippet = StoredSnippet(
            id=snippet_id,
            content=content,
            metadata=dict(metadata or {}),
            created_at=datetime.now(timezone.utc),
        )
        self._rows[snippet_id] = _Row(snippet, vector)
        return snippet_id

    async def query_exact(self, entity_id: str, limit: int = 3) -> list[StoredSnippet]:
        needle = entity_id.lower()
        ranked = []
        for row in self._rows.values():
            snippet = row.snippet
            metadata_match = str(snippet.metadata.get("student_id")) == entity_id
            if metadata_match or needle in snippet.content.lower():
                ranked.append((0 if metadata_match else 1, -len(snippet.content), snippet))

        ranked.sort(key=lambda item: item[:2])
        return [snippet for _, _, snippet in ranked[:limit]]

    async def query_by_distance(
        self, embedding: np.ndarray, threshold: float | None, limit: int
    ) -> list[StoredSnippet]:
        if not self._rows or limit <= 0:
            return []

        query = self.check_dimension(embedding)
        rows = list(self._rows.values())
        distances = np.linalg.norm(np.vstack([row.vector for row in rows]) - query, axis=1)

        order = np.argsort(distances, kind="stable")
        results = []
        for idx in order:
            distance = float(distances[idx])
            if threshold is not None and distance >= threshold:
                break
            results.append(rows[idx].snippet._replace(distance=distance))
            if len(results) >= limit:
                break
        return results

    async def get(self, snippet_id: str) -> StoredSnippet | None:
        row = self._rows.get(str(snippet_id))
        return row.snippet if row else None

    async def delete(self, snippet_id: str) -> StoredSnippet | None:
        row = self._rows.pop(str(snippet_id), None)
        return row.snippet if row else None

    async def clear(self) -> int:
        removed = len(self._rows)
        self._rows.clear()
        return removed

    async def count(self) -> int:
        return len(self._rows)

    async def list_snippets(self) -> list[StoredSnippet]:
        return [row.snippet for row in reversed(self._rows.values())]

    async def search_content(self, term: str) -> list[StoredSnippet]:
        needle = term.lower()
        return [row.snippet for row in self._rows.values() if needle in row.snippet.content.lower()]
