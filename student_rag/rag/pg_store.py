"""PostgreSQL + pgvector document store built on Tortoise ORM."""

import json
import logging
import uuid
from typing import Any

import numpy as np
from tortoise.connection import connections
from tortoise.exceptions import BaseORMException

from ..core.errors import ProviderError
from ..models.snippet import Snippet
from .store import DocumentStore, StoredSnippet

logger = logging.getLogger(__name__)

_COLUMNS = "id, content, COALESCE(metadata, '{}'::jsonb) AS metadata, created_at"


def _like_pattern(term: str) -> str:
    """Substring ILIKE pattern matching `term` literally (escape character is a backslash)."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _to_snippet(row: dict[str, Any]) -> StoredSnippet:
    metadata = row.get("metadata") or {}
    if isinstance(metadata, str):
        # asyncpg returns jsonb as text unless a codec is registered
        metadata = json.loads(metadata)
    distance = row.get("distance")
    return StoredSnippet(
        id=str(row["id"]),
        content=row["content"],
        metadata=metadata,
        created_at=row.get("created_at"),
        distance=float(distance) if distance is not None else None,
    )


class PgVectorStore(DocumentStore):
    """
    Store backed by the `snippets` table.

    Tortoise must be initialised before use. Driver and ORM failures surface
    as ProviderError.
    """

    def __init__(self, dimension: int = 768, connection_name: str = "default"):
        self.dimension = dimension
        self.connection_name = connection_name

    async def _fetch(self, sql: str, params: list[Any]) -> list[StoredSnippet]:
        try:
            conn = connections.get(self.connection_name)
            _, rows = await conn.execute_query(sql, params)
        except (BaseORMException, OSError) as e:
            raise ProviderError(f"Document store query failed: {e}") from e
        return [_to_snippet(dict(row)) for row in rows]

    async def insert(self, content: str, embedding: np.ndarray, metadata: dict[str, Any] | None = None) -> str:
        vector = self.validate(content, embedding)
        try:
            snippet = await Snippet.create(content=content, metadata=metadata or {}, embedding=vector.tolist())
        except (BaseORMException, OSError) as e:
            raise ProviderError(f"Could not store snippet: {e}") from e
        return str(snippet.id)

    async def query_exact(self, entity_id: str, limit: int = 3) -> list[StoredSnippet]:
        sql = f"""
            SELECT {_COLUMNS}
            FROM snippets
            WHERE metadata->>'student_id' = $1 OR content ILIKE $2 ESCAPE '\\'
            ORDER BY
                CASE WHEN metadata->>'student_id' = $1 THEN 1 ELSE 2 END,
                length(content) DESC
            LIMIT $3
        """
        return await self._fetch(sql, [entity_id, _like_pattern(entity_id), limit])

    async def query_by_distance(
        self, embedding: np.ndarray, threshold: float | None, limit: int
    ) -> list[StoredSnippet]:
        query_vec = str(self.check_dimension(embedding).tolist())
        if threshold is None:
            sql = f"""
                SELECT {_COLUMNS}, embedding <-> $1::vector AS distance
                FROM snippets
                ORDER BY embedding <-> $1::vector
                LIMIT $2
            """
            return await self._fetch(sql, [query_vec, limit])

        sql = f"""
            SELECT {_COLUMNS}, embedding <-> $1::vector AS distance
            FROM snippets
            WHERE embedding <-> $1::vector < $2
            ORDER BY embedding <-> $1::vector
            LIMIT $3
        """
        return await self._fetch(sql, [query_vec, threshold, limit])

    async def get(self, snippet_id: str) -> StoredSnippet | None:
        try:
            snippet_uuid = uuid.UUID(str(snippet_id))
        except ValueError:
            return None
        rows = await self._fetch(f"SELECT {_COLUMNS} FROM snippets WHERE id = $1", [snippet_uuid])
        return rows[0] if rows else None

    async def delete(self, snippet_id: str) -> StoredSnippet | None:
        existing = await self.get(snippet_id)
        if existing is None:
            return None
        try:
            await Snippet.filter(id=existing.id).delete()
        except (BaseORMException, OSError) as e:
            raise ProviderError(f"Could not delete snippet {snippet_id}: {e}") from e
        return existing

    async def clear(self) -> int:
        try:
            return await Snippet.all().delete()
        except (BaseORMException, OSError) as e:
            raise ProviderError(f"Could not clear snippets: {e}") from e

    async def count(self) -> int:
        try:
            return await Snippet.all().count()
        except (BaseORMException, OSError) as e:
            raise ProviderError(f"Could not count snippets: {e}") from e

    async def list_snippets(self) -> list[StoredSnippet]:
        return await self._fetch(f"SELECT {_COLUMNS} FROM snippets ORDER BY created_at DESC", [])

    async def search_content(self, term: str) -> list[StoredSnippet]:
        sql = f"SELECT {_COLUMNS} FROM snippets WHERE content ILIKE $1 ESCAPE '\\'"
        return await self._fetch(sql, [_like_pattern(term)])
