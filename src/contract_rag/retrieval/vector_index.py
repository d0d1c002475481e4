"""Vector index interfaces and concrete adapters."""

from __future__ import annotations

import asyncio
import logging
from contextlib import closing
from dataclasses import dataclass, field
from math import sqrt
from typing import Any, Protocol

import psycopg2
from psycopg2.extras import Json, RealDictCursor

logger = logging.getLogger(__name__)


class VectorIndex(Protocol):
    """Remote similarity index over reference embeddings."""

    def is_configured(self) -> bool:
        """Whether the index can be called at all."""

    async def match(
        self, query_vector: list[float], threshold: float, limit: int
    ) -> list[dict[str, Any]]:
        """Return rows `{reference_id, content, similarity, metadata}`, best first."""

    async def upsert(
        self,
        reference_id: str,
        content: str,
        vector: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Insert or replace the embedding stored for a reference."""


@dataclass(slots=True)
class _StoredVector:
    content: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


class InMemoryVectorIndex:
    """Deterministic vector index used for tests and local prototyping."""

    def __init__(self) -> None:
        self._store: dict[str, _StoredVector] = {}

    def __len__(self) -> int:
        return len(self._store)

    def is_configured(self) -> bool:
        return True

    async def match(
        self, query_vector: list[float], threshold: float, limit: int
    ) -> list[dict[str, Any]]:
        scored = [
            {
                "reference_id": reference_id,
                "content": record.content,
                "similarity": _cosine_similarity(query_vector, record.vector),
                "metadata": dict(record.metadata),
            }
            for reference_id, record in self._store.items()
        ]
        ranked = sorted(
            (row for row in scored if row["similarity"] > threshold),
            key=lambda row: row["similarity"],
            reverse=True,
        )
        return ranked[:limit]

    async def upsert(
        self,
        reference_id: str,
        content: str,
        vector: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._store[reference_id] = _StoredVector(
            content=content, vector=vector, metadata=dict(metadata or {})
        )


class PgVectorIndex:
    """pgvector-backed index using the `match_templates` SQL function.

    Expects the `template_embeddings` table and the
    `match_templates(query_embedding, match_threshold, match_count)` function.
    psycopg2 is blocking, so each call runs in a worker thread.
    """

    def __init__(self, db_url: str | None) -> None:
        self.db_url = db_url

    def is_configured(self) -> bool:
        return bool(self.db_url)

    def _get_connection(self):
        return psycopg2.connect(self.db_url)

    async def match(
        self, query_vector: list[float], threshold: float, limit: int
    ) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._match_sync, query_vector, threshold, limit)

    async def upsert(
        self,
        reference_id: str,
        content: str,
        vector: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await asyncio.to_thread(
            self._upsert_sync, reference_id, content, vector, metadata or {}
        )

    def _match_sync(
        self, query_vector: list[float], threshold: float, limit: int
    ) -> list[dict[str, Any]]:
        with closing(self._get_connection()) as conn, conn:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    """
                    SELECT template_id, content, similarity, metadata
                    FROM match_templates(%s::vector, %s, %s)
                    """,
                    (_vector_literal(query_vector), threshold, limit),
                )
                rows = cur.fetchall()

        return [
            {
                "reference_id": str(row["template_id"]),
                "content": row["content"],
                "similarity": float(row["similarity"]),
                "metadata": row["metadata"] or {},
            }
            for row in rows
        ]

    def _upsert_sync(
        self,
        reference_id: str,
        content: str,
        vector: list[float],
        metadata: dict[str, Any],
    ) -> None:
        with closing(self._get_connection()) as conn, conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM template_embeddings WHERE template_id = %s",
                    (reference_id,),
                )
                cur.execute(
                    """
                    INSERT INTO template_embeddings (template_id, content, embedding, metadata)
                    VALUES (%s, %s, %s::vector, %s)
                    """,
                    (reference_id, content, _vector_literal(vector), Json(metadata)),
                )
            conn.commit()
        logger.info(f"Stored embedding for reference {reference_id}")


def _vector_literal(vector: list[float]) -> str:
    return "[" + ",".join(f"{value:.8f}" for value in vector) + "]"


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
