"""Similarity search over the vector index with normalized outcomes."""

from __future__ import annotations

import logging
from typing import Any

from contract_rag.config import RetrievalConfig
from contract_rag.retrieval.embedding_cache import CachedEmbedder
from contract_rag.retrieval.vector_index import VectorIndex
from contract_rag.types import RetrievalMatch, SearchResult

logger = logging.getLogger(__name__)

NOT_CONFIGURED_ERROR = "Vector index not configured. Check DATABASE_URL."


class SimilaritySearch:
    """Wraps a `VectorIndex` so callers always receive a `SearchResult`.

    Ranking is delegated to the index. This layer only enforces the
    `similarity > threshold` invariant and the `limit` cap, and turns
    configuration absence and remote errors into `success=False`.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedder: CachedEmbedder | None = None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.index = index
        self.embedder = embedder
        self.config = config or RetrievalConfig()

    def is_available(self) -> bool:
        return self.index.is_configured()

    async def search(self, vector: list[float], threshold: float, limit: int) -> SearchResult:
        if not self.index.is_configured():
            return SearchResult(success=False, error=NOT_CONFIGURED_ERROR)

        try:
            rows = await self.index.match(vector, threshold, limit)
            matches = [_to_match(row) for row in rows or []]
        except Exception as exc:
            logger.error(f"Vector search failed: {exc}")
            return SearchResult(success=False, error=f"Vector search failed: {exc}")

        matches = [match for match in matches if match.similarity > threshold][:limit]
        return SearchResult(success=True, data=matches)

    async def find_similar(self, text: str, limit: int = 3) -> list[RetrievalMatch]:
        """Embed `text` through the shared cache and return matching references."""
        if self.embedder is None:
            raise RuntimeError("find_similar requires a CachedEmbedder")

        embedded = await self.embedder.safe_embed(text)
        if not embedded.success or embedded.vector is None:
            logger.warning(f"Failed to embed search text ({embedded.reason}), returning no results")
            return []

        result = await self.search(embedded.vector, self.config.similarity_threshold, limit)
        return result.data if result.success else []


def _to_match(row: dict[str, Any]) -> RetrievalMatch:
    reference_id = row.get("reference_id") or row.get("template_id") or ""
    return RetrievalMatch(
        reference_id=str(reference_id),
        content=str(row.get("content") or ""),
        similarity=float(row.get("similarity") or 0.0),
        metadata=dict(row.get("metadata") or {}),
    )
