"""Reference indexing: embed -> upsert into the vector index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from contract_rag.retrieval.embedding_cache import CachedEmbedder
from contract_rag.retrieval.search import NOT_CONFIGURED_ERROR
from contract_rag.retrieval.vector_index import VectorIndex
from contract_rag.storage.stores import ReferenceStore
from contract_rag.types import ReferenceItem

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BackfillReport:
    indexed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.indexed) + len(self.failed)


class ReferenceIndexer:
    """Keeps the vector index in step with the reference store.

    Embeddings go through the shared `CachedEmbedder`, so indexing competes
    for the same rate budget as the workflows. Items rejected by the limiter
    are reported as failed and can be retried by running `backfill` again.
    """

    def __init__(
        self,
        references: ReferenceStore,
        embedder: CachedEmbedder,
        index: VectorIndex,
    ) -> None:
        self._references = references
        self._embedder = embedder
        self._index = index

    async def index_reference(self, item: ReferenceItem) -> str | None:
        """Index one reference. Returns an error reason, or None on success."""

        if not self._index.is_configured():
            return NOT_CONFIGURED_ERROR

        embedded = await self._embedder.safe_embed(item.content)
        if not embedded.success or embedded.vector is None:
            return embedded.reason or "embedding failed"

        try:
            await self._index.upsert(
                item.id,
                item.content,
                embedded.vector,
                {"title": item.title, "category": item.category},
            )
        except Exception as exc:
            logger.error(f"Failed to store embedding for reference {item.id}: {exc}")
            return str(exc) or type(exc).__name__
        return None

    async def backfill(self, items: list[ReferenceItem] | None = None) -> BackfillReport:
        """Index the given references, or every stored reference."""

        targets = items if items is not None else await self._references.list_all()
        report = BackfillReport()
        for item in targets:
            error = await self.index_reference(item)
            if error is None:
                report.indexed.append(item.id)
            else:
                report.failed.append(item.id)
                report.errors[item.id] = error

        logger.info(
            f"Backfill finished: {len(report.indexed)} indexed, "
            f"{len(report.failed)} failed, {report.total} total"
        )
        return report
