from __future__ import annotations

from typing import Any

import pytest

from contract_rag.providers.completer import Completer
from contract_rag.providers.embedder import Embedder
from contract_rag.storage.stores import InMemoryArtifactStore
from contract_rag.types import Artifact, ArtifactDraft


class CountingEmbedder(Embedder):
    """Returns a fixed vector per text and counts provider calls."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        *,
        default: list[float] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0]
        self.error = error
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vectors.get(text, self.default))


class ScriptedCompleter(Completer):
    """Replays a canned response (or raises) and keeps the prompts it saw."""

    def __init__(self, response: str = "", *, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


class StaticVectorIndex:
    """Vector index returning canned rows, for policy tests around the index."""

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        *,
        configured: bool = True,
        error: Exception | None = None,
    ) -> None:
        self.rows = rows or []
        self.configured = configured
        self.error = error
        self.match_calls: list[tuple[float, int]] = []
        self.upserts: list[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def match(
        self, query_vector: list[float], threshold: float, limit: int
    ) -> list[dict[str, Any]]:
        self.match_calls.append((threshold, limit))
        if self.error is not None:
            raise self.error
        return [dict(row) for row in self.rows]

    async def upsert(
        self,
        reference_id: str,
        content: str,
        vector: list[float],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.error is not None:
            raise self.error
        self.upserts.append(reference_id)


class FailingArtifactStore(InMemoryArtifactStore):
    """Artifact store whose writes fail, for persistence-error paths."""

    def __init__(
        self,
        *,
        create_error: Exception | None = None,
        update_error: Exception | None = None,
    ) -> None:
        super().__init__()
        self.create_error = create_error
        self.update_error = update_error

    async def create(self, draft: ArtifactDraft) -> Artifact:
        if self.create_error is not None:
            raise self.create_error
        return await super().create(draft)

    async def update_status(self, artifact_id: str, status: str) -> Artifact:
        if self.update_error is not None:
            raise self.update_error
        return await super().update_status(artifact_id, status)


@pytest.fixture
def counting_embedder() -> CountingEmbedder:
    return CountingEmbedder()
