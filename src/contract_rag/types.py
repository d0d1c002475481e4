"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ReferenceItem:
    """A stored reference document (contract template)."""

    id: str
    title: str
    content: str
    category: str = "other"
    usage_count: int = 0
    description: str | None = None


@dataclass(slots=True)
class ArtifactDraft:
    """Fields supplied when persisting a newly generated contract."""

    title: str
    content: str
    artifact_type: str
    status: str = "draft"
    parties: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Artifact:
    """A persisted contract with its lifecycle status."""

    id: str
    title: str
    content: str
    artifact_type: str
    status: str
    parties: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


@dataclass(slots=True)
class EmbedResult:
    """Outcome of a cached, rate-limited embedding attempt."""

    success: bool
    vector: list[float] | None = None
    reason: str | None = None


@dataclass(slots=True)
class RetrievalMatch:
    """A reference ranked by the vector index."""

    reference_id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def title(self) -> str | None:
        value = self.metadata.get("title")
        return str(value) if value else None


@dataclass(slots=True)
class SearchResult:
    """Normalized vector-search outcome.

    `success=True` with an empty `data` list means "no matches", which callers
    must treat differently from `success=False` ("search failed").
    """

    success: bool
    data: list[RetrievalMatch] = field(default_factory=list)
    error: str | None = None
