"""Record-store contracts consumed by the workflows, with in-memory adapters."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from contract_rag.types import Artifact, ArtifactDraft, ReferenceItem

ARTIFACT_STATUSES = ("draft", "active", "pending", "validated", "archived")


class ReferenceStore(Protocol):
    """Read access to reference documents plus usage accounting."""

    async def list_all(self) -> list[ReferenceItem]:
        """All references in store order."""

    async def get_by_id(self, reference_id: str) -> ReferenceItem | None:
        """One reference, or None when the id is unknown."""

    async def increment_usage(self, reference_id: str) -> None:
        """Bump the usage counter of a reference."""


class ArtifactStore(Protocol):
    """Persistence for generated contracts."""

    async def create(self, draft: ArtifactDraft) -> Artifact:
        """Persist a new contract and return it with its id."""

    async def get_by_id(self, artifact_id: str) -> Artifact | None:
        """One contract, or None when the id is unknown."""

    async def update_status(self, artifact_id: str, status: str) -> Artifact:
        """Change the lifecycle status of a contract."""


class InMemoryReferenceStore:
    """Process-local reference store. Lists most-used references first."""

    def __init__(self, items: list[ReferenceItem] | None = None) -> None:
        self._items: dict[str, ReferenceItem] = {}
        for item in items or []:
            self._items[item.id] = item

    def add(self, item: ReferenceItem) -> ReferenceItem:
        self._items[item.id] = item
        return item

    async def list_all(self) -> list[ReferenceItem]:
        return sorted(self._items.values(), key=lambda item: item.usage_count, reverse=True)

    async def get_by_id(self, reference_id: str) -> ReferenceItem | None:
        return self._items.get(reference_id)

    async def increment_usage(self, reference_id: str) -> None:
        item = self._items.get(reference_id)
        if item is not None:
            item.usage_count += 1


class InMemoryArtifactStore:
    """Process-local contract store."""

    def __init__(self) -> None:
        self._artifacts: dict[str, Artifact] = {}

    def __len__(self) -> int:
        return len(self._artifacts)

    async def create(self, draft: ArtifactDraft) -> Artifact:
        artifact = Artifact(
            id=str(uuid.uuid4()),
            title=draft.title,
            content=draft.content,
            artifact_type=draft.artifact_type,
            status=draft.status,
            parties=list(draft.parties),
            metadata=dict(draft.metadata),
        )
        self._artifacts[artifact.id] = artifact
        return artifact

    async def get_by_id(self, artifact_id: str) -> Artifact | None:
        return self._artifacts.get(artifact_id)

    async def update_status(self, artifact_id: str, status: str) -> Artifact:
        if status not in ARTIFACT_STATUSES:
            raise ValueError(f"Unknown contract status: {status}")
        existing = self._artifacts.get(artifact_id)
        if existing is None:
            raise KeyError(f"Contract not found: {artifact_id}")
        updated = replace(existing, status=status, updated_at=datetime.now(timezone.utc))
        self._artifacts[artifact_id] = updated
        return updated
