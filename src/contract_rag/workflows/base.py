"""Terminal failure phase shared by both workflows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class WorkflowFailed:
    """Hard failure of a workflow run. Carries only the error message."""

    error: str

    @property
    def ok(self) -> bool:
        return False

    def as_dict(self) -> dict[str, Any]:
        return {"phase": "error", "error": self.error}
