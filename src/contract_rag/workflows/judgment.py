"""Parsing of structured compliance judgments out of raw model text."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from contract_rag.errors import InvalidResponseFormat

JudgmentStatus = Literal["compliant", "issues_found", "failed"]
Severity = Literal["error", "warning", "info"]

# Persisted contract status for each judgment status.
LIFECYCLE_STATUS: dict[str, str] = {
    "compliant": "validated",
    "issues_found": "pending",
    "failed": "draft",
}


class ValidationIssue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    severity: Severity = Field(default="info", alias="type")
    message: str = Field(default="", validation_alias=AliasChoices("message", "description"))
    section: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> str:
        normalized = str(value or "info").strip().lower()
        return normalized if normalized in {"error", "warning", "info"} else "info"

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value: Any) -> Any:
        return "" if value is None else value


class ValidationJudgment(BaseModel):
    status: JudgmentStatus
    summary: str = ""
    issues: list[ValidationIssue] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        return str(value).strip().lower().replace("-", "_").replace(" ", "_")

    @field_validator("issues", mode="before")
    @classmethod
    def _default_issues(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def lifecycle_status(self) -> str:
        return LIFECYCLE_STATUS[self.status]


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first well-formed JSON object embedded in `text`.

    Tolerates prose and markdown fences around the object.
    """

    decoder = json.JSONDecoder()
    position = text.find("{")
    while position != -1:
        try:
            payload, _ = decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            position = text.find("{", position + 1)
            continue
        return payload
    return None


def parse_judgment(text: str) -> ValidationJudgment:
    payload = extract_json_object(text)
    if payload is None:
        raise InvalidResponseFormat()
    try:
        return ValidationJudgment.model_validate(payload)
    except ValidationError as exc:
        raise InvalidResponseFormat(
            f"Invalid validation response format: {exc.error_count()} schema error(s)"
        ) from exc
