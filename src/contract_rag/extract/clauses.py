"""Key-clause compression for long reference documents."""

from __future__ import annotations

import re

from contract_rag.config import ClauseConfig

_SECTION_NAMES = (
    r"definitions?",
    r"termination",
    r"terms?",
    r"payment",
    r"compensation",
    r"confidential(?:ity)?",
    r"non-disclosure",
    r"intellectual\s+property",
    r"ip\s+rights",
    r"warrant(?:y|ies)",
    r"liability",
    r"indemnif\w*",
    r"dispute\w*",
    r"governing\s+law",
    r"amendments?",
    r"signatures?",
)

_HEADLINE = re.compile(
    r"^[ \t]*(?:\d+(?:\.\d+)*\.?[ \t]*)?(?:" + "|".join(_SECTION_NAMES) + r")\b[^\n]*$",
    flags=re.IGNORECASE | re.MULTILINE,
)
# A top-level numbered heading or an upper-case word ends a clause body.
# Numbered sub-items such as "1.1" stay inside the body.
_BOUNDARY = re.compile(
    r"^[ \t]*(?:\d+\.?[ \t]+[A-Z]|(?:\d+\.?[ \t]*)?[A-Z]{3,})", flags=re.MULTILINE
)


def extract_key_clauses(text: str, config: ClauseConfig | None = None) -> str:
    """Pull recognizable contract sections out of `text`.

    Each recognized heading contributes its heading line plus up to
    `clause_body_chars` of the body that follows, terminated with `...`.
    Without any recognized heading the first `fallback_chars` characters are
    returned instead. Output never exceeds `max_output_chars`.

    This is a heuristic: lookalike headings in body text are picked up and
    unconventional headings are missed.
    """

    config = config or ClauseConfig()
    clauses: list[str] = []

    for match in _HEADLINE.finditer(text):
        heading = match.group(0).strip()
        body_start = match.end() + 1
        body_end = _next_boundary(text, body_start)
        body = text[body_start:body_end].strip()[: config.clause_body_chars]
        if body:
            clauses.append(f"{heading}\n{body}...")

    if not clauses:
        return text[: min(config.fallback_chars, config.max_output_chars)]

    return "\n\n".join(clauses)[: config.max_output_chars]


def _next_boundary(text: str, start: int) -> int:
    ends = [
        found.start()
        for found in (_BOUNDARY.search(text, start), _HEADLINE.search(text, start))
        if found is not None
    ]
    return min(ends, default=len(text))
