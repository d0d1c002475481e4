"""Run tracing and summary metrics for workflow invocations."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class WorkflowTrace:
    trace_id: str
    timestamp_utc: str
    workflow: str
    outcome: str
    rag_used: bool
    reference_id: str | None
    candidate_count: int
    error: str | None
    input_tokens: int
    output_tokens: int
    latency_ms: float


class WorkflowTraceStore:
    """In-memory record of finished workflow runs."""

    def __init__(self, max_records: int = 1000) -> None:
        self.max_records = max_records
        self._records: dict[str, WorkflowTrace] = {}

    def record(
        self,
        *,
        workflow: str,
        outcome: str,
        rag_used: bool,
        reference_id: str | None = None,
        candidate_count: int = 0,
        error: str | None = None,
        input_tokens: int = 0,
        output_tokens: int = 0,
        latency_ms: float = 0.0,
    ) -> WorkflowTrace:
        trace = WorkflowTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            workflow=workflow,
            outcome=outcome,
            rag_used=rag_used,
            reference_id=reference_id,
            candidate_count=candidate_count,
            error=error,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            latency_ms=latency_ms,
        )
        self._records[trace.trace_id] = trace
        while len(self._records) > self.max_records:
            del self._records[next(iter(self._records))]
        return trace

    def get(self, trace_id: str) -> WorkflowTrace:
        trace = self._records.get(trace_id)
        if trace is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return trace

    def list_recent(self, limit: int = 20) -> list[WorkflowTrace]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate run metrics for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_runs": 0,
                "failed_runs": 0,
                "rag_ratio": 0.0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "total_input_tokens": 0,
                "total_output_tokens": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        return {
            "total_runs": total,
            "failed_runs": sum(1 for record in records if record.outcome == "failed"),
            "rag_ratio": sum(1 for record in records if record.rag_used) / total,
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "total_input_tokens": sum(record.input_tokens for record in records),
            "total_output_tokens": sum(record.output_tokens for record in records),
        }


class Timer:
    """Simple context timer used by the workflows."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))
