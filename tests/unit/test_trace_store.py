import json
import logging

import pytest

from contract_rag.obs.logging_config import JSONFormatter, setup_logging
from contract_rag.obs.tracing import WorkflowTraceStore, estimate_token_count


def test_summary_aggregates_runs() -> None:
    store = WorkflowTraceStore()
    assert store.summary()["total_runs"] == 0

    store.record(workflow="generation", outcome="done", rag_used=True, latency_ms=10.0, input_tokens=4)
    store.record(workflow="validation", outcome="failed", rag_used=False, error="boom", latency_ms=30.0)

    summary = store.summary()
    assert summary["total_runs"] == 2
    assert summary["failed_runs"] == 1
    assert summary["rag_ratio"] == 0.5
    assert summary["avg_latency_ms"] == 20.0
    assert summary["total_input_tokens"] == 4


def test_store_is_bounded_and_lookups_fail_for_unknown_ids() -> None:
    store = WorkflowTraceStore(max_records=2)
    first = store.record(workflow="generation", outcome="done", rag_used=False)
    store.record(workflow="generation", outcome="done", rag_used=False)
    last = store.record(workflow="generation", outcome="done", rag_used=False)

    assert len(store.list_recent()) == 2
    assert store.get(last.trace_id) is last
    with pytest.raises(KeyError):
        store.get(first.trace_id)


def test_token_estimate_counts_words_and_punctuation() -> None:
    assert estimate_token_count("Term: two years.") == 5


def test_json_formatter_includes_workflow_fields() -> None:
    record = logging.LogRecord("contract_rag.test", logging.INFO, __file__, 1, "ran %s", ("ok",), None)
    record.workflow = "generation"
    record.rag_used = True

    payload = json.loads(JSONFormatter().format(record))

    assert payload["msg"] == "ran ok"
    assert payload["workflow"] == "generation"
    assert payload["rag_used"] is True
    assert "phase" not in payload


def test_setup_logging_configures_package_logger() -> None:
    logger = setup_logging("debug", json_output=True)

    assert logger.name == "contract_rag"
    assert logger.level == logging.DEBUG
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    logger.handlers.clear()
    logger.propagate = True
