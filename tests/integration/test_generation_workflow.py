import asyncio
import logging

import pytest

from conftest import CountingEmbedder, FailingArtifactStore, ScriptedCompleter, StaticVectorIndex

from contract_rag.config import EmbeddingCacheConfig
from contract_rag.retrieval.embedding_cache import CachedEmbedder
from contract_rag.retrieval.search import SimilaritySearch
from contract_rag.storage.stores import InMemoryArtifactStore, InMemoryReferenceStore
from contract_rag.types import ReferenceItem
from contract_rag.workflows.base import WorkflowFailed
from contract_rag.workflows.generation import (
    GenerationComplete,
    GenerationRequest,
    GenerationWorkflow,
)

_QUERY = "mutual confidentiality for a two-year pilot"


def _request() -> GenerationRequest:
    return GenerationRequest(
        query=_QUERY,
        title="Pilot NDA",
        contract_type="nda",
        parties=["Acme Corp", "Beta LLC"],
    )


def _build(
    references: list[ReferenceItem],
    index: StaticVectorIndex,
    *,
    completer: ScriptedCompleter | None = None,
    embedder: CountingEmbedder | None = None,
) -> tuple[GenerationWorkflow, InMemoryReferenceStore, InMemoryArtifactStore, ScriptedCompleter]:
    reference_store = InMemoryReferenceStore(references)
    artifact_store = InMemoryArtifactStore()
    llm = completer or ScriptedCompleter("1. PARTIES\nAcme Corp and Beta LLC agree...")
    cached = CachedEmbedder(embedder or CountingEmbedder())
    workflow = GenerationWorkflow(
        references=reference_store,
        artifacts=artifact_store,
        embedder=cached,
        search=SimilaritySearch(index, cached),
        completer=llm,
    )
    return workflow, reference_store, artifact_store, llm


def _references() -> list[ReferenceItem]:
    return [
        ReferenceItem(id="lease-1", title="Office Lease", content="LEASE TEMPLATE", category="lease"),
        ReferenceItem(id="nda-1", title="Standard NDA", content="NDA TEMPLATE", category="nda"),
    ]


def test_no_references_fails_without_creating_artifact() -> None:
    workflow, _, artifacts, llm = _build([], StaticVectorIndex())

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, WorkflowFailed)
    assert "No references available" in outcome.error
    assert outcome.as_dict() == {"phase": "error", "error": outcome.error}
    assert len(artifacts) == 0
    assert llm.prompts == []


def test_end_to_end_rag_selection_persists_metadata() -> None:
    index = StaticVectorIndex(
        rows=[{"reference_id": "nda-1", "content": "NDA TEMPLATE", "similarity": 0.82, "metadata": {"title": "Standard NDA"}}]
    )
    workflow, references, artifacts, llm = _build(_references(), index)

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, GenerationComplete)
    assert outcome.ok
    assert outcome.rag_used is True
    assert outcome.reference_id == "nda-1"
    assert outcome.candidate_count == 1
    assert index.match_calls == [(0.3, 5)]

    artifact = asyncio.run(artifacts.get_by_id(outcome.artifact_id))
    assert artifact is not None
    assert artifact.status == "draft"
    assert artifact.content == outcome.content
    assert artifact.parties == ["Acme Corp", "Beta LLC"]
    assert artifact.metadata["rag_enabled"] is True
    assert artifact.metadata["generated_from"] == "nda-1"
    assert artifact.metadata["rag_candidates"] == 1

    nda = asyncio.run(references.get_by_id("nda-1"))
    assert nda is not None and nda.usage_count == 1

    prompt = llm.prompts[0]
    assert "NDA TEMPLATE" in prompt
    assert _QUERY in prompt
    assert "Acme Corp, Beta LLC" in prompt
    assert "retrieved by semantic search" in prompt


def test_unconfigured_index_falls_back_to_first_reference() -> None:
    embedder = CountingEmbedder()
    workflow, _, artifacts, llm = _build(
        _references(), StaticVectorIndex(configured=False), embedder=embedder
    )

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, GenerationComplete)
    assert outcome.rag_used is False
    assert outcome.reference_id == "lease-1"
    assert outcome.candidate_count == 0
    assert embedder.calls == []
    assert "LEASE TEMPLATE" in llm.prompts[0]
    assert asyncio.run(artifacts.get_by_id(outcome.artifact_id)).metadata["rag_enabled"] is False


def test_embedding_failure_falls_back() -> None:
    index = StaticVectorIndex(rows=[{"reference_id": "nda-1", "content": "", "similarity": 0.9}])
    workflow, _, _, _ = _build(
        _references(), index, embedder=CountingEmbedder(error=RuntimeError("quota exceeded"))
    )

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, GenerationComplete)
    assert outcome.rag_used is False
    assert outcome.reference_id == "lease-1"
    assert index.match_calls == []


def test_rate_limited_embedding_falls_back() -> None:
    reference_store = InMemoryReferenceStore(_references())
    cached = CachedEmbedder(CountingEmbedder(), EmbeddingCacheConfig(rate_limit_calls=1))
    index = StaticVectorIndex(rows=[{"reference_id": "nda-1", "content": "", "similarity": 0.9}])
    workflow = GenerationWorkflow(
        references=reference_store,
        artifacts=InMemoryArtifactStore(),
        embedder=cached,
        search=SimilaritySearch(index, cached),
        completer=ScriptedCompleter("draft"),
    )

    first = asyncio.run(workflow.run(_request()))
    second = asyncio.run(
        workflow.run(GenerationRequest(query="different proposal", title="T", contract_type="nda"))
    )

    assert isinstance(first, GenerationComplete) and first.rag_used
    assert isinstance(second, GenerationComplete) and not second.rag_used


def test_search_failure_and_empty_results_fall_back() -> None:
    for index in (StaticVectorIndex(error=RuntimeError("rpc down")), StaticVectorIndex(rows=[])):
        workflow, _, _, _ = _build(_references(), index)

        outcome = asyncio.run(workflow.run(_request()))

        assert isinstance(outcome, GenerationComplete)
        assert outcome.rag_used is False
        assert outcome.reference_id == "lease-1"


def test_stale_match_keeps_candidates_but_not_rag_flag() -> None:
    index = StaticVectorIndex(
        rows=[
            {"reference_id": "deleted-7", "content": "gone", "similarity": 0.91},
            {"reference_id": "nda-1", "content": "NDA TEMPLATE", "similarity": 0.5},
        ]
    )
    workflow, _, artifacts, _ = _build(_references(), index)

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, GenerationComplete)
    assert outcome.rag_used is False
    assert outcome.reference_id == "lease-1"
    assert outcome.candidate_count == 2
    assert asyncio.run(artifacts.get_by_id(outcome.artifact_id)).metadata["rag_candidates"] == 2


def test_completion_error_is_terminal() -> None:
    workflow, _, artifacts, _ = _build(
        _references(),
        StaticVectorIndex(configured=False),
        completer=ScriptedCompleter(error=TimeoutError("model timed out")),
    )

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, WorkflowFailed)
    assert outcome.error == "model timed out"
    assert outcome.ok is False
    assert len(artifacts) == 0


def test_concurrent_runs_share_the_cache() -> None:
    embedder = CountingEmbedder()
    index = StaticVectorIndex(rows=[{"reference_id": "nda-1", "content": "", "similarity": 0.7}])
    workflow, references, _, _ = _build(_references(), index, embedder=embedder)

    async def _run():
        return await asyncio.gather(*(workflow.run(_request()) for _ in range(3)))

    outcomes = asyncio.run(_run())

    assert all(isinstance(outcome, GenerationComplete) and outcome.rag_used for outcome in outcomes)
    assert embedder.calls == [_QUERY]
    assert asyncio.run(references.get_by_id("nda-1")).usage_count == 3


def test_persistence_error_is_terminal() -> None:
    references = InMemoryReferenceStore(_references())
    artifacts = FailingArtifactStore(create_error=RuntimeError("contracts table is read-only"))
    cached = CachedEmbedder(CountingEmbedder())
    workflow = GenerationWorkflow(
        references=references,
        artifacts=artifacts,
        embedder=cached,
        search=SimilaritySearch(StaticVectorIndex(configured=False), cached),
        completer=ScriptedCompleter("1. PARTIES\n..."),
    )

    outcome = asyncio.run(workflow.run(_request()))

    assert isinstance(outcome, WorkflowFailed)
    assert outcome.error == "contracts table is read-only"
    assert len(artifacts) == 0


def test_run_logs_structured_outcome(caplog: pytest.LogCaptureFixture) -> None:
    index = StaticVectorIndex(rows=[{"reference_id": "nda-1", "content": "", "similarity": 0.82}])
    workflow, _, _, _ = _build(_references(), index)
    caplog.set_level(logging.INFO, logger="contract_rag")

    asyncio.run(workflow.run(_request()))

    finished = [record for record in caplog.records if getattr(record, "workflow", None) == "generation"]
    assert len(finished) == 1
    assert finished[0].phase == "done"
    assert finished[0].rag_used is True
    assert finished[0].reference_id == "nda-1"
