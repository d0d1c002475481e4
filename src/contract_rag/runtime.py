"""Composition root wiring providers, retrieval and workflows together."""

from __future__ import annotations

from dataclasses import dataclass

from contract_rag.config import Settings
from contract_rag.obs.logging_config import setup_logging
from contract_rag.obs.tracing import WorkflowTraceStore
from contract_rag.providers.completer import Completer
from contract_rag.providers.embedder import Embedder
from contract_rag.providers.factory import create_completer, create_embedder
from contract_rag.retrieval.embedding_cache import CachedEmbedder
from contract_rag.retrieval.indexer import ReferenceIndexer
from contract_rag.retrieval.search import SimilaritySearch
from contract_rag.retrieval.vector_index import PgVectorIndex, VectorIndex
from contract_rag.storage.stores import (
    ArtifactStore,
    InMemoryArtifactStore,
    InMemoryReferenceStore,
    ReferenceStore,
)
from contract_rag.workflows.generation import GenerationWorkflow
from contract_rag.workflows.validation import ValidationWorkflow


@dataclass(slots=True)
class ContractRagRuntime:
    """Process-wide set of components sharing one embedding cache/limiter."""

    settings: Settings
    embedder: CachedEmbedder
    search: SimilaritySearch
    generation: GenerationWorkflow
    validation: ValidationWorkflow
    indexer: ReferenceIndexer
    traces: WorkflowTraceStore

    @classmethod
    def from_env(
        cls,
        *,
        reference_store: ReferenceStore | None = None,
        artifact_store: ArtifactStore | None = None,
    ) -> "ContractRagRuntime":
        settings = Settings.from_env()
        setup_logging(settings.log_level, json_output=settings.log_json)
        return build_runtime(
            settings,
            reference_store=reference_store or InMemoryReferenceStore(),
            artifact_store=artifact_store or InMemoryArtifactStore(),
        )


def build_runtime(
    settings: Settings,
    *,
    reference_store: ReferenceStore,
    artifact_store: ArtifactStore,
    embedder: Embedder | None = None,
    completer: Completer | None = None,
    vector_index: VectorIndex | None = None,
) -> ContractRagRuntime:
    cached_embedder = CachedEmbedder(
        embedder or create_embedder(settings.provider), settings.cache
    )
    index = vector_index or PgVectorIndex(settings.database_url)
    search = SimilaritySearch(index, cached_embedder, settings.retrieval)
    llm = completer or create_completer(settings.provider)
    traces = WorkflowTraceStore()

    generation = GenerationWorkflow(
        references=reference_store,
        artifacts=artifact_store,
        embedder=cached_embedder,
        search=search,
        completer=llm,
        retrieval_config=settings.retrieval,
        prompt_limits=settings.prompt_limits,
        trace_store=traces,
    )
    validation = ValidationWorkflow(
        references=reference_store,
        artifacts=artifact_store,
        embedder=cached_embedder,
        search=search,
        completer=llm,
        provider=settings.provider.kind,
        retrieval_config=settings.retrieval,
        clause_config=settings.clauses,
        prompt_limits=settings.prompt_limits,
        trace_store=traces,
    )

    return ContractRagRuntime(
        settings=settings,
        embedder=cached_embedder,
        search=search,
        generation=generation,
        validation=validation,
        indexer=ReferenceIndexer(reference_store, cached_embedder, index),
        traces=traces,
    )
