"""Contract generation workflow: retrieve a reference, draft, persist."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, assert_never

from contract_rag.config import PromptLimits, RetrievalConfig
from contract_rag.obs.tracing import Timer, WorkflowTraceStore, estimate_token_count
from contract_rag.providers.completer import Completer
from contract_rag.retrieval.embedding_cache import CachedEmbedder
from contract_rag.retrieval.search import SimilaritySearch
from contract_rag.storage.stores import ArtifactStore, ReferenceStore
from contract_rag.types import ArtifactDraft, ReferenceItem, RetrievalMatch
from contract_rag.workflows.base import WorkflowFailed
from contract_rag.workflows.prompts import GENERATION_PROMPT, truncate_section

logger = logging.getLogger(__name__)

NO_REFERENCES_ERROR = "No references available. Please upload reference templates first."


@dataclass(slots=True)
class GenerationRequest:
    query: str
    title: str
    contract_type: str
    parties: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ReferenceSelection:
    """The reference chosen to ground the draft and how it was chosen."""

    reference_id: str | None
    content: str
    candidates: list[RetrievalMatch]
    rag_used: bool


@dataclass(slots=True)
class Retrieve:
    request: GenerationRequest


@dataclass(slots=True)
class Produce:
    request: GenerationRequest
    selection: ReferenceSelection


@dataclass(frozen=True, slots=True)
class GenerationComplete:
    content: str
    artifact_id: str
    reference_id: str | None
    rag_used: bool
    candidate_count: int

    @property
    def ok(self) -> bool:
        return True

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": "done",
            "content": self.content,
            "artifact_id": self.artifact_id,
            "reference_id": self.reference_id,
            "rag_used": self.rag_used,
            "candidate_count": self.candidate_count,
        }


GenerationPhase = Retrieve | Produce | GenerationComplete | WorkflowFailed
GenerationOutcome = GenerationComplete | WorkflowFailed


class GenerationWorkflow:
    """Drafts a contract grounded in the best-matching reference template.

    Retrieval failures never fail the run: without an embedding, a usable
    index or a resolvable match, the first reference in store order is used
    and `rag_used` is reported as False. Production failures are terminal.
    """

    def __init__(
        self,
        *,
        references: ReferenceStore,
        artifacts: ArtifactStore,
        embedder: CachedEmbedder,
        search: SimilaritySearch,
        completer: Completer,
        retrieval_config: RetrievalConfig | None = None,
        prompt_limits: PromptLimits | None = None,
        trace_store: WorkflowTraceStore | None = None,
    ) -> None:
        self.references = references
        self.artifacts = artifacts
        self.embedder = embedder
        self.search = search
        self.completer = completer
        self.retrieval_config = retrieval_config or RetrievalConfig()
        self.prompt_limits = prompt_limits or PromptLimits()
        self.trace_store = trace_store

    async def run(self, request: GenerationRequest) -> GenerationOutcome:
        phase: GenerationPhase = Retrieve(request)
        with Timer() as timer:
            while True:
                match phase:
                    case Retrieve():
                        phase = await self._retrieve(phase)
                    case Produce():
                        phase = await self._produce(phase)
                    case GenerationComplete() | WorkflowFailed():
                        break
                    case _:
                        assert_never(phase)

        self._record_trace(request, phase, timer.elapsed_ms)
        rag_used = isinstance(phase, GenerationComplete) and phase.rag_used
        logger.info(
            f"Generation run finished in {timer.elapsed_ms:.0f} ms",
            extra={
                "workflow": "generation",
                "phase": "error" if isinstance(phase, WorkflowFailed) else "done",
                "rag_used": rag_used,
                "reference_id": getattr(phase, "reference_id", None),
            },
        )
        return phase

    async def _retrieve(self, phase: Retrieve) -> Produce | WorkflowFailed:
        try:
            references = await self.references.list_all()
        except Exception as exc:
            logger.error(f"Failed to list references: {exc}")
            return WorkflowFailed(str(exc) or "Failed to retrieve references")

        if not references:
            return WorkflowFailed(NO_REFERENCES_ERROR)

        try:
            selection = await self._select_reference(phase.request.query, references)
        except Exception as exc:
            logger.warning(f"Reference retrieval failed ({exc}), using first reference")
            selection = _fallback(references[0])

        if selection.reference_id is not None:
            try:
                await self.references.increment_usage(selection.reference_id)
            except Exception as exc:
                logger.warning(f"Could not update usage for reference {selection.reference_id}: {exc}")

        return Produce(request=phase.request, selection=selection)

    async def _select_reference(
        self, query: str, references: list[ReferenceItem]
    ) -> ReferenceSelection:
        first = references[0]
        if not self.search.is_available():
            logger.warning("Vector index not available, using first reference without RAG")
            return _fallback(first)

        embedded = await self.embedder.safe_embed(query)
        if not embedded.success or embedded.vector is None:
            logger.warning(f"RAG embedding failed: {embedded.reason}. Falling back to first reference.")
            return _fallback(first)

        result = await self.search.search(
            embedded.vector,
            self.retrieval_config.similarity_threshold,
            self.retrieval_config.generation_candidates,
        )
        if not result.success or not result.data:
            logger.warning(
                f"RAG search failed or no matches: {result.error or 'no similar references'}. "
                "Falling back to first reference."
            )
            return _fallback(first)

        logger.info(f"RAG: found {len(result.data)} matching references")
        for idx, match in enumerate(result.data, start=1):
            logger.debug(f"  {idx}. {match.reference_id} similarity={match.similarity:.3f}")

        best = result.data[0]
        reference = await self.references.get_by_id(best.reference_id)
        if reference is None:
            logger.warning(f"RAG-selected reference {best.reference_id} not found in store, using first available")
            return _fallback(first, candidates=result.data)

        logger.info(f'RAG: using reference "{reference.title}" (similarity {best.similarity:.1%})')
        return ReferenceSelection(
            reference_id=reference.id,
            content=reference.content,
            candidates=result.data,
            rag_used=True,
        )

    async def _produce(self, phase: Produce) -> GenerationComplete | WorkflowFailed:
        request, selection = phase.request, phase.selection
        prompt = self._build_prompt(request, selection)

        try:
            content = await self.completer.complete(prompt)
            artifact = await self.artifacts.create(
                ArtifactDraft(
                    title=request.title,
                    content=content,
                    artifact_type=request.contract_type,
                    status="draft",
                    parties=list(request.parties),
                    metadata={
                        "generated_from": selection.reference_id,
                        "rag_enabled": selection.rag_used,
                        "rag_candidates": len(selection.candidates),
                        "generated_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
            )
        except Exception as exc:
            logger.error(f"Contract generation failed: {exc}")
            return WorkflowFailed(str(exc) or "Failed to generate contract")

        logger.info(f"Contract {artifact.id} generated (RAG: {selection.rag_used})")
        return GenerationComplete(
            content=content,
            artifact_id=artifact.id,
            reference_id=selection.reference_id,
            rag_used=selection.rag_used,
            candidate_count=len(selection.candidates),
        )

    def _build_prompt(self, request: GenerationRequest, selection: ReferenceSelection) -> str:
        if selection.rag_used:
            rag_info = (
                f"retrieved by semantic search, {len(selection.candidates)} "
                "similar templates analyzed"
            )
        else:
            rag_info = "first available template, semantic search unavailable or no matches"

        return GENERATION_PROMPT.format(
            rag_info=rag_info,
            reference_content=truncate_section(
                selection.content, self.prompt_limits.generation_reference_chars
            ),
            query=truncate_section(request.query, self.prompt_limits.generation_query_chars),
            title=request.title,
            contract_type=request.contract_type,
            parties=", ".join(request.parties) or "Not specified",
        )

    def _record_trace(
        self, request: GenerationRequest, outcome: GenerationOutcome, latency_ms: float
    ) -> None:
        if self.trace_store is None:
            return
        if isinstance(outcome, GenerationComplete):
            self.trace_store.record(
                workflow="generation",
                outcome="done",
                rag_used=outcome.rag_used,
                reference_id=outcome.reference_id,
                candidate_count=outcome.candidate_count,
                input_tokens=estimate_token_count(request.query),
                output_tokens=estimate_token_count(outcome.content),
                latency_ms=latency_ms,
            )
        else:
            self.trace_store.record(
                workflow="generation",
                outcome="failed",
                rag_used=False,
                error=outcome.error,
                input_tokens=estimate_token_count(request.query),
                latency_ms=latency_ms,
            )


def _fallback(
    reference: ReferenceItem, candidates: list[RetrievalMatch] | None = None
) -> ReferenceSelection:
    return ReferenceSelection(
        reference_id=reference.id,
        content=reference.content,
        candidates=list(candidates or []),
        rag_used=False,
    )
