"""Contract validation workflow: gather target and context, judge, persist status."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, assert_never

from contract_rag.config import ClauseConfig, PromptLimits, ProviderKind, RetrievalConfig
from contract_rag.extract.clauses import extract_key_clauses
from contract_rag.obs.tracing import Timer, WorkflowTraceStore, estimate_token_count
from contract_rag.providers.completer import Completer
from contract_rag.retrieval.embedding_cache import CachedEmbedder
from contract_rag.retrieval.search import SimilaritySearch
from contract_rag.storage.stores import ArtifactStore, ReferenceStore
from contract_rag.types import RetrievalMatch
from contract_rag.workflows.base import WorkflowFailed
from contract_rag.workflows.judgment import ValidationJudgment, parse_judgment
from contract_rag.workflows.prompts import ValidationPrompts, truncate_section

logger = logging.getLogger(__name__)

MISSING_TARGET_ERROR = "Contract ID or content must be provided"
TARGET_NOT_FOUND_ERROR = "Contract not found"
NO_GLOBAL_CLAUSES_ERROR = (
    "No references available to use as global clauses. Please upload reference templates first."
)
DOCUMENT_TOO_LARGE_ERROR = "Document too large for validation. Please try a smaller document."

_CONNECTION_MARKERS = (
    "connection refused",
    "econnrefused",
    "fetch failed",
    "failed to connect",
    "connection error",
    "und_err_socket",
)
_CONTEXT_LENGTH_MARKERS = ("context length", "context_length", "maximum context", "too long")


@dataclass(slots=True)
class ValidationRequest:
    """What to validate and against what.

    Inline `content` takes precedence over fetching `target_id`. Without
    `requirements` the contract is checked against clauses extracted from the
    most-used reference templates.
    """

    target_id: str | None = None
    content: str | None = None
    requirements: str | None = None

    @property
    def global_clause_mode(self) -> bool:
        return not (self.requirements or "").strip()


@dataclass(slots=True)
class RetrieveTarget:
    request: ValidationRequest


@dataclass(slots=True)
class Judge:
    target_id: str | None
    target_content: str
    requirements: str | None
    global_clause_mode: bool
    reference_clauses: str
    context: list[RetrievalMatch]
    rag_used: bool


@dataclass(frozen=True, slots=True)
class ValidationComplete:
    judgment: ValidationJudgment
    target_id: str | None
    rag_used: bool
    context_count: int
    global_clause_mode: bool
    persisted_status: str | None

    @property
    def ok(self) -> bool:
        return True

    def as_dict(self) -> dict[str, Any]:
        return {
            "phase": "done",
            "result": self.judgment.model_dump(),
            "target_id": self.target_id,
            "rag_used": self.rag_used,
            "context_count": self.context_count,
            "global_clause_mode": self.global_clause_mode,
            "persisted_status": self.persisted_status,
        }


ValidationPhase = RetrieveTarget | Judge | ValidationComplete | WorkflowFailed
ValidationOutcome = ValidationComplete | WorkflowFailed


class ValidationWorkflow:
    """Produces a structured compliance judgment for one contract.

    Context retrieval is best effort and only lowers quality when it fails.
    Missing targets, unparseable model output and provider errors end the run
    with a `WorkflowFailed` carrying a classified message.
    """

    def __init__(
        self,
        *,
        references: ReferenceStore,
        artifacts: ArtifactStore,
        embedder: CachedEmbedder,
        search: SimilaritySearch,
        completer: Completer,
        provider: ProviderKind = ProviderKind.OLLAMA,
        retrieval_config: RetrievalConfig | None = None,
        clause_config: ClauseConfig | None = None,
        prompt_limits: PromptLimits | None = None,
        trace_store: WorkflowTraceStore | None = None,
    ) -> None:
        self.references = references
        self.artifacts = artifacts
        self.embedder = embedder
        self.search = search
        self.completer = completer
        self.provider = provider
        self.retrieval_config = retrieval_config or RetrievalConfig()
        self.clause_config = clause_config or ClauseConfig()
        self.prompt_limits = prompt_limits or PromptLimits.for_provider(provider)
        self.prompts = ValidationPrompts.for_local(provider.is_local)
        self.trace_store = trace_store

    async def run(self, request: ValidationRequest) -> ValidationOutcome:
        phase: ValidationPhase = RetrieveTarget(request)
        with Timer() as timer:
            while True:
                match phase:
                    case RetrieveTarget():
                        phase = await self._retrieve(phase)
                    case Judge():
                        phase = await self._judge(phase)
                    case ValidationComplete() | WorkflowFailed():
                        break
                    case _:
                        assert_never(phase)

        self._record_trace(request, phase, timer.elapsed_ms)
        rag_used = isinstance(phase, ValidationComplete) and phase.rag_used
        logger.info(
            f"Validation run finished in {timer.elapsed_ms:.0f} ms",
            extra={
                "workflow": "validation",
                "phase": "error" if isinstance(phase, WorkflowFailed) else "done",
                "rag_used": rag_used,
            },
        )
        return phase

    async def _retrieve(self, phase: RetrieveTarget) -> Judge | WorkflowFailed:
        request = phase.request
        try:
            if request.content:
                logger.info("Contract content supplied inline, skipping store lookup")
                target_content = request.content
            elif request.target_id:
                artifact = await self.artifacts.get_by_id(request.target_id)
                if artifact is None:
                    return WorkflowFailed(TARGET_NOT_FOUND_ERROR)
                target_content = artifact.content
            else:
                return WorkflowFailed(MISSING_TARGET_ERROR)

            reference_clauses = ""
            if request.global_clause_mode:
                logger.info("No requirements supplied, validating against global clauses")
                reference_clauses = await self._global_clauses()
                if not reference_clauses:
                    return WorkflowFailed(NO_GLOBAL_CLAUSES_ERROR)
        except Exception as exc:
            logger.error(f"Failed to retrieve contract for validation: {exc}")
            return WorkflowFailed(str(exc) or "Failed to retrieve contract")

        if request.global_clause_mode:
            embedding_text = target_content[: self.retrieval_config.embedding_prefix_chars]
        else:
            embedding_text = request.requirements or ""
        context, rag_used = await self._retrieve_context(embedding_text)

        return Judge(
            target_id=request.target_id,
            target_content=target_content,
            requirements=request.requirements,
            global_clause_mode=request.global_clause_mode,
            reference_clauses=reference_clauses,
            context=context,
            rag_used=rag_used,
        )

    async def _global_clauses(self) -> str:
        references = await self.references.list_all()
        if not references:
            return ""

        top = sorted(references, key=lambda item: item.usage_count, reverse=True)[
            : self.clause_config.global_reference_count
        ]
        sections = [
            f"--- Reference {idx}: {item.title} ({item.category}) ---\n"
            f"{extract_key_clauses(item.content, self.clause_config)}"
            for idx, item in enumerate(top, start=1)
        ]
        combined = "\n\n".join(sections)[: self.prompt_limits.reference_clause_chars]
        logger.info(f"Extracted global clauses from {len(top)} references ({len(combined)} chars)")
        return combined

    async def _retrieve_context(self, text: str) -> tuple[list[RetrievalMatch], bool]:
        if not self.search.is_available():
            logger.warning("Vector index not available, validating without RAG context")
            return [], False

        try:
            embedded = await self.embedder.safe_embed(text)
            if not embedded.success or embedded.vector is None:
                logger.warning(f"RAG embedding failed: {embedded.reason}. Validating without context.")
                return [], False

            result = await self.search.search(
                embedded.vector,
                self.retrieval_config.similarity_threshold,
                self.retrieval_config.validation_candidates,
            )
        except Exception as exc:
            logger.warning(f"Failed to retrieve RAG context, validating without it: {exc}")
            return [], False

        if not result.success:
            logger.warning(f"RAG context retrieval failed: {result.error}. Validating without context.")
            return [], False
        return result.data, bool(result.data)

    async def _judge(self, phase: Judge) -> ValidationComplete | WorkflowFailed:
        prompt = self._build_prompt(phase)
        logger.debug(f"Validation prompt: {len(prompt)} chars, provider={self.provider.value}")

        try:
            raw = await self.completer.complete(prompt)
            judgment = parse_judgment(raw)
            persisted_status = None
            if phase.target_id:
                persisted_status = judgment.lifecycle_status
                await self.artifacts.update_status(phase.target_id, persisted_status)
        except Exception as exc:
            logger.error(f"Contract validation failed: {exc}")
            return WorkflowFailed(classify_validation_error(exc, self.provider))

        mode = "global clauses" if phase.global_clause_mode else "requirements"
        logger.info(
            f"Contract {phase.target_id or '(inline)'} validated: {judgment.status} "
            f"(mode: {mode}, RAG: {phase.rag_used}, issues: {len(judgment.issues)})"
        )
        return ValidationComplete(
            judgment=judgment,
            target_id=phase.target_id,
            rag_used=phase.rag_used,
            context_count=len(phase.context),
            global_clause_mode=phase.global_clause_mode,
            persisted_status=persisted_status,
        )

    def _build_prompt(self, phase: Judge) -> str:
        limits = self.prompt_limits
        target = truncate_section(phase.target_content, limits.target_chars)
        context = self._context_summary(phase)

        if phase.global_clause_mode:
            return self.prompts.clauses.format(
                target=target,
                reference=truncate_section(phase.reference_clauses, limits.reference_clause_chars),
                context=context,
            )
        return self.prompts.requirements.format(
            requirements=truncate_section(phase.requirements or "", limits.requirements_chars),
            target=target,
            context=context,
        )

    def _context_summary(self, phase: Judge) -> str:
        if not phase.rag_used or not phase.context:
            return ""
        lines = [f"SIMILAR REFERENCES ({len(phase.context)} analyzed):"]
        for match in phase.context:
            snippet = re.sub(r"\s+", " ", match.content).strip()[:200]
            label = match.title or match.reference_id
            lines.append(f"- {label} ({match.similarity:.0%}): {snippet}")
        return truncate_section("\n".join(lines), self.prompt_limits.context_chars)

    def _record_trace(
        self, request: ValidationRequest, outcome: ValidationOutcome, latency_ms: float
    ) -> None:
        if self.trace_store is None:
            return
        input_tokens = estimate_token_count(request.requirements or "")
        if isinstance(outcome, ValidationComplete):
            self.trace_store.record(
                workflow="validation",
                outcome="done",
                rag_used=outcome.rag_used,
                candidate_count=outcome.context_count,
                input_tokens=input_tokens,
                output_tokens=estimate_token_count(outcome.judgment.summary),
                latency_ms=latency_ms,
            )
        else:
            self.trace_store.record(
                workflow="validation",
                outcome="failed",
                rag_used=False,
                error=outcome.error,
                input_tokens=input_tokens,
                latency_ms=latency_ms,
            )


def classify_validation_error(exc: BaseException, provider: ProviderKind) -> str:
    """Map a provider/store exception to the message returned to callers."""

    if _is_connection_error(exc):
        if provider.is_local:
            return (
                "Ollama connection failed. Check that Ollama is running ('ollama serve'), "
                "that the model is pulled, and that the request is not too large."
            )
        return "OpenAI API connection failed. Please check your API key and network configuration."

    message = str(exc)
    if any(marker in message.lower() for marker in _CONTEXT_LENGTH_MARKERS):
        return DOCUMENT_TOO_LARGE_ERROR
    return message or "Failed to validate contract"


def _is_connection_error(exc: BaseException) -> bool:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ConnectionError):
            return True
        if type(current).__name__ in {"ConnectError", "APIConnectionError"}:
            return True
        if any(marker in str(current).lower() for marker in _CONNECTION_MARKERS):
            return True
        current = current.__cause__ or current.__context__
    return False
