"""
LangGraph document pipeline for contract risk analysis.

This module defines the state machine that takes one uploaded contract to a
persisted Analysis and a terminal processing status:

    extract_text -> analyze_contract -> persist_analysis -> mark_completed
          \\               \\                    \\                  \\
           +---------------+--------------------+------------------+-> mark_failed

Model and parsing failures never leave ``analyze_contract``: they degrade to
the heuristic fallback analyzer. Extraction and storage failures are fatal and
route to ``mark_failed``, which records the step and the underlying message on
the document's status.

Example:
    >>> with DocumentPipeline() as pipeline:
    ...     pipeline.submit("doc-1", contract_bytes, "Service Agreement")
    >>> store.get_status("doc-1")
    <ProcessingStatus.COMPLETED: 'completed'>
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, TypedDict, Union

from langgraph.graph import END, StateGraph

from config.settings import settings
from contract_risk.collaborators import (
    AnalysisRepository,
    InMemoryStore,
    PlainTextExtractor,
    StatusStore,
    TextExtractor,
)
from contract_risk.exceptions import (
    ExtractionError,
    ModelInvocationError,
    ParseError,
    PipelineStepError,
    RateLimitedError,
    StorageError,
)
from contract_risk.fallback import HeuristicFallbackAnalyzer
from contract_risk.invoker import ModelInvoker
from contract_risk.models import Analysis, AnalysisSource, ProcessingStatus
from contract_risk.parser import StructuredParser
from contract_risk.prompts import PromptBuilder

logger = logging.getLogger(__name__)

ContentSource = Union[str, bytes]

# =============================================================================
# STATE
# =============================================================================

class PipelineState(TypedDict, total=False):
    """State passed between the pipeline nodes."""
    document_id: str
    content_source: ContentSource
    document_title: str
    contract_text: str
    page_count: Optional[int]
    analysis: Optional[Analysis]
    analysis_source: Optional[AnalysisSource]
    quota_exceeded: bool
    stored_id: Optional[str]
    status: ProcessingStatus
    failed_step: Optional[str]
    error: Optional[str]
    errors: list[str]
    metadata: dict[str, Any]


@dataclass
class PipelineRun:
    """
    Observable outcome of one pipeline run.

    Attributes:
        document_id: The processed document.
        status: Terminal status the pipeline drove the document to.
        analysis: The persisted analysis, if one was produced.
        analysis_source: Whether the model or the fallback produced it.
        quota_exceeded: Whether the fallback ran because of rate limiting.
        stored_id: Identifier returned by the repository.
        error: Fatal error message recorded on the failed status.
        errors: Non-fatal degradations and fatal errors, in order.
        metadata: Timestamps and counters collected along the way.
    """

    document_id: str
    status: ProcessingStatus
    analysis: Optional[Analysis] = None
    analysis_source: Optional[AnalysisSource] = None
    quota_exceeded: bool = False
    stored_id: Optional[str] = None
    error: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == ProcessingStatus.COMPLETED

    @classmethod
    def from_state(cls, state: PipelineState) -> "PipelineRun":
        """Create from the final workflow state."""
        return cls(
            document_id=state["document_id"],
            status=state.get("status", ProcessingStatus.FAILED),
            analysis=state.get("analysis"),
            analysis_source=state.get("analysis_source"),
            quota_exceeded=state.get("quota_exceeded", False),
            stored_id=state.get("stored_id"),
            error=state.get("error"),
            errors=list(state.get("errors", [])),
            metadata=dict(state.get("metadata", {})),
        )


def create_initial_state(
    document_id: str,
    content_source: ContentSource,
    document_title: str,
) -> PipelineState:
    """
    Create a properly initialized state for the workflow.

    Args:
        document_id: Identifier of the document being processed.
        content_source: Raw upload bytes or already-extracted text.
        document_title: Title used in the prompt and the summary.

    Returns:
        Initial PipelineState ready for workflow invocation.
    """
    return {
        "document_id": document_id,
        "content_source": content_source,
        "document_title": document_title,
        "contract_text": "",
        "page_count": None,
        "analysis": None,
        "analysis_source": None,
        "quota_exceeded": False,
        "stored_id": None,
        "status": ProcessingStatus.PROCESSING,
        "failed_step": None,
        "error": None,
        "errors": [],
        "metadata": {
            "created_at": datetime.now().isoformat(),
        },
    }


# =============================================================================
# PIPELINE
# =============================================================================

class DocumentPipeline:
    """
    Orchestrates extraction, analysis, persistence and status for documents.

    Runs are independent of each other; the only state shared between them is
    held by the collaborators. ``run`` processes a document synchronously,
    ``submit`` marks it as processing and finishes it on a worker thread.

    Attributes:
        extractor: Turns uploaded bytes into contract text.
        invoker: Calls the model with bounded rate-limit retry.
        repository: Persists the resulting Analysis.
        status_store: Receives every status transition.
    """

    def __init__(
        self,
        *,
        extractor: Optional[TextExtractor] = None,
        invoker: Optional[ModelInvoker] = None,
        repository: Optional[AnalysisRepository] = None,
        status_store: Optional[StatusStore] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        parser: Optional[StructuredParser] = None,
        fallback: Optional[HeuristicFallbackAnalyzer] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        if repository is None:
            repository = InMemoryStore()
        if status_store is None:
            status_store = repository if isinstance(repository, StatusStore) else InMemoryStore()

        self.extractor = extractor or PlainTextExtractor()
        self.invoker = invoker or ModelInvoker.from_settings()
        self.repository = repository
        self.status_store = status_store
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.parser = parser or StructuredParser()
        self.fallback = fallback or HeuristicFallbackAnalyzer()

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.PIPELINE_MAX_WORKERS,
            thread_name_prefix="contract-pipeline",
        )
        self._closed = False
        self.app = self.create_workflow().compile()

    def __enter__(self) -> "DocumentPipeline":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown(wait=True)

    def __repr__(self) -> str:
        return (
            f"<DocumentPipeline repository={type(self.repository).__name__} "
            f"status_store={type(self.status_store).__name__}>"
        )

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def run(
        self,
        document_id: str,
        content_source: ContentSource,
        document_title: str = "Untitled",
    ) -> PipelineRun:
        """
        Process one document synchronously.

        Never raises: every failure ends in a best-effort ``failed`` status
        and is reported on the returned PipelineRun.

        Args:
            document_id: Identifier of the document record.
            content_source: Raw upload bytes, or text used as-is.
            document_title: Title used in the prompt and the summary.

        Returns:
            The outcome of the run.
        """
        try:
            self._mark_processing(document_id)
        except Exception as e:
            step_error = PipelineStepError("mark_processing", e)
            logger.error(f"❌ {document_id}: {step_error.message}")
            self._record_failure(document_id, step_error.message)
            return PipelineRun(
                document_id=document_id,
                status=ProcessingStatus.FAILED,
                error=step_error.message,
                errors=[step_error.message],
            )

        return self._execute(document_id, content_source, document_title)

    def submit(
        self,
        document_id: str,
        content_source: ContentSource,
        document_title: str = "Untitled",
    ) -> None:
        """
        Mark a document as processing and finish it in the background.

        Returns once the ``processing`` status is stored; callers observe
        completion by polling the status store.

        Raises:
            StorageError: If the processing status cannot be stored.
            RuntimeError: If the pipeline has been shut down.
        """
        if self._closed:
            raise RuntimeError("DocumentPipeline is shut down")

        self._mark_processing(document_id)
        self._executor.submit(self._execute, document_id, content_source, document_title)
        logger.debug(f"Submitted {document_id} for background processing")

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting documents; optionally wait for running ones."""
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=wait)
            logger.debug("DocumentPipeline shut down.")

    def _mark_processing(self, document_id: str) -> None:
        try:
            self.status_store.set_status(document_id, ProcessingStatus.PROCESSING)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(
                message=f"Failed to set processing status: {e}",
                operation="set_status",
                key=document_id,
            ) from e

    def _execute(
        self,
        document_id: str,
        content_source: ContentSource,
        document_title: str,
    ) -> PipelineRun:
        initial_state = create_initial_state(document_id, content_source, document_title)
        try:
            final_state = self.app.invoke(initial_state)
        except Exception as e:
            logger.exception(f"Pipeline crashed for {document_id}")
            message = PipelineStepError("pipeline", e).message
            self._record_failure(document_id, message)
            return PipelineRun(
                document_id=document_id,
                status=ProcessingStatus.FAILED,
                error=message,
                errors=[message],
                metadata=dict(initial_state["metadata"]),
            )
        return PipelineRun.from_state(final_state)

    def _record_failure(self, document_id: str, message: str) -> bool:
        """Best-effort ``failed`` transition; returns whether it was stored."""
        try:
            self.status_store.set_status(document_id, ProcessingStatus.FAILED, error=message)
            return True
        except Exception as e:
            logger.error(f"Could not record failed status for {document_id}, giving up: {e}")
            return False

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    @staticmethod
    def _fail(state: PipelineState, step: str, error: BaseException) -> PipelineState:
        step_error = PipelineStepError(step, error)
        logger.error(f"❌ {state['document_id']}: {step_error.message}")
        return {
            **state,
            "failed_step": step,
            "error": step_error.message,
            "errors": [*state.get("errors", []), step_error.message],
        }

    def extract_text(self, state: PipelineState) -> PipelineState:
        """
        Obtain the contract text from the content source.

        Bytes go through the text extractor; a string is used directly. An
        empty result is fatal.
        """
        logger.info(f"📄 Extracting text for {state['document_id']}")

        source = state.get("content_source")
        metadata: dict[str, Any] = dict(state.get("metadata", {}))
        page_count: Optional[int] = None

        try:
            if isinstance(source, (bytes, bytearray)):
                extracted = self.extractor.extract(bytes(source))
                text, page_count = extracted.text, extracted.page_count
            elif isinstance(source, str):
                text = source
            else:
                raise ExtractionError(f"Unsupported content source: {type(source).__name__}")

            if not text or not text.strip():
                raise ExtractionError("No text could be extracted from the document")
        except Exception as e:
            return self._fail(state, "extract_text", e)

        metadata["extraction_timestamp"] = datetime.now().isoformat()
        metadata["text_length"] = len(text)
        metadata["word_count"] = len(text.split())
        if page_count is not None:
            metadata["page_count"] = page_count

        logger.info(f"Extracted {metadata['word_count']} words")

        return {
            **state,
            "contract_text": text,
            "page_count": page_count,
            "metadata": metadata,
        }

    def analyze_contract(self, state: PipelineState) -> PipelineState:
        """
        Produce an Analysis from the model, or from the fallback analyzer.

        Rate limiting degrades to the fallback with ``quota_exceeded``; every
        other model or parsing failure degrades to the plain fallback.
        """
        logger.info(f"🤖 Analyzing {state['document_id']}")

        text = state["contract_text"]
        title = state.get("document_title", "Untitled")
        errors: list[str] = list(state.get("errors", []))
        metadata: dict[str, Any] = dict(state.get("metadata", {}))

        analysis: Optional[Analysis] = None
        quota_exceeded = False

        try:
            prompt = self.prompt_builder.build(text, title)
            raw = self.invoker.invoke(prompt)
            analysis = self.parser.parse(raw, text)
        except RateLimitedError as e:
            logger.warning(f"⚠️  Model rate limited, using fallback analysis: {e.message}")
            errors.append(f"Model rate limited: {e.message}")
            quota_exceeded = True
        except ModelInvocationError as e:
            logger.warning(f"⚠️  Model unavailable ({type(e).__name__}), using fallback analysis")
            errors.append(f"Model unavailable: {e.message}")
        except ParseError as e:
            logger.warning(f"⚠️  Could not parse model output, using fallback analysis: {e}")
            errors.append(f"Model output rejected: {e.message}")
        except Exception as e:
            logger.exception("Unexpected error on the model path, using fallback analysis")
            errors.append(f"Model path error: {e}")

        if analysis is not None:
            source = AnalysisSource.MODEL
        else:
            try:
                analysis = self.fallback.analyze(text, title, quota_exceeded=quota_exceeded)
            except Exception as e:
                return self._fail({**state, "errors": errors}, "analyze_contract", e)
            source = AnalysisSource.FALLBACK

        metadata["analysis_timestamp"] = datetime.now().isoformat()
        metadata["clause_count"] = len(analysis.clauses)
        metadata["high_risk_clauses"] = analysis.high_risk_clause_count

        logger.info(
            f"Analysis ready ({source.value}): {analysis.overall_risk.value} risk, "
            f"score {analysis.risk_score}, {len(analysis.clauses)} clause(s)"
        )

        return {
            **state,
            "analysis": analysis,
            "analysis_source": source,
            "quota_exceeded": quota_exceeded,
            "errors": errors,
            "metadata": metadata,
        }

    def persist_analysis(self, state: PipelineState) -> PipelineState:
        """Save the Analysis; a failed write is fatal."""
        logger.info(f"💾 Persisting analysis for {state['document_id']}")

        try:
            stored_id = self.repository.save(state["document_id"], state["analysis"])
        except Exception as e:
            return self._fail(state, "persist_analysis", e)

        metadata: dict[str, Any] = dict(state.get("metadata", {}))
        metadata["persisted_at"] = datetime.now().isoformat()

        return {
            **state,
            "stored_id": stored_id,
            "metadata": metadata,
        }

    def mark_completed(self, state: PipelineState) -> PipelineState:
        """Set the terminal ``completed`` status."""
        try:
            self.status_store.set_status(state["document_id"], ProcessingStatus.COMPLETED)
        except Exception as e:
            return self._fail(state, "mark_completed", e)

        metadata: dict[str, Any] = dict(state.get("metadata", {}))
        metadata["completed_at"] = datetime.now().isoformat()

        if state.get("errors"):
            logger.warning(f"⚠️  {len(state['errors'])} degradation(s) during processing")
        logger.info(f"✅ {state['document_id']} completed")

        return {
            **state,
            "status": ProcessingStatus.COMPLETED,
            "metadata": metadata,
        }

    def mark_failed(self, state: PipelineState) -> PipelineState:
        """Set the terminal ``failed`` status with the recorded error."""
        message = state.get("error") or "Document processing failed"
        metadata: dict[str, Any] = dict(state.get("metadata", {}))
        metadata["failed_at"] = datetime.now().isoformat()
        metadata["status_recorded"] = self._record_failure(state["document_id"], message)

        return {
            **state,
            "status": ProcessingStatus.FAILED,
            "metadata": metadata,
        }

    # -------------------------------------------------------------------------
    # Workflow definition
    # -------------------------------------------------------------------------

    @staticmethod
    def route(state: PipelineState) -> str:
        """Route to ``mark_failed`` once a fatal error has been recorded."""
        return "failed" if state.get("error") else "continue"

    def create_workflow(self) -> StateGraph:
        """
        Create and configure the document workflow.

        Returns:
            Configured StateGraph ready for compilation.
        """
        wf = StateGraph(PipelineState)

        wf.add_node("extract_text", self.extract_text)
        wf.add_node("analyze_contract", self.analyze_contract)
        wf.add_node("persist_analysis", self.persist_analysis)
        wf.add_node("mark_completed", self.mark_completed)
        wf.add_node("mark_failed", self.mark_failed)

        wf.set_entry_point("extract_text")

        wf.add_conditional_edges(
            "extract_text", self.route,
            {"continue": "analyze_contract", "failed": "mark_failed"},
        )
        wf.add_conditional_edges(
            "analyze_contract", self.route,
            {"continue": "persist_analysis", "failed": "mark_failed"},
        )
        wf.add_conditional_edges(
            "persist_analysis", self.route,
            {"continue": "mark_completed", "failed": "mark_failed"},
        )
        wf.add_conditional_edges(
            "mark_completed", self.route,
            {"continue": END, "failed": "mark_failed"},
        )
        wf.add_edge("mark_failed", END)

        return wf


__all__ = [
    "ContentSource",
    "DocumentPipeline",
    "PipelineRun",
    "PipelineState",
    "create_initial_state",
]
