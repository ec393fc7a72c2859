"""
Contract Risk Pipeline - Core Module

Ingestion pipeline that turns an uploaded contract into a structured risk
analysis, using a language model when available and a keyword heuristic
when it is not.

This package provides:
    - DocumentPipeline: LangGraph state machine driving document status
    - ModelInvoker: Model calls with bounded rate-limit retry
    - Sanitizer and StructuredParser: Defensive handling of model output
    - HeuristicFallbackAnalyzer: Deterministic analysis when the model is unavailable
    - Neo4jAnalysisStore / InMemoryStore: Persistence and status stores
    - Models: Pydantic domain models for type-safe operations
    - Exceptions: Custom exception hierarchy for error handling

Example:
    >>> from contract_risk import DocumentPipeline, InMemoryStore
    >>>
    >>> store = InMemoryStore()
    >>> with DocumentPipeline(repository=store) as pipeline:
    ...     result = pipeline.run("doc-1", contract_text, "Service Agreement")
    >>> print(result.status, result.analysis.overall_risk)
"""

from contract_risk.collaborators import (
    AnalysisRepository,
    InMemoryStore,
    PlainTextExtractor,
    StatusStore,
    TextExtractor,
)
from contract_risk.fallback import HeuristicFallbackAnalyzer
from contract_risk.graph_store import Neo4jAnalysisStore
from contract_risk.invoker import ModelBackend, ModelInvoker
from contract_risk.parser import StructuredParser, parse_analysis, validate_analysis
from contract_risk.pipeline import DocumentPipeline, PipelineRun, PipelineState
from contract_risk.prompts import PromptBuilder
from contract_risk.sanitizer import sanitize
from contract_risk.models import (
    Analysis,
    AnalysisRequest,
    AnalysisSource,
    Clause,
    ContractType,
    ExtractedText,
    ProcessingStatus,
    RiskCategory,
    RiskLevel,
)
from contract_risk.exceptions import (
    ContractRiskError,
    EmptyResponseError,
    ExtractionError,
    MalformedPayloadError,
    ModelInvocationError,
    NoCredentialsError,
    ParseError,
    PipelineStepError,
    RateLimitedError,
    SchemaViolationError,
    StorageError,
    TransportError,
)

__version__ = "1.0.0"

__all__ = [
    # Pipeline
    "DocumentPipeline",
    "PipelineRun",
    "PipelineState",
    # Components
    "PromptBuilder",
    "ModelBackend",
    "ModelInvoker",
    "sanitize",
    "StructuredParser",
    "parse_analysis",
    "validate_analysis",
    "HeuristicFallbackAnalyzer",
    # Collaborators
    "TextExtractor",
    "AnalysisRepository",
    "StatusStore",
    "PlainTextExtractor",
    "InMemoryStore",
    "Neo4jAnalysisStore",
    # Models
    "Analysis",
    "AnalysisRequest",
    "AnalysisSource",
    "Clause",
    "ContractType",
    "ExtractedText",
    "ProcessingStatus",
    "RiskCategory",
    "RiskLevel",
    # Exceptions
    "ContractRiskError",
    "ModelInvocationError",
    "NoCredentialsError",
    "EmptyResponseError",
    "RateLimitedError",
    "TransportError",
    "ParseError",
    "MalformedPayloadError",
    "SchemaViolationError",
    "ExtractionError",
    "StorageError",
    "PipelineStepError",
]
