"""
Custom exceptions for the contract risk pipeline.

The hierarchy mirrors the three layers of the ingestion pipeline:

    - Model layer: failures talking to the language model.
    - Parsing layer: model output that cannot become an Analysis.
    - Collaborator layer: text extraction and storage failures.

Model and parsing errors are recovered inside the pipeline by switching to
the heuristic fallback analyzer. Collaborator errors are fatal for a run.
"""

from __future__ import annotations

from typing import Optional


class ContractRiskError(Exception):
    """
    Base exception for all contract risk pipeline errors.

    Attributes:
        message: Human-readable error message.
        details: Optional additional context for debugging.
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# MODEL LAYER
# =============================================================================

class ModelInvocationError(ContractRiskError):
    """Base class for failures of the model invocation step."""


class NoCredentialsError(ModelInvocationError):
    """Raised when no model API credential is configured."""

    def __init__(
        self,
        message: str = "No model API credential configured",
    ) -> None:
        super().__init__(message)


class EmptyResponseError(ModelInvocationError):
    """Raised when the model answers with an empty body."""

    def __init__(
        self,
        message: str = "Model returned an empty response",
        model: Optional[str] = None,
    ) -> None:
        details = {"model": model} if model else {}
        super().__init__(message, details)


class RateLimitedError(ModelInvocationError):
    """Raised when the model keeps signalling rate limiting or quota exhaustion."""

    def __init__(
        self,
        message: str = "Model API rate limit exceeded",
        attempts: Optional[int] = None,
    ) -> None:
        self.attempts = attempts
        details = {"attempts": attempts} if attempts is not None else {}
        super().__init__(message, details)


class TransportError(ModelInvocationError):
    """Raised for any non rate-limit failure of the model call."""

    def __init__(
        self,
        message: str = "Model API call failed",
        error_type: Optional[str] = None,
    ) -> None:
        details = {"error_type": error_type} if error_type else {}
        super().__init__(message, details)


# =============================================================================
# PARSING LAYER
# =============================================================================

class ParseError(ContractRiskError):
    """Base class for model output that cannot be turned into an Analysis."""


class MalformedPayloadError(ParseError):
    """Raised when sanitized model output is not a well-formed JSON object."""

    def __init__(
        self,
        message: str = "Model output is not well-formed JSON",
        text_sample: Optional[str] = None,
    ) -> None:
        details = {}
        if text_sample:
            # Truncate for readability
            details["text_sample"] = text_sample[:100] + "..." if len(text_sample) > 100 else text_sample
        super().__init__(message, details)


class SchemaViolationError(ParseError):
    """Raised when parsed output is missing required fields or has wrong types."""

    def __init__(
        self,
        message: str = "Model output does not match the analysis schema",
        field: Optional[str] = None,
    ) -> None:
        self.field = field
        details = {"field": field} if field else {}
        super().__init__(message, details)


# =============================================================================
# COLLABORATOR LAYER
# =============================================================================

class ExtractionError(ContractRiskError):
    """Raised when contract text cannot be extracted from the source."""

    def __init__(
        self,
        message: str = "Failed to extract text from document",
        document_id: Optional[str] = None,
    ) -> None:
        details = {"document_id": document_id} if document_id else {}
        super().__init__(message, details)


class StorageError(ContractRiskError):
    """Raised when an analysis or a status cannot be written or read."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        operation: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key
        super().__init__(message, details)


class PipelineStepError(ContractRiskError):
    """
    Fatal failure of one pipeline step.

    Carries the step name and the underlying message so the failure can be
    surfaced on the document's failed status.
    """

    def __init__(self, step: str, cause: BaseException) -> None:
        self.step = step
        self.cause = cause
        super().__init__(
            f"Step '{step}' failed: {cause}",
            {"step": step, "error_type": type(cause).__name__},
        )
