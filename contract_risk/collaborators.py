"""
Collaborator contracts of the document pipeline and simple implementations.

The pipeline depends only on these protocols. ``PlainTextExtractor`` and
``InMemoryStore`` cover text uploads, tests and the demo; the Neo4j-backed
store lives in :mod:`contract_risk.graph_store`.
"""

from __future__ import annotations

import logging
import uuid
from threading import Lock
from typing import Any, Optional, Protocol, runtime_checkable

from contract_risk.exceptions import ExtractionError, StorageError
from contract_risk.models import Analysis, ExtractedText, ProcessingStatus
from contract_risk.parser import validate_analysis

logger = logging.getLogger(__name__)


# =============================================================================
# PROTOCOLS
# =============================================================================

@runtime_checkable
class TextExtractor(Protocol):
    """Turns an uploaded file into plain text."""

    def extract(self, buffer: bytes) -> ExtractedText:
        """
        Extract the text of a document.

        Raises:
            ExtractionError: On a corrupt or unsupported file.
        """
        ...


@runtime_checkable
class AnalysisRepository(Protocol):
    """Persistence of Analysis records."""

    def save(self, document_id: str, analysis: Analysis) -> str:
        """Store an analysis for a document and return its identifier."""
        ...

    def update(self, analysis_id: str, partial: dict[str, Any]) -> Analysis:
        """Replace fields of a stored analysis with a newly validated record."""
        ...

    def delete(self, analysis_id: str) -> None:
        """Remove a stored analysis."""
        ...

    def get(self, analysis_id: str) -> Optional[Analysis]:
        """Load a stored analysis, or None if it does not exist."""
        ...


@runtime_checkable
class StatusStore(Protocol):
    """Per-document processing status, polled by callers."""

    def set_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        error: Optional[str] = None,
    ) -> None:
        """Atomically set the status (and failure message) of a document."""
        ...

    def get_status(self, document_id: str) -> Optional[ProcessingStatus]:
        """Return the current status, or None for an unknown document."""
        ...


def merge_analysis(current: Analysis, partial: dict[str, Any]) -> Analysis:
    """
    Build the replacement for ``current`` with ``partial`` fields applied.

    Keys may be camelCase or snake_case. The merged payload is validated
    again; the stored record is never mutated in place.
    """
    document = current.to_document()
    for key, value in partial.items():
        alias = Analysis.model_fields[key].alias if key in Analysis.model_fields else key
        document[alias or key] = value
    return validate_analysis(document)


# =============================================================================
# IMPLEMENTATIONS
# =============================================================================

class PlainTextExtractor:
    """
    Extractor for plain-text uploads.

    Decodes UTF-8 (with or without BOM) and counts form-feed separated pages.
    PDF and other binary uploads are rejected; PDF parsing belongs to a
    dedicated extractor.
    """

    PDF_SIGNATURE = b"%PDF-"

    def __init__(self, encoding: str = "utf-8-sig") -> None:
        self.encoding = encoding

    def extract(self, buffer: bytes) -> ExtractedText:
        if not buffer:
            raise ExtractionError("Uploaded file is empty")
        if buffer.lstrip()[:5] == self.PDF_SIGNATURE:
            raise ExtractionError("PDF extraction is not supported by PlainTextExtractor")
        try:
            text = buffer.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise ExtractionError(f"File is not valid {self.encoding} text: {e}") from e
        if "\x00" in text:
            raise ExtractionError("File appears to be binary")

        pages = [page for page in text.split("\f") if page.strip()]
        return ExtractedText(text=text, page_count=max(len(pages), 1 if text.strip() else 0))


class InMemoryStore:
    """
    Thread-safe in-memory analysis repository and status store.

    Suitable for tests, the demo and single-process deployments; every
    operation is a single update under a lock, so pollers read their own
    writes.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._analyses: dict[str, Analysis] = {}
        self._owners: dict[str, str] = {}
        self._statuses: dict[str, ProcessingStatus] = {}
        self._errors: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"<InMemoryStore analyses={len(self._analyses)} documents={len(self._statuses)}>"

    # Analysis repository

    def save(self, document_id: str, analysis: Analysis) -> str:
        analysis_id = uuid.uuid4().hex
        with self._lock:
            self._analyses[analysis_id] = analysis
            self._owners[analysis_id] = document_id
        logger.debug(f"Saved analysis {analysis_id} for document {document_id}")
        return analysis_id

    def update(self, analysis_id: str, partial: dict[str, Any]) -> Analysis:
        with self._lock:
            current = self._analyses.get(analysis_id)
            if current is None:
                raise StorageError("Analysis not found", operation="update", key=analysis_id)
            updated = merge_analysis(current, partial)
            self._analyses[analysis_id] = updated
        return updated

    def delete(self, analysis_id: str) -> None:
        with self._lock:
            if self._analyses.pop(analysis_id, None) is None:
                raise StorageError("Analysis not found", operation="delete", key=analysis_id)
            self._owners.pop(analysis_id, None)

    def get(self, analysis_id: str) -> Optional[Analysis]:
        with self._lock:
            return self._analyses.get(analysis_id)

    def analyses_for(self, document_id: str) -> list[Analysis]:
        """All analyses stored for a document, oldest first."""
        with self._lock:
            return [
                self._analyses[aid]
                for aid, owner in self._owners.items()
                if owner == document_id
            ]

    # Status store

    def set_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        error: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._statuses[document_id] = ProcessingStatus(status)
            if error:
                self._errors[document_id] = error
            else:
                self._errors.pop(document_id, None)

    def get_status(self, document_id: str) -> Optional[ProcessingStatus]:
        with self._lock:
            return self._statuses.get(document_id)

    def get_error(self, document_id: str) -> Optional[str]:
        """Failure message recorded with the last status, if any."""
        with self._lock:
            return self._errors.get(document_id)
