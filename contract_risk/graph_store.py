"""
Neo4j-backed analysis repository and status store.

Each analysis is persisted as a single JSON document on an ``Analysis`` node
linked to its ``Document`` node; the document's processing status lives on
the ``Document`` node itself:

    (:Document {id, status, error, updated_at})-[:HAS_ANALYSIS]->(:Analysis {id, payload, ...})

Features:
    - Connection pooling with singleton pattern
    - Automatic retry logic for transient failures
    - Parameterized queries (no injection vulnerabilities)

Example:
    >>> with Neo4jAnalysisStore() as store:
    ...     store.set_status("doc-1", ProcessingStatus.PROCESSING)
    ...     analysis_id = store.save("doc-1", analysis)
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from threading import Lock
from typing import Any, Callable, Iterator, Optional, TypeVar

from neo4j import Driver, GraphDatabase, Session
from neo4j.exceptions import AuthError, Neo4jError, ServiceUnavailable, TransientError

from config.settings import settings
from contract_risk.collaborators import merge_analysis
from contract_risk.exceptions import StorageError
from contract_risk.models import Analysis, ProcessingStatus
from contract_risk.parser import validate_analysis

logger = logging.getLogger(__name__)

# Type variable for generic retry decorator
T = TypeVar("T")


def retry_on_transient(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that retries a function on transient database errors.

    Uses exponential backoff for retry delays. When retries are exhausted
    the last error is raised as a StorageError.

    Args:
        max_retries: Maximum number of retry attempts.
        base_delay: Initial delay between retries in seconds.
        max_delay: Maximum delay between retries.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except (TransientError, ServiceUnavailable) as e:
                    last_exception = e
                    if attempt < max_retries:
                        delay = min(base_delay * (2 ** attempt), max_delay)
                        logger.warning(
                            f"Transient error on attempt {attempt + 1}/{max_retries + 1}, "
                            f"retrying in {delay:.2f}s: {e}"
                        )
                        time.sleep(delay)
                    else:
                        logger.error(f"Max retries exceeded: {e}")

            raise StorageError(
                message=f"Neo4j unavailable after {max_retries + 1} attempts: {last_exception}",
                operation=func.__name__,
            ) from last_exception
        return wrapper
    return decorator


class _DriverPool:
    """
    Thread-safe singleton for Neo4j driver connection pooling.

    Ensures only one driver instance exists per URI, reducing
    connection overhead and improving performance.
    """

    _instance: "_DriverPool | None" = None
    _lock: Lock = Lock()
    _drivers: dict[str, Driver] = {}

    def __new__(cls) -> "_DriverPool":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def get_driver(self, uri: str, user: str, password: str) -> Driver:
        """Get or create a driver for the given URI."""
        if uri not in self._drivers:
            with self._lock:
                if uri not in self._drivers:
                    driver = GraphDatabase.driver(uri, auth=(user, password))
                    driver.verify_connectivity()
                    self._drivers[uri] = driver
                    logger.info(f"Created new driver for {uri}")
        return self._drivers[uri]


# Global driver pool instance
_driver_pool = _DriverPool()


class Neo4jAnalysisStore:
    """
    Analysis repository and status store on top of Neo4j.

    Implements both the ``AnalysisRepository`` and ``StatusStore``
    protocols. Every status write is a single MERGE keyed by document id, so
    pollers observe it as soon as the transaction commits.

    Supports context manager protocol for safe resource cleanup.
    """

    def __init__(self, *, use_pool: bool = True) -> None:
        """
        Initialize the store with a Neo4j connection.

        Args:
            use_pool: Whether to use connection pooling (disable for tests).

        Raises:
            StorageError: If the database cannot be reached.
        """
        self._closed = False
        self._owns_driver = not use_pool

        try:
            if use_pool:
                self._driver = _driver_pool.get_driver(
                    settings.NEO4J_URI,
                    settings.NEO4J_USER,
                    settings.NEO4J_PASSWORD
                )
            else:
                self._driver = GraphDatabase.driver(
                    settings.NEO4J_URI,
                    auth=(settings.NEO4J_USER, settings.NEO4J_PASSWORD)
                )
                self._driver.verify_connectivity()
            logger.debug(f"Connected to Neo4j at {settings.NEO4J_URI}")
        except (ServiceUnavailable, AuthError) as e:
            raise StorageError(
                message=f"Failed to connect to Neo4j: {e}",
                operation="connect",
                key=settings.NEO4J_URI,
            ) from e

    def __enter__(self) -> "Neo4jAnalysisStore":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit with cleanup."""
        self.close()

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"<Neo4jAnalysisStore uri={settings.NEO4J_URI!r} status={status}>"

    @property
    def is_closed(self) -> bool:
        """Check if the store has been closed."""
        return self._closed

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Create a managed session context."""
        if self._closed:
            raise RuntimeError("Neo4jAnalysisStore is closed")
        session = self._driver.session()
        try:
            yield session
        finally:
            session.close()

    def close(self) -> None:
        """
        Close the store.

        If using connection pooling, only marks this instance as closed.
        If not using pooling, also closes the driver.
        """
        if not self._closed:
            self._closed = True
            if self._owns_driver and self._driver:
                self._driver.close()
                logger.debug("Neo4j driver closed.")
            logger.debug("Neo4jAnalysisStore closed.")

    def _run(self, operation: str, key: str, query: str, **params: Any) -> list[dict[str, Any]]:
        """Run a query, wrapping non-transient driver errors in StorageError."""
        try:
            with self._session() as session:
                result = session.run(query, **params)
                return [record.data() for record in result]
        except (TransientError, ServiceUnavailable):
            raise  # Let retry decorator handle these
        except Neo4jError as e:
            raise StorageError(
                message=f"Failed to {operation}: {e}",
                operation=operation,
                key=key,
            ) from e

    @retry_on_transient(max_retries=3)
    def create_constraints(self) -> None:
        """
        Create uniqueness constraints on Document.id and Analysis.id.

        This operation is idempotent and safe to call multiple times.
        """
        constraints = [
            ("document_id_unique", "CREATE CONSTRAINT IF NOT EXISTS FOR (d:Document) REQUIRE d.id IS UNIQUE"),
            ("analysis_id_unique", "CREATE CONSTRAINT IF NOT EXISTS FOR (a:Analysis) REQUIRE a.id IS UNIQUE"),
        ]

        for name, query in constraints:
            self._run("create constraint", name, query)
            logger.debug(f"Constraint '{name}' ensured.")

        logger.info(f"Ensured {len(constraints)} database constraints.")

    # -------------------------------------------------------------------------
    # Analysis repository
    # -------------------------------------------------------------------------

    def save(self, document_id: str, analysis: Analysis) -> str:
        """
        Store an analysis as a JSON document linked to its Document node.

        The identifier is fixed before the first attempt, so a write retried
        after a lost acknowledgement lands on the same node.

        Args:
            document_id: Identifier of the analyzed document.
            analysis: The analysis to persist.

        Returns:
            The generated analysis identifier.

        Raises:
            StorageError: If the write fails.
        """
        analysis_id = uuid.uuid4().hex
        self._create(document_id, analysis_id, analysis)
        return analysis_id

    @retry_on_transient(max_retries=3)
    def _create(self, document_id: str, analysis_id: str, analysis: Analysis) -> None:
        query = """
        MERGE (d:Document {id: $document_id})
        MERGE (a:Analysis {id: $analysis_id})
        ON CREATE SET a.created_at = datetime()
        SET a.payload = $payload,
            a.overall_risk = $overall_risk,
            a.risk_score = $risk_score
        MERGE (d)-[:HAS_ANALYSIS]->(a)
        RETURN a.id AS analysis_id
        """
        self._run(
            "save analysis",
            document_id,
            query,
            document_id=document_id,
            analysis_id=analysis_id,
            payload=json.dumps(analysis.to_document()),
            overall_risk=analysis.overall_risk.value,
            risk_score=analysis.risk_score,
        )
        logger.debug(f"Saved analysis {analysis_id} for document {document_id}")

    @retry_on_transient(max_retries=3)
    def get(self, analysis_id: str) -> Optional[Analysis]:
        """Load an analysis by id, or None if it does not exist."""
        query = """
        MATCH (a:Analysis {id: $analysis_id})
        RETURN a.payload AS payload
        """
        rows = self._run("load analysis", analysis_id, query, analysis_id=analysis_id)
        if not rows:
            return None
        return validate_analysis(json.loads(rows[0]["payload"]))

    def update(self, analysis_id: str, partial: dict[str, Any]) -> Analysis:
        """
        Replace fields of a stored analysis.

        The merged record is validated before being written back as a whole.

        Raises:
            StorageError: If the analysis does not exist or the write fails.
        """
        current = self.get(analysis_id)
        if current is None:
            raise StorageError("Analysis not found", operation="update", key=analysis_id)
        updated = merge_analysis(current, partial)
        self._write_payload(analysis_id, updated)
        return updated

    @retry_on_transient(max_retries=3)
    def _write_payload(self, analysis_id: str, analysis: Analysis) -> None:
        query = """
        MATCH (a:Analysis {id: $analysis_id})
        SET a.payload = $payload,
            a.overall_risk = $overall_risk,
            a.risk_score = $risk_score,
            a.updated_at = datetime()
        RETURN a.id AS analysis_id
        """
        rows = self._run(
            "update analysis",
            analysis_id,
            query,
            analysis_id=analysis_id,
            payload=json.dumps(analysis.to_document()),
            overall_risk=analysis.overall_risk.value,
            risk_score=analysis.risk_score,
        )
        if not rows:
            raise StorageError("Analysis not found", operation="update", key=analysis_id)

    @retry_on_transient(max_retries=3)
    def delete(self, analysis_id: str) -> None:
        """Delete an analysis node and its relationships."""
        query = """
        MATCH (a:Analysis {id: $analysis_id})
        DETACH DELETE a
        RETURN count(a) AS deleted
        """
        rows = self._run("delete analysis", analysis_id, query, analysis_id=analysis_id)
        if not rows or not rows[0].get("deleted"):
            raise StorageError("Analysis not found", operation="delete", key=analysis_id)
        logger.debug(f"Deleted analysis {analysis_id}")

    # -------------------------------------------------------------------------
    # Status store
    # -------------------------------------------------------------------------

    @retry_on_transient(max_retries=3)
    def set_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        error: Optional[str] = None,
    ) -> None:
        """Set the processing status of a document in a single MERGE."""
        query = """
        MERGE (d:Document {id: $document_id})
        SET d.status = $status,
            d.error = $error,
            d.updated_at = datetime()
        """
        self._run(
            "set status",
            document_id,
            query,
            document_id=document_id,
            status=ProcessingStatus(status).value,
            error=error,
        )
        logger.debug(f"Document {document_id} -> {ProcessingStatus(status).value}")

    @retry_on_transient(max_retries=3)
    def get_status(self, document_id: str) -> Optional[ProcessingStatus]:
        """Return the status of a document, or None if unknown."""
        query = """
        MATCH (d:Document {id: $document_id})
        RETURN d.status AS status
        """
        rows = self._run("get status", document_id, query, document_id=document_id)
        if not rows or rows[0].get("status") is None:
            return None
        return ProcessingStatus(rows[0]["status"])

    def health_check(self) -> dict[str, Any]:
        """
        Check the health of the database connection.

        Returns:
            Dictionary with connection status and database info.
        """
        try:
            with self._session() as session:
                result = session.run("CALL dbms.components()")
                record = result.single()
                return {
                    "status": "healthy",
                    "name": record["name"] if record else "unknown",
                    "version": record["versions"][0] if record else "unknown",
                    "uri": settings.NEO4J_URI,
                }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "uri": settings.NEO4J_URI,
            }
