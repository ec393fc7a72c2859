"""
Validation boundary between model output and the typed Analysis record.

Parsing is all-or-nothing: callers receive either a fully validated
:class:`~contract_risk.models.Analysis` or a named error. Missing optional
fields get their defaults here, once, so downstream code never probes for
absent keys.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_snake

from contract_risk.exceptions import MalformedPayloadError, SchemaViolationError
from contract_risk.models import Analysis
from contract_risk.sanitizer import sanitize

logger = logging.getLogger(__name__)

# Scalar fields that must be present in every model reply
REQUIRED_FIELDS: tuple[str, ...] = ("overallRisk", "riskScore", "summary")


def estimate_complexity(contract_text: Optional[str]) -> int:
    """
    Text-length complexity heuristic: one point per hundred words, capped at 100.

    Halves round up so the result does not depend on banker's rounding.
    """
    if not contract_text:
        return 0
    word_count = len(contract_text.split())
    return min(int(word_count / 100 + 0.5), 100)


def _field_path(error: dict[str, Any]) -> str:
    return ".".join(str(part) for part in error.get("loc", ()))


def validate_analysis(payload: dict[str, Any]) -> Analysis:
    """
    Validate a decoded payload into an Analysis.

    Args:
        payload: Decoded JSON object using camelCase or snake_case keys.

    Returns:
        The validated Analysis.

    Raises:
        SchemaViolationError: If required fields are missing or any field has
            the wrong type or value.
    """
    for name in REQUIRED_FIELDS:
        if payload.get(name) is None and payload.get(to_snake(name)) is None:
            raise SchemaViolationError(f"Missing required field '{name}'", field=name)

    try:
        return Analysis.model_validate(payload)
    except PydanticValidationError as e:
        errors = e.errors()
        first = _field_path(errors[0]) if errors else None
        raise SchemaViolationError(
            f"Analysis failed validation with {len(errors)} error(s): {errors[0]['msg'] if errors else e}",
            field=first,
        ) from e


def parse_analysis(candidate: str, contract_text: Optional[str] = None) -> Analysis:
    """
    Parse sanitized model output into an Analysis.

    Args:
        candidate: Text produced by :func:`contract_risk.sanitizer.sanitize`.
        contract_text: Source contract, used to default ``complexityScore``.

    Returns:
        The validated Analysis.

    Raises:
        MalformedPayloadError: If the text is not a JSON object.
        SchemaViolationError: If the object does not satisfy the schema.
    """
    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedPayloadError(
            f"Failed to decode model output: {e}", text_sample=candidate
        ) from e

    if not isinstance(payload, dict):
        raise MalformedPayloadError(
            f"Expected a JSON object, got {type(payload).__name__}",
            text_sample=candidate,
        )

    if payload.get("complexityScore") is None and payload.get("complexity_score") is None:
        payload["complexityScore"] = estimate_complexity(contract_text)

    return validate_analysis(payload)


class StructuredParser:
    """Turns a raw model reply into an Analysis: sanitize, then parse."""

    def parse(self, raw: str, contract_text: Optional[str] = None) -> Analysis:
        candidate = sanitize(raw)
        logger.debug(f"Sanitized model output: {len(raw or '')} -> {len(candidate)} characters")
        return parse_analysis(candidate, contract_text=contract_text)
