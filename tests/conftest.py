"""
Pytest fixtures shared across all test modules.
"""

import json

import pytest
from typing import Any, Callable, Dict, List, Optional


class StubBackend:
    """Model backend returning a canned reply or raising a canned error."""

    def __init__(self, reply: str = "", error: Optional[BaseException] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


class ProviderRateLimit(Exception):
    """Stands in for an SDK rate-limit exception carrying an HTTP status."""

    status_code = 429


@pytest.fixture
def sample_contract_text() -> str:
    """Sample service contract touching every risk indicator."""
    return """
    CONTRACT FOR SOFTWARE DEVELOPMENT SERVICES

    1. INDEMNIFICATION
    The Developer agrees to indemnify, defend, and hold harmless the Client
    from and against any and all claims, damages, losses, and expenses.

    2. LIMITATION OF LIABILITY
    The total aggregate liability of the Developer shall be strictly limited
    to the total amount of fees paid.

    3. CONFIDENTIALITY
    Both parties agree to keep all proprietary information confidential.

    4. TERMINATION
    Either party may terminate this agreement with 30 days written notice.

    5. PAYMENT
    Payment is due within 60 days of invoice.

    6. INTELLECTUAL PROPERTY
    All intellectual property vests in the Client upon delivery.
    """


@pytest.fixture
def analysis_payload() -> Dict[str, Any]:
    """A complete camelCase analysis document as a model would return it."""
    return {
        "contractType": "service",
        "overallRisk": "high",
        "riskScore": 78,
        "complexityScore": 12,
        "summary": "One-sided services agreement with unlimited indemnity.",
        "financialExposure": {
            "estimatedCosts": "USD 120,000",
            "penalties": "1.5% monthly late interest",
            "liabilityCaps": "Fees paid",
            "bestCase": "Project delivered on budget",
            "worstCase": "Unlimited indemnification claims",
        },
        "roleAnalysis": {
            "primaryRole": "Developer",
            "secondaryRole": "Client",
            "primaryPerspective": {
                "risks": ["Unlimited indemnity"],
                "benefits": ["Fixed fee"],
                "keyConsiderations": ["Negotiate a cap"],
            },
            "secondaryPerspective": {
                "risks": [],
                "benefits": ["Broad protection"],
                "keyConsiderations": [],
            },
        },
        "riskMetrics": [
            {"category": "liability", "score": 80},
            {"category": "payment", "score": 40},
            {"category": "intellectual_property", "score": 70},
            {"category": "termination", "score": 50},
            {"category": "confidentiality", "score": 20},
            {"category": "indemnification", "score": 90},
        ],
        "clauses": [
            {
                "title": "Unlimited Indemnification",
                "riskLevel": "high",
                "category": "indemnification",
                "page": 2,
                "clauseText": "The Developer agrees to indemnify...",
                "explanation": "There is no upper bound on what you may owe.",
                "impact": "A single claim could exceed the contract value.",
                "suggestions": ["Cap indemnity at fees paid"],
                "financialImpact": "Unlimited",
            }
        ],
        "obligations": [
            {
                "title": "Bi-weekly progress reports",
                "category": "reporting",
                "importance": "important",
                "deadline": "Every two weeks",
                "description": "Send written progress reports.",
                "consequences": "Possible breach of contract.",
            }
        ],
        "negotiationPoints": [
            {
                "priority": "high",
                "title": "Cap indemnification",
                "currentTerms": "Unlimited in scope",
                "proposedTerms": "Capped at fees paid",
                "rationale": "Aligns with the liability cap.",
                "talkingPoints": ["Industry standard", "Matches clause 4"],
                "priorityScore": 90,
            }
        ],
        "riskAlerts": [
            {
                "severity": "critical",
                "title": "Unlimited liability",
                "message": "Indemnity is not capped.",
                "icon": "liability",
            }
        ],
    }


@pytest.fixture
def model_reply(analysis_payload: Dict[str, Any]) -> str:
    """Raw model reply wrapping the payload in prose and a code fence."""
    return (
        "Here is the analysis you asked for:\n"
        "```json\n"
        f"{json.dumps(analysis_payload, indent=2)}\n"
        "```\n"
        "Let me know if you need anything else."
    )


@pytest.fixture
def make_backend() -> Callable[..., StubBackend]:
    """Factory for stub model backends."""
    def _make(reply: str = "", error: Optional[BaseException] = None) -> StubBackend:
        return StubBackend(reply=reply, error=error)
    return _make


@pytest.fixture
def rate_limit_error() -> BaseException:
    """An exception signalling rate limiting through its status code."""
    return ProviderRateLimit("429 Too Many Requests")


@pytest.fixture
def sleeps() -> List[float]:
    """Records the delays a ModelInvoker would have slept."""
    return []


@pytest.fixture
def make_invoker(sleeps: List[float]):
    """Factory for ModelInvokers that never actually sleep."""
    from contract_risk.invoker import ModelInvoker

    def _make(backend, max_retries: int = 2, base_delay: float = 1.0, max_jitter: float = 0.0):
        return ModelInvoker(
            backend,
            max_retries=max_retries,
            base_delay=base_delay,
            max_jitter=max_jitter,
            sleep=sleeps.append,
        )
    return _make
