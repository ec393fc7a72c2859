"""
Domain models for the contract risk pipeline.

This module defines the Pydantic models for the structured risk analysis
produced for a contract, plus the small records exchanged with the pipeline
collaborators.

Python attributes are snake_case; every model also accepts and emits the
camelCase keys used by the model prompt and the persisted JSON document.
List fields never hold ``None``: an absent or null list becomes ``[]``.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ContractType(str, Enum):
    """Kinds of contract the analysis recognizes."""

    EMPLOYMENT = "employment"
    RENTAL = "rental"
    SERVICE = "service"
    NDA = "nda"
    PARTNERSHIP = "partnership"
    FREELANCE = "freelance"
    SALES = "sales"
    OTHER = "other"


class RiskLevel(str, Enum):
    """Risk level of a contract or of a single clause."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskCategory(str, Enum):
    """The fixed set of risk metric categories."""

    LIABILITY = "liability"
    PAYMENT = "payment"
    INTELLECTUAL_PROPERTY = "intellectual_property"
    TERMINATION = "termination"
    CONFIDENTIALITY = "confidentiality"
    INDEMNIFICATION = "indemnification"


class ObligationCategory(str, Enum):
    """Categories of obligations a party must fulfil."""

    REPORTING = "reporting"
    PAYMENT = "payment"
    DELIVERY = "delivery"
    CONFIDENTIALITY = "confidentiality"
    COMMUNICATION = "communication"


class Importance(str, Enum):
    """Importance of an obligation."""

    CRITICAL = "critical"
    IMPORTANT = "important"
    NORMAL = "normal"


class AlertSeverity(str, Enum):
    """Severity of a risk alert."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"


class AlertIcon(str, Enum):
    """Icons a risk alert can be rendered with."""

    MONEY = "money"
    LIABILITY = "liability"
    TIME = "time"
    LEGAL = "legal"


class ProcessingStatus(str, Enum):
    """Processing status of a document, written only by the pipeline."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisSource(str, Enum):
    """Which path produced an Analysis."""

    MODEL = "model"
    FALLBACK = "fallback"


# =============================================================================
# FIELD TYPES
# =============================================================================

def _none_to_empty(value: Any) -> Any:
    return "" if value is None else value


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _lowercase(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _round_number(value: Any) -> Any:
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("score must be a finite number")
        return round(value)
    return value


Text = Annotated[str, BeforeValidator(_none_to_empty)]
TextList = Annotated[list[str], BeforeValidator(_none_to_list)]
Score = Annotated[int, BeforeValidator(_round_number), Field(ge=0, le=100)]


class _Record(BaseModel):
    """Shared configuration: immutable, camelCase aliases, snake_case names."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# =============================================================================
# ANALYSIS RECORDS
# =============================================================================

class FinancialExposure(_Record):
    """Free-text summary of the money at stake."""

    estimated_costs: Text = Field("", description="Expected costs under the contract")
    penalties: Text = Field("", description="Penalties and fees")
    liability_caps: Text = Field("", description="Caps on liability")
    best_case: Text = Field("", description="Best-case financial outcome")
    worst_case: Text = Field("", description="Worst-case financial outcome")


class RolePerspective(_Record):
    """How the contract looks from one party's point of view."""

    risks: TextList = Field(default_factory=list)
    benefits: TextList = Field(default_factory=list)
    key_considerations: TextList = Field(default_factory=list)


class RoleAnalysis(_Record):
    """Analysis of the contract from both parties' perspectives."""

    primary_role: Text = Field("", description="Role of the party reviewing the contract")
    secondary_role: Text = Field("", description="Role of the counterparty")
    primary_perspective: RolePerspective = Field(default_factory=RolePerspective)
    secondary_perspective: RolePerspective = Field(default_factory=RolePerspective)


class RiskMetric(_Record):
    """Score for one risk category."""

    category: Annotated[RiskCategory, BeforeValidator(_lowercase)]
    score: Score


class Clause(_Record):
    """
    A risky or notable clause found in the contract.

    Attributes:
        title: Short clause title.
        risk_level: Assessed risk of the clause.
        category: Free-text subject matter (e.g. "liability").
        page: Page the clause appears on (1-based).
        clause_text: Original clause wording.
        explanation: Plain-English explanation of the risk.
        impact: Potential impact on the reader.
        suggestions: Actionable suggestions.
        financial_impact: Optional money impact of the clause.
    """

    title: Text = Field("", description="Clause title")
    risk_level: Annotated[RiskLevel, BeforeValidator(_lowercase)] = Field(
        RiskLevel.MEDIUM, description="Clause risk level"
    )
    category: Text = Field("", description="Clause category")
    page: Annotated[int, BeforeValidator(lambda v: v or 1)] = Field(
        1, ge=1, description="Page number in source document"
    )
    clause_text: Text = Field("", description="Original clause text")
    explanation: Text = Field("", description="Why the clause is risky")
    impact: Text = Field("", description="Potential impact")
    suggestions: TextList = Field(default_factory=list)
    financial_impact: Optional[str] = Field(None, description="Financial impact, if any")


class Obligation(_Record):
    """Something the reader must do under the contract."""

    title: Text = Field("", description="Obligation title")
    category: Annotated[ObligationCategory, BeforeValidator(_lowercase)]
    importance: Annotated[Importance, BeforeValidator(_lowercase)] = Importance.NORMAL
    deadline: Text = Field("", description="Deadline description")
    description: Text = Field("", description="What needs to be done")
    consequences: Text = Field("", description="Consequences of non-compliance")


class NegotiationPoint(_Record):
    """A term worth negotiating, with a proposed alternative."""

    priority: Annotated[RiskLevel, BeforeValidator(_lowercase)] = RiskLevel.MEDIUM
    title: Text = Field("", description="Negotiation point title")
    current_terms: Text = Field("", description="Current unfavourable terms")
    proposed_terms: Text = Field("", description="Better alternative terms")
    rationale: Text = Field("", description="Why the change matters")
    talking_points: TextList = Field(default_factory=list)
    priority_score: Score = 0


class RiskAlert(_Record):
    """A prominent warning shown above the analysis."""

    severity: Annotated[AlertSeverity, BeforeValidator(_lowercase)]
    title: Text = Field("", description="Alert title")
    message: Text = Field("", description="Alert message")
    icon: Annotated[AlertIcon, BeforeValidator(_lowercase)] = AlertIcon.LEGAL


class Analysis(_Record):
    """
    Complete risk analysis for one contract.

    ``overall_risk``, ``risk_score`` and ``summary`` are required; everything
    else has a default so that a partially filled model reply still maps onto
    a fully typed record.
    """

    contract_type: ContractType = Field(ContractType.OTHER, description="Kind of contract")
    overall_risk: Annotated[RiskLevel, BeforeValidator(_lowercase)]
    risk_score: Score
    complexity_score: Score = 0
    summary: str = Field(..., description="Brief summary of the contract and main concerns")
    financial_exposure: FinancialExposure = Field(default_factory=FinancialExposure)
    role_analysis: RoleAnalysis = Field(default_factory=RoleAnalysis)
    risk_metrics: Annotated[list[RiskMetric], BeforeValidator(_none_to_list)] = Field(default_factory=list)
    clauses: Annotated[list[Clause], BeforeValidator(_none_to_list)] = Field(default_factory=list)
    obligations: Annotated[list[Obligation], BeforeValidator(_none_to_list)] = Field(default_factory=list)
    negotiation_points: Annotated[list[NegotiationPoint], BeforeValidator(_none_to_list)] = Field(default_factory=list)
    risk_alerts: Annotated[list[RiskAlert], BeforeValidator(_none_to_list)] = Field(default_factory=list)

    @field_validator("contract_type", mode="before")
    @classmethod
    def normalize_contract_type(cls, v: Any) -> Any:
        """Map unknown or missing contract types onto ``other``."""
        if v is None:
            return ContractType.OTHER
        if isinstance(v, ContractType):
            return v
        value = str(v).strip().lower()
        if value in {t.value for t in ContractType}:
            return value
        return ContractType.OTHER

    @field_validator("financial_exposure", "role_analysis", mode="before")
    @classmethod
    def default_missing_records(cls, v: Any) -> Any:
        """Treat a null nested record like an absent one."""
        return {} if v is None else v

    @field_validator("risk_metrics")
    @classmethod
    def unique_categories(cls, v: list[RiskMetric]) -> list[RiskMetric]:
        """Ensure each risk category is scored at most once."""
        seen: set[RiskCategory] = set()
        for metric in v:
            if metric.category in seen:
                raise ValueError(f"duplicate risk metric category: {metric.category.value}")
            seen.add(metric.category)
        return v

    @property
    def high_risk_clause_count(self) -> int:
        """Count of clauses assessed as high risk."""
        return sum(1 for c in self.clauses if c.risk_level == RiskLevel.HIGH)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON document shape."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# PIPELINE RECORDS
# =============================================================================

class AnalysisRequest(_Record):
    """
    Input to prompt construction.

    Attributes:
        contract_text: The full contract text (non-empty).
        document_title: Title shown to the model.
    """

    contract_text: str = Field(..., min_length=1, description="Contract text")
    document_title: str = Field("", description="Document title")

    def truncated_text(self, max_chars: int) -> str:
        """Return the first ``max_chars`` characters of the contract."""
        return self.contract_text[:max_chars]


class ExtractedText(_Record):
    """Result of a text extraction collaborator."""

    text: str = Field(..., description="Extracted plain text")
    page_count: int = Field(0, ge=0, description="Number of pages in the source")
