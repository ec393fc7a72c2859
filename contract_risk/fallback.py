"""
Deterministic keyword-based analyzer used when the model path is unavailable.

The fallback analyzer is the liveness guarantee of the pipeline: whatever
happens to the model call, every non-empty contract still receives a
structurally valid Analysis. Its output is intentionally generic and clearly
flagged as a basic analysis.
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

from contract_risk.models import (
    AlertIcon,
    AlertSeverity,
    Analysis,
    Clause,
    ContractType,
    FinancialExposure,
    Importance,
    NegotiationPoint,
    Obligation,
    ObligationCategory,
    RiskAlert,
    RiskCategory,
    RiskLevel,
    RiskMetric,
    RoleAnalysis,
    RolePerspective,
)
from contract_risk.parser import estimate_complexity

logger = logging.getLogger(__name__)


class RiskIndicator(NamedTuple):
    """A lowercase substring bound to the clause it signals."""

    term: str
    category: RiskCategory
    risk_level: RiskLevel


QUOTA_WARNING = (
    "AI analysis is temporarily unavailable because the model API quota was exceeded; "
    "this is a basic keyword analysis."
)


class HeuristicFallbackAnalyzer:
    """
    Keyword-scan analyzer producing a lower-fidelity Analysis.

    Scans the lowercased contract once per indicator (first occurrence only),
    turns the first few matches into generic clause records and derives the
    scores from the number of matched clauses.
    """

    # Scan order matters: the first MAX_CLAUSES matches in this order are kept
    INDICATORS: tuple[RiskIndicator, ...] = (
        RiskIndicator("indemnif", RiskCategory.LIABILITY, RiskLevel.HIGH),
        RiskIndicator("liabilit", RiskCategory.LIABILITY, RiskLevel.MEDIUM),
        RiskIndicator("confident", RiskCategory.CONFIDENTIALITY, RiskLevel.MEDIUM),
        RiskIndicator("terminat", RiskCategory.TERMINATION, RiskLevel.MEDIUM),
        RiskIndicator("payment", RiskCategory.PAYMENT, RiskLevel.LOW),
        RiskIndicator("intellectual", RiskCategory.INTELLECTUAL_PROPERTY, RiskLevel.HIGH),
    )

    # First matching rule wins
    CONTRACT_TYPE_PATTERNS: tuple[tuple[ContractType, re.Pattern], ...] = (
        (ContractType.EMPLOYMENT, re.compile(r"\bemploy(?:ment|ee|ees)\b")),
        (ContractType.RENTAL, re.compile(r"\b(?:rent|rental|lease|leased|leases)\b")),
        (ContractType.NDA, re.compile(r"\bnda\b|\bconfidentiality\b")),
    )

    CATEGORY_WEIGHTS: dict[RiskCategory, int] = {
        RiskCategory.LIABILITY: 30,
        RiskCategory.PAYMENT: 20,
        RiskCategory.INTELLECTUAL_PROPERTY: 35,
        RiskCategory.TERMINATION: 25,
        RiskCategory.CONFIDENTIALITY: 20,
        RiskCategory.INDEMNIFICATION: 35,
    }

    MAX_CLAUSES = 3
    CONTEXT_CHARS = 50
    CLAUSE_WEIGHT = 20
    QUOTA_CLAUSE_WEIGHT = 25
    HIGH_RISK_THRESHOLD = 70
    MEDIUM_RISK_THRESHOLD = 40

    def analyze(
        self,
        contract_text: str,
        document_title: str,
        quota_exceeded: bool = False,
    ) -> Analysis:
        """
        Build a basic Analysis from keyword matches.

        Args:
            contract_text: Contract text to scan.
            document_title: Title used in the summary.
            quota_exceeded: Whether the model was skipped because of rate
                limiting; adds a warning, an alert and a more cautious score.

        Returns:
            A fully populated Analysis.
        """
        word_count = len(contract_text.split())
        clauses = self._find_clauses(contract_text)
        risk_score, overall_risk = self._score(len(clauses), quota_exceeded)

        logger.info(
            f"Fallback analysis: {len(clauses)} clause(s), risk {overall_risk.value} "
            f"({risk_score}), quota_exceeded={quota_exceeded}"
        )

        summary = (
            f"Basic keyword analysis of \"{document_title}\" ({word_count} words) "
            f"found {len(clauses)} potentially risky clause(s). "
            "Configure the AI model integration for a detailed review."
        )
        alerts: list[RiskAlert] = []
        if quota_exceeded:
            summary = f"{QUOTA_WARNING} {summary}"
            alerts.append(
                RiskAlert(
                    severity=AlertSeverity.HIGH,
                    title="AI analysis unavailable",
                    message=(
                        "The model API quota was exceeded. Results are based on keyword "
                        "matching only; retry later for a full analysis."
                    ),
                    icon=AlertIcon.TIME,
                )
            )

        return Analysis(
            contract_type=self._detect_contract_type(contract_text),
            overall_risk=overall_risk,
            risk_score=risk_score,
            complexity_score=estimate_complexity(contract_text),
            summary=summary,
            financial_exposure=FinancialExposure(
                estimated_costs="Not determined by basic analysis",
                penalties="Not determined by basic analysis",
                liability_caps="Not determined by basic analysis",
                best_case="Not determined by basic analysis",
                worst_case="Not determined by basic analysis",
            ),
            role_analysis=self._generic_roles(),
            risk_metrics=self._metrics(clauses),
            clauses=clauses,
            obligations=[
                Obligation(
                    title="Review contract terms before signing",
                    category=ObligationCategory.COMMUNICATION,
                    importance=Importance.IMPORTANT,
                    deadline="Before signing",
                    description="Read every clause carefully and ask the other party about anything unclear.",
                    consequences="Unreviewed terms may bind you to unfavourable obligations.",
                )
            ],
            negotiation_points=[
                NegotiationPoint(
                    priority=RiskLevel.MEDIUM,
                    title="Enable detailed AI analysis",
                    current_terms="Only a basic keyword analysis was performed.",
                    proposed_terms="Configure the AI model integration and re-run the analysis.",
                    rationale="A model-based review identifies specific risks and better alternative terms.",
                    talking_points=[
                        "Set the model API key in the environment",
                        "Re-submit the document once the integration is configured",
                    ],
                    priority_score=50,
                )
            ],
            risk_alerts=alerts,
        )

    def _find_clauses(self, contract_text: str) -> list[Clause]:
        lowered = contract_text.lower()
        clauses: list[Clause] = []

        for indicator in self.INDICATORS:
            if len(clauses) >= self.MAX_CLAUSES:
                break
            index = lowered.find(indicator.term)
            if index == -1:
                continue

            start = max(0, index - self.CONTEXT_CHARS)
            end = min(len(contract_text), index + len(indicator.term) + self.CONTEXT_CHARS)
            context = " ".join(contract_text[start:end].split())
            word = self._word_at(lowered, index)

            clauses.append(
                Clause(
                    title=f"{word.capitalize()} Clause",
                    risk_level=indicator.risk_level,
                    category=indicator.category.value,
                    page=1,
                    clause_text=context,
                    explanation=(
                        f"This contract contains {word} terms, which commonly carry "
                        f"{indicator.risk_level.value} risk."
                    ),
                    impact="Review this clause to understand your obligations and exposure.",
                    suggestions=[
                        "Have a lawyer review this clause",
                        "Ask the other party to clarify the scope of this clause",
                    ],
                )
            )

        return clauses

    @staticmethod
    def _word_at(lowered: str, index: int) -> str:
        """Return the whole word starting at a match position."""
        match = re.match(r"\w+", lowered[index:])
        return match.group(0) if match else lowered[index:index + 1]

    def _detect_contract_type(self, contract_text: str) -> ContractType:
        lowered = contract_text.lower()
        for contract_type, pattern in self.CONTRACT_TYPE_PATTERNS:
            if pattern.search(lowered):
                return contract_type
        return ContractType.OTHER

    def _score(self, clause_count: int, quota_exceeded: bool) -> tuple[int, RiskLevel]:
        if clause_count == 0:
            return 0, RiskLevel.LOW
        weight = self.QUOTA_CLAUSE_WEIGHT if quota_exceeded else self.CLAUSE_WEIGHT
        score = min(clause_count * weight, 100)
        if score >= self.HIGH_RISK_THRESHOLD:
            return score, RiskLevel.HIGH
        if score >= self.MEDIUM_RISK_THRESHOLD:
            return score, RiskLevel.MEDIUM
        return score, RiskLevel.LOW

    def _metrics(self, clauses: list[Clause]) -> list[RiskMetric]:
        return [
            RiskMetric(
                category=category,
                score=min(
                    sum(1 for c in clauses if c.category == category.value) * weight,
                    100,
                ),
            )
            for category, weight in self.CATEGORY_WEIGHTS.items()
        ]

    @staticmethod
    def _generic_roles() -> RoleAnalysis:
        consideration = ["Have the contract reviewed before signing"]
        return RoleAnalysis(
            primary_role="Party A",
            secondary_role="Party B",
            primary_perspective=RolePerspective(key_considerations=consideration),
            secondary_perspective=RolePerspective(key_considerations=consideration),
        )
