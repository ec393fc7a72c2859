"""Prompt construction for the contract analysis model call."""

from __future__ import annotations

from typing import Optional

from config.settings import settings
from contract_risk.models import AnalysisRequest

SYSTEM_PROMPT = (
    "You are a legal contract analysis expert. You analyze contracts and identify "
    "risks, obligations, and negotiation points. Always respond with valid JSON only."
)

ANALYSIS_PROMPT_TEMPLATE = """You are a legal contract analysis expert. Analyze the following contract and provide a comprehensive analysis in JSON format.

Contract Title: {document_title}

Contract Text:
{contract_text}

Provide your analysis in the following JSON structure:
{{
  "contractType": "employment" | "rental" | "service" | "nda" | "partnership" | "freelance" | "sales" | "other",
  "overallRisk": "low" | "medium" | "high",
  "riskScore": <integer 0-100>,
  "complexityScore": <integer 0-100>,
  "summary": "<brief summary of the contract and main concerns>",
  "financialExposure": {{
    "estimatedCosts": "<expected costs>",
    "penalties": "<penalties and fees>",
    "liabilityCaps": "<caps on liability>",
    "bestCase": "<best-case financial outcome>",
    "worstCase": "<worst-case financial outcome>"
  }},
  "roleAnalysis": {{
    "primaryRole": "<role of the party reviewing the contract>",
    "secondaryRole": "<role of the other party>",
    "primaryPerspective": {{
      "risks": ["<risk>", ...],
      "benefits": ["<benefit>", ...],
      "keyConsiderations": ["<consideration>", ...]
    }},
    "secondaryPerspective": {{
      "risks": ["<risk>", ...],
      "benefits": ["<benefit>", ...],
      "keyConsiderations": ["<consideration>", ...]
    }}
  }},
  "riskMetrics": [
    {{ "category": "liability", "score": <0-100> }},
    {{ "category": "payment", "score": <0-100> }},
    {{ "category": "intellectual_property", "score": <0-100> }},
    {{ "category": "termination", "score": <0-100> }},
    {{ "category": "confidentiality", "score": <0-100> }},
    {{ "category": "indemnification", "score": <0-100> }}
  ],
  "clauses": [
    {{
      "title": "<clause title>",
      "riskLevel": "low" | "medium" | "high",
      "category": "<category>",
      "page": <page number, 1 or greater>,
      "clauseText": "<original clause text>",
      "explanation": "<why this is risky in plain English>",
      "impact": "<potential impact>",
      "suggestions": ["<suggestion 1>", "<suggestion 2>", ...],
      "financialImpact": "<money impact, if any>"
    }}
  ],
  "obligations": [
    {{
      "title": "<obligation title>",
      "category": "reporting" | "payment" | "delivery" | "confidentiality" | "communication",
      "importance": "critical" | "important" | "normal",
      "deadline": "<deadline description>",
      "description": "<what you need to do>",
      "consequences": "<what happens if you don't comply>"
    }}
  ],
  "negotiationPoints": [
    {{
      "priority": "high" | "medium" | "low",
      "title": "<negotiation point title>",
      "currentTerms": "<current unfavorable terms>",
      "proposedTerms": "<better alternative terms>",
      "rationale": "<why this change matters>",
      "talkingPoints": ["<talking point 1>", "<talking point 2>", ...],
      "priorityScore": <0-100>
    }}
  ],
  "riskAlerts": [
    {{
      "severity": "critical" | "high" | "medium",
      "title": "<alert title>",
      "message": "<alert message>",
      "icon": "money" | "liability" | "time" | "legal"
    }}
  ]
}}

Important:
- Focus on identifying risky, unfair, or unusual clauses
- Explain everything in plain, simple English
- Provide actionable suggestions
- Prioritize the most important issues
- Include each riskMetrics category exactly once
- Do not include comments or trailing commas in the JSON
- Return ONLY valid JSON, no additional text"""


class PromptBuilder:
    """
    Renders the analysis request sent to the model.

    The contract is truncated to its first ``max_chars`` characters so that
    cost and latency stay bounded; the same input always yields the same prompt.
    """

    def __init__(self, max_chars: Optional[int] = None) -> None:
        self.max_chars = max_chars if max_chars is not None else settings.MAX_CONTRACT_CHARS

    def build(self, contract_text: str, document_title: str) -> str:
        return ANALYSIS_PROMPT_TEMPLATE.format(
            document_title=document_title,
            contract_text=contract_text[: self.max_chars],
        )

    def build_for(self, request: AnalysisRequest) -> str:
        return self.build(request.truncated_text(self.max_chars), request.document_title)
