"""
Risk assessment models.
"""

from typing import Literal

from pydantic import BaseModel, Field

from nda_analysis.models.reference import ReferenceSource
from nda_analysis.models.taxonomy import ClauseCategory, Perspective, RiskLevel
from nda_analysis.models.usage import TokenUsage


class Citation(BaseModel):
    """Quoted text backing an assessment."""

    text: str
    source_type: Literal["clause", "reference", "template"]


class EvidenceReference(BaseModel):
    """Reference passage the model relied on."""

    source_id: str
    source: ReferenceSource
    section: str | None = None
    similarity: float = Field(..., ge=0.0, le=1.0)
    summary: str


class Evidence(BaseModel):
    citations: list[Citation] = Field(..., min_length=1, max_length=5)
    references: list[EvidenceReference] = Field(default_factory=list, max_length=5)
    baseline_comparison: str | None = None


class ClauseAssessment(BaseModel):
    """One assessment as returned by the model."""

    clause_id: str
    risk_level: RiskLevel
    confidence: float = Field(..., ge=0.0, le=1.0)
    explanation: str = Field(..., max_length=500)
    negotiation_suggestion: str | None = None
    atypical_language: bool = False
    atypical_language_note: str | None = None
    evidence: Evidence


class RiskScorerResponse(BaseModel):
    """Structured output of the batched risk-scoring call."""

    assessments: list[ClauseAssessment] = Field(default_factory=list)


class RiskAssessment(ClauseAssessment):
    """Assessment enriched with the clause's category and position."""

    category: ClauseCategory
    start_position: int
    end_position: int


class RiskScorerOutput(BaseModel):
    """Output of the risk scoring stage."""

    assessments: list[RiskAssessment] = Field(default_factory=list)
    overall_risk_score: int = 0
    overall_risk_level: RiskLevel = RiskLevel.UNKNOWN
    risk_distribution: dict[str, int] = Field(default_factory=dict)
    executive_summary: str = ""
    perspective: Perspective = Perspective.BALANCED
    token_usage: TokenUsage = Field(default_factory=TokenUsage)
