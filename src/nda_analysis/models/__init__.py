"""
Pydantic models for the NDA analysis pipeline.

This module contains all data models used throughout the application:
- Document models for the parsed NDA and its chunks
- Reference models for retrieved corpus passages
- Stage output models for classification, risk scoring and gap analysis
"""

from nda_analysis.models.classification import (
    ChunkClassification,
    ClassificationEntry,
    ClassifiedClause,
    ClassifierOutput,
    ClassifierResponse,
    PrimaryLabel,
    SecondaryLabel,
)
from nda_analysis.models.document import DocumentChunk, ParsedDocument
from nda_analysis.models.gap import (
    CoverageSummary,
    GapAnalystOutput,
    GapExplanation,
    GapExplanationResponse,
    GapItem,
    HypothesisResult,
)
from nda_analysis.models.reference import Granularity, ReferenceItem, ReferenceSource
from nda_analysis.models.risk import (
    Citation,
    ClauseAssessment,
    Evidence,
    EvidenceReference,
    RiskAssessment,
    RiskScorerOutput,
    RiskScorerResponse,
)
from nda_analysis.models.taxonomy import (
    ClauseCategory,
    ContractNLICategory,
    GapSeverity,
    GapStatus,
    HypothesisStatus,
    Perspective,
    RiskLevel,
)
from nda_analysis.models.usage import TokenUsage

__all__ = [
    # Document models
    "DocumentChunk",
    "ParsedDocument",
    # Reference models
    "Granularity",
    "ReferenceItem",
    "ReferenceSource",
    # Classification
    "ChunkClassification",
    "ClassificationEntry",
    "ClassifiedClause",
    "ClassifierOutput",
    "ClassifierResponse",
    "PrimaryLabel",
    "SecondaryLabel",
    # Risk
    "Citation",
    "ClauseAssessment",
    "Evidence",
    "EvidenceReference",
    "RiskAssessment",
    "RiskScorerOutput",
    "RiskScorerResponse",
    # Gap
    "CoverageSummary",
    "GapAnalystOutput",
    "GapExplanation",
    "GapExplanationResponse",
    "GapItem",
    "HypothesisResult",
    # Taxonomy
    "ClauseCategory",
    "ContractNLICategory",
    "GapSeverity",
    "GapStatus",
    "HypothesisStatus",
    "Perspective",
    "RiskLevel",
    # Usage
    "TokenUsage",
]
