"""
NDA analysis pipeline.

Stage 1: Parse - validate the supplied document and its chunks
Stage 2: Classification - CUAD categories for every chunk, one model call
Stage 3: Risk Scoring - evidence-grounded risk per clause, one model call
Stage 4: Gap Analysis - coverage gaps and ContractNLI hypotheses
"""

from nda_analysis.pipeline.orchestrator import (
    AnalysisOrchestrator,
    AnalysisResult,
    PipelineStatus,
    get_analysis_orchestrator,
)
from nda_analysis.pipeline.stage1_parse import ParseStage, get_parse_stage
from nda_analysis.pipeline.stage2_classification import (
    ClassificationStage,
    get_classification_stage,
)
from nda_analysis.pipeline.stage3_risk_scoring import RiskScoringStage, get_risk_scoring_stage
from nda_analysis.pipeline.stage4_gap_analysis import GapAnalysisStage, get_gap_analysis_stage

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisResult",
    "PipelineStatus",
    "get_analysis_orchestrator",
    "ParseStage",
    "get_parse_stage",
    "ClassificationStage",
    "get_classification_stage",
    "RiskScoringStage",
    "get_risk_scoring_stage",
    "GapAnalysisStage",
    "get_gap_analysis_stage",
]
