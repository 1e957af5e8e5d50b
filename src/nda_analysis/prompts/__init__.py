"""
Prompt templates for the model-backed pipeline stages.
"""

from nda_analysis.prompts.classifier import (
    CLASSIFIER_SYSTEM_PROMPT,
    ChunkPromptView,
    build_classifier_prompt,
)
from nda_analysis.prompts.gap_analyst import (
    GAP_ANALYST_SYSTEM_PROMPT,
    HYPOTHESIS_SYSTEM_PROMPT,
    build_gap_prompt,
    build_hypothesis_prompt,
)
from nda_analysis.prompts.risk_scorer import (
    RISK_SCORER_SYSTEM_PROMPT,
    ClauseEvidence,
    build_risk_scorer_prompt,
)

__all__ = [
    "CLASSIFIER_SYSTEM_PROMPT",
    "ChunkPromptView",
    "build_classifier_prompt",
    "GAP_ANALYST_SYSTEM_PROMPT",
    "HYPOTHESIS_SYSTEM_PROMPT",
    "build_gap_prompt",
    "build_hypothesis_prompt",
    "RISK_SCORER_SYSTEM_PROMPT",
    "ClauseEvidence",
    "build_risk_scorer_prompt",
]
