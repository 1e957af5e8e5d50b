"""
NDA Analysis: evidence-grounded analysis of non-disclosure agreements.

Runs a document through four language-model-backed stages (parse,
classify against the CUAD taxonomy, score risk, detect coverage gaps),
grounding each decision in reference passages retrieved by embedding
similarity.
"""

__version__ = "0.1.0"
__author__ = "NDA Analysis Team"

from nda_analysis.config import get_settings

__all__ = ["get_settings", "__version__"]
