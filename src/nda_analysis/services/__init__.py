"""
Business logic services for the NDA analysis pipeline.
"""

from nda_analysis.services.embedding_service import EmbeddingService, get_embedding_service
from nda_analysis.services.llm_service import LLMService, StructuredResult, get_llm_service
from nda_analysis.services.reference_selector import ReferenceSelection, select_references
from nda_analysis.services.retrieval import (
    EvidenceRetriever,
    SearchCache,
    get_evidence_retriever,
)

__all__ = [
    "EmbeddingService",
    "get_embedding_service",
    "LLMService",
    "StructuredResult",
    "get_llm_service",
    "ReferenceSelection",
    "select_references",
    "EvidenceRetriever",
    "SearchCache",
    "get_evidence_retriever",
]
