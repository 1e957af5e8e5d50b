"""Shared pytest fixtures and mocks for the NDA analysis test suite."""

import numpy as np
import pytest
from unittest.mock import AsyncMock, MagicMock

from nda_analysis.models.classification import ClassifiedClause
from nda_analysis.models.document import DocumentChunk, ParsedDocument
from nda_analysis.models.reference import Granularity, ReferenceItem, ReferenceSource
from nda_analysis.models.taxonomy import ClauseCategory
from nda_analysis.models.usage import TokenUsage
from nda_analysis.services.llm_service import StructuredResult


# ---------------------------------------------------------------------------
# Singleton cache clearing (autouse)
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def clear_singletons():
    """Clear all @lru_cache singletons between tests."""
    from nda_analysis.config import get_settings
    from nda_analysis.pipeline.orchestrator import get_analysis_orchestrator
    from nda_analysis.pipeline.stage1_parse import get_parse_stage
    from nda_analysis.pipeline.stage2_classification import get_classification_stage
    from nda_analysis.pipeline.stage3_risk_scoring import get_risk_scoring_stage
    from nda_analysis.pipeline.stage4_gap_analysis import get_gap_analysis_stage
    from nda_analysis.services.embedding_service import get_embedding_service
    from nda_analysis.services.llm_service import get_llm_service
    from nda_analysis.services.retrieval import get_evidence_retriever
    from nda_analysis.storage.category_table import get_category_source
    from nda_analysis.storage.redis_cache import get_redis_cache
    from nda_analysis.storage.reference_store import get_reference_store

    singletons = [
        get_settings,
        get_analysis_orchestrator,
        get_parse_stage,
        get_classification_stage,
        get_risk_scoring_stage,
        get_gap_analysis_stage,
        get_embedding_service,
        get_llm_service,
        get_evidence_retriever,
        get_category_source,
        get_redis_cache,
        get_reference_store,
    ]
    for factory in singletons:
        factory.cache_clear()
    yield
    for factory in singletons:
        factory.cache_clear()


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

NDA_SECTIONS = [
    "This Mutual Non-Disclosure Agreement is entered into by Acme Corp and Beta LLC.",
    "The Receiving Party shall not disclose Confidential Information to any third party.",
    "This Agreement shall be governed by the laws of the State of Delaware.",
    "The obligations herein survive for three (3) years after termination.",
    "Neither party may assign this Agreement without prior written consent.",
    "Beta LLC shall not solicit employees of Acme Corp for twelve months.",
]


def build_document(sections: list[str], document_id: str = "nda-001") -> ParsedDocument:
    """Join sections with blank lines and emit one chunk per section."""
    chunks = []
    position = 0
    for i, text in enumerate(sections):
        chunks.append(
            DocumentChunk(
                id=f"{document_id}-chunk-{i}",
                index=i,
                content=text,
                section_path=[f"Section {i + 1}"],
                token_count=len(text.split()),
                start_position=position,
                end_position=position + len(text),
            )
        )
        position += len(text) + 2
    return ParsedDocument(
        document_id=document_id,
        title="Mutual NDA",
        raw_text="\n\n".join(sections),
        chunks=chunks,
    )


@pytest.fixture
def document_factory():
    """Factory building a ParsedDocument from section texts."""
    return build_document


@pytest.fixture
def sample_document():
    """Six-chunk NDA."""
    return build_document(NDA_SECTIONS)


@pytest.fixture
def governing_law_document():
    """Single chunk holding an explicit governing-law clause."""
    return build_document(
        ["This Agreement shall be governed by and construed under the laws of New York."],
        document_id="nda-gov",
    )


@pytest.fixture
def sample_clauses():
    """Four ClassifiedClause instances covering relevant categories."""
    return [
        ClassifiedClause(
            chunk_id="c-0", chunk_index=0,
            clause_text="This Agreement is entered into by Acme Corp and Beta LLC.",
            category=ClauseCategory.PARTIES, confidence=0.95,
            start_position=0, end_position=57,
        ),
        ClassifiedClause(
            chunk_id="c-1", chunk_index=1,
            clause_text="This Agreement shall be governed by the laws of Delaware.",
            category=ClauseCategory.GOVERNING_LAW, confidence=0.92,
            start_position=59, end_position=116,
        ),
        ClassifiedClause(
            chunk_id="c-2", chunk_index=2,
            clause_text="Beta LLC shall not compete with Acme Corp anywhere for ten years.",
            category=ClauseCategory.NON_COMPETE, confidence=0.81,
            start_position=118, end_position=183,
        ),
        ClassifiedClause(
            chunk_id="c-3", chunk_index=3,
            clause_text="Neither party may assign this Agreement.",
            category=ClauseCategory.ANTI_ASSIGNMENT, confidence=0.55,
            start_position=185, end_position=225,
        ),
    ]


def make_reference(
    ref_id: str,
    category: str,
    similarity: float,
    granularity: Granularity | None = Granularity.CLAUSE,
    source: ReferenceSource = ReferenceSource.CUAD,
) -> ReferenceItem:
    return ReferenceItem(
        id=ref_id,
        content=f"Reference text for {category} ({ref_id}).",
        category=category,
        similarity=similarity,
        source=source,
        granularity=granularity,
    )


@pytest.fixture
def reference_factory():
    """Factory for ReferenceItem instances."""
    return make_reference


# ---------------------------------------------------------------------------
# Mock service factories
# ---------------------------------------------------------------------------

def structured(output, input_tokens: int = 100, output_tokens: int = 50, model: str = "claude-test"):
    """Wrap a parsed model output the way LLMService.generate_structured returns it."""
    return StructuredResult(
        output=output,
        usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
        model=model,
    )


@pytest.fixture
def structured_result():
    """Factory for StructuredResult instances."""
    return structured


@pytest.fixture
def mock_llm():
    """Mock LLMService avoiding API calls; tests set generate_structured behavior."""
    mock = MagicMock()
    mock.generate_structured = AsyncMock()
    mock.health_check = MagicMock(return_value={"anthropic": True, "openai": False})
    return mock


@pytest.fixture
def mock_retriever():
    """Mock EvidenceRetriever returning no evidence by default."""
    mock = MagicMock()
    mock.search = AsyncMock(return_value=[])
    return mock


@pytest.fixture
def mock_reference_store():
    """Mock ReferenceStore that knows every id it is asked about."""
    mock = MagicMock()
    mock.existing_ids = MagicMock(side_effect=lambda ids: set(ids))
    mock.search = MagicMock(return_value=[])
    return mock


@pytest.fixture
def mock_embedding_service():
    """Mock EmbeddingService avoiding the sentence-transformers model load."""
    mock = MagicMock()

    def _embed(text, use_cache=True):
        seed = sum(ord(ch) for ch in text) % 2**31
        return np.random.RandomState(seed).randn(384).tolist()

    def _embed_batch(texts, use_cache=True, batch_size=32):
        return [_embed(t) for t in texts]

    mock.embed = MagicMock(side_effect=_embed)
    mock.embed_batch = MagicMock(side_effect=_embed_batch)
    return mock
