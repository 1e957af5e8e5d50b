"""Tests for nda_analysis/models: taxonomy, validation constraints and payload mapping."""

import pytest
from pydantic import ValidationError

from nda_analysis.models import (
    ClassificationEntry,
    ClauseAssessment,
    DocumentChunk,
    ReferenceItem,
    SecondaryLabel,
)
from nda_analysis.models.taxonomy import (
    CONTRACT_NLI_HYPOTHESES,
    CRITICAL_HYPOTHESIS_CATEGORIES,
    ClauseCategory,
    ContractNLICategory,
)


class TestTaxonomy:

    def test_cuad_excludes_sentinels(self):
        cuad = ClauseCategory.cuad()
        assert len(cuad) == 40
        assert ClauseCategory.UNKNOWN not in cuad
        assert ClauseCategory.UNCATEGORIZED not in cuad

    def test_contract_nli_categories(self):
        assert len(ContractNLICategory) == 17

    def test_hypotheses_ordered(self):
        assert [h.id for h in CONTRACT_NLI_HYPOTHESES] == [f"nli-{i}" for i in range(1, 11)]

    def test_critical_hypothesis_categories_match_importance(self):
        critical = {h.category for h in CONTRACT_NLI_HYPOTHESES if h.importance == "critical"}
        assert critical == CRITICAL_HYPOTHESIS_CATEGORIES


class TestClassificationModels:

    def test_secondary_rejects_uncategorized(self):
        with pytest.raises(ValidationError):
            SecondaryLabel(category=ClauseCategory.UNCATEGORIZED, confidence=0.5)

    def test_at_most_two_secondaries(self):
        secondaries = [
            {"category": c, "confidence": 0.5}
            for c in ("Parties", "Insurance", "Audit Rights")
        ]
        with pytest.raises(ValidationError):
            ClassificationEntry(
                chunk_index=0,
                category=ClauseCategory.NON_COMPETE,
                confidence=0.9,
                secondary_categories=secondaries,
            )

    def test_unknown_category_string_rejected(self):
        with pytest.raises(ValidationError):
            ClassificationEntry(chunk_index=0, category="Confidentiality", confidence=0.9)

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            ClassificationEntry(chunk_index=0, category=ClauseCategory.PARTIES, confidence=1.2)


class TestRiskModels:

    def _payload(self, **overrides):
        data = {
            "clause_id": "c-1",
            "risk_level": "cautious",
            "confidence": 0.7,
            "explanation": "One-sided.",
            "evidence": {"citations": [{"text": "quote", "source_type": "clause"}]},
        }
        data.update(overrides)
        return data

    def test_valid(self):
        assert ClauseAssessment.model_validate(self._payload()).risk_level.value == "cautious"

    def test_requires_citation(self):
        with pytest.raises(ValidationError):
            ClauseAssessment.model_validate(self._payload(evidence={"citations": []}))

    def test_explanation_length_capped(self):
        with pytest.raises(ValidationError):
            ClauseAssessment.model_validate(self._payload(explanation="x" * 501))

    def test_citation_source_type_closed(self):
        with pytest.raises(ValidationError):
            ClauseAssessment.model_validate(
                self._payload(evidence={"citations": [{"text": "q", "source_type": "rumor"}]})
            )


class TestReferenceItem:

    def test_payload_uses_reference_id(self, reference_factory):
        payload = reference_factory("cuad-9", "Parties", 0.5).to_payload()
        assert payload["reference_id"] == "cuad-9"
        assert payload["granularity"] == "clause"
        assert "similarity" not in payload

    def test_from_payload_clamps_similarity(self):
        item = ReferenceItem.from_payload(
            {"reference_id": "x", "content": "c", "category": "Parties", "source": "cuad"}, -0.2
        )
        assert item.similarity == 0.0
        assert item.granularity is None


class TestDocumentChunk:

    def test_frozen(self):
        chunk = DocumentChunk(id="c", index=0, content="x", start_position=0, end_position=1)
        with pytest.raises(ValidationError):
            chunk.index = 2
