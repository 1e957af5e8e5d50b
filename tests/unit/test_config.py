"""Tests for nda_analysis/config.py: Settings defaults and caching."""

from pathlib import Path

import pytest

from nda_analysis.config import Settings, get_settings


class TestSettings:

    def test_get_settings_returns_instance(self):
        assert isinstance(get_settings(), Settings)

    def test_get_settings_returns_singleton(self):
        assert get_settings() is get_settings()

    def test_cache_clear_rebuilds(self):
        s1 = get_settings()
        get_settings.cache_clear()
        assert get_settings() is not s1

    def test_primary_llm_provider_default(self):
        assert Settings().primary_llm_provider == "anthropic"

    def test_fallback_llm_provider_default(self):
        assert Settings().fallback_llm_provider == "openai"

    def test_temperature_is_deterministic(self):
        assert Settings().llm_temperature == 0.0

    def test_embedding_defaults(self):
        s = Settings()
        assert s.embedding_model == "all-MiniLM-L6-v2"
        assert s.embedding_dimension == 384


class TestPipelineDefaults:

    def test_confidence_thresholds(self):
        s = Settings()
        assert s.classification_confidence_floor == 0.3
        assert s.low_confidence_threshold == 0.7

    def test_reference_selector_max(self):
        assert Settings().reference_selector_max == 10

    def test_reduced_evidence_limits_are_smaller(self):
        s = Settings()
        assert s.risk_clause_evidence_limit_reduced < s.risk_clause_evidence_limit
        assert s.risk_template_evidence_limit_reduced < s.risk_template_evidence_limit
        assert s.risk_span_evidence_limit_reduced < s.risk_span_evidence_limit

    def test_gap_defaults(self):
        s = Settings()
        assert s.gap_template_limit == 2
        assert s.max_hypotheses_tested == 5
        assert s.critical_weight_threshold == 1.5

    def test_stage_budgets_sum_to_token_budget(self):
        s = Settings()
        assert sum(s.stage_budgets.values()) == s.token_budget

    def test_category_table_path_exists(self):
        assert Settings().category_table_path.exists()


class TestEnvironmentOverrides:

    def test_env_overrides_budget(self, monkeypatch):
        monkeypatch.setenv("TOKEN_BUDGET", "1000")
        assert Settings().token_budget == 1000

    def test_string_path_converted(self, monkeypatch, tmp_path):
        target = tmp_path / "table.json"
        monkeypatch.setenv("CATEGORY_TABLE_PATH", str(target))
        s = Settings()
        assert isinstance(s.category_table_path, Path)
        assert s.category_table_path == target

    def test_invalid_provider_rejected(self, monkeypatch):
        monkeypatch.setenv("PRIMARY_LLM_PROVIDER", "cohere")
        with pytest.raises(Exception):
            Settings()
