"""Tests for pipeline configuration and loadable lexicons."""

import json

import pytest


class TestPipelineConfig:
    def test_defaults(self):
        from execution.uk_legal_rag.config import PipelineConfig
        config = PipelineConfig()
        assert config.max_chunk_length == 1200
        assert (config.strict_threshold, config.relaxed_threshold) == (0.7, 0.65)
        assert config.document_char_budget == 24000

    def test_env_overrides(self, monkeypatch):
        from execution.uk_legal_rag.config import PipelineConfig
        monkeypatch.setenv("CHUNK_MAX_LENGTH", "800")
        monkeypatch.setenv("RETRIEVAL_STRICT_THRESHOLD", "0.75")
        monkeypatch.setenv("EMBEDDING_PROVIDER", "voyage")
        monkeypatch.setenv("LEXICON_PATH", "/tmp/lexicons.json")
        config = PipelineConfig.from_env()
        assert config.max_chunk_length == 800
        assert config.strict_threshold == 0.75
        assert config.embedding_provider == "voyage"
        assert config.lexicon_path == "/tmp/lexicons.json"

    def test_invalid_value_ignored(self, monkeypatch):
        from execution.uk_legal_rag.config import PipelineConfig
        monkeypatch.setenv("RETRIEVAL_TOP_N", "many")
        assert PipelineConfig.from_env().fused_top_n == 5

    def test_explicit_overrides_win(self, monkeypatch):
        from execution.uk_legal_rag.config import PipelineConfig
        monkeypatch.setenv("DOCUMENT_TOKEN_BUDGET", "3000")
        assert PipelineConfig.from_env(document_token_budget=100).document_token_budget == 100


class TestLexicons:
    def test_defaults_are_independent_copies(self):
        from execution.uk_legal_rag.lexicons import Lexicons
        first = Lexicons()
        first.query_categories["employment law"].append("zzz")
        assert "zzz" not in Lexicons().query_categories["employment law"]

    def test_from_dict_keeps_absent_defaults(self):
        from execution.uk_legal_rag.lexicons import Lexicons
        lexicons = Lexicons.from_dict({"recency_triggers": ["LATEST"]})
        assert lexicons.recency_triggers == ["latest"]
        assert lexicons.category("legislation").weight == 5

    def test_from_file(self, tmp_path):
        from execution.uk_legal_rag.lexicons import Lexicons
        path = tmp_path / "lexicons.json"
        path.write_text(json.dumps({
            "relevance_categories": {"tenancy": {"weight": 3, "terms": ["Landlord", "tenant"]}},
            "strong_indicator_categories": ["tenancy"],
        }))
        lexicons = Lexicons.from_file(str(path))
        assert [c.name for c in lexicons.relevance_categories] == ["tenancy"]
        assert lexicons.category("tenancy").terms == ["landlord", "tenant"]
        assert lexicons.strong_indicator_categories == ("tenancy",)

    def test_from_file_rejects_non_object(self, tmp_path):
        from execution.uk_legal_rag.lexicons import Lexicons
        path = tmp_path / "lexicons.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            Lexicons.from_file(str(path))

    def test_custom_lexicon_drives_classifier(self, tmp_path):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        from execution.uk_legal_rag.lexicons import load_lexicons
        path = tmp_path / "lexicons.json"
        path.write_text(json.dumps({
            "relevance_categories": {"tenancy": {"weight": 4, "terms": ["landlord", "tenant"]}},
            "strong_indicator_categories": ["tenancy"],
            "filename_keywords": [],
        }))
        assessment = LegalRelevanceClassifier(load_lexicons(str(path))).classify(
            "The landlord and the tenant agree", "lease.txt"
        )
        assert assessment.score == 8
        assert assessment.is_relevant
