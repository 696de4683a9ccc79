"""
Tests for execution/uk_legal_rag/embeddings.py

Covers: EmbeddingConfig, OpenAIEmbeddingService, VoyageEmbeddingService,
        get_embedding_service() factory, caching behaviour, and batching.

All external API calls are mocked.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.conftest import run


def _openai_service(monkeypatch, vectors_for=None, **config_overrides):
    """OpenAI service whose client returns one vector per input text."""
    from execution.uk_legal_rag.embeddings import EmbeddingConfig, OpenAIEmbeddingService

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    service = OpenAIEmbeddingService(EmbeddingConfig(**config_overrides))
    vectors_for = vectors_for or (lambda text: [float(len(text)), 0.0])

    async def create(model, input):
        # Return items out of order to exercise index sorting
        data = [SimpleNamespace(index=i, embedding=vectors_for(t)) for i, t in enumerate(input)]
        return SimpleNamespace(data=list(reversed(data)))

    service._client = MagicMock()
    service._client.embeddings.create = AsyncMock(side_effect=create)
    return service


class TestEmbeddingConfig:
    def test_defaults(self):
        from execution.uk_legal_rag.embeddings import EmbeddingConfig
        cfg = EmbeddingConfig()
        assert cfg.provider == "openai"
        assert cfg.model == "text-embedding-3-small"
        assert cfg.dimensions == 1536
        assert cfg.use_cache is True


class TestOpenAIEmbeddingService:
    def test_embed_documents_empty_list(self, monkeypatch):
        service = _openai_service(monkeypatch)
        assert run(service.embed_documents([])) == []
        service._client.embeddings.create.assert_not_called()

    def test_order_preserved(self, monkeypatch):
        service = _openai_service(monkeypatch)
        assert run(service.embed_documents(["a", "bbb", "cc"])) == [[1.0, 0.0], [3.0, 0.0], [2.0, 0.0]]

    def test_query_cached(self, monkeypatch):
        service = _openai_service(monkeypatch)
        first = run(service.embed_query("notice period"))
        second = run(service.embed_query("notice period"))
        assert first == second
        assert service._client.embeddings.create.await_count == 1

    def test_file_cache(self, monkeypatch, tmp_path):
        service = _openai_service(monkeypatch, cache_dir=str(tmp_path))
        run(service.embed_query("notice period"))
        assert len(list(tmp_path.glob("*.json"))) == 1

        fresh = _openai_service(monkeypatch, cache_dir=str(tmp_path))
        run(fresh.embed_query("notice period"))
        fresh._client.embeddings.create.assert_not_called()

    def test_cache_disabled(self, monkeypatch):
        service = _openai_service(monkeypatch, use_cache=False)
        run(service.embed_query("q"))
        run(service.embed_query("q"))
        assert service._client.embeddings.create.await_count == 2

    def test_missing_client(self, monkeypatch):
        from execution.uk_legal_rag.embeddings import OpenAIEmbeddingService
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        service = OpenAIEmbeddingService()
        with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
            run(service.embed_query("q"))

    def test_api_error_propagates(self, monkeypatch):
        service = _openai_service(monkeypatch)
        service._client.embeddings.create = AsyncMock(side_effect=ConnectionError("timeout"))
        with pytest.raises(ConnectionError):
            run(service.embed_documents(["text"]))


class TestBatching:
    def test_batch_size_limit(self, monkeypatch):
        service = _openai_service(monkeypatch, batch_size=2)
        assert [len(b) for b in service._create_batches(["a", "b", "c", "d", "e"])] == [2, 2, 1]

    def test_token_limit(self, monkeypatch):
        service = _openai_service(monkeypatch, max_tokens_per_batch=10, chars_per_token=1.0)
        batches = service._create_batches(["x" * 6, "y" * 6, "z" * 3])
        assert batches == [["x" * 6], ["y" * 6, "z" * 3]]

    def test_oversized_text_gets_own_batch(self, monkeypatch):
        service = _openai_service(monkeypatch, max_tokens_per_batch=5, chars_per_token=1.0)
        assert service._create_batches(["x" * 50]) == [["x" * 50]]


class TestVoyageEmbeddingService:
    def test_input_types(self, monkeypatch):
        from execution.uk_legal_rag.embeddings import get_embedding_service
        monkeypatch.delenv("VOYAGE_API_KEY", raising=False)
        service = get_embedding_service("voyage")
        service._client = MagicMock()
        service._client.embed = AsyncMock(return_value=SimpleNamespace(embeddings=[[0.5]]))

        run(service.embed_query("q"))
        assert service._client.embed.call_args.kwargs["input_type"] == "query"
        run(service.embed_documents(["d"]))
        assert service._client.embed.call_args.kwargs["input_type"] == "document"


class TestFactory:
    def test_openai_default(self, monkeypatch):
        from execution.uk_legal_rag.embeddings import OpenAIEmbeddingService, get_embedding_service
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        service = get_embedding_service()
        assert isinstance(service, OpenAIEmbeddingService)
        assert service.dimensions == 1536

    def test_voyage(self, monkeypatch):
        from execution.uk_legal_rag.embeddings import VoyageEmbeddingService, get_embedding_service
        monkeypatch.delenv("VOYAGE_API_KEY", raising=False)
        service = get_embedding_service("voyage", model="voyage-law-2")
        assert isinstance(service, VoyageEmbeddingService)
        assert service.dimensions == 1024
