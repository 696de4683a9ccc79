"""
Embedding Services

Turns legislation chunks and user questions into vectors for the pgvector
index. Two providers:

    OpenAIEmbeddingService  -- text-embedding-3-small, 1536 dims (default)
    VoyageEmbeddingService  -- voyage-law-2, 1024 dims, legal-domain model

Vectors are cached per (model, input type, text) in memory and, when a
cache directory is configured, as one JSON file per key so that
re-ingesting an unchanged Act costs no API calls.
"""

import os
import json
import hashlib
import logging
from typing import Optional, Union
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 10


@dataclass
class EmbeddingConfig:
    """Provider, model and request-sizing settings."""
    provider: str = "openai"  # "openai" or "voyage"
    model: str = "text-embedding-3-small"
    dimensions: int = 1536
    batch_size: int = 128
    max_tokens_per_batch: int = 100000
    chars_per_token: float = 4.0
    cache_dir: Optional[str] = None
    use_cache: bool = True


class EmbeddingCache:
    """Two-level vector cache: a dict in front of an optional JSON directory."""

    def __init__(self, model: str, directory: Optional[str] = None, enabled: bool = True):
        self.model = model
        self.enabled = enabled
        self._memory: dict[str, list[float]] = {}
        self._directory = Path(directory) if directory else None
        if self._directory:
            self._directory.mkdir(parents=True, exist_ok=True)

    def key(self, text: str, input_type: str) -> str:
        digest = hashlib.sha256(f"{self.model}:{input_type}:{text}".encode())
        return digest.hexdigest()[:32]

    def get(self, key: str) -> Optional[list[float]]:
        if not self.enabled:
            return None
        if key in self._memory:
            return self._memory[key]
        if self._directory is None:
            return None

        path = self._directory / f"{key}.json"
        if not path.exists():
            return None
        try:
            vector = json.loads(path.read_text())
        except (OSError, ValueError) as e:
            logger.debug(f"Unreadable embedding cache entry {path.name}: {e}")
            return None
        self._memory[key] = vector
        return vector

    def put(self, key: str, vector: list[float]) -> None:
        if not self.enabled:
            return
        self._memory[key] = vector
        if self._directory is None:
            return
        try:
            (self._directory / f"{key}.json").write_text(json.dumps(vector))
        except OSError as e:
            logger.warning(f"Could not persist embedding {key}: {e}")


class BaseEmbeddingService:
    """
    Shared batching and caching for the API providers.

    Subclasses set the provider name and key variable, then implement
    _init_client() and _request_embeddings().
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self.cache = EmbeddingCache(
            self.config.model, self.config.cache_dir, self.config.use_cache
        )
        self._client = None
        self._init_client()

    @property
    def dimensions(self) -> int:
        return self.config.dimensions

    def _init_client(self):
        raise NotImplementedError

    async def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        raise NotImplementedError

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """
        Group texts so no request exceeds batch_size items or the token
        budget. A single text over the budget still gets a batch to itself.
        """
        limit_items = self.config.batch_size
        limit_tokens = self.config.max_tokens_per_batch
        batches: list[list[str]] = []
        tokens = 0.0

        for text in texts:
            estimate = len(text) / self.config.chars_per_token
            current = batches[-1] if batches else None
            if current and len(current) < limit_items and tokens + estimate <= limit_tokens:
                current.append(text)
                tokens += estimate
            else:
                batches.append([text])
                tokens = estimate
        return batches

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """Vectors for legislation chunks or uploaded text, in input order."""
        if not texts:
            return []
        self._check_client()

        batches = self._create_batches(texts)
        logger.info(
            f"{self._provider_name}: embedding {len(texts)} texts in {len(batches)} requests"
        )
        vectors: list[list[float]] = []
        for number, batch in enumerate(batches, start=1):
            vectors += await self._embed_with_cache(batch, self._doc_input_type)
            if number % PROGRESS_EVERY == 0:
                logger.info(f"{self._provider_name}: {number}/{len(batches)} requests done")
        return vectors

    async def embed_query(self, query: str) -> list[float]:
        """Vector for one user question."""
        self._check_client()
        vectors = await self._embed_with_cache([query], self._query_input_type)
        return vectors[0] if vectors else []

    def _check_client(self) -> None:
        if self._client is None:
            raise RuntimeError(
                f"{self._provider_name} embeddings unavailable: set {self._env_var_name}"
            )

    async def _embed_with_cache(self, texts: list[str], input_type: str) -> list[list[float]]:
        keys = [self.cache.key(text, input_type) for text in texts]
        found = [self.cache.get(key) for key in keys]
        missing = [i for i, vector in enumerate(found) if vector is None]

        if missing:
            try:
                fresh = await self._request_embeddings([texts[i] for i in missing], input_type)
            except Exception as e:
                logger.error(f"{self._provider_name} embedding request failed: {e}")
                raise
            for i, vector in zip(missing, fresh):
                self.cache.put(keys[i], vector)
                found[i] = vector

        return found


class OpenAIEmbeddingService(BaseEmbeddingService):
    """text-embedding-3 models; the API has no document/query distinction."""

    _provider_name = "OpenAI"
    _env_var_name = "OPENAI_API_KEY"

    def _init_client(self):
        api_key = os.getenv(self._env_var_name)
        if not api_key:
            logger.warning(f"{self._env_var_name} not set; embedding calls will fail")
            return

        from openai import AsyncOpenAI
        self._client = AsyncOpenAI(api_key=api_key, timeout=60.0)
        logger.info(f"OpenAI embeddings ready ({self.config.model})")

    async def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = await self._client.embeddings.create(model=self.config.model, input=texts)
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]


class VoyageEmbeddingService(BaseEmbeddingService):
    """
    voyage-law-2: 1024-dimensional vectors trained on legal text.

    Chunks are sent with input_type="document" and questions with
    input_type="query"; the model embeds the two asymmetrically.
    """

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"

    def _init_client(self):
        api_key = os.getenv(self._env_var_name)
        if not api_key:
            logger.warning(
                f"{self._env_var_name} not set; embedding calls will fail "
                "(keys are issued at https://dash.voyageai.com/)"
            )
            return

        import voyageai
        self._client = voyageai.AsyncClient(api_key=api_key)
        logger.info(f"Voyage AI embeddings ready ({self.config.model})")

    async def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        result = await self._client.embed(
            texts=texts, model=self.config.model, input_type=input_type
        )
        return result.embeddings


PROVIDER_DEFAULTS = {
    "openai": dict(
        model="text-embedding-3-small", dimensions=1536,
        batch_size=512, max_tokens_per_batch=250000,
    ),
    "voyage": dict(
        model="voyage-law-2", dimensions=1024,
        batch_size=128, chars_per_token=2.0,
    ),
}


def get_embedding_service(
    provider: str = "openai",
    model: Optional[str] = None,
    cache_dir: Optional[str] = None,
) -> Union[OpenAIEmbeddingService, VoyageEmbeddingService]:
    """
    Build the embedding service for a provider name.

    Unknown providers fall back to OpenAI.
    """
    if provider not in PROVIDER_DEFAULTS:
        provider = "openai"
    settings = dict(PROVIDER_DEFAULTS[provider], provider=provider, cache_dir=cache_dir)
    if model:
        settings["model"] = model

    service_cls = VoyageEmbeddingService if provider == "voyage" else OpenAIEmbeddingService
    return service_cls(EmbeddingConfig(**settings))


if __name__ == "__main__":
    import sys
    import asyncio
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    service = get_embedding_service(provider=os.getenv("EMBEDDING_PROVIDER", "openai"))
    question = " ".join(sys.argv[1:]) or "What notice period must an employer give?"
    vector = asyncio.run(service.embed_query(question))
    print(f"{service._provider_name} / {service.config.model}: {len(vector)} dims")
    print(vector[:10])
