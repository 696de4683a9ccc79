"""
Pipeline Configuration for the UK Legal RAG System

One dataclass carries every tunable used by the chunker, the retrieval
engine, the upload classifier and the document context assembler.
Defaults match the production behaviour; any field can be overridden
through environment variables (loaded from .env with python-dotenv at the
entry points).
"""

import os
import logging
from dataclasses import dataclass, fields
from typing import Optional

logger = logging.getLogger(__name__)


# Environment variable names for each overridable field
ENV_OVERRIDES = {
    "max_chunk_length": "CHUNK_MAX_LENGTH",
    "min_fragment_length": "CHUNK_MIN_FRAGMENT_LENGTH",
    "strict_threshold": "RETRIEVAL_STRICT_THRESHOLD",
    "relaxed_threshold": "RETRIEVAL_RELAXED_THRESHOLD",
    "fused_top_n": "RETRIEVAL_TOP_N",
    "variant_timeout_seconds": "RETRIEVAL_VARIANT_TIMEOUT",
    "recency_min_year": "RETRIEVAL_RECENCY_MIN_YEAR",
    "document_token_budget": "DOCUMENT_TOKEN_BUDGET",
    "document_ttl_hours": "DOCUMENT_TTL_HOURS",
    "session_ttl_seconds": "SESSION_TTL_SECONDS",
    "max_sessions": "SESSION_MAX_SESSIONS",
    "llm_model": "LLM_MODEL",
    "embedding_provider": "EMBEDDING_PROVIDER",
    "embedding_model": "EMBEDDING_MODEL",
    "embedding_dimensions": "EMBEDDING_DIMENSIONS",
    "lexicon_path": "LEXICON_PATH",
}


@dataclass
class PipelineConfig:
    """Tunables for chunking, retrieval, upload classification and context assembly."""

    # Chunker
    max_chunk_length: int = 1200
    min_fragment_length: int = 30
    split_margin: int = 100  # room left for [section] markers when pre-splitting
    min_long_title_length: int = 20

    # Retrieval
    raw_top_k: int = 3
    enhanced_top_k: int = 3
    filtered_top_k: int = 2
    fused_top_n: int = 5
    strict_threshold: float = 0.7
    relaxed_threshold: float = 0.65
    long_query_tokens: int = 10
    recency_min_year: int = 2000
    variant_timeout_seconds: float = 10.0
    fallback_hint_count: int = 2
    fallback_hint_chars: int = 300

    # Uploaded documents
    document_token_budget: int = 6000
    query_token_reserve: int = 500
    chars_per_token: int = 4
    min_partial_chars: int = 50
    min_document_chars: int = 50
    max_relevant_documents: int = 3
    document_ttl_hours: int = 24
    max_upload_bytes: int = 10 * 1024 * 1024
    max_upload_files: int = 5
    summary_source_chars: int = 2000

    # Session memory
    session_ttl_seconds: float = 24 * 3600
    max_sessions: int = 10000

    # Models
    llm_model: str = "gpt-4o"
    llm_temperature: float = 0.1
    embedding_provider: str = "openai"  # "openai" or "voyage"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Optional JSON file replacing the built-in lexicons
    lexicon_path: Optional[str] = None

    @classmethod
    def from_env(cls, **overrides) -> "PipelineConfig":
        """
        Build a config from environment variables.

        Args:
            **overrides: Explicit values that win over the environment

        Returns:
            PipelineConfig with env overrides applied
        """
        defaults = cls()
        values = {}
        types = {f.name: type(getattr(defaults, f.name)) for f in fields(cls)}

        for name, env_var in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None or raw == "":
                continue
            target = types.get(name)
            try:
                if target is bool:
                    values[name] = raw.lower() in ("1", "true", "yes")
                elif target in (int, float):
                    values[name] = target(raw)
                else:
                    values[name] = raw
            except ValueError:
                logger.warning(f"Ignoring invalid value for {env_var}: {raw!r}")

        values.update(overrides)
        return cls(**values)

    @property
    def document_char_budget(self) -> int:
        """Character equivalent of the document token budget."""
        return self.document_token_budget * self.chars_per_token
