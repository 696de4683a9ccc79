"""
Multi-Strategy Retrieval for the UK Legal RAG System

Pipeline:
1. Query expansion with statute/section vocabulary
2. Concurrent dispatch of search variants (raw, enhanced, category-filtered,
   recency-filtered), each bounded by its own timeout
3. Fusion: first occurrence of a chunk wins, stable sort by score, top N
4. Adaptive threshold (stricter for short single-topic queries)
5. Grounded mode when evidence clears the threshold, otherwise fallback
   mode with the best sub-threshold candidates as hints
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .config import PipelineConfig
from .errors import InputError, RetrievalFailure
from .lexicons import Lexicons
from .legal_patterns import DEFAULT_QUERY_CATEGORY
from .metrics import get_metrics_collector
from .vector_store import RetrievalCandidate

logger = logging.getLogger(__name__)

GROUNDED = "grounded"
FALLBACK = "fallback"


@dataclass
class SearchVariant:
    """One concurrent search issued for a query."""
    name: str
    query: str
    top_k: int
    legislation_type: Optional[str] = None
    min_year: Optional[int] = None


@dataclass
class EvidenceSet:
    """Fused candidates: unique by chunk id, descending by score."""
    candidates: list[RetrievalCandidate] = field(default_factory=list)

    @classmethod
    def from_variants(
        cls,
        result_lists: Iterable[Iterable[RetrievalCandidate]],
        top_n: int = 5,
    ) -> "EvidenceSet":
        """
        Merge variant results.

        The first occurrence of a chunk id keeps its score; later duplicates
        are dropped rather than averaged. The sort is stable, so equal scores
        keep discovery order.
        """
        seen = set()
        merged = []
        for results in result_lists:
            for candidate in results:
                if candidate.chunk_id in seen:
                    continue
                seen.add(candidate.chunk_id)
                merged.append(candidate)
        merged.sort(key=lambda c: c.score, reverse=True)
        return cls(candidates=merged[:top_n])

    def __iter__(self) -> Iterator[RetrievalCandidate]:
        return iter(self.candidates)

    def __len__(self) -> int:
        return len(self.candidates)

    def __getitem__(self, index):
        return self.candidates[index]

    @property
    def best_score(self) -> float:
        return self.candidates[0].score if self.candidates else 0.0

    @property
    def legislation_types(self) -> list[str]:
        """Distinct legislation types in first-seen order."""
        types = []
        for candidate in self.candidates:
            if candidate.legislation_type and candidate.legislation_type not in types:
                types.append(candidate.legislation_type)
        return types


@dataclass
class RetrievalOutcome:
    """The gating decision for one query."""
    mode: str
    evidence: list[RetrievalCandidate]
    hints: list[RetrievalCandidate]
    threshold: float
    best_score: float
    legislation_types: list[str]
    context_summary: str = ""
    query_category: Optional[str] = None
    timed_out_variants: list[str] = field(default_factory=list)

    @property
    def is_grounded(self) -> bool:
        return self.mode == GROUNDED

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "evidence": [c.to_dict() for c in self.evidence],
            "hints": [c.to_dict() for c in self.hints],
            "threshold": self.threshold,
            "best_score": self.best_score,
            "legislation_types": self.legislation_types,
            "context_summary": self.context_summary,
            "query_category": self.query_category,
            "timed_out_variants": self.timed_out_variants,
        }


class MultiStrategyRetriever:
    """
    Parallel multi-variant retrieval over the legislation index.

    The vector store is synchronous (psycopg2), so its calls run in worker
    threads; embedding calls are awaited directly.
    """

    def __init__(
        self,
        vector_store,
        embedding_service,
        config: Optional[PipelineConfig] = None,
        lexicons: Optional[Lexicons] = None,
    ):
        """
        Initialize retriever.

        Args:
            vector_store: Object with search(embedding, top_k, legislation_type, min_year)
            embedding_service: Object with async embed_query(text)
            config: Optional pipeline configuration
            lexicons: Optional heuristics; defaults to the built-in vocabularies
        """
        self.store = vector_store
        self.embeddings = embedding_service
        self.config = config or PipelineConfig()
        self.lexicons = lexicons or Lexicons()

    # =========================================================================
    # Query analysis
    # =========================================================================

    def expand_query(self, query: str) -> str:
        """Lowercased query plus every triggered statute expansion and the generic suffix."""
        enhanced = query.lower()
        for key, expansion in self.lexicons.query_expansions.items():
            if key.replace(" ", "", 1) in enhanced or key in enhanced:
                enhanced += " " + expansion
        return f"{enhanced} {self.lexicons.expansion_suffix}"

    def plan_variants(self, query: str) -> list[SearchVariant]:
        """Raw and enhanced searches, plus category and recency searches the query triggers."""
        cfg = self.config
        variants = [
            SearchVariant("raw", query, cfg.raw_top_k),
            SearchVariant("enhanced", self.expand_query(query), cfg.enhanced_top_k),
        ]

        query_lower = query.lower()
        for legislation_type, triggers in self.lexicons.category_triggers.items():
            if any(t in query_lower for t in triggers):
                variants.append(SearchVariant(
                    f"category:{legislation_type}",
                    query,
                    cfg.filtered_top_k,
                    legislation_type=legislation_type,
                ))

        if any(t in query_lower for t in self.lexicons.recency_triggers):
            variants.append(SearchVariant(
                "recency", query, cfg.filtered_top_k, min_year=cfg.recency_min_year,
            ))
        return variants

    def categorize_query(self, query: str) -> str:
        """First matching keyword cluster; order is significant."""
        query_lower = query.lower()
        for category, keywords in self.lexicons.query_categories.items():
            if any(k in query_lower for k in keywords):
                return category
        return DEFAULT_QUERY_CATEGORY

    def select_threshold(self, query: str, evidence: EvidenceSet) -> float:
        """Relaxed bar for long queries or evidence spanning several legislation types."""
        is_long = len(query.split()) > self.config.long_query_tokens
        is_broad = len(evidence.legislation_types) > 1
        if is_long or is_broad:
            return self.config.relaxed_threshold
        return self.config.strict_threshold

    @staticmethod
    def build_context_summary(evidence: Iterable[RetrievalCandidate]) -> str:
        """Group act titles by legislation type: 'type: t1, t2; type2: t3'."""
        by_type: dict[str, list[str]] = {}
        for candidate in evidence:
            titles = by_type.setdefault(candidate.legislation_type or "general", [])
            if candidate.act_title and candidate.act_title not in titles:
                titles.append(candidate.act_title)
        return "; ".join(f"{t}: {', '.join(titles)}" for t, titles in by_type.items())

    # =========================================================================
    # Search
    # =========================================================================

    async def _run_variant(
        self,
        variant: SearchVariant,
        embedding_task: asyncio.Future,
    ) -> list[RetrievalCandidate]:
        embedding = await asyncio.shield(embedding_task)
        return await asyncio.to_thread(
            self.store.search,
            embedding,
            top_k=variant.top_k,
            legislation_type=variant.legislation_type,
            min_year=variant.min_year,
        )

    async def _run_with_timeout(
        self,
        variant: SearchVariant,
        embedding_task: asyncio.Future,
    ) -> Optional[list[RetrievalCandidate]]:
        """Variant results, or None when the variant timed out."""
        try:
            return await asyncio.wait_for(
                self._run_variant(variant, embedding_task),
                timeout=self.config.variant_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Search variant '{variant.name}' timed out after "
                f"{self.config.variant_timeout_seconds}s; contributing no candidates"
            )
            return None
        except Exception as e:
            logger.error(f"Search variant '{variant.name}' failed: {e}")
            raise RetrievalFailure(
                f"Search variant '{variant.name}' failed: {e}", variant=variant.name
            ) from e

    async def search(self, query: str) -> tuple[EvidenceSet, list[str]]:
        """
        Run every variant concurrently and fuse the results.

        Args:
            query: The user's question

        Returns:
            (EvidenceSet, names of variants that timed out)

        Raises:
            InputError: If the query is empty
            RetrievalFailure: If an embedding or index call fails
        """
        if not query or not query.strip():
            raise InputError("No query provided")

        variants = self.plan_variants(query)
        logger.info(f"Dispatching {len(variants)} search variants: {[v.name for v in variants]}")

        # Variants sharing query text share one embedding call
        embedding_tasks: dict[str, asyncio.Future] = {}
        for variant in variants:
            if variant.query not in embedding_tasks:
                embedding_tasks[variant.query] = asyncio.ensure_future(
                    self.embeddings.embed_query(variant.query)
                )

        variant_tasks = [
            asyncio.ensure_future(self._run_with_timeout(v, embedding_tasks[v.query]))
            for v in variants
        ]
        try:
            results = await asyncio.gather(*variant_tasks)
        finally:
            pending = [*variant_tasks, *embedding_tasks.values()]
            for task in pending:
                if not task.done():
                    task.cancel()
            # Collect sibling failures so none is left unretrieved
            await asyncio.gather(*pending, return_exceptions=True)

        timed_out = [v.name for v, r in zip(variants, results) if r is None]
        evidence = EvidenceSet.from_variants(
            (r for r in results if r is not None), top_n=self.config.fused_top_n,
        )
        get_metrics_collector().record_variants(len(variants), len(timed_out))

        logger.info(
            f"Fused {len(evidence)} candidates (best score {evidence.best_score:.3f}, "
            f"types {evidence.legislation_types})"
        )
        return evidence, timed_out

    async def retrieve(self, query: str) -> RetrievalOutcome:
        """
        Search and decide between grounded and fallback answering.

        Args:
            query: The user's question

        Returns:
            RetrievalOutcome carrying citable evidence (grounded) or hints (fallback)
        """
        evidence, timed_out = await self.search(query)
        threshold = self.select_threshold(query, evidence)
        grounded = [c for c in evidence if c.score >= threshold]

        if grounded:
            outcome = RetrievalOutcome(
                mode=GROUNDED,
                evidence=grounded,
                hints=[],
                threshold=threshold,
                best_score=evidence.best_score,
                legislation_types=evidence.legislation_types,
                context_summary=self.build_context_summary(grounded),
                timed_out_variants=timed_out,
            )
        else:
            outcome = RetrievalOutcome(
                mode=FALLBACK,
                evidence=[],
                hints=evidence.candidates[: self.config.fallback_hint_count],
                threshold=threshold,
                best_score=evidence.best_score,
                legislation_types=evidence.legislation_types,
                query_category=self.categorize_query(query),
                timed_out_variants=timed_out,
            )

        logger.info(
            f"Retrieval mode={outcome.mode} threshold={threshold} "
            f"best={outcome.best_score:.3f} evidence={len(outcome.evidence)}"
        )
        return outcome


def get_retriever(
    vector_store,
    embedding_service,
    config: Optional[PipelineConfig] = None,
    lexicons: Optional[Lexicons] = None,
) -> MultiStrategyRetriever:
    """
    Get configured retriever instance.

    Args:
        vector_store: Vector store instance
        embedding_service: Embedding service instance
        config: Optional pipeline configuration
        lexicons: Optional heuristics

    Returns:
        Configured MultiStrategyRetriever instance
    """
    config = config or PipelineConfig.from_env()
    if lexicons is None and config.lexicon_path:
        lexicons = Lexicons.from_file(config.lexicon_path)
    return MultiStrategyRetriever(vector_store, embedding_service, config, lexicons)


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    from .embeddings import get_embedding_service
    from .vector_store import VectorStore

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    store = VectorStore()
    store.connect()
    config = PipelineConfig.from_env()
    retriever = get_retriever(store, get_embedding_service(config.embedding_provider), config)

    query = " ".join(sys.argv[1:]) or "Can I be fired without notice?"
    print(f"\nSearching for: {query}")
    print("-" * 50)

    outcome = asyncio.run(retriever.retrieve(query))
    print(f"Mode: {outcome.mode} (threshold {outcome.threshold}, best {outcome.best_score:.4f})")
    for i, c in enumerate(outcome.evidence or outcome.hints, 1):
        print(f"\n{i}. [{c.act_title} - {c.section_context}] (score: {c.score:.4f})")
        print(f"   Preview: {c.text[:200]}...")
