"""
Pipeline Metrics

Process-wide counters for the chat, upload and ingestion paths:

    exchanges   -- answers by mode, failures by exception type, latency
    retrieval   -- search variants dispatched and timed out
    uploads     -- accepted / rejected / failed verdicts
    ingestion   -- sources, chunks written, per-source errors

Exposed through GET /api/v1/metrics and used to tune the retrieval
thresholds (a rising fallback rate means the bar is too strict or the index
is missing legislation).
"""

import time
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 1000


def _percentile(values: list, fraction: float) -> float:
    if not values:
        return 0
    ordered = sorted(values)
    return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]


def _rate(part: int, whole: int) -> float:
    return part / whole if whole else 0


@dataclass
class ExchangeRecord:
    """One answered (or failed) chat exchange."""
    session_id: str
    query_preview: str
    started_at: float
    latency_ms: float = 0
    mode: Optional[str] = None
    evidence_count: int = 0
    best_score: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class PipelineMetrics:
    """Aggregated counters since startup (or the last reset)."""
    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0
    queries_by_mode: Counter = field(default_factory=Counter)
    total_latency_ms: float = 0
    min_latency_ms: Optional[float] = None
    max_latency_ms: float = 0
    latencies: list = field(default_factory=list)

    variants_dispatched: int = 0
    variant_timeouts: int = 0

    uploads_accepted: int = 0
    uploads_rejected: int = 0
    uploads_failed: int = 0

    sources_ingested: int = 0
    chunks_written: int = 0
    ingestion_errors: int = 0
    total_ingestion_time_ms: float = 0

    errors_by_type: Counter = field(default_factory=Counter)

    @property
    def avg_latency_ms(self) -> float:
        return _rate(self.total_latency_ms, self.total_queries)

    @property
    def p95_latency_ms(self) -> float:
        return _percentile(self.latencies, 0.95)

    @property
    def p99_latency_ms(self) -> float:
        return _percentile(self.latencies, 0.99)

    @property
    def fallback_rate(self) -> float:
        """Share of retrieval answers that fell back to general guidance."""
        fallback = self.queries_by_mode.get("fallback", 0)
        return _rate(fallback, self.queries_by_mode.get("grounded", 0) + fallback)

    @property
    def variant_timeout_rate(self) -> float:
        return _rate(self.variant_timeouts, self.variants_dispatched)

    @property
    def error_rate(self) -> float:
        return _rate(self.failed_queries, self.total_queries)

    def observe_latency(self, latency_ms: float) -> None:
        self.total_latency_ms += latency_ms
        self.max_latency_ms = max(self.max_latency_ms, latency_ms)
        if self.min_latency_ms is None or latency_ms < self.min_latency_ms:
            self.min_latency_ms = latency_ms
        self.latencies.append(latency_ms)
        del self.latencies[:-HISTORY_LIMIT]

    def to_dict(self) -> dict:
        return {
            "queries": {
                "total": self.total_queries,
                "successful": self.successful_queries,
                "failed": self.failed_queries,
                "error_rate": f"{self.error_rate:.2%}",
                "by_mode": dict(self.queries_by_mode),
                "fallback_rate": f"{self.fallback_rate:.2%}",
            },
            "latency_ms": {
                "avg": round(self.avg_latency_ms, 2),
                "min": round(self.min_latency_ms or 0, 2),
                "max": round(self.max_latency_ms, 2),
                "p95": round(self.p95_latency_ms, 2),
                "p99": round(self.p99_latency_ms, 2),
            },
            "retrieval": {
                "variants_dispatched": self.variants_dispatched,
                "variant_timeouts": self.variant_timeouts,
                "timeout_rate": f"{self.variant_timeout_rate:.2%}",
            },
            "uploads": {
                "accepted": self.uploads_accepted,
                "rejected": self.uploads_rejected,
                "failed": self.uploads_failed,
            },
            "ingestion": {
                "sources": self.sources_ingested,
                "chunks": self.chunks_written,
                "errors": self.ingestion_errors,
                "avg_time_ms": round(
                    _rate(self.total_ingestion_time_ms, self.sources_ingested), 2
                ),
            },
            "errors": dict(self.errors_by_type),
        }


class ExchangeTracker:
    """
    Times one chat exchange and records it on exit.

    Exceptions raised inside the block are counted by type and re-raised.
    """

    def __init__(self, collector: "MetricsCollector", session_id: str, query: str):
        self._collector = collector
        self.record = ExchangeRecord(
            session_id=session_id,
            query_preview=query[:200],
            started_at=time.time(),
        )

    def __enter__(self) -> "ExchangeTracker":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.record.latency_ms = (time.time() - self.record.started_at) * 1000
        if exc_type is not None:
            self.record.error = str(exc_val)
            self._collector.count_error(exc_type.__name__)
        self._collector.add_exchange(self.record)
        return False

    def set_result(self, mode: str, evidence_count: int = 0, best_score: float = 0.0):
        self.record.mode = mode
        self.record.evidence_count = evidence_count
        self.record.best_score = best_score


class MetricsCollector:
    """
    Singleton holding the process's PipelineMetrics.

    Usage:
        collector = get_metrics_collector()
        with collector.track_query(session_id, query) as tracker:
            answer = await chat.answer(query, session_id)
            tracker.set_result(answer.mode, len(answer.evidence), answer.best_score)
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance.reset()
            cls._instance = instance
        return cls._instance

    def reset(self):
        """Start counting from zero (tests and manual resets)."""
        self.metrics = PipelineMetrics()
        self._recent: list[ExchangeRecord] = []
        self._started = datetime.now()

    def track_query(self, session_id: str, query_text: str) -> ExchangeTracker:
        return ExchangeTracker(self, session_id, query_text)

    def add_exchange(self, record: ExchangeRecord) -> None:
        m = self.metrics
        m.total_queries += 1
        if record.failed:
            m.failed_queries += 1
        else:
            m.successful_queries += 1
            if record.mode:
                m.queries_by_mode[record.mode] += 1
        m.observe_latency(record.latency_ms)

        self._recent.append(record)
        del self._recent[:-HISTORY_LIMIT]

    def count_error(self, error_type: str) -> None:
        self.metrics.errors_by_type[error_type] += 1

    def record_variants(self, dispatched: int, timed_out: int = 0):
        """Count the search variants issued for one query."""
        self.metrics.variants_dispatched += dispatched
        self.metrics.variant_timeouts += timed_out

    def record_upload(self, outcome: str):
        """Count an upload verdict: accepted, rejected or failed."""
        if outcome == "accepted":
            self.metrics.uploads_accepted += 1
        elif outcome == "rejected":
            self.metrics.uploads_rejected += 1
        else:
            self.metrics.uploads_failed += 1

    def record_ingestion(self, source_url: str, chunks_count: int, duration_ms: float):
        m = self.metrics
        m.sources_ingested += 1
        m.chunks_written += chunks_count
        m.total_ingestion_time_ms += duration_ms
        logger.debug(f"Ingested {source_url}: {chunks_count} chunks in {duration_ms:.0f}ms")

    def record_ingestion_error(self, error_type: str = "IngestionError"):
        self.metrics.ingestion_errors += 1
        self.count_error(error_type)

    def get_metrics(self) -> PipelineMetrics:
        return self.metrics

    def get_metrics_dict(self) -> dict:
        return self.metrics.to_dict()

    def get_recent_queries(self, limit: int = 10) -> list[ExchangeRecord]:
        return self._recent[-limit:]

    def get_uptime(self) -> timedelta:
        return datetime.now() - self._started


def get_metrics_collector() -> MetricsCollector:
    """The process-wide collector."""
    return MetricsCollector()
