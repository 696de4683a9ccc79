"""
Batch ingestion of UK legislation XML into the chunk index.

For each source: fetch XML -> parse -> chunk -> embed -> replace the
source's previous chunks. A failing source is recorded in the report and
the run continues with the rest.

Usage:
    python -m execution.uk_legal_rag.ingestion
    python -m execution.uk_legal_rag.ingestion --url https://www.legislation.gov.uk/ukpga/2010/15/data.xml --type equality
    python -m execution.uk_legal_rag.ingestion --sources-file sources.json
    python -m execution.uk_legal_rag.ingestion --dry-run chunks.json
"""

import sys
import json
import time
import asyncio
import argparse
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Iterable, Optional

from .chunker import LegislationChunk, LegislationChunker
from .config import PipelineConfig
from .legislation_source import LegislationFetcher, LegislationSource
from .metrics import get_metrics_collector

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = [
    LegislationSource(
        xml_url="https://www.legislation.gov.uk/ukpga/1974/37/data.xml",
        legislation_type="health_safety",
        act_title="Health and Safety at Work etc. Act 1974",
    ),
]


@dataclass
class IngestReport:
    """Outcome of one ingestion run."""
    chunks_written: int = 0
    sources_processed: int = 0
    errors: list[dict] = field(default_factory=list)
    chunks: list[LegislationChunk] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "chunks_written": self.chunks_written,
            "sources_processed": self.sources_processed,
            "errors": list(self.errors),
        }


class LegislationIngestor:
    """
    Writes chunked legislation to the vector store.

    With no vector store or embedding service the ingestor runs dry: chunks
    are produced and kept on the report but nothing is embedded or written.
    """

    def __init__(
        self,
        fetcher: Optional[LegislationFetcher] = None,
        chunker: Optional[LegislationChunker] = None,
        embedding_service=None,
        vector_store=None,
        config: Optional[PipelineConfig] = None,
    ):
        self.config = config or PipelineConfig()
        self.fetcher = fetcher or LegislationFetcher()
        self.chunker = chunker or LegislationChunker(self.config)
        self.embeddings = embedding_service
        self.store = vector_store

    @property
    def dry_run(self) -> bool:
        return self.store is None or self.embeddings is None

    async def ingest_source(self, source: LegislationSource) -> list[LegislationChunk]:
        """Fetch, chunk and (unless dry) embed and store one source."""
        logger.info(f"Fetching: {source.xml_url}")
        parsed = await asyncio.to_thread(self.fetcher.fetch_and_parse, source)
        chunks = self.chunker.chunk(parsed)
        logger.info(f"Parsed & chunked {source.xml_url}: {len(chunks)} chunks")

        if self.dry_run:
            return chunks

        embeddings = await self.embeddings.embed_documents([c.text for c in chunks])
        await asyncio.to_thread(
            self.store.replace_source_chunks,
            source.pdf_url,
            [c.to_dict() for c in chunks],
            embeddings,
        )
        return chunks

    async def ingest(self, sources: Iterable[LegislationSource]) -> IngestReport:
        """
        Ingest sources one after another.

        Args:
            sources: Legislation sources to ingest

        Returns:
            IngestReport with per-source errors; never raises for a single source
        """
        metrics = get_metrics_collector()
        report = IngestReport()

        for source in sources:
            start = time.time()
            try:
                chunks = await self.ingest_source(source)
            except Exception as e:
                logger.error(f"Skipping {source.xml_url}: {e}")
                report.errors.append({"source": source.xml_url, "error": str(e)})
                metrics.record_ingestion_error(type(e).__name__)
                continue

            report.sources_processed += 1
            report.chunks.extend(chunks)
            if self.dry_run:
                continue
            report.chunks_written += len(chunks)
            metrics.record_ingestion(source.xml_url, len(chunks), (time.time() - start) * 1000)

        logger.info(
            f"Ingestion finished: {report.sources_processed} sources, "
            f"{report.chunks_written} chunks written, {len(report.errors)} errors"
        )
        return report


def load_sources_file(path: str) -> list[LegislationSource]:
    """Read a JSON list of {xml_url, legislation_type, act_title?, legislation_year?}."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"Sources file {path} must contain a JSON list")
    return [LegislationSource.from_dict(item) for item in data]


def main(argv: Optional[list[str]] = None) -> int:
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    arg_parser = argparse.ArgumentParser(description="Ingest UK legislation XML")
    arg_parser.add_argument("--url", type=str, help="legislation.gov.uk XML URL")
    arg_parser.add_argument(
        "--type",
        type=str,
        default="general",
        help="Legislation category used for filtered search (employment, equality, ...)",
    )
    arg_parser.add_argument("--title", type=str, default=None, help="Act title override")
    arg_parser.add_argument("--sources-file", type=str, help="JSON list of sources")
    arg_parser.add_argument(
        "--dry-run",
        type=str,
        metavar="OUTPUT_JSON",
        help="Chunk only and write the chunks to this JSON file",
    )
    args = arg_parser.parse_args(argv)

    if args.sources_file:
        sources = load_sources_file(args.sources_file)
    elif args.url:
        sources = [LegislationSource(xml_url=args.url, legislation_type=args.type, act_title=args.title)]
    else:
        sources = DEFAULT_SOURCES

    config = PipelineConfig.from_env()
    store = None
    embeddings = None
    if not args.dry_run:
        from .embeddings import get_embedding_service
        from .vector_store import VectorStore, VectorStoreConfig

        store = VectorStore(VectorStoreConfig(embedding_dimensions=config.embedding_dimensions))
        store.connect()
        store.initialize_schema()
        embeddings = get_embedding_service(config.embedding_provider, config.embedding_model)

    ingestor = LegislationIngestor(embedding_service=embeddings, vector_store=store, config=config)
    start_time = time.time()
    try:
        report = asyncio.run(ingestor.ingest(sources))
    finally:
        if store is not None:
            store.close()

    if args.dry_run:
        Path(args.dry_run).write_text(
            json.dumps([c.to_dict() for c in report.chunks], indent=2), encoding="utf-8"
        )
        logger.info(f"Wrote {len(report.chunks)} chunks to {args.dry_run}")

    print("\n" + "=" * 60)
    print("INGESTION COMPLETE")
    print("=" * 60)
    print(f"Sources processed: {report.sources_processed} ({len(report.errors)} failed)")
    print(f"Chunks written:    {report.chunks_written}")
    print(f"Time elapsed:      {time.time() - start_time:.1f}s")
    for error in report.errors:
        print(f"  FAILED {error['source']}: {error['error']}")
    print("=" * 60)
    return 1 if report.errors and not report.sources_processed else 0


if __name__ == "__main__":
    sys.exit(main())
