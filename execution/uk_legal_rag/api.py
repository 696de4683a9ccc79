"""
FastAPI Backend for the UK Legal RAG System

Provides REST API endpoints for legal chat, document upload and
classification, session document management and legislation ingestion.

Run with: uvicorn execution.uk_legal_rag.api:app --host 0.0.0.0 --port 8000
"""

import os
import time
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, UploadFile, File, Form
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .api_models import (
    ChatRequest, ChatResponse, EvidenceInfo,
    ClassifyRequest, RelevanceInfo,
    DocumentInfo, UploadResponse, UploadResultInfo,
    IngestRequest, IngestResponse,
    HealthResponse,
)
from .config import PipelineConfig
from .document_service import ACCEPTED, REJECTED
from .errors import (
    GenerationFailure,
    InputError,
    IrrelevantDocument,
    LegalPipelineError,
    RetrievalFailure,
    UnsupportedFormat,
)
from .legislation_source import LegislationSource
from .metrics import get_metrics_collector

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

app = FastAPI(
    title="SolicitorSense API",
    description="REST API for UK legislation question answering and legal document review",
    version=API_VERSION,
)

# Configure CORS: use CORS_ORIGINS env var (comma-separated) or default to localhost
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Service Container - builds the pipeline once per process
# =============================================================================

class ServiceContainer:
    """Singleton that caches the vector store and the pipeline services."""

    def __init__(self):
        self._store = None
        self._services = {}
        self.config = PipelineConfig.from_env()

    def get_store(self):
        if self._store is None:
            from .vector_store import VectorStore, VectorStoreConfig
            self._store = VectorStore(VectorStoreConfig(
                embedding_dimensions=self.config.embedding_dimensions,
                document_ttl_hours=self.config.document_ttl_hours,
            ))
            self._store.connect()
            self._store.initialize_schema()
        return self._store

    def get_services(self) -> dict:
        """Get or create the chat, document and ingestion services."""
        if not self._services:
            from .chat_service import LegalChatService
            from .document_classifier import LegalRelevanceClassifier
            from .document_service import DocumentService
            from .document_store import PostgresDocumentStore
            from .embeddings import get_embedding_service
            from .ingestion import LegislationIngestor
            from .lexicons import load_lexicons
            from .llm import CompletionService
            from .retriever import get_retriever
            from .session_memory import InMemorySessionStore

            config = self.config
            store = self.get_store()
            embeddings = get_embedding_service(
                provider=config.embedding_provider,
                model=config.embedding_model,
            )
            lexicons = load_lexicons(config.lexicon_path)
            retriever = get_retriever(store, embeddings, config, lexicons)
            llm = CompletionService(model=config.llm_model, temperature=config.llm_temperature)
            memory = InMemorySessionStore(
                ttl_seconds=config.session_ttl_seconds,
                max_sessions=config.max_sessions,
            )
            documents = DocumentService(
                PostgresDocumentStore(store),
                llm,
                classifier=LegalRelevanceClassifier(lexicons),
                config=config,
            )

            self._services = {
                "embeddings": embeddings,
                "retriever": retriever,
                "llm": llm,
                "memory": memory,
                "documents": documents,
                "chat": LegalChatService(retriever, llm, memory, documents, config),
                "ingestor": LegislationIngestor(
                    embedding_service=embeddings, vector_store=store, config=config,
                ),
            }
        return self._services


_container = ServiceContainer()


# =============================================================================
# Error mapping
# =============================================================================

def _http_error(e: LegalPipelineError) -> HTTPException:
    """Map a pipeline error to the HTTP status the client should see."""
    if isinstance(e, (InputError, UnsupportedFormat, IrrelevantDocument)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, (RetrievalFailure, GenerationFailure)):
        return HTTPException(status_code=502, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _document_info(summary: dict) -> DocumentInfo:
    return DocumentInfo(**summary)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    db_status = "unknown"
    try:
        _container.get_store()
        db_status = "connected"
    except Exception as e:
        logger.warning(f"Health check: database disconnected: {e}")
        db_status = "disconnected"

    return HealthResponse(
        status="ok",
        version=API_VERSION,
        database=db_status,
    )


@app.get("/api/v1/metrics")
async def get_metrics():
    """Query, retrieval, upload and ingestion counters since startup."""
    collector = get_metrics_collector()
    metrics = collector.get_metrics_dict()
    metrics["uptime_seconds"] = round(collector.get_uptime().total_seconds(), 1)
    return metrics


@app.post("/api/v1/chat", response_model=ChatResponse)
async def chat(request: ChatRequest):
    """Answer a UK legal question within a chat session."""
    start_time = time.time()
    services = _container.get_services()

    try:
        answer = await services["chat"].answer(
            request.query,
            request.session_id,
            prior_turns=[turn.model_dump() for turn in request.prior_turns],
            user_id=request.user_id,
            rejected_uploads=request.rejected_uploads,
            has_valid_documents=request.has_valid_documents,
        )
    except LegalPipelineError as e:
        logger.error(f"Chat failed for session {request.session_id}: {e}")
        raise _http_error(e)

    return ChatResponse(
        text=answer.text,
        mode=answer.mode,
        category=answer.category,
        sources=answer.sources,
        confidence=answer.confidence,
        best_score=answer.best_score,
        legislation_types=answer.legislation_types,
        documents_used=answer.documents_used,
        evidence=[EvidenceInfo(**c.to_dict()) for c in answer.evidence],
        latency_ms=(time.time() - start_time) * 1000,
    )


@app.post("/api/v1/documents/upload", response_model=UploadResponse)
async def upload_documents(
    files: list[UploadFile] = File(...),
    session_id: str = Form(...),
    user_id: str = Form(...),
):
    """Upload legal documents to a chat session; each file is accepted or rejected on its own."""
    config = _container.config
    if len(files) > config.max_upload_files:
        raise HTTPException(
            status_code=400,
            detail=f"At most {config.max_upload_files} files can be uploaded at once",
        )

    batch = []
    for upload in files:
        batch.append((upload.filename or "upload", await upload.read()))

    services = _container.get_services()
    results = await services["documents"].process_uploads(batch, session_id, user_id)

    infos = []
    for result in results:
        data = result.to_dict()
        infos.append(UploadResultInfo(
            filename=data["filename"],
            status=data["status"],
            document=_document_info(data["document"]) if "document" in data else None,
            relevance=RelevanceInfo(**data["relevance"]) if "relevance" in data else None,
            error=data.get("error"),
        ))

    accepted = sum(1 for r in results if r.status == ACCEPTED)
    rejected = sum(1 for r in results if r.status == REJECTED)
    return UploadResponse(
        results=infos,
        accepted=accepted,
        rejected=rejected,
        failed=len(results) - accepted - rejected,
    )


@app.post("/api/v1/documents/classify", response_model=RelevanceInfo)
async def classify_document(request: ClassifyRequest):
    """Score text for UK legal relevance without storing it."""
    if not request.text.strip():
        raise _http_error(InputError("No document text provided"))
    services = _container.get_services()
    assessment = services["documents"].classify_upload(request.text, request.filename)
    return RelevanceInfo(**assessment.to_dict())


@app.get("/api/v1/documents/{session_id}", response_model=list[DocumentInfo])
async def list_documents(session_id: str, user_id: str):
    """List the active uploaded documents of a session."""
    services = _container.get_services()
    try:
        records = await services["documents"].list_session_documents(session_id, user_id)
    except Exception as e:
        logger.error(f"Failed to list documents for session {session_id}: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return [_document_info(r.to_summary_dict()) for r in records]


@app.delete("/api/v1/documents/{document_id}")
async def delete_document(document_id: str, user_id: str):
    """Remove an uploaded document from its session."""
    services = _container.get_services()
    try:
        removed = await services["documents"].deactivate_document(document_id, user_id)
        if not removed:
            raise HTTPException(status_code=404, detail="Document not found")
        return {"status": "deleted", "document_id": document_id}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/v1/ingest", response_model=IngestResponse)
async def ingest_legislation(request: IngestRequest):
    """Fetch, chunk, embed and store legislation.gov.uk XML sources."""
    services = _container.get_services()
    sources = [LegislationSource.from_dict(s.model_dump()) for s in request.sources]
    report = await services["ingestor"].ingest(sources)
    return IngestResponse(**report.to_dict())


def run(host: Optional[str] = None, port: Optional[int] = None):
    """Serve the API with uvicorn."""
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    uvicorn.run(
        app,
        host=host or os.getenv("API_HOST", "0.0.0.0"),
        port=port or int(os.getenv("API_PORT", "8000")),
    )


if __name__ == "__main__":
    run()
