"""
Pydantic models for the UK Legal RAG FastAPI backend.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ChatTurn(BaseModel):
    """One prior message of the conversation."""
    role: str = Field(..., pattern=r"^(user|assistant)$")
    text: str


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""
    query: str = Field(..., min_length=1, max_length=4000)
    session_id: str = Field(..., min_length=1)
    user_id: Optional[str] = None
    prior_turns: list[ChatTurn] = []
    rejected_uploads: list[str] = []  # filenames rejected in the same request
    has_valid_documents: bool = False


class EvidenceInfo(BaseModel):
    """A retrieved legislation chunk used to ground an answer."""
    chunk_id: str
    text: str
    score: float
    source_url: str
    act_title: str
    legislation_type: Optional[str] = None
    legislation_year: Optional[int] = None
    section_context: str = "General"
    chunk_index: int = 0


class ChatResponse(BaseModel):
    """Response body for the chat endpoint."""
    text: str
    mode: str  # grounded | fallback | document | rejected_upload
    category: Optional[str] = None
    sources: list[str] = []
    confidence: str
    best_score: float = 0.0
    legislation_types: list[str] = []
    documents_used: int = 0
    evidence: list[EvidenceInfo] = []
    latency_ms: float


class ClassifyRequest(BaseModel):
    """Request body for classifying raw text without storing it."""
    text: str
    filename: str = "document.txt"


class RelevanceInfo(BaseModel):
    """UK legal relevance assessment of an upload."""
    is_relevant: bool
    score: int
    category_hits: dict[str, int] = {}
    categories_matched: int = 0
    has_strong_indicator: bool = False
    warnings: list[str] = []
    suggestions: list[str] = []


class DocumentInfo(BaseModel):
    """An accepted upload attached to a session."""
    id: str
    filename: str
    document_type: str
    summary: str
    word_count: int = 0
    key_elements: list[dict] = []
    uploaded_at: Optional[str] = None


class UploadResultInfo(BaseModel):
    """Per-file outcome of an upload request."""
    filename: str
    status: str  # accepted | rejected | failed
    document: Optional[DocumentInfo] = None
    relevance: Optional[RelevanceInfo] = None
    error: Optional[str] = None


class UploadResponse(BaseModel):
    """Response body for document upload."""
    results: list[UploadResultInfo]
    accepted: int
    rejected: int
    failed: int


class IngestSource(BaseModel):
    """A legislation.gov.uk XML source."""
    xml_url: str
    legislation_type: str
    act_title: Optional[str] = None
    legislation_year: Optional[int] = None


class IngestRequest(BaseModel):
    """Request body for legislation ingestion."""
    sources: list[IngestSource] = Field(..., min_length=1)


class IngestResponse(BaseModel):
    """Response body for legislation ingestion."""
    chunks_written: int
    sources_processed: int
    errors: list[dict] = []


class HealthResponse(BaseModel):
    """Response body for health check."""
    status: str
    version: str
    database: str
