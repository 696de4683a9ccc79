"""
Uploaded Document Service

Upload pipeline for chat sessions:
    extract text -> length check -> relevance classification -> type
    detection, summary and key elements -> persisted record

Rejected uploads are reported with the classifier's warnings and
suggestions and are never stored. In a batch, each file succeeds or fails
on its own.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .config import PipelineConfig
from .document_classifier import (
    LegalRelevanceClassifier,
    RelevanceAssessment,
    detect_document_type,
    extract_key_elements,
)
from .document_context import DocumentContextAssembler, is_query_about_documents
from .document_store import DocumentStore, UploadedDocumentRecord
from .errors import InputError, IrrelevantDocument, LegalPipelineError
from .legal_patterns import IRRELEVANT_DOCUMENT_MESSAGE
from .lexicons import load_lexicons
from .metrics import get_metrics_collector
from .text_extraction import extract_plain_text, file_extension

logger = logging.getLogger(__name__)

ACCEPTED = "accepted"
REJECTED = "rejected"
FAILED = "failed"


@dataclass
class UploadResult:
    """Per-file outcome of a batch upload."""
    filename: str
    status: str  # accepted | rejected | failed
    record: Optional[UploadedDocumentRecord] = None
    assessment: Optional[RelevanceAssessment] = None
    error: Optional[str] = None

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED

    def to_dict(self) -> dict:
        result = {"filename": self.filename, "status": self.status}
        if self.record is not None:
            result["document"] = self.record.to_summary_dict()
        if self.assessment is not None:
            result["relevance"] = self.assessment.to_dict()
        if self.error:
            result["error"] = self.error
        return result


def fallback_summary(document_type: str, text: str) -> str:
    """Summary used when the completion model is unavailable."""
    return f"{document_type.replace('_', ' ')} - {text[:200]}..."


class DocumentService:
    """
    Classifies, registers and retrieves uploaded documents.

    Usage:
        service = DocumentService(InMemoryDocumentStore(), completion_service)
        results = await service.process_uploads(
            [("contract.pdf", pdf_bytes)], session_id, user_id
        )
        context = await service.build_document_context(session_id, user_id, query)
    """

    def __init__(
        self,
        document_store: DocumentStore,
        completion_service=None,
        classifier: Optional[LegalRelevanceClassifier] = None,
        assembler: Optional[DocumentContextAssembler] = None,
        config: Optional[PipelineConfig] = None,
    ):
        self.config = config or PipelineConfig()
        self.store = document_store
        self.llm = completion_service
        self.classifier = classifier or LegalRelevanceClassifier(
            load_lexicons(self.config.lexicon_path)
        )
        self.assembler = assembler or DocumentContextAssembler(self.config)

    # =========================================================================
    # Classification and registration
    # =========================================================================

    def classify_upload(self, raw_text: str, filename: str) -> RelevanceAssessment:
        """Score an upload's text for UK legal relevance."""
        return self.classifier.classify(raw_text, filename)

    async def _summarize(self, text: str, filename: str, document_type: str) -> str:
        if self.llm is None:
            return fallback_summary(document_type, text)
        try:
            return await self.llm.summarize_document(
                text, filename, max_chars=self.config.summary_source_chars
            )
        except Exception as e:
            logger.warning(f"Failed to generate summary for {filename}: {e}")
            return fallback_summary(document_type, text)

    async def register_document(
        self,
        session_id: str,
        user_id: str,
        filename: str,
        extracted_text: str,
        assessment: RelevanceAssessment,
        file_type: str = "",
        file_size: int = 0,
    ) -> UploadedDocumentRecord:
        """
        Persist an accepted upload.

        Args:
            session_id: Chat session the document belongs to
            user_id: Owner of the session
            filename: Original filename
            extracted_text: Plain text of the document
            assessment: Relevance assessment; must be relevant

        Returns:
            The stored UploadedDocumentRecord

        Raises:
            IrrelevantDocument: If the assessment rejected the document
        """
        if not assessment.is_relevant:
            raise IrrelevantDocument(filename, assessment, IRRELEVANT_DOCUMENT_MESSAGE)

        document_type = detect_document_type(extracted_text)
        summary = await self._summarize(extracted_text, filename, document_type)

        record = UploadedDocumentRecord(
            session_id=session_id,
            user_id=user_id,
            filename=filename,
            extracted_text=extracted_text,
            document_type=document_type,
            summary=summary,
            relevance_assessment=assessment.to_dict(),
            word_count=len(extracted_text.split()),
            key_elements=extract_key_elements(extracted_text),
            file_type=file_type or file_extension(filename).lstrip("."),
            file_size=file_size,
        )
        await asyncio.to_thread(self.store.insert, record)
        logger.info(f"Registered {filename} as {document_type} for session {session_id}")
        return record

    # =========================================================================
    # Upload pipeline
    # =========================================================================

    async def process_upload(
        self,
        file_bytes: bytes,
        filename: str,
        session_id: str,
        user_id: str,
    ) -> UploadedDocumentRecord:
        """
        Extract, classify and register one uploaded file.

        Raises:
            InputError: If the file is too large or its text too short
            UnsupportedFormat: If the extension is not supported
            ExtractionFailure: If text extraction fails
            IrrelevantDocument: If the classifier rejects the document
        """
        if len(file_bytes) > self.config.max_upload_bytes:
            raise InputError(
                f"{filename} exceeds the {self.config.max_upload_bytes // (1024 * 1024)}MB upload limit"
            )

        extracted = await asyncio.to_thread(extract_plain_text, file_bytes, filename)
        text = extracted.text
        if not text or len(text.strip()) < self.config.min_document_chars:
            raise InputError("Document appears to be empty or too short")

        assessment = self.classify_upload(text, filename)
        if not assessment.is_relevant:
            raise IrrelevantDocument(filename, assessment, IRRELEVANT_DOCUMENT_MESSAGE)

        return await self.register_document(
            session_id,
            user_id,
            filename,
            text,
            assessment,
            file_type=extracted.file_type,
            file_size=len(file_bytes),
        )

    async def process_uploads(
        self,
        files: Iterable[tuple[str, bytes]],
        session_id: str,
        user_id: str,
    ) -> list[UploadResult]:
        """Process a batch; a failing file never aborts its siblings."""
        metrics = get_metrics_collector()
        results = []
        for filename, file_bytes in files:
            try:
                record = await self.process_upload(file_bytes, filename, session_id, user_id)
                results.append(UploadResult(
                    filename=filename,
                    status=ACCEPTED,
                    record=record,
                    assessment=RelevanceAssessment.from_dict(record.relevance_assessment),
                ))
                metrics.record_upload(ACCEPTED)
            except IrrelevantDocument as e:
                logger.info(f"Rejected upload {filename}: {e.warnings}")
                results.append(UploadResult(
                    filename=filename, status=REJECTED, assessment=e.assessment, error=e.message,
                ))
                metrics.record_upload(REJECTED)
            except LegalPipelineError as e:
                logger.error(f"Upload {filename} failed: {e}")
                results.append(UploadResult(filename=filename, status=FAILED, error=str(e)))
                metrics.record_upload(FAILED)
        return results

    # =========================================================================
    # Session documents
    # =========================================================================

    async def list_session_documents(self, session_id: str, user_id: str) -> list[UploadedDocumentRecord]:
        return await asyncio.to_thread(self.store.list_active, session_id, user_id)

    async def build_document_context(
        self,
        session_id: str,
        user_id: str,
        query: str,
        token_budget: Optional[int] = None,
    ) -> Optional[str]:
        """Context blob for the session's documents, or None when there are none."""
        documents = await self.list_session_documents(session_id, user_id)
        return self.assembler.assemble(documents, query, token_budget)

    def is_query_about_documents(self, query: str, documents) -> bool:
        return is_query_about_documents(query, documents)

    async def deactivate_document(self, document_id: str, user_id: str) -> bool:
        removed = await asyncio.to_thread(self.store.deactivate, document_id, user_id)
        if removed:
            logger.info(f"Deactivated document {document_id}")
        return removed
