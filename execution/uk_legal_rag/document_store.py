"""
Uploaded Document Records

Accepted uploads are persisted per (session, user) and expire after a TTL.
Rejected uploads are never stored. Two stores share one interface:

    InMemoryDocumentStore   -- process-local, for tests and single-node demos
    PostgresDocumentStore   -- the uploaded_documents table of VectorStore
"""

import uuid
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UploadedDocumentRecord:
    """An accepted upload attached to a chat session."""
    session_id: str
    user_id: str
    filename: str
    extracted_text: str
    document_type: str = "unknown"
    summary: str = ""
    relevance_assessment: dict = field(default_factory=dict)
    is_active: bool = True
    word_count: int = 0
    key_elements: list = field(default_factory=list)
    file_type: str = ""
    file_size: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "filename": self.filename,
            "extracted_text": self.extracted_text,
            "document_type": self.document_type,
            "summary": self.summary,
            "relevance_assessment": self.relevance_assessment,
            "is_active": self.is_active,
            "word_count": self.word_count,
            "key_elements": self.key_elements,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UploadedDocumentRecord":
        return cls(
            id=str(data["id"]),
            session_id=data["session_id"],
            user_id=data["user_id"],
            filename=data["filename"],
            extracted_text=data.get("extracted_text") or "",
            document_type=data.get("document_type") or "unknown",
            summary=data.get("summary") or "",
            relevance_assessment=data.get("relevance_assessment") or {},
            is_active=bool(data.get("is_active", True)),
            word_count=data.get("word_count") or 0,
            key_elements=data.get("key_elements") or [],
            file_type=data.get("file_type") or "",
            file_size=data.get("file_size") or 0,
            created_at=data.get("created_at") or _utcnow(),
        )

    def to_summary_dict(self) -> dict:
        """Listing view without the extracted text."""
        return {
            "id": self.id,
            "filename": self.filename,
            "document_type": self.document_type,
            "summary": self.summary,
            "word_count": self.word_count,
            "key_elements": self.key_elements,
            "uploaded_at": self.created_at.isoformat() if self.created_at else None,
        }


class DocumentStore(ABC):
    """Persistence for uploaded document records."""

    @abstractmethod
    def insert(self, record: UploadedDocumentRecord) -> None:
        ...

    @abstractmethod
    def list_active(self, session_id: str, user_id: str) -> list[UploadedDocumentRecord]:
        """Active, unexpired documents of a session, newest first."""

    @abstractmethod
    def deactivate(self, document_id: str, user_id: str) -> bool:
        """Soft-delete. Returns False when no active document matched."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Hard-delete expired documents. Returns the number removed."""


class InMemoryDocumentStore(DocumentStore):
    """Process-local document store."""

    def __init__(self, ttl_hours: int = 24):
        self._ttl = timedelta(hours=ttl_hours)
        self._records: dict[str, UploadedDocumentRecord] = {}

    def _expired(self, record: UploadedDocumentRecord) -> bool:
        return _utcnow() - record.created_at > self._ttl

    def insert(self, record: UploadedDocumentRecord) -> None:
        self._records[record.id] = record
        logger.info(f"Stored uploaded document {record.id} ({record.filename})")

    def list_active(self, session_id: str, user_id: str) -> list[UploadedDocumentRecord]:
        records = [
            r for r in self._records.values()
            if r.session_id == session_id and r.user_id == user_id
            and r.is_active and not self._expired(r)
        ]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def deactivate(self, document_id: str, user_id: str) -> bool:
        record = self._records.get(document_id)
        if record is None or record.user_id != user_id or not record.is_active:
            return False
        record.is_active = False
        return True

    def purge_expired(self) -> int:
        expired = [doc_id for doc_id, r in self._records.items() if self._expired(r)]
        for doc_id in expired:
            del self._records[doc_id]
        return len(expired)

    def get(self, document_id: str) -> Optional[UploadedDocumentRecord]:
        return self._records.get(document_id)


class PostgresDocumentStore(DocumentStore):
    """Document records in the vector store's uploaded_documents table."""

    def __init__(self, vector_store):
        self.store = vector_store

    def insert(self, record: UploadedDocumentRecord) -> None:
        self.store.insert_uploaded_document(record.to_dict())

    def list_active(self, session_id: str, user_id: str) -> list[UploadedDocumentRecord]:
        rows = self.store.list_uploaded_documents(session_id, user_id)
        return [UploadedDocumentRecord.from_dict(row) for row in rows]

    def deactivate(self, document_id: str, user_id: str) -> bool:
        try:
            uuid.UUID(str(document_id))
        except ValueError:
            return False
        return self.store.deactivate_uploaded_document(document_id, user_id)

    def purge_expired(self) -> int:
        return self.store.purge_expired_documents()
