"""
SolicitorSense - Retrieval-Augmented Legal Answers over UK Legislation

This module provides:
- Structure-aware chunking of legislation.gov.uk XML
- Multi-strategy retrieval with adaptive similarity thresholds
- Relevance screening of user-uploaded legal documents
- Budgeted assembly of uploaded-document context for the chat model
"""

from .config import PipelineConfig
from .chunker import LegislationChunker
from .legislation_source import LegislationSource, LegislationFetcher
from .retriever import MultiStrategyRetriever
from .document_classifier import LegalRelevanceClassifier
from .document_context import DocumentContextAssembler
from .chat_service import LegalChatService
from .document_service import DocumentService

__all__ = [
    "PipelineConfig",
    "LegislationChunker",
    "LegislationSource",
    "LegislationFetcher",
    "MultiStrategyRetriever",
    "LegalRelevanceClassifier",
    "DocumentContextAssembler",
    "LegalChatService",
    "DocumentService",
]

__version__ = "0.1.0"
