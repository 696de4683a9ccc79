"""
Token-Budgeted Context from Uploaded Documents

Builds the context blob handed to the completion model when a question is
about the session's uploaded documents:

    UPLOADED DOCUMENTS OVERVIEW:
    1. contract.pdf (uk_employment_contract) - summary
    ...

    RELEVANT DOCUMENT CONTENT:
    CONTENT FROM CONTRACT.PDF:
    <full text>

    ---

    CONTENT FROM POLICY.DOCX (partial):
    <truncated text>...

Documents are ranked by keyword overlap with the query; full texts are
packed while they fit, then one document is truncated into the remaining
space, then packing stops. Token counts are estimated as characters / 4.
"""

import math
import logging
from typing import Optional, Sequence

from .config import PipelineConfig
from .document_store import UploadedDocumentRecord
from .legal_patterns import BOOSTED_DOCUMENT_TYPE_WORDS, DOCUMENT_REFERENCE_PHRASES

logger = logging.getLogger(__name__)

OVERVIEW_HEADER = "UPLOADED DOCUMENTS OVERVIEW:\n"
CONTENT_HEADER = "RELEVANT DOCUMENT CONTENT:\n"
BLOCK_SEPARATOR = "\n\n---\n\n"
TRUNCATION_MARKER = "..."
TYPE_BOOST = 0.2
MIN_RELEVANCE = 0.1
QUERY_OVERLAP_THRESHOLD = 0.3
PREVIEW_CHARS = 500


def _query_words(query: str) -> list[str]:
    return [w for w in query.lower().split() if len(w) > 3]


def is_query_about_documents(query: str, documents: Sequence[UploadedDocumentRecord]) -> bool:
    """
    Whether a question targets the uploaded documents.

    True when the query uses a document reference phrase ("this contract",
    "uploaded", ...) or more than 30% of its longer words appear in the
    documents' summaries and opening text.
    """
    if not documents:
        return False

    query_lower = query.lower()
    if any(ref in query_lower for ref in DOCUMENT_REFERENCE_PHRASES):
        return True

    words = _query_words(query)
    doc_text = " ".join(
        f"{d.summary} {d.extracted_text[:PREVIEW_CHARS]}" for d in documents
    ).lower()
    matching = [w for w in words if w in doc_text]
    return len(matching) / max(len(words), 1) > QUERY_OVERLAP_THRESHOLD


class DocumentContextAssembler:
    """Ranks uploaded documents against a query and packs them into a budget."""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()

    def score_document(self, document: UploadedDocumentRecord, query: str) -> float:
        """Share of query words (longer than 3 chars) found in the text and summary."""
        words = _query_words(query)
        haystack = f"{document.extracted_text} {document.summary}".lower()
        score = sum(1 for w in words if w in haystack) / max(len(words), 1)
        document_type = (document.document_type or "").lower()
        if any(word in document_type for word in BOOSTED_DOCUMENT_TYPE_WORDS):
            score += TYPE_BOOST
        return score

    def rank_documents(
        self,
        documents: Sequence[UploadedDocumentRecord],
        query: str,
    ) -> list[UploadedDocumentRecord]:
        """Documents scoring above 0.1, best first, at most max_relevant_documents."""
        scored = [(self.score_document(d, query), d) for d in documents]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [d for score, d in scored if score > MIN_RELEVANCE][: self.config.max_relevant_documents]

    def assemble(
        self,
        documents: Sequence[UploadedDocumentRecord],
        query: str,
        token_budget: Optional[int] = None,
    ) -> Optional[str]:
        """
        Build the context blob.

        Args:
            documents: The session's active uploaded documents
            query: The user's question
            token_budget: Estimated-token ceiling (default from config)

        Returns:
            Context blob whose len / chars_per_token never exceeds the budget,
            or None when there are no documents
        """
        if not documents:
            return None

        budget = self.config.document_token_budget if token_budget is None else token_budget
        cpt = self.config.chars_per_token
        budget_chars = max(budget, 0) * cpt

        overview = "\n".join(
            f"{i}. {d.filename} ({d.document_type}) - {d.summary}"
            for i, d in enumerate(documents, 1)
        )
        context = f"{OVERVIEW_HEADER}{overview}\n\n"
        if len(context) > budget_chars:
            logger.warning(f"Document overview exceeds {budget} token budget; truncating")
            keep = max(budget_chars - len(TRUNCATION_MARKER), 0)
            return context[:keep] + TRUNCATION_MARKER if keep else context[:budget_chars]

        remaining_tokens = budget - math.ceil(len(context) / cpt) - self.config.query_token_reserve
        content_chars = max(remaining_tokens, 0) * cpt

        blocks = []
        used = len(CONTENT_HEADER)
        for document in self.rank_documents(documents, query):
            header = f"CONTENT FROM {document.filename.upper()}:\n"
            overhead = len(BLOCK_SEPARATOR) if blocks else 0
            block = header + document.extracted_text
            if used + overhead + len(block) <= content_chars:
                blocks.append(block)
                used += overhead + len(block)
                continue

            partial_header = f"CONTENT FROM {document.filename.upper()} (partial):\n"
            available = (
                content_chars - used - overhead - len(partial_header) - len(TRUNCATION_MARKER)
            )
            if available >= self.config.min_partial_chars:
                blocks.append(partial_header + document.extracted_text[:available] + TRUNCATION_MARKER)
            break

        if blocks:
            context += CONTENT_HEADER + BLOCK_SEPARATOR.join(blocks)

        logger.info(
            f"Document context: {len(documents)} overview entries, {len(blocks)} content blocks, "
            f"~{math.ceil(len(context) / cpt)}/{budget} tokens"
        )
        return context
