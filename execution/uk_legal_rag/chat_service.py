"""
Conversational Legal Answering

One exchange runs in four possible modes:

    rejected_upload  -- the user asks about files uploaded in this request
                        that were all rejected; fixed explanation, no model call
    document         -- the session has uploaded documents and the question
                        targets them; answered from the document context blob
    grounded         -- retrieved legislation clears the adaptive threshold;
                        answered from the provisions with citations
    fallback         -- no evidence clears the threshold; general guidance
                        framed by the query category, with weak hints

Memory for the session is seeded from the caller's prior turns, and the
user and assistant turns are appended in that order under a per-session lock.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from .config import PipelineConfig
from .document_context import is_query_about_documents
from .errors import InputError
from .legal_patterns import CURRENT_UPLOAD_REFERENCE, LLM_PROMPTS
from .metrics import get_metrics_collector
from .retriever import FALLBACK, GROUNDED, MultiStrategyRetriever, RetrievalOutcome
from .session_memory import ASSISTANT, USER, ConversationTurn, SessionMemoryStore
from .vector_store import RetrievalCandidate

logger = logging.getLogger(__name__)

DOCUMENT = "document"
REJECTED_UPLOAD = "rejected_upload"


@dataclass
class ChatAnswer:
    """The result of one exchange."""
    text: str
    mode: str
    evidence: list[RetrievalCandidate] = field(default_factory=list)
    category: Optional[str] = None
    sources: list[str] = field(default_factory=list)
    confidence: str = "high"
    best_score: float = 0.0
    legislation_types: list[str] = field(default_factory=list)
    documents_used: int = 0

    @property
    def is_fallback(self) -> bool:
        return self.mode == FALLBACK

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "mode": self.mode,
            "evidence": [c.to_dict() for c in self.evidence],
            "category": self.category,
            "sources": self.sources,
            "confidence": self.confidence,
            "best_score": self.best_score,
            "legislation_types": self.legislation_types,
            "documents_used": self.documents_used,
        }


def format_source(candidate: RetrievalCandidate) -> str:
    """'Act (year) - section', omitting the section when it is 'General'."""
    source = candidate.act_title or ""
    if not source:
        return ""
    if candidate.legislation_year:
        source += f" ({candidate.legislation_year})"
    if candidate.section_context and candidate.section_context != "General":
        source += f" - {candidate.section_context}"
    return source


def format_sources(evidence: Iterable[RetrievalCandidate]) -> list[str]:
    """Distinct non-empty citations in evidence order."""
    sources = []
    for candidate in evidence:
        source = format_source(candidate)
        if source and source not in sources:
            sources.append(source)
    return sources


class LegalChatService:
    """
    Answers UK legal questions for a chat session.

    Usage:
        chat = LegalChatService(retriever, completion_service, InMemorySessionStore(),
                                document_service=documents)
        answer = await chat.answer("Can I be fired without notice?", session_id, prior_turns)
    """

    def __init__(
        self,
        retriever: MultiStrategyRetriever,
        completion_service,
        memory: SessionMemoryStore,
        document_service=None,
        config: Optional[PipelineConfig] = None,
    ):
        self.retriever = retriever
        self.llm = completion_service
        self.memory = memory
        self.documents = document_service
        self.config = config or retriever.config

    async def answer(
        self,
        query: str,
        session_id: str,
        prior_turns: Sequence = (),
        user_id: Optional[str] = None,
        rejected_uploads: Sequence[str] = (),
        has_valid_documents: bool = False,
    ) -> ChatAnswer:
        """
        Answer one question.

        Args:
            query: The user's question
            session_id: Chat session id keying the conversation memory
            prior_turns: Earlier turns (ConversationTurn or dicts) used to seed memory
            user_id: Owner of the session; enables uploaded-document lookup
            rejected_uploads: Filenames rejected in this same request
            has_valid_documents: Whether any upload in this request was accepted

        Returns:
            ChatAnswer

        Raises:
            InputError: If the query is empty
            RetrievalFailure: If embedding or the vector index fails
            GenerationFailure: If the completion call fails
        """
        if not query or not query.strip():
            raise InputError("No query provided")

        with get_metrics_collector().track_query(session_id, query) as tracker:
            result = await self._answer(
                query, session_id, prior_turns, user_id, rejected_uploads, has_valid_documents
            )
            tracker.set_result(result.mode, len(result.evidence), result.best_score)
        return result

    async def _answer(
        self,
        query: str,
        session_id: str,
        prior_turns: Sequence,
        user_id: Optional[str],
        rejected_uploads: Sequence[str],
        has_valid_documents: bool,
    ) -> ChatAnswer:
        logger.info(f"Processing legal query: {query[:100]!r}")

        if rejected_uploads and not has_valid_documents and CURRENT_UPLOAD_REFERENCE.search(query):
            logger.info("Query refers to uploads rejected in this request")
            return ChatAnswer(
                text=LLM_PROMPTS["rejected_upload"].format(filenames=", ".join(rejected_uploads)),
                mode=REJECTED_UPLOAD,
                confidence="high",
            )

        turns = [
            t if isinstance(t, ConversationTurn) else ConversationTurn.from_dict(t)
            for t in prior_turns
        ]

        async with self.memory.lock(session_id):
            history = self.memory.get_or_create(session_id, turns)

            documents = []
            if user_id and self.documents is not None:
                documents = await self.documents.list_session_documents(session_id, user_id)
            logger.info(f"Found {len(documents)} uploaded documents for session {session_id}")

            result = None
            if documents and is_query_about_documents(query, documents):
                result = await self._answer_from_documents(query, history, documents)

            if result is None:
                outcome = await self.retriever.retrieve(query)
                if outcome.mode == GROUNDED:
                    result = await self._answer_grounded(query, history, outcome, documents)
                else:
                    result = await self._answer_fallback(query, history, outcome, documents)

            self.memory.append(session_id, USER, query)
            self.memory.append(session_id, ASSISTANT, result.text)
        return result

    # =========================================================================
    # Modes
    # =========================================================================

    async def _answer_from_documents(
        self,
        query: str,
        history: list[ConversationTurn],
        documents: list,
    ) -> Optional[ChatAnswer]:
        context = self.documents.assembler.assemble(documents, query)
        if not context:
            return None

        logger.info("Query targets uploaded documents; answering from document context")
        text = await self.llm.complete(
            LLM_PROMPTS["system"] + LLM_PROMPTS["document_system_suffix"],
            history,
            LLM_PROMPTS["document_human"].format(document_context=context, query=query),
        )
        return ChatAnswer(
            text=text,
            mode=DOCUMENT,
            sources=[f"Uploaded: {d.filename}" for d in documents],
            confidence="high",
            documents_used=len(documents),
        )

    async def _answer_grounded(
        self,
        query: str,
        history: list[ConversationTurn],
        outcome: RetrievalOutcome,
        documents: list,
    ) -> ChatAnswer:
        system_prompt = LLM_PROMPTS["system"]
        if documents:
            system_prompt += LLM_PROMPTS["grounded_documents_note"].format(
                count=len(documents), filenames=", ".join(d.filename for d in documents),
            )
        system_prompt += LLM_PROMPTS["grounded_context_suffix"].format(
            context_summary=outcome.context_summary,
        )
        provisions = "\n\n".join(c.text for c in outcome.evidence)

        text = await self.llm.complete(
            system_prompt,
            history,
            LLM_PROMPTS["grounded_human"].format(provisions=provisions, query=query),
        )
        return ChatAnswer(
            text=text,
            mode=outcome.mode,
            evidence=list(outcome.evidence),
            sources=format_sources(outcome.evidence),
            confidence="high",
            best_score=outcome.best_score,
            legislation_types=outcome.legislation_types,
            documents_used=len(documents),
        )

    async def _answer_fallback(
        self,
        query: str,
        history: list[ConversationTurn],
        outcome: RetrievalOutcome,
        documents: list,
    ) -> ChatAnswer:
        logger.info(
            f"No strong matches (best {outcome.best_score:.3f}); "
            f"falling back as {outcome.query_category}"
        )
        system_prompt = LLM_PROMPTS["system"]
        if documents:
            system_prompt += LLM_PROMPTS["fallback_documents_note"].format(count=len(documents))
        system_prompt += LLM_PROMPTS["fallback_suffix"].format(category=outcome.query_category)

        hint_chars = self.config.fallback_hint_chars
        hints = "\n\n".join(
            f"From {c.act_title}: {c.text[:hint_chars]}..." for c in outcome.hints
        )
        human_prompt = (
            LLM_PROMPTS["fallback_human_with_hints"].format(hints=hints, query=query)
            if hints else query
        )

        text = await self.llm.complete(system_prompt, history, human_prompt)
        return ChatAnswer(
            text=text,
            mode=outcome.mode,
            category=outcome.query_category,
            confidence="medium",
            best_score=outcome.best_score,
            legislation_types=outcome.legislation_types,
            documents_used=len(documents),
        )
