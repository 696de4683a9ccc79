"""
Shared fixtures and test utilities for UK Legal RAG tests.

Provides mock services, sample legislation XML and uploaded-document text so
that all tests run without API keys, databases, or external network access.
"""

import sys
import asyncio
import hashlib
from pathlib import Path

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

# ---------------------------------------------------------------------------
# Sample legislation XML (trimmed CLML)
# ---------------------------------------------------------------------------
HSWA_XML_URL = "https://www.legislation.gov.uk/ukpga/1974/37/data.xml"

SAMPLE_LEGISLATION_XML = """<Legislation xmlns="http://www.legislation.gov.uk/namespaces/legislation"
             xmlns:ukm="http://www.legislation.gov.uk/namespaces/metadata"
             xmlns:dc="http://purl.org/dc/elements/1.1/">
  <ukm:Metadata>
    <dc:title>Health and Safety at Work etc. Act 1974</dc:title>
  </ukm:Metadata>
  <Primary>
    <PrimaryPrelims>
      <Title>Health and Safety at Work etc. Act 1974</Title>
      <LongTitle>An Act to make further provision for securing the health, safety and welfare of persons at work.</LongTitle>
    </PrimaryPrelims>
    <Body>
      <Part>
        <Number>Part 1</Number>
        <Title>Health, safety and welfare in connection with work</Title>
        <P1group>
          <Title>General duties of employers</Title>
          <P1>
            <Pnumber>2</Pnumber>
            <P1para>
              <Text>It shall be the duty of every employer to ensure, so far as is reasonably practicable, the health, safety and welfare at work of all his employees.</Text>
            </P1para>
          </P1>
        </P1group>
      </Part>
    </Body>
  </Primary>
</Legislation>
"""

# ---------------------------------------------------------------------------
# Sample uploaded documents
# ---------------------------------------------------------------------------
SAMPLE_EMPLOYMENT_CONTRACT = """
CONTRACT OF EMPLOYMENT

This employment contract is made between Acme Widgets Ltd, registered office
London, England (the employer) and Jane Smith (the employee).

1. Salary. The employee will be paid £32,000 per annum in pounds sterling.
2. Notice period. Either party must give four weeks notice in writing.
3. Annual leave. The employee is entitled to 28 days holiday entitlement
   including bank holidays, in line with the Working Time Regulations.
4. Disputes may be referred to ACAS or an employment tribunal.

Signed on 1 March 2024. See clause 4 and section 86 of the Employment Rights Act.
"""

SAMPLE_BROCHURE = (
    "Discover our amazing summer collection! Bright colours, fresh styles and "
    "unbeatable prices for the whole family. Visit our stores today."
)


# ---------------------------------------------------------------------------
# Async helper
# ---------------------------------------------------------------------------

def run(coro):
    """Run a coroutine to completion in a fresh event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=8, delays=None):
        self._dimensions = dimensions
        self._delays = delays or {}  # substring -> seconds to sleep
        self.queries = []

    async def embed_documents(self, texts):
        return [self._deterministic_embedding(t) for t in texts]

    async def embed_query(self, query):
        self.queries.append(query)
        for marker, delay in self._delays.items():
            if marker in query:
                await asyncio.sleep(delay)
        return self._deterministic_embedding(query)

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i) % 1000) / 1000.0 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


# ---------------------------------------------------------------------------
# Mock vector store (no database needed)
# ---------------------------------------------------------------------------

def make_candidate(chunk_id, score, legislation_type="employment",
                   act_title="Employment Rights Act 1996", text=None,
                   legislation_year=1996, section_context="Section 86"):
    from execution.uk_legal_rag.vector_store import RetrievalCandidate
    return RetrievalCandidate(
        chunk_id=chunk_id,
        text=text or f"Provision text for {chunk_id}",
        score=score,
        source_url="https://www.legislation.gov.uk/ukpga/1996/18/data.pdf",
        act_title=act_title,
        legislation_type=legislation_type,
        legislation_year=legislation_year,
        section_context=section_context,
    )


class MockVectorStore:
    """In-memory mock of VectorStore for testing without PostgreSQL."""

    def __init__(self, results=None, results_by_type=None, fail_types=()):
        self.results = list(results or [])
        self.results_by_type = results_by_type or {}
        self.fail_types = set(fail_types)
        self.search_calls = []
        self.replaced = {}

    def connect(self):
        pass

    def initialize_schema(self):
        pass

    def search(self, query_embedding, top_k=3, legislation_type=None, min_year=None):
        self.search_calls.append({
            "top_k": top_k, "legislation_type": legislation_type, "min_year": min_year,
        })
        if legislation_type in self.fail_types:
            raise RuntimeError(f"index unavailable for {legislation_type}")
        if legislation_type is not None:
            return list(self.results_by_type.get(legislation_type, []))[:top_k]
        return list(self.results)[:top_k]

    def replace_source_chunks(self, source_url, chunks, embeddings):
        self.replaced[source_url] = list(zip(chunks, embeddings))
        return len(chunks)

    def close(self):
        pass


@pytest.fixture
def mock_vector_store():
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Mock completion service
# ---------------------------------------------------------------------------

class MockCompletionService:
    """Records prompts and returns a canned answer."""

    def __init__(self, answer="Mock legal answer.", summary="Mock summary.", fail_summary=False):
        self.answer = answer
        self.summary = summary
        self.fail_summary = fail_summary
        self.calls = []

    async def complete(self, system_prompt, history, human_prompt):
        self.calls.append({
            "system": system_prompt,
            "history": list(history),
            "human": human_prompt,
        })
        return self.answer

    async def summarize_document(self, text, filename, max_chars=2000):
        if self.fail_summary:
            raise RuntimeError("summary model unavailable")
        return self.summary


@pytest.fixture
def mock_completion_service():
    return MockCompletionService()


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def hswa_source():
    from execution.uk_legal_rag.legislation_source import LegislationSource
    return LegislationSource(xml_url=HSWA_XML_URL, legislation_type="health_safety")


@pytest.fixture
def make_record():
    """Factory for UploadedDocumentRecord instances."""
    from execution.uk_legal_rag.document_store import UploadedDocumentRecord

    def _make(filename="contract.pdf", text=SAMPLE_EMPLOYMENT_CONTRACT,
              document_type="uk_employment_contract", summary="Employment contract for Jane Smith",
              session_id="session-1", user_id="user-1"):
        return UploadedDocumentRecord(
            session_id=session_id,
            user_id=user_id,
            filename=filename,
            extracted_text=text,
            document_type=document_type,
            summary=summary,
        )
    return _make


# ---------------------------------------------------------------------------
# Singleton resets between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_metrics_singleton():
    """Reset the MetricsCollector singleton between tests."""
    from execution.uk_legal_rag import metrics
    metrics.MetricsCollector._instance = None
    yield
    metrics.MetricsCollector._instance = None
