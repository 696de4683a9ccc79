"""Tests for token-budgeted uploaded-document context assembly."""

import math


def _assembler(**overrides):
    from execution.uk_legal_rag.config import PipelineConfig
    from execution.uk_legal_rag.document_context import DocumentContextAssembler
    return DocumentContextAssembler(PipelineConfig(**overrides))


class TestIsQueryAboutDocuments:
    def test_reference_phrase(self, make_record):
        from execution.uk_legal_rag.document_context import is_query_about_documents
        assert is_query_about_documents("What does this contract say about notice?", [make_record()])

    def test_keyword_overlap(self, make_record):
        from execution.uk_legal_rag.document_context import is_query_about_documents
        assert is_query_about_documents("How much salary does Jane Smith receive?", [make_record()])

    def test_unrelated_query(self, make_record):
        from execution.uk_legal_rag.document_context import is_query_about_documents
        assert not is_query_about_documents("Explain the right to privacy under Article 8", [make_record()])

    def test_no_documents(self):
        from execution.uk_legal_rag.document_context import is_query_about_documents
        assert not is_query_about_documents("this contract", [])


class TestRanking:
    def test_contract_type_boosted(self, make_record):
        assembler = _assembler()
        contract = make_record(text="notice terms", document_type="uk_employment_contract")
        policy = make_record(text="notice terms", document_type="uk_policy_document")
        query = "notice terms"
        assert assembler.score_document(contract, query) == assembler.score_document(policy, query) + 0.2

    def test_irrelevant_documents_dropped(self, make_record):
        assembler = _assembler()
        unrelated = make_record(filename="menu.txt", text="lunch options", document_type="unknown", summary="")
        assert assembler.rank_documents([unrelated], "notice period rules") == []

    def test_at_most_three(self, make_record):
        assembler = _assembler()
        docs = [make_record(filename=f"doc{i}.pdf") for i in range(5)]
        assert len(assembler.rank_documents(docs, "notice period salary")) == 3


class TestAssemble:
    def test_no_documents_returns_none(self):
        assert _assembler().assemble([], "anything") is None

    def test_layout(self, make_record):
        record = make_record(text="The notice period is four weeks.")
        context = _assembler().assemble([record], "notice period")

        assert context.startswith("UPLOADED DOCUMENTS OVERVIEW:\n1. contract.pdf (uk_employment_contract) - ")
        assert "RELEVANT DOCUMENT CONTENT:\nCONTENT FROM CONTRACT.PDF:\nThe notice period is four weeks." in context

    def test_blocks_separated(self, make_record):
        docs = [
            make_record(filename="a.pdf", text="notice period of one week"),
            make_record(filename="b.pdf", text="notice period of two weeks"),
        ]
        context = _assembler().assemble(docs, "notice period")
        assert "\n\n---\n\n" in context
        assert "CONTENT FROM A.PDF:" in context and "CONTENT FROM B.PDF:" in context

    def test_budget_never_exceeded(self, make_record):
        long_text = "The employee must give notice of resignation in writing. " * 400
        docs = [make_record(filename=f"doc{i}.pdf", text=long_text) for i in range(3)]
        for budget in (300, 800, 1500, 6000):
            context = _assembler().assemble(docs, "notice resignation writing", token_budget=budget)
            assert math.ceil(len(context) / 4) <= budget

    def test_partial_block_truncated(self, make_record):
        long_text = "notice " * 2000
        context = _assembler().assemble([make_record(text=long_text)], "notice period", token_budget=1000)
        assert "CONTENT FROM CONTRACT.PDF (partial):\n" in context
        assert context.endswith("...")

    def test_partial_skipped_when_too_small(self, make_record):
        first = make_record(filename="a.pdf", text="notice " * 300)
        second = make_record(filename="b.pdf", text="notice " * 300)
        assembler = _assembler()
        overview = (
            "UPLOADED DOCUMENTS OVERVIEW:\n"
            "1. a.pdf (uk_employment_contract) - Employment contract for Jane Smith\n"
            "2. b.pdf (uk_employment_contract) - Employment contract for Jane Smith\n\n"
        )
        overview_tokens = math.ceil(len(overview) / 4)
        # Room for the first block with under 50 chars to spare
        budget = overview_tokens + 500 + math.ceil(
            (len("RELEVANT DOCUMENT CONTENT:\n") + len("CONTENT FROM A.PDF:\n") + len(first.extracted_text) + 20) / 4
        )
        context = assembler.assemble([first, second], "notice", token_budget=budget)
        assert "CONTENT FROM A.PDF:" in context
        assert "B.PDF" not in context.split("RELEVANT DOCUMENT CONTENT:")[1]

    def test_overview_truncated_when_over_budget(self, make_record):
        docs = [make_record(summary="x" * 500)]
        context = _assembler().assemble(docs, "anything", token_budget=10)
        assert len(context) <= 40
        assert context.endswith("...")

    def test_service_budget_default(self, make_record):
        context = _assembler(document_token_budget=6000).assemble([make_record()], "salary")
        assert math.ceil(len(context) / 4) <= 6000
