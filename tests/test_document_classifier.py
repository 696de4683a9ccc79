"""Tests for UK legal relevance classification of uploads."""

from tests.conftest import SAMPLE_BROCHURE, SAMPLE_EMPLOYMENT_CONTRACT


class TestRelevanceScoring:
    def test_employment_contract_accepted(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        assessment = LegalRelevanceClassifier().classify(SAMPLE_EMPLOYMENT_CONTRACT, "contract.pdf")
        assert assessment.is_relevant
        assert assessment.has_strong_indicator
        assert assessment.categories_matched >= 5
        assert assessment.suggestions == []

    def test_brochure_rejected(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        from execution.uk_legal_rag.legal_patterns import RELEVANCE_SUGGESTIONS, RELEVANCE_WARNINGS
        assessment = LegalRelevanceClassifier().classify(SAMPLE_BROCHURE, "brochure.pdf")
        assert not assessment.is_relevant
        assert assessment.score == 0
        assert RELEVANCE_WARNINGS["low_score"] in assessment.warnings
        assert RELEVANCE_WARNINGS["no_strong_indicator"] in assessment.warnings
        assert assessment.suggestions == RELEVANCE_SUGGESTIONS

    def test_threshold_boundary_accepts_at_eight(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        from execution.uk_legal_rag.legal_patterns import RELEVANCE_WARNINGS
        assessment = LegalRelevanceClassifier().classify(
            "under the equality act there is a duty of care", "notes.txt"
        )
        assert assessment.score == 8
        assert assessment.is_relevant
        assert assessment.warnings == [RELEVANCE_WARNINGS["no_document_type"]]

    def test_threshold_boundary_rejects_at_seven(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        assessment = LegalRelevanceClassifier().classify(
            "under the equality act, payable in pounds", "notes.txt"
        )
        assert assessment.score == 7
        assert assessment.has_strong_indicator
        assert not assessment.is_relevant

    def test_deterministic(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        classifier = LegalRelevanceClassifier()
        first = classifier.classify(SAMPLE_EMPLOYMENT_CONTRACT, "contract.pdf")
        second = classifier.classify(SAMPLE_EMPLOYMENT_CONTRACT, "contract.pdf")
        assert first.to_dict() == second.to_dict()

    def test_hits_capped_per_category(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        from execution.uk_legal_rag.lexicons import Lexicons
        lexicons = Lexicons.from_dict({
            "relevance_categories": {"legislation": {"weight": 5, "terms": ["a1", "a2", "a3", "a4"]}},
            "filename_keywords": [],
        })
        assessment = LegalRelevanceClassifier(lexicons).classify("a1 a2 a3 a4", "x.txt")
        assert assessment.category_hits == {"legislation": 4}
        assert assessment.score == 15

    def test_filename_terms_count(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        assessment = LegalRelevanceClassifier().classify("nothing much here", "employment_contract.pdf")
        # "employment contract" does not match the underscore, "contract" does
        assert assessment.category_hits["document_types"] >= 1

    def test_employment_and_concepts_are_strong(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier
        text = (
            "notice period, garden leave and annual leave apply; "
            "the duty of care and confidentiality obligations continue"
        )
        assessment = LegalRelevanceClassifier().classify(text, "notes.txt")
        assert assessment.category_hits["employment_terms"] == 3
        assert assessment.category_hits["legal_concepts"] == 2
        assert assessment.has_strong_indicator

    def test_assessment_round_trip(self):
        from execution.uk_legal_rag.document_classifier import LegalRelevanceClassifier, RelevanceAssessment
        assessment = LegalRelevanceClassifier().classify(SAMPLE_BROCHURE, "brochure.pdf")
        assert RelevanceAssessment.from_dict(assessment.to_dict()) == assessment


class TestDocumentType:
    def test_employment_contract(self):
        from execution.uk_legal_rag.document_classifier import detect_document_type
        assert detect_document_type(SAMPLE_EMPLOYMENT_CONTRACT) == "uk_employment_contract"

    def test_all_of_rule(self):
        from execution.uk_legal_rag.document_classifier import detect_document_type
        assert detect_document_type("Our disciplinary hearing procedure") == "uk_disciplinary_procedure"

    def test_unknown(self):
        from execution.uk_legal_rag.document_classifier import detect_document_type
        assert detect_document_type(SAMPLE_BROCHURE) == "unknown"


class TestKeyElements:
    def test_amounts_dates_sections(self):
        from execution.uk_legal_rag.document_classifier import extract_key_elements
        elements = extract_key_elements(SAMPLE_EMPLOYMENT_CONTRACT)
        by_type = {e["type"]: e["values"] for e in elements}
        assert by_type["amounts"] == ["£32,000"]
        assert by_type["dates"] == ["1 March 2024"]
        assert by_type["sections"] == ["clause 4", "section 86"]

    def test_at_most_three_values(self):
        from execution.uk_legal_rag.document_classifier import extract_key_elements
        elements = extract_key_elements("£1 £2 £3 £4 £5")
        assert elements == [{"type": "amounts", "values": ["£1", "£2", "£3"]}]

    def test_nothing_found(self):
        from execution.uk_legal_rag.document_classifier import extract_key_elements
        assert extract_key_elements("plain words only") == []
