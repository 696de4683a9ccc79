"""Tests for the legislation-aware chunker."""

import pytest

from tests.conftest import HSWA_XML_URL, SAMPLE_LEGISLATION_XML


def _act_xml(body, long_title=""):
    long_title_xml = f"<LongTitle>{long_title}</LongTitle>" if long_title else ""
    return f"""<Legislation xmlns="http://www.legislation.gov.uk/namespaces/legislation">
  <Primary>
    <PrimaryPrelims><Title>Example Act 2020</Title>{long_title_xml}</PrimaryPrelims>
    <Body>{body}</Body>
  </Primary>
</Legislation>
"""


def _provision(number, text):
    return f"<P1><Pnumber>{number}</Pnumber><P1para><Text>{text}</Text></P1para></P1>"


class TestSampleAct:
    def test_single_chunk_with_markers(self, hswa_source):
        from execution.uk_legal_rag.chunker import LegislationChunker
        chunks = LegislationChunker().chunk_xml(SAMPLE_LEGISLATION_XML, hswa_source)

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.chunk_index == 0
        assert chunk.total_chunks == 1
        assert chunk.section_context == "Part 1"
        assert "[Part 1] Health, safety and welfare in connection with work" in chunk.text
        assert "[Section 2] It shall be the duty of every employer" in chunk.text

    def test_first_chunk_seeded_with_title_and_long_title(self, hswa_source):
        from execution.uk_legal_rag.chunker import LegislationChunker
        chunk = LegislationChunker().chunk_xml(SAMPLE_LEGISLATION_XML, hswa_source)[0]
        assert chunk.text.startswith(
            "Health and Safety at Work etc. Act 1974: An Act to make further provision"
        )
        # Long title appears once, in the seed only
        assert chunk.text.count("An Act to make further provision") == 1

    def test_provenance_fields(self, hswa_source):
        from execution.uk_legal_rag.chunker import LegislationChunker
        chunk = LegislationChunker().chunk_xml(SAMPLE_LEGISLATION_XML, hswa_source)[0]
        assert chunk.chunk_id == f"{HSWA_XML_URL}-chunk-0"
        assert chunk.source_url == "https://www.legislation.gov.uk/ukpga/1974/37/data.pdf"
        assert chunk.act_title == "Health and Safety at Work etc. Act 1974"
        assert chunk.legislation_type == "health_safety"
        assert chunk.legislation_year == 1974

    def test_short_heading_dropped(self, hswa_source):
        from execution.uk_legal_rag.chunker import LegislationChunker
        chunk = LegislationChunker().chunk_xml(SAMPLE_LEGISLATION_XML, hswa_source)[0]
        # "General duties of employers" is under the minimum fragment length
        assert "General duties of employers" not in chunk.text


class TestBareFragments:
    def test_unnumbered_part_labels_its_provision(self, hswa_source):
        from execution.uk_legal_rag.chunker import LegislationChunker
        xml = "<Part><P1>Employers must assess risks under Section 2.</P1></Part>"
        chunks = LegislationChunker().chunk_xml(xml, hswa_source)

        assert [(c.section_context, c.text) for c in chunks] == [
            ("Part", "[Part] Employers must assess risks under Section 2."),
        ]


class TestPacking:
    def test_chunks_respect_max_length(self):
        from execution.uk_legal_rag.chunker import LegislationChunker
        from execution.uk_legal_rag.legislation_source import LegislationSource

        sentence = "The employer shall consult the representatives of employees on every change. "
        body = "".join(_provision(i, sentence * 4) for i in range(1, 30))
        source = LegislationSource(xml_url="https://example.test/act.xml", legislation_type="employment")
        chunks = LegislationChunker().chunk_xml(_act_xml(body), source)

        assert len(chunks) > 1
        assert all(len(c.text) <= 1200 for c in chunks)

    def test_chunk_indexes_contiguous(self):
        from execution.uk_legal_rag.chunker import LegislationChunker
        from execution.uk_legal_rag.legislation_source import LegislationSource

        body = "".join(_provision(i, "Every worker is entitled to a rest break of twenty minutes. " * 6)
                       for i in range(1, 20))
        source = LegislationSource(xml_url="https://example.test/act.xml", legislation_type="employment")
        chunks = LegislationChunker().chunk_xml(_act_xml(body), source)

        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        assert all(c.total_chunks == len(chunks) for c in chunks)

    def test_oversized_fragment_split(self):
        from execution.uk_legal_rag.chunker import LegislationChunker
        from execution.uk_legal_rag.legislation_source import LegislationSource

        long_text = "An employee has the right not to be unfairly dismissed by his employer. " * 50
        source = LegislationSource(xml_url="https://example.test/act.xml", legislation_type="employment")
        chunks = LegislationChunker().chunk_xml(_act_xml(_provision(94, long_text)), source)

        assert len(chunks) > 1
        assert all(len(c.text) <= 1200 for c in chunks)
        joined = " ".join(c.text for c in chunks)
        assert joined.count("unfairly dismissed") == 50

    def test_section_marker_only_on_change(self):
        from execution.uk_legal_rag.chunker import LegislationChunker
        from execution.uk_legal_rag.legislation_source import LegislationSource

        body = (
            "<P1><Pnumber>5</Pnumber>"
            "<P1para><Text>The first paragraph of the provision sets out the duty.</Text></P1para>"
            "<P1para><Text>The second paragraph of the provision sets out the exception.</Text></P1para>"
            "</P1>"
        )
        source = LegislationSource(xml_url="https://example.test/act.xml", legislation_type="employment")
        chunk = LegislationChunker().chunk_xml(_act_xml(body), source)[0]
        assert chunk.text.count("[Section 5]") == 1


class TestNormalization:
    def test_inline_citation_merged_into_sentence(self):
        from execution.uk_legal_rag.chunker import LegislationChunker
        from execution.uk_legal_rag.legislation_source import LegislationSource

        body = _provision(
            3,
            "A worker as defined in <Citation>section 230 of the Employment Rights Act 1996</Citation> "
            "is protected .",
        )
        source = LegislationSource(xml_url="https://example.test/act.xml", legislation_type="employment")
        chunk = LegislationChunker().chunk_xml(_act_xml(body), source)[0]
        assert "A worker as defined in Section 230 of the Employment Rights Act 1996 is protected." in chunk.text

    def test_normalize_legal_text(self):
        from execution.uk_legal_rag.chunker import normalize_legal_text
        assert normalize_legal_text("see  part 2 ,and\nschedule 1") == "see Part 2, and Schedule 1"

    def test_no_fragments_raises(self):
        from execution.uk_legal_rag.chunker import LegislationChunker
        from execution.uk_legal_rag.errors import IngestionError
        from execution.uk_legal_rag.legislation_source import LegislationSource

        source = LegislationSource(xml_url="https://example.test/empty.xml", legislation_type="employment")
        with pytest.raises(IngestionError):
            LegislationChunker().chunk_xml(_act_xml(_provision(1, "12")), source)
