"""Tests for uploaded-file text extraction."""

import io

import pytest


class TestExtractPlainText:
    def test_txt(self):
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        extracted = extract_plain_text("Notice period: four weeks".encode("utf-8"), "terms.TXT")
        assert extracted.text == "Notice period: four weeks"
        assert extracted.file_type == "txt"
        assert extracted.metadata["type"] == "Text File"

    def test_invalid_utf8_replaced(self):
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        assert "�" in extract_plain_text(b"caf\xff", "note.txt").text

    def test_unsupported_extension(self):
        from execution.uk_legal_rag.errors import UnsupportedFormat
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        with pytest.raises(UnsupportedFormat) as exc_info:
            extract_plain_text(b"a,b", "sheet.csv")
        assert exc_info.value.extension == ".csv"

    def test_no_extension(self):
        from execution.uk_legal_rag.errors import UnsupportedFormat
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        with pytest.raises(UnsupportedFormat, match=r"\(none\)"):
            extract_plain_text(b"text", "README")

    def test_corrupt_pdf_wrapped(self):
        from execution.uk_legal_rag.errors import ExtractionFailure
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        with pytest.raises(ExtractionFailure) as exc_info:
            extract_plain_text(b"not a pdf at all", "contract.pdf")
        assert exc_info.value.filename == "contract.pdf"

    def test_corrupt_docx_wrapped(self):
        from execution.uk_legal_rag.errors import ExtractionFailure
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        with pytest.raises(ExtractionFailure):
            extract_plain_text(b"not a zip archive", "contract.docx")

    def test_docx(self):
        import docx
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        document = docx.Document()
        document.add_paragraph("CONTRACT OF EMPLOYMENT")
        document.add_paragraph("The notice period is four weeks.")
        buffer = io.BytesIO()
        document.save(buffer)

        extracted = extract_plain_text(buffer.getvalue(), "contract.docx")
        assert "The notice period is four weeks." in extracted.text
        assert extracted.file_type == "docx"

    def test_pdf(self):
        import fitz
        from execution.uk_legal_rag.text_extraction import extract_plain_text
        doc = fitz.open()
        page = doc.new_page()
        page.insert_text((72, 72), "Employment tribunal claim")
        pdf_bytes = doc.tobytes()
        doc.close()

        extracted = extract_plain_text(pdf_bytes, "claim.pdf")
        assert "Employment tribunal claim" in extracted.text
        assert extracted.metadata["pages"] == 1
