"""
Plain-Text Extraction for Uploaded Files

Supports PDF (PyMuPDF), Word documents (python-docx) and UTF-8 text.
Unknown extensions raise UnsupportedFormat; any extractor error is wrapped
in ExtractionFailure so callers can tell technical failures apart from
irrelevant documents.
"""

import io
import logging
from pathlib import Path
from dataclasses import dataclass, field

from .errors import ExtractionFailure, UnsupportedFormat

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt")


@dataclass
class ExtractedText:
    """Text pulled from an uploaded file."""
    text: str
    file_type: str
    metadata: dict = field(default_factory=dict)


def file_extension(filename: str) -> str:
    """Lowercased extension including the dot, '' when absent."""
    return Path(filename or "").suffix.lower()


def _extract_pdf(file_bytes: bytes) -> tuple[str, dict]:
    import fitz  # PyMuPDF

    with fitz.open(stream=file_bytes, filetype="pdf") as doc:
        page_count = len(doc)
        text = "\n".join(page.get_text() for page in doc)
    return text, {"pages": page_count, "type": "PDF"}


def _extract_word(file_bytes: bytes) -> tuple[str, dict]:
    import docx

    document = docx.Document(io.BytesIO(file_bytes))
    text = "\n".join(p.text for p in document.paragraphs)
    return text, {"paragraphs": len(document.paragraphs), "type": "Word Document"}


def _extract_txt(file_bytes: bytes) -> tuple[str, dict]:
    return file_bytes.decode("utf-8", errors="replace"), {"type": "Text File"}


_EXTRACTORS = {
    ".pdf": _extract_pdf,
    ".doc": _extract_word,
    ".docx": _extract_word,
    ".txt": _extract_txt,
}


def extract_plain_text(file_bytes: bytes, filename: str) -> ExtractedText:
    """
    Extract plain text from an uploaded file.

    Args:
        file_bytes: Raw file content
        filename: Original filename; its extension selects the extractor

    Returns:
        ExtractedText with the text and extractor metadata

    Raises:
        UnsupportedFormat: If the extension is not handled
        ExtractionFailure: If the extractor raises
    """
    extension = file_extension(filename)
    extractor = _EXTRACTORS.get(extension)
    if extractor is None:
        raise UnsupportedFormat(filename, extension)

    try:
        text, metadata = extractor(file_bytes)
    except Exception as e:
        logger.error(f"Text extraction failed for {filename}: {e}")
        raise ExtractionFailure(filename, str(e)) from e

    logger.info(f"Extracted {len(text)} chars from {filename}")
    return ExtractedText(text=text, file_type=extension.lstrip("."), metadata=metadata)
