"""
Error Types for the UK Legal RAG Pipeline

Per-document errors (UnsupportedFormat, IrrelevantDocument,
ExtractionFailure) are collected per file and never abort sibling uploads.
RetrievalFailure and GenerationFailure abort the current exchange.
"""

from typing import Optional


class LegalPipelineError(Exception):
    """Base class for pipeline errors."""


class InputError(LegalPipelineError):
    """No query or document was provided."""


class UnsupportedFormat(LegalPipelineError):
    """File extension not handled by the text extractor."""

    def __init__(self, filename: str, extension: str):
        self.filename = filename
        self.extension = extension
        super().__init__(f"Unsupported file type: {extension or '(none)'}")


class ExtractionFailure(LegalPipelineError):
    """The text extractor raised while reading a supported file."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"Failed to extract text from {filename}: {reason}")


class IrrelevantDocument(LegalPipelineError):
    """The relevance classifier rejected an upload.

    Carries the assessment so callers can show the warnings and suggestions
    instead of a bare failure.
    """

    def __init__(self, filename: str, assessment, message: str):
        self.filename = filename
        self.assessment = assessment
        self.message = message
        super().__init__(message)

    @property
    def suggestions(self) -> list[str]:
        return list(self.assessment.suggestions)

    @property
    def warnings(self) -> list[str]:
        return list(self.assessment.warnings)


class RetrievalFailure(LegalPipelineError):
    """Embedding or vector index call failed.

    Low similarity scores are not a failure; they produce fallback mode.
    """

    def __init__(self, message: str, variant: Optional[str] = None):
        self.variant = variant
        super().__init__(message)


class GenerationFailure(LegalPipelineError):
    """The completion model call failed."""


class IngestionError(LegalPipelineError):
    """A legislation source could not be fetched, parsed or chunked."""

    def __init__(self, source_url: str, reason: str):
        self.source_url = source_url
        self.reason = reason
        super().__init__(f"{source_url}: {reason}")
