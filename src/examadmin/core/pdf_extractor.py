"""PDF text extraction for question papers.

Responsibilities:
- Extract selectable text from an uploaded PDF (bytes, never a path)
- Detect the paper's language
- Extract PDF metadata (title, author)
- Reject protected or scanned PDFs with an informative error
- Drop instruction pages that precede the first question

Dependencies:
- pymupdf (fitz)
- langdetect
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import fitz
import structlog
from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

# Make langdetect deterministic
DetectorFactory.seed = 0

logger = structlog.get_logger(__name__)

# Constants
MIN_CHARS_PER_PAGE = 100  # Below this, consider page as "empty" or scanned
LANGUAGE_SAMPLE_CHARS = 10000

# "1." or "1)" at the start of a line, optionally after "प्रश्न" / "क्र."
FIRST_QUESTION_PATTERN = re.compile(
    r"^[ \t]*(?:प्रश्न\s*)?(?:क्र\.\s*)?1[.)]\s+",
    re.MULTILINE,
)


@dataclass
class PdfText:
    """Text extracted from a PDF."""

    text: str
    total_pages: int
    pages_with_text: int
    detected_language: str | None = None
    pdf_metadata: dict = field(default_factory=dict)


class PdfExtractionError(Exception):
    """Base exception for PDF extraction errors."""

    pass


class ProtectedPdfError(PdfExtractionError):
    """Raised when PDF is password-protected."""

    def __init__(self, filename: str = "upload.pdf"):
        self.filename = filename
        super().__init__(f"PDF is password-protected: {filename}")


class ScannedPdfError(PdfExtractionError):
    """Raised when PDF has no selectable text."""

    def __init__(self, filename: str = "upload.pdf"):
        self.filename = filename
        super().__init__(
            f"No text could be extracted from {filename}. "
            "The PDF may be image-based or corrupted."
        )


def extract_pdf_text(data: bytes, filename: str = "upload.pdf") -> PdfText:
    """Extract all page text from an in-memory PDF.

    Args:
        data: Raw PDF bytes
        filename: Used only in messages and logs

    Returns:
        PdfText with joined text, page counts, language and metadata

    Raises:
        PdfExtractionError: If the bytes are not a readable PDF
        ProtectedPdfError: If PDF is password-protected
        ScannedPdfError: If no text could be extracted
    """
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except (fitz.FileDataError, RuntimeError, ValueError) as e:
        logger.warning("pdf_extractor.open_failed", filename=filename, error=str(e))
        raise PdfExtractionError(f"Failed to read PDF {filename}: {e}") from e

    try:
        if doc.is_encrypted:
            raise ProtectedPdfError(filename)

        pdf_metadata = _extract_pdf_metadata(doc)
        parts = []
        pages_with_text = 0
        for page in doc:
            page_text = page.get_text()
            if len(page_text.strip()) >= MIN_CHARS_PER_PAGE:
                pages_with_text += 1
            if page_text.strip():
                parts.append(page_text)
        total_pages = len(doc)
    finally:
        doc.close()

    text = "\n\n".join(parts)
    if not text.strip():
        raise ScannedPdfError(filename)

    detected_language = _detect_language(text)
    logger.info(
        "pdf_extractor.extracted",
        filename=filename,
        total_pages=total_pages,
        pages_with_text=pages_with_text,
        chars=len(text),
        detected_language=detected_language,
    )

    return PdfText(
        text=text,
        total_pages=total_pages,
        pages_with_text=pages_with_text,
        detected_language=detected_language,
        pdf_metadata=pdf_metadata,
    )


def strip_instruction_pages(text: str) -> str:
    """Drop everything before the first numbered question.

    Text without a recognisable first question is returned unchanged.
    """
    match = FIRST_QUESTION_PATTERN.search(text)
    if match is None or match.start() == 0:
        return text
    return text[match.start():]


def _detect_language(text: str) -> str | None:
    """Detect language of text using langdetect.

    Returns:
        ISO 639-1 language code or None if detection fails
    """
    try:
        return detect(text[:LANGUAGE_SAMPLE_CHARS])
    except LangDetectException as e:
        logger.debug("pdf_extractor.language_detection_failed", error=str(e))
        return None


def _extract_pdf_metadata(doc: fitz.Document) -> dict:
    """Embedded title/author metadata, empty values dropped."""
    metadata = doc.metadata or {}
    return {
        key: value
        for key, value in {
            "title": metadata.get("title"),
            "author": metadata.get("author"),
            "subject": metadata.get("subject"),
            "creator": metadata.get("creator"),
            "creation_date": metadata.get("creationDate"),
        }.items()
        if value
    }
