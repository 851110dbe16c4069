"""Tests for reading question papers out of PDF bytes."""

import fitz
import pytest

from examadmin.core.pdf_extractor import (
    PdfExtractionError,
    ProtectedPdfError,
    ScannedPdfError,
    extract_pdf_text,
    strip_instruction_pages,
)

ENGLISH_PARAGRAPH = (
    "The students of the fifth standard prepare for the scholarship examination "
    "every year. They practise arithmetic, reasoning and language questions with "
    "their teachers after school."
)


class TestExtractPdfText:
    """Tests for extract_pdf_text."""

    def test_multipage_text(self, make_pdf, paper_text):
        data = make_pdf(paper_text, ENGLISH_PARAGRAPH, "")

        result = extract_pdf_text(data)

        assert result.total_pages == 3
        assert result.pages_with_text == 2
        assert "hexagon" in result.text
        assert "scholarship examination" in result.text

    def test_detects_language(self, make_pdf):
        result = extract_pdf_text(make_pdf(ENGLISH_PARAGRAPH))

        assert result.detected_language == "en"

    def test_metadata(self, make_pdf):
        data = make_pdf(
            ENGLISH_PARAGRAPH, metadata={"title": "Scholarship 2024", "author": "Exam Council"}
        )

        result = extract_pdf_text(data)

        assert result.pdf_metadata["title"] == "Scholarship 2024"
        assert result.pdf_metadata["author"] == "Exam Council"
        assert "subject" not in result.pdf_metadata

    def test_scanned_pdf(self, make_pdf):
        with pytest.raises(ScannedPdfError, match="paper.pdf"):
            extract_pdf_text(make_pdf("", ""), filename="paper.pdf")

    def test_not_a_pdf(self):
        with pytest.raises(PdfExtractionError, match="Failed to read PDF"):
            extract_pdf_text(b"plain text, not a pdf")

    def test_protected_pdf(self, make_pdf):
        data = make_pdf(
            ENGLISH_PARAGRAPH,
            encryption=fitz.PDF_ENCRYPT_AES_256,
            owner_pw="owner",
            user_pw="reader",
        )

        with pytest.raises(ProtectedPdfError):
            extract_pdf_text(data)


class TestStripInstructionPages:
    """Tests for dropping text before the first question."""

    def test_drops_instructions(self, paper_text):
        stripped = strip_instruction_pages(paper_text)

        assert stripped.startswith("1. Which city")
        assert "Instructions" not in stripped

    def test_marathi_question_marker(self):
        text = "सूचना: सर्व प्रश्न सोडवा.\nप्रश्न 1. खालीलपैकी कोणते?\n"

        assert strip_instruction_pages(text).startswith("प्रश्न 1.")

    def test_no_question_found(self):
        text = "Only instructions here."

        assert strip_instruction_pages(text) == text

    def test_question_at_start(self):
        text = "1) First question\n2) Second question"

        assert strip_instruction_pages(text) == text
