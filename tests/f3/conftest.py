"""Fixtures for F3 tests - question import and AI extraction."""

import io

import fitz
import pandas as pd
import pytest


PAPER_TEXT = (
    "Instructions: Answer every question. Each question carries two marks.\n"
    "1. Which city is the capital of Maharashtra? A) Pune B) Mumbai C) Nagpur D) Nashik\n"
    "2. How many sides does a hexagon have? A) Four B) Five C) Six D) Eight\n"
)


@pytest.fixture
def paper_text():
    return PAPER_TEXT


@pytest.fixture
def make_pdf():
    """Build PDF bytes with one page per text block."""

    def _make(*pages, metadata=None, **save_options):
        doc = fitz.open()
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_textbox(fitz.Rect(72, 72, 540, 770), text, fontsize=11)
        if metadata:
            doc.set_metadata(metadata)
        data = doc.tobytes(**save_options)
        doc.close()
        return data

    return _make


@pytest.fixture
def sheet_bytes():
    """Encode rows as CSV (default) or Excel bytes."""

    def _encode(rows, excel=False):
        frame = pd.DataFrame(rows)
        if excel:
            buffer = io.BytesIO()
            frame.to_excel(buffer, index=False)
            return buffer.getvalue()
        return frame.to_csv(index=False).encode("utf-8")

    return _encode


@pytest.fixture
def question_rows():
    return [
        {
            "Question (Marathi)": "महाराष्ट्राची राजधानी कोणती?",
            "Question (English)": "What is the capital of Maharashtra?",
            "Option A (Marathi)": "पुणे",
            "Option B (Marathi)": "मुंबई",
            "Option C (Marathi)": "नागपूर",
            "Option D (Marathi)": "नाशिक",
            "Correct Answer": "B",
            "Difficulty": "Easy",
            "Marks": "2",
            "Explanation (Marathi)": "मुंबई ही राजधानी आहे.",
        },
        {
            "Question (Marathi)": "",
            "Question (English)": "How many sides does a hexagon have?",
            "Option A (Marathi)": "4",
            "Option B (Marathi)": "5",
            "Option C (Marathi)": "6",
            "Option D (Marathi)": "",
            "Correct Answer": "2",
            "Difficulty": "impossible",
            "Marks": "",
            "Explanation (Marathi)": "",
        },
    ]

