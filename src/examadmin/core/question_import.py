"""Question import: spreadsheet parsing, batch review and commit.

Parsed questions share one dict shape whether they come from a CSV,
an Excel sheet or AI extraction:

    {question_number, question_text_mr, question_text_en, options,
     correct_answer, question_type, difficulty, marks,
     explanation_mr?, explanation_en?, section?, parsing_errors?}
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

import pandas as pd
import structlog

from examadmin.core.auth import AuthContext
from examadmin.core.question_extractor import (
    DEFAULT_MODEL,
    TYPE_ALIASES,
    ExtractionOptions,
    convert_to_parsed_questions,
    extract_questions_from_pdf,
    get_model_info,
    is_model_available,
)
from examadmin.core.scoring import MULTIPLE_TYPES
from examadmin.core.security import is_admin_role
from examadmin.db.import_batches_repository import (
    ImportBatchRecord,
    create_batch,
    get_batch,
    update_batch,
)
from examadmin.db.questions_repository import (
    DIFFICULTIES,
    QUESTION_TYPES,
    default_language,
    get_question_table,
    insert_questions,
    is_subject_supported,
)
from examadmin.errors import NotFoundError, PermissionDeniedError, ValidationError

logger = structlog.get_logger(__name__)

OPTION_COUNT = 4
OPTION_LETTERS = "ABCD"
DEFAULT_CLASS_LEVEL = "general"

# Accepted headers per field, compared case-insensitively
COLUMN_ALIASES = {
    "question_text_mr": ["question (marathi)", "question_mr", "questiontextmr", "question marathi"],
    "question_text_en": ["question (english)", "question_en", "questiontexten", "question english"],
    "option_a": ["option a (marathi)", "option a", "option_a", "optiona", "a"],
    "option_b": ["option b (marathi)", "option b", "option_b", "optionb", "b"],
    "option_c": ["option c (marathi)", "option c", "option_c", "optionc", "c"],
    "option_d": ["option d (marathi)", "option d", "option_d", "optiond", "d"],
    "correct_answer": ["correct answer", "correct_answer", "correctanswer", "correct"],
    "difficulty": ["difficulty"],
    "marks": ["marks"],
    "question_type": ["type", "question_type", "questiontype"],
    "explanation_mr": ["explanation (marathi)", "explanation_mr"],
    "explanation_en": ["explanation (english)", "explanation_en", "explanation"],
}

SPREADSHEET_SUFFIXES = (".csv", ".xlsx", ".xls")


# =============================================================================
# SPREADSHEET PARSING
# =============================================================================


def _read_sheet(data: bytes, filename: str) -> pd.DataFrame:
    suffix = Path(filename).suffix.lower()
    if suffix not in SPREADSHEET_SUFFIXES:
        raise ValidationError("File must be CSV or Excel format")

    try:
        if suffix == ".csv":
            return pd.read_csv(io.BytesIO(data), dtype=str, keep_default_na=False)
        return pd.read_excel(io.BytesIO(data), sheet_name=0, dtype=str, keep_default_na=False)
    except (ValueError, UnicodeDecodeError, pd.errors.ParserError) as e:
        logger.warning("question_import.sheet_unreadable", filename=filename, error=str(e))
        raise ValidationError("Failed to parse file. Please check the format.") from e


def parse_correct_answer(value: str) -> int | None:
    """Read a correct answer given as 0-3 or A-D."""
    value = value.strip()
    if len(value) != 1:
        return None
    if value in "0123":
        return int(value)
    if value.upper() in OPTION_LETTERS:
        return OPTION_LETTERS.index(value.upper())
    return None


def _parse_marks(value: str) -> int:
    try:
        return int(float(value)) if value else 1
    except ValueError:
        return 1


def parse_question_sheet(data: bytes, filename: str) -> list[dict[str, Any]]:
    """Parse the first sheet of a CSV/Excel upload into question dicts.

    Raises:
        ValidationError: On an unsupported or unreadable file, or no rows
    """
    frame = _read_sheet(data, filename)
    if frame.empty:
        raise ValidationError("No data found in file")

    columns = {str(c).strip().lower(): c for c in frame.columns}
    resolved = {
        field: next((columns[a] for a in aliases if a in columns), None)
        for field, aliases in COLUMN_ALIASES.items()
    }

    questions = []
    for number, (_, row) in enumerate(frame.iterrows(), start=1):

        def value(field: str) -> str:
            column = resolved[field]
            return str(row[column]).strip() if column is not None else ""

        text_mr = value("question_text_mr")
        text_en = value("question_text_en")
        options = [value(f"option_{c}") for c in "abcd"]
        options = [o for o in options if o]
        difficulty = value("difficulty").lower()
        raw_type = value("question_type").lower() or "mcq_single"
        question_type = TYPE_ALIASES.get(raw_type, raw_type)

        errors = []
        if question_type not in QUESTION_TYPES:
            errors.append(f"Unsupported question type: {value('question_type')}")
            question_type = "mcq_single"
        if not text_mr and not text_en:
            errors.append("Missing question text")
        if len(options) < OPTION_COUNT:
            errors.append(f"Expected {OPTION_COUNT} options, found {len(options)}")

        question = {
            "question_number": number,
            "question_text_mr": text_mr,
            "question_text_en": text_en,
            "options": options + [""] * (OPTION_COUNT - len(options)),
            "correct_answer": parse_correct_answer(value("correct_answer")),
            "question_type": question_type,
            "difficulty": difficulty if difficulty in DIFFICULTIES else "medium",
            "marks": _parse_marks(value("marks")),
            "explanation_mr": value("explanation_mr") or None,
            "explanation_en": value("explanation_en") or None,
        }
        if errors:
            question["parsing_errors"] = errors
        questions.append(question)

    logger.info("question_import.sheet_parsed", filename=filename, questions=len(questions))
    return questions


def import_spreadsheet(
    data: bytes,
    filename: str,
    subject_slug: str,
    created_by: str,
    batch_name: str | None = None,
) -> ImportBatchRecord:
    """Parse a spreadsheet and save it as a pending batch."""
    get_question_table(subject_slug)
    questions = parse_question_sheet(data, filename)

    return create_batch(
        subject_slug=subject_slug,
        batch_name=batch_name or f"Import from {filename}",
        parsed_questions=questions,
        metadata={
            "file_name": filename,
            "file_size": len(data),
            "parsed_count": len(questions),
            "import_type": "csv" if filename.lower().endswith(".csv") else "excel",
        },
        created_by=created_by,
    )


def import_pdf(
    data: bytes,
    filename: str,
    subject_slug: str,
    created_by: str,
    model: str = DEFAULT_MODEL,
    answer_key: bytes | None = None,
    max_questions: int | None = None,
    batch_name: str | None = None,
) -> ImportBatchRecord:
    """Run AI extraction on a question paper and save a pending batch.

    Raises:
        ValidationError: Unsupported subject, or unknown or unavailable model
        PdfExtractionError: If the PDF cannot be read
        QuestionExtractionError: If the AI extraction fails
    """
    if not is_subject_supported(subject_slug):
        raise ValidationError(f"Subject \"{subject_slug}\" does not support question import")
    info = get_model_info(model)
    if info is None:
        raise ValidationError(f"Invalid model: {model}")
    if not is_model_available(model):
        raise ValidationError(f"Model {info.name} is not available. Please check API keys.")

    result = extract_questions_from_pdf(
        data,
        ExtractionOptions(model=model, subject_slug=subject_slug, max_questions=max_questions),
        answer_key=answer_key,
    )
    questions = convert_to_parsed_questions(result)

    return create_batch(
        subject_slug=subject_slug,
        batch_name=batch_name or f"AI Import from {filename}",
        parsed_questions=questions,
        metadata={
            "file_name": filename,
            "file_size": len(data),
            "parsed_count": len(questions),
            "import_type": "pdf",
            "ai_model": model,
            "has_answer_key": answer_key is not None,
            "detected_language": result.detected_language,
            "pdf_metadata": result.pdf_metadata,
            "paper_metadata": result.metadata,
        },
        created_by=created_by,
    )


# =============================================================================
# REVIEW AND COMMIT
# =============================================================================


def review_batch(
    auth: AuthContext,
    batch_id: str,
    questions: list[dict[str, Any]],
    batch_name: str | None = None,
) -> ImportBatchRecord:
    """Replace a batch's questions with the reviewed set.

    Raises:
        NotFoundError: If the batch doesn't exist
        PermissionDeniedError: If the caller neither created it nor is an admin
    """
    batch = get_batch(batch_id)
    if batch is None:
        raise NotFoundError("Import batch", batch_id)
    if batch.created_by != auth.user_id and not is_admin_role(auth.role):
        raise PermissionDeniedError("You can only modify batches you created")

    fields: dict[str, Any] = {"parsed_questions": questions, "status": "reviewed"}
    if batch_name:
        fields["batch_name"] = batch_name
    return update_batch(batch_id, **fields)


def _to_question_row(
    parsed: dict[str, Any],
    subject_slug: str,
    default_chapter_id: str | None,
    default_class_level: str | None,
    default_difficulty: str | None,
    default_marks: int | None,
) -> dict[str, Any]:
    text_mr = parsed.get("question_text_mr") or ""
    text_en = parsed.get("question_text_en") or ""
    options = parsed.get("options")
    if not (text_mr or text_en) or not isinstance(options, list):
        raise ValidationError(
            f"Invalid question structure at #{parsed.get('question_number', '?')}"
        )

    if default_language(subject_slug) == "mr":
        text, language = (text_mr, "mr") if text_mr else (text_en, "en")
        explanation = parsed.get("explanation_mr") or parsed.get("explanation_en")
    else:
        text, language = (text_en, "en") if text_en else (text_mr, "mr")
        explanation = parsed.get("explanation_en") or parsed.get("explanation_mr")

    question_type = parsed.get("question_type") or "mcq_single"
    correct: Any = parsed.get("correct_answer")
    if question_type in MULTIPLE_TYPES:
        correct = parsed.get("correct_answers") or ([correct] if correct is not None else [])
    elif correct is None:
        correct = 0
    tags = [parsed["section"]] if parsed.get("section") else []
    return {
        "question_text": text,
        "question_language": language,
        "question_type": question_type,
        "difficulty": parsed.get("difficulty") or default_difficulty or "medium",
        "answer_data": {"options": [o or "" for o in options], "correct": correct},
        "explanation": explanation,
        "tags": tags,
        "chapter_id": parsed.get("chapter_id") or default_chapter_id,
        "class_level": parsed.get("class_level") or default_class_level or DEFAULT_CLASS_LEVEL,
        "marks": parsed.get("marks") or default_marks or 1,
    }


def commit_batch(
    batch_id: str,
    created_by: str,
    default_chapter_id: str | None = None,
    default_class_level: str | None = None,
    default_difficulty: str | None = None,
    default_marks: int | None = None,
) -> dict[str, Any]:
    """Insert a batch's questions into its subject's bank.

    Returns:
        {"batch_id", "imported_count", "total_count"}

    Raises:
        NotFoundError: If the batch doesn't exist
        ValidationError: If already imported, empty or malformed
    """
    batch = get_batch(batch_id)
    if batch is None:
        raise NotFoundError("Import batch", batch_id)
    if batch.status == "imported":
        raise ValidationError("Batch has already been imported")
    if not batch.parsed_questions:
        raise ValidationError("No questions in batch to import")
    get_question_table(batch.subject_slug)

    rows = [
        _to_question_row(
            q,
            batch.subject_slug,
            default_chapter_id,
            default_class_level,
            default_difficulty,
            default_marks,
        )
        for q in batch.parsed_questions
    ]
    inserted = insert_questions(batch.subject_slug, rows, created_by=created_by)
    update_batch(batch_id, status="imported")

    logger.info(
        "question_import.committed",
        batch_id=batch_id,
        subject=batch.subject_slug,
        imported=len(inserted),
    )
    return {
        "batch_id": batch_id,
        "imported_count": len(inserted),
        "total_count": len(rows),
    }
