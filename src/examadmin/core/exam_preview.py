"""Exam preview assembly.

Builds a sample paper for a scheduled exam from its structure: each
section draws random questions of its type, optionally per chapter,
with answers stripped so the preview can be shown safely.
"""

from __future__ import annotations

import random
from typing import Any

import structlog

from examadmin.db.exam_structures_repository import get_exam_structure
from examadmin.db.questions_repository import QuestionRecord, get_questions_by_subject
from examadmin.db.scheduled_exams_repository import get_scheduled_exam_record
from examadmin.db.subjects_repository import get_subject_by_id
from examadmin.errors import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)

# Candidates fetched per needed question, for randomization
OVERFETCH_FACTOR = 3


def sanitize_question(question: QuestionRecord) -> dict[str, Any]:
    """Question dict with the correct answer removed.

    MCQs keep their options, match questions keep both columns with the
    right column shuffled, text answers lose answer_data entirely.
    """
    data = question.to_dict()
    answer_data = data.pop("answer_data") or {}

    if answer_data.get("options"):
        data["answer_data"] = {"options": answer_data["options"]}
    elif question.question_type == "true_false":
        data["answer_data"] = {"type": "true_false"}
    elif answer_data.get("blanks"):
        data["answer_data"] = {"blank_count": len(answer_data["blanks"])}
    elif answer_data.get("pairs"):
        pairs = answer_data["pairs"]
        right_column = [p.get("right") for p in pairs]
        random.shuffle(right_column)
        data["answer_data"] = {
            "type": "match",
            "left_column": [p.get("left") for p in pairs],
            "right_column": right_column,
        }
    return data


def _pick(candidates: list[QuestionRecord], count: int) -> list[QuestionRecord]:
    shuffled = list(candidates)
    random.shuffle(shuffled)
    return shuffled[:count]


def _section_questions(subject_slug: str, section: dict[str, Any]) -> list[QuestionRecord]:
    question_type = section.get("question_type")
    needed = int(section.get("question_count") or 0)
    chapter_configs = section.get("chapter_configs") or []
    chapter_ids = section.get("chapter_ids") or []

    if chapter_configs:
        selected = []
        for config in chapter_configs:
            count = int(config.get("question_count") or 0)
            if count <= 0:
                continue
            candidates = get_questions_by_subject(
                subject_slug,
                chapter_id=config.get("chapter_id"),
                question_type=question_type,
                is_active=True,
                limit=count * OVERFETCH_FACTOR,
            )
            selected.extend(_pick(candidates, count))
        return selected

    if needed <= 0:
        return []

    if chapter_ids:
        candidates = []
        for chapter_id in chapter_ids:
            candidates.extend(
                get_questions_by_subject(
                    subject_slug,
                    chapter_id=chapter_id,
                    question_type=question_type,
                    is_active=True,
                    limit=needed * OVERFETCH_FACTOR,
                )
            )
    else:
        candidates = get_questions_by_subject(
            subject_slug,
            question_type=question_type,
            is_active=True,
            limit=needed * OVERFETCH_FACTOR,
        )
    return _pick(candidates, needed)


def build_exam_preview(scheduled_exam_id: str) -> dict[str, Any]:
    """Assemble a sanitized sample paper for a scheduled exam.

    Returns:
        {"scheduled_exam_id", "sections": [section + "questions"]}

    Raises:
        NotFoundError: If the scheduled exam doesn't exist
        ValidationError: If it has no structure or subject, or the subject
            has no question bank
    """
    scheduled = get_scheduled_exam_record(scheduled_exam_id)
    if scheduled is None:
        raise NotFoundError("Scheduled exam", scheduled_exam_id)

    structure = (
        get_exam_structure(scheduled.exam_structure_id)
        if scheduled.exam_structure_id
        else None
    )
    if structure is None:
        raise ValidationError("No exam structure assigned to this exam")

    subject = get_subject_by_id(scheduled.subject_id)
    if subject is None:
        raise ValidationError("Subject not found for this exam")

    sections = []
    for section in sorted(structure.sections, key=lambda s: s.get("order_index", 0)):
        questions = _section_questions(subject.slug, section)
        sections.append({**section, "questions": [sanitize_question(q) for q in questions]})

    logger.info(
        "exam_preview.built",
        scheduled_exam_id=scheduled_exam_id,
        sections=len(sections),
        questions=sum(len(s["questions"]) for s in sections),
    )
    return {"scheduled_exam_id": scheduled_exam_id, "sections": sections}
