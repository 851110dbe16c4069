"""Tests for sample paper assembly."""

import pytest

from examadmin.core.exam_preview import build_exam_preview, sanitize_question
from examadmin.db.exam_structures_repository import create_exam_structure
from examadmin.db.questions_repository import create_question
from examadmin.db.scheduled_exams_repository import create_scheduled_exam
from examadmin.errors import NotFoundError, ValidationError


class TestSanitizeQuestion:
    """Tests for stripping answers from questions."""

    def test_mcq_keeps_options(self, english_questions):
        data = sanitize_question(english_questions["capital"])

        assert data["answer_data"] == {"options": ["Pune", "Mumbai", "Nagpur", "Nashik"]}

    def test_true_false(self, english_questions):
        data = sanitize_question(english_questions["river"])

        assert data["answer_data"] == {"type": "true_false"}

    def test_text_answer_dropped(self, english_questions):
        data = sanitize_question(english_questions["essay"])

        assert "answer_data" not in data

    def test_fill_blank(self, db):
        question = create_question(
            "english", "The sun rises in the ___", "fill_blank", "class-5", {"blanks": ["east"]}
        )

        assert sanitize_question(question)["answer_data"] == {"blank_count": 1}

    def test_match_columns(self, db):
        pairs = [{"left": "Cow", "right": "Calf"}, {"left": "Dog", "right": "Puppy"}]
        question = create_question("english", "Match the young ones", "match", "class-5", {"pairs": pairs})

        data = sanitize_question(question)["answer_data"]

        assert data["left_column"] == ["Cow", "Dog"]
        assert sorted(data["right_column"]) == ["Calf", "Puppy"]
        assert "pairs" not in data


class TestBuildExamPreview:
    """Tests for building a preview from an exam structure."""

    def test_sections_follow_structure(self, scheduled, english_questions):
        preview = build_exam_preview(scheduled.id)

        assert preview["scheduled_exam_id"] == scheduled.id
        assert [s["code"] for s in preview["sections"]] == ["A", "B"]
        mcq, true_false = preview["sections"]
        assert [q["id"] for q in mcq["questions"]] == [english_questions["capital"].id]
        # only one true/false question exists for a two-question section
        assert [q["id"] for q in true_false["questions"]] == [english_questions["river"].id]
        assert "correct" not in str(mcq["questions"][0]["answer_data"])

    def test_chapter_configs(self, catalog, english_questions):
        structure = create_exam_structure(
            name_en="Chapter paper",
            subject_id=catalog["subject"].id,
            sections=[
                {
                    "code": "A",
                    "question_type": "mcq_two",
                    "chapter_configs": [
                        {"chapter_id": catalog["chapter"].id, "question_count": 3},
                        {"chapter_id": "empty", "question_count": 0},
                    ],
                }
            ],
        )
        exam = create_scheduled_exam(
            catalog["class_level"].id,
            catalog["subject"].id,
            "Chapter test",
            exam_structure_id=structure.id,
        ).data

        preview = build_exam_preview(exam.id)

        questions = preview["sections"][0]["questions"]
        assert [q["id"] for q in questions] == [english_questions["cities"].id]

    def test_missing_exam(self, db):
        with pytest.raises(NotFoundError):
            build_exam_preview("missing")

    def test_no_structure(self, catalog):
        exam = create_scheduled_exam(
            catalog["class_level"].id, catalog["subject"].id, "No structure"
        ).data

        with pytest.raises(ValidationError, match="No exam structure assigned"):
            build_exam_preview(exam.id)
