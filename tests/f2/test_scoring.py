"""Tests for answer checking and exam totals."""

import json

import pytest

from examadmin.core.scoring import (
    calculate_exam_stats,
    check_answer,
    format_correct_answer,
    format_user_answer,
    grade_answer,
    is_boolean_selected,
    is_option_selected,
    to_boolean,
    to_number,
)

OPTIONS = ["Pune", "Mumbai", "Nagpur", "Nashik"]


def question(question_type, marks=2, **answer_data):
    return {"question_type": question_type, "marks": marks, "answer_data": answer_data}


class TestCoercion:
    """Tests for to_number and to_boolean."""

    @pytest.mark.parametrize(
        "value,expected",
        [(2, 2), ("3", 3), ("2)", 2), (1.0, 1), (1.5, None), (True, None), ("B", None), (None, None)],
    )
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    @pytest.mark.parametrize(
        "value,expected",
        [(True, True), ("TRUE", True), ("no", False), (0, False), (1, True), ("maybe", None), (2, None)],
    )
    def test_to_boolean(self, value, expected):
        assert to_boolean(value) is expected


class TestCheckAnswer:
    """Tests for check_answer across question types."""

    def test_mcq_single(self):
        q = question("mcq_single", options=OPTIONS, correct=1)

        assert check_answer(q, 1)
        assert check_answer(q, "1")
        assert check_answer(q, "B")
        assert not check_answer(q, 0)
        assert not check_answer(q, "")
        assert not check_answer(q, None)

    def test_legacy_type_names(self):
        assert check_answer(question("mcq", options=OPTIONS, correct=0), "a")
        assert check_answer(question("tf", correct=False), "false")

    def test_mcq_multiple_requires_exact_set(self):
        q = question("mcq_two", options=OPTIONS, correct=[0, 2])

        assert check_answer(q, [2, 0])
        assert check_answer(q, ["A", "C"])
        assert not check_answer(q, [0])
        assert not check_answer(q, [0, 1, 2])
        assert not check_answer(q, 0)

    def test_true_false(self):
        q = question("true_false", correct=True)

        assert check_answer(q, True)
        assert check_answer(q, "yes")
        assert not check_answer(q, False)
        assert not check_answer(q, "unsure")

    def test_fill_blank(self):
        q = question("fill_blank", blanks=["Delhi", ["Mumbai", "Bombay"]])

        assert check_answer(q, " delhi ")
        assert check_answer(q, ["Delhi", "bombay"])
        assert not check_answer(q, ["Delhi", "Pune"])
        assert not check_answer(q, ["Delhi", "Mumbai", "Extra"])

    def test_match(self):
        q = question(
            "match",
            pairs=[
                {"left": "वाघ", "right": "जंगल", "left_en": "Tiger", "right_en": "Forest"},
                {"left": "मासा", "right": "पाणी", "left_en": "Fish", "right_en": "Water"},
            ],
        )

        assert check_answer(q, {"वाघ": "जंगल", "मासा": "पाणी"})
        assert check_answer(q, {"Tiger": "Forest", "Fish": "Water"})
        assert not check_answer(q, {"वाघ": "पाणी", "मासा": "जंगल"})
        assert not check_answer(q, {"वाघ": "जंगल"})

    def test_manual_types_never_correct(self):
        assert not check_answer(question("short_answer", answer="Photosynthesis"), "Photosynthesis")

    def test_answer_data_as_json_string(self):
        q = {"question_type": "mcq_single", "answer_data": json.dumps({"correct": 3})}

        assert check_answer(q, 3)
        assert not check_answer({"question_type": "mcq_single", "answer_data": "{bad"}, 3)


class TestGradeAnswer:
    """Tests for grade_answer."""

    def test_awards_marks_when_correct(self):
        q = question("mcq_single", marks=2, options=OPTIONS, correct=1)

        assert grade_answer(q, 1).marks_obtained == 2
        assert grade_answer(q, 0).marks_obtained == 0

    def test_flags_manual_grading(self):
        grade = grade_answer(question("long_answer", answer="..."), "My essay")

        assert grade.requires_manual_grading is True
        assert grade.is_correct is False


class TestFormatting:
    """Tests for review formatting helpers."""

    def test_user_answer(self):
        data = {"options": OPTIONS, "correct": 1}

        assert format_user_answer(None, "mcq_single", data) == "No answer provided"
        assert format_user_answer(2, "mcq_single", data) == "Nagpur"
        assert format_user_answer([0, 3], "mcq_two", data) == "Pune, Nashik"
        assert format_user_answer("true", "true_false", {}) == "True"
        assert format_user_answer({"a": "b"}, "match", {}) == "a → b"

    def test_correct_answer(self):
        assert format_correct_answer("mcq_single", {"options": OPTIONS, "correct": 1}) == "Mumbai"
        assert format_correct_answer("mcq_two", {"options": OPTIONS, "correct": [0, 2]}) == "Pune, Nagpur"
        assert format_correct_answer("true_false", {"correct": False}) == "False"
        assert format_correct_answer("fill_blank", {"blanks": ["a", ["b", "c"]]}) == "a, b / c"
        assert format_correct_answer("short_answer", {"answer": "Sun"}) == "Sun"
        assert format_correct_answer("mcq_single", None) == "N/A"

    def test_option_selection(self):
        assert is_option_selected(1, 1, OPTIONS)
        assert is_option_selected([0, 2], 2, OPTIONS)
        assert is_option_selected("mumbai", 1, OPTIONS)
        assert not is_option_selected(None, 0, OPTIONS)
        assert is_boolean_selected("false", False)
        assert not is_boolean_selected("", True)


class TestExamStats:
    """Tests for calculate_exam_stats."""

    def test_totals(self):
        answers = [
            {"user_answer": 1, "is_correct": True, "marks_obtained": 2},
            {"user_answer": 0, "is_correct": False, "marks_obtained": 0},
            {"user_answer": None, "is_correct": None, "marks_obtained": 0},
        ]

        stats = calculate_exam_stats(answers, total_marks=6)

        assert stats.attempted == 2
        assert stats.correct == 1
        assert stats.wrong == 1
        assert stats.unanswered == 1
        assert stats.percentage == 33
        assert stats.is_passing is False

    def test_passing_threshold(self):
        answers = [{"user_answer": 1, "is_correct": True, "marks_obtained": 35}]

        assert calculate_exam_stats(answers, total_marks=100).is_passing is True
        assert calculate_exam_stats(answers, total_marks=100, passing_percentage=40).is_passing is False

    def test_zero_total_marks(self):
        assert calculate_exam_stats([], total_marks=0).percentage == 0
