"""Answer checking and exam scoring.

Deterministic grading for every question type. Objective types are
compared against the question's answer_data:

    mcq_single (mcq)                    {"options": [...], "correct": 0}
    mcq_two / mcq_three / mcq_multiple  {"options": [...], "correct": [0, 2]}
    true_false (tf)                     {"correct": true}
    fill_blank                          {"blanks": ["a", ["b", "b2"]]}
    match                               {"pairs": [{"left", "right", "left_en", "right_en"}]}

short_answer, long_answer and programming need a human grader and are
never auto-marked correct.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

import structlog

logger = structlog.get_logger(__name__)

OPTION_LABELS = ("A", "B", "C", "D", "E", "F")
MANUAL_TYPES = ("short_answer", "long_answer", "programming")
SINGLE_TYPES = ("mcq_single", "mcq")
MULTIPLE_TYPES = ("mcq_two", "mcq_three", "mcq_multiple")
BOOLEAN_TYPES = ("true_false", "tf")

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


# =============================================================================
# COERCION
# =============================================================================


def to_number(value: Any) -> int | None:
    """Coerce an index-like value to int.

    Strings are read up to the first non-digit ("2)" -> 2).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def to_boolean(value: Any) -> bool | None:
    """Coerce a true/false answer."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        return None
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
    return None


def normalize_string(value: Any) -> str:
    """Lower-case and trim for comparison."""
    if value is None:
        return ""
    return str(value).strip().lower()


def _label_to_index(value: Any) -> int | None:
    if not isinstance(value, str):
        return None
    label = value.strip().upper()
    return OPTION_LABELS.index(label) if label in OPTION_LABELS else None


def _answer_to_index(value: Any) -> int | None:
    """An index (0, "1") or an option label ("A")."""
    index = to_number(value)
    if index is not None:
        return index
    return _label_to_index(value)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


# =============================================================================
# CHECKS PER TYPE
# =============================================================================


def check_mcq_single(user_answer: Any, correct: Any) -> bool:
    user_index = _answer_to_index(user_answer)
    correct_index = to_number(correct)
    if user_index is None or correct_index is None:
        return False
    return user_index == correct_index


def check_mcq_multiple(user_answer: Any, correct: Any) -> bool:
    """The selected indices must be exactly the correct ones."""
    if not isinstance(user_answer, list) or not isinstance(correct, list):
        return False

    user_indices = sorted(i for i in map(_answer_to_index, user_answer) if i is not None)
    correct_indices = sorted(i for i in map(to_number, correct) if i is not None)
    return user_indices == correct_indices


def check_true_false(user_answer: Any, correct: Any) -> bool:
    user_value = to_boolean(user_answer)
    correct_value = to_boolean(correct)
    if user_value is None or correct_value is None:
        return False
    return user_value == correct_value


def check_fill_blank(user_answer: Any, blanks: Any) -> bool:
    """A single string may match any blank; a list is checked blank by blank."""
    if not isinstance(blanks, list) or not blanks:
        return False

    if isinstance(user_answer, str):
        given = normalize_string(user_answer)
        return any(
            isinstance(blank, str) and given == normalize_string(blank) for blank in blanks
        )

    if isinstance(user_answer, list):
        for i, given in enumerate(user_answer):
            if i >= len(blanks):
                return False
            accepted = blanks[i] if isinstance(blanks[i], list) else [blanks[i]]
            if not any(normalize_string(given) == normalize_string(a) for a in accepted):
                return False
        return True

    return False


def check_match(user_answer: Any, pairs: Any) -> bool:
    """Every pair's left side must map to its right side."""
    if not isinstance(user_answer, Mapping) or not isinstance(pairs, list):
        return False

    for pair in pairs:
        given = user_answer.get(pair.get("left")) or user_answer.get(pair.get("left_en") or "")
        if given is None:
            return False
        if given != pair.get("right") and given != pair.get("right_en"):
            return False
    return True


# =============================================================================
# DISPATCH
# =============================================================================


def parse_answer_data(value: Any) -> dict[str, Any] | None:
    """Accept answer_data as a dict or a JSON string."""
    if not value:
        return None
    if isinstance(value, dict):
        return value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("scoring.invalid_answer_data", value=value[:80])
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def requires_manual_grading(question_type: str) -> bool:
    """Text and code answers are graded by a person."""
    return question_type in MANUAL_TYPES


def _question_fields(question: Any) -> tuple[str, Any]:
    if isinstance(question, Mapping):
        return question.get("question_type", ""), question.get("answer_data")
    return getattr(question, "question_type", ""), getattr(question, "answer_data", None)


def check_answer(question: Any, user_answer: Any) -> bool:
    """Check a user's answer against a question (dict or record).

    Returns:
        True only for a correct answer to an auto-gradable question
    """
    if question is None or _is_empty(user_answer):
        return False

    question_type, raw_data = _question_fields(question)
    data = parse_answer_data(raw_data)
    if data is None:
        return False

    if question_type in SINGLE_TYPES:
        return check_mcq_single(user_answer, data.get("correct"))
    if question_type in BOOLEAN_TYPES:
        return check_true_false(user_answer, data.get("correct"))
    if question_type in MULTIPLE_TYPES:
        return check_mcq_multiple(user_answer, data.get("correct"))
    if question_type == "fill_blank":
        return check_fill_blank(user_answer, data.get("blanks"))
    if question_type == "match":
        return check_match(user_answer, data.get("pairs") or [])
    return False


@dataclass
class AnswerGrade:
    """Outcome of grading one answer."""

    is_correct: bool
    marks_obtained: int
    requires_manual_grading: bool


def grade_answer(question: Any, user_answer: Any) -> AnswerGrade:
    """Grade an answer and award the question's marks when correct."""
    question_type, _ = _question_fields(question)
    is_correct = check_answer(question, user_answer)
    if isinstance(question, Mapping):
        marks = question.get("marks") or 0
    else:
        marks = getattr(question, "marks", 0) or 0
    return AnswerGrade(
        is_correct=is_correct,
        marks_obtained=marks if is_correct else 0,
        requires_manual_grading=requires_manual_grading(question_type),
    )


# =============================================================================
# FORMATTING
# =============================================================================


def _option_text(options: list[Any], index: int | None) -> str | None:
    if index is None or index < 0 or index >= len(options):
        return None
    return options[index] or None


def format_user_answer(user_answer: Any, question_type: str, answer_data: Any) -> str:
    """Render a user's answer for review screens."""
    if user_answer is None or user_answer == "":
        return "No answer provided"

    data = parse_answer_data(answer_data) or {}
    options = data.get("options") or []

    if question_type in SINGLE_TYPES:
        text = _option_text(options, to_number(user_answer))
        if text is not None:
            return text
        if isinstance(user_answer, str) and user_answer.strip():
            return user_answer
        return "Invalid answer"

    if question_type in MULTIPLE_TYPES:
        if isinstance(user_answer, list) and user_answer:
            return ", ".join(
                _option_text(options, to_number(a)) or str(a) for a in user_answer
            )
        return "No answer provided"

    if question_type in BOOLEAN_TYPES:
        value = to_boolean(user_answer)
        if value is None:
            return str(user_answer)
        return "True" if value else "False"

    if question_type == "fill_blank":
        if isinstance(user_answer, list):
            return ", ".join(str(a) for a in user_answer)
        return str(user_answer)

    if question_type == "match":
        if isinstance(user_answer, Mapping) and user_answer:
            return ", ".join(f"{left} → {right}" for left, right in user_answer.items())
        return "No answer provided"

    if question_type in MANUAL_TYPES:
        return str(user_answer)

    if isinstance(user_answer, (dict, list)):
        return json.dumps(user_answer, ensure_ascii=False)
    return str(user_answer)


def format_correct_answer(question_type: str, answer_data: Any) -> str:
    """Render the expected answer for review screens."""
    data = parse_answer_data(answer_data)
    if data is None:
        return "N/A"

    options = data.get("options") or []

    if question_type in SINGLE_TYPES:
        return _option_text(options, to_number(data.get("correct"))) or "Answer not available"

    if question_type in MULTIPLE_TYPES:
        correct = data.get("correct")
        if not isinstance(correct, list) or not correct:
            return "Answer not available"
        parts = []
        for value in correct:
            index = to_number(value)
            parts.append(_option_text(options, index) or f"Option {(index or 0) + 1}")
        return ", ".join(parts)

    if question_type in BOOLEAN_TYPES:
        return "True" if to_boolean(data.get("correct")) is True else "False"

    if question_type == "fill_blank":
        blanks = data.get("blanks")
        if not isinstance(blanks, list) or not blanks:
            return "Answer not available"
        return ", ".join(
            " / ".join(str(b) for b in blank) if isinstance(blank, list) else str(blank)
            for blank in blanks
        )

    if question_type == "match":
        pairs = data.get("pairs")
        if not isinstance(pairs, list) or not pairs:
            return "Answer not available"
        return ", ".join(f"{p.get('left')} → {p.get('right')}" for p in pairs)

    if question_type in MANUAL_TYPES:
        return data.get("answer") or data.get("sampleAnswer") or "See explanation"

    return "See explanation"


def is_option_selected(user_answer: Any, index: int, options: list[str]) -> bool:
    """Whether the option at index is part of the user's answer."""
    if user_answer is None or user_answer == "":
        return False

    option = options[index] if 0 <= index < len(options) else None

    def matches(value: Any) -> bool:
        number = to_number(value)
        if number is not None:
            return number == index
        if isinstance(value, str) and option is not None:
            return value == option or normalize_string(value) == normalize_string(option)
        return False

    if isinstance(user_answer, list):
        return any(matches(v) for v in user_answer)
    return matches(user_answer)


def is_boolean_selected(user_answer: Any, value: bool) -> bool:
    """Whether the user picked this true/false value."""
    if user_answer is None or user_answer == "":
        return False
    return to_boolean(user_answer) == value


# =============================================================================
# EXAM TOTALS
# =============================================================================


@dataclass
class ExamStats:
    """Totals over an attempt's answers."""

    total_questions: int
    attempted: int
    correct: int
    wrong: int
    unanswered: int
    total_marks: int
    obtained_marks: int
    percentage: int
    is_passing: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def calculate_exam_stats(
    answers: Iterable[Any],
    total_marks: int,
    passing_percentage: int = 35,
) -> ExamStats:
    """Summarize answers (dicts or records with user_answer, is_correct,
    marks_obtained) against the exam's total marks.
    """
    total = attempted = correct = wrong = obtained = 0
    for answer in answers:
        if isinstance(answer, Mapping):
            user_answer = answer.get("user_answer")
            is_correct = answer.get("is_correct")
            marks = answer.get("marks_obtained")
        else:
            user_answer = answer.user_answer
            is_correct = answer.is_correct
            marks = answer.marks_obtained

        total += 1
        if user_answer is not None and user_answer != "":
            attempted += 1
        if is_correct is True:
            correct += 1
        elif is_correct is False:
            wrong += 1
        obtained += marks or 0

    percentage = round(obtained / total_marks * 100) if total_marks > 0 else 0
    return ExamStats(
        total_questions=total,
        attempted=attempted,
        correct=correct,
        wrong=wrong,
        unanswered=total - attempted,
        total_marks=total_marks,
        obtained_marks=obtained,
        percentage=percentage,
        is_passing=percentage >= passing_percentage,
    )
