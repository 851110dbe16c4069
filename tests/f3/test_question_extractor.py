"""Tests for AI question extraction (LLM mocked)."""

from unittest.mock import MagicMock, patch

import pytest

from examadmin.core.pdf_extractor import PdfText
from examadmin.core.question_extractor import (
    DEFAULT_AI_MARKS,
    ExtractionOptions,
    ExtractionResult,
    QuestionExtractionError,
    build_extraction_prompts,
    convert_to_parsed_questions,
    extract_questions_from_pdf,
    get_model_info,
    is_model_available,
    list_available_models,
    validate_extraction_payload,
)
from examadmin.core.question_import import import_pdf
from examadmin.errors import ValidationError
from examadmin.llm.client import LLMError

PAYLOAD = {
    "metadata": {"exam_name": "Scholarship 2024", "paper": "I"},
    "questions": [
        {
            "number": 2,
            "text_mr": "षटकोनाला किती बाजू असतात?",
            "type": "mcq",
            "marks": 2,
            "options": ["4", "5", "6", "8"],
            "correct_answer": "2",
            "section": "गणित",
        },
        {
            "number": 1,
            "text_en": "Pick two even numbers",
            "type": "mcq_two",
            "options": [1, 2, 3, 4],
            "correct_answers": [1, "3"],
        },
        {"number": 3, "type": "mcq_single"},
        "garbage",
    ],
}


@pytest.fixture
def paper():
    return PdfText(
        text="Instructions\n1. first question",
        total_pages=2,
        pages_with_text=2,
        detected_language="mr",
        pdf_metadata={"title": "Paper I"},
    )


@pytest.fixture
def mock_client():
    client = MagicMock()
    client.simple_json.return_value = PAYLOAD
    return client


class TestModelCatalog:
    """Tests for the model list."""

    def test_known_model(self):
        assert get_model_info("gpt-4o").provider == "openai"
        assert get_model_info("unknown") is None

    def test_availability_follows_api_key(self, db, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert not is_model_available("gpt-4o")

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert is_model_available("gpt-4o")
        assert not is_model_available("unknown")

    def test_list(self, db, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "gsk-test")

        models = {m["id"]: m for m in list_available_models()}

        assert models["llama-3.1-70b-versatile"]["available"] is True
        assert models["gpt-4o-mini"]["cost_per_1k_tokens"] == 0.00015


class TestValidatePayload:
    """Tests for checking the model's JSON."""

    def test_normalizes_questions(self):
        questions, metadata = validate_extraction_payload(PAYLOAD)

        assert metadata == {"exam_name": "Scholarship 2024", "paper": "I"}
        assert [q["number"] for q in questions] == [2, 1]
        first, second = questions
        assert first["correct_answer"] == 2
        assert first["section"] == "गणित"
        assert first["text_en"] is None
        assert second["options"] == ["1", "2", "3", "4"]
        assert second["correct_answers"] == [1, 3]
        assert second["marks"] == DEFAULT_AI_MARKS

    def test_number_defaults_to_position(self):
        questions, _ = validate_extraction_payload({"questions": [{"text_en": "Q"}]})

        assert questions[0]["number"] == 1
        assert questions[0]["type"] == "mcq_single"

    def test_list_correct_answer(self):
        questions, _ = validate_extraction_payload(
            {"questions": [{"text_en": "Q", "correct_answer": [3, 1]}]}
        )

        assert questions[0]["correct_answer"] == 3

    @pytest.mark.parametrize("payload", [None, [], {"questions": "none"}, {"items": []}])
    def test_missing_questions_list(self, payload):
        with pytest.raises(QuestionExtractionError, match="questions list"):
            validate_extraction_payload(payload)


class TestPrompts:
    """Tests for building extraction prompts."""

    def test_scholarship_prompts(self):
        system, user = build_extraction_prompts("Read carefully\n1. Question one", "1-B 2-C")

        assert "Scholarship" in system
        assert "1. Question one" in user
        assert "Read carefully" not in user
        assert "Skip any instruction pages" in user
        assert "ANSWER KEY" in user
        assert "1-B 2-C" in user

    def test_generic_prompts(self):
        system, user = build_extraction_prompts(
            "Read carefully\n1. Question one", scholarship_mode=False
        )

        assert "exam papers" in system
        assert "Read carefully" in user
        assert "ANSWER KEY" not in user
        assert "{pdf_text}" not in user

    def test_scholarship_mode_follows_subject(self):
        assert ExtractionOptions(subject_slug="scholarship").is_scholarship
        assert not ExtractionOptions(subject_slug="english").is_scholarship
        assert ExtractionOptions(subject_slug="english", scholarship_mode=True).is_scholarship


class TestExtractQuestions:
    """Tests for the full extraction pipeline."""

    def test_success(self, paper, mock_client):
        stages = []
        with patch("examadmin.core.question_extractor.extract_pdf_text", return_value=paper):
            result = extract_questions_from_pdf(
                b"%PDF", ExtractionOptions(), progress=stages.append, client=mock_client
            )

        assert [q["number"] for q in result.questions] == [1, 2]
        assert result.metadata["total_questions"] == 2
        assert result.metadata["exam_name"] == "Scholarship 2024"
        assert result.detected_language == "mr"
        assert result.pdf_metadata == {"title": "Paper I"}
        assert [s.stage for s in stages] == ["processing", "extracting", "complete"]
        assert stages[-1].percentage == 100
        assert stages[-1].total_questions == 2
        _, kwargs = mock_client.simple_json.call_args
        assert kwargs["temperature"] == 0.1

    def test_answer_key(self, paper, mock_client):
        with patch(
            "examadmin.core.question_extractor.extract_pdf_text", return_value=paper
        ) as extract:
            extract_questions_from_pdf(
                b"%PDF", ExtractionOptions(), answer_key=b"%KEY", client=mock_client
            )

        assert extract.call_count == 2
        user_prompt = mock_client.simple_json.call_args[0][1]
        assert "ANSWER KEY" in user_prompt

    def test_max_questions(self, paper, mock_client):
        with patch("examadmin.core.question_extractor.extract_pdf_text", return_value=paper):
            result = extract_questions_from_pdf(
                b"%PDF", ExtractionOptions(max_questions=1), client=mock_client
            )

        assert [q["number"] for q in result.questions] == [2]

    def test_unknown_model(self, mock_client):
        with pytest.raises(QuestionExtractionError, match="Unknown model"):
            extract_questions_from_pdf(b"%PDF", ExtractionOptions(model="nope"), client=mock_client)

    def test_unavailable_model(self, db, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(QuestionExtractionError, match="not available"):
            extract_questions_from_pdf(b"%PDF", ExtractionOptions())

    @pytest.mark.parametrize(
        "error,message",
        [
            ("Error code: 401 - invalid api key", "API key not configured"),
            ("Error code: 429 - rate limit", "Rate limit exceeded"),
            ("Request timed out.", "Request timed out"),
            ("Something else", "Something else"),
        ],
    )
    def test_llm_errors(self, paper, mock_client, error, message):
        mock_client.simple_json.side_effect = LLMError(error)

        with patch("examadmin.core.question_extractor.extract_pdf_text", return_value=paper):
            with pytest.raises(QuestionExtractionError, match=message):
                extract_questions_from_pdf(b"%PDF", ExtractionOptions(), client=mock_client)


class TestConvertToParsedQuestions:
    """Tests for mapping extracted questions to batch questions."""

    def test_conversion(self):
        questions, metadata = validate_extraction_payload(PAYLOAD)

        parsed = convert_to_parsed_questions(ExtractionResult(questions=questions, metadata=metadata))

        first, second = parsed
        assert first["question_type"] == "mcq_single"
        assert first["question_text_mr"] == "षटकोनाला किती बाजू असतात?"
        assert first["question_text_en"] == ""
        assert first["correct_answer"] == 2
        assert first["difficulty"] == "medium"
        assert second["correct_answer"] == 1
        assert second["correct_answers"] == [1, 3]
        assert "parsing_errors" not in second

    def test_type_aliases_and_unknown_types(self):
        questions, _ = validate_extraction_payload(
            {
                "questions": [
                    {"text_en": "A", "type": "tf"},
                    {"text_en": "B", "type": "mcq_multiple"},
                    {"text_en": "C", "type": "diagram"},
                ]
            }
        )

        parsed = convert_to_parsed_questions(ExtractionResult(questions=questions))

        assert [p["question_type"] for p in parsed] == ["true_false", "mcq_three", "mcq_single"]
        assert parsed[2]["parsing_errors"] == ["Unsupported question type: diagram"]


class TestImportPdf:
    """Tests for saving an AI extraction as a batch."""

    def test_creates_batch(self, teacher, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        questions, metadata = validate_extraction_payload(PAYLOAD)
        result = ExtractionResult(
            questions=questions, metadata=metadata, detected_language="mr"
        )

        with patch(
            "examadmin.core.question_import.extract_questions_from_pdf", return_value=result
        ) as extract:
            batch = import_pdf(b"%PDF-1.7", "paper.pdf", "scholarship", created_by=teacher.id)

        assert batch.batch_name == "AI Import from paper.pdf"
        assert batch.question_count == 2
        assert batch.metadata["import_type"] == "pdf"
        assert batch.metadata["ai_model"] == "gpt-4o"
        assert batch.metadata["detected_language"] == "mr"
        assert batch.metadata["has_answer_key"] is False
        assert extract.call_args[0][1].subject_slug == "scholarship"

    def test_unsupported_subject(self, teacher):
        with pytest.raises(ValidationError, match="does not support question import"):
            import_pdf(b"%PDF", "paper.pdf", "history", created_by=teacher.id)

    def test_invalid_model(self, teacher):
        with pytest.raises(ValidationError, match="Invalid model: nope"):
            import_pdf(b"%PDF", "paper.pdf", "scholarship", created_by=teacher.id, model="nope")

    def test_model_without_key(self, teacher, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with pytest.raises(ValidationError, match="Claude 3.5 Sonnet is not available"):
            import_pdf(
                b"%PDF",
                "paper.pdf",
                "scholarship",
                created_by=teacher.id,
                model="claude-3-5-sonnet-20241022",
            )
