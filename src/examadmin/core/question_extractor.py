"""AI question extraction from exam-paper PDFs.

Pipeline:
1. Extract text from the paper (and optional answer key) with PyMuPDF
2. Build the prompt, in scholarship mode for Marathi scholarship papers
3. Ask the chosen model for JSON at low temperature
4. Validate the payload and normalise each question
5. Truncate to max_questions and sort by question number

The result converts into the same parsed-question dicts the spreadsheet
importer produces, so both feed the same review/commit flow.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Literal

import structlog

from examadmin.config.app_config import get_provider_config
from examadmin.core.pdf_extractor import extract_pdf_text, strip_instruction_pages
from examadmin.db.questions_repository import QUESTION_TYPES
from examadmin.llm.client import LLMClient, LLMConfig, LLMError
from examadmin.prompts.registry import get_prompt

logger = structlog.get_logger(__name__)

EXTRACTION_TEMPERATURE = 0.1
DEFAULT_MODEL = "gpt-4o"
DEFAULT_AI_MARKS = 2
SCHOLARSHIP_SLUG = "scholarship"

# Model-reported types that have a different name in the question bank
TYPE_ALIASES = {"mcq": "mcq_single", "mcq_multiple": "mcq_three", "tf": "true_false"}


# =============================================================================
# MODEL CATALOG
# =============================================================================


@dataclass(frozen=True)
class ModelInfo:
    """An AI model offered for extraction."""

    id: str
    name: str
    provider: Literal["openai", "anthropic", "groq"]
    description: str
    cost_per_1k_tokens: float
    max_tokens: int


AI_MODELS: dict[str, ModelInfo] = {
    "gpt-4o": ModelInfo(
        id="gpt-4o",
        name="GPT-4o",
        provider="openai",
        description="Best for multilingual content including Marathi. Highest accuracy.",
        cost_per_1k_tokens=0.005,
        max_tokens=128000,
    ),
    "gpt-4o-mini": ModelInfo(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        provider="openai",
        description="Cost-effective option with good Marathi support.",
        cost_per_1k_tokens=0.00015,
        max_tokens=128000,
    ),
    "claude-3-5-sonnet-20241022": ModelInfo(
        id="claude-3-5-sonnet-20241022",
        name="Claude 3.5 Sonnet",
        provider="anthropic",
        description="Excellent reasoning and multilingual understanding.",
        cost_per_1k_tokens=0.003,
        max_tokens=200000,
    ),
    "llama-3.1-70b-versatile": ModelInfo(
        id="llama-3.1-70b-versatile",
        name="Llama 3.1 70B (Groq)",
        provider="groq",
        description="Fast inference, good for structured extraction.",
        cost_per_1k_tokens=0.0007,
        max_tokens=8192,
    ),
}


def get_model_info(model_id: str) -> ModelInfo | None:
    return AI_MODELS.get(model_id)


def is_model_available(model_id: str) -> bool:
    """True when the model is known and its provider's API key is set."""
    model = AI_MODELS.get(model_id)
    if model is None:
        return False
    provider = get_provider_config(model.provider)
    return provider is not None and bool(provider.get_api_key())


def list_available_models() -> list[dict[str, Any]]:
    """Every catalogued model with an availability flag."""
    return [
        {**asdict(model), "available": is_model_available(model.id)}
        for model in AI_MODELS.values()
    ]


# =============================================================================
# DATA CLASSES
# =============================================================================


class QuestionExtractionError(Exception):
    """Extraction failed with a message safe to show to users."""

    pass


@dataclass
class ExtractionOptions:
    """How to run one extraction."""

    model: str = DEFAULT_MODEL
    subject_slug: str = SCHOLARSHIP_SLUG
    max_questions: int | None = None
    scholarship_mode: bool | None = None

    @property
    def is_scholarship(self) -> bool:
        if self.scholarship_mode is not None:
            return self.scholarship_mode
        return self.subject_slug == SCHOLARSHIP_SLUG


@dataclass
class ExtractionProgress:
    """A progress report sent to the caller's callback."""

    stage: Literal["processing", "extracting", "complete"]
    message: str
    percentage: int
    total_questions: int | None = None


ProgressCallback = Callable[[ExtractionProgress], None]


@dataclass
class ExtractionResult:
    """Validated questions plus paper metadata."""

    questions: list[dict[str, Any]]
    metadata: dict[str, Any] = field(default_factory=dict)
    detected_language: str | None = None
    pdf_metadata: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# PROMPTS AND VALIDATION
# =============================================================================


def build_extraction_prompts(
    pdf_text: str,
    answer_key_text: str | None = None,
    scholarship_mode: bool = True,
) -> tuple[str, str]:
    """System and user prompts for one paper.

    Returns:
        (system_prompt, user_prompt)
    """
    if scholarship_mode:
        system_prompt = get_prompt("extraction/system_scholarship")
        pdf_text = strip_instruction_pages(pdf_text)
        mode_note = "IMPORTANT: Skip any instruction pages. Extract ONLY numbered questions."
    else:
        system_prompt = get_prompt("extraction/system_generic")
        mode_note = ""

    answer_key_section = ""
    if answer_key_text:
        answer_key_section = get_prompt("extraction/answer_key", answer_key_text=answer_key_text)

    user_prompt = get_prompt(
        "extraction/user",
        mode_note=mode_note,
        pdf_text=pdf_text,
        answer_key_section=answer_key_section,
    )
    return system_prompt, user_prompt


def _to_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _validate_question(raw: Any, position: int) -> dict[str, Any] | None:
    """Normalise one extracted question; None for unusable entries."""
    if not isinstance(raw, dict):
        return None

    text_mr = _optional_text(raw.get("text_mr"))
    text_en = _optional_text(raw.get("text_en"))
    if text_mr is None and text_en is None:
        return None

    options = raw.get("options")
    options = [str(o) for o in options] if isinstance(options, list) else []

    correct_answers = raw.get("correct_answers")
    if isinstance(correct_answers, list):
        correct_answers = [i for i in map(_to_int, correct_answers) if i is not None]
    else:
        correct_answers = []

    correct_answer = raw.get("correct_answer")
    if isinstance(correct_answer, list):
        correct_answer = _to_int(correct_answer[0]) if correct_answer else None
    else:
        correct_answer = _to_int(correct_answer)

    marks = raw.get("marks")
    return {
        "number": _to_int(raw.get("number")) or position,
        "text_mr": text_mr,
        "text_en": text_en,
        "type": str(raw.get("type") or "mcq_single"),
        "marks": marks if isinstance(marks, (int, float)) and not isinstance(marks, bool) else DEFAULT_AI_MARKS,
        "options": options,
        "correct_answers": correct_answers,
        "correct_answer": correct_answer,
        "section": _optional_text(raw.get("section")),
        "explanation_mr": _optional_text(raw.get("explanation_mr")),
        "explanation_en": _optional_text(raw.get("explanation_en")),
    }


def validate_extraction_payload(payload: Any) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    """Check the model's JSON shape.

    Returns:
        (questions, metadata)

    Raises:
        QuestionExtractionError: If there is no questions list
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("questions"), list):
        raise QuestionExtractionError("AI response did not contain a questions list")

    questions = []
    skipped = 0
    for position, raw in enumerate(payload["questions"], start=1):
        question = _validate_question(raw, position)
        if question is None:
            skipped += 1
        else:
            questions.append(question)

    if skipped:
        logger.warning("question_extractor.entries_skipped", skipped=skipped)

    metadata = payload.get("metadata")
    return questions, metadata if isinstance(metadata, dict) else {}


def _friendly_error(error: LLMError, model_id: str) -> QuestionExtractionError:
    message = str(error)
    lowered = message.lower()
    if "api key" in lowered or "api_key" in lowered or "401" in lowered:
        return QuestionExtractionError(
            f"API key not configured for {model_id}. Please check environment variables."
        )
    if "rate limit" in lowered or "429" in lowered:
        return QuestionExtractionError("Rate limit exceeded. Please try again in a moment.")
    if "timeout" in lowered or "timed out" in lowered:
        return QuestionExtractionError(
            "Request timed out. The PDF may be too large. "
            "Please try a smaller file or different model."
        )
    return QuestionExtractionError(message or "Failed to extract questions from PDF")


# =============================================================================
# EXTRACTION
# =============================================================================


def extract_questions_from_pdf(
    data: bytes,
    options: ExtractionOptions,
    answer_key: bytes | None = None,
    progress: ProgressCallback | None = None,
    client: LLMClient | None = None,
) -> ExtractionResult:
    """Extract structured questions from a question-paper PDF.

    Args:
        data: Question paper PDF bytes
        options: Model, subject and limits
        answer_key: Optional answer-key PDF bytes
        progress: Optional callback for stage updates
        client: Optional pre-configured LLM client (for testing)

    Returns:
        ExtractionResult with questions sorted by number

    Raises:
        QuestionExtractionError: Unknown or unavailable model, or LLM failure
        PdfExtractionError: If the PDF cannot be read (see pdf_extractor)
    """

    def report(stage: Any, message: str, percentage: int, total: int | None = None) -> None:
        if progress is not None:
            progress(ExtractionProgress(stage, message, percentage, total))

    model = AI_MODELS.get(options.model)
    if model is None:
        raise QuestionExtractionError(f"Unknown model: {options.model}")
    if client is None and not is_model_available(model.id):
        raise QuestionExtractionError(
            f"Model {model.id} is not available. Please check API keys."
        )

    report("processing", "Extracting text from PDF...", 10)
    paper = extract_pdf_text(data, filename="question-paper.pdf")

    answer_key_text = None
    if answer_key is not None:
        report("processing", "Extracting answer key...", 20)
        answer_key_text = extract_pdf_text(answer_key, filename="answer-key.pdf").text

    report("extracting", f"Extracting questions using {model.name}...", 30)
    system_prompt, user_prompt = build_extraction_prompts(
        paper.text, answer_key_text, scholarship_mode=options.is_scholarship
    )

    if client is None:
        client = LLMClient(LLMConfig.for_provider(model.provider, model=model.id))

    try:
        payload = client.simple_json(
            system_prompt, user_prompt, temperature=EXTRACTION_TEMPERATURE
        )
    except LLMError as e:
        logger.error("question_extractor.llm_failed", model=model.id, error=str(e))
        raise _friendly_error(e, model.id) from e

    questions, metadata = validate_extraction_payload(payload)
    if options.max_questions:
        questions = questions[: options.max_questions]
    questions.sort(key=lambda q: q["number"])

    report("complete", f"Successfully extracted {len(questions)} questions", 100, len(questions))
    logger.info(
        "question_extractor.completed",
        model=model.id,
        subject=options.subject_slug,
        questions=len(questions),
    )

    return ExtractionResult(
        questions=questions,
        metadata={**metadata, "total_questions": len(questions)},
        detected_language=paper.detected_language,
        pdf_metadata=paper.pdf_metadata,
    )


def convert_to_parsed_questions(result: ExtractionResult) -> list[dict[str, Any]]:
    """Map extracted questions to import-batch question dicts."""
    parsed = []
    for q in result.questions:
        question_type = TYPE_ALIASES.get(q["type"], q["type"])
        errors = []
        if question_type not in QUESTION_TYPES:
            errors.append(f"Unsupported question type: {q['type']}")
            question_type = "mcq_single"

        if q["correct_answers"]:
            correct_answer = q["correct_answers"][0]
        else:
            correct_answer = q["correct_answer"]

        item = {
            "question_number": q["number"],
            "question_text_mr": q["text_mr"] or "",
            "question_text_en": q["text_en"] or "",
            "options": q["options"],
            "correct_answer": correct_answer,
            "correct_answers": q["correct_answers"],
            "question_type": question_type,
            "marks": q["marks"] or DEFAULT_AI_MARKS,
            "difficulty": "medium",
            "explanation_mr": q["explanation_mr"],
            "explanation_en": q["explanation_en"],
            "section": q["section"],
        }
        if errors:
            item["parsing_errors"] = errors
        parsed.append(item)
    return parsed
