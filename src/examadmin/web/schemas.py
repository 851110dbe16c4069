"""Pydantic schemas for the Web API.

Request bodies for every write endpoint plus response models for the
flat records. Joined views are returned as plain dicts.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# =============================================================================
# HEALTH
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str
    timestamp: str


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class NewSchool(BaseModel):
    """A school typed in by a user during signup."""

    name: str = Field(..., min_length=1, max_length=200)
    location_city: str | None = None
    location_state: str | None = None
    location_country: str | None = None


class SignUpRequest(BaseModel):
    """Request body for signup."""

    email: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=1)
    name: str | None = Field(default=None, max_length=100)
    phone: str | None = None
    class_level: str | None = None
    school_id: str | None = None
    new_school: NewSchool | None = None
    preferred_language: str = "en"


class SignInRequest(BaseModel):
    """Sign in with an email or a 10-digit phone number."""

    identifier: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    """Request body for token refresh."""

    refresh_token: str = Field(..., min_length=1)


class TokenPairResponse(BaseModel):
    """Access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: str


class AuthResponse(BaseModel):
    """Signed-in user plus tokens."""

    user: dict[str, Any]
    tokens: TokenPairResponse


# =============================================================================
# CLASS LEVEL SCHEMAS
# =============================================================================


class ClassLevelCreate(BaseModel):
    """Request body for creating a class level."""

    name_en: str = Field(..., min_length=1, max_length=100)
    name_mr: str | None = None
    slug: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    is_active: bool = True


class ClassLevelUpdate(BaseModel):
    """Partial class level update."""

    name_en: str | None = Field(default=None, min_length=1, max_length=100)
    name_mr: str | None = None
    slug: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    order_index: int | None = None
    is_active: bool | None = None


class ClassLevelResponse(BaseModel):
    """Response for a class level."""

    id: str
    name_en: str
    name_mr: str
    slug: str
    description_en: str | None
    description_mr: str | None
    order_index: int
    is_active: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class SubjectMappingRequest(BaseModel):
    """Map a subject to a class level."""

    subject_id: str = Field(..., min_length=1)


# =============================================================================
# SUBJECT AND CHAPTER SCHEMAS
# =============================================================================


class SubjectCreate(BaseModel):
    """Request body for a root subject."""

    name_en: str = Field(..., min_length=1, max_length=100)
    name_mr: str | None = None
    slug: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    icon: str | None = None
    order_index: int | None = None
    is_category: bool = False
    is_paper: bool = False
    paper_number: int | None = None


class ChildSubjectCreate(BaseModel):
    """Request body for a subject under a category."""

    name_en: str = Field(..., min_length=1, max_length=100)
    name_mr: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    icon: str | None = None
    is_paper: bool = False
    paper_number: int | None = None


class SubjectUpdate(BaseModel):
    """Partial subject update."""

    name_en: str | None = None
    name_mr: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    icon: str | None = None
    order_index: int | None = None
    is_active: bool | None = None
    is_category: bool | None = None
    is_paper: bool | None = None
    paper_number: int | None = None


class ChapterCreate(BaseModel):
    """Request body for a chapter."""

    name_en: str = Field(..., min_length=1, max_length=200)
    name_mr: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    order_index: int = 0


class ChapterUpdate(BaseModel):
    """Partial chapter update."""

    name_en: str | None = None
    name_mr: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    order_index: int | None = None
    is_active: bool | None = None


class ChapterResponse(BaseModel):
    """Response for a chapter."""

    id: str
    subject_id: str
    name_en: str
    name_mr: str
    description_en: str | None
    description_mr: str | None
    order_index: int
    is_active: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# QUESTION SCHEMAS
# =============================================================================


class QuestionCreate(BaseModel):
    """Request body for a question."""

    question_text: str = Field(..., min_length=1)
    question_type: str
    class_level: str = Field(..., min_length=1)
    answer_data: dict[str, Any] = Field(default_factory=dict)
    difficulty: str = "medium"
    marks: int = 1
    chapter_id: str | None = None
    explanation: str | None = None
    tags: list[str] = Field(default_factory=list)
    question_language: str | None = None


class QuestionUpdate(BaseModel):
    """Partial question update."""

    question_text: str | None = None
    question_type: str | None = None
    class_level: str | None = None
    answer_data: dict[str, Any] | None = None
    difficulty: str | None = None
    marks: int | None = None
    chapter_id: str | None = None
    explanation: str | None = None
    tags: list[str] | None = None
    question_language: str | None = None
    is_active: bool | None = None


class QuestionIdsRequest(BaseModel):
    """Fetch several questions at once."""

    ids: list[str] = Field(default_factory=list)


# =============================================================================
# IMPORT SCHEMAS
# =============================================================================


class ImportReviewRequest(BaseModel):
    """Reviewed questions for a batch."""

    batch_id: str
    questions: list[dict[str, Any]]
    batch_name: str | None = None


class ImportCommitRequest(BaseModel):
    """Commit a batch with defaults for missing fields."""

    batch_id: str
    default_chapter_id: str | None = None
    default_class_level: str | None = None
    default_difficulty: str | None = None
    default_marks: int | None = None


class ImportBatchResponse(BaseModel):
    """Response for an import batch."""

    id: str
    subject_slug: str
    batch_name: str
    status: str
    parsed_questions: list[dict[str, Any]]
    metadata: dict[str, Any]
    created_by: str | None
    imported_at: str | None
    question_count: int
    created_at: str
    updated_at: str


class ImportCommitResponse(BaseModel):
    """Outcome of a batch commit."""

    batch_id: str
    imported_count: int
    total_count: int


# =============================================================================
# EXAM STRUCTURE AND SCHEDULED EXAM SCHEMAS
# =============================================================================


class ExamSection(BaseModel):
    """One section of an exam structure."""

    code: str
    name_en: str
    name_mr: str | None = None
    question_type: str
    question_count: int = Field(..., ge=0)
    marks_per_question: int = Field(default=1, ge=0)
    total_marks: int = Field(default=0, ge=0)
    order_index: int = 0
    chapter_ids: list[str] | None = None
    chapter_configs: list[dict[str, Any]] | None = None


class ExamStructureCreate(BaseModel):
    """Request body for an exam structure."""

    name_en: str = Field(..., min_length=1, max_length=200)
    name_mr: str | None = None
    subject_id: str | None = None
    class_level_id: str | None = None
    class_level: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    duration_minutes: int = Field(default=60, gt=0)
    total_questions: int = Field(default=50, ge=0)
    total_marks: int = Field(default=100, ge=0)
    passing_percentage: int = Field(default=35, ge=0, le=100)
    sections: list[ExamSection] = Field(default_factory=list)
    is_template: bool = False
    order_index: int = 0


class ExamStructureUpdate(BaseModel):
    """Partial exam structure update."""

    name_en: str | None = None
    name_mr: str | None = None
    subject_id: str | None = None
    class_level_id: str | None = None
    class_level: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    duration_minutes: int | None = Field(default=None, gt=0)
    total_questions: int | None = Field(default=None, ge=0)
    total_marks: int | None = Field(default=None, ge=0)
    passing_percentage: int | None = Field(default=None, ge=0, le=100)
    sections: list[ExamSection] | None = None
    is_template: bool | None = None
    order_index: int | None = None
    is_active: bool | None = None


class ScheduledExamCreate(BaseModel):
    """Request body for a scheduled exam."""

    class_level_id: str
    subject_id: str
    name_en: str = Field(..., min_length=1, max_length=200)
    name_mr: str | None = None
    exam_structure_id: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    total_marks: int | None = Field(default=None, ge=0)
    duration_minutes: int | None = Field(default=None, gt=0)
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    status: str = "draft"
    is_active: bool = True
    publish_results: bool = False
    max_attempts: int = Field(default=0, ge=0)


class ScheduledExamUpdate(BaseModel):
    """Partial scheduled exam update."""

    name_en: str | None = None
    name_mr: str | None = None
    exam_structure_id: str | None = None
    description_en: str | None = None
    description_mr: str | None = None
    total_marks: int | None = Field(default=None, ge=0)
    duration_minutes: int | None = Field(default=None, gt=0)
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    status: str | None = None
    is_active: bool | None = None
    publish_results: bool | None = None
    max_attempts: int | None = Field(default=None, ge=0)
    order_index: int | None = None


# =============================================================================
# EXAM ATTEMPT SCHEMAS
# =============================================================================


class StartExamRequest(BaseModel):
    """Start or resume an attempt."""

    scheduled_exam_id: str = Field(..., min_length=1)


class SubmitAnswerRequest(BaseModel):
    """Answer one question of an attempt."""

    question_id: str = Field(..., min_length=1)
    subject_slug: str = Field(..., min_length=1)
    user_answer: Any = None


# =============================================================================
# SCHOOL SCHEMAS
# =============================================================================


class SchoolCreate(BaseModel):
    """Request body for a school."""

    name: str = Field(..., min_length=1, max_length=200)
    location_city: str | None = None
    location_state: str | None = None
    location_country: str | None = None
    address: str | None = None
    type: str | None = None
    level: str | None = None
    founded_year: int | None = None
    is_verified: bool = False


class SchoolUpdate(BaseModel):
    """Partial school update."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    location_city: str | None = None
    location_state: str | None = None
    location_country: str | None = None
    address: str | None = None
    type: str | None = None
    level: str | None = None
    founded_year: int | None = None
    is_verified: bool | None = None


class SchoolResponse(BaseModel):
    """Response for a school."""

    id: str
    name: str
    name_search: str
    location_city: str | None
    location_state: str | None
    location_country: str | None
    address: str | None
    type: str | None
    level: str | None
    founded_year: int | None
    is_verified: bool
    is_user_added: bool
    created_by: str | None
    student_count: int
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# USER AND PROFILE SCHEMAS
# =============================================================================


class UserCreate(BaseModel):
    """Admin-created user."""

    email: str | None = None
    password: str | None = None
    name: str | None = None
    phone: str | None = None
    role: str = "student"
    school_id: str | None = None
    class_level: str | None = None
    preferred_language: str = "en"
    avatar_url: str | None = None
    permissions: dict[str, Any] | None = None
    is_active: bool = True


class UserUpdate(BaseModel):
    """Partial user update by an admin."""

    email: str | None = None
    password: str | None = None
    name: str | None = None
    phone: str | None = None
    role: str | None = None
    school_id: str | None = None
    class_level: str | None = None
    preferred_language: str | None = None
    avatar_url: str | None = None
    permissions: dict[str, Any] | None = None
    is_active: bool | None = None


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    name: str | None = Field(default=None, max_length=100)
    preferred_language: str | None = None
    avatar_url: str | None = None
    class_level: str | None = None


class ChangePasswordRequest(BaseModel):
    """New password for the signed-in user."""

    new_password: str = Field(..., min_length=1)
