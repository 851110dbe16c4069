"""Subject endpoints, with chapters, structures and practice per subject."""

from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status

from examadmin.core.auth import AuthContext
from examadmin.core.security import CONTENT_ROLES, SUPER_ROLES
from examadmin.db.chapters_repository import create_chapter, get_chapters_by_subject_id
from examadmin.db.exam_structures_repository import list_exam_structures
from examadmin.db.questions_repository import (
    get_chapters_with_question_counts,
    get_question_counts_by_chapter,
    get_questions_for_section_practice,
)
from examadmin.db.subjects_repository import (
    SubjectRecord,
    create_child_subject,
    create_subject,
    get_child_subjects,
    get_subject_detail,
    get_subject_stats,
    get_subjects_with_class_counts,
    list_subjects,
    resolve_subject,
    update_subject,
)
from examadmin.web.deps import API_PREFIX, get_auth, require_roles, unwrap
from examadmin.web.schemas import (
    ChapterCreate,
    ChapterResponse,
    ChildSubjectCreate,
    SubjectCreate,
    SubjectUpdate,
)

router = APIRouter(prefix=f"{API_PREFIX}/subjects", tags=["subjects"])

require_admin = require_roles(*SUPER_ROLES)
require_content = require_roles(*CONTENT_ROLES)


def _get_subject_or_404(slug_or_id: str) -> SubjectRecord:
    subject = resolve_subject(slug_or_id)
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subject '{slug_or_id}' not found",
        )
    return subject


@router.get("")
async def list_all_subjects(
    class_level_id: str | None = None,
    parent_id: str | None = None,
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Subject tree, or the children of one parent."""
    if parent_id:
        return [s.to_dict() for s in get_child_subjects(parent_id)]
    return list_subjects(class_level_id=class_level_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_root_subject(
    body: SubjectCreate, auth: AuthContext = Depends(require_admin)
) -> dict:
    """Create a root subject or category."""
    return create_subject(**body.model_dump()).to_dict()


@router.get("/stats")
async def subject_stats(auth: AuthContext = Depends(get_auth)) -> dict:
    """Catalog counters."""
    return asdict(get_subject_stats())


@router.get("/with-class-counts")
async def subjects_with_class_counts(auth: AuthContext = Depends(get_auth)) -> list[dict]:
    """Active subjects with the number of class levels using each."""
    return get_subjects_with_class_counts()


@router.get("/{slug_or_id}")
async def get_subject(slug_or_id: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """A subject, with sub_subjects for categories."""
    detail = get_subject_detail(slug_or_id)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Subject '{slug_or_id}' not found",
        )
    return detail


@router.put("/{slug_or_id}")
async def update_one_subject(
    slug_or_id: str,
    body: SubjectUpdate,
    auth: AuthContext = Depends(require_admin),
) -> dict:
    """Update a subject."""
    subject = _get_subject_or_404(slug_or_id)
    updated = unwrap(update_subject(subject.id, **body.model_dump(exclude_unset=True)))
    return updated.to_dict()


@router.get("/{slug}/children")
async def list_children(slug: str, auth: AuthContext = Depends(get_auth)) -> list[dict]:
    """Active children of a category."""
    parent = _get_subject_or_404(slug)
    return [s.to_dict() for s in get_child_subjects(parent.id)]


@router.post("/{slug}/children", status_code=status.HTTP_201_CREATED)
async def create_child(
    slug: str,
    body: ChildSubjectCreate,
    auth: AuthContext = Depends(require_admin),
) -> dict:
    """Create a subject under a category."""
    parent = _get_subject_or_404(slug)
    child = unwrap(create_child_subject(parent.id, **body.model_dump()))
    return child.to_dict()


@router.get("/{slug}/chapters", response_model=list[ChapterResponse])
async def list_chapters(slug: str, auth: AuthContext = Depends(get_auth)) -> list[ChapterResponse]:
    """Active chapters of a subject."""
    subject = _get_subject_or_404(slug)
    return [ChapterResponse.model_validate(c) for c in get_chapters_by_subject_id(subject.id)]


@router.post("/{slug}/chapters", response_model=ChapterResponse, status_code=status.HTTP_201_CREATED)
async def add_chapter(
    slug: str,
    body: ChapterCreate,
    auth: AuthContext = Depends(require_content),
) -> ChapterResponse:
    """Create a chapter in a subject."""
    subject = _get_subject_or_404(slug)
    return ChapterResponse.model_validate(create_chapter(subject.id, **body.model_dump()))


@router.get("/{slug}/chapters/with-counts")
async def chapters_with_counts(slug: str, auth: AuthContext = Depends(get_auth)) -> list[dict]:
    """Chapters with their active question counts."""
    return get_chapters_with_question_counts(slug)


@router.get("/{slug}/chapters/{chapter_id}/question-counts")
async def chapter_question_counts(
    slug: str,
    chapter_id: str,
    auth: AuthContext = Depends(get_auth),
) -> dict:
    """Question counts of a chapter by difficulty and type."""
    return get_question_counts_by_chapter(slug, chapter_id)


@router.get("/{slug}/exam-structures")
async def subject_exam_structures(
    slug: str,
    class_level_id: str | None = None,
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Exam structures of a subject."""
    subject = _get_subject_or_404(slug)
    return list_exam_structures(subject_id=subject.id, class_level_id=class_level_id)


@router.get("/{slug}/section-practice")
async def section_practice(
    slug: str,
    section: str = Query(..., min_length=1),
    count: int = Query(default=10, ge=1, le=100),
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Random practice questions tagged with a section."""
    return [q.to_dict() for q in get_questions_for_section_practice(slug, section, count)]
