"""Question import endpoints: PDF (AI) and spreadsheet uploads, review, commit."""

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status

from examadmin.core.auth import AuthContext
from examadmin.core.pdf_extractor import PdfExtractionError
from examadmin.core.question_extractor import (
    DEFAULT_MODEL,
    QuestionExtractionError,
    list_available_models,
)
from examadmin.core.question_import import (
    commit_batch,
    import_pdf,
    import_spreadsheet,
    review_batch,
)
from examadmin.core.security import CONTENT_ROLES, is_admin_role
from examadmin.db.import_batches_repository import get_batch, list_batches
from examadmin.web.deps import API_PREFIX, require_roles
from examadmin.web.schemas import (
    ImportBatchResponse,
    ImportCommitRequest,
    ImportCommitResponse,
    ImportReviewRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix=f"{API_PREFIX}/questions/import", tags=["question-import"])

require_content = require_roles(*CONTENT_ROLES)

MAX_UPLOAD_BYTES = 20 * 1024 * 1024


async def _read_upload(upload: UploadFile, suffixes: tuple[str, ...]) -> bytes:
    filename = (upload.filename or "").lower()
    if not filename.endswith(suffixes):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File must be one of: {', '.join(suffixes)}",
        )
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="File is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File exceeds {MAX_UPLOAD_BYTES // (1024 * 1024)} MB limit",
        )
    return data


@router.post("/pdf", response_model=ImportBatchResponse, status_code=status.HTTP_201_CREATED)
async def import_from_pdf(
    file: UploadFile = File(...),
    subject_slug: str = Form(...),
    model: str = Form(default=DEFAULT_MODEL),
    answer_key: UploadFile | None = File(default=None),
    max_questions: int | None = Form(default=None),
    batch_name: str | None = Form(default=None),
    auth: AuthContext = Depends(require_content),
) -> ImportBatchResponse:
    """Extract questions from a paper with AI into a pending batch."""
    data = await _read_upload(file, (".pdf",))
    answer_key_data = await _read_upload(answer_key, (".pdf",)) if answer_key else None

    try:
        batch = import_pdf(
            data,
            file.filename or "upload.pdf",
            subject_slug=subject_slug,
            created_by=auth.user_id,
            model=model,
            answer_key=answer_key_data,
            max_questions=max_questions,
            batch_name=batch_name,
        )
    except PdfExtractionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except QuestionExtractionError as e:
        logger.warning("question_import.pdf_failed", model=model, error=str(e))
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return ImportBatchResponse(**batch.to_dict())


@router.post("/csv", response_model=ImportBatchResponse, status_code=status.HTTP_201_CREATED)
async def import_from_sheet(
    file: UploadFile = File(...),
    subject_slug: str = Form(...),
    batch_name: str | None = Form(default=None),
    auth: AuthContext = Depends(require_content),
) -> ImportBatchResponse:
    """Parse a CSV or Excel sheet into a pending batch."""
    data = await _read_upload(file, (".csv", ".xlsx", ".xls"))
    batch = import_spreadsheet(
        data,
        file.filename or "upload.csv",
        subject_slug=subject_slug,
        created_by=auth.user_id,
        batch_name=batch_name,
    )
    return ImportBatchResponse(**batch.to_dict())


@router.post("/review", response_model=ImportBatchResponse)
async def review(
    body: ImportReviewRequest, auth: AuthContext = Depends(require_content)
) -> ImportBatchResponse:
    """Save the reviewed questions of a batch."""
    batch = review_batch(auth, body.batch_id, body.questions, batch_name=body.batch_name)
    return ImportBatchResponse(**batch.to_dict())


@router.post("/commit", response_model=ImportCommitResponse)
async def commit(
    body: ImportCommitRequest, auth: AuthContext = Depends(require_content)
) -> ImportCommitResponse:
    """Insert a batch's questions into the question bank."""
    result = commit_batch(
        body.batch_id,
        created_by=auth.user_id,
        default_chapter_id=body.default_chapter_id,
        default_class_level=body.default_class_level,
        default_difficulty=body.default_difficulty,
        default_marks=body.default_marks,
    )
    return ImportCommitResponse(**result)


@router.get("/batches", response_model=list[ImportBatchResponse])
async def batches(
    status_filter: str | None = Query(default=None, alias="status"),
    auth: AuthContext = Depends(require_content),
) -> list[ImportBatchResponse]:
    """Import batches; teachers see only their own."""
    created_by = None if is_admin_role(auth.role) else auth.user_id
    return [
        ImportBatchResponse(**b.to_dict())
        for b in list_batches(status=status_filter, created_by=created_by)
    ]


@router.get("/batches/{batch_id}", response_model=ImportBatchResponse)
async def batch_detail(
    batch_id: str, auth: AuthContext = Depends(require_content)
) -> ImportBatchResponse:
    """One import batch with its parsed questions."""
    batch = get_batch(batch_id)
    if batch is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import batch '{batch_id}' not found",
        )
    return ImportBatchResponse(**batch.to_dict())


@router.get("/models")
async def models(auth: AuthContext = Depends(require_content)) -> dict:
    """AI models for PDF import and whether each is configured."""
    return {"models": list_available_models(), "default_model": DEFAULT_MODEL}
