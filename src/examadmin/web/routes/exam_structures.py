"""Exam structure endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from examadmin.core.auth import AuthContext
from examadmin.core.security import CONTENT_ROLES
from examadmin.db.exam_structures_repository import (
    create_exam_structure,
    delete_exam_structure,
    get_exam_structure,
    list_available_exam_structures,
    list_exam_structures,
    update_exam_structure,
)
from examadmin.web.deps import API_PREFIX, get_auth, require_roles, unwrap
from examadmin.web.schemas import ExamStructureCreate, ExamStructureUpdate

router = APIRouter(prefix=f"{API_PREFIX}/exam-structures", tags=["exam-structures"])

require_content = require_roles(*CONTENT_ROLES)


@router.get("")
async def list_structures(
    subject_id: str | None = None,
    class_level_id: str | None = None,
    auth: AuthContext = Depends(get_auth),
) -> list[dict]:
    """Active exam structures, optionally by subject or class level."""
    return list_exam_structures(subject_id=subject_id, class_level_id=class_level_id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_structure(
    body: ExamStructureCreate, auth: AuthContext = Depends(require_content)
) -> dict:
    """Create an exam structure."""
    return create_exam_structure(**body.model_dump()).to_dict()


@router.get("/available")
async def available_structures(
    class_level_id: str | None = None, auth: AuthContext = Depends(get_auth)
) -> list[dict]:
    """Templates plus structures usable for a class level."""
    return list_available_exam_structures(class_level_id=class_level_id)


@router.get("/{structure_id}")
async def get_structure(structure_id: str, auth: AuthContext = Depends(get_auth)) -> dict:
    """One exam structure with its sections."""
    structure = get_exam_structure(structure_id)
    if structure is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Exam structure '{structure_id}' not found",
        )
    return structure.to_dict()


@router.put("/{structure_id}")
async def update_structure(
    structure_id: str,
    body: ExamStructureUpdate,
    auth: AuthContext = Depends(require_content),
) -> dict:
    """Update an exam structure."""
    result = update_exam_structure(structure_id, **body.model_dump(exclude_unset=True))
    return unwrap(result).to_dict()


@router.delete("/{structure_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_structure(
    structure_id: str, auth: AuthContext = Depends(require_content)
) -> None:
    """Deactivate an exam structure."""
    unwrap(delete_exam_structure(structure_id))
