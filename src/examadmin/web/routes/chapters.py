"""Chapter endpoints by chapter id."""

from fastapi import APIRouter, Depends, HTTPException, status

from examadmin.core.auth import AuthContext
from examadmin.core.security import CONTENT_ROLES
from examadmin.db.chapters_repository import delete_chapter, get_chapter_by_id, update_chapter
from examadmin.web.deps import API_PREFIX, get_auth, require_roles
from examadmin.web.schemas import ChapterResponse, ChapterUpdate

router = APIRouter(prefix=f"{API_PREFIX}/chapters", tags=["chapters"])

require_content = require_roles(*CONTENT_ROLES)


@router.get("/{chapter_id}", response_model=ChapterResponse)
async def get_chapter(chapter_id: str, auth: AuthContext = Depends(get_auth)) -> ChapterResponse:
    """Get a chapter by ID."""
    chapter = get_chapter_by_id(chapter_id)
    if chapter is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chapter '{chapter_id}' not found",
        )
    return ChapterResponse.model_validate(chapter)


@router.patch("/{chapter_id}", response_model=ChapterResponse)
async def patch_chapter(
    chapter_id: str,
    body: ChapterUpdate,
    auth: AuthContext = Depends(require_content),
) -> ChapterResponse:
    """Partially update a chapter."""
    chapter = update_chapter(chapter_id, **body.model_dump(exclude_unset=True))
    return ChapterResponse.model_validate(chapter)


@router.delete("/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_chapter(chapter_id: str, auth: AuthContext = Depends(require_content)) -> None:
    """Deactivate a chapter."""
    if not delete_chapter(chapter_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chapter '{chapter_id}' not found",
        )
