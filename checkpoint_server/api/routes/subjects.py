from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from checkpoint_server.api.deps import db_session, get_current_principal
from checkpoint_server.db.models import Student
from checkpoint_server.exceptions import NotFoundError
from checkpoint_server.schemas.auth import CurrentPrincipal

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.get("/{student_pk}/photo")
def student_photo(
    student_pk: int,
    _principal: CurrentPrincipal = Depends(get_current_principal),
    db: Session = db_session(),
):
    photo = db.scalar(select(Student.photo_data).where(Student.id == student_pk))
    if not photo:
        raise NotFoundError("No stored photo for this student")
    return Response(content=photo, media_type="image/jpeg")
