from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import select
from sqlalchemy.orm import Session

from checkpoint_server.api.deps import db_session
from checkpoint_server.core.security import create_access_token, verify_password
from checkpoint_server.db.models import StaffUser
from checkpoint_server.exceptions import AuthenticationError
from checkpoint_server.schemas.auth import LoginRequest, TokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = db_session()):
    user = db.scalar(
        select(StaffUser).where(StaffUser.username == payload.username, StaffUser.is_active.is_(True))
    )
    if user is None or not verify_password(payload.password, user.password_hash):
        raise AuthenticationError("Invalid credentials.")

    token = create_access_token(subject=str(user.id), role=user.role, section=user.section)
    return TokenResponse(access_token=token, role=user.role, section=user.section)
