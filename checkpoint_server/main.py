from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select
from starlette.exceptions import HTTPException as StarletteHTTPException

from checkpoint_server.api.routes import auth, health, scan, subjects, visits
from checkpoint_server.core.config import get_settings
from checkpoint_server.core.sections import Section
from checkpoint_server.core.security import hash_password
from checkpoint_server.db.base import Base
from checkpoint_server.db.models import StaffUser
from checkpoint_server.db.session import SessionLocal, engine
from checkpoint_server.exceptions import CheckpointError
from checkpoint_server.services.oracle import get_oracle

settings = get_settings()
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("checkpoint.backend")


def bootstrap_defaults() -> None:
    Base.metadata.create_all(bind=engine)
    if not settings.bootstrap_staff_username or not settings.bootstrap_staff_password:
        return
    with SessionLocal() as db:
        staff = db.scalar(select(StaffUser).where(StaffUser.username == settings.bootstrap_staff_username))
        if staff is None:
            staff = StaffUser(
                username=settings.bootstrap_staff_username,
                password_hash=hash_password(settings.bootstrap_staff_password),
                section=Section(settings.bootstrap_staff_section).value,
                is_active=True,
            )
            db.add(staff)
            db.commit()
            logger.info(
                "Created bootstrap staff user '%s' for section %s.",
                settings.bootstrap_staff_username,
                staff.section,
            )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Missing oracle credentials stop the service here instead of failing every scan.
    get_oracle()
    bootstrap_defaults()
    yield


app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CheckpointError)
async def checkpoint_error_handler(request: Request, exc: CheckpointError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {location} {first.get('msg', '')}".strip()
    return JSONResponse(status_code=422, content={"ok": False, "message": message})


app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(auth.router, prefix=settings.api_prefix)
app.include_router(scan.router, prefix=settings.api_prefix)
app.include_router(visits.router, prefix=settings.api_prefix)
app.include_router(subjects.router, prefix=settings.api_prefix)
