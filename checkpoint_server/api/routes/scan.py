from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy import select
from sqlalchemy.orm import Session, undefer

from checkpoint_server.api.deps import db_session, get_matching_engine, require_section_staff
from checkpoint_server.api.presenters import student_summary, visit_response
from checkpoint_server.core.sections import Section
from checkpoint_server.db.models import Student
from checkpoint_server.exceptions import InputError, NotFoundError
from checkpoint_server.schemas.auth import CurrentPrincipal
from checkpoint_server.schemas.scan import CompareResponse, ScanResponse
from checkpoint_server.services.matcher import MatchingEngine

router = APIRouter(prefix="/staff", tags=["scan"])


def _read_probe(image: UploadFile | None) -> bytes:
    probe = image.file.read() if image is not None else b""
    if not probe:
        raise InputError("Probe image (image) is required")
    return probe


# Plain ``def`` routes: FastAPI runs them in its thread pool, so one operator's
# sequential gallery scan does not block another's.
@router.post("/{section}/scan", response_model=ScanResponse)
def scan(
    section: Section,
    principal: CurrentPrincipal = Depends(require_section_staff),
    image: UploadFile | None = File(default=None),
    db: Session = db_session(),
    engine: MatchingEngine = Depends(get_matching_engine),
):
    probe = _read_probe(image)
    decision = engine.identify(db, probe, section, operator_id=principal.subject)

    if not decision.matched or decision.student is None:
        return ScanResponse(
            matched=False,
            confidence=decision.confidence,
            threshold=decision.threshold,
            message=decision.message,
        )

    return ScanResponse(
        matched=True,
        confidence=decision.confidence,
        threshold=decision.threshold,
        student=student_summary(decision.student, section),
        inserted_visit_id=decision.visit.id if decision.visit else None,
        recent_visit=visit_response(decision.visit) if decision.visit else None,
        recorded=decision.recorded,
        message=None if decision.recorded else "Matched, but the visit could not be recorded",
    )


@router.post("/{section}/compare", response_model=CompareResponse)
def compare(
    section: Section,
    principal: CurrentPrincipal = Depends(require_section_staff),
    image: UploadFile | None = File(default=None),
    subject_id: int | None = Form(default=None),
    student_id: str | None = Form(default=None),
    db: Session = db_session(),
    engine: MatchingEngine = Depends(get_matching_engine),
):
    probe = _read_probe(image)
    # The target is the gallery id, or the external student code when no id is sent.
    if subject_id is not None:
        target = Student.id == subject_id
    elif student_id and student_id.strip():
        target = Student.student_id == student_id.strip()
    else:
        raise InputError("subject_id (target) is required")

    student = db.scalar(select(Student).options(undefer(Student.photo_data)).where(target))
    if student is None:
        raise NotFoundError("Target student not found")
    if not student.photo_data:
        raise NotFoundError("Target student has no stored photo")

    decision = engine.compare_one(db, probe, student, section, operator_id=principal.subject)
    return CompareResponse(
        matched=decision.matched,
        confidence=decision.confidence,
        threshold=decision.threshold,
        student=student_summary(student, section),
        inserted_visit_id=decision.visit.id if decision.visit else None,
        recorded=decision.recorded,
    )
