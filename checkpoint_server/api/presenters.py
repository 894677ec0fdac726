from __future__ import annotations

from checkpoint_server.core.config import get_settings
from checkpoint_server.core.sections import Section, section_attribute
from checkpoint_server.db.models import Student, Visit
from checkpoint_server.schemas.visit import StudentSummary, VisitResponse


def photo_url(student_pk: int) -> str:
    return f"{get_settings().api_prefix}/subjects/{student_pk}/photo"


def student_summary(student: Student, section: Section) -> StudentSummary:
    attribute = section_attribute(section)
    flag = bool(getattr(student, attribute.column))
    return StudentSummary(
        id=student.id,
        name=student.fullname,
        student_id=student.student_id,
        category=flag,
        category_label=attribute.label(flag),
        photo_url=photo_url(student.id),
    )


def visit_response(visit: Visit) -> VisitResponse:
    attribute = section_attribute(Section(visit.section))
    return VisitResponse(
        id=visit.id,
        student_id=visit.student_id,
        student_name=visit.student_name,
        category_attribute=visit.category_attribute,
        category_label=attribute.label(visit.category_attribute),
        section=visit.section,
        operator_id=visit.operator_id,
        photo_path=photo_url(visit.student_pk),
        created_at=visit.created_at,
    )
