from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class StudentSummary(BaseModel):
    id: int
    name: str
    student_id: str
    category: bool
    category_label: str
    photo_url: str


class VisitResponse(BaseModel):
    id: int
    student_id: str
    student_name: str
    category_attribute: bool
    category_label: str
    section: str
    operator_id: str | None = None
    photo_path: str
    created_at: datetime


class VisitTotalsResponse(BaseModel):
    section: str
    total_visits: int
    with_attribute: int
    without_attribute: int
    true_label: str
    false_label: str
