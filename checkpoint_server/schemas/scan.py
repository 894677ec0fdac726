from __future__ import annotations

from pydantic import BaseModel, Field

from .visit import StudentSummary, VisitResponse


class ScanResponse(BaseModel):
    ok: bool = True
    matched: bool
    confidence: float | None = None
    threshold: float | None = None
    student: StudentSummary | None = None
    inserted_visit_id: int | None = None
    recent_visit: VisitResponse | None = Field(default=None, serialization_alias="recentVisit")
    recorded: bool = False
    message: str | None = None


class CompareResponse(BaseModel):
    ok: bool = True
    matched: bool
    confidence: float
    threshold: float
    student: StudentSummary
    inserted_visit_id: int | None = None
    recorded: bool = False


class ErrorResponse(BaseModel):
    ok: bool = False
    message: str
