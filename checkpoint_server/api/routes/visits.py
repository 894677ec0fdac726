from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from checkpoint_server.api.deps import db_session, require_section_staff
from checkpoint_server.api.presenters import visit_response
from checkpoint_server.core.config import get_settings
from checkpoint_server.core.sections import Section, section_attribute
from checkpoint_server.schemas.auth import CurrentPrincipal
from checkpoint_server.schemas.visit import VisitResponse, VisitTotalsResponse
from checkpoint_server.services.ledger import visit_ledger

router = APIRouter(prefix="/staff", tags=["visits"])


@router.get("/{section}/visits", response_model=list[VisitResponse])
def list_visits(
    section: Section,
    limit: int | None = None,
    _principal: CurrentPrincipal = Depends(require_section_staff),
    db: Session = db_session(),
):
    rows = visit_ledger.recent_visits(db, section, limit or get_settings().recent_visits_limit)
    return [visit_response(row) for row in rows]


@router.get("/{section}/totals", response_model=VisitTotalsResponse)
def visit_totals(
    section: Section,
    _principal: CurrentPrincipal = Depends(require_section_staff),
    db: Session = db_session(),
):
    totals = visit_ledger.daily_totals(db, section)
    attribute = section_attribute(section)
    return VisitTotalsResponse(
        section=section.value,
        total_visits=totals.total_visits,
        with_attribute=totals.with_attribute,
        without_attribute=totals.without_attribute,
        true_label=attribute.true_label,
        false_label=attribute.false_label,
    )
