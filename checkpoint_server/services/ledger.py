from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from checkpoint_server.core.sections import Section, section_attribute
from checkpoint_server.db.models import Student, Visit

logger = logging.getLogger("checkpoint.ledger")

MAX_RECENT_VISITS = 500


@dataclass
class VisitTotals:
    section: Section
    total_visits: int
    with_attribute: int
    without_attribute: int


class VisitLedger:
    """Append-only visit history. Rows are inserted once and never updated or deleted."""

    def record_visit(
        self,
        db: Session,
        student: Student,
        section: Section,
        operator_id: str | None = None,
    ) -> Visit | None:
        section = Section(section)
        attribute = section_attribute(section)
        student_code = student.student_id
        # Detached before the write: a rollback must not expire the matched student,
        # which is still presented when the visit is not recorded.
        if student in db:
            db.expunge(student)
        visit = Visit(
            student_pk=student.id,
            student_id=student_code,
            student_name=student.fullname,
            category_attribute=bool(getattr(student, attribute.column)),
            section=section.value,
            operator_id=operator_id,
            created_at=datetime.now(timezone.utc),
        )
        try:
            db.add(visit)
            db.commit()
            db.refresh(visit)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "Visit insert failed for student %s at %s; match returned as not recorded",
                student_code,
                section.value,
            )
            return None

        logger.info("Visit %s recorded for %s at %s", visit.id, student_code, section.value)
        return visit

    def recent_visits(self, db: Session, section: Section, limit: int = 8) -> list[Visit]:
        section = Section(section)
        return list(
            db.scalars(
                select(Visit)
                .where(Visit.section == section.value)
                .order_by(desc(Visit.created_at), desc(Visit.id))
                .limit(max(1, min(MAX_RECENT_VISITS, limit)))
            ).all()
        )

    def daily_totals(self, db: Session, section: Section, now: datetime | None = None) -> VisitTotals:
        section = Section(section)
        now = now or datetime.now(timezone.utc)
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        rows = db.execute(
            select(Visit.category_attribute, func.count(Visit.id))
            .where(Visit.section == section.value, Visit.created_at >= day_start)
            .group_by(Visit.category_attribute)
        ).all()
        counts = {bool(flag): int(count) for flag, count in rows}
        with_attribute = counts.get(True, 0)
        without_attribute = counts.get(False, 0)
        return VisitTotals(
            section=section,
            total_visits=with_attribute + without_attribute,
            with_attribute=with_attribute,
            without_attribute=without_attribute,
        )


visit_ledger = VisitLedger()
