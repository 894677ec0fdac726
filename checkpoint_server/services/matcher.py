from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, undefer

from checkpoint_server.core.sections import Section
from checkpoint_server.db.models import Student, Visit
from checkpoint_server.exceptions import OracleError
from checkpoint_server.services.ledger import VisitLedger
from checkpoint_server.services.oracle import OracleResult

logger = logging.getLogger("checkpoint.matcher")

NO_CONFIDENCE = -1.0


class Oracle(Protocol):
    def compare(self, probe: bytes, target: bytes) -> OracleResult: ...


@dataclass
class CandidateOutcome:
    student: Student
    result: OracleResult

    @property
    def confidence(self) -> float | None:
        return self.result.confidence if self.result.usable else None


@dataclass
class MatchDecision:
    matched: bool
    confidence: float
    threshold: float
    student: Student | None = None
    visit: Visit | None = None
    oracle_calls: int = 0
    message: str | None = None

    @property
    def recorded(self) -> bool:
        return self.visit is not None


def load_gallery(db: Session) -> list[Student]:
    """Students with a stored reference image, in enrollment order."""
    return list(
        db.scalars(
            select(Student)
            .options(undefer(Student.photo_data))
            .where(Student.photo_data.is_not(None))
            .order_by(Student.id.asc())
        ).all()
    )


def scan_gallery(
    oracle: Oracle,
    probe: bytes,
    gallery: Iterable[Student],
    delay_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[CandidateOutcome]:
    """Compare the probe against each candidate, one oracle call at a time.

    Lazy: a consumer that stops iterating stops the scan, so candidates after
    an accepted one are never sent to the oracle.
    """
    for index, student in enumerate(gallery):
        if index and delay_seconds > 0:
            sleep(delay_seconds)
        result = oracle.compare(probe, student.photo_data or b"")
        if result.error is not None:
            logger.warning("Oracle error for student %s: %s", student.id, result.error)
        yield CandidateOutcome(student=student, result=result)


class MatchingEngine:
    def __init__(
        self,
        oracle: Oracle,
        ledger: VisitLedger,
        threshold: float,
        call_delay_seconds: float = 0.12,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.oracle = oracle
        self.ledger = ledger
        self.threshold = float(threshold)
        self.call_delay_seconds = call_delay_seconds
        self._sleep = sleep

    def decide(self, probe: bytes, gallery: Sequence[Student]) -> MatchDecision:
        """First candidate at or above the threshold wins; no ledger write here."""
        if not gallery:
            return MatchDecision(
                matched=False,
                confidence=NO_CONFIDENCE,
                threshold=self.threshold,
                message="No students with stored photos",
            )

        last_confidence = NO_CONFIDENCE
        calls = 0
        for outcome in scan_gallery(self.oracle, probe, gallery, self.call_delay_seconds, self._sleep):
            calls += 1
            if outcome.confidence is None:
                continue
            last_confidence = outcome.confidence
            if outcome.confidence >= self.threshold:
                return MatchDecision(
                    matched=True,
                    confidence=outcome.confidence,
                    threshold=self.threshold,
                    student=outcome.student,
                    oracle_calls=calls,
                )

        return MatchDecision(
            matched=False,
            confidence=last_confidence,
            threshold=self.threshold,
            oracle_calls=calls,
        )

    def identify(
        self,
        db: Session,
        probe: bytes,
        section: Section,
        operator_id: str | None = None,
    ) -> MatchDecision:
        gallery = load_gallery(db)
        started = time.perf_counter()
        decision = self.decide(probe, gallery)
        logger.info(
            "Scan at %s: matched=%s confidence=%.1f calls=%d/%d in %.2fs",
            Section(section).value,
            decision.matched,
            decision.confidence,
            decision.oracle_calls,
            len(gallery),
            time.perf_counter() - started,
        )
        if decision.matched and decision.student is not None:
            decision.visit = self.ledger.record_visit(db, decision.student, section, operator_id)
        return decision

    def compare_one(
        self,
        db: Session,
        probe: bytes,
        student: Student,
        section: Section,
        operator_id: str | None = None,
    ) -> MatchDecision:
        result = self.oracle.compare(probe, student.photo_data or b"")
        if not result.usable:
            logger.warning("Targeted compare against student %s failed: %s", student.id, result.error)
            raise OracleError(f"Comparison oracle error: {result.error}")

        decision = MatchDecision(
            matched=result.confidence >= self.threshold,
            confidence=result.confidence,
            threshold=self.threshold,
            student=student,
            oracle_calls=1,
        )
        if decision.matched:
            decision.visit = self.ledger.record_visit(db, student, section, operator_id)
        return decision
