from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from checkpoint_server.core.config import get_settings
from checkpoint_server.core.sections import Section
from checkpoint_server.core.security import safe_decode_token
from checkpoint_server.db.session import get_db
from checkpoint_server.exceptions import AuthenticationError, AuthorizationError
from checkpoint_server.schemas.auth import CurrentPrincipal
from checkpoint_server.services.ledger import visit_ledger
from checkpoint_server.services.matcher import MatchingEngine
from checkpoint_server.services.oracle import ComparisonOracle, get_oracle

bearer_scheme = HTTPBearer(auto_error=False)


def db_session() -> Session:
    return Depends(get_db)  # type: ignore[return-value]


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentPrincipal:
    if credentials is None:
        raise AuthenticationError("Missing bearer token.")
    payload = safe_decode_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token.")
    return CurrentPrincipal(
        subject=str(payload.get("sub", "")),
        role=str(payload.get("role", "")),
        section=payload.get("section"),
    )


def require_section_staff(
    section: Section,
    principal: CurrentPrincipal = Depends(get_current_principal),
) -> CurrentPrincipal:
    """Operators may only query the checkpoint their account is bound to."""
    if principal.section != section.value:
        raise AuthorizationError(f"Forbidden: not {section.value} staff")
    return principal


def oracle_dependency() -> ComparisonOracle:
    return get_oracle()


def get_matching_engine(oracle: ComparisonOracle = Depends(oracle_dependency)) -> MatchingEngine:
    settings = get_settings()
    return MatchingEngine(
        oracle=oracle,
        ledger=visit_ledger,
        threshold=settings.match_threshold,
        call_delay_seconds=settings.oracle_call_delay_seconds,
    )
