from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter

from checkpoint_server.core.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    settings = get_settings()
    return {
        "ok": True,
        "service": "checkpoint-visits",
        "oracle_configured": bool(settings.oracle_api_key.strip() and settings.oracle_api_secret.strip()),
        "match_threshold": settings.match_threshold,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
