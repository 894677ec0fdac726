from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


@dataclass
class ClientConfig:
    server_base_url: str = os.getenv("CLIENT_SERVER_URL", "http://127.0.0.1:8000")
    api_prefix: str = os.getenv("CLIENT_API_PREFIX", "/api/v1")
    section: str = os.getenv("CLIENT_SECTION", "mess")
    login_username: str = os.getenv("CLIENT_USERNAME", "")
    login_password: str = os.getenv("CLIENT_PASSWORD", "")
    camera_index: int = _int_env("CLIENT_CAMERA_INDEX", 0)
    jpeg_quality: int = _int_env("CLIENT_JPEG_QUALITY", 80)
    capture_interval_seconds: float = _float_env("CLIENT_CAPTURE_INTERVAL_SECONDS", 1.2)
    post_match_cooldown_seconds: float = _float_env("CLIENT_POST_MATCH_COOLDOWN_SECONDS", 3.0)
    debounce_seconds: float = _float_env("CLIENT_DEBOUNCE_SECONDS", 10.0)
    warmup_seconds: float = _float_env("CLIENT_WARMUP_SECONDS", 0.6)
    # A full gallery scan can take gallery_size x (oracle latency + delay).
    request_timeout_seconds: float = _float_env("CLIENT_REQUEST_TIMEOUT_SECONDS", 120.0)
    recent_visits_shown: int = _int_env("CLIENT_RECENT_VISITS_SHOWN", 8)
    log_dir: Path = Path(os.getenv("CLIENT_LOG_DIR", str(Path.cwd() / "logs")))

    @property
    def api_base(self) -> str:
        return f"{self.server_base_url.rstrip('/')}{self.api_prefix}"
