from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any

import requests

from .config import ClientConfig
from .exceptions import TransportError


@dataclass
class ProbeReply:
    ok: bool
    matched: bool = False
    confidence: float | None = None
    threshold: float | None = None
    student: dict[str, Any] | None = None
    inserted_visit_id: int | None = None
    recent_visit: dict[str, Any] | None = None
    recorded: bool = False
    message: str = ""

    @property
    def subject_id(self) -> Any:
        return self.student.get("id") if self.student else None

    @classmethod
    def from_payload(cls, body: dict[str, Any]) -> "ProbeReply":
        confidence = body.get("confidence")
        threshold = body.get("threshold")
        return cls(
            ok=bool(body.get("ok")),
            matched=bool(body.get("matched")),
            confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
            threshold=float(threshold) if isinstance(threshold, (int, float)) else None,
            student=body.get("student") if isinstance(body.get("student"), dict) else None,
            inserted_visit_id=body.get("inserted_visit_id"),
            recent_visit=body.get("recentVisit") if isinstance(body.get("recentVisit"), dict) else None,
            recorded=bool(body.get("recorded")),
            message=str(body.get("message") or ""),
        )


class ProbeTransport:
    """Ships probe images to the scan endpoint of one section."""

    def __init__(self, cfg: ClientConfig, session: requests.Session | None = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self._lock = threading.Lock()
        self._token: str | None = None

    @property
    def scan_url(self) -> str:
        return f"{self.cfg.api_base}/staff/{self.cfg.section}/scan"

    def login(self, force: bool = False) -> str:
        with self._lock:
            if self._token and not force:
                return self._token
        try:
            resp = self.session.post(
                f"{self.cfg.api_base}/auth/token",
                json={"username": self.cfg.login_username, "password": self.cfg.login_password},
                timeout=self.cfg.request_timeout_seconds,
            )
            resp.raise_for_status()
            token = str(resp.json()["access_token"])
        except (requests.RequestException, ValueError, KeyError) as exc:
            raise TransportError(f"login failed: {exc}") from exc
        with self._lock:
            self._token = token
        return token

    def _request(self, method: str, url: str, retry_auth: bool = True, **kwargs: Any) -> requests.Response:
        token = self.login()
        try:
            resp = self.session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.cfg.request_timeout_seconds,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise TransportError(f"request to {url} failed: {exc}") from exc
        if resp.status_code == 401 and retry_auth:
            self.login(force=True)
            return self._request(method, url, retry_auth=False, **kwargs)
        return resp

    def submit_probe(self, jpeg: bytes) -> ProbeReply:
        resp = self._request("POST", self.scan_url, files={"image": ("probe.jpg", jpeg, "image/jpeg")})
        # Rejections come back as {ok: false, message}; only unreadable replies are errors.
        try:
            body = resp.json()
        except ValueError as exc:
            raise TransportError(f"scan returned HTTP {resp.status_code} without a JSON body") from exc
        if not isinstance(body, dict):
            raise TransportError(f"scan returned an unexpected body: {body!r}")
        return ProbeReply.from_payload(body)

    def recent_visits(self, limit: int | None = None) -> list[dict[str, Any]]:
        url = f"{self.cfg.api_base}/staff/{self.cfg.section}/visits"
        resp = self._request("GET", url, params={"limit": limit or self.cfg.recent_visits_shown})
        try:
            resp.raise_for_status()
            return list(resp.json())
        except (requests.RequestException, ValueError, TypeError) as exc:
            raise TransportError(f"could not load recent visits: {exc}") from exc

    def daily_totals(self) -> dict[str, Any]:
        resp = self._request("GET", f"{self.cfg.api_base}/staff/{self.cfg.section}/totals")
        try:
            resp.raise_for_status()
            return dict(resp.json())
        except (requests.RequestException, ValueError, TypeError) as exc:
            raise TransportError(f"could not load visit totals: {exc}") from exc

    def close(self) -> None:
        self.session.close()
