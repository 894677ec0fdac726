from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import requests

from checkpoint_server.core.config import get_settings
from checkpoint_server.exceptions import OracleConfigurationError

logger = logging.getLogger("checkpoint.oracle")


@dataclass(frozen=True)
class OracleResult:
    confidence: float | None = None
    error: str | None = None

    @property
    def usable(self) -> bool:
        return self.error is None and self.confidence is not None


def parse_oracle_response(body: Any) -> OracleResult:
    """Normalize an oracle response body into a confidence or an error.

    The oracle is untrusted: anything other than a finite numeric ``confidence``
    is reported as an error instead of raising.
    """
    if not isinstance(body, dict):
        return OracleResult(error="oracle returned a non-object body")

    error_message = body.get("error_message")
    if error_message:
        return OracleResult(error=str(error_message))

    raw = body.get("confidence")
    if raw is None or isinstance(raw, bool):
        return OracleResult(error="oracle response has no usable confidence")
    try:
        confidence = float(raw)
    except (TypeError, ValueError):
        return OracleResult(error=f"oracle confidence is not numeric: {raw!r}")
    if not math.isfinite(confidence):
        return OracleResult(error=f"oracle confidence is not finite: {raw!r}")
    return OracleResult(confidence=confidence)


class ComparisonOracle:
    """Pairwise image comparison over HTTP (Face++ compare wire format)."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        api_secret: str,
        timeout_seconds: float = 20.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key.strip() or not api_secret.strip():
            raise OracleConfigurationError(
                "Comparison oracle is not configured: set ORACLE_API_KEY and ORACLE_API_SECRET."
            )
        if not endpoint.strip():
            raise OracleConfigurationError("Comparison oracle endpoint (ORACLE_ENDPOINT) is empty.")
        self.endpoint = endpoint.strip()
        self._api_key = api_key.strip()
        self._api_secret = api_secret.strip()
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def compare(self, probe: bytes, target: bytes) -> OracleResult:
        try:
            resp = self.session.post(
                self.endpoint,
                data={"api_key": self._api_key, "api_secret": self._api_secret},
                files={
                    "image_file1": ("probe.jpg", probe, "image/jpeg"),
                    "image_file2": ("target.jpg", target, "image/jpeg"),
                },
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            return OracleResult(error=f"oracle request failed: {exc}")

        # Rate limit and bad-input responses are 4xx with an error_message body.
        try:
            body = resp.json()
        except ValueError:
            return OracleResult(error=f"oracle returned HTTP {resp.status_code} without a JSON body")

        result = parse_oracle_response(body)
        if result.usable and not resp.ok:
            return OracleResult(error=f"oracle returned HTTP {resp.status_code}")
        return result


@lru_cache(maxsize=1)
def get_oracle() -> ComparisonOracle:
    settings = get_settings()
    oracle = ComparisonOracle(
        endpoint=settings.oracle_endpoint,
        api_key=settings.oracle_api_key,
        api_secret=settings.oracle_api_secret,
        timeout_seconds=settings.oracle_timeout_seconds,
    )
    logger.info("Comparison oracle configured for %s", oracle.endpoint)
    return oracle
