from __future__ import annotations

import threading
from collections import deque
from typing import Any

from .camera import CameraDevice
from .config import ClientConfig
from .exceptions import ClientError
from .logger import setup_logger
from .session import CaptureSession, ScanEvent, ScanEventKind
from .transport import ProbeTransport


class VisitBoard:
    """Console stand-in for the operator page: status line, recent visits, today's totals."""

    def __init__(self, max_rows: int = 8, logger=None):
        self.rows: deque[dict[str, Any]] = deque(maxlen=max(1, max_rows))
        self.totals = {"total": 0, "with_attribute": 0, "without_attribute": 0}
        self.status = "Idle"
        self.logger = logger or setup_logger(self.__class__.__name__)
        self._lock = threading.Lock()

    def load(self, visits: list[dict[str, Any]], totals: dict[str, Any] | None = None) -> None:
        with self._lock:
            self.rows.clear()
            for visit in reversed(visits):
                self.rows.appendleft(visit)
            if totals:
                self.totals = {
                    "total": int(totals.get("total_visits", 0)),
                    "with_attribute": int(totals.get("with_attribute", 0)),
                    "without_attribute": int(totals.get("without_attribute", 0)),
                }

    def handle(self, event: ScanEvent) -> None:
        with self._lock:
            self.status = event.message
            if event.kind is ScanEventKind.MATCH and event.reply is not None:
                self._record_match(event)
        if event.kind is ScanEventKind.MATCH:
            self.logger.info("%s | today=%d", event.message, self.totals["total"])
        elif event.kind is not ScanEventKind.STATUS:
            self.logger.info(event.message)

    def _record_match(self, event: ScanEvent) -> None:
        reply = event.reply
        student = reply.student or {}
        row = reply.recent_visit or {
            "id": reply.inserted_visit_id,
            "student_id": student.get("student_id"),
            "student_name": student.get("name"),
            "category_attribute": student.get("category"),
            "category_label": student.get("category_label", ""),
            "photo_path": student.get("photo_url"),
        }
        self.rows.appendleft(row)
        self.totals["total"] += 1
        if row.get("category_attribute"):
            self.totals["with_attribute"] += 1
        else:
            self.totals["without_attribute"] += 1

    def render(self) -> str:
        with self._lock:
            lines = [f"Status: {self.status}", f"Today: {self.totals['total']} visits"]
            for row in self.rows:
                lines.append(
                    f"  {row.get('student_name') or 'Unknown':<28} "
                    f"{row.get('student_id') or '':<14} {row.get('category_label') or ''}"
                )
        return "\n".join(lines)


def main(cfg: ClientConfig | None = None) -> int:
    cfg = cfg or ClientConfig()
    logger = setup_logger("checkpoint_client", log_dir=cfg.log_dir)
    transport = ProbeTransport(cfg)
    board = VisitBoard(max_rows=cfg.recent_visits_shown, logger=logger)

    try:
        board.load(transport.recent_visits(), transport.daily_totals())
    except ClientError as exc:
        logger.warning("Could not load the visit history: %s", exc)

    camera = CameraDevice(camera_index=cfg.camera_index, jpeg_quality=cfg.jpeg_quality)
    session = CaptureSession.from_config(cfg, camera=camera, transport=transport, on_event=board.handle)
    logger.info("Scanning for section '%s' against %s (Ctrl+C to stop)", cfg.section, cfg.server_base_url)

    try:
        with session:
            while session.camera_active:
                session.join(timeout=1.0)
    except KeyboardInterrupt:
        logger.info("Stopped by operator.")
    except ClientError as exc:
        logger.error("Capture session failed: %s", exc)
        return 1
    finally:
        transport.close()

    print(board.render())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
