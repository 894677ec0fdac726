from __future__ import annotations

import os
import time

import cv2

from .exceptions import CameraError


def _backend_candidates() -> list[tuple[str, int | None]]:
    backend_map: dict[str, int | None] = {
        "auto": getattr(cv2, "CAP_ANY", None),
        "dshow": getattr(cv2, "CAP_DSHOW", None),
        "msmf": getattr(cv2, "CAP_MSMF", None),
        "v4l2": getattr(cv2, "CAP_V4L2", None),
    }
    raw = os.getenv("CLIENT_CAMERA_BACKENDS", "").strip()
    if raw:
        names = [item.strip().lower() for item in raw.split(",") if item.strip().lower() in backend_map]
    elif os.name == "nt":
        # Windows laptop webcams are generally more stable on DirectShow.
        names = ["dshow", "msmf", "auto"]
    else:
        names = ["auto", "v4l2"]

    candidates: list[tuple[str, int | None]] = []
    seen: set[int | None] = set()
    for name in names or ["auto"]:
        backend = backend_map.get(name)
        if backend in seen:
            continue
        seen.add(backend)
        candidates.append((name, backend))
    return candidates


class CameraDevice:
    """OpenCV webcam handle producing JPEG-encoded probes."""

    def __init__(self, camera_index: int = 0, jpeg_quality: int = 80, warmup_reads: int = 6):
        self.camera_index = camera_index
        self.jpeg_quality = max(10, min(100, int(jpeg_quality)))
        self.warmup_reads = max(1, warmup_reads)
        self.cap: cv2.VideoCapture | None = None
        self.backend_name: str | None = None

    @property
    def is_open(self) -> bool:
        return self.cap is not None

    def open(self) -> None:
        if self.cap is not None:
            return
        attempted: list[str] = []
        for name, backend in _backend_candidates():
            attempted.append(name)
            cap = cv2.VideoCapture(self.camera_index) if backend is None else cv2.VideoCapture(self.camera_index, backend)
            if cap.isOpened() and self._delivers_frames(cap):
                self.cap = cap
                self.backend_name = name
                return
            cap.release()

        raise CameraError(
            f"Unable to open camera {self.camera_index} (tried {', '.join(attempted)}); "
            "access denied or device not available."
        )

    def _delivers_frames(self, cap: cv2.VideoCapture) -> bool:
        # Some backends report opened=True but never deliver frames.
        for _ in range(self.warmup_reads):
            ok, frame = cap.read()
            if ok and frame is not None:
                return True
            time.sleep(0.03)
        return False

    def read_jpeg(self) -> bytes | None:
        """Grab one frame and encode it, or None when no usable frame is ready."""
        if self.cap is None:
            return None
        ok, frame = self.cap.read()
        if not ok or frame is None or frame.size == 0:
            return None
        ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        if not ok:
            return None
        return buffer.tobytes()

    def release(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None
