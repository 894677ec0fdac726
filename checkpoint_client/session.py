from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol

from .config import ClientConfig
from .debounce import DebounceTracker
from .exceptions import CameraError, TransportError
from .logger import setup_logger
from .transport import ProbeReply


class SessionState(str, Enum):
    IDLE = "idle"
    CAMERA_STARTING = "camera_starting"
    ACTIVE = "active"
    # Camera still held, scanning paused until start() is called again.
    RESUMING = "resuming"
    STOPPED = "stopped"


class ScanEventKind(str, Enum):
    STATUS = "status"
    MATCH = "match"
    SUPPRESSED = "suppressed"
    NO_MATCH = "no_match"
    ERROR = "error"


@dataclass
class ScanEvent:
    kind: ScanEventKind
    message: str
    reply: ProbeReply | None = None


class Camera(Protocol):
    def open(self) -> None: ...

    def read_jpeg(self) -> bytes | None: ...

    def release(self) -> None: ...


class Transport(Protocol):
    def submit_probe(self, jpeg: bytes) -> ProbeReply: ...


class CaptureSession:
    """Owns the camera and the capture thread of one checkpoint operator.

    The loop captures a frame, submits it, waits, and repeats until ``stop()``.
    Probes are strictly serialized: the next capture starts only after the
    previous reply arrived. Every wait is on an event that ``stop()``, ``pause()``
    and ``start()`` set, so the loop reacts without waiting out its timer.
    """

    def __init__(
        self,
        camera: Camera,
        transport: Transport,
        capture_interval: float = 1.2,
        post_match_cooldown: float = 3.0,
        warmup: float = 0.6,
        debounce: DebounceTracker | None = None,
        on_event: Callable[[ScanEvent], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.camera = camera
        self.transport = transport
        self.capture_interval = capture_interval
        self.post_match_cooldown = post_match_cooldown
        self.warmup = warmup
        self.debounce = debounce or DebounceTracker()
        self.on_event = on_event
        self._clock = clock
        self.logger = setup_logger(self.__class__.__name__)

        self._lock = threading.Lock()
        self._camera_lock = threading.Lock()
        self._state = SessionState.IDLE
        self._camera_open = False
        self._generation = 0
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        cfg: ClientConfig,
        camera: Camera,
        transport: Transport,
        on_event: Callable[[ScanEvent], None] | None = None,
    ) -> "CaptureSession":
        return cls(
            camera=camera,
            transport=transport,
            capture_interval=cfg.capture_interval_seconds,
            post_match_cooldown=cfg.post_match_cooldown_seconds,
            warmup=cfg.warmup_seconds,
            debounce=DebounceTracker(window_seconds=cfg.debounce_seconds),
            on_event=on_event,
        )

    def __enter__(self) -> "CaptureSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def camera_active(self) -> bool:
        with self._lock:
            return self._camera_open

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._state in (SessionState.ACTIVE, SessionState.CAMERA_STARTING):
                return
            if self._state is SessionState.RESUMING:
                self._state = SessionState.ACTIVE
                self._wake.set()
                resumed = True
            else:
                self._state = SessionState.CAMERA_STARTING
                resumed = False

        if resumed:
            self.logger.info("Scanning resumed")
            self._emit(ScanEventKind.STATUS, "Resuming scan...")
            return

        try:
            self.camera.open()
        except CameraError as exc:
            with self._lock:
                self._state = SessionState.STOPPED
            self.logger.warning("Camera start failed: %s", exc)
            self._emit(ScanEventKind.ERROR, "Camera access denied or not available.")
            raise

        with self._lock:
            cancelled = self._state is not SessionState.CAMERA_STARTING
            if not cancelled:
                self._camera_open = True
                self._state = SessionState.ACTIVE
                self._generation += 1
                self._wake = threading.Event()
                self._thread = threading.Thread(
                    target=self._run,
                    args=(self._generation, self._wake),
                    name="capture-session",
                    daemon=True,
                )
                self._thread.start()

        if cancelled:
            # stop() arrived while the camera was opening.
            with self._camera_lock:
                self.camera.release()
            return
        self.logger.info("Camera started; first capture in %.1fs", self.warmup)
        self._emit(ScanEventKind.STATUS, "Camera started, scanning...")

    def pause(self) -> None:
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return
            self._state = SessionState.RESUMING
            self._wake.set()
        self._emit(ScanEventKind.STATUS, "Scanning paused, camera on")

    def stop(self) -> None:
        with self._lock:
            if self._state is SessionState.STOPPED:
                return
            self._state = SessionState.STOPPED
            release = self._camera_open
            self._camera_open = False
            self._wake.set()

        if release:
            with self._camera_lock:
                self.camera.release()
        self.debounce.clear()
        self.logger.info("Capture session stopped")
        self._emit(ScanEventKind.STATUS, "Stopped")

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    # -- capture loop --------------------------------------------------

    def _is_active(self, generation: int) -> bool:
        with self._lock:
            return self._state is SessionState.ACTIVE and self._generation == generation

    def run_once(self, generation: int | None = None) -> float:
        """Capture and submit one probe; return the delay before the next one."""
        if generation is None:
            generation = self._generation
        if not self._is_active(generation):
            return self.capture_interval

        with self._camera_lock:
            probe = self.camera.read_jpeg() if self._is_active(generation) else None
        if probe is None:
            return self.capture_interval

        self._emit(ScanEventKind.STATUS, "Scanning...")
        try:
            reply = self.transport.submit_probe(probe)
        except TransportError as exc:
            self.logger.warning("Probe submission failed: %s", exc)
            if self._is_active(generation):
                self._emit(ScanEventKind.ERROR, f"Request failed: {exc}")
            return self.capture_interval

        if not self._is_active(generation):
            self.logger.info("Discarding a reply that arrived after the session left ACTIVE")
            return self.capture_interval
        return self._handle_reply(reply)

    def _handle_reply(self, reply: ProbeReply) -> float:
        if not reply.ok:
            self.logger.warning("Scan rejected: %s", reply.message)
            self._emit(ScanEventKind.ERROR, reply.message or "Scan rejected", reply)
            return self.capture_interval

        if not reply.matched:
            if reply.confidence is not None and reply.confidence >= 0:
                message = f"No match (best: {reply.confidence:.1f})"
            else:
                message = reply.message or "No match, scanning..."
            self._emit(ScanEventKind.NO_MATCH, message, reply)
            return self.capture_interval

        name = (reply.student or {}).get("name", "")
        subject_id = reply.subject_id
        if subject_id is not None and not self.debounce.accept(subject_id, self._clock()):
            self._emit(ScanEventKind.SUPPRESSED, f"Matched recently ({name}), continuing", reply)
            return self.capture_interval

        confidence = f" ({reply.confidence:.1f})" if reply.confidence is not None else ""
        self.logger.info("Matched %s%s, visit %s", name, confidence, reply.inserted_visit_id)
        self._emit(ScanEventKind.MATCH, f"Matched: {name}{confidence}", reply)
        return self.post_match_cooldown

    def _run(self, generation: int, wake: threading.Event) -> None:
        try:
            self._wait(wake, self.warmup)
            while True:
                with self._lock:
                    if self._generation != generation or self._state is SessionState.STOPPED:
                        return
                    paused = self._state is SessionState.RESUMING
                if paused:
                    self._wait(wake, None)
                    continue
                self._wait(wake, self.run_once(generation))
        except Exception:
            self.logger.exception("Capture loop failed")
            with self._lock:
                current = self._generation == generation
            if current:
                self.stop()

    @staticmethod
    def _wait(wake: threading.Event, timeout: float | None) -> None:
        wake.wait(timeout)
        wake.clear()

    def _emit(self, kind: ScanEventKind, message: str, reply: ProbeReply | None = None) -> None:
        if self.on_event is not None:
            self.on_event(ScanEvent(kind=kind, message=message, reply=reply))
