"""
Detection session: throttle → detect → render, across threads.

Responsibility:
    Own the per-capture-session state (throttle gate, inference worker
    pool, result queue, sequence counter) and move frames through the
    pipeline without blocking the frame-delivery thread.

Threading model:
    - submit_frame() runs on the frame-delivery thread. It performs the
      throttle check-and-update and hands accepted frames to a worker
      pool. It never waits for inference.
    - Workers call detector.detect() and post an InferenceResult onto a
      queue. Per-frame failures are logged and skipped.
    - drain() and present() run on the display-owning thread. drain()
      renders every queued result in order; results older than the last
      rendered one are dropped by the renderer.

Non-goals:
    - No frame acquisition and no window handling.
    - No retries of failed inference.
"""

import concurrent.futures
import itertools
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from detect_overlay.detection import Detection
from detect_overlay.errors import InferenceError
from detect_overlay.frame import Frame
from detect_overlay.overlay import OverlayRenderer
from detect_overlay.throttle import ThrottleGate

logger = logging.getLogger(__name__)


class DetectorProtocol(Protocol):
    """Anything that turns a BGR image into detections."""

    def detect(self, frame: np.ndarray) -> List[Detection]:
        ...


@dataclass(frozen=True)
class InferenceResult:
    """Detections for one accepted frame, tagged with its sequence number."""

    sequence: int
    frame: Frame
    detections: Tuple[Detection, ...]


@dataclass
class SessionStats:
    """Runtime counters for one session."""

    frames_seen: int = 0
    frames_accepted: int = 0
    frames_throttled: int = 0
    inference_failures: int = 0
    results_rendered: int = 0
    results_stale: int = 0
    start_time: float = field(default_factory=time.monotonic)


class DetectionSession:
    """Throttled, asynchronous detection feeding an overlay renderer.

    Usage:
        with DetectionSession(detector, renderer, ThrottleGate(3.0)) as session:
            for frame in input_handler:          # delivery thread
                session.submit_frame(frame)
                session.present(frame)           # display thread
                session.drain()

    `stop()` (also called on context exit) waits for in-flight inference
    and renders whatever is left, so it must be called from the display
    thread.
    """

    def __init__(
        self,
        detector: DetectorProtocol,
        renderer: OverlayRenderer,
        throttle: Optional[ThrottleGate] = None,
        display_size: Optional[Tuple[int, int]] = None,
        clock: Callable[[], float] = time.monotonic,
        max_workers: int = 1,
    ) -> None:
        if detector is None:
            raise ValueError("DetectionSession requires a detector.")
        if renderer is None:
            raise ValueError("DetectionSession requires a renderer.")

        self._detector = detector
        self._renderer = renderer
        self._throttle = throttle or ThrottleGate()
        self._display_size = tuple(display_size) if display_size is not None else None
        self._clock = clock
        self._max_workers = max_workers

        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._results: "queue.Queue[InferenceResult]" = queue.Queue()
        self._sequence = itertools.count(1)
        self._pending: set = set()
        self._pending_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._callbacks: List[Callable[[InferenceResult], None]] = []
        self.stats = SessionStats()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._executor is not None

    @property
    def throttle(self) -> ThrottleGate:
        return self._throttle

    @property
    def renderer(self) -> OverlayRenderer:
        return self._renderer

    def start(self) -> "DetectionSession":
        """Reset per-session state and start the inference worker pool."""
        if self._executor is not None:
            return self
        self._throttle.reset()
        self._renderer.reset()
        self._sequence = itertools.count(1)
        self._results = queue.Queue()
        self.stats = SessionStats()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix="detect-overlay-inference",
        )
        logger.info(
            "Detection session started (min_interval=%.2fs, workers=%d)",
            self._throttle.min_interval, self._max_workers,
        )
        return self

    def stop(self) -> None:
        """Wait for in-flight inference, render the leftovers, shut down."""
        if self._executor is None:
            return
        executor, self._executor = self._executor, None
        executor.shutdown(wait=True)
        self.drain()

        elapsed = time.monotonic() - self.stats.start_time
        logger.info(
            "Detection session stopped after %.1fs: seen=%d accepted=%d "
            "throttled=%d failed=%d rendered=%d stale=%d",
            elapsed,
            self.stats.frames_seen,
            self.stats.frames_accepted,
            self.stats.frames_throttled,
            self.stats.inference_failures,
            self.stats.results_rendered,
            self.stats.results_stale,
        )

    def __enter__(self) -> "DetectionSession":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def add_callback(self, callback: Callable[[InferenceResult], None]) -> None:
        """Register a function called on the display thread after each render."""
        self._callbacks.append(callback)

    # ------------------------------------------------------------------
    # Frame-delivery thread
    # ------------------------------------------------------------------

    def submit_frame(self, frame: Frame, force: bool = False) -> bool:
        """Throttle `frame` and, if accepted, dispatch it for inference.

        Args:
            frame: The delivered frame.
            force: Skip the throttle gate. Used for still images, where
                   every frame must be detected regardless of wall-clock
                   spacing.

        Returns:
            True if the frame was sent to the detector.

        Raises:
            RuntimeError: If the session has not been started.
        """
        executor = self._executor
        if executor is None:
            raise RuntimeError("Detection session is not running; call start() first.")

        self.stats.frames_seen += 1
        if not force and not self._throttle.accept(frame.timestamp, self._clock()):
            self.stats.frames_throttled += 1
            return False

        sequence = next(self._sequence)
        self.stats.frames_accepted += 1
        future = executor.submit(self._infer, sequence, frame)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return True

    def _forget(self, future: concurrent.futures.Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _infer(self, sequence: int, frame: Frame) -> None:
        """Worker body: run the detector and post the result."""
        try:
            detections = self._detector.detect(frame.image)
        except InferenceError as e:
            self._count_failure()
            logger.warning("Inference failed for frame %d: %s", frame.frame_id, e)
            return
        except Exception as e:
            self._count_failure()
            logger.exception("Unexpected inference error on frame %d: %s", frame.frame_id, e)
            return

        self._results.put(InferenceResult(sequence, frame, tuple(detections)))

    def _count_failure(self) -> None:
        # Workers may run concurrently when max_workers > 1.
        with self._stats_lock:
            self.stats.inference_failures += 1

    # ------------------------------------------------------------------
    # Display thread
    # ------------------------------------------------------------------

    def display_size_for(self, frame: Frame) -> Tuple[int, int]:
        """Configured display size, or the frame's own size."""
        return self._display_size or frame.size

    def present(self, frame: Frame) -> None:
        """Forward a delivered frame to the renderer as the live preview."""
        self._renderer.present(frame, self.display_size_for(frame))

    def drain(self) -> int:
        """Render every queued result. Returns how many were rendered."""
        rendered = 0
        while True:
            try:
                result = self._results.get_nowait()
            except queue.Empty:
                break

            if not self._render(result):
                self.stats.results_stale += 1
                continue

            rendered += 1
            self.stats.results_rendered += 1
            for callback in self._callbacks:
                try:
                    callback(result)
                except Exception as e:
                    logger.warning("Render callback error: %s", e)
        return rendered

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until every dispatched inference has finished.

        Returns:
            True if idle, False if the timeout expired first.
        """
        with self._pending_lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    def process(self, frames: Sequence[Frame], timeout: Optional[float] = None) -> int:
        """Run a fixed batch of frames through the session synchronously.

        Convenient for still images: each frame bypasses the throttle, is
        presented, detected and rendered before the next one is submitted.
        Returns results rendered.
        """
        rendered = 0
        for frame in frames:
            self.submit_frame(frame, force=True)
            self.present(frame)
            if not self.wait_idle(timeout):
                logger.warning("Inference for frame %d did not finish within %.1fs",
                               frame.frame_id, timeout)
            rendered += self.drain()
        return rendered

    def _render(self, result: InferenceResult) -> bool:
        return self._renderer.render(
            result.detections,
            self.display_size_for(result.frame),
            frame=result.frame,
            sequence=result.sequence,
        )
