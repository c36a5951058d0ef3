"""
Time-based frame throttling.

Responsibility:
    Decide, per incoming frame, whether it is forwarded to the detector.
    A frame is accepted when at least `min_interval` seconds have passed
    since the last accepted frame.

Constraints:
    - The check-and-update is a single atomic step (guarded by a lock),
      so concurrent calls from the delivery thread cannot both accept.
    - State lives on the instance; one gate per capture session.
"""

import logging
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class ThrottleGate:
    """Admit at most one frame per `min_interval` seconds.

    Usage:
        gate = ThrottleGate(min_interval=1.0)
        if gate.accept(frame.timestamp, time.monotonic()):
            # run inference

    The first frame seen by a fresh (or reset) gate is always accepted.
    """

    def __init__(self, min_interval: float = 1.0) -> None:
        """
        Raises:
            ValueError: If min_interval is negative.
        """
        if min_interval < 0:
            raise ValueError(
                f"min_interval must be non-negative, got {min_interval}."
            )
        self._min_interval = float(min_interval)
        self._last_accepted: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def last_accepted(self) -> Optional[float]:
        """Clock value of the last accepted frame, or None if none yet."""
        return self._last_accepted

    def accept(self, frame_timestamp: float, now: float) -> bool:
        """Return True and record `now` if the frame may be processed.

        Args:
            frame_timestamp: Capture timestamp of the incoming frame
                             (logged only; the decision uses `now`).
            now: Current clock value, same clock as previous calls.

        Returns:
            True if `now - last_accepted >= min_interval` (or nothing
            was accepted yet); False otherwise, leaving state unchanged.
        """
        with self._lock:
            last = self._last_accepted
            if last is not None and now - last < self._min_interval:
                return False
            self._last_accepted = now

        logger.debug(
            "Frame accepted (frame_ts=%.3f, now=%.3f, previous=%s)",
            frame_timestamp, now, last,
        )
        return True

    def reset(self) -> None:
        """Forget the last accepted timestamp (start of a new session)."""
        with self._lock:
            self._last_accepted = None
