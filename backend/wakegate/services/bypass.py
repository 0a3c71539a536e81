"""One-shot bypass of the health gate after an explicit operator action."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from time import monotonic

logger = logging.getLogger(__name__)

BYPASS_WINDOW_SECONDS = 5.0


@dataclass(frozen=True)
class BypassWindow:
    active: bool = False
    granted_at: float = 0.0


class BypassSession:
    """Lets exactly one request through within a short window after ``grant()``."""

    def __init__(self, window: float = BYPASS_WINDOW_SECONDS):
        self._window_seconds = window
        self._window = BypassWindow()
        self._lock = threading.Lock()

    def grant(self) -> None:
        with self._lock:
            self._window = BypassWindow(active=True, granted_at=monotonic())
        logger.debug("Bypass window granted for %.0fs", self._window_seconds)

    def consume_if_active(self) -> bool:
        with self._lock:
            window = self._window
            if not window.active:
                return False
            if monotonic() - window.granted_at > self._window_seconds:
                return False
            self._window = BypassWindow()
        logger.debug("Bypass window consumed")
        return True
