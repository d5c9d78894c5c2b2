"""Connectivity tracking for the autosave session.

A consecutive-failure breaker over the autosave endpoint:

  ONLINE   -- saves go straight through
  OFFLINE  -- the server looks unreachable; saves are held locally
  PROBING  -- cooldown expired, the next save is allowed through as a probe

A success in any state returns to ONLINE. A failed probe goes back to
OFFLINE and restarts the cooldown.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 1    # consecutive failed saves before going offline
DEFAULT_COOLDOWN_SECONDS = 15    # seconds offline before a probe save


class ConnectivityState(Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    PROBING = "probing"


class ConnectivityMonitor:
    """Decides whether a save should be attempted right now.

    ``clock`` defaults to ``time.monotonic`` and is injectable for tests.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._failure_threshold = max(1, failure_threshold)
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock

        self._state = ConnectivityState.ONLINE
        self._failure_count = 0
        self._last_failure_time = 0.0
        self._lock = threading.Lock()

    @property
    def state(self) -> ConnectivityState:
        with self._lock:
            return self._state

    @property
    def is_online(self) -> bool:
        return self.state == ConnectivityState.ONLINE

    def allow_request(self) -> bool:
        """True when a save may be sent (online, or time for a probe)."""
        with self._lock:
            if self._state == ConnectivityState.OFFLINE:
                if self._clock() - self._last_failure_time >= self._cooldown_seconds:
                    self._state = ConnectivityState.PROBING
                    logger.info("Connectivity: OFFLINE -> PROBING (cooldown expired)")
                    return True
                return False
            return True

    def retry_after(self) -> float:
        """Seconds until a probe is allowed (0 when not offline)."""
        with self._lock:
            if self._state != ConnectivityState.OFFLINE:
                return 0.0
            return max(0.0, self._cooldown_seconds - (self._clock() - self._last_failure_time))

    def record_success(self) -> None:
        with self._lock:
            if self._state != ConnectivityState.ONLINE:
                logger.info("Connectivity: %s -> ONLINE", self._state.name)
            self._state = ConnectivityState.ONLINE
            self._failure_count = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            if self._state == ConnectivityState.PROBING:
                self._state = ConnectivityState.OFFLINE
                logger.warning("Connectivity: PROBING -> OFFLINE (probe failed)")
            elif self._state == ConnectivityState.ONLINE and self._failure_count >= self._failure_threshold:
                self._state = ConnectivityState.OFFLINE
                logger.warning(
                    "Connectivity: ONLINE -> OFFLINE (%d consecutive failures)",
                    self._failure_count,
                )

    def mark_online(self) -> None:
        """The host reported that the network is back; probe immediately."""
        with self._lock:
            if self._state == ConnectivityState.OFFLINE:
                self._state = ConnectivityState.PROBING
                logger.info("Connectivity: OFFLINE -> PROBING (network reported online)")
