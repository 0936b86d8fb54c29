"""
Safety — the boundaries around what the pet may do.

Two guards live here:

1. RATE LIMITING: a sliding-window admission check in front of every model
   conversation, so a chatty channel cannot run up the provider bill.
2. COMMAND FILTERING: a fixed deny-list of destructive or dangerous shell
   fragments, checked before the sandbox ever spawns a process.

The model reasons freely; these guards decide what is ALLOWED.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


# Substrings that are never allowed in a command (compared lowercased).
BLOCKED_PATTERNS: tuple[str, ...] = (
    # filesystem wipes
    "rm -rf /",
    "rm -rf /*",
    "mkfs",
    # raw device writes
    "dd if=",
    "> /dev/sd",
    # fork bomb
    ":(){",
    "chmod -R 777",
    # no downloading
    "wget",
    "curl",
    # power state
    "shutdown",
    "reboot",
    "halt",
    "init 0",
    "init 6",
    # users and privileges
    "passwd",
    "adduser",
    "useradd",
    "userdel",
    "visudo",
    # firewall
    "iptables",
    "nft ",
    # service disabling
    "systemctl disable",
    "systemctl mask",
)


def find_blocked_pattern(command: str) -> Optional[str]:
    """Return the first deny-listed pattern found in ``command``, else None."""
    lowered = command.lower()
    for pattern in BLOCKED_PATTERNS:
        if pattern.lower() in lowered:
            return pattern
    return None


class RateLimiter:
    """
    Sliding-window admission control.

    At most ``max_requests`` calls are admitted within any trailing
    ``window_seconds`` interval. Denied calls are not recorded and are never
    queued. One limiter is shared by every conversation that goes through the
    brain that owns it.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._max_requests = int(max_requests)
        self._window = float(window_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._admitted: deque[float] = deque()

    def allow(self) -> bool:
        """Admit and record this call, or deny it without recording."""
        with self._lock:
            now = self._clock()
            cutoff = now - self._window
            # Rebuild rather than trim in place
            self._admitted = deque(t for t in self._admitted if t > cutoff)

            if len(self._admitted) >= self._max_requests:
                logger.info(
                    "rate_limiter.denied",
                    in_window=len(self._admitted),
                    max_requests=self._max_requests,
                    window_seconds=self._window,
                )
                return False

            self._admitted.append(now)
            return True

    @property
    def stats(self) -> dict[str, float]:
        with self._lock:
            in_window = len(self._admitted)
        return {
            "in_window": in_window,
            "max_requests": self._max_requests,
            "window_seconds": self._window,
        }
