"""Single-writer session gate.

Whoever touched the document last holds the session until ``timeout``
seconds pass without another request from them. Anyone else is turned
away during that window. This is a courtesy lock for people editing by
hand, not a correctness guarantee.
"""
from __future__ import annotations

import ipaddress
import math
import threading
import time
from typing import Callable, NamedTuple

Clock = Callable[[], float]


class Decision(NamedTuple):
    allowed: bool
    seconds_remaining: int = 0


ALLOWED = Decision(True)


class AccessGate:
    def __init__(self, timeout: float, clock: Clock = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._holder: str | None = None
        self._granted_at = 0.0

    @property
    def holder(self) -> str | None:
        return self._holder

    def check_admission(self, requester: str | None, now: float) -> Decision:
        # Unknown peers are let through rather than locking everybody out.
        if requester is None or self._holder is None or requester == self._holder:
            return ALLOWED
        elapsed = now - self._granted_at
        if elapsed >= self.timeout:
            return ALLOWED
        return Decision(False, max(0, math.ceil(self.timeout - elapsed)))

    def grant(self, requester: str, now: float) -> None:
        self._holder = requester
        self._granted_at = now

    def acquire(self, requester: str | None) -> Decision:
        """Check and grant in one step. Returns the admission decision."""
        with self._lock:
            now = self._clock()
            decision = self.check_admission(requester, now)
            if decision.allowed and requester is not None:
                self.grant(requester, now)
            return decision

    def probe(self, requester: str | None) -> Decision:
        with self._lock:
            return self.check_admission(requester, self._clock())


def remote_address(request) -> str | None:
    """Identify a requester by peer IP, or None if the address is unusable."""
    addr = request.remote_addr
    if not addr:
        return None
    try:
        return str(ipaddress.ip_address(addr))
    except ValueError:
        return None
