import threading
import time
from collections import Counter
from typing import Dict

# every counter the session code bumps; --stats lists them all, zeros included
KNOWN_COUNTERS = (
    "sessions_started",
    "sessions_reset",
    "descriptors_published",
    "descriptors_applied",
    "decode_errors",
    "connection_failures",
    "media_access_errors",
    "messages_sent",
    "messages_received",
)


class SessionCounters:
    """Process-wide handshake/chat counters. Unknown names are rejected."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Counter = Counter({name: 0 for name in KNOWN_COUNTERS})

    def bump(self, name: str, value: int = 1) -> None:
        if name not in self._counts:
            raise KeyError(f"unknown counter {name!r}")
        with self._lock:
            self._counts[name] += value

    def value(self, name: str) -> int:
        with self._lock:
            return self._counts[name]

    def as_dict(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)


COUNTERS = SessionCounters()


def incr(name: str, value: int = 1) -> None:
    COUNTERS.bump(name, value)


def get(name: str) -> int:
    return COUNTERS.value(name)


def snapshot() -> Dict[str, int]:
    return COUNTERS.as_dict()


def now_ms() -> int:
    return int(time.time() * 1000)
