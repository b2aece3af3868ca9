"""Time-based ids for content document nodes."""

import threading
import time
from collections.abc import Callable


class TimeIds:
    """Millisecond timestamps as strings, strictly increasing per generator.

    Two calls inside the same millisecond still get distinct ids, so an id
    handed out once is never produced again by this generator.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last = 0
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            now = int(self._clock() * 1000)
            if now <= self._last:
                now = self._last + 1
            self._last = now
            return str(now)


new_id = TimeIds()
