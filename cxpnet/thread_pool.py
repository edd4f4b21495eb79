"""Runs a set of event polls, one thread each, and hands them out in turn."""

from __future__ import annotations

import threading
from typing import List, Optional, Sequence

from cxpnet.event_poll import IOEventPoll


class PollThreadPool:
    """Owns one thread per event poll and picks polls round-robin."""

    def __init__(self, event_polls: Sequence[IOEventPoll]) -> None:
        self._polls: List[IOEventPoll] = list(event_polls)
        self._threads: List[threading.Thread] = []
        self._next = 0
        self._shut = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start a thread running each poll's loop."""
        for poll in self._polls:
            thread = threading.Thread(target=poll.run, daemon=True)
            self._threads.append(thread)
            thread.start()

    def shutdown(self) -> None:
        """Stop every poll and wait for its thread."""
        with self._lock:
            if self._shut:
                return
            self._shut = True
        for poll in self._polls:
            poll.shutdown()
        for thread in self._threads:
            thread.join()

    def next_poll(self) -> Optional[IOEventPoll]:
        """Return the next poll in turn, or None if the pool is empty."""
        if not self._polls:
            return None
        selected = self._polls[self._next]
        self._next = (self._next + 1) % len(self._polls)
        return selected

    def __enter__(self) -> "PollThreadPool":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()