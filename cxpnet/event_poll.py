"""An event loop that dispatches channel events and queued tasks."""

from __future__ import annotations

import errno
import threading
from typing import Callable, List, Optional

from cxpnet.channel import Channel
from cxpnet.platform import Waker
from cxpnet.poller import Poller
from cxpnet.types import POLL_TIMEOUT_MS

Closure = Callable[[], None]
ErrorCallback = Callable[["IOEventPoll", int], None]


class IOEventPoll:
    """Runs a poller on one thread; other threads hand it work via :meth:`run_in_poll`."""

    def __init__(self) -> None:
        self._thread_id = threading.get_ident()
        self._poller = Poller(self)
        self._waker = Waker()
        self._wakeup_channel = Channel(self, self._waker.fileno())
        self._wakeup_channel.set_read_callback(self._waker.drain)
        self._wakeup_channel.add_read_event()
        self._tasks: List[Closure] = []
        self._lock = threading.Lock()
        self._shut = threading.Event()
        self._on_error: Optional[ErrorCallback] = None

    def poll(self) -> None:
        """Process whatever is ready now without blocking."""
        if self._shut.is_set():
            return
        self._poll(0)

    def run(self) -> None:
        """Loop on the calling thread until :meth:`shutdown`."""
        self._thread_id = threading.get_ident()
        while not self._shut.is_set():
            self._poll(POLL_TIMEOUT_MS)

    def shutdown(self) -> None:
        if self._shut.is_set():
            return
        self._shut.set()
        self._waker.wake()

    def run_in_poll(self, func: Closure) -> None:
        """Run ``func`` now if on the poll thread, otherwise queue it there."""
        if self.is_in_poll_thread():
            func()
            return
        with self._lock:
            self._tasks.append(func)
        self._waker.wake()

    def is_in_poll_thread(self) -> bool:
        return self._thread_id == threading.get_ident()

    def update_channel(self, channel: Channel) -> None:
        self._poller.update_channel(channel)

    def remove_channel(self, channel: Channel) -> None:
        self._poller.remove_channel(channel)

    def set_error_callback(self, func: Optional[ErrorCallback]) -> None:
        self._on_error = func

    def close(self) -> None:
        """Release the poller and the wake-up handle."""
        self._poller.close()
        self._waker.close()

    def __enter__(self) -> "IOEventPoll":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _poll(self, timeout: int) -> None:
        err = 0
        try:
            active = self._poller.poll(timeout)
        except OSError as exc:
            err = exc.errno or 0
            active = []
        for channel in active:
            channel.handle_event()
        with self._lock:
            tasks, self._tasks = self._tasks, []
        for func in tasks:
            func()
        if err and err != errno.EINTR and self._on_error is not None:
            self._on_error(self, err)