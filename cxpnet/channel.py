"""A handle's interest in poll events, and the callbacks that serve them."""

from __future__ import annotations

import socket
import weakref
from typing import Any, Callable, Optional, Protocol, Union

from cxpnet.platform import EVENT_NONE, EVENT_READ, EVENT_WRITE

EVENT_ERROR = 1 << 2
EVENT_HUP = 1 << 3


class _EventPoll(Protocol):
    def update_channel(self, channel: "Channel") -> None: ...

    def remove_channel(self, channel: "Channel") -> None: ...


def _socket_error(handle: int) -> int:
    """Return the pending SO_ERROR of the socket behind ``handle``, or 0."""
    try:
        sock = socket.socket(fileno=handle)
    except OSError:
        return 0
    try:
        return sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
    except OSError:
        return 0
    finally:
        sock.detach()


class Channel:
    """Binds a file handle to an event poll and dispatches ready events."""

    def __init__(self, event_poll: _EventPoll, handle: Union[int, Any]) -> None:
        self.event_poll = event_poll
        self.handle: int = handle if isinstance(handle, int) else handle.fileno()
        self.events = EVENT_NONE
        self.result_events = EVENT_NONE
        self.registered = False
        self._tie: Optional[weakref.ref] = None
        self._on_read: Optional[Callable[[], None]] = None
        self._on_write: Optional[Callable[[], None]] = None
        self._on_close: Optional[Callable[[int], None]] = None

    def reading(self) -> bool:
        return bool(self.events & EVENT_READ)

    def writing(self) -> bool:
        return bool(self.events & EVENT_WRITE)

    def is_none_event(self) -> bool:
        return self.events == EVENT_NONE

    def set_result_events(self, events: int) -> None:
        """Record the events the last poll reported for this handle."""
        self.result_events = events

    def add_read_event(self) -> None:
        if self.reading():
            return
        self.events |= EVENT_READ
        self._update()

    def add_write_event(self) -> None:
        if self.writing():
            return
        self.events |= EVENT_WRITE
        self._update()

    def remove_write_event(self) -> None:
        if not self.writing():
            return
        self.events &= ~EVENT_WRITE
        self._update()

    def clear_event(self) -> None:
        self.events = EVENT_NONE
        self._update()

    def remove(self) -> None:
        """Detach the channel from its event poll; call :meth:`clear_event` first."""
        self.event_poll.remove_channel(self)

    def tie(self, obj: Any) -> None:
        """Only dispatch events while ``obj`` is still alive."""
        self._tie = weakref.ref(obj)

    def handle_event(self) -> None:
        """Run the callbacks matching the last reported events."""
        if self._tie is not None:
            owner = self._tie()
            if owner is None:
                return
            self._handle_event()
            del owner
            return
        self._handle_event()

    def set_read_callback(self, func: Optional[Callable[[], None]]) -> None:
        self._on_read = func

    def set_write_callback(self, func: Optional[Callable[[], None]]) -> None:
        self._on_write = func

    def set_close_callback(self, func: Optional[Callable[[int], None]]) -> None:
        self._on_close = func

    def _update(self) -> None:
        self.event_poll.update_channel(self)

    def _handle_event(self) -> None:
        result = self.result_events
        if result & (EVENT_ERROR | EVENT_HUP):
            err = _socket_error(self.handle) if result & EVENT_ERROR else 0
            # give the reader a chance to drain data before closing
            if result & (EVENT_READ | EVENT_HUP) and self._on_read is not None:
                self._on_read()
            if self._on_close is not None:
                self._on_close(err)
            return
        if result & EVENT_READ and self._on_read is not None:
            self._on_read()
        if result & EVENT_WRITE and self._on_write is not None:
            self._on_write()