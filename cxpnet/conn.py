"""A connected TCP socket with buffered, event-driven reads and writes."""

from __future__ import annotations

import errno
import socket
import threading
from typing import Callable, Optional, Tuple, Union

from cxpnet import platform
from cxpnet.buffer import Buffer
from cxpnet.channel import Channel
from cxpnet.event_poll import IOEventPoll
from cxpnet.platform import ErrorAction, handle_error_action
from cxpnet.types import State

SentCallback = Callable[[bool], None]
MessageCallback = Callable[["Conn", Buffer], None]
CloseCallback = Callable[["Conn", int], None]
WatermarkCallback = Callable[[int], None]
Data = Union[bytes, bytearray, memoryview, str]

_READ_GROW = 2 * 1024
_DEFAULT_HIGH_WATERMARK = 1024 * 1024
_DEFAULT_LOW_WATERMARK = 256 * 1024
_RETRY_SEND = frozenset(
    getattr(errno, name) for name in ("EAGAIN", "EWOULDBLOCK", "EINTR") if hasattr(errno, name)
)


def _to_bytes(data: Data) -> bytes:
    if isinstance(data, str):
        return data.encode()
    return bytes(data)


class Conn:
    """One TCP connection served by an event poll."""

    def __init__(self, event_poll: IOEventPoll, sock: socket.socket) -> None:
        self._event_poll = event_poll
        self._sock = sock
        self._fileno = sock.fileno()
        self._channel: Optional[Channel] = None
        self._lock = threading.Lock()
        self._state = State.DISCONNECTED
        self._closing = False
        self._read_buffer: Optional[Buffer] = None
        self._write_buffer: Optional[Buffer] = None
        self._on_message: Optional[MessageCallback] = None
        self._on_close: Optional[CloseCallback] = None
        self._on_close_holder: Optional[Callable[[], None]] = None
        self._on_watermark: Optional[WatermarkCallback] = None
        self._high_watermark = _DEFAULT_HIGH_WATERMARK
        self._low_watermark = _DEFAULT_LOW_WATERMARK
        self._high_watermark_warning = False
        self._addr = ""
        self._port = 0

    def shutdown(self) -> None:
        """Close gracefully: half-close once pending output has been written."""
        if not self.connected():
            return
        self._set_state(State.DISCONNECTING)

        def _shut() -> None:
            if self._channel is not None and not self._channel.writing():
                platform.shut_wr(self._sock)

        self._event_poll.run_in_poll(_shut)

    def close(self) -> None:
        """Close at once, dropping pending output."""
        if not self.connected():
            return
        self._set_state(State.DISCONNECTING)
        self._event_poll.run_in_poll(lambda: self._handle_close_event(0))

    def set_remote_addr(self, addr: str, port: int) -> None:
        self._addr = addr
        self._port = port

    def remote_addr_and_port(self) -> Tuple[str, int]:
        return self._addr, self._port

    def fileno(self) -> int:
        return self._fileno

    def connected(self) -> bool:
        return self._state is State.CONNECTED

    def set_conn_user_callbacks(
        self,
        message_func: Optional[MessageCallback],
        close_func: Optional[CloseCallback],
    ) -> None:
        self._on_message = message_func
        self._on_close = close_func

    def send(self, data: Data, func: Optional[SentCallback] = None) -> None:
        """Send ``data``; ``func`` is told whether it was accepted for sending."""
        payload = _to_bytes(data)
        if self._event_poll.is_in_poll_thread():
            self._send_in_poll_thread(payload, func)
        else:
            self._event_poll.run_in_poll(lambda: self._send_in_poll_thread(payload, func))

    def set_read_write_buffer_size(self, read_size: int, write_size: int) -> None:
        """Replace both buffers; ignored unless both sizes are non-zero. Not thread-safe."""
        if read_size != 0 and write_size != 0:
            self._read_buffer = Buffer(read_size)
            self._write_buffer = Buffer(write_size)

    def set_watermark(self, high: int, low: int) -> None:
        """Set the output-queue watermarks; ignored if equal or either is zero."""
        if high == low or high == 0 or low == 0:
            return
        self._high_watermark = high
        self._low_watermark = low

    def set_watermark_callback(self, func: Optional[WatermarkCallback]) -> None:
        self._on_watermark = func

    def _start(self) -> None:
        if self.connected():
            return
        if self._read_buffer is None:
            self._read_buffer = Buffer()
        if self._write_buffer is None:
            self._write_buffer = Buffer()
        channel = Channel(self._event_poll, self._sock)
        channel.set_read_callback(self._handle_read_event)
        channel.set_write_callback(self._handle_write_event)
        channel.set_close_callback(self._handle_close_event)
        self._channel = channel
        channel.add_read_event()
        channel.tie(self)
        self._set_state(State.CONNECTED)

    def _set_on_close_holder(self, func: Optional[Callable[[], None]]) -> None:
        self._on_close_holder = func

    def _set_state(self, state: State) -> None:
        with self._lock:
            self._state = state

    def _handle_read_event(self) -> None:
        buffer = self._read_buffer
        while not self._closing:
            if buffer.writable_size() <= 0:
                buffer.ensure_writable_size(_READ_GROW)
            try:
                with buffer.writable_view() as view:
                    received = self._sock.recv_into(view)
            except OSError as exc:
                err = exc.errno or 0
                action = handle_error_action(err)
                if action is ErrorAction.BREAK:
                    return
                if action is ErrorAction.CONTINUE:
                    continue
                self._handle_close_event(err)
                return
            if received == 0:
                self._handle_close_event(0)
                return
            buffer.been_written(received)
            if self._on_message is not None:
                self._on_message(self, buffer)
            buffer.clear()

    def _handle_write_event(self) -> None:
        buffer = self._write_buffer
        try:
            sent = self._sock.send(buffer.peek())
        except OSError as exc:
            err = exc.errno or 0
            if err in _RETRY_SEND:
                return
            self._handle_close_event(err)
            return
        if sent <= 0:
            return
        buffer.retrieve(sent)
        if self._high_watermark_warning and buffer.readable_size() <= self._low_watermark:
            if self._on_watermark is not None:
                self._on_watermark(self._low_watermark)
            self._high_watermark_warning = False
        if buffer.readable_size() == 0:
            buffer.clear()
            self._channel.remove_write_event()
            if self._state is State.DISCONNECTING:
                platform.shut_wr(self._sock)

    def _handle_close_event(self, err: int) -> None:
        with self._lock:
            if self._state is State.DISCONNECTED or self._closing:
                return
            self._closing = True
            self._state = State.DISCONNECTING
        if self._channel is not None:
            self._channel.clear_event()
            self._channel.remove()
        if self._on_close is not None:
            self._on_close(self, err)
        if self._on_close_holder is not None:
            self._on_close_holder()
        self._set_state(State.DISCONNECTED)
        self._sock.close()

    def _send_in_poll_thread(self, data: bytes, func: Optional[SentCallback]) -> None:
        def _report(ok: bool) -> None:
            if func is not None:
                func(ok)

        if not self.connected() or not data:
            _report(False)
            return
        buffer = self._write_buffer
        if buffer.readable_size() > 0:
            buffer.append(data)
        else:
            try:
                sent = self._sock.send(data)
            except OSError as exc:
                err = exc.errno or 0
                if err not in _RETRY_SEND:
                    _report(False)
                    self._handle_close_event(err)
                    return
                buffer.append(data)
                self._channel.add_write_event()
            else:
                if sent < len(data):
                    buffer.append(data[sent:])
                    self._channel.add_write_event()
        if buffer.readable_size() > self._high_watermark:
            if self._on_watermark is not None:
                self._on_watermark(self._high_watermark)
            self._high_watermark_warning = True
        _report(True)