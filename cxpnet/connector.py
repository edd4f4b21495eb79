"""Establishes an outgoing TCP connection without blocking the event poll."""

from __future__ import annotations

import socket
from typing import Callable, Optional

from cxpnet import platform
from cxpnet.channel import Channel
from cxpnet.conn import Conn
from cxpnet.ensure import ensure
from cxpnet.event_poll import IOEventPoll
from cxpnet.types import IPType, ProtocolStack, State, ip_address_type

ConnCallback = Callable[[Conn], None]
ErrorCallback = Callable[[int], None]


class Connector:
    """Connects to an address and reports a started :class:`Conn` or an error code."""

    def __init__(self, event_poll: IOEventPoll, addr: str, port: int) -> None:
        self._event_poll = event_poll
        self._addr = addr
        self._port = port
        self._state = State.DISCONNECTED
        self._sock: Optional[socket.socket] = None
        self._channel: Optional[Channel] = None
        self._on_conn: Optional[ConnCallback] = None
        self._on_error: Optional[ErrorCallback] = None

    def start(self) -> None:
        """Begin connecting on the event poll's thread."""
        self._event_poll.run_in_poll(self._start_in_poll)

    def set_conn_user_callback(self, func: Optional[ConnCallback]) -> None:
        self._on_conn = func

    def set_error_user_callback(self, func: Optional[ErrorCallback]) -> None:
        self._on_error = func

    def close(self) -> None:
        """Abandon a pending connection attempt."""
        sock = self._release_socket()
        if sock is not None:
            sock.close()

    def __enter__(self) -> "Connector":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _start_in_poll(self) -> None:
        ensure(self._event_poll.is_in_poll_thread(), "Must in IO thread")
        ip_type = ip_address_type(self._addr)
        if ip_type is IPType.INVALID:
            return
        stack = ProtocolStack.IPV4_ONLY if ip_type is IPType.IPV4 else ProtocolStack.IPV6_ONLY
        sockaddr = platform.get_sockaddr(self._addr, self._port, stack)
        if sockaddr is None:
            return
        try:
            sock = platform.connect(sockaddr)
        except OSError as exc:
            if self._on_error is not None:
                self._on_error(exc.errno or 0)
            return
        self._state = State.CONNECTING
        self._sock = sock
        self._channel = Channel(self._event_poll, sock)
        self._channel.set_write_callback(self._handle_write)
        self._channel.add_write_event()

    def _handle_write(self) -> None:
        if self._state is not State.CONNECTING:
            return
        sock = self._release_socket()
        if sock is None:
            return
        try:
            err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        except OSError as exc:
            err = exc.errno or -1
        if err != 0:
            self._state = State.DISCONNECTED
            sock.close()
            if self._on_error is not None:
                self._on_error(err)
            return
        self._state = State.CONNECTED
        conn = Conn(self._event_poll, sock)
        conn.set_remote_addr(self._addr, self._port)
        conn._start()
        if self._on_conn is not None:
            self._on_conn(conn)

    def _release_socket(self) -> Optional[socket.socket]:
        if self._channel is not None:
            self._channel.clear_event()
            self._channel.remove()
            self._channel = None
        sock, self._sock = self._sock, None
        return sock