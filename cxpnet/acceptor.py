"""Accepts incoming TCP connections on a listening socket driven by an event poll."""

from __future__ import annotations

import socket
from typing import Callable, List, Optional, Tuple

from cxpnet import platform
from cxpnet.channel import Channel
from cxpnet.event_poll import IOEventPoll
from cxpnet.types import ProtocolStack, SocketOption

ConnectionCallback = Callable[[socket.socket, tuple], None]
ErrorCallback = Callable[[int], None]


class Acceptor:
    """Listens on an address and hands every accepted socket to a callback."""

    def __init__(
        self,
        event_poll: IOEventPoll,
        addr: str,
        port: int,
        proto_stack: ProtocolStack = ProtocolStack.IPV4_ONLY,
        option: SocketOption = SocketOption.NONE,
    ) -> None:
        self._event_poll = event_poll
        self._local_addr = platform.get_sockaddr(addr, port, proto_stack)
        self._proto_stack = proto_stack
        self._option = option
        self._sock: Optional[socket.socket] = None
        self._channel: Optional[Channel] = None
        self._listening = False
        self._on_conn: Optional[ConnectionCallback] = None
        self._on_err: Optional[ErrorCallback] = None

    def listen(self) -> bool:
        """Start listening; return whether the socket could be set up."""
        if self._local_addr is None:
            return False
        try:
            self._sock = platform.listen(self._local_addr, self._proto_stack, self._option)
        except OSError:
            return False
        self._listening = True
        self._channel = Channel(self._event_poll, self._sock)
        self._channel.set_read_callback(self._handle_read)
        self._channel.add_read_event()
        return True

    def shutdown(self) -> None:
        """Stop receiving accept events."""
        if self._channel is not None:
            self._channel.clear_event()
            self._channel.remove()
            self._channel = None
        self._listening = False

    def is_listening(self) -> bool:
        return self._listening

    def set_connection_callback(self, func: Optional[ConnectionCallback]) -> None:
        self._on_conn = func

    def set_error_callback(self, func: Optional[ErrorCallback]) -> None:
        self._on_err = func

    def close(self) -> None:
        """Stop listening and release the socket."""
        self.shutdown()
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def __enter__(self) -> "Acceptor":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _handle_read(self) -> None:
        if self._sock is None:
            return
        try:
            accepted: List[Tuple[socket.socket, tuple]] = list(platform.accept(self._sock))
        except OSError as exc:
            if self._on_err is not None:
                self._on_err(exc.errno or 0)
            return
        for sock, peer in accepted:
            if self._on_conn is not None:
                self._on_conn(sock, peer)