"""Socket helpers: address building, listening, accepting, connecting and wake-ups."""

from __future__ import annotations

import enum
import errno
import select
import selectors
import socket
from typing import Iterator, Optional, Tuple

from cxpnet.types import IPType, ProtocolStack, SocketOption, ip_address_type

EVENT_NONE = 0
EVENT_READ = selectors.EVENT_READ
EVENT_WRITE = selectors.EVENT_WRITE

SockAddr = Tuple[int, tuple]

_CONNECT_TIMEOUT_S = 5.0


def _codes(*names: str) -> frozenset:
    return frozenset(getattr(errno, name) for name in names if hasattr(errno, name))


_BREAK_CODES = _codes("EAGAIN", "EWOULDBLOCK", "WSAEWOULDBLOCK")
_CONTINUE_CODES = _codes("EPROTO", "ECONNABORTED", "EINTR", "WSAEINTR")
_IN_PROGRESS_CODES = _codes("EINPROGRESS", "EWOULDBLOCK", "WSAEWOULDBLOCK")


class ErrorAction(enum.Enum):
    """What to do after a socket call failed with a given error code."""

    BREAK = enum.auto()
    CONTINUE = enum.auto()
    CLOSE = enum.auto()


def handle_error_action(err: int) -> ErrorAction:
    """Map an errno value to the action a non-blocking loop should take."""
    if err in _BREAK_CODES:
        return ErrorAction.BREAK
    if err in _CONTINUE_CODES:
        return ErrorAction.CONTINUE
    return ErrorAction.CLOSE


class Waker:
    """A readable handle that another thread can signal to wake a poll."""

    def __init__(self) -> None:
        self._reader, self._writer = socket.socketpair()
        self._reader.setblocking(False)
        self._writer.setblocking(False)

    def wake(self) -> None:
        """Make the handle readable."""
        try:
            self._writer.send(b"\x01")
        except (BlockingIOError, InterruptedError):
            pass  # already signalled

    def drain(self) -> None:
        """Consume every pending signal."""
        while True:
            try:
                if not self._reader.recv(4096):
                    return
            except (BlockingIOError, InterruptedError):
                return

    def fileno(self) -> int:
        return self._reader.fileno()

    def close(self) -> None:
        self._reader.close()
        self._writer.close()

    def __enter__(self) -> "Waker":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def get_sockaddr(address: str, port: int, stack: ProtocolStack) -> Optional[SockAddr]:
    """Return ``(family, sockaddr)`` for ``address`` under ``stack``, or None if unusable."""
    ip_type = ip_address_type(address)
    if ip_type is IPType.IPV4 and stack is ProtocolStack.IPV4_ONLY:
        return socket.AF_INET, (address, port)
    if ip_type is IPType.IPV6 and stack in (ProtocolStack.IPV6_ONLY, ProtocolStack.DUAL_STACK):
        return socket.AF_INET6, (address, port, 0, 0)
    return None


def set_non_blocking(sock: socket.socket) -> None:
    sock.setblocking(False)


def shut_wr(sock: socket.socket) -> None:
    """Half-close the writing side; errors are ignored."""
    try:
        sock.shutdown(socket.SHUT_WR)
    except OSError:
        pass


def listen(
    addr: Optional[SockAddr],
    proto_stack: ProtocolStack = ProtocolStack.IPV4_ONLY,
    option: SocketOption = SocketOption.NONE,
) -> socket.socket:
    """Create a non-blocking TCP socket bound to ``addr`` and listening."""
    if addr is None:
        raise ValueError("invalid listen address")
    family, sockaddr = addr
    sock = socket.socket(family, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    try:
        if family == socket.AF_INET6 and proto_stack is ProtocolStack.DUAL_STACK:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        if option & SocketOption.REUSE_ADDR:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if option & SocketOption.REUSE_PORT:
            reuse_port = getattr(socket, "SO_REUSEPORT", None)
            if reuse_port is None:
                raise OSError(errno.ENOPROTOOPT, "SO_REUSEPORT is not supported")
            sock.setsockopt(socket.SOL_SOCKET, reuse_port, 1)
        set_non_blocking(sock)
        sock.bind(sockaddr)
        sock.listen(socket.SOMAXCONN)
    except BaseException:
        sock.close()
        raise
    return sock


def accept(listen_sock: socket.socket) -> Iterator[Tuple[socket.socket, tuple]]:
    """Yield every pending connection as a non-blocking socket and its peer address.

    Stops when no more connections are pending; raises OSError on a fatal error.
    """
    while True:
        try:
            sock, peer = listen_sock.accept()
        except OSError as exc:
            action = handle_error_action(exc.errno or 0)
            if action is ErrorAction.BREAK:
                return
            if action is ErrorAction.CONTINUE:
                continue
            raise
        sock.setblocking(False)
        yield sock, peer


def connect(addr: Optional[SockAddr], nonblocking: bool = True) -> socket.socket:
    """Start a TCP connection to ``addr`` and return the non-blocking socket.

    With ``nonblocking`` false, wait up to five seconds for the socket to
    become writable and raise TimeoutError if it does not.
    """
    if addr is None:
        raise ValueError("invalid connect address")
    family, sockaddr = addr
    sock = socket.socket(family, socket.SOCK_STREAM, socket.IPPROTO_TCP)
    try:
        set_non_blocking(sock)
        result = sock.connect_ex(sockaddr)
        if result == 0:
            return sock
        if result not in _IN_PROGRESS_CODES:
            raise OSError(result, "connect failed")
        if not nonblocking:
            _, writable, _ = select.select([], [sock], [], _CONNECT_TIMEOUT_S)
            if not writable:
                raise TimeoutError("connect timed out")
    except BaseException:
        sock.close()
        raise
    return sock