"""A TCP server that accepts connections and spreads them over event polls."""

from __future__ import annotations

import socket
from typing import Callable, Dict, List, Optional

from cxpnet.acceptor import Acceptor
from cxpnet.conn import Conn
from cxpnet.ensure import ensure
from cxpnet.event_poll import IOEventPoll
from cxpnet.thread_pool import PollThreadPool
from cxpnet.types import ProtocolStack, RunningMode, SocketOption

ConnectionCallback = Callable[[Conn], None]
PollErrorCallback = Callable[[IOEventPoll, int], None]


class Server:
    """Listens on an address and serves every accepted connection as a :class:`Conn`.

    The main event poll accepts connections. With
    :attr:`RunningMode.ONE_POLL_PER_THREAD` each connection is handed to one of
    ``thread_num`` worker polls in turn and :meth:`run` drives the main poll;
    with :attr:`RunningMode.ALL_ONE_THREAD` everything happens on the main
    poll, driven by repeated calls to :meth:`poll`.
    """

    def __init__(
        self,
        addr: str,
        port: int,
        proto_stack: ProtocolStack = ProtocolStack.IPV4_ONLY,
        option: SocketOption = SocketOption.NONE,
    ) -> None:
        self._addr = addr
        self._port = port
        self._main_poll = IOEventPoll()
        self._main_poll.set_error_callback(self._on_poll_error)
        self._acceptor = Acceptor(self._main_poll, addr, port, proto_stack, option)
        self._acceptor.set_connection_callback(self._on_new_connection)
        self._acceptor.set_error_callback(self._on_acceptor_error)
        self._sub_polls: List[IOEventPoll] = []
        self._pool: Optional[PollThreadPool] = None
        self._thread_num = 0
        self._started = False
        self._running_mode: Optional[RunningMode] = None
        self._user_conn_callback: Optional[ConnectionCallback] = None
        self._user_poll_error_callback: Optional[PollErrorCallback] = None
        self._conns: Dict[int, Conn] = {}

    @property
    def connection_count(self) -> int:
        """Number of connections currently held by the server."""
        return len(self._conns)

    def shutdown(self) -> None:
        """Stop accepting, stop the worker polls and stop the main poll."""
        self._acceptor.close()
        if self._pool is not None:
            self._pool.shutdown()
            self._pool = None
        for poll in self._sub_polls:
            poll.close()
        self._sub_polls.clear()
        self._main_poll.shutdown()
        self._started = False

    def set_thread_num(self, n: int) -> None:
        self._thread_num = n

    def set_conn_user_callback(self, func: Optional[ConnectionCallback]) -> None:
        """Set the callback told about each new connection before it starts."""
        self._user_conn_callback = func

    def set_poll_error_user_callback(self, func: Optional[PollErrorCallback]) -> None:
        self._user_poll_error_callback = func

    def start(self, mode: RunningMode) -> None:
        """Start listening and, per ``mode``, the worker polls.

        Does nothing unless the thread number is positive and the server is
        not started yet. Raises OSError if the address cannot be listened on.
        """
        if self._thread_num <= 0 or self._started:
            return
        self._running_mode = mode
        if not self._acceptor.is_listening() and not self._acceptor.listen():
            raise OSError(f"cannot listen on {self._addr}:{self._port}")
        if mode is RunningMode.ONE_POLL_PER_THREAD:
            for _ in range(self._thread_num):
                poll = IOEventPoll()
                poll.set_error_callback(self._on_poll_error)
                self._sub_polls.append(poll)
            self._pool = PollThreadPool(self._sub_polls)
            self._pool.start()
        self._started = True

    def run(self) -> None:
        """Drive the main poll on the calling thread until :meth:`shutdown`."""
        ensure(
            self._running_mode is RunningMode.ONE_POLL_PER_THREAD,
            "run() needs {}",
            RunningMode.ONE_POLL_PER_THREAD,
        )
        if not self._started:
            return
        self._main_poll.run()

    def poll(self) -> None:
        """Process whatever is ready now, without blocking."""
        ensure(
            self._running_mode is RunningMode.ALL_ONE_THREAD,
            "poll() needs {}",
            RunningMode.ALL_ONE_THREAD,
        )
        if not self._started:
            return
        self._main_poll.poll()

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _remove_conn(self, handle: int, conn: Conn) -> None:
        def _remove() -> None:
            ensure(handle in self._conns, "{} not in conns_", handle)
            # the handle may already belong to a newer connection
            if self._conns[handle] is conn:
                del self._conns[handle]

        self._main_poll.run_in_poll(_remove)

    def _on_acceptor_error(self, err: int) -> None:
        pass

    def _on_poll_error(self, event_poll: IOEventPoll, err: int) -> None:
        if self._user_poll_error_callback is not None:
            self._user_poll_error_callback(event_poll, err)

    def _on_new_connection(self, sock: socket.socket, peer: tuple) -> None:
        host, port = peer[0], peer[1]
        if not host or port == 0:
            sock.close()
            return
        if self._running_mode is RunningMode.ONE_POLL_PER_THREAD:
            event_poll = self._pool.next_poll() if self._pool is not None else None
            ensure(event_poll is not None, "no event poll for new connection")
        else:
            event_poll = self._main_poll
        conn = Conn(event_poll, sock)
        conn.set_remote_addr(host, port)
        if self._user_conn_callback is not None:
            self._user_conn_callback(conn)
        handle = conn.fileno()
        conn._set_on_close_holder(lambda: self._remove_conn(handle, conn))
        self._conns[handle] = conn
        event_poll.run_in_poll(conn._start)