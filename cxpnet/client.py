"""An echoing TCP client that reconnects whenever its connection ends."""

from __future__ import annotations

import argparse
import threading
from typing import Callable, List, Optional

from cxpnet.buffer import Buffer
from cxpnet.conn import Conn, Data
from cxpnet.connector import Connector
from cxpnet.event_poll import IOEventPoll

SentCallback = Callable[[bool], None]


class Client:
    """Connects to a server, echoes back what it receives, and reconnects.

    ``reconnect_delay`` is the pause in seconds before a new attempt after a
    failed connect or a closed connection; None disables reconnecting.
    """

    def __init__(
        self,
        event_poll: IOEventPoll,
        addr: str,
        port: int,
        reconnect_delay: Optional[float] = 1.0,
    ) -> None:
        self._event_poll = event_poll
        self._addr = addr
        self._port = port
        self._reconnect_delay = reconnect_delay
        self._conn: Optional[Conn] = None
        self._connector = Connector(event_poll, addr, port)
        self._connector.set_conn_user_callback(self._on_connection)
        self._connector.set_error_user_callback(self._on_connector_error)

    @property
    def connected(self) -> bool:
        return self._conn is not None and self._conn.connected()

    def connect(self) -> None:
        """Start connecting."""
        self._connector.start()

    def disconnect(self) -> None:
        """Close the connection gracefully once pending output is written."""
        if self._conn is not None:
            self._conn.shutdown()

    def send(self, data: Data, func: Optional[SentCallback] = None) -> None:
        """Send ``data`` on the connection; raises RuntimeError before connecting."""
        if self._conn is None:
            raise RuntimeError("client is not connected")
        self._conn.send(data, func)

    def _reconnect(self) -> None:
        if self._reconnect_delay is None:
            return
        timer = threading.Timer(self._reconnect_delay, self.connect)
        timer.daemon = True
        timer.start()

    def _on_conn_message(self, conn: Conn, buffer: Buffer) -> None:
        conn.send(buffer.peek())

    def _on_conn_close(self, conn: Conn, err: int) -> None:
        print(f"{conn.fileno()} closed, reason err: {err}", flush=True)
        self._reconnect()

    def _on_connection(self, conn: Conn) -> None:
        self._conn = conn
        conn.set_conn_user_callbacks(self._on_conn_message, self._on_conn_close)

    def _on_connector_error(self, err: int) -> None:
        print(f"connector closed err: {err}", flush=True)
        self._reconnect()


def main(argv: Optional[List[str]] = None) -> int:
    """Run an echoing client against ``addr:port`` until interrupted."""
    parser = argparse.ArgumentParser(description="Echo client that reconnects on failure.")
    parser.add_argument("addr", nargs="?", default="127.0.0.1")
    parser.add_argument("port", nargs="?", type=int, default=9090)
    args = parser.parse_args(argv)
    with IOEventPoll() as event_poll:
        client = Client(event_poll, args.addr, args.port)
        client.connect()
        try:
            event_poll.run()
        except KeyboardInterrupt:
            event_poll.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())