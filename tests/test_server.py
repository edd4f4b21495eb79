import socket
import threading
import time

import pytest

from cxpnet.conn import Conn
from cxpnet.ensure import EnsureError
from cxpnet.server import Server
from cxpnet.types import RunningMode, SocketOption


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _echo(conn: Conn) -> None:
    conn.set_conn_user_callbacks(lambda c, buf: c.send(buf.peek()), None)


def _recv_polling(server, sock, size, timeout=5.0):
    sock.settimeout(0.01)
    data = b""
    deadline = time.monotonic() + timeout
    while len(data) < size and time.monotonic() < deadline:
        server.poll()
        try:
            chunk = sock.recv(size - len(data))
        except socket.timeout:
            continue
        if not chunk:
            break
        data += chunk
    return data


def _poll_until(server, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        server.poll()
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _recv_exact(sock, size):
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def port():
    return _free_port()


@pytest.fixture
def one_thread_server(port):
    server = Server("127.0.0.1", port, option=SocketOption.REUSE_ADDR)
    server.set_thread_num(1)
    yield server
    server.shutdown()


def test_echo_all_one_thread(one_thread_server, port):
    one_thread_server.set_conn_user_callback(_echo)
    one_thread_server.start(RunningMode.ALL_ONE_THREAD)
    with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
        client.sendall(b"hello")
        assert _recv_polling(one_thread_server, client, 5) == b"hello"


def test_connection_callback_sees_remote_address(one_thread_server, port):
    seen = []
    one_thread_server.set_conn_user_callback(seen.append)
    one_thread_server.start(RunningMode.ALL_ONE_THREAD)
    with socket.create_connection(("127.0.0.1", port), timeout=5) as client:
        assert _poll_until(one_thread_server, lambda: len(seen) == 1)
        assert seen[0].remote_addr_and_port() == client.getsockname()
        assert one_thread_server.connection_count == 1


def test_close_by_peer_reports_and_removes(one_thread_server, port):
    closed = []

    def on_conn(conn):
        conn.set_conn_user_callbacks(None, lambda c, err: closed.append(err))

    one_thread_server.set_conn_user_callback(on_conn)
    one_thread_server.start(RunningMode.ALL_ONE_THREAD)
    client = socket.create_connection(("127.0.0.1", port), timeout=5)
    assert _poll_until(one_thread_server, lambda: one_thread_server.connection_count == 1)
    client.close()
    assert _poll_until(one_thread_server, lambda: closed)
    assert closed == [0]
    assert one_thread_server.connection_count == 0


def test_start_without_threads_does_not_listen(port):
    server = Server("127.0.0.1", port)
    server.set_thread_num(0)
    server.start(RunningMode.ALL_ONE_THREAD)
    try:
        with pytest.raises(ConnectionRefusedError):
            socket.create_connection(("127.0.0.1", port), timeout=5)
    finally:
        server.shutdown()


def test_invalid_address_raises(port):
    server = Server("not-an-address", port)
    server.set_thread_num(1)
    with pytest.raises(OSError):
        server.start(RunningMode.ALL_ONE_THREAD)
    server.shutdown()


def test_run_requires_thread_per_poll_mode(one_thread_server):
    one_thread_server.start(RunningMode.ALL_ONE_THREAD)
    with pytest.raises(EnsureError):
        one_thread_server.run()


def test_poll_requires_one_thread_mode(port):
    server = Server("127.0.0.1", port, option=SocketOption.REUSE_ADDR)
    server.set_thread_num(1)
    server.start(RunningMode.ONE_POLL_PER_THREAD)
    try:
        with pytest.raises(EnsureError):
            server.poll()
    finally:
        server.shutdown()


def test_echo_one_poll_per_thread(port):
    server = Server("127.0.0.1", port, option=SocketOption.REUSE_ADDR)
    server.set_thread_num(2)
    server.set_conn_user_callback(_echo)
    server.start(RunningMode.ONE_POLL_PER_THREAD)
    runner = threading.Thread(target=server.run, daemon=True)
    runner.start()
    clients = []
    try:
        for index in range(3):
            client = socket.create_connection(("127.0.0.1", port), timeout=5)
            clients.append(client)
            message = f"message-{index}".encode()
            client.sendall(message)
            assert _recv_exact(client, len(message)) == message
    finally:
        for client in clients:
            client.close()
        server.shutdown()
        runner.join(5)
    assert not runner.is_alive()