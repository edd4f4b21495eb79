import errno
import socket
import time

import pytest

from cxpnet.client import Client, main
from cxpnet.event_poll import IOEventPoll


def _pump(event_poll, predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        event_poll.poll()
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _recv_polling(event_poll, sock, size, timeout=5.0):
    sock.settimeout(0.01)
    data = b""
    deadline = time.monotonic() + timeout
    while len(data) < size and time.monotonic() < deadline:
        event_poll.poll()
        try:
            chunk = sock.recv(size - len(data))
        except socket.timeout:
            continue
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def listener():
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    sock.listen()
    sock.settimeout(5)
    yield sock
    sock.close()


@pytest.fixture
def event_poll():
    with IOEventPoll() as poll:
        yield poll


def _connected_pair(event_poll, listener, reconnect_delay=None):
    client = Client(event_poll, "127.0.0.1", listener.getsockname()[1], reconnect_delay)
    client.connect()
    assert _pump(event_poll, lambda: client.connected)
    peer, _ = listener.accept()
    return client, peer


def test_send_before_connect_raises(event_poll, listener):
    client = Client(event_poll, "127.0.0.1", listener.getsockname()[1], None)
    with pytest.raises(RuntimeError):
        client.send(b"data")


def test_echoes_received_data(event_poll, listener):
    client, peer = _connected_pair(event_poll, listener)
    with peer:
        peer.sendall(b"ping")
        assert _recv_polling(event_poll, peer, 4) == b"ping"


def test_send_reports_success(event_poll, listener):
    client, peer = _connected_pair(event_poll, listener)
    results = []
    with peer:
        client.send(b"hello", results.append)
        assert results == [True]
        assert _recv_polling(event_poll, peer, 5) == b"hello"


def test_disconnect_half_closes_and_reports_close(event_poll, listener, capsys):
    client, peer = _connected_pair(event_poll, listener)
    client.disconnect()
    assert client.connected is False
    assert _recv_polling(event_poll, peer, 1) == b""
    peer.close()
    output = []

    def closed():
        output.append(capsys.readouterr().out)
        return "closed, reason err: 0" in "".join(output)

    assert _pump(event_poll, closed)


def test_connect_refused_reports_error(event_poll):
    with socket.socket() as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]
    client = Client(event_poll, "127.0.0.1", port, None)
    output = []

    def reported(capture=output):
        return "connector closed err:" in "".join(capture)

    import sys

    class _Capture:
        def write(self, text):
            output.append(text)

        def flush(self):
            pass

    saved = sys.stdout
    sys.stdout = _Capture()
    try:
        client.connect()
        assert _pump(event_poll, reported)
    finally:
        sys.stdout = saved
    line = "".join(output).strip().splitlines()[0]
    assert int(line.rsplit(":", 1)[1]) == errno.ECONNREFUSED
    assert client.connected is False


def test_reconnects_after_peer_closes(event_poll, listener):
    client, first = _connected_pair(event_poll, listener, reconnect_delay=0.01)
    first.close()
    listener.settimeout(0.01)
    accepted = []

    def second_connection():
        try:
            accepted.append(listener.accept()[0])
        except socket.timeout:
            return False
        return True

    assert _pump(event_poll, second_connection)
    with accepted[0] as second:
        assert second.getpeername()[0] == "127.0.0.1"
        assert _pump(event_poll, lambda: client.connected)
        assert client.connected is True
        second.sendall(b"again")
        assert _recv_polling(event_poll, second, 5) == b"again"


def test_main_rejects_bad_port():
    with pytest.raises(SystemExit) as info:
        main(["127.0.0.1", "not-a-port"])
    assert info.value.code == 2