# cxpnet

A compact, reactor-style TCP networking library built on the standard
library's `selectors` and `socket` modules. An `IOEventPoll` runs an event loop
over non-blocking sockets; a `Server` accepts connections and hands them out to
one or more polls, a `Connector` opens outgoing connections, and every live
connection is a `Conn` with its own read and write `Buffer`.

It has no dependencies outside the standard library.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Building blocks

- `cxpnet.buffer.Buffer`: a growable byte buffer with separate read and write
  positions. `append()` takes bytes-like data or text (encoded as UTF-8),
  `peek()` returns the readable bytes, `retrieve(n)` consumes them, and
  `writable_view()` / `been_written(n)` let a socket `recv_into` the free tail.
  Consuming or committing more bytes than are there raises `EnsureError`.
- `cxpnet.event_poll.IOEventPoll`: the event loop. `run()` blocks on the calling
  thread until `shutdown()`; `poll()` processes what is ready without blocking;
  `run_in_poll(func)` runs `func` at once on the loop's thread or queues it
  there from any other thread. `close()` (or leaving a `with` block) releases
  its resources. `set_error_callback(func)` is called with the poll and an
  errno value when polling fails.
- `cxpnet.thread_pool.PollThreadPool`: runs a set of polls on their own threads
  with `start()`, stops them with `shutdown()`, and hands them out round-robin
  with `next_poll()`.
- `cxpnet.acceptor.Acceptor`: a listening socket registered on a poll. Each
  accepted socket and its peer address go to the callback given to
  `set_connection_callback()`; accept failures go to `set_error_callback()`.
- `cxpnet.conn.Conn`: one TCP connection.
  - `set_conn_user_callbacks(message_func, close_func)`: `message_func(conn,
    buffer)` is called for each chunk read; the buffer is cleared afterwards,
    so take what you need inside the callback. `close_func(conn, err)` is
    called once when the connection ends.
  - `send(data, func=None)` writes at once or queues what could not be
    written; `func(ok)` reports whether the data was accepted.
  - `shutdown()` half-closes once pending output is written; `close()` closes
    at once.
  - `set_watermark(high, low)` and `set_watermark_callback(func)`: `func` is
    called with the high mark when queued output exceeds it, and with the low
    mark once it has drained back down. Defaults are 1 MiB and 256 KiB.
  - `set_read_write_buffer_size(read_size, write_size)` replaces both buffers.
  - `remote_addr_and_port()`, `fileno()`, `connected()`.
- `cxpnet.connector.Connector`: starts a non-blocking connect on the poll's
  thread and delivers a started `Conn` to `set_conn_user_callback()`, or an
  errno value to `set_error_user_callback()`. Only literal IPv4 and IPv6
  addresses are accepted; host names are not resolved.
- `cxpnet.server.Server`: ties an acceptor to a main poll and, optionally, a
  pool of worker polls. `connection_count` tells how many connections it holds.
- `cxpnet.platform`: socket helpers (`get_sockaddr`, `listen`, `accept`,
  `connect`, `shut_wr`, `handle_error_action`) and `Waker`, the handle other
  threads signal to wake a poll.
- `cxpnet.types`: `ProtocolStack`, `IPType`, `RunningMode`, `State`,
  `SocketOption` and `ip_address_type()`.

## An echo server

```python
from cxpnet.server import Server
from cxpnet.types import RunningMode, SocketOption


def on_message(conn, buffer):
    conn.send(buffer.peek())


def on_close(conn, err):
    print("closed", conn.remote_addr_and_port(), err)


def on_connection(conn):
    conn.set_conn_user_callbacks(on_message, on_close)


server = Server("127.0.0.1", 9090, option=SocketOption.REUSE_ADDR)
server.set_thread_num(4)
server.set_conn_user_callback(on_connection)
server.start(RunningMode.ONE_POLL_PER_THREAD)
server.run()
```

`start()` does nothing unless `set_thread_num()` was given a positive number,
and raises `OSError` if the address cannot be listened on.

With `RunningMode.ONE_POLL_PER_THREAD` each connection is served by one of the
worker polls in turn and `run()` drives the main poll until `shutdown()`. With
`RunningMode.ALL_ONE_THREAD` everything is served on the main poll, driven by
calling `poll()` repeatedly. Calling `run()` or `poll()` in the other mode
raises `EnsureError`.

## A client

`cxpnet.client.Client` connects through a `Connector`, echoes back whatever it
receives and, after `reconnect_delay` seconds (1.0 by default; `None` turns it
off), connects again when the connection or the connect attempt fails:

```python
from cxpnet.client import Client
from cxpnet.event_poll import IOEventPoll

with IOEventPoll() as poll:
    client = Client(poll, "127.0.0.1", 9090)
    client.connect()
    poll.run()
```

`send()` raises `RuntimeError` until a connection has been made.

The same client runs from the command line, by default against
`127.0.0.1:9090`; an address and port may be given:

```
cxpnet-client
cxpnet-client 127.0.0.1 9090
```

It runs until interrupted with Ctrl-C.

## What it does not do

There is no command that starts a server; a server is written in Python with
`Server` as shown above. There is no TLS, no name resolution and no timers
beyond the client's reconnect delay.

## Checks

`cxpnet.ensure.ensure(condition, fmt, *args)` raises `EnsureError` with
`fmt.format(*args)` when a condition does not hold; the library uses it for
misuse such as consuming more bytes than a buffer holds.