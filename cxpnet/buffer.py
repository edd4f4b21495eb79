"""A growable byte buffer with separate read and write positions."""

from __future__ import annotations

from typing import Union

from cxpnet.ensure import ensure

BytesLike = Union[bytes, bytearray, memoryview, str]


class Buffer:
    """Byte buffer: data is appended at the write end and consumed from the read end."""

    def __init__(self, initial_capacity: int = 8192) -> None:
        self._data = bytearray(initial_capacity)
        self._read = 0
        self._write = 0

    @property
    def capacity(self) -> int:
        """Total number of bytes the buffer currently holds room for."""
        return len(self._data)

    def __len__(self) -> int:
        return self.readable_size()

    def clear(self) -> None:
        """Discard all readable data."""
        self._read = self._write = 0

    def readable_size(self) -> int:
        return self._write - self._read

    def writable_size(self) -> int:
        return len(self._data) - self._write

    def peek(self) -> bytes:
        """Return a copy of the readable bytes without consuming them."""
        return bytes(self._data[self._read:self._write])

    def retrieve(self, length: int) -> None:
        """Mark ``length`` readable bytes as consumed."""
        ensure(
            length <= self.readable_size(),
            "len: {} > readable_size: {}",
            length,
            self.readable_size(),
        )
        self._read += length

    def writable_view(self) -> memoryview:
        """Return a writable view of the free tail, e.g. for ``recv_into``.

        Release the view before the buffer needs to grow.
        """
        return memoryview(self._data)[self._write:]

    def been_written(self, length: int) -> None:
        """Record that ``length`` bytes were written into :meth:`writable_view`."""
        ensure(
            length <= self.writable_size(),
            "len: {} > writable_size: {}",
            length,
            self.writable_size(),
        )
        self._write += length

    def append(self, data: BytesLike) -> None:
        """Copy ``data`` (bytes-like, or text encoded as UTF-8) to the write end."""
        if isinstance(data, str):
            data = data.encode()
        length = len(memoryview(data).cast("B"))
        ensure(length > 0, "append size must > 0")
        self.ensure_writable_size(length)
        self._data[self._write:self._write + length] = data
        self._write += length

    def ensure_writable_size(self, length: int) -> None:
        """Make room for at least ``length`` more bytes, compacting or growing."""
        head = self._read
        tail = self.writable_size()
        if tail >= length:
            return
        readable = self.readable_size()
        if head + tail >= length:
            self._data[0:readable] = self._data[self._read:self._write]
        else:
            grown = bytearray(len(self._data) * 2 + length)
            grown[0:readable] = self._data[self._read:self._write]
            self._data = grown
        self._read = 0
        self._write = readable