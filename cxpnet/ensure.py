"""Runtime checks that raise with a formatted message."""

from __future__ import annotations

from typing import Any


class EnsureError(RuntimeError):
    """Raised when an :func:`ensure` condition does not hold."""


def ensure(condition: Any, fmt: str, *args: Any) -> None:
    """Raise :class:`EnsureError` with ``fmt.format(*args)`` unless ``condition`` is true."""
    if not condition:
        raise EnsureError(fmt.format(*args))