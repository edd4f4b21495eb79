"""Shared enumerations, options and address classification."""

from __future__ import annotations

import enum
import socket

MAX_POLL_EVENT_COUNT = 64
POLL_TIMEOUT_MS = 10000


class ProtocolStack(enum.Enum):
    """Which IP versions a listening socket accepts."""

    IPV4_ONLY = enum.auto()
    IPV6_ONLY = enum.auto()
    DUAL_STACK = enum.auto()


class IPType(enum.Enum):
    """Kind of a textual IP address."""

    INVALID = enum.auto()
    IPV4 = enum.auto()
    IPV6 = enum.auto()


class RunningMode(enum.Enum):
    """How a server distributes connections over event polls."""

    ONE_POLL_PER_THREAD = enum.auto()
    ALL_ONE_THREAD = enum.auto()


class State(enum.Enum):
    """Connection life-cycle state."""

    DISCONNECTED = enum.auto()
    CONNECTING = enum.auto()
    CONNECTED = enum.auto()
    DISCONNECTING = enum.auto()


class SocketOption(enum.IntFlag):
    """Options applied to a listening socket."""

    NONE = 0
    REUSE_PORT = 1 << 0
    REUSE_ADDR = 1 << 1


def ip_address_type(address: str) -> IPType:
    """Classify ``address`` as an IPv4 or IPv6 literal, or as invalid."""
    if not address:
        return IPType.INVALID
    for family, kind in ((socket.AF_INET, IPType.IPV4), (socket.AF_INET6, IPType.IPV6)):
        try:
            socket.inet_pton(family, address)
        except (OSError, ValueError):
            continue
        return kind
    return IPType.INVALID