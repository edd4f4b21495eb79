"""Readiness polling over a set of channels."""

from __future__ import annotations

import selectors
from typing import Dict, List, Protocol

from cxpnet.channel import Channel
from cxpnet.ensure import ensure


class _Owner(Protocol):
    def is_in_poll_thread(self) -> bool: ...


class Poller:
    """Keeps channels registered with a selector and reports ready ones."""

    def __init__(self, owner_poll: _Owner) -> None:
        self._owner = owner_poll
        self._selector = selectors.DefaultSelector()
        self._channels: Dict[int, Channel] = {}

    def poll(self, timeout: int) -> List[Channel]:
        """Wait up to ``timeout`` milliseconds (negative: forever) for ready channels."""
        ensure(self._owner.is_in_poll_thread(), "Unsafe cross-thread operations")
        seconds = None if timeout < 0 else timeout / 1000
        active = []
        for key, mask in self._selector.select(seconds):
            channel: Channel = key.data
            ensure(
                self.has_channel(channel.handle),
                "Not found channel in epoll {}",
                channel.handle,
            )
            channel.set_result_events(mask)
            active.append(channel)
        return active

    def update_channel(self, channel: Channel) -> None:
        """Bring the selector in line with the channel's current interest."""
        handle = channel.handle
        if not channel.registered:
            ensure(not channel.is_none_event(), "EPOLL_CTL failed")
            self._channels[handle] = channel
            channel.registered = True
            self._selector.register(handle, channel.events, channel)
            return
        in_selector = handle in self._selector.get_map()
        if channel.is_none_event():
            if in_selector:
                self._selector.unregister(handle)
        elif in_selector:
            self._selector.modify(handle, channel.events, channel)
        else:
            self._selector.register(handle, channel.events, channel)

    def remove_channel(self, channel: Channel) -> None:
        """Forget a channel whose events were cleared."""
        handle = channel.handle
        ensure(self.has_channel(handle), "{} not in channels_", handle)
        ensure(self._channels[handle] is channel, "Duplicate channel")
        ensure(channel.is_none_event(), "Must invoke 'clear_event' first")
        del self._channels[handle]
        channel.registered = False
        if handle in self._selector.get_map():
            self._selector.unregister(handle)

    def has_channel(self, handle: int) -> bool:
        return handle in self._channels

    def shutdown(self) -> None:
        """Drop every channel."""
        for handle, channel in list(self._channels.items()):
            if handle in self._selector.get_map():
                self._selector.unregister(handle)
            channel.registered = False
        self._channels.clear()

    def close(self) -> None:
        self.shutdown()
        self._selector.close()