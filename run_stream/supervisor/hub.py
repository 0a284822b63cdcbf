"""
In-process channel hub.

Implements the subscribe side of ProcessSupervisor for supervisors that live in the
same process (and for tests). Payloads published on a channel that has never had a
subscriber are held and flushed to its first subscriber, so output emitted before
the run id reaches the controller is not lost. Once a channel has been subscribed,
deliveries with no subscriber are dropped.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from run_stream.supervisor.protocol import CHANNEL_KINDS, ChannelHandler, Unsubscribe, channel_name


class ChannelHub:
    """Named synchronous channels with pre-subscription buffering."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[ChannelHandler]] = defaultdict(list)
        self._held: dict[str, list[Any]] = defaultdict(list)
        self._seen: set[str] = set()

    def subscribe(self, channel: str, handler: ChannelHandler) -> Unsubscribe:
        self._subscribers[channel].append(handler)
        first_subscriber = channel not in self._seen
        self._seen.add(channel)

        if first_subscriber:
            for payload in self._held.pop(channel, []):
                handler(payload)

        def unsubscribe() -> None:
            handlers = self._subscribers.get(channel)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._subscribers[channel]

        return unsubscribe

    def emit(self, channel: str, payload: Any = None) -> int:
        """
        Deliver a payload to every subscriber of a channel.

        Returns:
            Number of handlers the payload was delivered to (0 if held or dropped)
        """
        handlers = list(self._subscribers.get(channel, ()))
        if not handlers:
            if channel not in self._seen:
                self._held[channel].append(payload)
            return 0
        for handler in handlers:
            handler(payload)
        return len(handlers)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    def forget(self, run_id: int) -> None:
        """Drop held payloads and history for every channel of a run."""
        for kind in CHANNEL_KINDS:
            name = channel_name(kind, run_id)
            self._held.pop(name, None)
            self._seen.discard(name)
