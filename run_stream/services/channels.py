"""
Per-run channel bus.

Multiplexes the four run-scoped supervisor channels (output, error, complete,
cancelled) into one ordered queue so the consumer sees a single stream of
ChannelEvents tagged by kind.

Supervisor callbacks are synchronous and only enqueue. One pump task awaits the
async handler for each event in arrival order. Releasing the bus unsubscribes all
four channels at once; events already queued are still delivered.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any

import attrs

from run_stream.protocols import LoggerProtocol, NullLogger
from run_stream.supervisor.protocol import CHANNEL_KINDS, ChannelKind, ProcessSupervisor, Unsubscribe, channel_name

__all__ = ['ChannelEvent', 'RunChannels']


@attrs.frozen
class ChannelEvent:
    """One delivery on one of a run's channels."""

    run_id: int
    kind: ChannelKind
    payload: Any = None


class RunChannels:
    """Subscription to the four channels of one run."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        run_id: int,
        handler: Callable[[ChannelEvent], Awaitable[None]],
        logger: LoggerProtocol | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.run_id = run_id
        self.handler = handler
        self.logger = logger or NullLogger()
        self._queue: asyncio.Queue[ChannelEvent | None] = asyncio.Queue()
        self._unsubscribes: list[Unsubscribe] = []
        self._pump: asyncio.Task[None] | None = None
        self._released = False

    @property
    def is_open(self) -> bool:
        return self._pump is not None and not self._released

    def open(self) -> None:
        """
        Subscribe to all four channels. Must be called from the event loop.

        Payloads the supervisor held for these channels may be delivered during
        this call; they are queued like any other delivery.
        """
        if self._pump is not None:
            raise RuntimeError(f'Channels for run {self.run_id} are already open')
        self._pump = asyncio.get_running_loop().create_task(self._run())
        for kind in CHANNEL_KINDS:
            handler = functools.partial(self._enqueue, kind)
            self._unsubscribes.append(self.supervisor.subscribe(channel_name(kind, self.run_id), handler))

    def release(self) -> None:
        """Unsubscribe from every channel (idempotent). Queued events still drain."""
        if self._released:
            return
        self._released = True
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes.clear()
        if self._pump is not None:
            self._queue.put_nowait(None)

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        if self._pump is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        """Release and wait for the pump to finish."""
        self.release()
        if self._pump is not None:
            await self._pump

    def _enqueue(self, kind: ChannelKind, payload: Any = None) -> None:
        if self._released:
            return
        self._queue.put_nowait(ChannelEvent(run_id=self.run_id, kind=kind, payload=payload))

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                if event is None:
                    return
                await self.handler(event)
            except Exception as e:
                await self.logger.error(f'Run {self.run_id}: failed to handle {event.kind} event: {e}')
            finally:
                self._queue.task_done()
