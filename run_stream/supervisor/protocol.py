"""
Process supervisor protocol.

Defines the interface of the component that spawns and kills agent processes and
publishes their output on run-scoped channels.

Channels (one set per run id):
- output:{run_id}     one raw JSON line per delivery (str)
- error:{run_id}      out-of-band error text (str), not terminal by itself
- complete:{run_id}   process exited (bool - True means clean success)
- cancelled:{run_id}  run cancelled externally (payload unused)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Literal, Protocol, runtime_checkable

ChannelKind = Literal['output', 'error', 'complete', 'cancelled']
CHANNEL_KINDS: tuple[ChannelKind, ...] = ('output', 'error', 'complete', 'cancelled')

ChannelHandler = Callable[[Any], None]
Unsubscribe = Callable[[], None]


def channel_name(kind: ChannelKind, run_id: int) -> str:
    """Run-scoped channel name, e.g. 'output:42'."""
    return f'{kind}:{run_id}'


@runtime_checkable
class ProcessSupervisor(Protocol):
    """Protocol for the external agent process supervisor."""

    async def start(self, agent_id: int, working_directory: str, task: str, model: str) -> int:
        """
        Launch an agent run.

        Args:
            agent_id: Agent definition to run
            working_directory: Project directory the agent works in
            task: Task prompt
            model: Model alias

        Returns:
            The new run id

        Raises:
            Exception: Any error means the process could not be launched
        """
        ...

    async def stop(self, run_id: int) -> bool:
        """
        Request termination of a run.

        Returns:
            False if the run had already finished or is unknown
        """
        ...

    def subscribe(self, channel: str, handler: ChannelHandler) -> Unsubscribe:
        """
        Subscribe to a run-scoped channel.

        Handlers are called synchronously, in delivery order, and must not block.

        Returns:
            Callable that removes the subscription (idempotent)
        """
        ...
