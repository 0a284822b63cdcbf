"""
Visibility filter - decides which events are rendered on their own.

Each event is either shown, suppressed because a dedicated tool widget already
renders it merged with its invocation, or dropped as bookkeeping noise.

Claim detection walks the FULL event history through the tool ledger, never the
filtered display list: a tool_use whose assistant event is itself hidden still
claims its result.
"""

from __future__ import annotations

from collections.abc import Sequence

from run_stream.schemas.events import StreamEvent, TextContent, ToolResultContent, UserEvent
from run_stream.services.ledger import ToolLedger

__all__ = [
    'MCP_TOOL_PREFIX',
    'WIDGET_TOOL_NAMES',
    'VisibilityFilter',
    'has_dedicated_widget',
    'is_displayable',
]

# Tools whose results are rendered inside the invocation widget (lowercase)
WIDGET_TOOL_NAMES = frozenset({'task', 'edit', 'multiedit', 'todowrite', 'ls', 'read', 'glob', 'bash', 'write', 'grep'})

# MCP tool names follow mcp__{server}__{operation}
MCP_TOOL_PREFIX = 'mcp__'


def has_dedicated_widget(tool_name: str) -> bool:
    """Whether a tool's results are rendered by its invocation widget."""
    return tool_name.lower() in WIDGET_TOOL_NAMES or tool_name.startswith(MCP_TOOL_PREFIX)


class VisibilityFilter:
    """
    Display decisions for one message history.

    The ledger must cover the full, unfiltered history the indexes refer to.
    """

    def __init__(self, ledger: ToolLedger) -> None:
        self.ledger = ledger

    def is_displayable(self, event: StreamEvent, index: int) -> bool:
        """
        Decide whether an event is shown as its own entry.

        Args:
            event: The event
            index: Position of the event in the full history

        Returns:
            False if the event is noise or fully claimed by tool widgets
        """
        is_meta = bool(event.get('isMeta'))

        # Bookkeeping noise - summary pseudo-events survive
        if is_meta and not event.get('leafUuid') and not event.get('summary'):
            return False

        if not isinstance(event, UserEvent):
            return True

        if is_meta:
            return False

        message = event.message
        if message is None:
            # Session summary pseudo-event, rendered specially
            return True

        content = message.content
        if not content:
            return False

        if isinstance(content, str):
            return True

        return any(self._is_block_visible(block, index) for block in content)

    def is_claimed(self, tool_result: ToolResultContent, index: int) -> bool:
        """Whether a dedicated widget renders this result together with its invocation."""
        if not tool_result.tool_use_id:
            return False
        invocation = self.ledger.invocation_before(tool_result.tool_use_id, index)
        return invocation is not None and has_dedicated_widget(invocation.name)

    def displayable(self, events: Sequence[StreamEvent]) -> list[StreamEvent]:
        """The events that should be rendered, in order."""
        return [event for index, event in enumerate(events) if self.is_displayable(event, index)]

    def _is_block_visible(self, block: object, index: int) -> bool:
        if isinstance(block, TextContent):
            return True
        if isinstance(block, ToolResultContent):
            return not self.is_claimed(block, index)
        return False


def is_displayable(event: StreamEvent, index: int, all_events: Sequence[StreamEvent]) -> bool:
    """
    Stand-alone display decision for one event of a history.

    Builds a ledger over the history preceding the event. Prefer a long-lived
    VisibilityFilter when deciding for many events of the same history.
    """
    return VisibilityFilter(ToolLedger.from_events(all_events[:index])).is_displayable(event, index)
