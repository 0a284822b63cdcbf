"""
Tool ledger - pairs tool invocations with their results across a run.

Indexes every tool_use block (assistant events) and tool_result block (user events)
by invocation id, independent of how far apart the two halves arrive.

Causality rule: a result is only paired with an invocation registered by an
assistant event with a LOWER event index. A result with no such invocation is
orphaned - its outcome is still recorded, but nothing owns it.

The ledger is append-only. When the message list is replaced wholesale (replay
swap) build a fresh ledger with ToolLedger.from_events() rather than patching an
existing one.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import attrs

from run_stream.schemas.events import AssistantEvent, StreamEvent, UserEvent

__all__ = [
    'ToolInvocation',
    'ToolLedger',
    'ToolLookup',
    'ToolOutcome',
]


@attrs.frozen
class ToolInvocation:
    """Request half of a tool call."""

    tool_use_id: str
    name: str
    input: Any
    event_index: int  # Index of the assistant event that carried the tool_use block


@attrs.frozen
class ToolOutcome:
    """Response half of a tool call."""

    tool_use_id: str
    content: Any
    is_error: bool
    event_index: int  # Index of the user event that carried the tool_result block


@attrs.frozen
class ToolLookup:
    """Both halves of a tool call as far as they are known."""

    invocation: ToolInvocation | None = None
    outcome: ToolOutcome | None = None

    @property
    def is_pending(self) -> bool:
        return self.invocation is not None and self.outcome is None

    @property
    def is_orphaned(self) -> bool:
        return self.outcome is not None and self.invocation is None


@attrs.define
class ToolLedger:
    """Invocation-id indexed record of tool calls for one message history."""

    _invocations: dict[str, ToolInvocation] = attrs.field(factory=dict)
    _outcomes: dict[str, ToolOutcome] = attrs.field(factory=dict)
    _orphans: set[str] = attrs.field(factory=set)
    duplicate_results: int = 0  # tool_result blocks ignored because the id already had an outcome
    _next_index: int = 0

    @classmethod
    def from_events(cls, events: Iterable[StreamEvent]) -> ToolLedger:
        """Build a ledger from scratch over a full message history."""
        ledger = cls()
        for event in events:
            ledger.record(event)
        return ledger

    def record(self, event: StreamEvent, index: int | None = None) -> None:
        """
        Ingest one event in arrival order.

        Args:
            event: The decoded event
            index: Position of the event in the message list (defaults to the next position)
        """
        if index is None:
            index = self._next_index
        self._next_index = max(self._next_index, index + 1)

        if isinstance(event, AssistantEvent):
            for tool_use in event.tool_uses():
                # First registration wins - ids are unique within a run
                self._invocations.setdefault(
                    tool_use.id,
                    ToolInvocation(
                        tool_use_id=tool_use.id,
                        name=tool_use.name,
                        input=tool_use.input,
                        event_index=index,
                    ),
                )
        elif isinstance(event, UserEvent):
            for tool_result in event.tool_results():
                tool_use_id = tool_result.tool_use_id
                if tool_use_id is None:
                    continue
                if tool_use_id in self._outcomes:
                    self.duplicate_results += 1
                    continue
                self._outcomes[tool_use_id] = ToolOutcome(
                    tool_use_id=tool_use_id,
                    content=tool_result.content,
                    is_error=bool(tool_result.is_error),
                    event_index=index,
                )
                invocation = self._invocations.get(tool_use_id)
                if invocation is None or invocation.event_index >= index:
                    self._orphans.add(tool_use_id)

    def lookup(self, tool_use_id: str) -> ToolLookup:
        """Return whatever is known about a tool call."""
        outcome = self._outcomes.get(tool_use_id)
        invocation = self._invocations.get(tool_use_id)
        if invocation is not None and outcome is not None and tool_use_id in self._orphans:
            # Invocation registered only after the result arrived - not causally paired
            invocation = None
        return ToolLookup(invocation=invocation, outcome=outcome)

    def invocation_before(self, tool_use_id: str, index: int) -> ToolInvocation | None:
        """The invocation for an id if an assistant event before `index` registered it."""
        invocation = self._invocations.get(tool_use_id)
        if invocation is None or invocation.event_index >= index:
            return None
        return invocation

    def owner_of(self, tool_use_id: str) -> str | None:
        """Name of the tool that owns a result, or None when the result is orphaned or unknown."""
        invocation = self.lookup(tool_use_id).invocation
        return invocation.name if invocation is not None else None

    @property
    def invocations(self) -> Mapping[str, ToolInvocation]:
        return dict(self._invocations)

    @property
    def outcomes(self) -> Mapping[str, ToolOutcome]:
        return dict(self._outcomes)

    def pending(self) -> list[ToolInvocation]:
        """Invocations that have no outcome yet, in registration order."""
        return [inv for tool_id, inv in self._invocations.items() if tool_id not in self._outcomes]

    def orphaned(self) -> list[ToolOutcome]:
        """Outcomes whose invocation never causally preceded them."""
        outcomes = [self._outcomes[tool_id] for tool_id in self._orphans]
        return sorted(outcomes, key=lambda outcome: outcome.event_index)
