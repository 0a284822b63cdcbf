"""
Run record - the reconciled message log of one run.

Owns the ordered events, the raw lines they were decoded from, the tool ledger
over those events and the derived aggregates. Events and raw lines are
append-only; a wholesale replacement (replay swap) rebuilds the ledger from
scratch.
"""

from __future__ import annotations

from collections.abc import Sequence

import attrs

from run_stream.schemas.events import StreamEvent
from run_stream.schemas.runs import RunStatus, is_terminal
from run_stream.services.ledger import ToolLedger, ToolLookup
from run_stream.services.metrics import event_tokens, total_tokens
from run_stream.services.visibility import VisibilityFilter

__all__ = ['RunRecord', 'RunSnapshot']


@attrs.frozen
class RunSnapshot:
    """Immutable view of a run record handed to presentation code."""

    run_id: int | None
    status: RunStatus
    started_at: float | None
    messages: tuple[StreamEvent, ...]
    raw_lines: tuple[str, ...]
    total_tokens: int
    elapsed_seconds: float


@attrs.define
class RunRecord:
    """Mutable message log for one run."""

    run_id: int | None = None
    status: RunStatus = 'pending'
    started_at: float | None = None  # Clock seconds
    messages: list[StreamEvent] = attrs.field(factory=list)
    raw_lines: list[str] = attrs.field(factory=list)
    total_tokens: int = 0
    elapsed_seconds: float = 0.0
    ledger: ToolLedger = attrs.field(factory=ToolLedger)

    @classmethod
    def from_events(
        cls,
        run_id: int | None,
        status: RunStatus,
        events: Sequence[StreamEvent],
        raw_lines: Sequence[str] = (),
    ) -> RunRecord:
        """Build a record over an already reconciled history."""
        record = cls(run_id=run_id, status=status)
        record.replace_messages(events, raw_lines)
        return record

    def append(self, event: StreamEvent, *, count_tokens: bool = True) -> int:
        """
        Append one event and feed it to the ledger.

        Args:
            event: Decoded event
            count_tokens: False for synthetic events whose usage is a snapshot of the total

        Returns:
            Index of the event in the message list
        """
        index = len(self.messages)
        self.messages.append(event)
        self.ledger.record(event, index)
        if count_tokens:
            self.total_tokens += event_tokens(event)
        return index

    def append_raw(self, line: str) -> None:
        self.raw_lines.append(line)

    def replace_messages(self, events: Sequence[StreamEvent], raw_lines: Sequence[str] = ()) -> None:
        """Swap in a whole new history - the ledger is rebuilt, never diffed."""
        self.messages = list(events)
        self.raw_lines = list(raw_lines)
        self.ledger = ToolLedger.from_events(self.messages)
        self.total_tokens = total_tokens(self.messages)

    def transition(self, status: RunStatus) -> bool:
        """
        Move to a new status. Terminal statuses are final.

        Returns:
            True if the status changed
        """
        if is_terminal(self.status) or status == self.status:
            return False
        self.status = status
        return True

    def lookup_tool(self, tool_use_id: str) -> ToolLookup:
        return self.ledger.lookup(tool_use_id)

    def visibility(self) -> VisibilityFilter:
        return VisibilityFilter(self.ledger)

    def is_displayable(self, index: int) -> bool:
        return self.visibility().is_displayable(self.messages[index], index)

    def displayable_messages(self) -> list[StreamEvent]:
        return self.visibility().displayable(self.messages)

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self.run_id,
            status=self.status,
            started_at=self.started_at,
            messages=tuple(self.messages),
            raw_lines=tuple(self.raw_lines),
            total_tokens=self.total_tokens,
            elapsed_seconds=self.elapsed_seconds,
        )
