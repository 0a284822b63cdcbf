"""
Stream and run schemas.

Re-exports the public models so callers can import from run_stream.schemas directly.
"""

from __future__ import annotations

from run_stream.schemas.events import (
    AssistantEvent,
    ContentBlock,
    EventMessage,
    EventModel,
    ResultEvent,
    StreamEvent,
    StreamEventAdapter,
    SummaryEvent,
    SystemEvent,
    TextContent,
    ThinkingContent,
    ToolResultContent,
    ToolUseContent,
    UnknownContent,
    UnknownEvent,
    Usage,
    UserEvent,
    event_to_dict,
    event_to_json_line,
    parse_event,
)
from run_stream.schemas.runs import TERMINAL_STATUSES, RunInfo, RunMetrics, RunStatus, is_terminal

__all__ = [
    'AssistantEvent',
    'ContentBlock',
    'EventMessage',
    'EventModel',
    'ResultEvent',
    'RunInfo',
    'RunMetrics',
    'RunStatus',
    'StreamEvent',
    'StreamEventAdapter',
    'SummaryEvent',
    'SystemEvent',
    'TERMINAL_STATUSES',
    'TextContent',
    'ThinkingContent',
    'ToolResultContent',
    'ToolUseContent',
    'UnknownContent',
    'UnknownEvent',
    'Usage',
    'UserEvent',
    'event_to_dict',
    'event_to_json_line',
    'is_terminal',
    'parse_event',
]
