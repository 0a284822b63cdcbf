"""
Pydantic models for agent stream events.

One JSON object per line is emitted by the agent process on its output channel.
This module defines the types for those objects as an open discriminated union.

Known event kinds:
- system: run metadata, emitted once near run start (subtype='init')
- assistant: model turn with text/thinking/tool_use content blocks
- user: user turn, usually carrying tool_result blocks
- result: run terminator with cost, duration and usage totals
- summary: session-summary pseudo-event

Key findings from real agent output:
- The format is extensible, so every model keeps unknown fields (extra='allow')
- User message content can be a plain string or a list of content blocks
- Token usage lives in message.usage (assistant) or top-level usage (result)
- Durable transcripts predating the type field omit it entirely

Anything that does not validate as a known kind becomes an UnknownEvent instead of
being dropped, so every decoded object still reaches the visibility filter.

Round-trip serialization:
- Use model_dump(exclude_unset=True, mode='json') to preserve original JSON structure
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal, Union

import pydantic

from run_stream.schemas.types import PermissiveModel

# ==============================================================================
# Event Base
# ==============================================================================


class EventModel(PermissiveModel):
    """Base for every stream model - dict-style access across modeled and extra fields."""

    def get(self, name: str, default: Any = None) -> Any:
        """Return a field by its upstream name, whether modeled or captured as extra."""
        if name in type(self).model_fields:
            value = getattr(self, name)
            return default if value is None else value
        return (self.__pydantic_extra__ or {}).get(name, default)


# ==============================================================================
# Token Usage
# ==============================================================================


class Usage(EventModel):
    """Token usage counts (assistant message.usage or result usage)."""

    input_tokens: int = 0
    output_tokens: int = 0

    @pydantic.field_validator('input_tokens', 'output_tokens', mode='before')
    @classmethod
    def _missing_count_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @property
    def total(self) -> int:
        return self.input_tokens + self.output_tokens


# ==============================================================================
# Message Content Types (Discriminated Union)
# ==============================================================================


class TextContent(EventModel):
    """Text content block from user or assistant messages."""

    type: Literal['text']
    text: str = ''


class ThinkingContent(EventModel):
    """Thinking content block from assistant messages."""

    type: Literal['thinking']
    thinking: str = ''


class ToolUseContent(EventModel):
    """Tool use content block from assistant messages."""

    type: Literal['tool_use']
    id: str
    name: str = ''
    input: Any = None  # Opaque - rendered by tool widgets, never inspected here


class ToolResultContent(EventModel):
    """Tool result content block from user messages."""

    type: Literal['tool_result']
    tool_use_id: str | None = None
    content: Any = None  # String, list of content blocks, or missing
    is_error: bool | None = None

    def content_text(self) -> str:
        """Flatten the result payload into display text."""
        content = self.content
        if content is None:
            return ''
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts = []
            for item in content:
                if isinstance(item, Mapping) and isinstance(item.get('text'), str):
                    parts.append(item['text'])
                else:
                    parts.append(json.dumps(item))
            return '\n'.join(parts)
        return json.dumps(content)


class UnknownContent(EventModel):
    """Content block of a type not modeled above (images, documents, future kinds)."""

    type: Any = None


_CONTENT_TAGS = frozenset({'text', 'thinking', 'tool_use', 'tool_result'})


def _content_tag(value: Any) -> str:
    block_type = value.get('type') if isinstance(value, Mapping) else getattr(value, 'type', None)
    return block_type if isinstance(block_type, str) and block_type in _CONTENT_TAGS else 'unknown'


ContentBlock = Annotated[
    Union[
        Annotated[TextContent, pydantic.Tag('text')],
        Annotated[ThinkingContent, pydantic.Tag('thinking')],
        Annotated[ToolUseContent, pydantic.Tag('tool_use')],
        Annotated[ToolResultContent, pydantic.Tag('tool_result')],
        Annotated[UnknownContent, pydantic.Tag('unknown')],
    ],
    pydantic.Discriminator(_content_tag),
]


# ==============================================================================
# Message Structure
# ==============================================================================


class EventMessage(EventModel):
    """The message payload nested in assistant and user events."""

    role: str | None = None
    content: str | list[ContentBlock] | None = None
    usage: Usage | None = None


class _MessageEvent(EventModel):
    """Shared helpers for events that carry a nested message."""

    message: EventMessage | None = None

    def content_blocks(self) -> Sequence[ContentBlock]:
        """Content blocks of the nested message (empty for string or missing content)."""
        if self.message is None or not isinstance(self.message.content, list):
            return ()
        return self.message.content


# ==============================================================================
# Stream Events
# ==============================================================================


class SystemEvent(EventModel):
    """System event carrying run metadata (subtype='init' at run start)."""

    type: Literal['system']
    subtype: str | None = None
    session_id: str | None = None
    model: str | None = None
    cwd: str | None = None
    tools: list[str] | None = None


class AssistantEvent(_MessageEvent):
    """Assistant turn - text, thinking and tool_use blocks, optional message.usage."""

    type: Literal['assistant']

    def tool_uses(self) -> list[ToolUseContent]:
        return [block for block in self.content_blocks() if isinstance(block, ToolUseContent)]


class UserEvent(_MessageEvent):
    """User turn - text or tool_result blocks, possibly internal bookkeeping."""

    type: Literal['user']
    isMeta: bool | None = None
    summary: Any = None
    leafUuid: str | None = None

    def tool_results(self) -> list[ToolResultContent]:
        return [block for block in self.content_blocks() if isinstance(block, ToolResultContent)]


class ResultEvent(EventModel):
    """Run terminator with outcome and accounting."""

    type: Literal['result']
    subtype: str | None = None
    is_error: bool | None = None
    result: str | None = None
    error: str | None = None
    cost_usd: float | None = None
    duration_ms: float | None = None
    num_turns: int | None = None
    usage: Usage | None = None


class SummaryEvent(EventModel):
    """Session summary pseudo-event."""

    type: Literal['summary']
    summary: Any = None
    leafUuid: str | None = None


class UnknownEvent(EventModel):
    """Any JSON object that is not a recognised event - kept verbatim, never dropped."""

    type: Any = None


_EVENT_TAGS = frozenset({'system', 'assistant', 'user', 'result', 'summary'})


def _event_tag(value: Any) -> str:
    event_type = value.get('type') if isinstance(value, Mapping) else getattr(value, 'type', None)
    return event_type if isinstance(event_type, str) and event_type in _EVENT_TAGS else 'unknown'


StreamEvent = Annotated[
    Union[
        Annotated[SystemEvent, pydantic.Tag('system')],
        Annotated[AssistantEvent, pydantic.Tag('assistant')],
        Annotated[UserEvent, pydantic.Tag('user')],
        Annotated[ResultEvent, pydantic.Tag('result')],
        Annotated[SummaryEvent, pydantic.Tag('summary')],
        Annotated[UnknownEvent, pydantic.Tag('unknown')],
    ],
    pydantic.Discriminator(_event_tag),
]

StreamEventAdapter: pydantic.TypeAdapter[StreamEvent] = pydantic.TypeAdapter(StreamEvent)


# ==============================================================================
# Parsing / Serialization
# ==============================================================================


def parse_event(data: Mapping[str, Any], default_type: str | None = None) -> StreamEvent:
    """
    Validate a loosely-typed mapping into a StreamEvent.

    Args:
        data: Decoded JSON object
        default_type: Event type to assume when the mapping has none

    Returns:
        The typed event, or an UnknownEvent if the mapping does not fit a known kind
    """
    if default_type is not None and not data.get('type'):
        data = {**data, 'type': default_type}
    try:
        return StreamEventAdapter.validate_python(data)
    except pydantic.ValidationError:
        return UnknownEvent.model_validate(dict(data))


def event_to_dict(event: EventModel) -> dict[str, Any]:
    """Serialize an event back to its upstream JSON shape (unknown fields included)."""
    return event.model_dump(mode='json', exclude_unset=True)


def event_to_json_line(event: EventModel) -> str:
    """Serialize an event to one compact JSON line."""
    return json.dumps(event_to_dict(event), separators=(',', ':'))
