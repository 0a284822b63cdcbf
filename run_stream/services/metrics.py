"""
Token accounting over decoded events.

Usage appears in one of two places: nested message.usage (assistant turns) or
top-level usage (result events). Both locations are checked for every event.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

import pydantic

from run_stream.schemas.events import EventMessage, EventModel, StreamEvent, Usage

__all__ = ['event_tokens', 'event_usage', 'total_tokens']


def event_usage(event: EventModel) -> Usage | None:
    """Usage carried by an event, nested location first."""
    message = event.get('message')
    if isinstance(message, EventMessage) and message.usage is not None:
        return message.usage
    if isinstance(message, Mapping) and isinstance(message.get('usage'), Mapping):
        return _validate_usage(message['usage'])

    usage = event.get('usage')
    if isinstance(usage, Usage):
        return usage
    if isinstance(usage, Mapping):
        return _validate_usage(usage)
    return None


def _validate_usage(raw: Mapping) -> Usage | None:
    try:
        return Usage.model_validate(raw)
    except pydantic.ValidationError:
        return None


def event_tokens(event: EventModel) -> int:
    usage = event_usage(event)
    return usage.total if usage is not None else 0


def total_tokens(events: Iterable[StreamEvent]) -> int:
    """Sum of input + output tokens over all events."""
    return sum(event_tokens(event) for event in events)
