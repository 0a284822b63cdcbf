"""
Line decoder - newline-delimited JSON to stream events.

Framework-agnostic service for turning raw agent output (a single live line or an
accumulated log) into typed StreamEvent objects.

Malformed lines never abort decoding: each one is skipped and reported as a
DecodeFailure so the caller can log it. Decoding is a pure function of the text,
so decoding the same text twice yields identical results.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

import attrs

from run_stream.schemas.events import StreamEvent, parse_event

__all__ = [
    'DecodeFailure',
    'DecodedChunk',
    'decode_line',
    'decode_lines',
    'split_lines',
]


@attrs.frozen
class DecodeFailure:
    """One line that could not be decoded into an event."""

    line_number: int  # 1-based position in the decoded text
    line: str
    reason: str

    def describe(self) -> str:
        preview = self.line if len(self.line) <= 120 else self.line[:117] + '...'
        return f'Failed to parse line {self.line_number}: {self.reason}: {preview}'


@attrs.frozen
class DecodedChunk:
    """Result of decoding a chunk of raw output."""

    events: Sequence[StreamEvent]
    failures: Sequence[DecodeFailure]
    lines: Sequence[str]  # Non-empty raw lines, in order (decodable or not)


def split_lines(text: str) -> list[str]:
    """Split raw output into non-empty lines, dropping whitespace-only lines."""
    return [line for line in text.split('\n') if line.strip()]


def _load_object(line: str, line_number: int) -> dict | DecodeFailure | None:
    stripped = line.strip()
    if not stripped:
        return None

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        return DecodeFailure(line_number=line_number, line=line, reason=f'invalid JSON ({e.msg})')

    if not isinstance(data, dict):
        return DecodeFailure(
            line_number=line_number, line=line, reason=f'expected a JSON object, got {type(data).__name__}'
        )
    return data


def decode_line(line: str, line_number: int = 1, default_type: str | None = None) -> StreamEvent | DecodeFailure | None:
    """
    Decode a single raw line.

    Args:
        line: One line of agent output
        line_number: Position used when reporting a failure
        default_type: Event type assumed for an object without one

    Returns:
        The event, a DecodeFailure for malformed input, or None for a blank line
    """
    data = _load_object(line, line_number)
    if data is None or isinstance(data, DecodeFailure):
        return data
    return parse_event(data, default_type)


def decode_lines(text: str, default_type: str | None = None) -> DecodedChunk:
    """
    Decode newline-delimited JSON into events.

    Args:
        text: Raw output, one JSON object per line
        default_type: Event type assumed for objects without one

    Returns:
        DecodedChunk with the ordered events, the failures and the raw lines
    """
    events: list[StreamEvent] = []
    failures: list[DecodeFailure] = []
    lines: list[str] = []

    for line_number, line in enumerate(text.split('\n'), start=1):
        decoded = decode_line(line, line_number, default_type)
        if decoded is None:
            continue
        lines.append(line)
        if isinstance(decoded, DecodeFailure):
            failures.append(decoded)
        else:
            events.append(decoded)

    return DecodedChunk(events=tuple(events), failures=tuple(failures), lines=tuple(lines))
