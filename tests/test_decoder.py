"""Tests for newline-delimited JSON decoding."""

from __future__ import annotations

from conftest import jsonl

from run_stream.schemas.events import AssistantEvent, ResultEvent, SystemEvent, UnknownEvent, UserEvent
from run_stream.services.decoder import DecodeFailure, decode_line, decode_lines, split_lines


def test_decodes_known_event_kinds(read_stream) -> None:
    chunk = decode_lines(read_stream('basic_run.jsonl'))

    assert [type(event) for event in chunk.events] == [SystemEvent, AssistantEvent, ResultEvent]
    assert chunk.failures == ()
    assert len(chunk.lines) == 3


def test_decoding_is_idempotent(read_stream) -> None:
    text = read_stream('tool_claims.jsonl') + 'not json\n' + read_stream('bookkeeping.jsonl')

    first = decode_lines(text)
    second = decode_lines(text)

    assert first == second
    assert [event.model_dump() for event in first.events] == [event.model_dump() for event in second.events]


def test_blank_lines_are_ignored_not_failures() -> None:
    chunk = decode_lines('\n   \n{"type":"result","result":"ok"}\n\n')

    assert len(chunk.events) == 1
    assert chunk.failures == ()
    assert chunk.lines == ('{"type":"result","result":"ok"}',)


def test_malformed_lines_are_reported_and_skipped() -> None:
    text = '{"type":"system","subtype":"init"}\n{"type": "assist\n[1, 2]\n{"type":"result"}\n'

    chunk = decode_lines(text)

    assert [type(event) for event in chunk.events] == [SystemEvent, ResultEvent]
    assert [failure.line_number for failure in chunk.failures] == [2, 3]
    assert 'invalid JSON' in chunk.failures[0].reason
    assert 'expected a JSON object' in chunk.failures[1].reason
    # Raw lines keep malformed input, in order
    assert len(chunk.lines) == 4


def test_failure_description_names_the_line() -> None:
    failure = decode_line('{oops', line_number=7)

    assert isinstance(failure, DecodeFailure)
    assert failure.describe().startswith('Failed to parse line 7:')


def test_unrecognised_objects_become_unknown_events() -> None:
    chunk = decode_lines(jsonl({'type': 'progress', 'step': 3}, {'no_type': True}))

    assert all(isinstance(event, UnknownEvent) for event in chunk.events)
    assert chunk.events[0].get('step') == 3
    assert chunk.events[1].get('no_type') is True


def test_invalid_known_kind_falls_back_to_unknown_event() -> None:
    event = decode_line('{"type":"assistant","message":"not an object"}')

    assert isinstance(event, UnknownEvent)
    assert event.type == 'assistant'


def test_default_type_fills_missing_type() -> None:
    event = decode_line('{"message":{"role":"user","content":"hi"}}', default_type='user')

    assert isinstance(event, UserEvent)
    assert event.message is not None
    assert event.message.content == 'hi'


def test_unknown_fields_are_preserved() -> None:
    event = decode_line('{"type":"result","result":"ok","uuid":"abc","extra":{"nested":[1]}}')

    assert isinstance(event, ResultEvent)
    assert event.get_extra_fields() == {'uuid': 'abc', 'extra': {'nested': [1]}}


def test_split_lines_drops_whitespace_only_lines() -> None:
    assert split_lines('a\n \n\nb\n') == ['a', 'b']
