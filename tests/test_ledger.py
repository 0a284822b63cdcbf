"""Tests for tool invocation / result pairing."""

from __future__ import annotations

from run_stream.schemas.events import parse_event
from run_stream.services.decoder import decode_lines
from run_stream.services.ledger import ToolLedger


def tool_use(tool_id: str, name: str, **tool_input):
    return parse_event(
        {
            'type': 'assistant',
            'message': {'role': 'assistant', 'content': [{'type': 'tool_use', 'id': tool_id, 'name': name, 'input': tool_input}]},
        }
    )


def tool_result(tool_id: str, content: object = 'ok', is_error: bool = False):
    return parse_event(
        {
            'type': 'user',
            'message': {
                'role': 'user',
                'content': [{'type': 'tool_result', 'tool_use_id': tool_id, 'content': content, 'is_error': is_error}],
            },
        }
    )


def test_pairs_result_with_preceding_invocation() -> None:
    ledger = ToolLedger.from_events([tool_use('a', 'read', file_path='/x'), tool_result('a', 'contents')])

    lookup = ledger.lookup('a')
    assert lookup.invocation is not None
    assert lookup.invocation.name == 'read'
    assert lookup.invocation.input == {'file_path': '/x'}
    assert lookup.outcome is not None
    assert lookup.outcome.content == 'contents'
    assert lookup.outcome.event_index == 1
    assert not lookup.is_pending
    assert not lookup.is_orphaned
    assert ledger.orphaned() == []


def test_every_matched_result_is_paired_exactly_once(read_stream) -> None:
    chunk = decode_lines(read_stream('tool_claims.jsonl'))
    ledger = ToolLedger.from_events(chunk.events)

    assert set(ledger.outcomes) == {'toolu_read', 'toolu_custom', 'toolu_mcp'}
    for tool_id in ledger.outcomes:
        lookup = ledger.lookup(tool_id)
        assert lookup.invocation is not None
        assert lookup.invocation.event_index < lookup.outcome.event_index
    assert ledger.pending() == []
    assert ledger.duplicate_results == 0


def test_result_without_invocation_is_orphaned_not_dropped() -> None:
    ledger = ToolLedger.from_events([tool_result('ghost', 'late')])

    lookup = ledger.lookup('ghost')
    assert lookup.is_orphaned
    assert lookup.outcome is not None
    assert lookup.outcome.content == 'late'
    assert ledger.owner_of('ghost') is None
    assert [outcome.tool_use_id for outcome in ledger.orphaned()] == ['ghost']


def test_invocation_after_result_does_not_claim_it() -> None:
    ledger = ToolLedger.from_events([tool_result('a'), tool_use('a', 'bash')])

    assert ledger.lookup('a').invocation is None
    assert ledger.owner_of('a') is None
    assert ledger.invocation_before('a', 2) is not None
    assert ledger.invocation_before('a', 0) is None


def test_first_result_wins_and_duplicates_are_counted() -> None:
    ledger = ToolLedger.from_events([tool_use('a', 'bash'), tool_result('a', 'first'), tool_result('a', 'second')])

    assert ledger.lookup('a').outcome.content == 'first'
    assert ledger.duplicate_results == 1


def test_pending_invocations_in_registration_order() -> None:
    ledger = ToolLedger.from_events([tool_use('a', 'bash'), tool_use('b', 'grep'), tool_result('a')])

    assert [invocation.tool_use_id for invocation in ledger.pending()] == ['b']
    assert ledger.lookup('b').is_pending


def test_error_flag_is_recorded() -> None:
    ledger = ToolLedger.from_events([tool_use('a', 'bash'), tool_result('a', 'exit 1', is_error=True)])

    assert ledger.lookup('a').outcome.is_error is True


def test_incremental_record_matches_rebuild() -> None:
    events = [tool_use('a', 'bash'), tool_result('a'), tool_result('b'), tool_use('b', 'grep')]
    ledger = ToolLedger()
    for index, event in enumerate(events):
        ledger.record(event, index)

    rebuilt = ToolLedger.from_events(events)
    assert ledger.invocations == rebuilt.invocations
    assert ledger.outcomes == rebuilt.outcomes
    assert ledger.orphaned() == rebuilt.orphaned()


def test_unknown_id_lookup_is_empty() -> None:
    lookup = ToolLedger().lookup('missing')

    assert lookup.invocation is None
    assert lookup.outcome is None
