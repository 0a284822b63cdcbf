"""Tests for JSONL and Markdown export."""

from __future__ import annotations

from datetime import UTC, datetime

from run_stream.schemas.events import parse_event
from run_stream.schemas.runs import RunInfo, RunMetrics
from run_stream.services.decoder import decode_lines
from run_stream.services.export import describe_event, to_jsonl, to_markdown
from run_stream.services.record import RunRecord


def record_from(text: str) -> RunRecord:
    chunk = decode_lines(text)
    return RunRecord.from_events(1, 'complete', chunk.events, chunk.lines)


def test_jsonl_reproduces_raw_lines(read_stream) -> None:
    text = read_stream('tool_claims.jsonl')

    assert to_jsonl(record_from(text)) == text.rstrip('\n')


def test_jsonl_reserializes_when_no_raw_lines() -> None:
    events = [parse_event({'type': 'result', 'result': 'ok', 'uuid': 'u-1'})]
    record = RunRecord.from_events(1, 'complete', events)

    assert to_jsonl(record) == '{"type":"result","result":"ok","uuid":"u-1"}'


def test_markdown_sections(read_stream) -> None:
    markdown = to_markdown(record_from(read_stream('basic_run.jsonl')).messages)

    assert '## System Initialization' in markdown
    assert '- Session ID: `5f0c9a52-1d7e-4c8b-9a47-3f1b2d6e8c01`' in markdown
    assert '- Working Directory: `/home/dev/project`' in markdown
    assert '- Tools: Read, Bash, Edit' in markdown
    assert '## Assistant\n\nLooking at the project layout.\n\n*Tokens: 0 in, 0 out*' in markdown
    assert '## Execution Result\n\nDone.\n\n' in markdown
    assert '- **Cost:** $0.0123 USD' in markdown
    assert '- **Duration:** 2.50s' in markdown
    assert '- **Turns:** 1' in markdown
    assert '- **Total Tokens:** 15 (10 in, 5 out)' in markdown
    assert not markdown.startswith('# Agent Execution')


def test_markdown_tool_calls(read_stream) -> None:
    markdown = to_markdown(record_from(read_stream('tool_claims.jsonl')).messages)

    assert '### Tool: read\n\n```json\n{\n  "file_path": "/x"\n}\n```' in markdown
    assert "### Tool Result\n\n```\nprint('hello')\n```" in markdown
    assert '### Tool Result\n\n```\nall green\n```' in markdown


def test_markdown_header_with_metrics() -> None:
    run = RunInfo(
        run_id=3,
        agent_name='reviewer',
        task='Review the diff',
        model='sonnet',
        status='complete',
        created_at=datetime(2025, 6, 1, 12, 0, tzinfo=UTC),
    )
    metrics = RunMetrics(duration_ms=2500, total_tokens=15, cost_usd=0.0123, message_count=3)

    markdown = to_markdown([], header=run, metrics=metrics)

    assert markdown == (
        '# Agent Execution: reviewer\n'
        '\n'
        '**Task:** Review the diff\n'
        '**Model:** sonnet\n'
        '**Date:** 2025-06-01T12:00:00+00:00\n'
        '**Duration:** 2.50s\n'
        '**Total Tokens:** 15\n'
        '**Cost:** $0.0123 USD\n'
        '\n'
        '---\n'
        '\n'
    )


def test_markdown_error_result_and_string_user_content() -> None:
    events = [
        parse_event({'type': 'user', 'message': {'role': 'user', 'content': 'Please continue.'}}),
        parse_event({'type': 'result', 'subtype': 'error', 'is_error': True, 'error': 'Failed to execute agent: boom'}),
    ]

    markdown = to_markdown(events)

    assert '## User\n\nPlease continue.\n\n' in markdown
    assert '**Error:** Failed to execute agent: boom' in markdown


def test_describe_event() -> None:
    assert describe_event(parse_event({'type': 'system', 'subtype': 'init'})) == 'system/init'
    assert describe_event(parse_event({'type': 'assistant', 'message': {'content': []}})) == 'assistant'
    assert describe_event(parse_event({'step': 1})) == 'unknown'


def test_markdown_summary_and_unrecognised_events(read_stream) -> None:
    markdown = to_markdown(record_from(read_stream('bookkeeping.jsonl')).messages)

    assert '## Summary\n\nSummarised repository changes\n\n' in markdown
    assert '## Event: progress\n\n```json\n' in markdown
    assert '"step": 3' in markdown


def test_markdown_quotes_thinking_blocks() -> None:
    event = parse_event(
        {
            'type': 'assistant',
            'message': {
                'role': 'assistant',
                'content': [{'type': 'thinking', 'thinking': 'Check the tests.\nThen the docs.'}, {'type': 'text', 'text': 'Done.'}],
            },
        }
    )

    assert '## Assistant\n\n> Check the tests.\n> Then the docs.\n\nDone.\n\n' in to_markdown([event])
