"""
Export - render a run's message log as JSONL or Markdown.

JSONL reproduces the raw lines exactly as received. Markdown is a readable
transcript: a header describing the run, then one section per event.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import UTC, datetime

from run_stream.schemas.events import (
    AssistantEvent,
    EventModel,
    ResultEvent,
    StreamEvent,
    SummaryEvent,
    SystemEvent,
    TextContent,
    ThinkingContent,
    ToolResultContent,
    ToolUseContent,
    UnknownEvent,
    UserEvent,
    event_to_dict,
    event_to_json_line,
)
from run_stream.schemas.runs import RunInfo, RunMetrics
from run_stream.services.record import RunRecord

__all__ = ['describe_event', 'to_jsonl', 'to_markdown']


def to_jsonl(record: RunRecord) -> str:
    """
    Newline-joined raw output of a run.

    Records built without raw lines have their messages re-serialized instead.
    """
    if record.raw_lines:
        return '\n'.join(record.raw_lines)
    return '\n'.join(event_to_json_line(event) for event in record.messages)


def to_markdown(
    messages: Iterable[StreamEvent],
    header: RunInfo | None = None,
    metrics: RunMetrics | None = None,
    *,
    now: datetime | None = None,
) -> str:
    """
    Render messages as a Markdown transcript.

    Args:
        messages: Events in order (all of them, not just the displayable ones)
        header: Run metadata for the title block
        metrics: Run metrics added to the title block when present
        now: Date used when the run has no creation time

    Returns:
        Markdown text
    """
    parts: list[str] = []
    if header is not None:
        parts.append(_render_header(header, metrics, now))

    for event in messages:
        if isinstance(event, SystemEvent):
            if event.subtype == 'init':
                parts.append(_render_system_init(event))
        elif isinstance(event, AssistantEvent):
            if event.message is not None:
                parts.append(_render_assistant(event))
        elif isinstance(event, UserEvent):
            if event.message is not None:
                parts.append(_render_user(event))
        elif isinstance(event, ResultEvent):
            parts.append(_render_result(event))
        elif isinstance(event, SummaryEvent):
            parts.append(_render_summary(event))
        elif isinstance(event, UnknownEvent):
            parts.append(_render_unknown(event))

    return ''.join(parts)


# ==============================================================================
# Sections
# ==============================================================================


def _render_header(run: RunInfo, metrics: RunMetrics | None, now: datetime | None) -> str:
    date = run.created_at or now or datetime.now(UTC)
    lines = [
        f'# Agent Execution: {run.agent_name}',
        '',
        f'**Task:** {run.task}',
        f'**Model:** {run.model}',
        f'**Date:** {date.isoformat()}',
    ]
    if metrics is not None:
        if metrics.duration_ms:
            lines.append(f'**Duration:** {metrics.duration_ms / 1000:.2f}s')
        if metrics.total_tokens:
            lines.append(f'**Total Tokens:** {metrics.total_tokens}')
        if metrics.cost_usd:
            lines.append(f'**Cost:** ${metrics.cost_usd:.4f} USD')
    lines += ['', '---', '', '']
    return '\n'.join(lines)


def _render_system_init(event: SystemEvent) -> str:
    lines = [
        '## System Initialization',
        '',
        f'- Session ID: `{event.session_id or "N/A"}`',
        f'- Model: `{event.model or "default"}`',
    ]
    if event.cwd:
        lines.append(f'- Working Directory: `{event.cwd}`')
    if event.tools:
        lines.append(f'- Tools: {", ".join(event.tools)}')
    return '\n'.join(lines) + '\n\n'


def _render_assistant(event: AssistantEvent) -> str:
    out = '## Assistant\n\n'
    for block in event.content_blocks():
        if isinstance(block, TextContent):
            out += f'{block.text}\n\n'
        elif isinstance(block, ThinkingContent):
            out += _quote(block.thinking)
        elif isinstance(block, ToolUseContent):
            out += f'### Tool: {block.name}\n\n'
            out += f'```json\n{json.dumps(block.input, indent=2)}\n```\n\n'

    usage = event.message.usage if event.message is not None else None
    if usage is not None:
        out += f'*Tokens: {usage.input_tokens} in, {usage.output_tokens} out*\n\n'
    return out


def _render_user(event: UserEvent) -> str:
    out = '## User\n\n'
    content = event.message.content if event.message is not None else None
    if isinstance(content, str):
        return out + f'{content}\n\n'
    for block in event.content_blocks():
        if isinstance(block, TextContent):
            out += f'{block.text}\n\n'
        elif isinstance(block, ToolResultContent):
            out += '### Tool Result\n\n'
            out += f'```\n{block.content_text()}\n```\n\n'
    return out


def _render_result(event: ResultEvent) -> str:
    out = '## Execution Result\n\n'
    if event.result:
        out += f'{event.result}\n\n'
    if event.error:
        out += f'**Error:** {event.error}\n\n'
    if event.cost_usd is not None:
        out += f'- **Cost:** ${event.cost_usd:.4f} USD\n'
    if event.duration_ms is not None:
        out += f'- **Duration:** {event.duration_ms / 1000:.2f}s\n'
    if event.num_turns is not None:
        out += f'- **Turns:** {event.num_turns}\n'
    if event.usage is not None:
        usage = event.usage
        out += f'- **Total Tokens:** {usage.total} ({usage.input_tokens} in, {usage.output_tokens} out)\n'
    return out


def _render_summary(event: SummaryEvent) -> str:
    summary = event.summary if isinstance(event.summary, str) else json.dumps(event.summary)
    return f'## Summary\n\n{summary}\n\n'


def _render_unknown(event: UnknownEvent) -> str:
    label = event.type if isinstance(event.type, str) and event.type else 'unknown'
    return f'## Event: {label}\n\n```json\n{json.dumps(event_to_dict(event), indent=2)}\n```\n\n'


def _quote(text: str) -> str:
    return '\n'.join(f'> {line}' if line else '>' for line in text.split('\n')) + '\n\n'


def describe_event(event: EventModel) -> str:
    """One-line label for an event, used by terminal listings."""
    event_type = event.get('type') or 'unknown'
    subtype = event.get('subtype')
    return f'{event_type}/{subtype}' if subtype else str(event_type)
