"""
Run schemas.

Models for run metadata (as reported by the run store) and derived run metrics.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Literal

from run_stream.schemas.types import BaseStrictModel, JsonDatetime

# ==============================================================================
# Run Status
# ==============================================================================

RunStatus = Literal['pending', 'running', 'complete', 'error', 'cancelled']
"""Lifecycle of one run. complete/error/cancelled are terminal."""

TERMINAL_STATUSES: frozenset[RunStatus] = frozenset({'complete', 'error', 'cancelled'})


def is_terminal(status: RunStatus) -> bool:
    return status in TERMINAL_STATUSES


# ==============================================================================
# Run Metadata
# ==============================================================================


class RunInfo(BaseStrictModel):
    """
    Metadata about one run as reported by the run store.

    Field ordering:
    - Identity (which run)
    - Request (what was asked)
    - State (where it is now)
    """

    # Identity
    run_id: int
    agent_name: str = ''
    session_id: str | None = None  # Durable transcript id, known once the agent initialised

    # Request
    task: str = ''
    model: str = ''
    project_path: str = ''

    # State
    status: RunStatus = 'pending'
    created_at: JsonDatetime | None = None


# ==============================================================================
# Run Metrics
# ==============================================================================


class RunMetrics(BaseStrictModel):
    """
    Aggregate metrics derived from a run's raw JSONL output.

    Zero totals are reported as None so callers can tell "nothing recorded"
    apart from a real zero.
    """

    duration_ms: int | None = None
    total_tokens: int | None = None
    cost_usd: float | None = None
    message_count: int | None = None

    @classmethod
    def from_jsonl(cls, jsonl_content: str) -> RunMetrics:
        """
        Fold raw JSONL output into metrics.

        Every line that parses as a JSON object counts as a message. Duration spans the
        earliest and latest RFC 3339 'timestamp' seen. Tokens are read from top-level
        'usage' or nested 'message.usage'. Cost sums 'cost' and 'cost_usd'.

        Args:
            jsonl_content: Newline-joined raw output lines

        Returns:
            RunMetrics for the content
        """
        total_tokens = 0
        cost_usd = 0.0
        message_count = 0
        start_time: datetime | None = None
        end_time: datetime | None = None

        for line in jsonl_content.splitlines():
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if not isinstance(data, dict):
                continue
            message_count += 1

            timestamp = _parse_timestamp(data.get('timestamp'))
            if timestamp is not None:
                if start_time is None or timestamp < start_time:
                    start_time = timestamp
                if end_time is None or timestamp > end_time:
                    end_time = timestamp

            usage = data.get('usage')
            if not isinstance(usage, dict):
                message = data.get('message')
                usage = message.get('usage') if isinstance(message, dict) else None
            if isinstance(usage, dict):
                for key in ('input_tokens', 'output_tokens'):
                    value = usage.get(key)
                    if isinstance(value, int) and not isinstance(value, bool):
                        total_tokens += value

            for key in ('cost', 'cost_usd'):
                value = data.get(key)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    cost_usd += float(value)

        duration_ms = None
        if start_time is not None and end_time is not None:
            duration_ms = int((end_time - start_time).total_seconds() * 1000)

        return cls(
            duration_ms=duration_ms,
            total_tokens=total_tokens or None,
            cost_usd=cost_usd or None,
            message_count=message_count or None,
        )


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    # Naive timestamps cannot be compared with aware ones
    return parsed if parsed.tzinfo is not None else None

