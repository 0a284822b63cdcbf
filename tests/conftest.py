"""
Shared test doubles for run-stream tests.

Fakes stand in for the process supervisor and the run store; every service under
test receives them by injection.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from run_stream.exceptions import RunNotFoundError
from run_stream.schemas.runs import RunInfo
from run_stream.services.cache import InMemoryOutputCache
from run_stream.supervisor.hub import ChannelHub
from run_stream.supervisor.protocol import ChannelKind, channel_name

FIXTURES_DIR = Path(__file__).parent.parent / 'fixtures'
STREAMS_DIR = FIXTURES_DIR / 'streams'


def jsonl(*events: dict[str, Any]) -> str:
    """Serialize events as raw output lines."""
    return '\n'.join(json.dumps(event) for event in events) + '\n'


class RecordingLogger:
    """LoggerProtocol implementation that keeps every message."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    async def info(self, message: str) -> None:
        self.messages.append(('info', message))

    async def warning(self, message: str) -> None:
        self.messages.append(('warning', message))

    async def error(self, message: str) -> None:
        self.messages.append(('error', message))

    def at(self, level: str) -> list[str]:
        return [message for msg_level, message in self.messages if msg_level == level]


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSupervisor:
    """ProcessSupervisor backed by an in-memory channel hub."""

    def __init__(self, run_id: int = 42) -> None:
        self.hub = ChannelHub()
        self.run_id = run_id
        self.start_error: Exception | None = None
        self.stop_error: Exception | None = None
        self.stop_result = True
        self.start_gate: asyncio.Event | None = None
        self.stop_gate: asyncio.Event | None = None
        self.started: list[tuple[int, str, str, str]] = []
        self.stopped: list[int] = []

    async def start(self, agent_id: int, working_directory: str, task: str, model: str) -> int:
        self.started.append((agent_id, working_directory, task, model))
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error is not None:
            raise self.start_error
        return self.run_id

    async def stop(self, run_id: int) -> bool:
        self.stopped.append(run_id)
        if self.stop_gate is not None:
            await self.stop_gate.wait()
        if self.stop_error is not None:
            raise self.stop_error
        return self.stop_result

    def subscribe(self, channel, handler):
        return self.hub.subscribe(channel, handler)

    def emit(self, kind: ChannelKind, payload: Any = None, run_id: int | None = None) -> int:
        return self.hub.emit(channel_name(kind, run_id if run_id is not None else self.run_id), payload)


class FakeStorage:
    """RunStorage over dictionaries, recording every call."""

    def __init__(
        self,
        runs: list[RunInfo] | None = None,
        transcripts: dict[str, list[dict[str, Any]]] | None = None,
        raw_outputs: dict[int, str] | None = None,
    ) -> None:
        self.runs = {run.run_id: run for run in runs or []}
        self.transcripts = transcripts or {}
        self.raw_outputs = raw_outputs or {}
        self.transcript_error: Exception | None = None
        self.handoff_error: Exception | None = None
        self.calls: list[tuple[str, object]] = []
        self.handoffs: list[int] = []

    async def get_run(self, run_id: int) -> RunInfo:
        self.calls.append(('get_run', run_id))
        if run_id not in self.runs:
            raise RunNotFoundError(run_id)
        return self.runs[run_id]

    async def list_running_runs(self) -> list[RunInfo]:
        self.calls.append(('list_running_runs', None))
        return [run for run in self.runs.values() if run.status == 'running']

    async def load_durable_transcript(self, session_id: str) -> list[dict[str, Any]]:
        self.calls.append(('load_durable_transcript', session_id))
        if self.transcript_error is not None:
            raise self.transcript_error
        if session_id not in self.transcripts:
            raise FileNotFoundError(f'No transcript for session {session_id}')
        return self.transcripts[session_id]

    async def load_raw_output(self, run_id: int) -> str:
        self.calls.append(('load_raw_output', run_id))
        if run_id not in self.raw_outputs:
            raise FileNotFoundError(f'No output captured for run {run_id}')
        return self.raw_outputs[run_id]

    async def request_live_handoff(self, run_id: int) -> None:
        self.handoffs.append(run_id)
        if self.handoff_error is not None:
            raise self.handoff_error


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def output_cache() -> InMemoryOutputCache:
    return InMemoryOutputCache()


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def read_stream():
    """Read a stream fixture by file name."""

    def read(name: str) -> str:
        return (STREAMS_DIR / name).read_text(encoding='utf-8')

    return read
