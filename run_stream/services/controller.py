"""
Run session controller - drives the live lifecycle of one agent run.

State machine:
    pending -> running -> complete | error | cancelled
    running -> error when the supervisor fails to launch the run

The controller owns the RunRecord of the run it drives. Raw output arriving on
the run's channels is decoded, appended to the record (feeding the tool ledger
and the token total) and mirrored into the output cache.

Stop is local-first: the transition to cancelled and the synthetic result event
happen before the supervisor is contacted, so the caller observes the stopped
state immediately even if the supervisor is slow or unreachable.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable
from typing import Literal

import attrs

from run_stream.config import settings
from run_stream.exceptions import RunAlreadyActiveError
from run_stream.protocols import LoggerProtocol, NullLogger
from run_stream.schemas.events import ResultEvent, StreamEvent, Usage
from run_stream.schemas.runs import RunStatus
from run_stream.services.cache import CacheEntry, OutputCacheProtocol
from run_stream.services.channels import ChannelEvent, RunChannels
from run_stream.services.decoder import DecodeFailure, decode_line
from run_stream.services.ledger import ToolLookup
from run_stream.services.record import RunRecord, RunSnapshot
from run_stream.supervisor.protocol import ProcessSupervisor

__all__ = ['Notice', 'RunSessionController']

STOPPED_BY_USER = 'Execution stopped by user'
EXECUTION_FAILED = 'Agent execution failed'
EXECUTION_CANCELLED = 'Agent execution was cancelled'


@attrs.frozen
class Notice:
    """A message surfaced to whoever presents the run."""

    level: Literal['info', 'error']
    message: str


class RunSessionController:
    """Live lifecycle of one agent run at a time."""

    def __init__(
        self,
        supervisor: ProcessSupervisor,
        cache: OutputCacheProtocol | None = None,
        logger: LoggerProtocol | None = None,
        *,
        clock: Callable[[], float] = time.time,
        tick_seconds: float | None = None,
        on_update: Callable[[RunRecord], None] | None = None,
    ) -> None:
        self.supervisor = supervisor
        self.cache = cache
        self.logger = logger or NullLogger()
        self.on_update = on_update
        self.tick_seconds = tick_seconds if tick_seconds is not None else settings.ELAPSED_TICK_SECONDS
        self._clock = clock

        self.record = RunRecord()
        self.notices: list[Notice] = []
        self.last_error: str | None = None

        self._channels: RunChannels | None = None
        self._ticker: asyncio.Task[None] | None = None

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @property
    def status(self) -> RunStatus:
        return self.record.status

    @property
    def is_running(self) -> bool:
        return self.record.status == 'running'

    async def start(self, agent_id: int, working_directory: str, task: str, model: str) -> RunRecord:
        """
        Launch a run and begin streaming its output.

        A launch failure never raises: the record ends in status 'error' holding a
        single synthetic result event that carries the reason. If stop() is called
        while the launch is pending, the launched process is stopped as soon as its
        run id is known and its channels are never subscribed.

        Raises:
            RunAlreadyActiveError: If this controller is already driving a running run
        """
        if self.is_running:
            raise RunAlreadyActiveError(self.record.run_id)

        self._release_channels()
        record = self.record = RunRecord(status='running', started_at=self._clock())
        self.notices = []
        self.last_error = None
        self._start_ticker()

        try:
            run_id = await self.supervisor.start(agent_id, working_directory, task, model)
        except Exception as e:
            await self._fail_start(record, e)
            return record

        record.run_id = run_id
        if self.record is not record or not self.is_running:
            # Stopped while the launch was pending
            await self._stop_late_launch(record, run_id)
            return record

        # Recording the id and subscribing happen in one step so no delivery can be misattributed
        self._open_channels(run_id)
        await self.logger.info(f'Started run {run_id} (agent {agent_id}, model {model})')
        self._publish()
        return record

    def follow(self, record: RunRecord) -> None:
        """
        Adopt a loaded record of a still-running run and stream its further output.

        Raises:
            RunAlreadyActiveError: If a different run is currently running here
            ValueError: If the record has no run id
        """
        if record.run_id is None:
            raise ValueError('Cannot follow a run record without a run id')
        if self.is_running and self.record.run_id != record.run_id:
            raise RunAlreadyActiveError(self.record.run_id)

        self._stop_ticker()
        self._release_channels()
        self.record = record
        self.record.transition('running')
        if self.record.started_at is None:
            self.record.started_at = self._clock() - self.record.elapsed_seconds
        self.notices = []
        self.last_error = None

        if self.is_running:
            self._start_ticker()
            self._open_channels(record.run_id)

    async def stop(self) -> bool:
        """
        Stop the running run.

        The local transition to 'cancelled' and the synthetic result event are
        applied before the supervisor is contacted. Supervisor failures are logged.

        Returns:
            True if the supervisor confirmed the stop, False otherwise (including
            when nothing was running)
        """
        if not self.is_running:
            return False

        run_id = self.record.run_id
        self._stop_ticker()
        self.record.append(
            ResultEvent(
                type='result',
                subtype='error',
                is_error=True,
                result=STOPPED_BY_USER,
                duration_ms=self.record.elapsed_seconds * 1000,
                usage=Usage(input_tokens=self.record.total_tokens, output_tokens=0),
            ),
            count_tokens=False,
        )
        self.record.transition('cancelled')
        self._release_channels()
        self._publish()

        if run_id is None:
            # Launch still pending; start() stops the process once it has an id
            return False

        try:
            stopped = await self.supervisor.stop(run_id)
        except Exception as e:
            await self.logger.warning(f'Failed to stop run {run_id}: {e}')
            return False

        if not stopped:
            await self.logger.warning(f'Run {run_id} had already finished or is unknown to the supervisor')
        return stopped

    def close(self) -> None:
        """Release every subscription and the ticker, whatever the status."""
        self._stop_ticker()
        self._release_channels()

    async def drain(self) -> None:
        """Wait until every channel delivery received so far has been handled."""
        if self._channels is not None:
            await self._channels.drain()

    # ==========================================================================
    # Queries
    # ==========================================================================

    @property
    def elapsed_seconds(self) -> float:
        if self.is_running:
            self._refresh_elapsed()
        return self.record.elapsed_seconds

    def snapshot(self) -> RunSnapshot:
        if self.is_running:
            self._refresh_elapsed()
        return self.record.snapshot()

    def lookup_tool(self, tool_use_id: str) -> ToolLookup:
        return self.record.lookup_tool(tool_use_id)

    def is_displayable(self, index: int) -> bool:
        return self.record.is_displayable(index)

    def displayable(self) -> list[StreamEvent]:
        return self.record.displayable_messages()

    # ==========================================================================
    # Channel handling
    # ==========================================================================

    async def _handle(self, event: ChannelEvent) -> None:
        if event.run_id != self.record.run_id:
            await self.logger.warning(f'Ignoring {event.kind} event for run {event.run_id}: not the current run')
            return

        match event.kind:
            case 'output':
                await self._on_output(event.payload)
            case 'error':
                await self._on_error(event.payload)
            case 'complete':
                await self._on_complete(bool(event.payload))
            case 'cancelled':
                await self._on_cancelled()

    async def _on_output(self, payload: object) -> None:
        line = payload if isinstance(payload, str) else json.dumps(payload)
        line_number = len(self.record.raw_lines) + 1
        decoded = decode_line(line, line_number)
        if decoded is None:
            return

        self.record.append_raw(line)
        if isinstance(decoded, DecodeFailure):
            await self.logger.warning(f'Run {self.record.run_id}: {decoded.describe()}')
        else:
            self.record.append(decoded)
        self._publish()

    async def _on_error(self, payload: object) -> None:
        message = str(payload) if payload is not None else 'Unknown error'
        self.last_error = message
        self.notices.append(Notice(level='error', message=message))
        await self.logger.error(f'Run {self.record.run_id}: {message}')
        self._publish()

    async def _on_complete(self, success: bool) -> None:
        self._stop_ticker()
        if self.record.transition('complete' if success else 'error'):
            if success:
                self.notices.append(Notice(level='info', message='Agent execution completed'))
                await self.logger.info(f'Run {self.record.run_id} completed')
            else:
                self.last_error = EXECUTION_FAILED
                self.notices.append(Notice(level='error', message=EXECUTION_FAILED))
                await self.logger.error(f'Run {self.record.run_id}: {EXECUTION_FAILED}')
        self._release_channels()
        self._publish()

    async def _on_cancelled(self) -> None:
        self._stop_ticker()
        if self.record.transition('cancelled'):
            self.last_error = EXECUTION_CANCELLED
            self.notices.append(Notice(level='error', message=EXECUTION_CANCELLED))
            await self.logger.warning(f'Run {self.record.run_id}: {EXECUTION_CANCELLED}')
        self._release_channels()
        self._publish()

    async def _fail_start(self, record: RunRecord, error: Exception) -> None:
        reason = f'Failed to execute agent: {error}'
        if self.record is not record or not self.is_running:
            await self.logger.warning(f'{reason} (run was already stopped)')
            return

        self._stop_ticker()
        self.record.transition('error')
        self.record.append(ResultEvent(type='result', subtype='error', is_error=True, error=reason))
        self.last_error = reason
        self.notices.append(Notice(level='error', message=reason))
        await self.logger.error(reason)
        self._publish()

    async def _stop_late_launch(self, record: RunRecord, run_id: int) -> None:
        await self.logger.warning(f'Run {run_id} launched after it was stopped; stopping it')
        if self.cache is not None:
            self.cache.put(run_id, CacheEntry.from_record(record, self._clock()))
        try:
            stopped = await self.supervisor.stop(run_id)
        except Exception as e:
            await self.logger.warning(f'Failed to stop run {run_id}: {e}')
            return
        if not stopped:
            await self.logger.warning(f'Run {run_id} had already finished or is unknown to the supervisor')

    def _open_channels(self, run_id: int) -> None:
        self._channels = RunChannels(self.supervisor, run_id, self._handle, self.logger)
        self._channels.open()

    def _release_channels(self) -> None:
        if self._channels is not None:
            self._channels.release()

    # ==========================================================================
    # Elapsed time
    # ==========================================================================

    def _refresh_elapsed(self) -> None:
        if self.record.started_at is not None:
            self.record.elapsed_seconds = max(0.0, self._clock() - self.record.started_at)

    def _start_ticker(self) -> None:
        self._refresh_elapsed()
        self._ticker = asyncio.get_running_loop().create_task(self._tick())

    def _stop_ticker(self) -> None:
        if self.is_running:
            self._refresh_elapsed()
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    async def _tick(self) -> None:
        while self.is_running:
            self._refresh_elapsed()
            await asyncio.sleep(self.tick_seconds)

    # ==========================================================================
    # Publishing
    # ==========================================================================

    def _publish(self) -> None:
        if self.cache is not None and self.record.run_id is not None:
            self.cache.put(self.record.run_id, CacheEntry.from_record(self.record, self._clock()))
        if self.on_update is not None:
            self.on_update(self.record)
