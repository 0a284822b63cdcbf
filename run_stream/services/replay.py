"""
Replay loader - reconstructs a run's message log from storage.

Source preference:
1. A fresh output cache entry (no I/O at all)
2. The durable session transcript, when the run has a session id
3. The raw output captured for the run

Whatever is loaded is written back to the cache. A run that is still running is
handed to the controller (if one is given) so its further output keeps streaming.
"""

from __future__ import annotations

import time
from collections.abc import Callable

from run_stream.exceptions import ReplayError
from run_stream.protocols import LoggerProtocol, NullLogger
from run_stream.schemas.events import event_to_json_line, parse_event
from run_stream.schemas.runs import RunInfo
from run_stream.services.cache import CacheEntry, OutputCacheProtocol, is_fresh
from run_stream.services.controller import RunSessionController
from run_stream.services.decoder import decode_lines
from run_stream.services.record import RunRecord
from run_stream.storage.protocol import RunStorage

__all__ = ['ReplayLoader']

# Durable transcript entries predating the type field are assistant turns
TRANSCRIPT_DEFAULT_TYPE = 'assistant'


class ReplayLoader:
    """Loads past and in-flight runs for display."""

    def __init__(
        self,
        storage: RunStorage,
        cache: OutputCacheProtocol | None = None,
        logger: LoggerProtocol | None = None,
        *,
        clock: Callable[[], float] = time.time,
        freshness_seconds: float | None = None,
    ) -> None:
        self.storage = storage
        self.cache = cache
        self.logger = logger or NullLogger()
        self.freshness_seconds = freshness_seconds
        self._clock = clock

    async def load_by_id(
        self, run_id: int, controller: RunSessionController | None = None, *, skip_cache: bool = False
    ) -> RunRecord:
        """
        Look up run metadata and load the run.

        Raises:
            RunNotFoundError: If the store has no such run
            ReplayError: If no representation of the run could be loaded
        """
        run = await self.storage.get_run(run_id)
        return await self.load(run, controller, skip_cache=skip_cache)

    async def load(
        self, run: RunInfo, controller: RunSessionController | None = None, *, skip_cache: bool = False
    ) -> RunRecord:
        """
        Load the message log of a run.

        Args:
            run: Run metadata
            controller: Controller that takes over streaming when the run is still running
            skip_cache: Reload from storage even when a fresh cache entry exists

        Returns:
            The reconstructed run record

        Raises:
            ReplayError: If neither the durable transcript nor the raw output could be loaded
        """
        if not skip_cache and self.cache is not None:
            entry = self.cache.get(run.run_id)
            if entry is not None and is_fresh(entry, self._clock(), self.freshness_seconds):
                return entry.to_record()

        record = await self._load_from_storage(run)
        if run.created_at is not None:
            record.started_at = run.created_at.timestamp()

        if self.cache is not None:
            self.cache.put(run.run_id, CacheEntry.from_record(record, self._clock()))

        if run.status == 'running':
            if controller is not None:
                controller.follow(record)
            await self._request_live_handoff(run.run_id)

        return record

    async def _load_from_storage(self, run: RunInfo) -> RunRecord:
        reasons = []

        if run.session_id:
            try:
                entries = await self.storage.load_durable_transcript(run.session_id)
            except Exception as e:
                reasons.append(f'durable transcript unavailable ({e})')
                await self.logger.warning(
                    f'Run {run.run_id}: failed to load session transcript, falling back to raw output: {e}'
                )
            else:
                events = [parse_event(entry, default_type=TRANSCRIPT_DEFAULT_TYPE) for entry in entries]
                await self.logger.info(f'Run {run.run_id}: loaded {len(events)} events from session {run.session_id}')
                # Seed raw lines so live output appended later extends the full history
                raw_lines = [event_to_json_line(event) for event in events]
                return RunRecord.from_events(run.run_id, run.status, events, raw_lines)

        try:
            raw_output = await self.storage.load_raw_output(run.run_id)
        except Exception as e:
            reasons.append(f'raw output unavailable ({e})')
            raise ReplayError(run.run_id, '; '.join(reasons)) from e

        chunk = decode_lines(raw_output)
        for failure in chunk.failures:
            await self.logger.warning(f'Run {run.run_id}: {failure.describe()}')
        await self.logger.info(f'Run {run.run_id}: decoded {len(chunk.events)} events from raw output')
        return RunRecord.from_events(run.run_id, run.status, chunk.events, chunk.lines)

    async def _request_live_handoff(self, run_id: int) -> None:
        try:
            await self.storage.request_live_handoff(run_id)
        except Exception as e:
            await self.logger.warning(f'Run {run_id}: live output handoff failed: {e}')
