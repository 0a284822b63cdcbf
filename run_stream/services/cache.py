"""
Output cache - process-wide store of reconciled run output.

Lets a view that switches away from a run and back render instantly. Entries are
superseded, never merged: every put is a full replacement. The cache is injected
into the services that use it, so tests and independent engines can share or
isolate caches deliberately.

Freshness: an entry may be served without reloading only while it is younger than
the freshness window AND its run is not running. A running run always gets at
least one fresh reload because its content is still changing.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Protocol

import attrs

from run_stream.config import settings
from run_stream.protocols import LoggerProtocol, NullLogger
from run_stream.schemas.events import StreamEvent
from run_stream.schemas.runs import RunStatus
from run_stream.services.decoder import decode_lines, split_lines
from run_stream.services.metrics import total_tokens
from run_stream.services.record import RunRecord
from run_stream.storage.protocol import RunStorage

__all__ = [
    'CacheEntry',
    'InMemoryOutputCache',
    'OutputCacheProtocol',
    'OutputCacheRefresher',
    'is_fresh',
]


# ==============================================================================
# Cache Entry
# ==============================================================================


@attrs.frozen
class CacheEntry:
    """Reconciled output of one run at a point in time."""

    run_id: int
    raw_output: str  # Newline-joined raw lines
    messages: tuple[StreamEvent, ...]
    last_updated: float  # Wall clock seconds
    status: RunStatus
    total_tokens: int = 0

    @classmethod
    def from_record(cls, record: RunRecord, now: float) -> CacheEntry:
        if record.run_id is None:
            raise ValueError('Cannot cache a run record without a run id')
        return cls(
            run_id=record.run_id,
            raw_output='\n'.join(record.raw_lines),
            messages=tuple(record.messages),
            last_updated=now,
            status=record.status,
            total_tokens=record.total_tokens,
        )

    def to_record(self) -> RunRecord:
        """Rehydrate a run record - the ledger is rebuilt over the cached messages."""
        record = RunRecord.from_events(self.run_id, self.status, self.messages, split_lines(self.raw_output))
        record.total_tokens = self.total_tokens
        return record


def is_fresh(entry: CacheEntry, now: float, max_age: float | None = None) -> bool:
    """
    Whether a cached entry may be served without reloading.

    Args:
        entry: Cached entry
        now: Current wall clock seconds
        max_age: Freshness window (defaults to CACHE_FRESHNESS_SECONDS)
    """
    if max_age is None:
        max_age = settings.CACHE_FRESHNESS_SECONDS
    return (now - entry.last_updated) < max_age and entry.status != 'running'


# ==============================================================================
# Cache Service
# ==============================================================================


class OutputCacheProtocol(Protocol):
    """Protocol for the output cache consumed by controllers and loaders."""

    def get(self, run_id: int) -> CacheEntry | None: ...
    def put(self, run_id: int, entry: CacheEntry) -> None: ...


class InMemoryOutputCache:
    """Process-lifetime output cache keyed by run id."""

    def __init__(self) -> None:
        self._entries: dict[int, CacheEntry] = {}

    def get(self, run_id: int) -> CacheEntry | None:
        return self._entries.get(run_id)

    def put(self, run_id: int, entry: CacheEntry) -> None:
        if entry.run_id != run_id:
            raise ValueError(f'Cache key {run_id} does not match entry for run {entry.run_id}')
        self._entries[run_id] = entry

    def update_status(self, run_id: int, status: RunStatus) -> None:
        """Change the recorded status of an entry, if present."""
        entry = self._entries.get(run_id)
        if entry is not None:
            self._entries[run_id] = attrs.evolve(entry, status=status)

    def clear(self, run_id: int | None = None) -> None:
        """Drop one entry, or every entry when no run id is given."""
        if run_id is None:
            self._entries.clear()
        else:
            self._entries.pop(run_id, None)

    def run_ids(self) -> list[int]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


# ==============================================================================
# Background Refresher
# ==============================================================================


class OutputCacheRefresher:
    """
    Keeps cache entries of running runs current.

    Every poll reloads the raw output of each run the store reports as running and
    evicts entries that were cached as running but are no longer reported.
    """

    def __init__(
        self,
        cache: InMemoryOutputCache,
        storage: RunStorage,
        logger: LoggerProtocol | None = None,
        *,
        interval: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.storage = storage
        self.logger = logger or NullLogger()
        self.interval = interval if interval is not None else settings.CACHE_POLL_INTERVAL_SECONDS
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

    @property
    def is_polling(self) -> bool:
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> Sequence[int]:
        """
        Refresh the cache once.

        Returns:
            Run ids whose entries were refreshed
        """
        try:
            running = await self.storage.list_running_runs()
        except Exception as e:
            await self.logger.warning(f'Failed to poll running runs: {e}')
            return []

        refreshed = []
        for run in running:
            try:
                raw_output = await self.storage.load_raw_output(run.run_id)
            except Exception as e:
                await self.logger.warning(f'Failed to update cache for run {run.run_id}: {e}')
                continue

            chunk = decode_lines(raw_output)
            for failure in chunk.failures:
                await self.logger.warning(f'Run {run.run_id}: {failure.describe()}')
            self.cache.put(
                run.run_id,
                CacheEntry(
                    run_id=run.run_id,
                    raw_output=raw_output,
                    messages=tuple(chunk.events),
                    last_updated=self._clock(),
                    status=run.status,
                    total_tokens=total_tokens(chunk.events),
                ),
            )
            refreshed.append(run.run_id)

        running_ids = {run.run_id for run in running}
        for run_id in self.cache.run_ids():
            entry = self.cache.get(run_id)
            if entry is not None and entry.status == 'running' and run_id not in running_ids:
                self.cache.clear(run_id)

        return refreshed

    def start(self) -> None:
        """Begin polling in the background (no-op if already polling)."""
        if self.is_polling:
            return
        self._task = asyncio.get_running_loop().create_task(self._poll_forever())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _poll_forever(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval)
