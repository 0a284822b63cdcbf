"""
Run storage protocol.

Defines the interface for durable run storage: run metadata, per-session transcripts
and the flat raw-output blob kept for every run.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from run_stream.schemas.runs import RunInfo


@runtime_checkable
class RunStorage(Protocol):
    """Protocol for durable run storage backends."""

    async def get_run(self, run_id: int) -> RunInfo:
        """
        Load run metadata.

        Raises:
            RunNotFoundError: If the store has no such run
        """
        ...

    async def list_running_runs(self) -> Sequence[RunInfo]:
        """Runs the store currently reports as running."""
        ...

    async def load_durable_transcript(self, session_id: str) -> Sequence[dict[str, Any]]:
        """
        Load the structured transcript of an agent session.

        Args:
            session_id: Durable session id (from the run's system/init event)

        Returns:
            Ordered, loosely-typed transcript entries

        Raises:
            FileNotFoundError: If no transcript exists for the session
        """
        ...

    async def load_raw_output(self, run_id: int) -> str:
        """
        Load the raw output captured for a run.

        Returns:
            Newline-joined raw JSON lines

        Raises:
            FileNotFoundError: If no output was captured
        """
        ...

    async def request_live_handoff(self, run_id: int) -> None:
        """
        Ask the supervisor to (re)publish further output of a running run on its channels.

        Best-effort: callers log failures and carry on.

        Raises:
            NotImplementedError: If the backend cannot stream live output
        """
        raise NotImplementedError(f'{type(self).__name__} does not support live handoff')
