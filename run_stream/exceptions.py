"""
Shared exceptions for run-stream.

Domain-specific exceptions used across services.

Exception Hierarchy:
    RunStreamError (base)
    ├── RunLifecycleError (invalid lifecycle operations)
    │   └── RunAlreadyActiveError (start while a run is in progress)
    ├── ReplayError (no storage representation could be loaded)
    └── RunNotFoundError (run store has no such run)
"""

from __future__ import annotations


class RunStreamError(Exception):
    """Base exception for all run-stream errors."""


class RunLifecycleError(RunStreamError):
    """Base exception for operations not allowed in the current run state."""


class RunAlreadyActiveError(RunLifecycleError):
    """Raised when starting a run on a controller that is already running one."""

    def __init__(self, run_id: int | None) -> None:
        self.run_id = run_id
        label = f'Run {run_id}' if run_id is not None else 'A run'
        super().__init__(f'{label} is already running on this controller. Stop it before starting another.')


class ReplayError(RunStreamError):
    """Raised when neither the durable transcript nor the raw output of a run could be loaded."""

    def __init__(self, run_id: int, reason: str) -> None:
        self.run_id = run_id
        self.reason = reason
        super().__init__(f'Could not replay run {run_id}: {reason}')


class RunNotFoundError(RunStreamError):
    """Raised when the run store has no record of a run."""

    def __init__(self, run_id: int) -> None:
        self.run_id = run_id
        super().__init__(f'Run {run_id} not found')
