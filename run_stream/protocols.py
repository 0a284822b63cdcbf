"""
Logging protocol shared by the run-stream services.

The controller, channel bus, replay loader and cache refresher report through an
async logger handed to them at construction, so the same code logs to a terminal
from the CLI and stays silent in library use.
"""

from __future__ import annotations

from typing import Protocol


class LoggerProtocol(Protocol):
    """
    Async logger accepted by every service.

    Implementations:
    - CLILogger (cli/logger.py): stderr output, info only in verbose mode
    - NullLogger (below): discards everything
    """

    async def info(self, message: str) -> None: ...
    async def warning(self, message: str) -> None: ...
    async def error(self, message: str) -> None: ...


class NullLogger:
    """Logger used when a service is constructed without one."""

    async def info(self, message: str) -> None:
        pass

    async def warning(self, message: str) -> None:
        pass

    async def error(self, message: str) -> None:
        pass
