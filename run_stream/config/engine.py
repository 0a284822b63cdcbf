"""
Engine configuration.

Extends base configuration with stream-engine timings and storage locations.
"""

from __future__ import annotations

import pathlib

import pydantic

from run_stream.config.base import BaseRunStreamSettings, lazy_settings


class EngineSettings(BaseRunStreamSettings):
    """Stream engine configuration."""

    # Cache freshness window: a cached run newer than this is served without reload
    CACHE_FRESHNESS_SECONDS: float = 5.0

    # Background refresh interval for running runs
    CACHE_POLL_INTERVAL_SECONDS: float = 3.0

    # Elapsed-time ticker period while a run is live
    ELAPSED_TICK_SECONDS: float = 0.1

    # Local run store
    RUNS_DIR: pathlib.Path = pathlib.Path.home() / '.run-stream' / 'runs'
    PROJECTS_DIR: pathlib.Path = pathlib.Path.home() / '.claude' / 'projects'

    @pydantic.field_validator('CACHE_FRESHNESS_SECONDS', 'CACHE_POLL_INTERVAL_SECONDS', 'ELAPSED_TICK_SECONDS')
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Intervals must be strictly positive."""
        if v <= 0:
            raise ValueError('interval must be greater than 0')
        return v


# Module-level singleton (lazy-loaded)
settings = lazy_settings(EngineSettings)
