"""Configuration for run-stream."""

from run_stream.config.engine import EngineSettings, settings

__all__ = ['EngineSettings', 'settings']
