"""Run storage backends."""

from run_stream.storage.local import LocalRunStorage
from run_stream.storage.protocol import RunStorage

__all__ = ['LocalRunStorage', 'RunStorage']
