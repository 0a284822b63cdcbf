"""Stream reconciliation services."""

from run_stream.services.cache import (
    CacheEntry,
    InMemoryOutputCache,
    OutputCacheProtocol,
    OutputCacheRefresher,
    is_fresh,
)
from run_stream.services.channels import ChannelEvent, RunChannels
from run_stream.services.controller import Notice, RunSessionController
from run_stream.services.decoder import DecodedChunk, DecodeFailure, decode_line, decode_lines
from run_stream.services.export import to_jsonl, to_markdown
from run_stream.services.ledger import ToolInvocation, ToolLedger, ToolLookup, ToolOutcome
from run_stream.services.record import RunRecord, RunSnapshot
from run_stream.services.replay import ReplayLoader
from run_stream.services.visibility import VisibilityFilter, is_displayable

__all__ = [
    'CacheEntry',
    'ChannelEvent',
    'DecodeFailure',
    'DecodedChunk',
    'InMemoryOutputCache',
    'Notice',
    'OutputCacheProtocol',
    'OutputCacheRefresher',
    'ReplayLoader',
    'RunChannels',
    'RunRecord',
    'RunSessionController',
    'RunSnapshot',
    'ToolInvocation',
    'ToolLedger',
    'ToolLookup',
    'ToolOutcome',
    'VisibilityFilter',
    'decode_line',
    'decode_lines',
    'is_displayable',
    'is_fresh',
    'to_jsonl',
    'to_markdown',
]
