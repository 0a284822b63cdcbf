"""Process supervisor interface and in-process channel hub."""

from run_stream.supervisor.hub import ChannelHub
from run_stream.supervisor.protocol import (
    CHANNEL_KINDS,
    ChannelHandler,
    ChannelKind,
    ProcessSupervisor,
    Unsubscribe,
    channel_name,
)

__all__ = [
    'CHANNEL_KINDS',
    'ChannelHandler',
    'ChannelHub',
    'ChannelKind',
    'ProcessSupervisor',
    'Unsubscribe',
    'channel_name',
]
