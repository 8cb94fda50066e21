"""Playback domain - failover engine and its collaborators.

This domain handles:
- The playback state machine (direct attempt, health probe, relay attempt)
- The single deferred auto-retry
- Audio transports (mpv over JSON IPC)
- Media session ("now playing") integration
"""

from .engine import (
    PlaybackEngine,
    PlaybackSession,
    PlaybackState,
    ScheduledRetry,
    SourceMode,
    clamp_volume,
    recording_filename,
)
from .gateway import HttpStreamGateway, StreamGateway
from .media_session import MediaHost, MediaSession, NotificationHost
from .transport import AudioTransport, EventEmitter

__all__ = [
    "AudioTransport",
    "EventEmitter",
    "HttpStreamGateway",
    "MediaHost",
    "MediaSession",
    "NotificationHost",
    "PlaybackEngine",
    "PlaybackSession",
    "PlaybackState",
    "ScheduledRetry",
    "SourceMode",
    "StreamGateway",
    "clamp_volume",
    "recording_filename",
]
