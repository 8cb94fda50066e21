"""Audio transport interface used by the playback engine.

A transport owns the actual audio output (an mpv process, a browser audio
element, a fake in tests). The engine only talks to it through this
protocol, so playback logic runs headless.

Events a transport may emit through on():
- "playing": audio is flowing (also after a buffering pause)
- "paused": output paused
- "waiting": buffering, audio temporarily stopped
- "error": the current source failed (detail carries a message)
- "ended": the source stopped producing audio
"""

from typing import Callable, Optional, Protocol

TransportCallback = Callable[[Optional[str]], None]

TRANSPORT_EVENTS = ("playing", "paused", "waiting", "error", "ended")


class AudioTransport(Protocol):
    """Minimal audio backend contract."""

    async def load(self, url: str) -> None:
        """Point the transport at a new source. Raises TransportError."""
        ...

    async def play(self) -> None:
        """Start or resume output; returns once audio is produced. Raises TransportError."""
        ...

    async def pause(self) -> None: ...

    async def stop(self) -> None:
        """Stop output and unload the source."""
        ...

    async def set_volume(self, level: int) -> None:
        """Apply an effective volume in 0..100."""
        ...

    async def start_recording(self, path: str) -> None:
        """Dump the incoming stream to path as it plays. Raises TransportError."""
        ...

    async def stop_recording(self) -> None: ...

    def on(self, event: str, callback: TransportCallback) -> None: ...


class EventEmitter:
    """Small callback registry shared by transport implementations."""

    def __init__(self) -> None:
        self._callbacks: dict[str, list[TransportCallback]] = {}

    def on(self, event: str, callback: TransportCallback) -> None:
        if event not in TRANSPORT_EVENTS:
            raise ValueError(f"Unknown transport event: {event}")
        self._callbacks.setdefault(event, []).append(callback)

    def emit(self, event: str, detail: Optional[str] = None) -> None:
        for callback in list(self._callbacks.get(event, [])):
            callback(detail)
