"""
Playback engine with direct-then-relay failover.

State machine:

    Idle -> Loading -> Playing | Error
    Playing <-> Paused   (user driven)
    Error -> Loading     (retry: automatic once, manual any number of times)

play() runs strictly in sequence: direct attempt, health probe, relayed
attempt. When both paths fail the session moves to Error and arms a single
deferred auto-retry. Starting a new station replaces the session; an
in-flight attempt for the old session notices and stops touching state.
"""

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional

from loguru import logger

from skywave.domain.errors import (
    ErrorInfo,
    NoStreamUrlError,
    PlaybackFailedError,
    SkywaveError,
    StreamUnreachableError,
    TransportError,
)
from skywave.domain.stations.models import Station

from .gateway import StreamGateway
from .media_session import MediaSession
from .transport import AudioTransport

DEFAULT_RETRY_DELAY = 2.0
DEFAULT_START_TIMEOUT = 10.0
DEFAULT_VOLUME = 75

RECORDING_EXTENSIONS = {"mp3": "mp3", "aac": "aac", "aac+": "aac", "ogg": "ogg", "opus": "opus", "flac": "flac"}


class PlaybackState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


class SourceMode(str, Enum):
    DIRECT = "direct"
    PROXIED = "proxied"


class ScheduledRetry:
    """A single cancellable deferred retry.

    arm() is idempotent while a retry is pending. Once the delay elapses
    the retry counts as fired and can no longer be cancelled, so the
    callback may safely cancel or replace its own session.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[object]]):
        self.delay = delay
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._fired = False
        self.fire_count = 0

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done() and not self._fired

    def arm(self) -> bool:
        """Schedule the retry. Returns False if one is already pending."""
        if self.pending:
            return False
        self._fired = False
        self._task = asyncio.create_task(self._run())
        return True

    def cancel(self) -> bool:
        """Cancel a pending retry. Returns True if one was cancelled."""
        if not self.pending:
            return False
        self._task.cancel()
        self._task = None
        return True

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._fired = True
        self.fire_count += 1
        try:
            await self._callback()
        except Exception:
            logger.exception("Scheduled retry failed")


@dataclass
class PlaybackSession:
    """The single active playback session owned by a PlaybackEngine."""

    station: Optional[Station] = None
    state: PlaybackState = PlaybackState.IDLE
    source_mode: SourceMode = SourceMode.DIRECT
    volume: int = DEFAULT_VOLUME
    muted: bool = False
    last_error: Optional[ErrorInfo] = None
    buffering: bool = False
    active_url: Optional[str] = None  # URL currently loaded in the transport
    direct_url: Optional[str] = None  # URL used for the direct attempt
    auto_retry: bool = True  # False once the automatic retry has been spent
    retry_handle: Optional[ScheduledRetry] = field(default=None, repr=False)
    recording_path: Optional[Path] = None

    @property
    def retry_scheduled(self) -> bool:
        return self.retry_handle is not None and self.retry_handle.pending

    @property
    def effective_volume(self) -> int:
        return 0 if self.muted else self.volume

    @property
    def recording(self) -> bool:
        return self.recording_path is not None


SessionListener = Callable[[str, PlaybackSession], None]


def clamp_volume(level: float) -> int:
    return max(0, min(100, int(round(level))))


def recording_filename(station: Station, now: Optional[datetime] = None) -> str:
    """Default recording file name: Skywave_<station>_<timestamp>.<ext>."""
    now = now or datetime.now()
    name = re.sub(r"[^\w\-]+", "_", station.name).strip("_") or "Recording"
    extension = RECORDING_EXTENSIONS.get((station.codec or "").lower(), "mka")
    return f"Skywave_{name}_{now.strftime('%Y-%m-%dT%H-%M-%S')}.{extension}"


class PlaybackEngine:
    """Client-side playback state machine.

    Args:
        transport: Audio backend (see transport.AudioTransport)
        gateway: Health check and relay URL provider
        media_session: Now-playing integration (no-op when omitted)
        retry_delay: Seconds before the single automatic retry
        start_timeout: Seconds a source may take to start producing audio
        volume: Initial volume 0..100
        recordings_dir: Where recordings go when no path is given
    """

    def __init__(
        self,
        transport: AudioTransport,
        gateway: StreamGateway,
        media_session: Optional[MediaSession] = None,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        start_timeout: float = DEFAULT_START_TIMEOUT,
        volume: int = DEFAULT_VOLUME,
        recordings_dir: Optional[Path] = None,
    ):
        self.transport = transport
        self.gateway = gateway
        self.media_session = media_session or MediaSession()
        self.retry_delay = retry_delay
        self.start_timeout = start_timeout
        self.recordings_dir = Path(recordings_dir) if recordings_dir else Path.cwd()
        self.session = PlaybackSession(volume=clamp_volume(volume))
        self._listeners: list[SessionListener] = []
        self._background: set[asyncio.Task] = set()

        transport.on("error", self._on_transport_error)
        transport.on("ended", self._on_transport_error)
        transport.on("waiting", self._on_transport_waiting)
        transport.on("playing", self._on_transport_playing)

    # === Observers ===

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener for "state", "error", "now_playing" and "recording" events.

        Returns:
            Callable that unsubscribes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self.session)
            except Exception:
                logger.exception(f"Playback listener failed on {event}")

    def _set_state(self, session: PlaybackSession, state: PlaybackState) -> None:
        if session.state is state:
            return
        logger.debug(f"Playback state: {session.state.value} -> {state.value}")
        session.state = state
        self._emit("state")

    # === Session lifecycle ===

    def _is_current(self, session: PlaybackSession) -> bool:
        return session is self.session

    def _new_session(self, station: Optional[Station], auto_retry: bool) -> PlaybackSession:
        """Replace the active session, keeping the user's volume and mute."""
        self._cancel_retry()
        if self.session.station is not None:
            self.media_session.clear()
        self.session = PlaybackSession(
            station=station,
            volume=self.session.volume,
            muted=self.session.muted,
            auto_retry=auto_retry,
        )
        return self.session

    def _cancel_retry(self) -> None:
        if self.session.retry_handle is not None and self.session.retry_handle.cancel():
            logger.debug("Cancelled pending auto-retry")

    def _arm_retry(self, session: Optional[PlaybackSession] = None) -> bool:
        """Arm the session's single auto-retry. No-op while one is pending."""
        session = session or self.session
        if session.retry_handle is None:
            session.retry_handle = ScheduledRetry(self.retry_delay, self._auto_retry)
        armed = session.retry_handle.arm()
        if armed:
            logger.info(f"Auto-retry armed in {self.retry_delay:g}s")
        return armed

    async def _auto_retry(self) -> None:
        logger.info("Auto-retrying stream")
        await self.retry(automatic=True)

    def _fail(self, session: PlaybackSession, error: SkywaveError, arm_retry: bool = True) -> PlaybackSession:
        session.last_error = error.to_info()
        session.buffering = False
        logger.warning(f"Playback error ({session.last_error.kind.value}): {error}")
        self._set_state(session, PlaybackState.ERROR)
        if arm_retry and session.auto_retry and session.station is not None:
            self._arm_retry(session)
        self._emit("error")
        return session

    # === Playback ===

    async def play(self, station: Station) -> PlaybackSession:
        """Start playing a station in a fresh session.

        Failures are reported through session.state and session.last_error.
        """
        return await self._start(station, preferred_url=None, auto_retry=True)

    async def _start(
        self, station: Station, preferred_url: Optional[str], auto_retry: bool
    ) -> PlaybackSession:
        await self.stop_recording()
        session = self._new_session(station, auto_retry)

        if not station.is_playable:
            return self._fail(
                session,
                NoStreamUrlError(f"No stream URL available for {station.name}"),
                arm_retry=False,
            )

        self._set_state(session, PlaybackState.LOADING)
        url = preferred_url or station.stream_url
        session.direct_url = url

        if await self._attempt(session, url, SourceMode.DIRECT):
            return session
        if not self._is_current(session):
            return session

        health = await self.gateway.check(station.id, url)
        if not self._is_current(session):
            return session
        if not health.healthy:
            return self._fail(session, StreamUnreachableError(f"Stream unreachable: {health.message}"))

        relay_url = self.gateway.relay_url(station.id, url)
        if await self._attempt(session, relay_url, SourceMode.PROXIED):
            return session
        if not self._is_current(session):
            return session

        return self._fail(
            session,
            PlaybackFailedError(f"Could not play {station.name} directly or through the relay"),
        )

    async def _attempt(self, session: PlaybackSession, url: str, mode: SourceMode) -> bool:
        """Load url and wait for audio. True once the session is Playing."""
        session.source_mode = mode
        session.active_url = url
        logger.info(f"Trying {mode.value} playback: {url}")

        try:
            await self.transport.load(url)
            await self.transport.set_volume(session.effective_volume)
            await asyncio.wait_for(self.transport.play(), timeout=self.start_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{mode.value} playback did not start within {self.start_timeout:g}s")
            return False
        except (TransportError, OSError) as e:
            logger.warning(f"{mode.value} playback failed: {e}")
            return False

        if not self._is_current(session):
            return False

        session.last_error = None
        session.buffering = False
        self._set_state(session, PlaybackState.PLAYING)
        self._publish_media(session)
        self._emit("now_playing")
        return True

    def _publish_media(self, session: PlaybackSession) -> None:
        self.media_session.publish(
            session.station,
            {
                "play": lambda: self._spawn(self.toggle_play_pause()),
                "pause": lambda: self._spawn(self.toggle_play_pause()),
                "stop": lambda: self._spawn(self.stop()),
            },
        )

    def _spawn(self, coro: Awaitable[object]) -> None:
        """Run a control coroutine triggered by a host callback."""
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def retry(self, automatic: bool = False) -> PlaybackSession:
        """Replay the current station, cancelling any pending auto-retry.

        After a failure, or while proxied, the other of resolved/origin URL
        is tried first so retries alternate paths instead of repeating one.
        """
        session = self.session
        if session.station is None:
            return session
        self._cancel_retry()

        preferred = session.direct_url
        if session.state is PlaybackState.ERROR or session.source_mode is SourceMode.PROXIED:
            preferred = self._alternate_url(session)

        logger.info(f"Retrying {session.station.name} via {preferred}")
        return await self._start(session.station, preferred_url=preferred, auto_retry=not automatic)

    @staticmethod
    def _alternate_url(session: PlaybackSession) -> Optional[str]:
        station = session.station
        for candidate in (station.resolved_url, station.origin_url):
            if candidate and candidate != session.direct_url:
                return candidate
        return session.direct_url

    async def pause(self) -> None:
        """Pause output. The session and its source stay loaded."""
        session = self.session
        if session.state is not PlaybackState.PLAYING:
            return
        try:
            await self.transport.pause()
        except (TransportError, OSError) as e:
            if self._is_current(session):
                self._fail(session, PlaybackFailedError(f"Could not pause playback: {e}"), arm_retry=False)
            return
        if not self._is_current(session):
            return
        session.buffering = False
        self._set_state(session, PlaybackState.PAUSED)
        self.media_session.clear()

    async def resume(self) -> None:
        """Resume a paused session on the already loaded source."""
        session = self.session
        if session.state is not PlaybackState.PAUSED:
            return
        try:
            await asyncio.wait_for(self.transport.play(), timeout=self.start_timeout)
        except (asyncio.TimeoutError, TransportError, OSError) as e:
            if self._is_current(session):
                self._fail(
                    session,
                    PlaybackFailedError(f"Could not resume playback: {e or 'timed out'}"),
                    arm_retry=False,
                )
            return
        if not self._is_current(session):
            return
        self._set_state(session, PlaybackState.PLAYING)
        self._publish_media(session)

    async def toggle_play_pause(self) -> None:
        state = self.session.state
        if state is PlaybackState.PLAYING:
            await self.pause()
        elif state is PlaybackState.PAUSED:
            await self.resume()
        elif state is PlaybackState.ERROR:
            await self.retry()

    async def stop(self) -> None:
        """End the session and return to Idle."""
        await self.stop_recording()
        self._new_session(None, auto_retry=True)
        await self.transport.stop()
        self._emit("state")

    # === Recording ===

    async def start_recording(self, path: Optional[Path] = None) -> Optional[Path]:
        """Record the playing stream to a file.

        Only a Playing session that is not already recording can start one.
        Without a path the file goes to recordings_dir under
        recording_filename().

        Returns:
            Path being written, or None if nothing was started
        """
        session = self.session
        if session.state is not PlaybackState.PLAYING or session.recording:
            return None
        target = Path(path) if path else self.recordings_dir / recording_filename(session.station)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await self.transport.start_recording(str(target))
        except (TransportError, OSError) as e:
            logger.warning(f"Could not start recording: {e}")
            return None
        if not self._is_current(session):
            await self.transport.stop_recording()
            return None

        session.recording_path = target
        logger.info(f"Recording {session.station.name} to {target}")
        self._emit("recording")
        return target

    async def stop_recording(self) -> Optional[Path]:
        """Finish the current recording. Returns the saved file, if any."""
        session = self.session
        path = session.recording_path
        if path is None:
            return None
        session.recording_path = None
        try:
            await self.transport.stop_recording()
        except (TransportError, OSError) as e:
            logger.warning(f"Could not stop recording cleanly: {e}")
        logger.info(f"Recording saved: {path}")
        self._emit("recording")
        return path

    # === Volume ===

    @property
    def effective_volume(self) -> int:
        return self.session.effective_volume

    async def set_volume(self, level: float) -> int:
        """Set the stored volume, clamped to 0..100. Muting is left untouched."""
        self.session.volume = clamp_volume(level)
        await self.transport.set_volume(self.session.effective_volume)
        return self.session.volume

    async def toggle_mute(self) -> bool:
        self.session.muted = not self.session.muted
        await self.transport.set_volume(self.session.effective_volume)
        return self.session.muted

    # === Transport events ===

    def _on_transport_error(self, detail: Optional[str]) -> None:
        session = self.session
        if session.state not in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            # Failures while loading are handled by the attempt itself
            return
        self._fail(session, PlaybackFailedError(detail or "Stream playback failed"))

    def _on_transport_waiting(self, detail: Optional[str]) -> None:
        session = self.session
        if session.state is PlaybackState.PLAYING and not session.buffering:
            session.buffering = True
            self._emit("state")

    def _on_transport_playing(self, detail: Optional[str]) -> None:
        session = self.session
        if session.buffering:
            session.buffering = False
            self._emit("state")

