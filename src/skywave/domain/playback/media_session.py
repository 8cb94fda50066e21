"""Media session adapter.

Mirrors playback state into the host's "now playing" integration (lock
screen controls, desktop notifications). Everything here is best-effort:
without a host every call is a no-op, and host failures are logged, never
raised to the caller.
"""

import shutil
import subprocess
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from skywave.domain.stations.models import Station

MediaHandler = Callable[[], None]

SUPPORTED_ACTIONS = (
    "play",
    "pause",
    "stop",
    "seekbackward",
    "seekforward",
    "previoustrack",
    "nexttrack",
)

DEFAULT_ALBUM = "Skywave"


class MediaHost(Protocol):
    """Host-side now-playing capability."""

    def set_metadata(self, metadata: Optional[dict[str, Any]]) -> None: ...

    def set_action_handler(self, action: str, handler: Optional[MediaHandler]) -> None: ...

    def set_playback_state(self, state: str) -> None: ...


def build_metadata(station: Station) -> dict[str, Any]:
    """Now-playing metadata for a station."""
    return {
        "title": station.name,
        "artist": station.country or "",
        "album": station.tags or DEFAULT_ALBUM,
        "artwork": station.favicon,
    }


class MediaSession:
    """Binds engine transport controls to an optional MediaHost."""

    def __init__(self, host: Optional[MediaHost] = None):
        self.host = host
        self.registered: set[str] = set()
        self.playback_state = "none"

    @property
    def available(self) -> bool:
        return self.host is not None

    def _call(self, method: Callable[..., None], *args: Any) -> None:
        try:
            method(*args)
        except Exception as e:
            logger.warning(f"Media session call {method.__name__} failed: {e}")

    def publish(self, station: Station, handlers: dict[str, MediaHandler]) -> None:
        """Publish station metadata and register the given action handlers."""
        if self.host is None:
            logger.debug("Media session not supported by host")
            return

        self._call(self.host.set_metadata, build_metadata(station))

        for action in SUPPORTED_ACTIONS:
            handler = handlers.get(action)
            if handler is None:
                continue
            try:
                self.host.set_action_handler(action, handler)
                self.registered.add(action)
            except Exception as e:
                logger.debug(f'Media session action "{action}" not supported: {e}')

        self.update_playback_state("playing")

    def update_playback_state(self, state: str) -> None:
        """Set the host indicator to playing, paused or none."""
        if self.host is None:
            return
        self.playback_state = state
        self._call(self.host.set_playback_state, state)

    def clear(self) -> None:
        """Drop metadata, unregister every handler and reset to "none"."""
        if self.host is None:
            return

        self._call(self.host.set_metadata, None)
        self.update_playback_state("none")

        for action in SUPPORTED_ACTIONS:
            try:
                self.host.set_action_handler(action, None)
            except Exception as e:
                logger.debug(f'Could not clear media session action "{action}": {e}')
        self.registered.clear()


class NotificationHost:
    """Desktop notification host using notify-send.

    Shows a notification when a station starts. Remote-control actions are
    not supported.
    """

    def __init__(self, app_name: str = "Skywave"):
        self.app_name = app_name
        self.state = "none"

    def set_metadata(self, metadata: Optional[dict[str, Any]]) -> None:
        if not metadata:
            return
        artist = metadata.get("artist")
        body = f"{metadata['title']} - {artist}" if artist else metadata["title"]
        notify("Now Playing", body, app_name=self.app_name)

    def set_action_handler(self, action: str, handler: Optional[MediaHandler]) -> None:
        if handler is not None:
            raise NotImplementedError(f"{action} is not supported by desktop notifications")

    def set_playback_state(self, state: str) -> None:
        self.state = state


def notify(title: str, message: str, app_name: str = "Skywave") -> None:
    """
    Show a desktop notification using notify-send.

    Note:
        Silently skips notification if notify-send is not available.
    """
    if not shutil.which("notify-send"):
        return

    try:
        subprocess.run(
            ["notify-send", "--app-name", app_name, title, message],
            check=False,
            timeout=2.0,
            capture_output=True,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"notify-send failed: {e}")
