"""
MPV audio transport over JSON IPC.

Drives a headless mpv process through its IPC socket and polls it to report
playback events to the engine.
"""

import asyncio
import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from skywave.domain.errors import TransportError

from .transport import EventEmitter, TransportCallback

POLL_INTERVAL = 0.25

# How long mpv may stay idle after loadfile before the load counts as failed
IDLE_GRACE_SECONDS = 2.0


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(["mpv", "--version"], capture_output=True, text=True, timeout=5)
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def mpv_request(socket_path: Optional[str], command: list[Any]) -> Optional[dict[str, Any]]:
    """Send one JSON IPC command and return mpv's reply, or None on failure."""
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(2.0)
            sock.connect(socket_path)
            sock.sendall((json.dumps({"command": command}) + "\n").encode("utf-8"))
            raw = sock.recv(4096).decode("utf-8")
    except OSError:
        return None

    # mpv may interleave event lines with the reply
    for line in raw.splitlines():
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if "error" in message:
            return message
    return None


class MpvTransport:
    """AudioTransport backed by an mpv subprocess."""

    def __init__(self, socket_path: Optional[str] = None, volume: int = 75):
        self.socket_path = socket_path or str(
            Path(tempfile.gettempdir()) / f"skywave-mpv-{os.getpid()}"
        )
        self.initial_volume = volume
        self.process: Optional[subprocess.Popen] = None
        self._events = EventEmitter()
        self._watcher: Optional[asyncio.Task] = None
        self._buffering = False

    # === Process lifecycle ===

    async def start(self) -> None:
        """Spawn mpv with JSON IPC and wait for its socket."""
        if not check_mpv_available():
            raise TransportError("mpv not found. Install mpv first.")

        if os.path.exists(self.socket_path):
            logger.debug(f"Removing existing socket: {self.socket_path}")
            os.unlink(self.socket_path)

        logger.info(f"Starting MPV player with socket: {self.socket_path}")
        self.process = subprocess.Popen(
            [
                "mpv",
                "--idle=yes",
                "--no-video",
                "--no-terminal",
                f"--input-ipc-server={self.socket_path}",
                f"--volume={self.initial_volume}",
                "--load-scripts=no",
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
        )

        deadline = time.monotonic() + 5.0
        while not os.path.exists(self.socket_path):
            if time.monotonic() > deadline:
                self.process.kill()
                raise TransportError("MPV socket creation timeout after 5s")
            await asyncio.sleep(0.1)

    async def close(self) -> None:
        """Stop mpv and remove its socket."""
        self._stop_watcher()
        if self.process:
            try:
                self.process.kill()
                self.process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.debug(f"MPV already gone: {e}")
            self.process = None
        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

    # === IPC helpers ===

    async def _command(self, *command: Any) -> Any:
        reply = await asyncio.to_thread(mpv_request, self.socket_path, list(command))
        if reply is None or reply.get("error") != "success":
            error = reply.get("error") if reply else "no response"
            raise TransportError(f"mpv {command[0]} failed: {error}")
        return reply.get("data")

    async def _get(self, name: str) -> Any:
        reply = await asyncio.to_thread(mpv_request, self.socket_path, ["get_property", name])
        if reply is None or reply.get("error") != "success":
            return None
        return reply.get("data")

    # === AudioTransport ===

    def on(self, event: str, callback: TransportCallback) -> None:
        self._events.on(event, callback)

    async def load(self, url: str) -> None:
        self._stop_watcher()
        await self._command("loadfile", url, "replace")

    async def play(self) -> None:
        """Unpause and wait until mpv reports a playback position."""
        await self._command("set_property", "pause", False)

        started = time.monotonic()
        loading_seen = False
        while True:
            idle = await self._get("idle-active")
            if not idle:
                loading_seen = True
                if await self._get("playback-time") is not None:
                    break
            elif loading_seen or time.monotonic() - started > IDLE_GRACE_SECONDS:
                raise TransportError("mpv could not open the stream")
            await asyncio.sleep(POLL_INTERVAL)

        self._buffering = False
        self._events.emit("playing")
        if self._watcher is None or self._watcher.done():
            self._watcher = asyncio.create_task(self._watch())

    async def pause(self) -> None:
        await self._command("set_property", "pause", True)
        self._stop_watcher()
        self._events.emit("paused")

    async def stop(self) -> None:
        self._stop_watcher()
        await self._command("stop")

    async def set_volume(self, level: int) -> None:
        await self._command("set_property", "volume", level)

    async def start_recording(self, path: str) -> None:
        """Write the raw stream to path via mpv's stream-record property."""
        await self._command("set_property", "stream-record", path)

    async def stop_recording(self) -> None:
        await self._command("set_property", "stream-record", "")

    # === Event polling ===

    def _stop_watcher(self) -> None:
        if self._watcher is not None and not self._watcher.done():
            self._watcher.cancel()
        self._watcher = None

    async def _watch(self) -> None:
        """Poll mpv while playing and translate its state into events."""
        while True:
            await asyncio.sleep(POLL_INTERVAL)
            if self.process is not None and self.process.poll() is not None:
                self._events.emit("error", "mpv exited unexpectedly")
                return
            if await self._get("idle-active"):
                self._events.emit("ended", "Stream ended")
                return
            buffering = bool(await self._get("paused-for-cache"))
            if buffering and not self._buffering:
                self._events.emit("waiting")
            elif self._buffering and not buffering:
                self._events.emit("playing")
            self._buffering = buffering
