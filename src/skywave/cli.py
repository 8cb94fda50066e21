"""
Skywave CLI - Entry point

Runs the relay/directory API and offers a few terminal commands for browsing
the directory and playing a station through the mpv transport.
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from skywave.core.config import Config, get_data_dir, load_config
from skywave.core.output import setup_from_config
from skywave.domain.errors import DirectoryUnavailableError, TransportError
from skywave.domain.stations import DirectoryClient, SearchParams, Station


def print_stations(stations: list[Station]) -> None:
    """Print one line per station."""
    if not stations:
        print("No stations found")
        return
    for station in stations:
        details = [d for d in (station.country, station.codec) if d]
        if station.bitrate_kbps:
            details.append(f"{station.bitrate_kbps} kbps")
        suffix = f" ({', '.join(details)})" if details else ""
        print(f"  {station.name}{suffix}")
        print(f"    {station.stream_url or 'no stream URL'}")


def run_serve(config: Config, host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    # web.backend.main reads allowed origins from the environment at import
    os.environ.setdefault("ALLOWED_ORIGINS", ",".join(config.web.allowed_origins))
    uvicorn.run(
        "web.backend.main:app",
        host=host or config.web.host,
        port=port or config.web.port,
        log_level=config.logging.level.lower(),
    )
    return 0


def run_search(config: Config, args: argparse.Namespace) -> int:
    client = DirectoryClient(config.directory)
    params = SearchParams(
        name=args.name,
        country=args.country,
        tag=args.tag,
        language=args.language,
        limit=args.limit,
    )
    try:
        print_stations(client.search(params))
    except DirectoryUnavailableError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


def run_top(config: Config, count: int) -> int:
    client = DirectoryClient(config.directory)
    try:
        print_stations(client.top_clicked(count))
    except DirectoryUnavailableError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


async def play_station(config: Config, station: Station, record: Optional[str] = None) -> int:
    """Play a station until interrupted. Returns an exit code.

    record: None to skip recording, "" for a default file name, or a path.
    """
    from skywave.domain.playback import (
        HttpStreamGateway,
        MediaSession,
        NotificationHost,
        PlaybackEngine,
        PlaybackSession,
        PlaybackState,
    )
    from skywave.domain.playback.mpv import MpvTransport

    player = config.player
    transport = MpvTransport(socket_path=player.mpv_socket_path, volume=player.volume)
    gateway = HttpStreamGateway(player.backend_url, timeout_ms=config.stream.probe_timeout_ms)
    engine = PlaybackEngine(
        transport,
        gateway,
        media_session=MediaSession(NotificationHost()),
        retry_delay=player.retry_delay_seconds,
        start_timeout=player.start_timeout_seconds,
        volume=player.volume,
        recordings_dir=recordings_dir(config),
    )

    def report(event: str, session: PlaybackSession) -> None:
        if event == "now_playing":
            print(f"▶ {session.station.name} ({session.source_mode.value})")
        elif event == "error" and session.last_error:
            retry_note = " - retrying shortly" if session.retry_scheduled else ""
            print(f"❌ {session.last_error.message}{retry_note}")
        elif event == "state" and session.buffering:
            print("… buffering")
        elif event == "recording":
            if session.recording_path:
                print(f"● Recording to {session.recording_path}")

    engine.subscribe(report)

    await transport.start()
    try:
        await engine.play(station)
        if record is not None and engine.session.state is PlaybackState.PLAYING:
            saved = await engine.start_recording(Path(record).expanduser() if record else None)
            if saved is None:
                print("❌ Could not start recording", file=sys.stderr)
        while True:
            await asyncio.sleep(1.0)
    finally:
        saved = await engine.stop_recording()
        if saved is not None:
            print(f"Saved recording: {saved}")
        await engine.stop()
        await transport.close()
        await gateway.aclose()


def recordings_dir(config: Config) -> Path:
    if config.player.recordings_dir:
        return Path(config.player.recordings_dir).expanduser()
    return get_data_dir() / "recordings"


def resolve_station(config: Config, target: str, name: Optional[str], station_id: Optional[str]) -> Optional[Station]:
    """Turn a URL or a name into a Station."""
    if target.lower().startswith(("http://", "https://")):
        return Station(id=station_id or "custom", name=name or target, origin_url=target)

    client = DirectoryClient(config.directory)
    matches = client.search(SearchParams(name=target, limit=1))
    return matches[0] if matches else None


def run_play(config: Config, args: argparse.Namespace) -> int:
    from skywave.domain.playback.mpv import check_mpv_available

    if not check_mpv_available():
        print("❌ mpv not found. Install mpv first.", file=sys.stderr)
        return 1

    try:
        station = resolve_station(config, args.target, args.name, args.station_id)
    except DirectoryUnavailableError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    if station is None:
        print(f"No station matches '{args.target}'")
        return 1

    try:
        return asyncio.run(play_station(config, station, args.record))
    except KeyboardInterrupt:
        print()
        return 0
    except TransportError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Skywave - Internet radio directory, relay and player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the directory and relay API")
    serve_parser.add_argument("--host", help="Bind address (default from config)")
    serve_parser.add_argument("--port", type=int, help="Port (default from config)")

    search_parser = subparsers.add_parser("search", help="Search stations by name")
    search_parser.add_argument("name", nargs="?", help="Station name")
    search_parser.add_argument("--country", help="Country filter")
    search_parser.add_argument("--tag", help="Tag filter")
    search_parser.add_argument("--language", help="Language filter")
    search_parser.add_argument("--limit", type=int, default=20, help="Maximum results")

    top_parser = subparsers.add_parser("top", help="Most clicked stations")
    top_parser.add_argument("count", nargs="?", type=int, default=10, help="Number of stations")

    play_parser = subparsers.add_parser("play", help="Play a stream URL or a station by name")
    play_parser.add_argument("target", help="Stream URL or station name")
    play_parser.add_argument("--name", help="Display name for a raw URL")
    play_parser.add_argument("--station-id", help="Station id used for relay requests")
    play_parser.add_argument(
        "--record",
        nargs="?",
        const="",
        metavar="PATH",
        help="Record the stream while it plays (default file in the recordings directory)",
    )

    return parser


def main() -> None:
    """Main entry point for the skywave command."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.subcommand:
        parser.print_help()
        sys.exit(1)

    config = load_config()
    setup_from_config(config.logging)
    logger.debug(f"Running command: {args.subcommand}")

    if args.subcommand == "serve":
        sys.exit(run_serve(config, args.host, args.port))
    elif args.subcommand == "search":
        sys.exit(run_search(config, args))
    elif args.subcommand == "top":
        sys.exit(run_top(config, args.count))
    elif args.subcommand == "play":
        sys.exit(run_play(config, args))


if __name__ == "__main__":
    main()
