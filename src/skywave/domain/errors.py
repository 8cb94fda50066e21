"""Skywave exceptions and failure classification."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Failure classes surfaced to callers."""

    NO_STREAM_URL = "no_stream_url"
    STREAM_UNREACHABLE = "stream_unreachable"
    PLAYBACK_FAILED = "playback_failed"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"
    RELAY_UPSTREAM_ERROR = "relay_upstream_error"
    RELAY_TRANSFER_INTERRUPTED = "relay_transfer_interrupted"


@dataclass(frozen=True)
class ErrorInfo:
    """Human-readable failure attached to a playback session."""

    kind: ErrorKind
    message: str


class SkywaveError(Exception):
    """Base exception for Skywave operations."""

    kind: Optional[ErrorKind] = None

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(kind=self.kind or ErrorKind.PLAYBACK_FAILED, message=str(self))


class NoStreamUrlError(SkywaveError):
    """Raised when a station has neither an origin nor a resolved URL."""

    kind = ErrorKind.NO_STREAM_URL


class StreamUnreachableError(SkywaveError):
    """Raised when the health probe rejects a candidate stream."""

    kind = ErrorKind.STREAM_UNREACHABLE


class PlaybackFailedError(SkywaveError):
    """Raised when both direct and relayed playback failed."""

    kind = ErrorKind.PLAYBACK_FAILED


class DirectoryUnavailableError(SkywaveError):
    """Raised when every directory mirror failed.

    Carries one message per mirror, in mirror order.
    """

    kind = ErrorKind.DIRECTORY_UNAVAILABLE

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"All mirrors failed: {', '.join(self.errors)}")


class RelayUpstreamError(SkywaveError):
    """Raised when the origin answers the relay with a non-2xx status."""

    kind = ErrorKind.RELAY_UPSTREAM_ERROR

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(message)


class RelayTransferInterrupted(SkywaveError):
    """Raised when an origin stream stalls or errors mid-transfer."""

    kind = ErrorKind.RELAY_TRANSFER_INTERRUPTED


class TransportError(SkywaveError):
    """Raised by an audio transport when a source cannot be played."""

    pass
