"""
Station domain models.

Contains data structures for stations and queries received from the
station directory.
"""

from dataclasses import dataclass
from typing import Any, Optional

VALID_ORDERS = ("name", "clickcount", "bitrate", "lastchangetime", "votes")


def _clean(value: Any) -> Optional[str]:
    """Normalize blank directory strings to None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int_or_none(value: Any) -> Optional[int]:
    """Parse a directory number, treating blanks and junk like "128k" as missing."""
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Station:
    """Represents a radio station from the directory.

    A station is playable when it carries at least one of origin_url or
    resolved_url. resolved_url is the directory's redirect-resolved form of
    origin_url and is preferred for playback.
    """

    id: str
    name: str
    country: Optional[str] = None
    language: Optional[str] = None
    tags: Optional[str] = None
    origin_url: Optional[str] = None
    resolved_url: Optional[str] = None
    codec: Optional[str] = None
    bitrate_kbps: Optional[int] = None
    favicon: Optional[str] = None
    homepage: Optional[str] = None
    click_count: Optional[int] = None

    @property
    def is_playable(self) -> bool:
        return bool(self.origin_url or self.resolved_url)

    @property
    def stream_url(self) -> Optional[str]:
        """Preferred URL for a direct attempt (resolved first)."""
        return self.resolved_url or self.origin_url

    @property
    def tag_list(self) -> list[str]:
        if not self.tags:
            return []
        return [t.strip() for t in self.tags.split(",") if t.strip()]

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Station":
        """Create from a directory station payload."""
        return cls(
            id=str(data.get("stationuuid") or data.get("id") or ""),
            name=_clean(data.get("name")) or "Unknown",
            country=_clean(data.get("country")),
            language=_clean(data.get("language")),
            tags=_clean(data.get("tags")),
            origin_url=_clean(data.get("url")),
            resolved_url=_clean(data.get("url_resolved")),
            codec=_clean(data.get("codec")),
            bitrate_kbps=_int_or_none(data.get("bitrate")) or None,
            favicon=_clean(data.get("favicon")),
            homepage=_clean(data.get("homepage")),
            click_count=_int_or_none(data.get("clickcount")),
        )


@dataclass(frozen=True)
class Facet:
    """A directory facet value (language or tag) with its station count."""

    name: str
    station_count: int = 0

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "Facet":
        return cls(
            name=_clean(data.get("name")) or "",
            station_count=_int_or_none(data.get("stationcount")) or 0,
        )


@dataclass(frozen=True)
class SearchParams:
    """Filtered search query.

    Empty filters are omitted from the directory request.
    """

    name: Optional[str] = None
    country: Optional[str] = None
    tag: Optional[str] = None
    language: Optional[str] = None
    limit: int = 50
    offset: int = 0
    order: str = "clickcount"

    def to_query(self) -> dict[str, str]:
        """Build directory query parameters, including the fixed server-side filters."""
        query = listing_query(self.limit, self.offset, self.order)
        for key in ("name", "country", "tag", "language"):
            value = getattr(self, key)
            if value:
                query[key] = value
        return query


def listing_query(limit: int, offset: int, order: str) -> dict[str, str]:
    """Query parameters shared by listing endpoints.

    hidebroken and reverse are always sent so ordering is stable per mirror.
    """
    return {
        "limit": str(limit),
        "offset": str(offset),
        "order": order,
        "reverse": "true",
        "hidebroken": "true",
    }
