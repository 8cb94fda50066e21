"""Client side of the backend stream endpoints.

The engine asks the backend whether a stream is healthy and, if so, plays
it through the relay URL instead of the origin.
"""

from typing import Optional, Protocol
from urllib.parse import quote, urlencode

import httpx
from loguru import logger

from skywave.domain.streaming.health import (
    DEFAULT_PROBE_TIMEOUT_MS,
    HealthCheckResult,
    is_audio_like,
)


class StreamGateway(Protocol):
    """What the playback engine needs from the relay backend."""

    async def check(self, station_id: str, url: str) -> HealthCheckResult: ...

    def relay_url(self, station_id: str, url: str) -> str: ...


class HttpStreamGateway:
    """StreamGateway backed by the /api/stream endpoints."""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient()
        self.timeout_ms = timeout_ms

    def check_url(self, station_id: str) -> str:
        return f"{self.base_url}/api/stream/check/{quote(station_id, safe='')}"

    def relay_url(self, station_id: str, url: str) -> str:
        query = urlencode({"url": url})
        return f"{self.base_url}/api/stream/{quote(station_id, safe='')}?{query}"

    async def check(self, station_id: str, url: str) -> HealthCheckResult:
        """Ask the backend to probe url. Never raises."""
        try:
            # Leave the backend room to report its own timeout
            response = await self.client.get(
                self.check_url(station_id),
                params={"url": url},
                timeout=self.timeout_ms / 1000 + 2.0,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Health check request failed for {station_id}: {e}")
            return HealthCheckResult(
                reachable=False,
                http_status=0,
                content_type="",
                is_audio_like=False,
                message=f"Health check unavailable: {e}",
            )

        status = int(data.get("status") or 0)
        content_type = data.get("contentType") or ""
        healthy = bool(data.get("healthy"))
        return HealthCheckResult(
            reachable=healthy or 200 <= status < 300,
            http_status=status,
            content_type=content_type,
            is_audio_like=healthy or is_audio_like(content_type),
            message=data.get("message") or "",
        )

    async def aclose(self) -> None:
        await self.client.aclose()
