"""Stream relay.

Fetches a live stream from its origin and forwards it chunk by chunk. The
copy runs through BoundedPump, which holds at most a fixed number of chunks
in memory: when the consumer is slow the upstream reader waits instead of
buffering. Closing the relay (client disconnect or stream end) cancels the
upstream read and releases the origin connection.
"""

import asyncio
from typing import AsyncIterator, Optional

import anyio
import httpx
from loguru import logger

from skywave.domain.errors import RelayTransferInterrupted, RelayUpstreamError

DEFAULT_CONTENT_TYPE = "audio/mpeg"

UPSTREAM_HEADERS = {
    "Range": "bytes=0-",
    "Accept-Encoding": "identity",
    "Connection": "keep-alive",
}

# Origin metadata headers forwarded to the client as-is
PASSTHROUGH_HEADERS = ("icy-name", "icy-genre", "icy-br", "icy-description")

_EOF = object()


class BoundedPump:
    """Backpressure-aware copy from an async byte source to a consumer.

    A producer task reads the source into a queue of at most max_chunks
    items; iterating the pump drains that queue. A source that yields
    nothing for stall_timeout seconds, or fails mid-read, ends iteration
    with RelayTransferInterrupted.
    """

    def __init__(
        self,
        source: AsyncIterator[bytes],
        max_chunks: int = 4,
        stall_timeout: float = 15.0,
    ):
        self._source = source
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_chunks)
        self._task: Optional[asyncio.Task] = None
        self.max_chunks = max_chunks
        self.stall_timeout = stall_timeout
        self.max_buffered = 0  # high-water mark of queued chunks
        self.bytes_copied = 0

    async def _produce(self) -> None:
        iterator = self._source.__aiter__()
        try:
            while True:
                try:
                    chunk = await asyncio.wait_for(iterator.__anext__(), timeout=self.stall_timeout)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    raise RelayTransferInterrupted(
                        f"Origin stalled for {self.stall_timeout:g}s"
                    ) from None
                except Exception as e:
                    raise RelayTransferInterrupted(f"Origin stream failed: {e}") from e

                if not chunk:
                    continue
                await self._queue.put(chunk)
                self.max_buffered = max(self.max_buffered, self._queue.qsize())
        except RelayTransferInterrupted as e:
            await self._queue.put(e)
            return
        await self._queue.put(_EOF)

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._task is None:
            self._task = asyncio.create_task(self._produce())
        try:
            while True:
                item = await self._queue.get()
                if item is _EOF:
                    return
                if isinstance(item, RelayTransferInterrupted):
                    raise item
                self.bytes_copied += len(item)
                yield item
        finally:
            self._task.cancel()

    async def aclose(self) -> None:
        """Stop the producer and close the source."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()


async def open_upstream(client: httpx.AsyncClient, url: str) -> httpx.Response:
    """Open a streaming GET against the origin.

    Raises:
        RelayUpstreamError: Origin answered non-2xx (its status is kept),
            or could not be reached at all (status 500)
    """
    request = client.build_request("GET", url, headers=UPSTREAM_HEADERS)
    try:
        response = await client.send(request, stream=True, follow_redirects=True)
    except httpx.HTTPError as e:
        raise RelayUpstreamError(500, f"Could not connect to stream: {e}") from e

    if not response.is_success:
        await response.aclose()
        raise RelayUpstreamError(
            response.status_code,
            f"Origin responded with HTTP {response.status_code}",
        )
    return response


def response_headers(
    upstream: httpx.Response, default_content_type: str = DEFAULT_CONTENT_TYPE
) -> dict[str, str]:
    """Headers for the relayed response: origin content type, open CORS, no caching."""
    headers = {
        "Content-Type": upstream.headers.get("content-type") or default_content_type,
        "Access-Control-Allow-Origin": "*",
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "Pragma": "no-cache",
    }
    for name in PASSTHROUGH_HEADERS:
        value = upstream.headers.get(name)
        if value:
            headers[name] = value
    return headers


async def relay_body(
    upstream: httpx.Response,
    client: Optional[httpx.AsyncClient] = None,
    chunk_size: int = 16 * 1024,
    max_chunks: int = 4,
    stall_timeout: float = 15.0,
    label: str = "",
) -> AsyncIterator[bytes]:
    """Yield the origin body through a BoundedPump.

    An interrupted transfer ends the body without a trailing error, since
    headers are already on the wire. The upstream response and client are
    always closed, even when the consumer is cancelled.
    """
    pump = BoundedPump(
        upstream.aiter_raw(chunk_size),
        max_chunks=max_chunks,
        stall_timeout=stall_timeout,
    )
    logger.info(f"Relay opened: {label} ({upstream.url})")
    try:
        async for chunk in pump:
            yield chunk
    except RelayTransferInterrupted as e:
        logger.warning(f"Relay interrupted: {label}: {e}")
    finally:
        with anyio.CancelScope(shield=True):
            await pump.aclose()
            await upstream.aclose()
            if client is not None:
                await client.aclose()
        logger.info(f"Relay closed: {label} ({pump.bytes_copied} bytes)")
