"""Tests for the bounded stream relay."""

import asyncio

import httpx
import pytest

from skywave.domain.errors import RelayTransferInterrupted, RelayUpstreamError
from skywave.domain.streaming.relay import (
    UPSTREAM_HEADERS,
    BoundedPump,
    open_upstream,
    relay_body,
    response_headers,
)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class CountingSource:
    """Async byte source that records how far it has been read and whether it was closed."""

    def __init__(self, chunks: int, stall_after: int | None = None):
        self.total = chunks
        self.stall_after = stall_after
        self.produced = 0
        self.closed = False

    async def _generate(self):
        try:
            for i in range(self.total):
                if self.stall_after is not None and i >= self.stall_after:
                    await asyncio.sleep(30)
                self.produced += 1
                yield b"x" * 10
        finally:
            self.closed = True

    def __aiter__(self):
        self._gen = self._generate()
        return self._gen

    async def aclose(self) -> None:
        await self._gen.aclose()


class TestBoundedPump:
    """Tests for backpressure and interruption."""

    @pytest.mark.anyio
    async def test_copies_everything_in_order(self) -> None:
        async def source():
            for i in range(5):
                yield bytes([i])

        pump = BoundedPump(source(), max_chunks=2)
        received = [chunk async for chunk in pump]

        assert received == [bytes([i]) for i in range(5)]
        assert pump.bytes_copied == 5

    @pytest.mark.anyio
    async def test_slow_consumer_bounds_reads(self) -> None:
        """The producer stops reading once max_chunks are waiting."""
        source = CountingSource(chunks=100)
        pump = BoundedPump(source, max_chunks=4)

        iterator = pump.__aiter__()
        await iterator.__anext__()
        await asyncio.sleep(0.1)

        # one delivered, four queued, at most one held by the blocked producer
        assert source.produced <= 6
        assert pump.max_buffered <= 4

        await iterator.aclose()
        await pump.aclose()

    @pytest.mark.anyio
    async def test_stalled_source_interrupts(self) -> None:
        source = CountingSource(chunks=10, stall_after=2)
        pump = BoundedPump(source, max_chunks=4, stall_timeout=0.1)

        received = []
        with pytest.raises(RelayTransferInterrupted, match="stalled"):
            async for chunk in pump:
                received.append(chunk)

        assert len(received) == 2
        await pump.aclose()
        assert source.closed

    @pytest.mark.anyio
    async def test_close_releases_source(self) -> None:
        """Closing the pump mid-stream closes the upstream source."""
        source = CountingSource(chunks=100)
        pump = BoundedPump(source, max_chunks=2)

        iterator = pump.__aiter__()
        await iterator.__anext__()
        await iterator.aclose()
        await pump.aclose()

        assert source.closed
        assert source.produced < 100


class TestOpenUpstream:
    """Tests for connecting to the origin."""

    @pytest.mark.anyio
    async def test_sends_streaming_headers(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.headers)
            return httpx.Response(200, content=b"audio")

        async with mock_client(handler) as client:
            response = await open_upstream(client, "http://origin.example/live")
            await response.aclose()

        for name, value in UPSTREAM_HEADERS.items():
            assert seen[name.lower()] == value

    @pytest.mark.anyio
    async def test_non_2xx_forwards_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        async with mock_client(handler) as client:
            with pytest.raises(RelayUpstreamError) as exc_info:
                await open_upstream(client, "http://origin.example/missing")

        assert exc_info.value.status_code == 404
        assert "404" in str(exc_info.value)

    @pytest.mark.anyio
    async def test_connection_failure_is_500(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(RelayUpstreamError) as exc_info:
                await open_upstream(client, "http://origin.example/live")

        assert exc_info.value.status_code == 500


class TestResponseHeaders:
    """Tests for relayed response headers."""

    def test_copies_content_type_and_icy_headers(self) -> None:
        upstream = httpx.Response(
            200, headers={"content-type": "audio/aacp", "icy-name": "Jazz FM", "server": "Icecast"}
        )

        headers = response_headers(upstream)

        assert headers["Content-Type"] == "audio/aacp"
        assert headers["icy-name"] == "Jazz FM"
        assert headers["Access-Control-Allow-Origin"] == "*"
        assert "no-cache" in headers["Cache-Control"]
        assert "server" not in headers

    def test_defaults_content_type(self) -> None:
        headers = response_headers(httpx.Response(200), default_content_type="audio/mpeg")

        assert headers["Content-Type"] == "audio/mpeg"


class TestRelayBody:
    """Tests for the relayed body generator."""

    @pytest.mark.anyio
    async def test_relays_full_body_and_closes(self) -> None:
        body = b"0123456789" * 100

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "audio/mpeg"}, content=body)

        client = mock_client(handler)
        upstream = await open_upstream(client, "http://origin.example/live")

        received = b"".join([chunk async for chunk in relay_body(upstream, client, chunk_size=64)])

        assert received == body
        assert upstream.is_closed
        assert client.is_closed

    @pytest.mark.anyio
    async def test_interrupted_transfer_ends_quietly(self) -> None:
        """A mid-stream origin failure ends the body without raising."""

        async def failing_stream():
            yield b"first"
            raise httpx.ReadError("connection reset")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=AsyncIteratorStream(failing_stream()))

        client = mock_client(handler)
        upstream = await open_upstream(client, "http://origin.example/live")

        received = [chunk async for chunk in relay_body(upstream, client, chunk_size=5)]

        assert received == [b"first"]
        assert client.is_closed

    @pytest.mark.anyio
    async def test_listener_leaving_closes_upstream(self) -> None:
        """Closing the body early still closes the origin response and client."""

        async def endless_stream():
            while True:
                yield b"audio"
                await asyncio.sleep(0)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=AsyncIteratorStream(endless_stream()))

        client = mock_client(handler)
        upstream = await open_upstream(client, "http://origin.example/live")
        body = relay_body(upstream, client, chunk_size=5)

        assert await body.__anext__() == b"audio"
        await body.aclose()

        assert upstream.is_closed
        assert client.is_closed

    @pytest.mark.anyio
    async def test_cancelled_listener_closes_upstream(self) -> None:
        """Cancelling the consuming task mid-stream still runs the cleanup."""

        async def stalling_stream():
            yield b"first"
            await asyncio.sleep(30)
            yield b"never"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=AsyncIteratorStream(stalling_stream()))

        client = mock_client(handler)
        upstream = await open_upstream(client, "http://origin.example/live")
        got_first = asyncio.Event()

        async def listen() -> None:
            async for _ in relay_body(upstream, client, chunk_size=5):
                got_first.set()

        task = asyncio.create_task(listen())
        await asyncio.wait_for(got_first.wait(), timeout=1.0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert upstream.is_closed
        assert client.is_closed


class AsyncIteratorStream(httpx.AsyncByteStream):
    """Response stream backed by an async generator."""

    def __init__(self, iterator):
        self._iterator = iterator

    async def __aiter__(self):
        async for chunk in self._iterator:
            yield chunk

    async def aclose(self) -> None:
        await self._iterator.aclose()
