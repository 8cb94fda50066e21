"""Stream relay and health check routes."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from loguru import logger

from skywave.core.config import Config
from skywave.domain.errors import RelayUpstreamError
from skywave.domain.streaming import (
    HealthCheckResult,
    open_upstream,
    probe,
    relay_body,
    response_headers,
)

from ..deps import ClientFactory, get_client_factory, get_config
from ..errors import ApiError
from ..schemas import ErrorOut, HealthCheckOut

router = APIRouter()


def _is_http_url(url: str) -> bool:
    return url.lower().startswith(("http://", "https://"))


@router.get("/stream/check/{station_id}", response_model=HealthCheckOut)
async def check_stream(
    station_id: str,
    url: str = Query(...),
    config: Config = Depends(get_config),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Probe a stream URL. Always answers 200; healthy carries the verdict."""
    if not _is_http_url(url):
        return HealthCheckOut(
            healthy=False, status=0, content_type="", message=f"Invalid stream URL: {url}"
        )

    try:
        async with client_factory() as client:
            result = await probe(url, timeout_ms=config.stream.probe_timeout_ms, client=client)
    except Exception as e:
        logger.exception(f"Health check failed for station {station_id}")
        result = HealthCheckResult(
            reachable=False,
            http_status=0,
            content_type="",
            is_audio_like=False,
            message=f"Health check failed: {e}",
        )

    if not result.healthy:
        logger.warning(f"Stream {station_id} unhealthy: {result.message}")
    return HealthCheckOut.from_result(result)


@router.get(
    "/stream/{station_id}",
    response_class=StreamingResponse,
    responses={400: {"model": ErrorOut}, 500: {"model": ErrorOut}},
)
async def relay_stream(
    station_id: str,
    url: str = Query(...),
    config: Config = Depends(get_config),
    client_factory: ClientFactory = Depends(get_client_factory),
):
    """Relay an origin stream with open CORS and bounded buffering.

    The origin is opened before any header is sent, so its non-2xx status
    reaches the client unchanged.
    """
    if not _is_http_url(url):
        raise ApiError(400, f"Invalid stream URL: {url}")

    client = client_factory()
    try:
        upstream = await open_upstream(client, url)
    except RelayUpstreamError as e:
        await client.aclose()
        logger.warning(f"Relay for {station_id} refused: {e}")
        raise

    stream_config = config.stream
    return StreamingResponse(
        relay_body(
            upstream,
            client,
            chunk_size=stream_config.chunk_size,
            max_chunks=stream_config.max_buffered_chunks,
            stall_timeout=stream_config.stall_timeout_seconds,
            label=station_id,
        ),
        headers=response_headers(upstream, stream_config.default_content_type),
    )
