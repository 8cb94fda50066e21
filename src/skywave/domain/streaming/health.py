"""Stream health probing.

Issues a metadata-only (HEAD) request against a candidate stream URL and
classifies the answer. The probe is advisory: it never raises, every failure
is reported as an unhealthy result with a readable message.

application/octet-stream is accepted as audio because directories often
mislabel audio streams that way. This is a lossy approximation; a stricter
check would sniff the first bytes for known container signatures.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger

DEFAULT_PROBE_TIMEOUT_MS = 10_000

# Synthetic status reported when the probe is cancelled by its timeout
TIMEOUT_STATUS = 408

AUDIO_MARKERS = ("audio/", "application/ogg")
OCTET_STREAM_MARKER = "application/octet-stream"


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of a stream health probe."""

    reachable: bool
    http_status: int
    content_type: str
    is_audio_like: bool
    message: str = ""

    @property
    def healthy(self) -> bool:
        return self.reachable and self.is_audio_like


def is_audio_like(content_type: Optional[str]) -> bool:
    """True if a declared content type looks like an audio stream."""
    if not content_type:
        return False
    lowered = content_type.lower()
    return any(marker in lowered for marker in AUDIO_MARKERS) or OCTET_STREAM_MARKER in lowered


def _unreachable(status: int, message: str) -> HealthCheckResult:
    return HealthCheckResult(
        reachable=False,
        http_status=status,
        content_type="",
        is_audio_like=False,
        message=message,
    )


def classify_response(response: httpx.Response) -> HealthCheckResult:
    """Turn a probe response into a HealthCheckResult."""
    content_type = response.headers.get("content-type", "")
    reachable = response.is_success
    audio_like = is_audio_like(content_type)

    if not reachable:
        message = f"Origin responded with HTTP {response.status_code}"
    elif not audio_like:
        message = f"Unexpected content type: {content_type or 'none'}"
    else:
        message = "Stream is reachable and serves audio"

    return HealthCheckResult(
        reachable=reachable,
        http_status=response.status_code,
        content_type=content_type,
        is_audio_like=audio_like,
        message=message,
    )


async def probe(
    url: str,
    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS,
    client: Optional[httpx.AsyncClient] = None,
    user_agent: str = "Skywave/1.0",
) -> HealthCheckResult:
    """Probe a stream URL with a HEAD request bounded by timeout_ms.

    Args:
        url: Candidate stream URL
        timeout_ms: Hard deadline; the request is cancelled when it expires
        client: Shared client (a temporary one is created if omitted)
        user_agent: Client identifier for the temporary client

    Returns:
        HealthCheckResult; never raises
    """
    timeout_s = timeout_ms / 1000
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout_s,
            headers={"User-Agent": user_agent},
        )

    try:
        response = await asyncio.wait_for(client.head(url), timeout=timeout_s)
        result = classify_response(response)
    except asyncio.TimeoutError:
        result = _unreachable(TIMEOUT_STATUS, f"Health check timed out after {timeout_ms}ms")
    except httpx.TimeoutException as e:
        result = _unreachable(TIMEOUT_STATUS, f"Health check timed out: {e}")
    except httpx.HTTPError as e:
        result = _unreachable(0, f"Could not reach stream: {e}")
    except Exception as e:
        logger.exception(f"Unexpected error probing {url}")
        result = _unreachable(0, f"Health check failed: {e}")
    finally:
        if owns_client:
            await client.aclose()

    if result.healthy:
        logger.debug(f"Probe healthy: {url} ({result.content_type})")
    else:
        logger.warning(f"Probe unhealthy: {url}: {result.message}")
    return result
