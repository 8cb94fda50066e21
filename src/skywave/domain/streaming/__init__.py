"""Streaming domain - health probing and relaying of live streams."""

from .health import DEFAULT_PROBE_TIMEOUT_MS, HealthCheckResult, is_audio_like, probe
from .relay import BoundedPump, open_upstream, relay_body, response_headers

__all__ = [
    "BoundedPump",
    "DEFAULT_PROBE_TIMEOUT_MS",
    "HealthCheckResult",
    "is_audio_like",
    "open_upstream",
    "probe",
    "relay_body",
    "response_headers",
]
