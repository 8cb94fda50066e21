from functools import lru_cache
from typing import Callable

import httpx
from fastapi import Depends

from skywave.core.config import Config, load_config
from skywave.domain.stations import DirectoryClient

ClientFactory = Callable[[], httpx.AsyncClient]


@lru_cache(maxsize=1)
def get_config() -> Config:
    """FastAPI dependency for configuration."""
    return load_config()


@lru_cache(maxsize=1)
def _directory_client() -> DirectoryClient:
    return DirectoryClient(get_config().directory)


def get_directory_client() -> DirectoryClient:
    """FastAPI dependency for the shared directory client."""
    return _directory_client()


def get_client_factory(config: Config = Depends(get_config)) -> ClientFactory:
    """FastAPI dependency returning a factory for upstream HTTP clients.

    Relay and probe requests each get their own client, closed when the
    request finishes.
    """

    def factory() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(
                config.stream.stall_timeout_seconds,
                connect=config.stream.connect_timeout_seconds,
            ),
            headers={"User-Agent": config.directory.user_agent},
        )

    return factory
