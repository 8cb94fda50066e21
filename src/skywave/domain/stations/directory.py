"""
Station directory client.

Queries the public radio directory across a fixed, ordered list of mirrors.
A query either succeeds completely from a single mirror or fails with
DirectoryUnavailableError listing every mirror's error.
"""

from typing import Any, Callable, Optional, TypeVar
from urllib.parse import quote

import requests
from loguru import logger

from skywave.core.config import DirectoryConfig
from skywave.domain.errors import DirectoryUnavailableError

from .models import Facet, SearchParams, Station, listing_query

T = TypeVar("T")


class DirectoryClient:
    """
    Client for the station directory API.

    Usage:
        client = DirectoryClient(config.directory)
        stations = client.list_by_country("India", limit=20)
        jazz = client.search(SearchParams(tag="jazz"))
    """

    def __init__(
        self,
        config: Optional[DirectoryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config or DirectoryConfig()
        self.session = session or requests.Session()
        self.headers = {"User-Agent": self.config.user_agent}

    def _get(
        self,
        endpoint: str,
        parse: Callable[[dict[str, Any]], T],
        params: Optional[dict[str, str]] = None,
    ) -> list[T]:
        """GET an endpoint from the first mirror that answers with a usable 2xx JSON body.

        A mirror whose payload cannot be parsed counts as failed like any
        transport error, so the next mirror is tried.
        """
        errors: list[str] = []

        for mirror in self.config.mirrors:
            url = f"{mirror.rstrip('/')}{endpoint}"
            try:
                logger.debug(f"Directory request: {url} params={params}")
                response = self.session.get(
                    url,
                    params=params,
                    headers=self.headers,
                    timeout=self.config.timeout_seconds,
                )
                if not response.ok:
                    raise requests.HTTPError(f"HTTP {response.status_code}: {response.reason}")
                data = response.json()
                items = data if isinstance(data, list) else []
                parsed = [parse(item) for item in items if isinstance(item, dict)]
            except (requests.RequestException, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Directory mirror failed: {mirror}: {e}")
                errors.append(f"{mirror}: {e}")
                continue

            return parsed

        raise DirectoryUnavailableError(errors)

    def list_by_country(
        self,
        country: str,
        limit: Optional[int] = None,
        offset: int = 0,
        order: Optional[str] = None,
    ) -> list[Station]:
        """List stations for a country, most clicked first by default."""
        params = listing_query(
            limit or self.config.default_limit,
            offset,
            order or self.config.default_order,
        )
        return self._get(
            f"/json/stations/bycountry/{quote(country, safe='')}",
            Station.from_api_response,
            params,
        )

    def search(self, params: SearchParams) -> list[Station]:
        """Filtered search by name, country, tag and language."""
        return self._get("/json/stations/search", Station.from_api_response, params.to_query())

    def top_clicked(self, count: int) -> list[Station]:
        """Most clicked stations overall."""
        return self._get(f"/json/stations/topclick/{int(count)}", Station.from_api_response)

    def languages(self) -> list[Facet]:
        return self._get("/json/languages", Facet.from_api_response)

    def tags(self) -> list[Facet]:
        return self._get("/json/tags", Facet.from_api_response)
