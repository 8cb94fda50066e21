"""Tests for the station directory routes."""

from typing import get_args
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from skywave.domain.errors import DirectoryUnavailableError
from skywave.domain.stations import VALID_ORDERS, DirectoryClient, Facet, SearchParams, Station
from web.backend.deps import get_directory_client
from web.backend.main import app
from web.backend.routers.stations import Order

STATION = Station(
    id="abc-123",
    name="Radio Test",
    country="India",
    tags="pop",
    origin_url="http://origin.example/live",
    resolved_url="http://cdn.example/live",
    bitrate_kbps=128,
    click_count=9,
)


@pytest.fixture
def directory():
    """Replace the directory client for the duration of a test."""
    mock = Mock(spec=DirectoryClient)
    app.dependency_overrides[get_directory_client] = lambda: mock
    yield mock
    app.dependency_overrides.pop(get_directory_client, None)


@pytest.fixture
def client():
    return TestClient(app)


class TestListings:
    """Tests for successful listing envelopes."""

    def test_by_country_envelope(self, client, directory) -> None:
        directory.list_by_country.return_value = [STATION]

        response = client.get("/api/stations/India")

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["data"][0]["id"] == "abc-123"
        assert body["data"][0]["originUrl"] == "http://origin.example/live"
        assert body["data"][0]["resolvedUrl"] == "http://cdn.example/live"
        assert body["data"][0]["bitrateKbps"] == 128
        assert body["data"][0]["clickCount"] == 9
        directory.list_by_country.assert_called_once_with(
            "India", limit=50, offset=0, order="clickcount"
        )

    def test_search_is_not_treated_as_a_country(self, client, directory) -> None:
        directory.search.return_value = [STATION]

        response = client.get(
            "/api/stations/search",
            params={"name": "radio", "tag": "pop", "limit": 10, "offset": 5, "order": "votes"},
        )

        assert response.status_code == 200
        directory.list_by_country.assert_not_called()
        directory.search.assert_called_once_with(
            SearchParams(name="radio", tag="pop", limit=10, offset=5, order="votes")
        )

    def test_top_stations(self, client, directory) -> None:
        directory.top_clicked.return_value = [STATION, STATION]

        response = client.get("/api/stations/top/2")

        assert response.status_code == 200
        assert len(response.json()["data"]) == 2
        directory.top_clicked.assert_called_once_with(2)

    def test_facets(self, client, directory) -> None:
        directory.languages.return_value = [Facet("english", 10)]
        directory.tags.return_value = [Facet("jazz", 3)]

        languages = client.get("/api/languages").json()
        tags = client.get("/api/tags").json()

        assert languages == {"ok": True, "data": [{"name": "english", "stationCount": 10}]}
        assert tags["data"][0]["name"] == "jazz"


class TestValidation:
    """Tests for query bounds."""

    @pytest.mark.parametrize("path", ["/api/stations/top/0", "/api/stations/top/501"])
    def test_top_count_bounds(self, client, directory, path) -> None:
        assert client.get(path).status_code == 422
        directory.top_clicked.assert_not_called()

    def test_unknown_order_rejected(self, client, directory) -> None:
        response = client.get("/api/stations/search", params={"order": "random"})

        assert response.status_code == 422

    def test_negative_offset_rejected(self, client, directory) -> None:
        assert client.get("/api/stations/India", params={"offset": -1}).status_code == 422


class TestFailures:
    """Tests for error envelopes."""

    def test_all_mirrors_failed(self, client, directory) -> None:
        directory.list_by_country.side_effect = DirectoryUnavailableError(
            ["https://m1: refused", "https://m2: timed out"]
        )

        response = client.get("/api/stations/India")

        assert response.status_code == 500
        assert response.json() == {
            "ok": False,
            "message": "All mirrors failed: https://m1: refused, https://m2: timed out",
        }

    def test_unexpected_error(self, client, directory) -> None:
        directory.tags.side_effect = RuntimeError("boom")

        response = client.get("/api/tags")

        assert response.status_code == 500
        assert response.json()["ok"] is False
        assert "boom" in response.json()["message"]


def test_route_orders_match_directory_orders():
    """The accepted order values are exactly the directory's sort keys."""
    assert set(get_args(Order)) == set(VALID_ORDERS)
