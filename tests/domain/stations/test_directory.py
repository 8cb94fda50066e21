"""Tests for the mirror-failover directory client."""

from unittest.mock import Mock, patch

import pytest
import requests

from skywave.core.config import DirectoryConfig
from skywave.domain.errors import DirectoryUnavailableError
from skywave.domain.stations import DirectoryClient, SearchParams, Station

MIRRORS = ["https://m1.example", "https://m2.example", "https://m3.example"]

STATION_PAYLOAD = {
    "stationuuid": "abc-123",
    "name": "Radio Test",
    "country": "India",
    "language": "hindi",
    "tags": "pop,bollywood",
    "url": "http://origin.example/stream",
    "url_resolved": "http://resolved.example/stream",
    "codec": "MP3",
    "bitrate": 128,
    "favicon": "http://origin.example/icon.png",
    "homepage": "http://origin.example",
    "clickcount": 42,
}


def ok_response(data) -> Mock:
    response = Mock(ok=True, status_code=200, reason="OK")
    response.json.return_value = data
    return response


def error_response(status: int, reason: str) -> Mock:
    return Mock(ok=False, status_code=status, reason=reason)


def make_client(*outcomes) -> tuple[DirectoryClient, Mock]:
    """Client whose session answers each mirror in turn with the given outcomes."""
    session = Mock(spec=requests.Session)
    session.get.side_effect = list(outcomes)
    config = DirectoryConfig(mirrors=list(MIRRORS), timeout_seconds=3.0)
    return DirectoryClient(config, session=session), session


class TestMirrorFailover:
    """Tests for trying mirrors in order."""

    def test_first_mirror_success_skips_others(self) -> None:
        """A healthy first mirror answers alone."""
        client, session = make_client(ok_response([STATION_PAYLOAD]))

        stations = client.list_by_country("India")

        assert [s.id for s in stations] == ["abc-123"]
        assert session.get.call_count == 1
        assert session.get.call_args[0][0].startswith("https://m1.example/")

    @pytest.mark.parametrize("reachable_index", [0, 1, 2])
    def test_single_reachable_mirror_at_any_position(self, reachable_index: int) -> None:
        """Exactly one reachable mirror is enough wherever it sits in the list."""
        outcomes = [requests.ConnectionError("refused") for _ in MIRRORS]
        outcomes[reachable_index] = ok_response([STATION_PAYLOAD])
        client, session = make_client(*outcomes)

        stations = client.top_clicked(5)

        assert len(stations) == 1
        assert session.get.call_count == reachable_index + 1
        called_url = session.get.call_args[0][0]
        assert called_url.startswith(MIRRORS[reachable_index])

    def test_all_mirrors_failing_aggregates_every_error(self) -> None:
        """N failing mirrors produce N messages in mirror order."""
        client, _ = make_client(
            requests.ConnectionError("refused"),
            error_response(503, "Service Unavailable"),
            requests.Timeout("timed out"),
        )

        with pytest.raises(DirectoryUnavailableError) as exc_info:
            client.search(SearchParams(name="jazz"))

        errors = exc_info.value.errors
        assert len(errors) == 3
        assert errors[0].startswith("https://m1.example")
        assert "HTTP 503" in errors[1]
        assert "timed out" in errors[2]
        assert str(exc_info.value).startswith("All mirrors failed:")

    def test_invalid_json_counts_as_failure(self) -> None:
        """A mirror with an unparseable body is skipped."""
        broken = Mock(ok=True, status_code=200, reason="OK")
        broken.json.side_effect = ValueError("Expecting value")
        client, session = make_client(broken, ok_response([STATION_PAYLOAD]))

        stations = client.list_by_country("India")

        assert len(stations) == 1
        assert session.get.call_count == 2

    def test_junk_numbers_do_not_break_the_query(self) -> None:
        """Non-numeric bitrate and click counts parse as missing values."""
        payload = dict(STATION_PAYLOAD, bitrate="128k", clickcount="")
        client, session = make_client(ok_response([payload]))

        stations = client.top_clicked(1)

        assert stations[0].bitrate_kbps is None
        assert stations[0].click_count is None
        assert session.get.call_count == 1

    def test_unparseable_payload_fails_over_to_next_mirror(self) -> None:
        """A mirror whose payload cannot be parsed is treated as failed."""
        good = Station.from_api_response(STATION_PAYLOAD)
        client, session = make_client(ok_response([STATION_PAYLOAD]), ok_response([STATION_PAYLOAD]))

        with patch.object(
            Station, "from_api_response", side_effect=[ValueError("bad bitrate"), good]
        ):
            stations = client.top_clicked(1)

        assert stations == [good]
        assert session.get.call_count == 2

    def test_unparseable_payload_everywhere_is_unavailable(self) -> None:
        client, _ = make_client(ok_response([STATION_PAYLOAD]), ok_response([STATION_PAYLOAD]), ok_response([STATION_PAYLOAD]))

        with patch.object(Station, "from_api_response", side_effect=TypeError("bad field")):
            with pytest.raises(DirectoryUnavailableError) as exc_info:
                client.top_clicked(1)

        assert len(exc_info.value.errors) == 3
        assert "bad field" in exc_info.value.errors[0]

    def test_non_list_body_yields_empty_result(self) -> None:
        """An unexpected JSON shape returns no stations instead of failing."""
        client, _ = make_client(ok_response({"error": "nope"}))

        assert client.list_by_country("India") == []

    def test_user_agent_and_timeout_sent(self) -> None:
        """Every request identifies the client and is bounded by the timeout."""
        client, session = make_client(ok_response([]))

        client.languages()

        kwargs = session.get.call_args.kwargs
        assert kwargs["headers"] == {"User-Agent": "Skywave/1.0"}
        assert kwargs["timeout"] == 3.0


class TestQueries:
    """Tests for endpoint paths and query parameters."""

    def test_list_by_country_defaults(self) -> None:
        """By-country listing quotes the country and sends the listing defaults."""
        client, session = make_client(ok_response([]))

        client.list_by_country("United States")

        url = session.get.call_args[0][0]
        assert url == "https://m1.example/json/stations/bycountry/United%20States"
        assert session.get.call_args.kwargs["params"] == {
            "limit": "50",
            "offset": "0",
            "order": "clickcount",
            "reverse": "true",
            "hidebroken": "true",
        }

    def test_search_passes_filters_and_omits_empty_ones(self) -> None:
        """Only non-empty filters reach the directory."""
        client, session = make_client(ok_response([]))

        client.search(SearchParams(name="jazz", tag="smooth", limit=10, offset=20, order="votes"))

        params = session.get.call_args.kwargs["params"]
        assert params["name"] == "jazz"
        assert params["tag"] == "smooth"
        assert "country" not in params
        assert "language" not in params
        assert params["limit"] == "10"
        assert params["offset"] == "20"
        assert params["order"] == "votes"

    def test_top_clicked_path(self) -> None:
        client, session = make_client(ok_response([]))

        client.top_clicked(25)

        assert session.get.call_args[0][0] == "https://m1.example/json/stations/topclick/25"

    def test_facets_are_normalized(self) -> None:
        """Language and tag payloads become Facet values."""
        client, _ = make_client(
            ok_response([{"name": "english", "stationcount": 5000}, {"name": "hindi", "stationcount": "12"}])
        )

        facets = client.languages()

        assert [(f.name, f.station_count) for f in facets] == [("english", 5000), ("hindi", 12)]
