"""Tests for station models."""

from skywave.domain.stations import Facet, SearchParams, Station, listing_query


class TestStation:
    """Tests for Station parsing and playability."""

    def test_from_api_response_maps_fields(self) -> None:
        station = Station.from_api_response(
            {
                "stationuuid": "uuid-1",
                "name": "  Jazz FM ",
                "country": "France",
                "tags": "jazz, smooth",
                "url": "http://origin.example/live",
                "url_resolved": "http://cdn.example/live.mp3",
                "codec": "MP3",
                "bitrate": "128",
                "clickcount": 7,
            }
        )

        assert station.id == "uuid-1"
        assert station.name == "Jazz FM"
        assert station.origin_url == "http://origin.example/live"
        assert station.resolved_url == "http://cdn.example/live.mp3"
        assert station.bitrate_kbps == 128
        assert station.click_count == 7
        assert station.tag_list == ["jazz", "smooth"]

    def test_blank_strings_become_none(self) -> None:
        station = Station.from_api_response(
            {"stationuuid": "uuid-2", "name": "Quiet", "url": "", "url_resolved": "  ", "bitrate": 0}
        )

        assert station.origin_url is None
        assert station.resolved_url is None
        assert station.bitrate_kbps is None
        assert not station.is_playable

    def test_non_numeric_fields_become_none(self) -> None:
        station = Station.from_api_response(
            {"stationuuid": "uuid-3", "name": "Odd", "url": "http://a", "bitrate": "128k", "clickcount": "n/a"}
        )

        assert station.bitrate_kbps is None
        assert station.click_count is None
        assert station.is_playable

    def test_stream_url_prefers_resolved(self) -> None:
        station = Station(id="1", name="A", origin_url="http://o", resolved_url="http://r")

        assert station.stream_url == "http://r"
        assert Station(id="2", name="B", origin_url="http://o").stream_url == "http://o"

    def test_playable_with_either_url(self) -> None:
        assert Station(id="1", name="A", origin_url="http://o").is_playable
        assert Station(id="2", name="B", resolved_url="http://r").is_playable


class TestQueryBuilding:
    """Tests for directory query parameters."""

    def test_listing_query_fixed_filters(self) -> None:
        assert listing_query(10, 5, "name") == {
            "limit": "10",
            "offset": "5",
            "order": "name",
            "reverse": "true",
            "hidebroken": "true",
        }

    def test_search_params_defaults(self) -> None:
        query = SearchParams().to_query()

        assert query["limit"] == "50"
        assert query["offset"] == "0"
        assert query["order"] == "clickcount"
        assert "name" not in query

    def test_facet_handles_missing_count(self) -> None:
        assert Facet.from_api_response({"name": "rock"}) == Facet(name="rock", station_count=0)
