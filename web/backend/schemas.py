from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from skywave.domain.stations import Facet, Station
from skywave.domain.streaming import HealthCheckResult


class StationOut(BaseModel):
    """Station as exposed by the API."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    country: Optional[str] = None
    language: Optional[str] = None
    tags: Optional[str] = None
    origin_url: Optional[str] = None
    resolved_url: Optional[str] = None
    codec: Optional[str] = None
    bitrate_kbps: Optional[int] = None
    favicon: Optional[str] = None
    homepage: Optional[str] = None
    click_count: Optional[int] = None

    @classmethod
    def from_station(cls, station: Station) -> "StationOut":
        return cls(
            id=station.id,
            name=station.name,
            country=station.country,
            language=station.language,
            tags=station.tags,
            origin_url=station.origin_url,
            resolved_url=station.resolved_url,
            codec=station.codec,
            bitrate_kbps=station.bitrate_kbps,
            favicon=station.favicon,
            homepage=station.homepage,
            click_count=station.click_count,
        )


class FacetOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    station_count: int


class StationListResponse(BaseModel):
    ok: bool = True
    data: list[StationOut]


class FacetListResponse(BaseModel):
    ok: bool = True
    data: list[FacetOut]


class HealthCheckOut(BaseModel):
    """Health probe envelope. ok is always true; healthy carries the verdict."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ok: bool = True
    healthy: bool
    status: int
    content_type: str
    message: str

    @classmethod
    def from_result(cls, result: HealthCheckResult) -> "HealthCheckOut":
        return cls(
            healthy=result.healthy,
            status=result.http_status,
            content_type=result.content_type,
            message=result.message,
        )


class ErrorOut(BaseModel):
    ok: bool = False
    message: str


def stations_response(stations: list[Station]) -> StationListResponse:
    return StationListResponse(data=[StationOut.from_station(s) for s in stations])


def facets_response(facets: list[Facet]) -> FacetListResponse:
    return FacetListResponse(
        data=[FacetOut(name=f.name, station_count=f.station_count) for f in facets]
    )
