"""Station directory routes.

Directory calls block on the mirror list, so these are plain def routes and
run in FastAPI's threadpool.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Path, Query
from loguru import logger

from skywave.domain.errors import DirectoryUnavailableError
from skywave.domain.stations import DirectoryClient, SearchParams

from ..deps import get_directory_client
from ..errors import ApiError
from ..schemas import (
    ErrorOut,
    FacetListResponse,
    StationListResponse,
    facets_response,
    stations_response,
)

router = APIRouter()

Order = Literal["name", "clickcount", "bitrate", "lastchangetime", "votes"]

ERROR_RESPONSES = {500: {"model": ErrorOut}}


def _run(action: str, call):
    """Run a directory call, turning unexpected failures into a 500 envelope."""
    try:
        return call()
    except DirectoryUnavailableError:
        raise
    except Exception as e:
        logger.exception(f"Failed to {action}")
        raise ApiError(500, f"Failed to {action}: {e}") from e


@router.get(
    "/stations/search", response_model=StationListResponse, responses=ERROR_RESPONSES
)
def search_stations(
    name: Optional[str] = None,
    country: Optional[str] = None,
    tag: Optional[str] = None,
    language: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    order: Order = "clickcount",
    directory: DirectoryClient = Depends(get_directory_client),
):
    """Filtered station search."""
    params = SearchParams(
        name=name,
        country=country,
        tag=tag,
        language=language,
        limit=limit,
        offset=offset,
        order=order,
    )
    return stations_response(_run("search stations", lambda: directory.search(params)))


@router.get(
    "/stations/top/{count}", response_model=StationListResponse, responses=ERROR_RESPONSES
)
def top_stations(
    count: int = Path(..., ge=1, le=500),
    directory: DirectoryClient = Depends(get_directory_client),
):
    """Most clicked stations."""
    return stations_response(
        _run("fetch top stations", lambda: directory.top_clicked(count))
    )


@router.get(
    "/stations/{country}", response_model=StationListResponse, responses=ERROR_RESPONSES
)
def stations_by_country(
    country: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    order: Order = "clickcount",
    directory: DirectoryClient = Depends(get_directory_client),
):
    """Stations for one country."""
    return stations_response(
        _run(
            f"fetch stations for {country}",
            lambda: directory.list_by_country(country, limit=limit, offset=offset, order=order),
        )
    )


@router.get("/languages", response_model=FacetListResponse, responses=ERROR_RESPONSES)
def list_languages(directory: DirectoryClient = Depends(get_directory_client)):
    return facets_response(_run("fetch languages", directory.languages))


@router.get("/tags", response_model=FacetListResponse, responses=ERROR_RESPONSES)
def list_tags(directory: DirectoryClient = Depends(get_directory_client)):
    return facets_response(_run("fetch tags", directory.tags))
