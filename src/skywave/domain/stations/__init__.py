"""Stations domain - directory queries and station models.

This domain handles:
- Station, Facet and SearchParams value types
- Mirror failover against the public station directory
"""

from .directory import DirectoryClient
from .models import VALID_ORDERS, Facet, SearchParams, Station, listing_query

__all__ = [
    "DirectoryClient",
    "Facet",
    "SearchParams",
    "Station",
    "VALID_ORDERS",
    "listing_query",
]
