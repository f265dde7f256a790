"""
Geographic lookups for the survey's coordinate extremes.

extremal_points() is pure and picks the southern-, northern-, western- and eastern-most
records. lookup_regions() resolves them to addresses through the Google Geocoding API;
it is informational only and never feeds modeling, so failures are collected as notices.
"""

from dataclasses import dataclass
import logging
from typing import List, Optional, Tuple

import requests

from food_survey.data import LATITUDE, LONGITUDE
from food_survey.errors import ExternalLookupError, SchemaError

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class ExtremalPoint:
    kind: str
    row: object
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RegionLookup:
    point: ExtremalPoint
    address: Optional[str] = None
    error: Optional[str] = None

    @property
    def resolved(self):
        return self.address is not None


def extremal_points(df) -> List[ExtremalPoint]:
    """Min/max latitude then min/max longitude; ties go to the first row in dataset order."""
    for c in (LATITUDE, LONGITUDE):
        if c not in df.columns:
            raise SchemaError(f"missing column {c!r}", stage="geo")
    if df.empty:
        return []
    picks = [
        ("min_latitude", df[LATITUDE].idxmin()),
        ("max_latitude", df[LATITUDE].idxmax()),
        ("min_longitude", df[LONGITUDE].idxmin()),
        ("max_longitude", df[LONGITUDE].idxmax()),
    ]
    return [
        ExtremalPoint(
            kind=kind,
            row=row,
            latitude=float(df.at[row, LATITUDE]),
            longitude=float(df.at[row, LONGITUDE]),
        )
        for kind, row in picks
    ]


def reverse_geocode(latitude, longitude, api_key, timeout=DEFAULT_TIMEOUT, session=None):
    """
    Resolve one coordinate pair to a formatted address. Single attempt, no retry.
    Raises ExternalLookupError on network errors, HTTP errors or a non-OK API status.
    """
    http = session if session is not None else requests
    params = {"latlng": f"{latitude},{longitude}", "key": api_key}
    try:
        response = http.get(GEOCODE_URL, params=params, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.exceptions.RequestException as e:
        raise ExternalLookupError(f"request failed for ({latitude}, {longitude}): {e}", stage="geo") from e
    except ValueError as e:
        raise ExternalLookupError(f"invalid JSON for ({latitude}, {longitude})", stage="geo") from e

    if not isinstance(payload, dict):
        raise ExternalLookupError(
            f"unexpected payload {type(payload).__name__} for ({latitude}, {longitude})", stage="geo"
        )
    status = payload.get("status")
    results = payload.get("results") or []
    if status != "OK" or not isinstance(results, list) or not results:
        detail = payload.get("error_message") or status
        raise ExternalLookupError(f"geocoding status {detail!r} for ({latitude}, {longitude})", stage="geo")
    first = results[0]
    address = first.get("formatted_address") if isinstance(first, dict) else None
    if not isinstance(address, str) or not address.strip():
        raise ExternalLookupError(f"no formatted address for ({latitude}, {longitude})", stage="geo")
    return address


def lookup_regions(points, api_key, timeout=DEFAULT_TIMEOUT, session=None) -> Tuple[List[RegionLookup], List[str]]:
    """Resolve every point; returns (lookups, notices). Never raises ExternalLookupError."""
    lookups, notices = [], []
    if not api_key:
        msg = "geocoding skipped: no API key configured"
        logger.warning(msg)
        return [RegionLookup(p, error=msg) for p in points], [msg]
    for p in points:
        try:
            address = reverse_geocode(p.latitude, p.longitude, api_key, timeout=timeout, session=session)
        except ExternalLookupError as e:
            logger.warning("Lookup for %s failed: %s", p.kind, e)
            lookups.append(RegionLookup(p, error=str(e)))
            notices.append(f"{p.kind}: {e}")
            continue
        lookups.append(RegionLookup(p, address=address))
    return lookups, notices
