"""
Points-of-interest and crime data providers

These sit outside the scoring engine: they perform the HTTP calls, turn
upstream payloads into GeoElement/SafetyReading objects and translate
transport failures into ProviderError/ProviderTimeout.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests

from livability.config import ScoringConfig
from livability.errors import InvalidInput, ProviderError, ProviderTimeout, SafetyDataUnavailable
from livability.models import ElementKind, GeoElement, POIResult, SafetyReading

logger = logging.getLogger(__name__)

USER_AGENT = "livability-score/1.0"

# (tag filter, element types queried)
OVERPASS_FILTERS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ('["leisure"="park"]', ("node", "way", "relation")),
    ('["amenity"="cafe"]', ("node", "way", "relation")),
    ('["leisure"="fitness_centre"]', ("node", "way", "relation")),
    ('["highway"="bus_stop"]', ("node",)),
    ('["railway"="station"]', ("node", "way", "relation")),
)

PLACEHOLDER_NOTE = "Crime index is a configured placeholder, not measured data"
PLACEHOLDER_WARNING = "Estimated data - verify with an official crime data source"


def validate_coordinates(latitude, longitude) -> Tuple[float, float]:
    """
    Check that latitude/longitude are finite numbers within WGS84 bounds

    Returns:
        (latitude, longitude) as floats
    """
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        raise InvalidInput("Latitude and longitude must be valid numbers") from None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidInput("Latitude and longitude must be valid numbers")
    if not -90 <= lat <= 90:
        raise InvalidInput(f"Latitude must be between -90 and 90, got {lat}")
    if not -180 <= lon <= 180:
        raise InvalidInput(f"Longitude must be between -180 and 180, got {lon}")
    return lat, lon


def validate_radius(radius) -> float:
    try:
        value = float(radius)
    except (TypeError, ValueError):
        raise InvalidInput(f"radius must be a number, got {radius!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidInput(f"radius must be > 0, got {radius!r}")
    return value


def build_overpass_query(latitude: float, longitude: float, radius_m: float) -> str:
    """Overpass QL union of every tag the categorizer understands"""
    around = f"(around:{radius_m:g},{latitude},{longitude})"
    statements = [
        f"{element_type}{tag_filter}{around};"
        for tag_filter, element_types in OVERPASS_FILTERS
        for element_type in element_types
    ]
    return "[out:json][timeout:25];\n(\n  " + "\n  ".join(statements) + "\n);\nout body;\n>;\nout skel qt;"


def parse_overpass_elements(payload: Any) -> List[GeoElement]:
    """
    Convert an Overpass JSON response into GeoElements

    Args:
        payload: Decoded JSON body

    Returns:
        Elements in upstream order; skeleton elements keep empty tags

    Raises:
        ProviderError: if the payload is not shaped like an Overpass response
    """
    if not isinstance(payload, dict):
        raise ProviderError("Overpass response is not a JSON object", provider="overpass")
    raw_elements = payload.get("elements", [])
    if not isinstance(raw_elements, list):
        raise ProviderError("Overpass response 'elements' is not a list", provider="overpass")

    elements: List[GeoElement] = []
    for raw in raw_elements:
        if not isinstance(raw, dict) or "id" not in raw or "type" not in raw:
            raise ProviderError(f"Malformed Overpass element: {raw!r}", provider="overpass")
        try:
            kind = ElementKind(raw["type"])
        except ValueError:
            raise ProviderError(f"Unknown Overpass element type {raw['type']!r}", provider="overpass") from None
        tags = raw.get("tags") or {}
        if not isinstance(tags, dict):
            raise ProviderError(f"Overpass element {raw['id']} has malformed tags", provider="overpass")
        elements.append(GeoElement(
            id=raw["id"],
            kind=kind,
            lat=raw.get("lat"),
            lon=raw.get("lon"),
            tags={str(key): str(value) for key, value in tags.items()},
        ))
    return elements


def parse_crime_payload(payload: Any, city: str, source: str = "CrimeScore API") -> Optional[SafetyReading]:
    """
    Convert a crime-score API response into a SafetyReading

    Both the upstream snake_case keys and the camelCase keys of a previously
    served crime-data response are accepted.

    Returns:
        None when the payload carries no crime index
    """
    if not isinstance(payload, dict):
        return None
    crime_index = _first(payload, "crime_index", "crimeIndex")
    if crime_index is None:
        return None
    safety_index = _first(payload, "safety_index", "safetyIndex")
    try:
        crime_index = float(crime_index)
        safety_index = float(safety_index) if safety_index is not None else None
    except (TypeError, ValueError):
        raise ProviderError(f"Malformed crime data for {city}: {payload!r}", provider="crime") from None
    return SafetyReading(
        crime_index=crime_index,
        safety_index=safety_index,
        city=payload.get("city") or city,
        source=source,
        note=payload.get("note"),
        warning=payload.get("warning"),
        crime_rate=_first(payload, "crime_rate", "crimeRate"),
        last_updated=_first(payload, "last_updated", "lastUpdated"),
        estimated=bool(payload.get("note") or payload.get("warning")),
    )


def _first(payload: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def _request_json(session: requests.Session, url: str, provider: str, timeout: float, **kwargs) -> Any:
    try:
        response = session.get(url, timeout=timeout, **kwargs)
        response.raise_for_status()
        return response.json()
    except requests.Timeout as e:
        raise ProviderTimeout(f"{provider} request timed out after {timeout}s", provider=provider) from e
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise ProviderError(f"{provider} returned HTTP {status}", provider=provider, status_code=status) from e
    except requests.RequestException as e:
        raise ProviderError(f"{provider} request failed: {e}", provider=provider) from e
    except ValueError as e:
        raise ProviderError(f"{provider} returned invalid JSON", provider=provider) from e


class OverpassPOIProvider:
    """Fetches parks, cafes, gyms, bus stops and train stations around a point"""

    def __init__(self, config: Optional[ScoringConfig] = None, session: Optional[requests.Session] = None):
        config = config or ScoringConfig()
        self.url = config.overpass_api_url
        self.timeout = config.poi_timeout_s
        self.session = session or requests.Session()

    def fetch(self, latitude, longitude, radius_m) -> POIResult:
        lat, lon = validate_coordinates(latitude, longitude)
        radius = validate_radius(radius_m)
        query = build_overpass_query(lat, lon, radius)

        logger.debug("Querying Overpass around (%s, %s) radius %sm", lat, lon, radius)
        payload = _request_json(
            self.session, self.url, "overpass", self.timeout,
            params={"data": query}, headers={"User-Agent": USER_AGENT},
        )
        elements = parse_overpass_elements(payload)
        logger.info("Overpass returned %d elements for (%s, %s)", len(elements), lat, lon)
        return POIResult(latitude=lat, longitude=lon, radius_m=radius, elements=elements)


class CrimeDataProvider:
    """Fetches a city's crime index, falling back to a configured placeholder"""

    def __init__(self, config: Optional[ScoringConfig] = None, session: Optional[requests.Session] = None):
        config = config or ScoringConfig()
        self.url = config.crime_api_url.rstrip("/")
        self.timeout = config.safety_timeout_s
        self.fallback_crime_index = config.fallback_crime_index
        self.session = session or requests.Session()

    def fetch(self, city: str) -> SafetyReading:
        if not city or not str(city).strip():
            raise InvalidInput("City name is a required parameter")
        city = str(city).strip()

        try:
            payload = _request_json(
                self.session, f"{self.url}/{quote(city)}", "crime", self.timeout,
                headers={"User-Agent": USER_AGENT},
            )
            reading = parse_crime_payload(payload, city)
            if reading is not None:
                return reading
            logger.warning("Crime API returned no crime index for %s", city)
        except ProviderError as e:
            if self.fallback_crime_index is None:
                if isinstance(e, ProviderTimeout):
                    raise
                raise SafetyDataUnavailable(
                    f"No crime data available for {city}: {e}", provider="crime", status_code=e.status_code,
                ) from e
            logger.warning("Crime API failed for %s: %s", city, e)

        if self.fallback_crime_index is None:
            raise SafetyDataUnavailable(f"No crime data available for {city}", provider="crime")
        return self.placeholder_reading(city)

    def placeholder_reading(self, city: str) -> SafetyReading:
        logger.info("Using placeholder crime index %s for %s", self.fallback_crime_index, city)
        return SafetyReading(
            crime_index=self.fallback_crime_index,
            safety_index=100 - self.fallback_crime_index,
            city=city,
            source="Configured placeholder",
            note=PLACEHOLDER_NOTE,
            warning=PLACEHOLDER_WARNING,
            estimated=True,
        )


def fetch_location_data(poi_provider: OverpassPOIProvider, safety_provider: CrimeDataProvider,
                        latitude, longitude, radius_m, city: str) -> Tuple[POIResult, SafetyReading]:
    """
    Run both provider queries concurrently and return once both complete

    Raises:
        ProviderError: the first failure among the two fetches, POI first
    """
    with ThreadPoolExecutor(max_workers=2) as executor:
        poi_future = executor.submit(poi_provider.fetch, latitude, longitude, radius_m)
        safety_future = executor.submit(safety_provider.fetch, city)
        poi_result = poi_future.result()
        safety_reading = safety_future.result()
    return poi_result, safety_reading
