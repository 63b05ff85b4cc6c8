"""
Async clients for the geocoding and routing services.

MapboxClient covers place search, reverse geocoding and directions.
OsrmClient talks to a self-hosted OSRM instance and only routes.
Both return routes as (lng, lat) polylines and always use the first
candidate route.
"""
import asyncio
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import aiohttp
import polyline

from ridesim import settings
from ridesim.RouteBase import Route
from ridesim.errors import DirectionsError, GeocodingError
from ridesim.geo import Coordinate, format_coordinate

logger = logging.getLogger(__name__)

_NETWORK_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ValueError, KeyError, TypeError, IndexError)


@dataclass(frozen=True)
class PlaceSuggestion:
    id: str
    label: str
    coordinates: Coordinate


class DirectionsClient(Protocol):
    async def search_places(self, query: str, limit: int = settings.SUGGESTION_LIMIT) -> List[PlaceSuggestion]: ...

    async def reverse_geocode(self, coordinate: Coordinate) -> str: ...

    async def directions(self, origin: Coordinate, destination: Coordinate) -> Route: ...


class _HttpClient:
    name = "http"

    def __init__(self, session: Optional[aiohttp.ClientSession] = None,
                 timeout_s: float = settings.HTTP_TIMEOUT_S):
        self._session = session
        self._owns_session = session is None
        self.timeout = aiohttp.ClientTimeout(total=timeout_s)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        session = await self._get_session()
        async with session.get(url, params=params, timeout=self.timeout) as response:
            response.raise_for_status()
            return await response.json()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()


class MapboxClient(_HttpClient):
    name = "mapbox"

    def __init__(self, access_token: Optional[str] = settings.MAPBOX_ACCESS_TOKEN,
                 session: Optional[aiohttp.ClientSession] = None,
                 base_url: str = settings.MAPBOX_BASE_URL,
                 country: str = settings.GEOCODING_COUNTRY,
                 timeout_s: float = settings.HTTP_TIMEOUT_S):
        super().__init__(session=session, timeout_s=timeout_s)
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.country = country

    async def search_places(self, query: str, limit: int = settings.SUGGESTION_LIMIT) -> List[PlaceSuggestion]:
        """Suggestions for free text, most relevant first, at most `limit`."""
        if not query.strip():
            return []
        if not self.access_token:
            raise GeocodingError("Mapbox access token is not configured")

        encoded = urllib.parse.quote(query)
        url = f"{self.base_url}/geocoding/v5/mapbox.places/{encoded}.json"
        params = {"access_token": self.access_token, "limit": limit, "country": self.country}
        try:
            data = await self._get_json(url, params)
            suggestions = [
                PlaceSuggestion(
                    id=str(feature["id"]),
                    label=feature["place_name"],
                    coordinates=(float(feature["center"][0]), float(feature["center"][1])),
                )
                for feature in data.get("features") or []
            ]
        except _NETWORK_ERRORS as e:
            logger.warning("Mapbox place search failed for %r: %s", query, e)
            raise GeocodingError(f"Place search failed: {e}", {"query": query}) from e
        return suggestions[:limit]

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        """Best-match address, or "lat, lng" when nothing usable comes back."""
        fallback = format_coordinate(coordinate)
        if not self.access_token:
            return fallback

        lng, lat = coordinate
        url = f"{self.base_url}/geocoding/v5/mapbox.places/{lng},{lat}.json"
        params = {"access_token": self.access_token, "limit": 1}
        try:
            data = await self._get_json(url, params)
        except _NETWORK_ERRORS as e:
            logger.warning("Mapbox reverse geocoding failed for %s: %s", fallback, e)
            return fallback

        features = (data.get("features") if isinstance(data, dict) else None) or []
        if not features or not features[0].get("place_name"):
            return fallback
        return features[0]["place_name"]

    async def directions(self, origin: Coordinate, destination: Coordinate) -> Route:
        if not self.access_token:
            raise DirectionsError("Mapbox access token is not configured")

        coords = f"{origin[0]},{origin[1]};{destination[0]},{destination[1]}"
        url = f"{self.base_url}/directions/v5/mapbox/driving/{coords}"
        params = {"geometries": "geojson", "overview": "full", "access_token": self.access_token}
        try:
            data = await self._get_json(url, params)
            routes = data.get("routes") or []
            if not routes:
                raise DirectionsError("No route found", {"origin": origin, "destination": destination})
            route = routes[0]
            geometry = [(float(lng), float(lat)) for lng, lat in route["geometry"]["coordinates"]]
            return Route.from_geometry(
                geometry,
                origin=origin,
                destination=destination,
                distance_m=route.get("distance"),
                duration_s=route.get("duration", 0.0),
                provider=self.name,
            )
        except _NETWORK_ERRORS as e:
            logger.warning("Mapbox directions failed for %s: %s", coords, e)
            raise DirectionsError(f"Directions request failed: {e}",
                                  {"origin": origin, "destination": destination}) from e


class OsrmClient(_HttpClient):
    """OSRM route service. It has no geocoder, so addresses fall back to coordinates."""
    name = "osrm"

    def __init__(self, base_url: str = settings.OSRM_URL,
                 session: Optional[aiohttp.ClientSession] = None,
                 profile: str = "driving",
                 timeout_s: float = settings.HTTP_TIMEOUT_S):
        super().__init__(session=session, timeout_s=timeout_s)
        self.base_url = base_url.rstrip("/")
        self.profile = profile

    async def search_places(self, query: str, limit: int = settings.SUGGESTION_LIMIT) -> List[PlaceSuggestion]:
        return []

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        return format_coordinate(coordinate)

    async def directions(self, origin: Coordinate, destination: Coordinate) -> Route:
        coords = f"{origin[0]},{origin[1]};{destination[0]},{destination[1]}"
        url = f"{self.base_url}/route/v1/{self.profile}/{coords}"
        params = {"overview": "full", "geometries": "polyline", "steps": "false"}
        try:
            data = await self._get_json(url, params)
            if data.get("code") != "Ok" or not data.get("routes"):
                raise DirectionsError(f"OSRM returned {data.get('code')}: {data.get('message', '')}",
                                      {"origin": origin, "destination": destination})
            route = data["routes"][0]
            geometry = [(lon, lat) for lat, lon in polyline.decode(route["geometry"])]
            return Route.from_geometry(
                geometry,
                origin=origin,
                destination=destination,
                distance_m=route.get("distance"),
                duration_s=route.get("duration", 0.0),
                provider=self.name,
            )
        except _NETWORK_ERRORS as e:
            logger.warning("OSRM directions failed for %s: %s", coords, e)
            raise DirectionsError(f"Directions request failed: {e}",
                                  {"origin": origin, "destination": destination}) from e


def make_client(provider: str = settings.DIRECTIONS_PROVIDER,
                session: Optional[aiohttp.ClientSession] = None):
    if provider == "mapbox":
        return MapboxClient(session=session)
    elif provider == "osrm":
        return OsrmClient(session=session)
    raise ValueError(f"Unknown directions provider: {provider}")
