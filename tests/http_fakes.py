from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import aiohttp
from yarl import URL

from ridesim.RouteBase import Route
from ridesim.directions import PlaceSuggestion
from ridesim.errors import DirectionsError
from ridesim.geo import Coordinate, format_coordinate, lerp


@dataclass
class FakeResponse:
    status: int = 200
    json_data: Any = None
    text_data: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    method: str = "GET"
    url: str = "http://test"

    def __post_init__(self) -> None:
        self.request_info = aiohttp.RequestInfo(
            url=URL(self.url),
            method=self.method,
            headers={},
            real_url=URL(self.url),
        )
        self.history = ()

    async def json(self) -> Any:
        return self.json_data

    async def text(self) -> str:
        return self.text_data

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                request_info=self.request_info,
                history=self.history,
                status=self.status,
                message=self.text_data or "error",
            )

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeSession:
    def __init__(self, *, get_responses: Optional[List[Any]] = None) -> None:
        self._get_responses = list(get_responses or [])
        self.requests: List[Tuple[str, str, Dict[str, Any]]] = []
        self.closed = False

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append(("GET", url, kwargs))
        if not self._get_responses:
            raise AssertionError("No fake responses available")
        response = self._get_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class FakeDirectionsClient:
    """
    Routes every request through a midpoint, so polylines have 3 points.
    Requests whose destination is in fail_to raise DirectionsError.
    """

    def __init__(self, fail_to: Optional[Set[Coordinate]] = None,
                 suggestions: Optional[List[PlaceSuggestion]] = None,
                 gate: Optional[asyncio.Event] = None):
        self.fail_to = set(fail_to or ())
        self.suggestions = list(suggestions or [])
        self.gate = gate
        self.calls: List[Tuple[Coordinate, Coordinate]] = []
        self.closed = False

    async def directions(self, origin: Coordinate, destination: Coordinate) -> Route:
        self.calls.append((origin, destination))
        if self.gate is not None:
            await self.gate.wait()
        if destination in self.fail_to:
            raise DirectionsError("no route")
        return Route.from_geometry([origin, lerp(origin, destination, 0.5), destination],
                                   origin=origin, destination=destination, provider="fake")

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        return format_coordinate(coordinate)

    async def search_places(self, query: str, limit: int = 5) -> List[PlaceSuggestion]:
        return self.suggestions[:limit] if query.strip() else []

    async def close(self) -> None:
        self.closed = True


async def drain(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)
