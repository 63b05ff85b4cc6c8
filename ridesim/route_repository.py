import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ridesim.RouteBase import Route
from ridesim.TripStage import TripStage
from ridesim.directions import DirectionsClient
from ridesim.errors import DirectionsError
from ridesim.geo import Coordinate

logger = logging.getLogger(__name__)

RouteKey = Tuple[Coordinate, Coordinate, TripStage]


@dataclass(frozen=True)
class RouteResult:
    route: Optional[Route] = None
    error: Optional[DirectionsError] = None
    cached: bool = False

    @property
    def ok(self) -> bool:
        return self.route is not None


class RouteRepository:
    """
    One active route per stage. A new route for a stage replaces the old one;
    a repeated request for the same (origin, destination, stage) is served
    from the cache.
    """

    def __init__(self, client: DirectionsClient):
        self.client = client
        self._routes: Dict[TripStage, Tuple[RouteKey, Route]] = {}

    def get(self, stage: TripStage) -> Optional[Route]:
        entry = self._routes.get(stage)
        return entry[1] if entry else None

    def get_for(self, origin: Coordinate, destination: Coordinate, stage: TripStage) -> Optional[Route]:
        entry = self._routes.get(stage)
        if entry is not None and entry[0] == (origin, destination, stage):
            return entry[1]
        return None

    def replace(self, stage: TripStage, key: RouteKey, route: Route) -> None:
        # remove-then-add
        self._routes.pop(stage, None)
        self._routes[stage] = (key, route)

    def invalidate(self, stage: TripStage) -> None:
        if self._routes.pop(stage, None) is not None:
            logger.debug("Discarded route for %s", stage.name)

    def clear(self) -> None:
        self._routes.clear()

    async def fetch(self, origin: Coordinate, destination: Coordinate, stage: TripStage) -> RouteResult:
        cached = self.get_for(origin, destination, stage)
        if cached is not None:
            return RouteResult(route=cached, cached=True)

        try:
            route = await self.client.directions(origin, destination)
        except DirectionsError as e:
            logger.warning("No route for %s: %s", stage.name, e)
            return RouteResult(error=e)

        self.replace(stage, (origin, destination, stage), route)
        logger.info("Route for %s: %d points, %.0f m", stage.name, len(route.geometry), route.distance_m)
        return RouteResult(route=route)
