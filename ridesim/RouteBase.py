from dataclasses import dataclass
from typing import List, Optional

from ridesim.geo import Coordinate, haversine_m


@dataclass(frozen=True)
class Route:
    """
    Polyline returned by the directions service for one (origin, destination)
    pair. geometry[0] is the route origin and geometry[-1] its destination,
    both (lng, lat).
    """
    geometry: List[Coordinate]
    origin: Coordinate
    destination: Coordinate
    distance_m: float
    duration_s: float
    provider: Optional[str] = None

    @classmethod
    def from_geometry(cls,
                      geometry: List[Coordinate],
                      origin: Coordinate,
                      destination: Coordinate,
                      distance_m: Optional[float] = None,
                      duration_s: float = 0.0,
                      provider: Optional[str] = None) -> "Route":
        if len(geometry) < 2:
            raise ValueError("geometry needs at least 2 points")
        if distance_m is None:
            distance_m = sum(haversine_m(a, b) for a, b in zip(geometry, geometry[1:]))
        return cls(
            geometry=list(geometry),
            origin=origin,
            destination=destination,
            distance_m=distance_m,
            duration_s=duration_s,
            provider=provider,
        )

    def to_geojson(self) -> dict:
        return {
            "type": "Feature",
            "properties": {"distance_m": self.distance_m, "duration_s": self.duration_s,
                           "provider": self.provider},
            "geometry": {"type": "LineString", "coordinates": [list(p) for p in self.geometry]},
        }
