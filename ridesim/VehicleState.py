from dataclasses import dataclass

from ridesim.TripStage import TripStage
from ridesim.geo import Coordinate


@dataclass(frozen=True)
class VehicleState:
    """One position update of the animated vehicle. Only the animator creates these."""
    position: Coordinate
    bearing_degrees: float
    stage: TripStage
    progress: float

    @property
    def done(self) -> bool:
        return self.progress >= 1.0

    def to_dict(self) -> dict:
        lng, lat = self.position
        return {
            "lng": lng,
            "lat": lat,
            "bearing": self.bearing_degrees,
            "stage": self.stage.name,
            "progress": self.progress,
        }
