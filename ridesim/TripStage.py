from enum import Enum, auto
from typing import Dict, Optional


class TripStage(Enum):
    SEARCHING_DRIVER = auto()
    DRIVER_FOUND = auto()
    DRIVER_TO_PICKUP = auto()
    PICKUP_TO_DESTINATION = auto()
    ARRIVED = auto()

    @property
    def next(self) -> Optional["TripStage"]:
        return NEXT_STAGE.get(self)

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self]


NEXT_STAGE: Dict[TripStage, TripStage] = {
    TripStage.SEARCHING_DRIVER: TripStage.DRIVER_FOUND,
    TripStage.DRIVER_FOUND: TripStage.DRIVER_TO_PICKUP,
    TripStage.DRIVER_TO_PICKUP: TripStage.PICKUP_TO_DESTINATION,
    TripStage.PICKUP_TO_DESTINATION: TripStage.ARRIVED,
}

STATUS_TEXT: Dict[TripStage, str] = {
    TripStage.SEARCHING_DRIVER: "Finding a nearby driver",
    TripStage.DRIVER_FOUND: "Driver found! Getting ready",
    TripStage.DRIVER_TO_PICKUP: "Driver on the way",
    TripStage.PICKUP_TO_DESTINATION: "Driver has arrived",
    TripStage.ARRIVED: "Arrived at destination",
}
