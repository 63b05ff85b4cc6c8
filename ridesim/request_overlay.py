"""
Phase timer shown while a ride request is pending, before the live ride:

    0 - 5 s      searching
    5 - 5.5 s    found
    5.5 - 15 s   arriving   (vehicle icon slides toward pickup, capped)
    >= 15 s      arrived    (confirmation becomes available)

Runs independently of TripSimulation; only the selected ride is shared.
"""
import logging
from enum import Enum
from typing import Callable, List, Optional

from ridesim import settings
from ridesim.LocationStore import RideSelection
from ridesim.scheduler import Scheduler, Timer

logger = logging.getLogger(__name__)


class OverlayPhase(Enum):
    SEARCHING = "searching"
    FOUND = "found"
    ARRIVING = "arriving"
    ARRIVED = "arrived"


PHASE_ORDER = [OverlayPhase.SEARCHING, OverlayPhase.FOUND, OverlayPhase.ARRIVING, OverlayPhase.ARRIVED]

STATUS_TEXT = {
    OverlayPhase.SEARCHING: "Finding a nearby driver",
    OverlayPhase.FOUND: "Driver found! Getting ready",
    OverlayPhase.ARRIVING: "Your ride is on the way",
    OverlayPhase.ARRIVED: "Your driver has arrived",
}


def phase_at(elapsed_ms: float) -> OverlayPhase:
    if elapsed_ms < settings.OVERLAY_FOUND_AT_MS:
        return OverlayPhase.SEARCHING
    if elapsed_ms < settings.OVERLAY_ARRIVING_AT_MS:
        return OverlayPhase.FOUND
    if elapsed_ms < settings.OVERLAY_ARRIVED_AT_MS:
        return OverlayPhase.ARRIVING
    return OverlayPhase.ARRIVED


class RequestOverlayTimer:
    def __init__(self,
                 scheduler: Scheduler,
                 selection: RideSelection,
                 on_phase: Optional[Callable[[OverlayPhase], None]] = None,
                 on_position: Optional[Callable[[float], None]] = None,
                 on_confirm: Optional[Callable[[RideSelection], None]] = None,
                 tick_ms: float = settings.TICK_MS):
        self.scheduler = scheduler
        self.selection = selection
        self.on_phase = on_phase
        self.on_position = on_position
        self.on_confirm = on_confirm
        self.tick_ms = tick_ms

        self.phase = OverlayPhase.SEARCHING
        self.vehicle_position = 0.0  # percent of the overlay track
        self.confirmation_available = False
        self.started = False
        self.cancelled = False
        self._timers: List[Timer] = []

    @property
    def status_text(self) -> str:
        return STATUS_TEXT[self.phase]

    @property
    def progress_percent(self) -> float:
        return min((PHASE_ORDER.index(self.phase) + 1) * 33.33, 100.0)

    def start(self) -> None:
        if self.started or self.cancelled:
            return
        self.started = True
        self._timers = [
            self.scheduler.call_later(settings.OVERLAY_FOUND_AT_MS, lambda: self._enter(OverlayPhase.FOUND)),
            self.scheduler.call_later(settings.OVERLAY_ARRIVING_AT_MS, lambda: self._enter(OverlayPhase.ARRIVING)),
            self.scheduler.call_later(settings.OVERLAY_ARRIVED_AT_MS, lambda: self._enter(OverlayPhase.ARRIVED)),
            self.scheduler.call_every(self.tick_ms, self._tick),
        ]
        logger.debug("Request overlay started for %s", self.selection.name)

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        # all or nothing
        for timer in self._timers:
            timer.cancel()
        self._timers = []
        logger.debug("Request overlay cancelled in phase %s", self.phase.value)

    def confirm(self) -> RideSelection:
        if not self.confirmation_available:
            raise RuntimeError("Ride cannot be confirmed before the driver has arrived")
        return self.selection

    def _enter(self, phase: OverlayPhase) -> None:
        if self.cancelled:
            return
        self.phase = phase
        if self.on_phase is not None:
            self.on_phase(phase)
        if phase is OverlayPhase.ARRIVED:
            # ramp is over, stop ticking
            for timer in self._timers:
                timer.cancel()
            self._timers = []
            self.confirmation_available = True
            if self.on_confirm is not None:
                self.on_confirm(self.selection)

    def _tick(self) -> None:
        if self.cancelled or self.phase is not OverlayPhase.ARRIVING:
            return
        position = min(self.vehicle_position + settings.OVERLAY_POSITION_STEP, settings.OVERLAY_POSITION_CAP)
        if position != self.vehicle_position:
            self.vehicle_position = position
            if self.on_position is not None:
                self.on_position(position)
