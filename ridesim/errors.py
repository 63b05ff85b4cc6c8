"""
Exception hierarchy for the trip simulation engine.

Network failures are recovered close to where they happen (fallback address,
halted animation); only location errors are meant to block a trip.
"""
from typing import Optional


class RideSimError(Exception):
    """Base exception for all ridesim errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class LocationUnavailableError(RideSimError):
    """Pickup or destination is not known, or geolocation failed."""


class ExternalServiceError(RideSimError):
    """An HTTP service call failed."""


class GeocodingError(ExternalServiceError):
    pass


class DirectionsError(ExternalServiceError):
    pass


class InvalidCoordinateError(RideSimError, ValueError):
    """NaN or out-of-range coordinates reached the interpolator."""


class StageTransitionError(RideSimError):
    pass
