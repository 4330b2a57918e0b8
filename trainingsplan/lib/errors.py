#!/usr/bin/env python3
"""
Exception types raised by the trainingsplan core
"""


class TrainingsplanError(Exception):
    """Base class for all trainingsplan errors"""


class DataLoadError(TrainingsplanError):
    """The training feed could not be loaded from any source"""


class MapLifecycleError(TrainingsplanError):
    """A map operation was attempted in the wrong lifecycle state"""


class GeolocationError(TrainingsplanError):
    """A position could not be obtained"""

    message = "Unbekannter Standort-Fehler"

    def __init__(self, message=None):
        super().__init__(message or self.message)


class PermissionDeniedError(GeolocationError):
    message = "Standort-Berechtigung verweigert"


class PositionUnavailableError(GeolocationError):
    message = "Standort nicht verfügbar"


class LocationTimeoutError(GeolocationError):
    message = "Standort-Anfrage Timeout"


# Browser PositionError codes
GEOLOCATION_ERRORS_BY_CODE = {
    1: PermissionDeniedError,
    2: PositionUnavailableError,
    3: LocationTimeoutError,
}


def geolocation_error_from_code(code) -> GeolocationError:
    """Map a browser geolocation error code to an exception instance."""
    try:
        error_class = GEOLOCATION_ERRORS_BY_CODE.get(int(code), GeolocationError)
    except (TypeError, ValueError):
        error_class = GeolocationError
    return error_class()
