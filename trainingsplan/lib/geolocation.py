#!/usr/bin/env python3
"""
Geolocation and distance service

Obtains the user position (device or manual entry), persists manual
choices, annotates every training with its distance and keeps the single
"my location" marker on the map in sync.

Device requests go through begin_device_request/resolve_device_request so
that a result arriving after a reset or a newer request can be recognised
as stale and dropped.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .errors import GeolocationError, PositionUnavailableError
from .location_utils import LocationUtils
from .models import SOURCE_DEVICE, SOURCE_MANUAL, Training, UserPosition
from .storage import DEVICE_LOCATION_KEY, MANUAL_LOCATION_KEY, LocalStore

logger = logging.getLogger(__name__)

DISABLED_MESSAGE = "Geolocation ist deaktiviert"

# Same as the browser's maximumAge for cached positions
DEVICE_MAX_AGE = 5 * 60


class LocationState(Enum):
    IDLE = 'idle'
    REQUESTING = 'requesting'
    RESOLVED = 'resolved'
    FAILED = 'failed'


class GeolocationService:
    """
    Owns the user position and the distance annotations

    Args:
        trainings: Training list to annotate (shared with the planner)
        store: Slot store holding the manual and the last device location
        on_change: Called without arguments whenever the visible set must be recomputed
        notify: Called with (message, level) for user-visible notifications
        marker_sink: Object with set_user_marker(position) / remove_user_marker(),
            usually the MapController; may be None or attached later
        on_reset: Called after reset_location so the owner can drop a
            proximity quick filter
        enabled: False turns every device request into an immediate failure
        device_max_age: Seconds a remembered device position stays usable
    """

    def __init__(self, trainings: List[Training], store: LocalStore,
                 on_change: Optional[Callable[[], None]] = None,
                 notify: Optional[Callable[[str, str], None]] = None,
                 marker_sink=None,
                 on_reset: Optional[Callable[[], None]] = None,
                 enabled: bool = True,
                 device_max_age: float = DEVICE_MAX_AGE):
        self.trainings = trainings
        self.store = store
        self.on_change = on_change
        self.notify = notify
        self.marker_sink = marker_sink
        self.on_reset = on_reset
        self.enabled = enabled
        self.device_max_age = device_max_age

        self.position: Optional[UserPosition] = None
        self.state = LocationState.IDLE
        self.error: Optional[str] = None
        self._generation = 0

    @property
    def loading(self) -> bool:
        return self.state is LocationState.REQUESTING

    def _notify(self, message: str, level: str = 'info'):
        if self.notify is not None:
            self.notify(message, level)

    def _changed(self):
        if self.on_change is not None:
            self.on_change()

    def _show_marker(self):
        if self.marker_sink is not None and self.position is not None:
            self.marker_sink.set_user_marker(self.position)

    # ------------------------------------------------------------------
    # Distances

    def annotate_distances(self):
        """Recompute distance/distance_text on every training from the current position."""
        if self.position is None:
            return
        lat, lng = self.position.as_tuple()
        for training in self.trainings:
            if training.has_coordinates:
                distance = LocationUtils.haversine_distance(lat, lng, training.lat, training.lng)
                training.distance = distance
                training.distance_text = LocationUtils.format_distance(distance)
            else:
                training.distance = None
                training.distance_text = None

    def strip_distances(self):
        for training in self.trainings:
            training.distance = None
            training.distance_text = None

    # ------------------------------------------------------------------
    # Device location

    def begin_device_request(self) -> int:
        """
        Enter the requesting state

        Returns:
            Token to pass to resolve_device_request / fail_device_request
        """
        self._generation += 1
        self.state = LocationState.REQUESTING
        self.error = None
        return self._generation

    def _is_current(self, token: int) -> bool:
        if token != self._generation or self.state is not LocationState.REQUESTING:
            logger.info(f"🕐 Ignoring stale location result (request {token}, current {self._generation})")
            return False
        return True

    def resolve_device_request(self, token: int, lat, lng) -> Optional[UserPosition]:
        """Apply a device position if the request is still current."""
        if not self._is_current(token):
            return None

        if not LocationUtils.is_valid_coordinates(lat, lng):
            self.fail_device_request(token, PositionUnavailableError())
            return None

        self.position = UserPosition(float(lat), float(lng), source=SOURCE_DEVICE)
        self.state = LocationState.RESOLVED
        # The device position supersedes a remembered manual one
        self.store.remove(MANUAL_LOCATION_KEY)
        self.store.set(DEVICE_LOCATION_KEY, {'lat': self.position.lat, 'lng': self.position.lng})
        logger.info(f"📍 Position obtained: ({self.position.lat:.6f}, {self.position.lng:.6f})")

        self.annotate_distances()
        self._changed()
        self._show_marker()
        self._notify('Standort ermittelt! 📍', 'success')
        return self.position

    def fail_device_request(self, token: int, error: Exception):
        """Record a failed request. Position and distances stay as they were."""
        if not self._is_current(token):
            return
        self.state = LocationState.FAILED
        self.error = str(error) or GeolocationError.message
        logger.warning(f"⚠️  Geolocation failed: {self.error}")
        self._notify(self.error, 'error')

    def request_device_location(self, provider: Callable[[], Tuple[float, float]]) -> Optional[UserPosition]:
        """
        Acquire the device position

        Args:
            provider: Callable returning (lat, lng) or raising GeolocationError

        Returns:
            The new position, or None on failure or when the result went stale
        """
        token = self.begin_device_request()

        if not self.enabled:
            self.fail_device_request(token, GeolocationError(DISABLED_MESSAGE))
            return None

        try:
            lat, lng = provider()
        except GeolocationError as e:
            self.fail_device_request(token, e)
            return None
        except (TypeError, ValueError) as e:
            logger.debug(f"Provider returned no usable position: {e}")
            self.fail_device_request(token, PositionUnavailableError())
            return None

        return self.resolve_device_request(token, lat, lng)

    # ------------------------------------------------------------------
    # Manual location

    def set_manual_location(self, lat, lng, label: str = '') -> Optional[UserPosition]:
        """
        Use a user-entered position

        Any device request still in flight becomes stale.
        """
        if not LocationUtils.is_valid_coordinates(lat, lng):
            self.error = "Ungültige Koordinaten"
            self._notify(self.error, 'error')
            return None

        self._generation += 1
        label = label.strip() if isinstance(label, str) else ''
        self.position = UserPosition(float(lat), float(lng), source=SOURCE_MANUAL, label=label)
        self.state = LocationState.RESOLVED
        self.error = None
        self.store.set(MANUAL_LOCATION_KEY, {'lat': self.position.lat, 'lng': self.position.lng, 'address': label})
        self.store.remove(DEVICE_LOCATION_KEY)
        logger.info(f"📍 Manual location set: ({self.position.lat:.6f}, {self.position.lng:.6f}) {label}")

        self.annotate_distances()
        self._changed()
        self._show_marker()
        self._notify('Standort gesetzt 📍', 'success')
        return self.position

    def set_manual_address(self, address: str,
                           geocoder: Callable[[str], Optional[Tuple[float, float]]] = LocationUtils.geocode_address
                           ) -> Optional[UserPosition]:
        """Geocode an address and use it as the manual location."""
        coords = geocoder(address) if isinstance(address, str) and address.strip() else None
        if coords is None:
            self.error = f"Adresse nicht gefunden: {address}"
            self._notify(self.error, 'error')
            return None
        return self.set_manual_location(coords[0], coords[1], label=address)

    def load_manual_location(self) -> Optional[UserPosition]:
        """Restore the persisted manual location, if any and valid."""
        data = self.store.get(MANUAL_LOCATION_KEY)
        if not isinstance(data, dict):
            return None

        lat, lng = data.get('lat'), data.get('lng')
        if not LocationUtils.is_valid_coordinates(lat, lng):
            logger.warning("⚠️  Discarding invalid persisted manual location")
            self.store.remove(MANUAL_LOCATION_KEY)
            return None

        address = data.get('address')
        self.position = UserPosition(float(lat), float(lng), source=SOURCE_MANUAL,
                                     label=address if isinstance(address, str) else '')
        self.state = LocationState.RESOLVED
        logger.info(f"📍 Manual location loaded: ({self.position.lat:.6f}, {self.position.lng:.6f})")
        self.annotate_distances()
        self._show_marker()
        return self.position

    def load_device_location(self) -> Optional[UserPosition]:
        """Restore the last device position while it is younger than device_max_age."""
        data = self.store.get(DEVICE_LOCATION_KEY, max_age=self.device_max_age)
        if not isinstance(data, dict):
            return None

        lat, lng = data.get('lat'), data.get('lng')
        if not LocationUtils.is_valid_coordinates(lat, lng):
            self.store.remove(DEVICE_LOCATION_KEY)
            return None

        self.position = UserPosition(float(lat), float(lng), source=SOURCE_DEVICE)
        self.state = LocationState.RESOLVED
        logger.debug(f"Device location restored: ({self.position.lat:.6f}, {self.position.lng:.6f})")
        self.annotate_distances()
        self._show_marker()
        return self.position

    def restore_location(self) -> Optional[UserPosition]:
        """Manual location first, then a recent device position."""
        return self.load_manual_location() or self.load_device_location()

    # ------------------------------------------------------------------

    def reset_location(self):
        """
        Forget the position

        Every step runs even when there is no position, map or marker.
        """
        self._generation += 1
        self.position = None
        self.state = LocationState.IDLE
        self.error = None
        self.store.remove(MANUAL_LOCATION_KEY)
        self.store.remove(DEVICE_LOCATION_KEY)
        self.strip_distances()

        if self.marker_sink is not None:
            self.marker_sink.remove_user_marker()
        if self.on_reset is not None:
            self.on_reset()

        self._changed()
        logger.info("📍 Location reset")
