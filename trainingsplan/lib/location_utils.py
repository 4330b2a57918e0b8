#!/usr/bin/env python3
"""
Location utilities for geocoding, distance and bounds calculations
"""

import logging
import math
from numbers import Real
from typing import Iterable, Optional, Sequence, Tuple

import requests

logger = logging.getLogger(__name__)

Bounds = Tuple[Tuple[float, float], Tuple[float, float]]

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
USER_AGENT = 'Trainingsplan/1.0 (Training Map)'


class LocationUtils:
    """Utilities for location-based operations"""

    @staticmethod
    def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """
        Calculate the great circle distance between two points on Earth
        using the Haversine formula

        Args:
            lat1, lon1: Coordinates of first point (in degrees)
            lat2, lon2: Coordinates of second point (in degrees)

        Returns:
            Distance in kilometers
        """
        lat1_rad = math.radians(lat1)
        lon1_rad = math.radians(lon1)
        lat2_rad = math.radians(lat2)
        lon2_rad = math.radians(lon2)

        dlat = lat2_rad - lat1_rad
        dlon = lon2_rad - lon1_rad

        a = math.sin(dlat/2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2
        # Clamp against rounding drift just above 1.0
        c = 2 * math.asin(math.sqrt(min(1.0, a)))

        radius_earth_km = 6371.0

        return radius_earth_km * c

    @staticmethod
    def is_valid_coordinates(lat, lng) -> bool:
        """
        Check that lat/lng are real numbers within the WGS84 ranges

        Booleans and NaN are rejected.
        """
        for value in (lat, lng):
            if isinstance(value, bool) or not isinstance(value, Real):
                return False
            if math.isnan(value):
                return False
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def get_bounds(coords: Iterable[Sequence[float]]) -> Optional[Bounds]:
        """
        Calculate the bounding box containing all coordinates

        Args:
            coords: Iterable of (lat, lng) pairs

        Returns:
            ((min_lat, min_lng), (max_lat, max_lng)) or None if empty
        """
        coords = list(coords)
        if not coords:
            return None

        lats = [c[0] for c in coords]
        lngs = [c[1] for c in coords]
        return (min(lats), min(lngs)), (max(lats), max(lngs))

    @staticmethod
    def union_bounds(first: Optional[Bounds], second: Optional[Bounds]) -> Optional[Bounds]:
        """Smallest box containing both boxes. Either side may be None."""
        if first is None:
            return second
        if second is None:
            return first

        (a_min_lat, a_min_lng), (a_max_lat, a_max_lng) = first
        (b_min_lat, b_min_lng), (b_max_lat, b_max_lng) = second
        return (
            (min(a_min_lat, b_min_lat), min(a_min_lng, b_min_lng)),
            (max(a_max_lat, b_max_lat), max(a_max_lng, b_max_lng)),
        )

    @staticmethod
    def format_distance(distance_km: float) -> str:
        """Display string rounded to one decimal place, e.g. '2.4 km'"""
        return f"{distance_km:.1f} km"

    @staticmethod
    def location_key(lat: float, lng: float) -> str:
        """Key identifying an exact location, rounded to 6 decimals"""
        return f"{lat:.6f},{lng:.6f}"

    @staticmethod
    def geocode_address(address: str) -> Optional[Tuple[float, float]]:
        """
        Convert an address to coordinates using Nominatim (OpenStreetMap) geocoding service

        Args:
            address: Free-text address (e.g., "Marienplatz 1, München")

        Returns:
            Tuple of (latitude, longitude) or None if not found
        """
        if not address or not address.strip():
            return None

        params = {
            'q': address.strip(),
            'format': 'json',
            'limit': 1,
        }

        headers = {
            'User-Agent': USER_AGENT
        }

        try:
            logger.debug(f"Geocoding address: {address}")

            response = requests.get(NOMINATIM_URL, params=params, headers=headers, timeout=10)
            response.raise_for_status()

            results = response.json()

            if not results:
                return None

            result = results[0]
            lat = float(result['lat'])
            lon = float(result['lon'])

            logger.debug(f"Found location: {result.get('display_name', address)} ({lat:.6f}, {lon:.6f})")

            if not LocationUtils.is_valid_coordinates(lat, lon):
                return None
            return (lat, lon)

        except requests.exceptions.RequestException as e:
            logger.warning(f"⚠️  Error geocoding address '{address}': {e}")
            return None
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"⚠️  Error parsing geocoding response: {e}")
            return None
