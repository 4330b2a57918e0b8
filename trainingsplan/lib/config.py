#!/usr/bin/env python3
"""
Application configuration

Defaults mirror the production planner (Munich centre, OpenStreetMap tiles,
50 km distance threshold). Values can be overridden through environment
variables or a .env file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

SECOND = 1
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
DAY = 24 * HOUR

DEFAULT_DATA_URL = 'https://jasha256.github.io/fam-trainingsplan/trainingsplan.json'

# name -> (tile url, attribution)
TILE_LAYERS: Dict[str, Tuple[str, str]] = {
    'street': (
        'https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png',
        '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>',
    ),
    'satellite': (
        'https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/MapServer/tile/{z}/{y}/{x}',
        'Tiles &copy; Esri',
    ),
    'terrain': (
        'https://{s}.tile.opentopomap.org/{z}/{x}/{y}.png',
        '&copy; <a href="https://opentopomap.org">OpenTopoMap</a>',
    ),
    'dark': (
        'https://{s}.basemaps.cartocdn.com/dark_all/{z}/{x}/{y}{r}.png',
        '&copy; <a href="https://carto.com/attributions">CARTO</a>',
    ),
}

TILE_LAYER_LABELS = {
    'street': '🗺️ Straßenkarte',
    'satellite': '🛰️ Satellit',
    'terrain': '⛰️ Gelände',
    'dark': '🌙 Dunkel',
}


@dataclass
class GeolocationConfig:
    """Device location and distance filter settings."""

    enable_high_accuracy: bool = True
    timeout_ms: int = 10 * 1000
    maximum_age_ms: int = 5 * 60 * 1000
    max_distance_km: float = 50.0
    nearby_radius_km: float = 5.0


@dataclass
class MapConfig:
    """Leaflet map settings."""

    default_center: Tuple[float, float] = (48.137154, 11.576124)  # München
    default_zoom: int = 12
    min_zoom: int = 10
    max_zoom: int = 19
    default_layer: str = 'street'
    fit_padding: int = 50
    favorites_max_zoom: int = 15
    popup_anchor_ratio: float = 0.7
    view_max_age: int = 7 * DAY
    cluster_radius: int = 80
    cluster_radius_mobile: int = 60
    mobile_breakpoint: int = 768
    geolocation: GeolocationConfig = field(default_factory=GeolocationConfig)


@dataclass
class FilterConfig:
    """Filter and search settings."""

    persist_in_url: bool = True
    debounce_ms: int = 100
    search_min_length: int = 2
    search_threshold: float = 0.7
    url_max_distance_km: int = 200


@dataclass
class AppConfig:
    """Main configuration container."""

    data_url: str = DEFAULT_DATA_URL
    cache_duration: int = HOUR
    favorites_max_count: int = 100
    state_file: Optional[Path] = None
    secret_key: str = 'dev-secret-key-change-in-production'
    debug: bool = False
    map: MapConfig = field(default_factory=MapConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)


def _get_env_float(key: str, default: float) -> float:
    value = os.getenv(key, '').strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"⚠️  Ignoring invalid {key}={value!r}, using {default}")
        return default


def _get_env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key, '').strip()
    if not value:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def load_config() -> AppConfig:
    """
    Build the configuration from defaults, .env and environment variables

    Returns:
        Populated AppConfig
    """
    load_dotenv()

    config = AppConfig()
    config.data_url = os.getenv('TRAININGSPLAN_DATA_URL', '').strip() or DEFAULT_DATA_URL
    config.secret_key = os.getenv('SECRET_KEY', config.secret_key)
    config.debug = _get_env_bool('FLASK_DEBUG')

    max_distance = _get_env_float('TRAININGSPLAN_MAX_DISTANCE_KM', config.map.geolocation.max_distance_km)
    if max_distance >= 0:
        config.map.geolocation.max_distance_km = max_distance

    state_file = os.getenv('TRAININGSPLAN_STATE_FILE', '').strip()
    if state_file:
        config.state_file = Path(state_file)

    return config
