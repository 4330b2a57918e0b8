#!/usr/bin/env python3
"""
Trainingsplaner - wires the filter, geolocation, favourites and map parts together

The planner owns the training arena (id -> Training) and the filtered
result. The map only ever receives `filtered_trainings` and the user
position; it never reads filter state.
"""

import logging
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import AppConfig
from .data_loader import parse_feed
from .favorites import FavoritesManager
from .filter_engine import apply_filters
from .filter_state import FilterState
from .filter_store import (ApplyQuickFilter, ClearQuickFilter, Command, FilterStore, ReplaceState,
                           SetDistanceFilter)
from .geolocation import GeolocationService
from .models import WEEKDAY_ORDER, Metadata, Training, UserPosition, time_to_minutes
from .quick_filters import QuickFilter, clear_quick_filter, parse_quick_filter
from .search_index import SearchIndex
from .storage import LocalStore
from .url_filters import create_share_link, filters_from_query, filters_to_dict

logger = logging.getLogger(__name__)

FILTERS_KEY = 'trainingsplan_filters'


class TrainingsPlaner:
    """
    Application core for one user

    Args:
        config: Application configuration
        store: Slot store (Flask session, JSON file or dict)
    """

    def __init__(self, config: Optional[AppConfig] = None, store: Optional[LocalStore] = None):
        self.config = config or AppConfig()
        self.store = store or LocalStore()

        self.all_trainings: List[Training] = []
        self.trainings: Dict[int, Training] = {}
        self.metadata = Metadata()
        self.filtered_trainings: List[Training] = []
        self.notifications: List[Dict[str, str]] = []
        self.map_controller = None

        geolocation = self.config.map.geolocation
        self.filters = FilterStore(FilterState(max_distance_km=geolocation.max_distance_km))
        self.filters.subscribe(lambda state: self.apply_filters())
        self.search_index = SearchIndex(
            [],
            threshold=self.config.filters.search_threshold,
            min_length=self.config.filters.search_min_length,
        )

        self.favorites = FavoritesManager(self.store, max_count=self.config.favorites_max_count)
        self.favorites.load()

        self.geolocation = GeolocationService(
            self.all_trainings,
            self.store,
            on_change=self.apply_filters,
            notify=self.notify,
            on_reset=self._drop_nearby_filter,
            device_max_age=geolocation.maximum_age_ms / 1000,
        )

    # ------------------------------------------------------------------

    @property
    def filter_state(self) -> FilterState:
        return self.filters.state

    @property
    def user_position(self) -> Optional[UserPosition]:
        return self.geolocation.position

    def notify(self, message: str, level: str = 'info'):
        self.notifications.append({'message': message, 'level': level})
        logger.info(f"🔔 [{level}] {message}")

    def pop_notifications(self) -> List[Dict[str, str]]:
        notifications, self.notifications = self.notifications, []
        return notifications

    # ------------------------------------------------------------------
    # Data

    def load_data(self, feed: Dict[str, Any]) -> List[Training]:
        """
        Load a validated feed

        Restores the persisted location on first load and re-runs
        the filters.
        """
        trainings, self.metadata = parse_feed(feed)
        # Same list object: the geolocation service annotates it in place
        self.all_trainings[:] = trainings
        self.trainings = {t.id: t for t in trainings}
        self.search_index = SearchIndex(
            trainings,
            threshold=self.config.filters.search_threshold,
            min_length=self.config.filters.search_min_length,
        )

        if self.geolocation.position is None:
            self.geolocation.restore_location()
        else:
            self.geolocation.annotate_distances()

        logger.info(f"📋 {len(trainings)} trainings loaded")
        return self.apply_filters()

    def get_training(self, training_id: int) -> Optional[Training]:
        return self.trainings.get(training_id)

    # ------------------------------------------------------------------
    # Filtering

    def apply_filters(self) -> List[Training]:
        self.filtered_trainings = apply_filters(
            self.all_trainings,
            self.filters.state,
            search_index=self.search_index,
            user_position=self.user_position,
            favorites=self.favorites.ids,
            nearby_radius_km=self.config.map.geolocation.nearby_radius_km,
        )
        if self.map_controller is not None:
            self.map_controller.marker_engine.favorites = frozenset(self.favorites.ids)
            self.map_controller.request_marker_refresh(self.filtered_trainings, self.user_position)
        return self.filtered_trainings

    def dispatch(self, command: Command) -> FilterState:
        return self.filters.dispatch(command)

    def set_distance_filter(self, active: bool, max_distance_km=None) -> FilterState:
        return self.dispatch(SetDistanceFilter(active, max_distance_km))

    def apply_quick_filter(self, name, device_provider: Optional[Callable[[], Tuple[float, float]]] = None,
                           today=None) -> bool:
        """
        Activate a quick filter

        Presets that need a position request the device location first when
        none is known.

        Args:
            name: Quick filter name or QuickFilter
            device_provider: Callable returning the device (lat, lng)
            today: Reference date for 'heute'/'morgen'

        Returns:
            False if the preset needed a position that could not be obtained

        Raises:
            ValueError: for an unknown quick filter name
        """
        quick = parse_quick_filter(name)
        if quick is None:
            raise ValueError(f"Unbekannter Schnellfilter: {name}")

        if quick.requires_geolocation and self.user_position is None:
            if device_provider is None:
                self.notify('Für diesen Filter wird dein Standort benötigt', 'warning')
                return False
            if self.geolocation.request_device_location(device_provider) is None:
                return False

        self.dispatch(ApplyQuickFilter(quick, today=today))
        return True

    def remove_quick_filter(self) -> FilterState:
        return self.dispatch(ClearQuickFilter())

    def _drop_nearby_filter(self):
        if self.filters.active_quick_filter is QuickFilter.IN_MEINER_NAEHE:
            self.dispatch(ClearQuickFilter())

    # ------------------------------------------------------------------
    # Favourites

    def toggle_favorite(self, training_id: int) -> bool:
        """
        Toggle a favourite

        Raises:
            ValueError: for an unknown training id
        """
        if training_id not in self.trainings:
            raise ValueError(f"Unbekanntes Training: {training_id}")

        is_favorite = self.favorites.toggle(training_id)
        self.notify('Zu Favoriten hinzugefügt ⭐' if is_favorite else 'Von Favoriten entfernt', 'info')
        if self.filters.active_quick_filter is QuickFilter.FAVORITEN or self.map_controller is not None:
            self.apply_filters()
        return is_favorite

    def favorite_trainings(self) -> List[Training]:
        return self.favorites.favorite_trainings(self.all_trainings)

    def zoom_to_favorites(self) -> bool:
        if self.map_controller is None:
            return False
        return self.map_controller.marker_engine.zoom_to_favorites(self.all_trainings, self.favorites.ids)

    # ------------------------------------------------------------------
    # Persistence and sharing

    def share_link(self, base_url: str) -> str:
        return create_share_link(base_url, self.filters.state)

    def load_filters_from_query(self, params) -> FilterState:
        state = filters_from_query(params, max_distance_km=self.config.filters.url_max_distance_km)
        if not state.distance_filter_active:
            state = replace(state, max_distance_km=self.config.map.geolocation.max_distance_km)
        quick = state.active_quick_filter
        if quick is not None and quick.requires_geolocation and self.user_position is None:
            logger.debug(f"Dropping quick filter '{quick.value}' without a known position")
            state = clear_quick_filter(state)
        return self.dispatch(ReplaceState(state))

    def save_filters(self):
        self.store.set(FILTERS_KEY, filters_to_dict(self.filters.state))

    def restore_filters(self) -> FilterState:
        saved = self.store.get(FILTERS_KEY)
        if not isinstance(saved, dict):
            return self.filters.state
        return self.load_filters_from_query(saved)

    # ------------------------------------------------------------------
    # Views

    def grouped_trainings(self) -> "OrderedDict[str, List[Training]]":
        """Filtered trainings grouped by weekday (Montag first), each sorted by start time."""
        groups: Dict[str, List[Training]] = {}
        for training in self.filtered_trainings:
            groups.setdefault(training.weekday or 'Ohne Tag', []).append(training)

        ordered = OrderedDict()
        for weekday in sorted(groups, key=lambda day: WEEKDAY_ORDER.get(day, 99)):
            ordered[weekday] = sorted(groups[weekday], key=lambda t: time_to_minutes(t.start))
        return ordered

    def build_map(self, controller):
        """
        Attach and initialize a map controller

        The controller receives the current filtered trainings and position.
        """
        self.map_controller = controller
        self.geolocation.marker_sink = controller
        if self.user_position is not None:
            controller.user_position = self.user_position
        controller.initialize()
        controller.marker_engine.favorites = frozenset(self.favorites.ids)
        controller.request_marker_refresh(self.filtered_trainings, self.user_position)
        return controller
