#!/usr/bin/env python3
"""
Map lifecycle controller

Owns the folium map: creation, tile layers, controls, the training marker
layer and the single user location marker. Lifecycle:

    UNINITIALIZED -> INITIALIZING -> READY -> DESTROYED

Marker refreshes are queued and applied on flush(), which render() calls
before producing HTML. Only the latest queued refresh is applied.
"""

import logging
from collections import defaultdict
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import folium
from folium.plugins import LocateControl

from .config import TILE_LAYER_LABELS, TILE_LAYERS, MapConfig
from .errors import MapLifecycleError
from .location_utils import Bounds, LocationUtils
from .map_elements import GuardedMarker, LocationBridge, ResetViewControl, Teardown, ViewChange, ViewPersistence
from .map_markers import MarkerClusterEngine
from .models import SOURCE_MANUAL, MapViewState, Training, UserPosition
from .storage import MAP_VIEW_KEY, LocalStore

logger = logging.getLogger(__name__)

MAP_TARGET = 'map'
CLUSTER_TARGET = 'cluster'
USER_MARKER_TARGET = 'user_marker'


class MapState(Enum):
    UNINITIALIZED = 'uninitialized'
    INITIALIZING = 'initializing'
    READY = 'ready'
    DESTROYED = 'destroyed'


def _remove_element(element):
    """Detach a branca element from its parent, if it still has one."""
    parent = getattr(element, '_parent', None)
    if parent is None:
        return
    parent._children.pop(element.get_name(), None)
    element._parent = None


class MapController:
    """
    Lifecycle owner of one map instance

    Args:
        config: Map settings
        store: Slot store for the persisted view
        view_endpoint: URL the page posts move-end updates to (omit for static export)
        location_endpoint: URL the page posts LocateControl results to
        mobile: Use the mobile cluster radius
        marker_engine: Engine building marker layers (default MarkerClusterEngine)
    """

    def __init__(self, config: Optional[MapConfig] = None, store: Optional[LocalStore] = None,
                 view_endpoint: Optional[str] = None, location_endpoint: Optional[str] = None,
                 mobile: bool = False, marker_engine: Optional[MarkerClusterEngine] = None):
        self.config = config or MapConfig()
        self.store = store or LocalStore()
        self.view_endpoint = view_endpoint
        self.location_endpoint = location_endpoint
        self.marker_engine = marker_engine or MarkerClusterEngine(self, self.config, mobile=mobile)

        self.state = MapState.UNINITIALIZED
        self.map: Optional[folium.Map] = None
        self.tile_layers: Dict[str, folium.TileLayer] = {}
        self.controls: List[object] = []
        self.cluster_layer = None
        self.markers: Dict[str, GuardedMarker] = {}
        self.user_marker: Optional[GuardedMarker] = None
        self.user_position: Optional[UserPosition] = None
        self.view_change: Optional[ViewChange] = None

        self.user_interacted = False
        self.animating = False
        self._auto_fitted = False
        self._pending: Optional[Tuple[List[Training], Optional[UserPosition]]] = None
        self._listeners: Dict[Tuple[str, str], List[Callable]] = defaultdict(list)

    @property
    def is_ready(self) -> bool:
        return self.state is MapState.READY

    # ------------------------------------------------------------------
    # Setup

    def _initial_view(self) -> Tuple[Tuple[float, float], int]:
        view = MapViewState.from_dict(self.store.get(MAP_VIEW_KEY))
        if view is not None and view.is_fresh(self.config.view_max_age):
            zoom = min(max(view.zoom, self.config.min_zoom), self.config.max_zoom)
            self.user_interacted = self.user_interacted or view.user_interacted
            logger.debug(f"Restoring map view {view.center} @ {zoom}")
            return view.center, zoom
        if view is None and MAP_VIEW_KEY in self.store:
            logger.debug("Discarding invalid persisted map view")
            self.store.remove(MAP_VIEW_KEY)
        return self.config.default_center, self.config.default_zoom

    def _install_tile_layers(self):
        for name, (url, attribution) in TILE_LAYERS.items():
            layer = folium.TileLayer(
                tiles=url,
                attr=attribution,
                name=TILE_LAYER_LABELS.get(name, name),
                max_zoom=self.config.max_zoom,
                overlay=False,
                control=True,
                show=(name == self.config.default_layer),
            )
            layer.add_to(self.map)
            self.tile_layers[name] = layer

    def _install_controls(self):
        geolocation = self.config.geolocation
        controls = [
            LocateControl(
                auto_start=False,
                position='topright',
                strings={'title': 'Mein Standort'},
                locateOptions={
                    'enableHighAccuracy': geolocation.enable_high_accuracy,
                    'timeout': geolocation.timeout_ms,
                    'maximumAge': geolocation.maximum_age_ms,
                    'maxZoom': 16,
                },
            ),
            ResetViewControl(self.config.default_center, self.config.default_zoom),
            Teardown(),
        ]
        if self.view_endpoint:
            controls.append(ViewPersistence(self.view_endpoint))
        if self.location_endpoint:
            controls.append(LocationBridge(self.location_endpoint))
        controls.append(folium.LayerControl(position='topright', collapsed=True))

        for control in controls:
            control.add_to(self.map)
            self.controls.append(control)

    def initialize(self) -> Optional[folium.Map]:
        """
        Create the map, tile layers and controls

        Returns:
            The folium map, or None if creation failed (state stays UNINITIALIZED)
        """
        if self.state is MapState.READY:
            return self.map
        if self.state is not MapState.UNINITIALIZED:
            logger.warning(f"⚠️  Cannot initialize map in state {self.state.value}")
            return None

        self.state = MapState.INITIALIZING
        try:
            center, zoom = self._initial_view()
            self.map = folium.Map(
                location=list(center),
                zoom_start=zoom,
                min_zoom=self.config.min_zoom,
                max_zoom=self.config.max_zoom,
                tiles=None,
                control_scale=True,
            )
            self._install_tile_layers()
            self._install_controls()
        except Exception as e:
            logger.error(f"❌ Map initialization failed: {e}")
            self.map = None
            self.tile_layers = {}
            self.controls = []
            self.state = MapState.UNINITIALIZED
            return None

        self.state = MapState.READY
        if self.user_position is not None:
            self.set_user_marker(self.user_position)
        logger.info(f"🗺️  Map ready at ({center[0]:.4f}, {center[1]:.4f}) zoom {zoom}")
        return self.map

    # ------------------------------------------------------------------
    # Events

    def on(self, event: str, callback: Callable, target: str = MAP_TARGET):
        """
        Register a listener

        Targets: 'map', 'tile:<layer name>', 'cluster', 'marker:<location key>'
        and 'user_marker'.
        """
        self._listeners[(target, event)].append(callback)

    def off(self, event: Optional[str] = None, callback: Optional[Callable] = None, target: str = MAP_TARGET):
        """Remove one listener, every listener of an event, or every listener of a target."""
        for key in list(self._listeners):
            if key[0] != target or (event is not None and key[1] != event):
                continue
            if callback is None:
                del self._listeners[key]
            elif callback in self._listeners[key]:
                self._listeners[key].remove(callback)

    def fire(self, event: str, target: str = MAP_TARGET, **payload):
        for callback in list(self._listeners.get((target, event), ())):
            callback(**payload)

    def listener_count(self, target: Optional[str] = None) -> int:
        return sum(len(callbacks) for (t, _), callbacks in self._listeners.items()
                   if target is None or t == target)

    # ------------------------------------------------------------------
    # Animation and view

    def handle_move_start(self):
        self.animating = True
        self.fire('movestart')

    def stop_animation(self):
        if self.animating:
            logger.debug("Stopping in-flight map animation")
        self.animating = False

    def handle_move_end(self, center, zoom, user_initiated: bool = True) -> bool:
        """
        Persist the view after a pan/zoom

        Returns:
            False if centre or zoom are out of range (nothing stored)
        """
        self.animating = False
        try:
            lat, lng = center
            zoom = int(zoom)
        except (TypeError, ValueError):
            logger.debug(f"Ignoring malformed move-end {center!r} @ {zoom!r}")
            return False
        if not LocationUtils.is_valid_coordinates(lat, lng) or not 0 <= zoom <= 22:
            logger.debug(f"Ignoring out-of-range move-end {center!r} @ {zoom}")
            return False

        previous = MapViewState.from_dict(self.store.get(MAP_VIEW_KEY))
        if user_initiated or (previous is not None and previous.user_interacted):
            self.user_interacted = True

        view = MapViewState(center=(float(lat), float(lng)), zoom=zoom, user_interacted=self.user_interacted)
        self.store.set(MAP_VIEW_KEY, view.to_dict())
        self.fire('moveend', center=view.center, zoom=zoom)
        return True

    def _replace_view_change(self, element: ViewChange) -> bool:
        if self.state is not MapState.READY:
            return False
        if self.view_change is not None:
            _remove_element(self.view_change)
        self.view_change = element
        element.add_to(self.map)
        return True

    def _fit_view_change(self, bounds: Bounds, padding: Optional[int] = None,
                         max_zoom: Optional[int] = None) -> ViewChange:
        padding = self.config.fit_padding if padding is None else padding
        return ViewChange(bounds=bounds, padding=padding, max_zoom=max_zoom)

    def fit_bounds(self, bounds: Bounds, padding: Optional[int] = None, max_zoom: Optional[int] = None) -> bool:
        """Frame the bounds. An explicit view replaces the first-load auto-fit."""
        if not self._replace_view_change(self._fit_view_change(bounds, padding, max_zoom)):
            return False
        self._auto_fitted = True
        return True

    def set_view(self, center, zoom) -> bool:
        if not self._replace_view_change(ViewChange(center=center, zoom=zoom)):
            return False
        self._auto_fitted = True
        return True

    # ------------------------------------------------------------------
    # Markers

    def request_marker_refresh(self, trainings: Sequence[Training],
                               user_position: Optional[UserPosition] = None) -> bool:
        """
        Queue a marker rebuild for the next flush

        A newer request replaces one that has not been flushed yet.
        """
        if self.state is not MapState.READY:
            logger.debug(f"Marker refresh ignored in state {self.state.value}")
            return False
        self.stop_animation()
        self._pending = (list(trainings), user_position)
        return True

    @property
    def has_pending_refresh(self) -> bool:
        return self._pending is not None

    def _remove_marker_layer(self):
        for key in self.markers:
            self.off(target=f"marker:{key}")
        self.off(target=CLUSTER_TARGET)
        if self.cluster_layer is not None:
            _remove_element(self.cluster_layer)
        self.cluster_layer = None
        self.markers = {}

    def flush(self) -> bool:
        """Apply the queued marker refresh. Returns True if a rebuild happened."""
        if self.state is not MapState.READY or self._pending is None:
            return False

        trainings, user_position = self._pending
        self._pending = None
        self.stop_animation()

        self._remove_marker_layer()
        layer, markers = self.marker_engine.build_layer(trainings)
        layer.add_to(self.map)
        self.cluster_layer = layer
        self.markers = markers

        if user_position is None:
            self.remove_user_marker()
        elif user_position != self.user_position or self.user_marker is None:
            self.set_user_marker(user_position)

        if markers and not self._auto_fitted and not self.user_interacted:
            bounds = self.marker_engine.markers_bounds(markers)
            if bounds is not None:
                self._replace_view_change(self._fit_view_change(bounds))
            self._auto_fitted = True

        self.fire('markersupdated', count=len(markers))
        return True

    def set_user_marker(self, position: UserPosition):
        """Show the user location. Any previous user marker is removed first."""
        self.remove_user_marker()
        self.user_position = position
        if self.state is not MapState.READY:
            return

        manual = position.source == SOURCE_MANUAL
        tooltip = position.label or ('Manueller Standort' if manual else 'Mein Standort')
        self.user_marker = GuardedMarker(
            location=list(position.as_tuple()),
            tooltip=tooltip,
            icon=folium.Icon(color='blue' if not manual else 'darkblue', icon='user', prefix='fa'),
        )
        self.user_marker.add_to(self.map)

    def remove_user_marker(self):
        """Remove the user location marker. Safe to call without one."""
        self.user_position = None
        self.off(target=USER_MARKER_TARGET)
        if self.user_marker is not None:
            _remove_element(self.user_marker)
        self.user_marker = None

    # ------------------------------------------------------------------
    # Output

    def render(self) -> str:
        """
        Flush pending work and render the full HTML document

        Raises:
            MapLifecycleError: if the map is not ready
        """
        if self.state is not MapState.READY:
            raise MapLifecycleError(f"Map is not ready (state: {self.state.value})")
        self.flush()
        return self.map.get_root().render()

    def save(self, filename) -> Path:
        path = Path(filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(), encoding='utf-8')
        logger.info(f"🗺️  Map saved to: {path}")
        return path

    # ------------------------------------------------------------------
    # Teardown

    def destroy(self):
        """
        Tear the map down

        Stops animation, detaches listeners (map, tile layers, cluster,
        markers), removes layers and controls, then drops every reference.
        Calling it again, or on a map that was never initialized, does nothing
        harmful.
        """
        if self.state is MapState.DESTROYED:
            return

        self.stop_animation()
        self._pending = None

        self.off(target=MAP_TARGET)
        for name in self.tile_layers:
            self.off(target=f"tile:{name}")
        self.off(target=CLUSTER_TARGET)
        for key in self.markers:
            self.off(target=f"marker:{key}")
        self._listeners.clear()

        self._remove_marker_layer()
        if self.user_marker is not None:
            _remove_element(self.user_marker)
        if self.view_change is not None:
            _remove_element(self.view_change)
        for layer in self.tile_layers.values():
            _remove_element(layer)
        for control in self.controls:
            _remove_element(control)

        self.map = None
        self.tile_layers = {}
        self.controls = []
        self.user_marker = None
        self.user_position = None
        self.view_change = None
        self.state = MapState.DESTROYED
        logger.info("🗺️  Map destroyed")
