#!/usr/bin/env python3
"""
Marker cluster engine

Builds one marker per training location, puts them into a clustering
layer, and handles the favourites zoom. Markers are keyed by location key;
popups are rendered from the trainings at build time so no marker keeps a
reference back to the training list.
"""

import logging
import zlib
from html import escape
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Tuple

import folium
from folium.plugins import MarkerCluster

from trainingsplan.clustering_utils import SORT_KEYS, TrainingClusterer
from .config import MapConfig
from .location_utils import Bounds, LocationUtils
from .map_elements import ClickToCenter, GuardedMarker
from .models import Training

logger = logging.getLogger(__name__)

# Marker colours, picked per training type by a stable checksum
PALETTE = (
    '#e63946', '#1d3557', '#2a9d8f', '#f4a261', '#6a4c93',
    '#457b9d', '#e76f51', '#588157', '#bc6c25', '#8338ec',
)
FALLBACK_COLOR = '#6c757d'

SORT_LABELS = {
    'day': '📅 Wochentag',
    'time': '🕐 Uhrzeit',
    'age': '👥 Altersgruppe',
    'name': '🏷️ Name',
}


def color_for_type(training_type: str) -> str:
    """Deterministic marker colour for a training type"""
    if not training_type:
        return FALLBACK_COLOR
    checksum = zlib.crc32(training_type.strip().casefold().encode('utf-8'))
    return PALETTE[checksum % len(PALETTE)]


def _training_details(training: Training, favorites: Collection[int] = ()) -> str:
    star = ' ⭐' if training.id in favorites else ''
    lines = [f"<strong>{escape(training.training_type or 'Training')}</strong>{star}"]

    when = escape(training.weekday)
    if training.time_range():
        when += f", {escape(training.time_range())}"
    if when:
        lines.append(f"📅 {when}")
    if training.age_group:
        lines.append(f"👥 {escape(training.age_group)}")
    if training.trainer:
        lines.append(f"👤 {escape(training.trainer)}")
    if training.distance_text:
        lines.append(f"📏 {escape(training.distance_text)}")
    if training.trial:
        lines.append('<span class="badge-trial">✓ Probetraining möglich</span>')
    if training.note:
        lines.append(f"<em>{escape(training.note)}</em>")
    if training.link:
        lines.append(f'<a href="{escape(training.link, quote=True)}" target="_blank" rel="noopener">Anmeldung</a>')
    return '<br>'.join(lines)


def popup_html_single(training: Training, favorites: Collection[int] = ()) -> str:
    """Popup body for a location with exactly one training"""
    location = escape(training.location or 'Standort')
    address = f'<div class="popup-address">🏠 {escape(training.address)}</div>' if training.address else ''
    return (
        f'<div class="training-popup">'
        f'<div class="popup-title">📍 {location}</div>{address}'
        f'<div class="popup-training">{_training_details(training, favorites)}</div>'
        f'</div>'
    )


def popup_html_multi(trainings: Sequence[Training], favorites: Collection[int] = (),
                     sort_by: str = 'day') -> str:
    """
    Popup body for a location shared by several trainings

    Every ordering is rendered up front; the <select> only toggles which
    list is visible.
    """
    first = trainings[0]
    count = len(trainings)
    location = escape(first.location or 'Standort')
    address = f'<div class="popup-address">🏠 {escape(first.address)}</div>' if first.address else ''

    options = ''.join(
        f'<option value="{key}"{" selected" if key == sort_by else ""}>{SORT_LABELS[key]}</option>'
        for key in SORT_KEYS
    )
    select = (
        '<label>Sortieren nach: <select class="popup-sort" '
        'onchange="var root=this.closest(\'.training-popup\');'
        'root.querySelectorAll(\'[data-sort]\').forEach(function(el){'
        'el.style.display = el.getAttribute(\'data-sort\') === this.value ? \'\' : \'none\';'
        '}, this);">'
        f'{options}</select></label>'
    )

    lists = []
    for key in SORT_KEYS:
        items = ''.join(
            f'<li>{_training_details(t, favorites)}</li>'
            for t in TrainingClusterer.sort_trainings(trainings, key)
        )
        display = '' if key == sort_by else ' style="display:none"'
        lists.append(f'<ol data-sort="{key}"{display}>{items}</ol>')

    return (
        f'<div class="training-popup">'
        f'<div class="popup-title">📍 {location}</div>'
        f'<div class="popup-count">{count} Trainings an diesem Standort</div>{address}'
        f'{select}{"".join(lists)}'
        f'</div>'
    )


def marker_icon(color: str, count: int) -> folium.DivIcon:
    badge = f'<span class="training-marker-badge">{count}</span>' if count > 1 else ''
    html = (
        f'<div class="training-marker" style="background:{color};width:28px;height:28px;'
        f'border-radius:50%;border:2px solid #fff;box-shadow:0 1px 4px rgba(0,0,0,.4);'
        f'position:relative;">{badge}</div>'
    )
    return folium.DivIcon(html=html, icon_size=(28, 28), icon_anchor=(14, 14), class_name='training-marker-icon')


class MarkerClusterEngine:
    """
    Turns the filtered trainings into map markers

    Args:
        controller: MapController the layers and view changes go to
        config: Map settings
        mobile: Use the smaller cluster radius
        cluster_factory: Callable creating the clustering layer
    """

    def __init__(self, controller, config: Optional[MapConfig] = None, mobile: bool = False,
                 cluster_factory=MarkerCluster):
        self.controller = controller
        self.config = config or MapConfig()
        self.mobile = mobile
        self.cluster_factory = cluster_factory
        self.favorites: Collection[int] = frozenset()

    @property
    def cluster_radius(self) -> int:
        return self.config.cluster_radius_mobile if self.mobile else self.config.cluster_radius

    def _create_layer(self):
        try:
            return self.cluster_factory(
                name='Trainings',
                control=False,
                max_cluster_radius=self.cluster_radius,
                spiderfy_on_max_zoom=True,
                show_coverage_on_hover=False,
                zoom_to_bounds_on_click=True,
            )
        except Exception as e:
            logger.warning(f"⚠️  Marker clustering unavailable, showing individual markers: {e}")
            return folium.FeatureGroup(name='Trainings', control=False)

    def build_marker(self, key: str, trainings: Sequence[Training]) -> GuardedMarker:
        """One marker for all trainings at a location"""
        first = trainings[0]
        color = color_for_type(TrainingClusterer.primary_training_type(trainings))
        if len(trainings) == 1:
            popup_html = popup_html_single(first, self.favorites)
            tooltip = first.training_type or first.location
        else:
            popup_html = popup_html_multi(trainings, self.favorites)
            tooltip = f"{first.location or 'Standort'} ({len(trainings)} Trainings)"

        return GuardedMarker(
            location=[first.lat, first.lng],
            popup=folium.Popup(popup_html, max_width=320),
            tooltip=tooltip,
            icon=marker_icon(color, len(trainings)),
            location_key=key,
        )

    def build_layer(self, trainings: Iterable[Training]) -> Tuple[object, Dict[str, GuardedMarker]]:
        """
        Build the marker layer for a training list

        Returns:
            (layer, markers) where markers maps location key -> marker
        """
        groups = TrainingClusterer.group_by_location(trainings)
        layer = self._create_layer()
        markers: Dict[str, GuardedMarker] = {}

        for key, group in groups.items():
            marker = self.build_marker(key, group)
            marker.add_to(layer)
            markers[key] = marker

        ClickToCenter(ratio=self.config.popup_anchor_ratio).add_to(layer)
        logger.debug(f"Built {len(markers)} markers ({type(layer).__name__})")
        return layer, markers

    @staticmethod
    def markers_bounds(markers: Dict[str, GuardedMarker]) -> Optional[Bounds]:
        return LocationUtils.get_bounds(marker.location for marker in markers.values())

    def zoom_to_favorites(self, trainings: Iterable[Training], favorites: Iterable[int]) -> bool:
        """
        Fit the map to the favourite trainings

        Without any favourite that has coordinates the default view is
        restored instead.

        Returns:
            True if the view was changed
        """
        bounds = TrainingClusterer.favorites_bounds(trainings, favorites)
        if bounds is None:
            logger.info("⭐ No favourites with coordinates, showing default view")
            return self.controller.set_view(self.config.default_center, self.config.default_zoom)

        return self.controller.fit_bounds(
            bounds,
            padding=self.config.fit_padding,
            max_zoom=self.config.favorites_max_zoom,
        )
