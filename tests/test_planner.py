#!/usr/bin/env python3
"""
Tests for the planner wiring filters, location, favourites and the map
"""

from datetime import date

import pytest

from conftest import ids
from trainingsplan.lib.filter_store import ResetFilters, SetCategory, SetSearchTerm
from trainingsplan.lib.map_controller import MapController
from trainingsplan.lib.planner import FILTERS_KEY, TrainingsPlaner
from trainingsplan.lib.quick_filters import QuickFilter

HOME = lambda: (48.137, 11.575)


@pytest.fixture
def planner(feed, store):
    planner = TrainingsPlaner(store=store)
    planner.load_data(feed)
    return planner


def test_load_data(planner):
    assert ids(planner.filtered_trainings) == [1, 2, 3, 4, 5]
    assert planner.get_training(4).training_type == 'Tricking'
    assert planner.get_training(99) is None
    assert planner.metadata.locations == ['LTR', 'Nord', 'Süd', 'Ohne Ort']


def test_dispatch_refilters(planner):
    planner.dispatch(SetCategory('weekday', ['Montag']))
    assert ids(planner.filtered_trainings) == [1, 2]
    planner.dispatch(SetSearchTerm('Trampolin'))
    assert ids(planner.filtered_trainings) == [2]
    planner.dispatch(ResetFilters())
    assert len(planner.filtered_trainings) == 5


def test_heute(planner):
    assert planner.apply_quick_filter('heute', today=date(2024, 1, 1)) is True
    assert ids(planner.filtered_trainings) == [1, 2]


def test_unknown_quick_filter(planner):
    with pytest.raises(ValueError):
        planner.apply_quick_filter('gestern')


def test_nearby_without_position(planner):
    assert planner.apply_quick_filter('inMeinerNaehe') is False
    assert planner.filter_state.active_quick_filter is None
    assert planner.pop_notifications()[-1]['level'] == 'warning'


def test_nearby_requests_device_location(planner):
    assert planner.apply_quick_filter('inMeinerNaehe', device_provider=HOME) is True
    assert planner.user_position.lat == 48.137
    assert ids(planner.filtered_trainings) == [1, 3, 4]


def test_reset_location_drops_nearby_filter(planner):
    planner.apply_quick_filter('inMeinerNaehe', device_provider=HOME)
    planner.geolocation.reset_location()
    assert planner.filter_state.active_quick_filter is None
    assert ids(planner.filtered_trainings) == [1, 2, 3, 4, 5]


def test_distance_filter(planner):
    planner.geolocation.set_manual_location(48.137, 11.575)
    planner.set_distance_filter(True, 5)
    assert ids(planner.filtered_trainings) == [1, 3, 4, 5]
    planner.set_distance_filter(False)
    assert ids(planner.filtered_trainings) == [1, 3, 4, 2, 5]


def test_favourites(planner):
    assert planner.toggle_favorite(3) is True
    planner.apply_quick_filter('favoriten')
    assert ids(planner.filtered_trainings) == [3]

    # Removing a favourite while the favourites filter is on updates the list
    planner.toggle_favorite(3)
    assert planner.filtered_trainings == []

    with pytest.raises(ValueError):
        planner.toggle_favorite(99)


def test_filters_survive_a_new_planner(planner, feed, store):
    planner.dispatch(SetCategory('location', ['LTR']))
    planner.apply_quick_filter('probetraining')
    planner.save_filters()
    assert store.get(FILTERS_KEY) == {'ort': ['LTR'], 'schnell': ['probetraining']}

    other = TrainingsPlaner(store=store)
    other.load_data(feed)
    other.restore_filters()
    assert other.filter_state == planner.filter_state
    assert ids(other.filtered_trainings) == [1]


def test_manual_location_survives_a_new_planner(planner, feed, store):
    planner.geolocation.set_manual_location(48.2, 11.6, label='Nord')
    other = TrainingsPlaner(store=store)
    other.load_data(feed)
    assert other.user_position.label == 'Nord'
    assert other.filtered_trainings[0].id == 2


def test_query_with_nearby_needs_position(planner):
    state = planner.load_filters_from_query({'schnell': 'inMeinerNaehe', 'tag': 'Montag'})
    assert state.active_quick_filter is None
    assert state.location_flag is None
    assert state.weekdays == {'Montag'}
    assert state.max_distance_km == planner.config.map.geolocation.max_distance_km


def test_share_link(planner):
    planner.dispatch(SetCategory('weekday', ['Montag', 'Samstag']))
    assert planner.share_link('https://example.org/') == 'https://example.org/?tag=Montag&tag=Samstag'


def test_grouped_trainings(planner):
    groups = planner.grouped_trainings()
    assert list(groups) == ['Montag', 'Mittwoch', 'Samstag', 'Sonntag']
    assert ids(groups['Montag']) == [2, 1]


def test_build_map_receives_filtered_trainings(planner, store):
    planner.geolocation.set_manual_location(48.137, 11.575)
    controller = planner.build_map(MapController(store=store))
    assert controller.is_ready
    assert controller.user_marker is not None

    planner.dispatch(SetCategory('weekday', ['Samstag']))
    controller.flush()
    assert list(controller.markers) == ['48.100000,11.550000']


def test_zoom_to_favorites(planner, store):
    assert planner.zoom_to_favorites() is False
    planner.toggle_favorite(2)
    planner.build_map(MapController(store=store))
    assert planner.zoom_to_favorites() is True

    # Rendering applies the queued markers without overriding the zoom
    controller = planner.map_controller
    controller.render()
    assert controller.view_change.bounds == [[48.2, 11.6], [48.2, 11.6]]
    assert controller.view_change.options['maxZoom'] == 15


def test_notifications_are_collected_once(planner):
    planner.toggle_favorite(1)
    notes = planner.pop_notifications()
    assert notes and notes[-1]['message'].startswith('Zu Favoriten')
    assert planner.pop_notifications() == []
