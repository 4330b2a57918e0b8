#!/usr/bin/env python3
"""
Tests for the filter predicate engine
"""

from dataclasses import replace

import pytest

from conftest import annotate, ids
from trainingsplan.lib.filter_engine import apply_filters, sort_by_distance
from trainingsplan.lib.filter_state import FilterState
from trainingsplan.lib.quick_filters import QuickFilter
from trainingsplan.lib.search_index import SearchIndex


def test_empty_state_returns_everything_in_feed_order(trainings):
    assert ids(apply_filters(trainings, FilterState())) == [1, 2, 3, 4, 5]


def test_values_within_a_category_are_or_combined(trainings):
    state = FilterState(weekdays=frozenset({'Montag', 'Mittwoch'}))
    assert ids(apply_filters(trainings, state)) == [1, 2, 3]


def test_categories_are_and_combined(trainings):
    state = FilterState(weekdays=frozenset({'Montag'}), training_types=frozenset({'Parkour'}))
    assert ids(apply_filters(trainings, state)) == [1]


def test_weekday_match_is_case_insensitive(trainings):
    assert ids(apply_filters(trainings, FilterState(weekdays=frozenset({'montag'})))) == [1, 2]


def test_age_group_matches_any_listed_group(trainings):
    assert ids(apply_filters(trainings, FilterState(age_groups=frozenset({'Kids'})))) == [1, 3]
    assert ids(apply_filters(trainings, FilterState(age_groups=frozenset({'Teens'})))) == [1, 4]


def test_training_type_set_is_exact_and_text_is_substring(trainings):
    assert ids(apply_filters(trainings, FilterState(training_types=frozenset({'parkour'})))) == [1, 3]
    assert apply_filters(trainings, FilterState(training_types=frozenset({'Park'}))) == []
    assert ids(apply_filters(trainings, FilterState(training_type_text='RUN'))) == [5]


def test_location_filter(trainings):
    assert ids(apply_filters(trainings, FilterState(locations=frozenset({'LTR', 'Süd'})))) == [1, 3, 4]


def test_distance_filter_with_weekday(trainings, home):
    annotate(trainings, home)
    state = FilterState(weekdays=frozenset({'Montag'}), max_distance_km=5, distance_filter_active=True)
    assert ids(apply_filters(trainings, state, user_position=home)) == [1]


def test_distance_filter_keeps_trainings_without_coordinates(trainings, home):
    annotate(trainings, home)
    state = FilterState(max_distance_km=5, distance_filter_active=True)
    # 1 and 3 at 0 km, 4 at about 4.5 km, 5 has no distance and sorts last
    assert ids(apply_filters(trainings, state, user_position=home)) == [1, 3, 4, 5]


def test_distance_filter_needs_position_and_active_flag(trainings, home):
    annotate(trainings, home)
    inactive = FilterState(max_distance_km=5, distance_filter_active=False)
    assert len(apply_filters(trainings, inactive, user_position=home)) == 5

    active = FilterState(max_distance_km=5, distance_filter_active=True)
    assert ids(apply_filters(trainings, active)) == [1, 2, 3, 4, 5]

    zero = FilterState(max_distance_km=0, distance_filter_active=True)
    assert len(apply_filters(trainings, zero, user_position=home)) == 5


def test_position_sorts_by_distance(trainings, home):
    annotate(trainings, home)
    assert ids(apply_filters(trainings, FilterState(), user_position=home)) == [1, 3, 4, 2, 5]


def test_sort_by_distance_is_stable(trainings, home):
    annotate(trainings, home)
    assert ids(sort_by_distance(trainings))[:2] == [1, 3]


def test_favourites_preset_ignores_other_filters(trainings):
    state = FilterState(weekdays=frozenset({'Montag'}), active_quick_filter=QuickFilter.FAVORITEN)
    assert ids(apply_filters(trainings, state, favorites=[3, 4])) == [3, 4]


def test_favourites_preset_ignores_non_integer_ids(trainings):
    state = FilterState(active_quick_filter=QuickFilter.FAVORITEN)
    assert ids(apply_filters(trainings, state, favorites=[True, '2', 5])) == [5]
    assert apply_filters(trainings, state, favorites=None) == []


def test_time_presets(trainings):
    assert ids(apply_filters(trainings, FilterState(active_quick_filter=QuickFilter.WOCHENENDE))) == [4, 5]
    assert ids(apply_filters(trainings, FilterState(active_quick_filter=QuickFilter.WOCHENTAGS))) == [1, 2, 3]


def test_trial_preset_composes_with_weekdays(trainings):
    state = FilterState(active_quick_filter=QuickFilter.PROBETRAINING)
    assert ids(apply_filters(trainings, state)) == [1, 4]
    assert ids(apply_filters(trainings, replace(state, weekdays=frozenset({'Samstag'})))) == [4]


def test_nearby_preset_uses_fixed_radius(trainings, home):
    annotate(trainings, home)
    state = FilterState(active_quick_filter=QuickFilter.IN_MEINER_NAEHE, max_distance_km=1, distance_filter_active=True)
    # The 5 km preset radius replaces the 1 km threshold; 5 has no distance
    assert ids(apply_filters(trainings, state, user_position=home)) == [1, 3, 4]


def test_search_uses_index(trainings):
    index = SearchIndex(trainings)
    assert ids(apply_filters(trainings, FilterState(search_term='Parkur'), search_index=index)) == [1, 3]
    assert len(apply_filters(trainings, FilterState(search_term='x'), search_index=index)) == 5
    # Without an index the term does not restrict
    assert len(apply_filters(trainings, FilterState(search_term='Parkour'))) == 5


def test_empty_intermediate_result_stays_empty(trainings):
    state = FilterState(weekdays=frozenset({'Dienstag'}), training_types=frozenset({'Parkour'}))
    assert apply_filters(trainings, state) == []


@pytest.mark.parametrize('raw', [
    {'wochentag': 5, 'ort': None, 'maxDistanceKm': 'abc'},
    {'weekdays': {'a': 1}, 'training_types': 3.5, 'search_term': ['x']},
    None,
    'Montag',
])
def test_malformed_state_means_no_restriction(trainings, raw):
    assert ids(apply_filters(trainings, raw)) == [1, 2, 3, 4, 5]


def test_mapping_state_is_accepted(trainings):
    assert ids(apply_filters(trainings, {'wochentag': ['Montag'], 'ort': 'Nord'})) == [2]


def test_input_list_is_not_modified(trainings):
    before = list(trainings)
    apply_filters(trainings, FilterState(weekdays=frozenset({'Montag'})))
    assert trainings == before


def test_flag_without_its_preset_does_not_restrict(trainings, home):
    assert ids(apply_filters(trainings, FilterState.from_mapping({'personal_flag': 'junk'}))) == [1, 2, 3, 4, 5]

    annotate(trainings, home)
    state = FilterState.from_mapping({'maxDistanceKm': 3, 'location_flag': 'x'})
    assert state.location_flag is None
    # The 3 km threshold still applies; 5 has no coordinates
    assert ids(apply_filters(trainings, state, user_position=home)) == [1, 3, 5]
