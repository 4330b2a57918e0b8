#!/usr/bin/env python3
"""
Tests for quick filter presets and the filter store
"""

from datetime import date

import pytest

from trainingsplan.lib.filter_state import FilterState
from trainingsplan.lib.filter_store import (ApplyQuickFilter, ClearQuickFilter, FilterStore, ReplaceState,
                                            ResetFilters, SetCategory, SetDistanceFilter, SetSearchTerm,
                                            ToggleCategoryValue, reduce_filters)
from trainingsplan.lib.quick_filters import (CATEGORY_TIME, QuickFilter, apply_quick_filter, clear_quick_filter,
                                             filters_by_category, parse_quick_filter)

MONDAY = date(2024, 1, 1)
SUNDAY = date(2024, 1, 7)


def test_heute_and_morgen_use_reference_date():
    assert apply_quick_filter(FilterState(), QuickFilter.HEUTE, today=MONDAY).weekdays == {'Montag'}
    assert apply_quick_filter(FilterState(), QuickFilter.MORGEN, today=MONDAY).weekdays == {'Dienstag'}
    # Sonntag wraps around to Montag
    assert apply_quick_filter(FilterState(), QuickFilter.MORGEN, today=SUNDAY).weekdays == {'Montag'}


def test_time_presets_replace_each_other():
    state = apply_quick_filter(FilterState(), QuickFilter.HEUTE, today=MONDAY)
    state = apply_quick_filter(state, QuickFilter.WOCHENENDE)
    assert state.weekdays == frozenset()
    assert state.time_flag == 'wochenende'
    assert state.active_quick_filter is QuickFilter.WOCHENENDE


def test_only_one_private_flag_survives():
    state = apply_quick_filter(FilterState(), QuickFilter.PROBETRAINING)
    state = apply_quick_filter(state, QuickFilter.WOCHENTAGS)
    assert state.feature_flag is None
    assert state.time_flag == 'wochentags'


def test_probetraining_keeps_category_selection():
    base = FilterState(weekdays=frozenset({'Montag'}), locations=frozenset({'LTR'}))
    state = apply_quick_filter(base, QuickFilter.PROBETRAINING)
    assert state.weekdays == {'Montag'}
    assert state.locations == {'LTR'}
    assert state.feature_flag == 'probetraining'


def test_nearby_clears_locations():
    base = FilterState(locations=frozenset({'LTR'}), weekdays=frozenset({'Montag'}))
    state = apply_quick_filter(base, QuickFilter.IN_MEINER_NAEHE)
    assert state.locations == frozenset()
    assert state.weekdays == {'Montag'}
    assert state.location_flag == 'inMeinerNaehe'


def test_favoriten_clears_everything_but_distance():
    base = FilterState(
        weekdays=frozenset({'Montag'}), locations=frozenset({'LTR'}),
        training_types=frozenset({'Parkour'}), age_groups=frozenset({'Kids'}),
        search_term='park', training_type_text='par',
        max_distance_km=10, distance_filter_active=True,
    )
    state = apply_quick_filter(base, QuickFilter.FAVORITEN)
    assert not (state.weekdays or state.locations or state.training_types or state.age_groups)
    assert state.search_term == '' and state.training_type_text == ''
    assert state.personal_flag == 'favoriten'
    assert state.max_distance_km == 10 and state.distance_filter_active


def test_clear_quick_filter():
    state = clear_quick_filter(apply_quick_filter(FilterState(), QuickFilter.HEUTE, today=MONDAY))
    assert state.active_quick_filter is None
    assert state.weekdays == frozenset()

    state = clear_quick_filter(apply_quick_filter(FilterState(weekdays=frozenset({'Montag'})),
                                                  QuickFilter.PROBETRAINING))
    assert state.feature_flag is None
    assert state.weekdays == {'Montag'}


def test_parse_quick_filter():
    assert parse_quick_filter('heute') is QuickFilter.HEUTE
    assert parse_quick_filter('INMEINERNAEHE') is QuickFilter.IN_MEINER_NAEHE
    assert parse_quick_filter(QuickFilter.FAVORITEN) is QuickFilter.FAVORITEN
    assert parse_quick_filter('gestern') is None
    assert parse_quick_filter(3) is None


def test_categories_and_geolocation_requirement():
    assert filters_by_category(CATEGORY_TIME) == [
        QuickFilter.HEUTE, QuickFilter.MORGEN, QuickFilter.WOCHENENDE, QuickFilter.WOCHENTAGS,
    ]
    assert [q for q in QuickFilter if q.requires_geolocation] == [QuickFilter.IN_MEINER_NAEHE]


# ----------------------------------------------------------------------
# FilterStore


def test_dispatch_notifies_subscribers_on_change():
    store = FilterStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.dispatch(SetCategory('weekday', ['Montag']))
    assert len(seen) == 1
    assert seen[0].weekdays == {'Montag'}

    # Same state again: no notification
    store.dispatch(SetCategory('weekday', ['Montag']))
    assert len(seen) == 1

    unsubscribe()
    store.dispatch(SetSearchTerm('park'))
    assert len(seen) == 1
    assert store.state.search_term == 'park'


def test_toggle_category_value():
    state = reduce_filters(FilterState(), ToggleCategoryValue('location', 'LTR'))
    assert state.locations == {'LTR'}
    state = reduce_filters(state, ToggleCategoryValue('location', 'LTR'))
    assert state.locations == frozenset()


def test_malformed_commands_do_not_raise():
    state = FilterState(weekdays=frozenset({'Montag'}))
    assert reduce_filters(state, SetCategory('colour', ['rot'])) == state
    assert reduce_filters(state, ApplyQuickFilter('gestern')) == state
    assert reduce_filters(state, SetCategory('location', 42)).locations == frozenset()
    assert reduce_filters(state, SetDistanceFilter('yes', 'far')).distance_filter_active is False


def test_unknown_command_type_raises():
    with pytest.raises(TypeError):
        reduce_filters(FilterState(), object())


def test_reset_keeps_distance_threshold():
    state = FilterState(weekdays=frozenset({'Montag'}), max_distance_km=12, distance_filter_active=True)
    state = reduce_filters(state, ResetFilters())
    assert not state.has_active_filters
    assert state.max_distance_km == 12
    assert state.distance_filter_active


def test_replace_state_accepts_mapping():
    state = reduce_filters(FilterState(), ReplaceState({'wochentag': 'Montag', 'maxDistanceKm': 8}))
    assert state.weekdays == {'Montag'}
    assert state.max_distance_km == 8
    assert state.distance_filter_active


def test_quick_filter_through_store():
    store = FilterStore()
    store.dispatch(ApplyQuickFilter('heute', today=MONDAY))
    assert store.active_quick_filter is QuickFilter.HEUTE
    store.dispatch(ClearQuickFilter())
    assert store.active_quick_filter is None


def test_private_flags_follow_the_active_preset():
    assert FilterState(feature_flag='probetraining').feature_flag is None
    assert FilterState(active_quick_filter='probetraining').feature_flag == 'probetraining'
    assert FilterState(active_quick_filter=QuickFilter.FAVORITEN, time_flag='wochenende').time_flag is None


def test_leaving_heute_drops_its_weekday():
    state = apply_quick_filter(FilterState(), QuickFilter.HEUTE, today=MONDAY)
    state = apply_quick_filter(state, QuickFilter.PROBETRAINING)
    assert state.weekdays == frozenset()
    assert state.feature_flag == 'probetraining'

    state = apply_quick_filter(FilterState(), QuickFilter.MORGEN, today=MONDAY)
    assert apply_quick_filter(state, QuickFilter.HEUTE, today=MONDAY).weekdays == {'Montag'}
