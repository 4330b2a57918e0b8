#!/usr/bin/env python3
"""
Tests for share links and query parameter parsing
"""

from urllib.parse import parse_qs, urlparse

from werkzeug.datastructures import MultiDict

from trainingsplan.lib.filter_state import DEFAULT_MAX_DISTANCE_KM, FilterState
from trainingsplan.lib.quick_filters import QuickFilter, apply_quick_filter
from trainingsplan.lib.url_filters import (create_share_link, filters_from_query, filters_to_dict,
                                           filters_to_query)


def _state():
    base = FilterState(
        weekdays=frozenset({'Mittwoch', 'Montag'}),
        locations=frozenset({'LTR', 'Nord'}),
        training_types=frozenset({'Parkour'}),
        age_groups=frozenset({'Kids'}),
        search_term='park',
        training_type_text='par',
        max_distance_km=12.5,
        distance_filter_active=True,
    )
    return apply_quick_filter(base, QuickFilter.PROBETRAINING)


def test_query_order_is_stable():
    pairs = filters_to_query(_state())
    assert pairs[:2] == [('tag', 'Montag'), ('tag', 'Mittwoch')]
    assert ('ort', 'LTR') in pairs and ('schnell', 'probetraining') in pairs
    assert ('dist', '12.5') in pairs


def test_share_link_reproduces_state():
    state = _state()
    link = create_share_link('https://example.org/plan?old=1', state)
    parsed = urlparse(link)
    assert parsed.path == '/plan'
    params = MultiDict([(k, v) for k, values in parse_qs(parsed.query).items() for v in values])
    assert filters_from_query(params) == state


def test_empty_state_gives_bare_link():
    assert create_share_link('https://example.org/', FilterState()) == 'https://example.org/'


def test_distance_is_only_written_when_active():
    assert filters_to_query(FilterState(max_distance_km=20)) == []


def test_comma_separated_weekdays_and_unknown_days():
    state = filters_from_query(MultiDict([('tag', 'Montag,Dienstag,Feiertag')]))
    assert state.weekdays == {'Montag', 'Dienstag'}


def test_out_of_range_distance_is_ignored():
    for value in ('0', '500', 'weit', 'nan'):
        state = filters_from_query({'dist': value})
        assert state.distance_filter_active is False
        assert state.max_distance_km == DEFAULT_MAX_DISTANCE_KM


def test_distance_respects_configured_maximum():
    assert filters_from_query({'dist': '150'}, max_distance_km=100).distance_filter_active is False
    assert filters_from_query({'dist': '80'}, max_distance_km=100).max_distance_km == 80


def test_quick_filter_restores_its_flag():
    state = filters_from_query({'schnell': 'wochenende'})
    assert state.active_quick_filter is QuickFilter.WOCHENENDE
    assert state.time_flag == 'wochenende'

    assert filters_from_query({'schnell': 'gestern'}).active_quick_filter is None


def test_plain_dict_with_lists():
    state = filters_from_query({'ort': ['LTR', 3], 'suche': 'Anna'})
    assert state.locations == {'LTR'}
    assert state.search_term == 'Anna'


def test_filters_to_dict_round_trips_through_from_query():
    state = _state()
    assert filters_from_query(filters_to_dict(state)) == state
