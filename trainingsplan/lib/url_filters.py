#!/usr/bin/env python3
"""
Filter state <-> URL query parameters

Used for deep links and the share button. Parsing is forgiving: unknown
weekdays, out-of-range distances and unknown quick filter names are
dropped instead of raising.
"""

import logging
import math
from typing import Any, List, Mapping, Tuple
from urllib.parse import urlencode

from .filter_state import DEFAULT_MAX_DISTANCE_KM, FilterState
from .models import WEEKDAYS
from .quick_filters import parse_quick_filter

logger = logging.getLogger(__name__)

# FilterState attribute -> query parameter
URL_PARAMS = {
    'weekdays': 'tag',
    'locations': 'ort',
    'training_types': 'art',
    'age_groups': 'alter',
    'search_term': 'suche',
    'training_type_text': 'art_text',
    'active_quick_filter': 'schnell',
    'max_distance_km': 'dist',
}

MIN_URL_DISTANCE_KM = 1
MAX_URL_DISTANCE_KM = 200


def _get_list(params: Any, name: str) -> List[str]:
    if hasattr(params, 'getlist'):
        values = params.getlist(name)
    elif isinstance(params, Mapping):
        value = params.get(name)
        if value is None:
            values = []
        elif isinstance(value, (list, tuple)):
            values = list(value)
        else:
            values = [value]
    else:
        values = []
    return [v for v in values if isinstance(v, str)]


def _split(values: List[str]) -> List[str]:
    result = []
    for value in values:
        result.extend(part.strip() for part in value.split(','))
    return [v for v in result if v]


def _format_distance(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _parse_distance(values: List[str], max_km: float):
    if not values:
        return None
    try:
        distance = float(values[-1])
    except ValueError:
        logger.debug(f"Ignoring non-numeric distance parameter {values[-1]!r}")
        return None
    if math.isnan(distance) or not MIN_URL_DISTANCE_KM <= distance <= max_km:
        logger.debug(f"Ignoring out-of-range distance parameter {distance}")
        return None
    return distance


def filters_to_query(state: FilterState) -> List[Tuple[str, str]]:
    """
    Serialize a filter state to query parameter pairs

    Set-valued categories become repeated parameters in sorted order. The
    distance is only written while the distance filter is active.
    """
    pairs: List[Tuple[str, str]] = []
    for attribute in ('weekdays', 'locations', 'training_types', 'age_groups'):
        values = getattr(state, attribute)
        if attribute == 'weekdays':
            ordered = sorted(values, key=lambda d: WEEKDAYS.index(d) if d in WEEKDAYS else len(WEEKDAYS))
        else:
            ordered = sorted(values)
        pairs.extend((URL_PARAMS[attribute], value) for value in ordered)

    if state.search_term:
        pairs.append((URL_PARAMS['search_term'], state.search_term))
    if state.training_type_text:
        pairs.append((URL_PARAMS['training_type_text'], state.training_type_text))
    if state.active_quick_filter is not None:
        pairs.append((URL_PARAMS['active_quick_filter'], state.active_quick_filter.value))
    if state.distance_filter_active and state.max_distance_km > 0:
        pairs.append((URL_PARAMS['max_distance_km'], _format_distance(state.max_distance_km)))
    return pairs


def filters_from_query(params: Any, max_distance_km: float = MAX_URL_DISTANCE_KM) -> FilterState:
    """
    Parse query parameters into a filter state

    Args:
        params: werkzeug MultiDict (request.args) or a plain dict whose values
            are strings or lists of strings
        max_distance_km: Upper bound accepted for the distance parameter

    Returns:
        FilterState; malformed parameters are left out
    """
    # Weekday and age group values never contain commas, so "a,b" counts as two values
    weekdays = [d for d in _split(_get_list(params, 'tag')) if d in WEEKDAYS]
    kwargs = {
        'weekdays': frozenset(weekdays),
        'locations': frozenset(_get_list(params, 'ort')),
        'training_types': frozenset(_get_list(params, 'art')),
        'age_groups': frozenset(_split(_get_list(params, 'alter'))),
    }

    search = _get_list(params, 'suche')
    if search:
        kwargs['search_term'] = search[-1]
    type_text = _get_list(params, 'art_text')
    if type_text:
        kwargs['training_type_text'] = type_text[-1]

    quick_names = _get_list(params, 'schnell')
    quick = parse_quick_filter(quick_names[-1]) if quick_names else None
    if quick is not None:
        # Not re-run: the shared category values come back exactly as they
        # were serialized, FilterState derives the preset's flag
        kwargs['active_quick_filter'] = quick

    distance = _parse_distance(_get_list(params, 'dist'), max_distance_km)
    if distance is not None:
        kwargs['max_distance_km'] = distance
        kwargs['distance_filter_active'] = True
    else:
        kwargs['max_distance_km'] = DEFAULT_MAX_DISTANCE_KM

    return FilterState(**kwargs)


def create_share_link(base_url: str, state: FilterState) -> str:
    """Absolute link reproducing the given filter state"""
    base = base_url.split('?', 1)[0]
    query = urlencode(filters_to_query(state))
    return f"{base}?{query}" if query else base


def filters_to_dict(state: FilterState) -> dict:
    """Query parameters as a JSON-friendly {name: [values]} dict (session storage)."""
    result: dict = {}
    for name, value in filters_to_query(state):
        result.setdefault(name, []).append(value)
    return result
