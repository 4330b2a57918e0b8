#!/usr/bin/env python3
"""
Quick filter presets

A closed set of named presets. Each preset rewrites the filter state in one
step under its category's exclusivity rule:

- zeit:         replaces the weekday selection
- feature:      composes with every category filter
- ort:          replaces the location selection (needs a user position)
- persoenlich:  clears everything else
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from enum import Enum
from typing import List, Optional

from .filter_state import FilterState
from .models import WEEKDAYS

logger = logging.getLogger(__name__)

CATEGORY_TIME = 'zeit'
CATEGORY_FEATURE = 'feature'
CATEGORY_LOCATION = 'ort'
CATEGORY_PERSONAL = 'persoenlich'


class QuickFilter(Enum):
    """Available quick filters. The value is the name used in URLs and the UI."""

    HEUTE = 'heute'
    MORGEN = 'morgen'
    WOCHENENDE = 'wochenende'
    WOCHENTAGS = 'wochentags'
    PROBETRAINING = 'probetraining'
    IN_MEINER_NAEHE = 'inMeinerNaehe'
    FAVORITEN = 'favoriten'

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def category(self) -> str:
        return _CATEGORIES[self]

    @property
    def requires_geolocation(self) -> bool:
        return self is QuickFilter.IN_MEINER_NAEHE


_LABELS = {
    QuickFilter.HEUTE: 'Heute',
    QuickFilter.MORGEN: 'Morgen',
    QuickFilter.WOCHENENDE: 'Wochenende',
    QuickFilter.WOCHENTAGS: 'Wochentags',
    QuickFilter.PROBETRAINING: 'Probetraining',
    QuickFilter.IN_MEINER_NAEHE: 'In meiner Nähe',
    QuickFilter.FAVORITEN: 'Favoriten',
}

_CATEGORIES = {
    QuickFilter.HEUTE: CATEGORY_TIME,
    QuickFilter.MORGEN: CATEGORY_TIME,
    QuickFilter.WOCHENENDE: CATEGORY_TIME,
    QuickFilter.WOCHENTAGS: CATEGORY_TIME,
    QuickFilter.PROBETRAINING: CATEGORY_FEATURE,
    QuickFilter.IN_MEINER_NAEHE: CATEGORY_LOCATION,
    QuickFilter.FAVORITEN: CATEGORY_PERSONAL,
}


def parse_quick_filter(value) -> Optional[QuickFilter]:
    """Resolve a name (or a QuickFilter) to a QuickFilter, None if unknown."""
    if isinstance(value, QuickFilter):
        return value
    if not isinstance(value, str):
        return None
    value = value.strip()
    for quick in QuickFilter:
        if quick.value == value or quick.value.lower() == value.lower():
            return quick
    return None


def filters_by_category(category: str) -> List[QuickFilter]:
    return [quick for quick in QuickFilter if quick.category == category]


def weekday_for(day: date) -> str:
    """German weekday name for a date."""
    return WEEKDAYS[day.weekday()]


def private_flags_for(quick: QuickFilter) -> dict:
    """The private flag a preset owns, keyed by FilterState attribute."""
    if quick in (QuickFilter.WOCHENENDE, QuickFilter.WOCHENTAGS):
        return {'time_flag': quick.value}
    if quick is QuickFilter.PROBETRAINING:
        return {'feature_flag': quick.value}
    if quick is QuickFilter.IN_MEINER_NAEHE:
        return {'location_flag': quick.value}
    if quick is QuickFilter.FAVORITEN:
        return {'personal_flag': quick.value}
    return {}


def apply_quick_filter(state: FilterState, quick: QuickFilter, today: Optional[date] = None) -> FilterState:
    """
    Apply a quick filter preset

    Args:
        state: Current filter state
        quick: Preset to apply
        today: Reference date for the 'heute'/'morgen' presets (default: today)

    Returns:
        New filter state with `quick` as the only active quick filter
    """
    today = today or date.today()

    # Only one preset may be active; FilterState drops the previous preset's flag
    base = replace(_without_day_selection(state), active_quick_filter=quick)

    if quick is QuickFilter.HEUTE:
        return replace(base, weekdays=frozenset({weekday_for(today)}))
    elif quick is QuickFilter.MORGEN:
        return replace(base, weekdays=frozenset({WEEKDAYS[(today.weekday() + 1) % 7]}))
    elif quick in (QuickFilter.WOCHENENDE, QuickFilter.WOCHENTAGS):
        return replace(base, weekdays=frozenset())
    elif quick is QuickFilter.PROBETRAINING:
        return base
    elif quick is QuickFilter.IN_MEINER_NAEHE:
        return replace(base, locations=frozenset())
    elif quick is QuickFilter.FAVORITEN:
        return replace(
            base,
            weekdays=frozenset(),
            locations=frozenset(),
            training_types=frozenset(),
            age_groups=frozenset(),
            training_type_text='',
            search_term='',
        )
    raise ValueError(f"Unknown quick filter: {quick}")


def _without_day_selection(state: FilterState) -> FilterState:
    """Drop the weekday written by an active 'heute'/'morgen' preset."""
    if state.active_quick_filter in (QuickFilter.HEUTE, QuickFilter.MORGEN):
        return replace(state, weekdays=frozenset())
    return state


def clear_quick_filter(state: FilterState) -> FilterState:
    """
    Deactivate the active quick filter

    Clears the active slot together with its private flag. The weekday
    written by 'heute'/'morgen' is removed as well so no selection stays
    behind without the chip that created it.
    """
    quick = state.active_quick_filter
    cleared = replace(_without_day_selection(state), active_quick_filter=None)
    if quick is not None:
        logger.debug(f"Quick filter '{quick.value}' removed")
    return cleared
