#!/usr/bin/env python3
"""
Filter state - the single source of truth for what is visible

FilterState is immutable; every change produces a new instance through
dataclasses.replace (see filter_store.FilterStore.dispatch). All fields are
coerced on construction so that state rehydrated from untrusted sources
(URL parameters, session cookies) can never make the engine throw: anything
malformed turns into "no restriction".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields, replace
from numbers import Real
from typing import TYPE_CHECKING, Any, FrozenSet, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .quick_filters import QuickFilter

DEFAULT_MAX_DISTANCE_KM = 50.0

# Category name -> FilterState attribute
CATEGORIES = {
    'weekday': 'weekdays',
    'location': 'locations',
    'training_type': 'training_types',
    'age_group': 'age_groups',
}

PRIVATE_FLAGS = ('time_flag', 'feature_flag', 'location_flag', 'personal_flag')

# Feed/UI key names accepted by FilterState.from_mapping
_MAPPING_ALIASES = {
    'wochentag': 'weekdays',
    'ort': 'locations',
    'training': 'training_types',
    'altersgruppe': 'age_groups',
    'searchTerm': 'search_term',
    'activeQuickFilter': 'active_quick_filter',
    'maxDistanceKm': 'max_distance_km',
    'distanceFilterActive': 'distance_filter_active',
}


def normalize_values(value: Any) -> Tuple[str, ...]:
    """
    Coerce a filter value into a tuple of non-empty, trimmed strings

    Strings become a one-element tuple, iterables keep their string members,
    anything else (numbers, None, dicts) is "no restriction".
    """
    if isinstance(value, str):
        value = value.strip()
        return (value,) if value else ()
    if isinstance(value, (list, tuple, set, frozenset)):
        result = []
        for item in value:
            if isinstance(item, str) and item.strip() and item.strip() not in result:
                result.append(item.strip())
        return tuple(result)
    return ()


def has_filter_value(value: Any) -> bool:
    return bool(normalize_values(value))


def _coerce_distance(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, Real):
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return None
        else:
            return None
    value = float(value)
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


@dataclass(frozen=True)
class FilterState:
    """
    Immutable filter state

    The four category sets are OR-combined internally and AND-combined with
    each other; an empty set means no restriction. At most one quick filter
    is active. The private flags are derived from it, values passed for them
    are ignored.
    """

    weekdays: FrozenSet[str] = frozenset()
    locations: FrozenSet[str] = frozenset()
    training_types: FrozenSet[str] = frozenset()
    age_groups: FrozenSet[str] = frozenset()
    training_type_text: str = ''
    search_term: str = ''
    active_quick_filter: Optional['QuickFilter'] = None
    time_flag: Optional[str] = None
    feature_flag: Optional[str] = None
    location_flag: Optional[str] = None
    personal_flag: Optional[str] = None
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM
    distance_filter_active: bool = False

    def __post_init__(self):
        for attribute in CATEGORIES.values():
            object.__setattr__(self, attribute, frozenset(normalize_values(getattr(self, attribute))))

        for attribute in ('training_type_text', 'search_term'):
            value = getattr(self, attribute)
            object.__setattr__(self, attribute, value.strip() if isinstance(value, str) else '')

        # Deferred import: quick_filters depends on this module
        from .quick_filters import parse_quick_filter, private_flags_for

        quick = parse_quick_filter(self.active_quick_filter)
        object.__setattr__(self, 'active_quick_filter', quick)

        # A flag only exists while the preset owning it is active
        owned = private_flags_for(quick) if quick is not None else {}
        for flag in PRIVATE_FLAGS:
            object.__setattr__(self, flag, owned.get(flag))

        distance = _coerce_distance(self.max_distance_km)
        if distance is None:
            object.__setattr__(self, 'max_distance_km', DEFAULT_MAX_DISTANCE_KM)
            object.__setattr__(self, 'distance_filter_active', False)
        else:
            object.__setattr__(self, 'max_distance_km', distance)
            object.__setattr__(self, 'distance_filter_active', self.distance_filter_active is True)

    @property
    def has_active_filters(self) -> bool:
        return bool(
            self.weekdays or self.locations or self.training_types or self.age_groups
            or self.training_type_text or self.search_term or self.active_quick_filter
        )

    def category(self, name: str) -> FrozenSet[str]:
        return getattr(self, CATEGORIES[name])

    def with_category(self, name: str, values: Any) -> 'FilterState':
        return replace(self, **{CATEGORIES[name]: frozenset(normalize_values(values))})

    @classmethod
    def from_mapping(cls, data: Any) -> 'FilterState':
        """
        Build a FilterState from a plain mapping

        Accepts attribute names as well as the feed/UI names used by the
        browser store (wochentag, ort, training, altersgruppe, searchTerm,
        maxDistanceKm). Unknown keys are ignored; a non-mapping yields the
        empty state.
        """
        if not isinstance(data, Mapping):
            return cls()

        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _MAPPING_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value

        # A threshold on its own switches the distance filter on
        if 'max_distance_km' in kwargs and 'distance_filter_active' not in kwargs:
            kwargs['distance_filter_active'] = True

        return cls(**kwargs)
