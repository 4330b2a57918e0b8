#!/usr/bin/env python3
"""
Filter predicate engine

Turns the full training list plus a FilterState into the visible subset.
Stages run in a fixed order, each one on the output of the previous one, so
an empty intermediate result stays empty:

1. favourites-only override
2. weekday (or the weekend/weekday preset), then trial availability
3. location (or the "near me" preset)
4. training type
5. age group
6. fuzzy search
7. distance threshold
8. ordering by distance
"""

from __future__ import annotations

import logging
from typing import Any, Collection, Iterable, List, Optional, Sequence

from .filter_state import FilterState
from .models import WEEKEND, Training, UserPosition
from .quick_filters import QuickFilter

logger = logging.getLogger(__name__)

NEARBY_RADIUS_KM = 5.0


def _casefold_set(values: Iterable[str]) -> frozenset:
    return frozenset(v.casefold() for v in values)


def _coerce_state(filter_state: Any) -> FilterState:
    if isinstance(filter_state, FilterState):
        return filter_state
    return FilterState.from_mapping(filter_state)


def _favorite_ids(favorites: Any) -> frozenset:
    if not isinstance(favorites, (list, tuple, set, frozenset)):
        return frozenset()
    return frozenset(f for f in favorites if isinstance(f, int) and not isinstance(f, bool))


def _filter_weekdays(trainings: List[Training], state: FilterState) -> List[Training]:
    if state.time_flag == QuickFilter.WOCHENENDE.value:
        return [t for t in trainings if t.weekday in WEEKEND]
    if state.time_flag == QuickFilter.WOCHENTAGS.value:
        return [t for t in trainings if t.weekday and t.weekday not in WEEKEND]
    if not state.weekdays:
        return trainings
    wanted = _casefold_set(state.weekdays)
    return [t for t in trainings if t.weekday.casefold() in wanted]


def _filter_locations(trainings: List[Training], state: FilterState,
                      nearby_radius_km: float) -> List[Training]:
    if state.location_flag == QuickFilter.IN_MEINER_NAEHE.value:
        return [t for t in trainings if t.distance is not None and t.distance <= nearby_radius_km]
    if not state.locations:
        return trainings
    wanted = _casefold_set(state.locations)
    return [t for t in trainings if t.location.casefold() in wanted]


def _filter_training_types(trainings: List[Training], state: FilterState) -> List[Training]:
    if state.training_types:
        wanted = _casefold_set(state.training_types)
        trainings = [t for t in trainings if t.training_type.casefold() in wanted]
    if state.training_type_text:
        needle = state.training_type_text.casefold()
        trainings = [t for t in trainings if needle in t.training_type.casefold()]
    return trainings


def _filter_age_groups(trainings: List[Training], state: FilterState) -> List[Training]:
    if not state.age_groups:
        return trainings
    wanted = _casefold_set(state.age_groups)
    return [t for t in trainings if any(group.casefold() in wanted for group in t.age_groups)]


def _filter_search(trainings: List[Training], state: FilterState, search_index) -> List[Training]:
    if not state.search_term or search_index is None:
        return trainings
    matching_ids = search_index.search(state.search_term)
    if matching_ids is None:
        return trainings
    return [t for t in trainings if t.id in matching_ids]


def _filter_distance(trainings: List[Training], state: FilterState,
                     user_position: Optional[UserPosition]) -> List[Training]:
    if user_position is None or not state.distance_filter_active or state.max_distance_km <= 0:
        return trainings
    # The "near me" preset already applied a tighter radius
    if state.location_flag == QuickFilter.IN_MEINER_NAEHE.value:
        return trainings
    limit = state.max_distance_km
    return [t for t in trainings if t.distance is None or t.distance <= limit]


def sort_by_distance(trainings: Sequence[Training]) -> List[Training]:
    """Stable ascending sort by distance; trainings without a distance go last."""
    return sorted(
        trainings,
        key=lambda t: (t.distance is None, t.distance if t.distance is not None else 0.0),
    )


def apply_filters(all_trainings: Sequence[Training],
                  filter_state: Any,
                  search_index=None,
                  user_position: Optional[UserPosition] = None,
                  favorites: Collection[int] = (),
                  nearby_radius_km: float = NEARBY_RADIUS_KM) -> List[Training]:
    """
    Compute the visible trainings

    Args:
        all_trainings: Full training list in feed order
        filter_state: FilterState, or a plain mapping rehydrated from URL/storage
        search_index: Object with search(term) -> set of ids or None
        user_position: Current user position, if any
        favorites: Favourite training ids
        nearby_radius_km: Radius used by the "near me" quick filter

    Returns:
        Filtered list. Input order is kept unless a position is set, in which
        case the result is ordered by distance.
    """
    state = _coerce_state(filter_state)
    trainings = list(all_trainings)

    if state.personal_flag == QuickFilter.FAVORITEN.value:
        favorite_ids = _favorite_ids(favorites)
        result = [t for t in trainings if t.id in favorite_ids]
        logger.debug(f"Favourites only: {len(result)}/{len(trainings)} trainings")
        return result

    trainings = _filter_weekdays(trainings, state)
    if state.feature_flag == QuickFilter.PROBETRAINING.value:
        trainings = [t for t in trainings if t.trial]
    trainings = _filter_locations(trainings, state, nearby_radius_km)
    trainings = _filter_training_types(trainings, state)
    trainings = _filter_age_groups(trainings, state)
    trainings = _filter_search(trainings, state, search_index)
    trainings = _filter_distance(trainings, state, user_position)

    if user_position is not None:
        trainings = sort_by_distance(trainings)

    logger.debug(f"Filtered {len(trainings)}/{len(all_trainings)} trainings")
    return trainings
