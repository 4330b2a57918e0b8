#!/usr/bin/env python3
"""
Filter store - the single update entry point for filter state

Every change to the filter state is expressed as a command object and goes
through FilterStore.dispatch, which makes each mutation traceable (DEBUG log)
and lets the planner re-filter from one subscriber.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, List, Optional, Union

from .filter_state import CATEGORIES, FilterState, normalize_values
from .quick_filters import QuickFilter, apply_quick_filter, clear_quick_filter, parse_quick_filter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetCategory:
    """Replace the selection of one category ('weekday', 'location', 'training_type', 'age_group')"""
    category: str
    values: Any


@dataclass(frozen=True)
class ToggleCategoryValue:
    """Add a value to a category selection, or remove it if present"""
    category: str
    value: Any


@dataclass(frozen=True)
class SetTrainingTypeText:
    text: Any


@dataclass(frozen=True)
class SetSearchTerm:
    term: Any


@dataclass(frozen=True)
class SetDistanceFilter:
    active: Any
    max_distance_km: Any = None


@dataclass(frozen=True)
class ApplyQuickFilter:
    quick: Any
    today: Optional[date] = None


@dataclass(frozen=True)
class ClearQuickFilter:
    pass


@dataclass(frozen=True)
class ResetFilters:
    """Back to the empty state. The distance threshold survives."""
    pass


@dataclass(frozen=True)
class ReplaceState:
    state: Any


Command = Union[
    SetCategory, ToggleCategoryValue, SetTrainingTypeText, SetSearchTerm,
    SetDistanceFilter, ApplyQuickFilter, ClearQuickFilter, ResetFilters, ReplaceState,
]


def reduce_filters(state: FilterState, command: Command) -> FilterState:
    """
    Compute the state that results from applying a command

    Malformed payloads never raise; they leave the affected field without
    restriction (or the state unchanged where no field is affected).
    """
    if isinstance(command, SetCategory):
        if command.category not in CATEGORIES:
            logger.warning(f"⚠️  Ignoring unknown filter category {command.category!r}")
            return state
        return state.with_category(command.category, command.values)

    if isinstance(command, ToggleCategoryValue):
        values = normalize_values(command.value)
        if command.category not in CATEGORIES or not values:
            return state
        selected = set(state.category(command.category))
        value = values[0]
        if value in selected:
            selected.discard(value)
        else:
            selected.add(value)
        return state.with_category(command.category, frozenset(selected))

    if isinstance(command, SetTrainingTypeText):
        return replace(state, training_type_text=command.text)

    if isinstance(command, SetSearchTerm):
        return replace(state, search_term=command.term)

    if isinstance(command, SetDistanceFilter):
        max_distance = state.max_distance_km if command.max_distance_km is None else command.max_distance_km
        return replace(state, distance_filter_active=command.active is True, max_distance_km=max_distance)

    if isinstance(command, ApplyQuickFilter):
        quick = parse_quick_filter(command.quick)
        if quick is None:
            logger.warning(f"⚠️  Ignoring unknown quick filter {command.quick!r}")
            return state
        return apply_quick_filter(state, quick, today=command.today)

    if isinstance(command, ClearQuickFilter):
        return clear_quick_filter(state)

    if isinstance(command, ResetFilters):
        return FilterState(
            max_distance_km=state.max_distance_km,
            distance_filter_active=state.distance_filter_active,
        )

    if isinstance(command, ReplaceState):
        if isinstance(command.state, FilterState):
            return command.state
        return FilterState.from_mapping(command.state)

    raise TypeError(f"Unknown filter command: {command!r}")


class FilterStore:
    """Holds the current FilterState and notifies subscribers on change"""

    def __init__(self, state: Optional[FilterState] = None):
        self._state = state or FilterState()
        self._subscribers: List[Callable[[FilterState], None]] = []

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def active_quick_filter(self) -> Optional[QuickFilter]:
        return self._state.active_quick_filter

    def subscribe(self, callback: Callable[[FilterState], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, command: Command) -> FilterState:
        new_state = reduce_filters(self._state, command)
        logger.debug(f"Filter command {type(command).__name__}: {new_state}")
        if new_state == self._state:
            return self._state

        self._state = new_state
        for callback in list(self._subscribers):
            callback(new_state)
        return new_state

