#!/usr/bin/env python3
"""
Clustering utilities to group trainings that share a location
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from trainingsplan.lib.location_utils import Bounds, LocationUtils
from trainingsplan.lib.models import WEEKDAY_ORDER, Training, time_to_minutes

logger = logging.getLogger(__name__)

SORT_KEYS = ('day', 'time', 'age', 'name')


class TrainingClusterer:
    """Group and order trainings by location"""

    @staticmethod
    def group_by_location(trainings: Iterable[Training], debug: bool = False) -> Dict[str, List[Training]]:
        """
        Group trainings by exact coordinate

        Coordinates are rounded to 6 decimals to build the key. Trainings
        without coordinates have no place on the map and are skipped.

        Args:
            trainings: Trainings in display order
            debug: Enable debug output

        Returns:
            Ordered dict of location key -> trainings at that spot, in input order
        """
        groups: Dict[str, List[Training]] = {}
        skipped = 0
        for training in trainings:
            if not training.has_coordinates:
                skipped += 1
                continue
            key = LocationUtils.location_key(training.lat, training.lng)
            groups.setdefault(key, []).append(training)

        if debug:
            logger.debug(f"Grouped into {len(groups)} locations, skipped {skipped} without coordinates")

        return groups

    @staticmethod
    def sort_trainings(trainings: Sequence[Training], sort_by: str = 'day') -> List[Training]:
        """
        Order the trainings of one location for the popup list

        Args:
            trainings: Trainings at one location
            sort_by: 'day' (Montag first), 'time' (start time), 'age'
                (minimum age) or 'name' (training type). Unknown keys keep
                the input order.

        Returns:
            New list; ties keep their input order
        """
        if sort_by == 'day':
            key = lambda t: WEEKDAY_ORDER.get(t.weekday, 99)
        elif sort_by == 'time':
            key = lambda t: time_to_minutes(t.start)
        elif sort_by == 'age':
            key = lambda t: t.age_from if t.age_from is not None else 0
        elif sort_by == 'name':
            key = lambda t: t.training_type.casefold()
        else:
            return list(trainings)
        return sorted(trainings, key=key)

    @staticmethod
    def primary_training_type(trainings: Sequence[Training]) -> str:
        """Most common training type at a location; first seen wins ties."""
        counts: Dict[str, int] = {}
        for training in trainings:
            if training.training_type:
                counts[training.training_type] = counts.get(training.training_type, 0) + 1
        if not counts:
            return ''
        return max(counts, key=lambda name: counts[name])

    @staticmethod
    def favorites_bounds(trainings: Iterable[Training], favorites: Iterable[int]) -> Optional[Bounds]:
        """
        Bounding box of favourite trainings with coordinates

        Returns:
            Bounds or None if no favourite has coordinates
        """
        favorite_ids = set(favorites)
        coords = [(t.lat, t.lng) for t in trainings if t.id in favorite_ids and t.has_coordinates]
        return LocationUtils.get_bounds(coords)
