#!/usr/bin/env python3
"""
Favourite trainings, persisted as an id list in the favourites slot
"""

import logging
from typing import Iterable, List

from .models import Training
from .storage import FAVORITES_KEY, LocalStore

logger = logging.getLogger(__name__)

MAX_FAVORITES = 100


def _valid_ids(values) -> List[int]:
    if not isinstance(values, list):
        return []
    ids = []
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        if isinstance(value, int) and value not in ids:
            ids.append(value)
    return ids


class FavoritesManager:
    """Loads, toggles and saves favourite training ids"""

    def __init__(self, store: LocalStore, max_count: int = MAX_FAVORITES):
        self.store = store
        self.max_count = max_count
        self.ids: List[int] = []

    def load(self) -> List[int]:
        self.ids = _valid_ids(self.store.get(FAVORITES_KEY, default=[]))[:self.max_count]
        logger.debug(f"Favorites loaded: {len(self.ids)}")
        return self.ids

    def save(self):
        self.store.set(FAVORITES_KEY, self.ids[:self.max_count])

    def is_favorite(self, training_id: int) -> bool:
        return training_id in self.ids

    def toggle(self, training_id: int) -> bool:
        """
        Add or remove a favourite

        Returns:
            True if the training is a favourite afterwards
        """
        if training_id in self.ids:
            self.ids.remove(training_id)
            self.save()
            return False

        if len(self.ids) >= self.max_count:
            logger.warning(f"⚠️  Favorites limit of {self.max_count} reached, not adding {training_id}")
            return False

        self.ids.append(training_id)
        self.save()
        return True

    def clear(self):
        self.ids = []
        self.save()

    def favorite_trainings(self, trainings: Iterable[Training]) -> List[Training]:
        favorite_ids = set(self.ids)
        return [t for t in trainings if t.id in favorite_ids]

    def __len__(self):
        return len(self.ids)
