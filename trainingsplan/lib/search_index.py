#!/usr/bin/env python3
"""
Fuzzy search over trainings

Each training is indexed under a handful of weighted text fields. A term
matches a field when it occurs as a substring or when one of the field's
words is similar enough (difflib ratio) to the term.
"""

import difflib
import logging
import re
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import Training

logger = logging.getLogger(__name__)

# field -> weight
SEARCH_KEYS: Dict[str, float] = {
    'training_type': 2.0,
    'location': 1.5,
    'trainer': 1.0,
    'weekday': 0.8,
    'age_group': 0.5,
}

DEFAULT_THRESHOLD = 0.7
MIN_TERM_LENGTH = 2

_WORD_RE = re.compile(r"[\wäöüß]+", re.IGNORECASE)


def _words(text: str) -> List[str]:
    return _WORD_RE.findall(text.casefold())


class SearchIndex:
    """Weighted fuzzy index over a training list"""

    def __init__(self, trainings: Iterable[Training], threshold: float = DEFAULT_THRESHOLD,
                 min_length: int = MIN_TERM_LENGTH):
        self.threshold = threshold
        self.min_length = min_length
        self._entries: List[Tuple[int, Dict[str, str]]] = []
        for training in trainings:
            fields = {key: str(getattr(training, key) or '').casefold() for key in SEARCH_KEYS}
            self._entries.append((training.id, fields))
        logger.debug(f"Search index built over {len(self._entries)} trainings")

    def __len__(self):
        return len(self._entries)

    def _field_score(self, needle: str, text: str) -> float:
        if not text:
            return 0.0
        if needle in text:
            return 1.0
        best = 0.0
        for word in _words(text):
            ratio = difflib.SequenceMatcher(None, needle, word).ratio()
            if ratio > best:
                best = ratio
        return best

    def score(self, term: str, fields: Dict[str, str]) -> float:
        """Weighted score of the best matching field, 0 when nothing matches."""
        best = 0.0
        for key, weight in SEARCH_KEYS.items():
            similarity = self._field_score(term, fields[key])
            if similarity >= self.threshold:
                best = max(best, similarity * weight)
        return best

    def ranked(self, term: str) -> Optional[List[int]]:
        """
        Ids of matching trainings, best match first

        Returns:
            List of ids, or None when the term is too short to restrict anything
        """
        if not isinstance(term, str):
            return None
        needle = term.strip().casefold()
        if len(needle) < self.min_length:
            return None

        scored = []
        for position, (training_id, fields) in enumerate(self._entries):
            value = self.score(needle, fields)
            if value > 0:
                scored.append((-value, position, training_id))
        scored.sort()
        return [training_id for _, _, training_id in scored]

    def search(self, term: str) -> Optional[Set[int]]:
        """Set of matching ids, or None for "no restriction"."""
        ranked = self.ranked(term)
        if ranked is None:
            return None
        return set(ranked)
