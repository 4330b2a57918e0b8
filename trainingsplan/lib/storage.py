#!/usr/bin/env python3
"""
Persisted key/value slots ("local storage")

LocalStore wraps any mutable mapping: the Flask session in the web app,
a JsonFileBackend in the CLI, a plain dict in tests. Values are stored as
JSON together with the time they were written so readers can apply an
expiry. Corrupt entries are dropped and read back as missing.
"""

import json
import logging
import os
import time
from collections.abc import MutableMapping
from pathlib import Path
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)

CACHE_KEY = 'trainingsplan_cache_v3'
MANUAL_LOCATION_KEY = 'manualLocation'
DEVICE_LOCATION_KEY = 'deviceLocation'
MAP_VIEW_KEY = 'trainingsplan_map_view'
FAVORITES_KEY = 'trainingsplan_favorites_v1'


class LocalStore:
    """Timestamped JSON slots on top of a mutable mapping"""

    def __init__(self, backend: Optional[MutableMapping] = None):
        self.backend = backend if backend is not None else {}

    def get(self, key: str, max_age: Optional[float] = None, default: Any = None) -> Any:
        """
        Read a slot

        Args:
            key: Slot name
            max_age: Maximum age in seconds; older entries are removed
            default: Returned for missing, expired or corrupt entries

        Returns:
            Stored value or default
        """
        entry = self.get_entry(key)
        if entry is None:
            return default

        if max_age is not None:
            age = time.time() - entry['timestamp']
            if age > max_age or age < 0:
                logger.debug(f"Slot '{key}' expired ({age:.0f}s old)")
                self.remove(key)
                return default

        return entry['value']

    def get_entry(self, key: str) -> Optional[dict]:
        """The raw {'value', 'timestamp'} record, None when missing or corrupt."""
        raw = self.backend.get(key)
        if raw is None:
            return None

        try:
            entry = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            if not isinstance(entry, dict) or 'value' not in entry:
                raise ValueError("missing value")
            entry['timestamp'] = float(entry.get('timestamp', 0))
        except (TypeError, ValueError) as e:
            logger.warning(f"⚠️  Dropping corrupt slot '{key}': {e}")
            self.remove(key)
            return None
        return entry

    def set(self, key: str, value: Any, timestamp: Optional[float] = None):
        entry = {'value': value, 'timestamp': time.time() if timestamp is None else timestamp}
        self.backend[key] = json.dumps(entry)

    def remove(self, key: str):
        self.backend.pop(key, None)

    def __contains__(self, key):
        return self.get_entry(key) is not None


class JsonFileBackend(MutableMapping):
    """
    Mutable mapping persisted to a JSON file

    Every write goes straight to disk. A missing or unreadable file starts
    out empty.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._data = self._load()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️  Could not read state file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as fh:
            json.dump(self._data, fh, indent=2)
        os.replace(tmp_path, self.path)

    def __getitem__(self, key):
        return self._data[key]

    def __setitem__(self, key, value):
        self._data[key] = value
        self._save()

    def __delitem__(self, key):
        del self._data[key]
        self._save()

    def __iter__(self) -> Iterator:
        return iter(self._data)

    def __len__(self):
        return len(self._data)
