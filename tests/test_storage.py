#!/usr/bin/env python3
"""
Tests for the slot store, favourites and the JSON file backend
"""

import json
import time

from trainingsplan.lib.favorites import FavoritesManager
from trainingsplan.lib.storage import FAVORITES_KEY, JsonFileBackend, LocalStore


def test_set_and_get():
    store = LocalStore()
    store.set('slot', {'a': 1})
    assert store.get('slot') == {'a': 1}
    assert 'slot' in store
    assert store.get('missing', default='x') == 'x'


def test_expired_entries_are_removed():
    backend = {}
    store = LocalStore(backend)
    store.set('slot', [1, 2], timestamp=time.time() - 7200)
    assert store.get('slot', max_age=3600) is None
    assert 'slot' not in backend


def test_future_timestamps_count_as_expired():
    store = LocalStore()
    store.set('slot', 1, timestamp=time.time() + 600)
    assert store.get('slot', max_age=3600) is None


def test_corrupt_entries_are_dropped():
    backend = {'broken': '{not json', 'shape': json.dumps([1, 2])}
    store = LocalStore(backend)
    assert store.get('broken') is None
    assert store.get('shape') is None
    assert backend == {}


def test_remove_missing_slot_is_harmless():
    LocalStore().remove('nothing')


def test_json_file_backend_persists(tmp_path):
    path = tmp_path / 'state' / 'trainingsplan.json'
    LocalStore(JsonFileBackend(path)).set('slot', 'wert')

    reopened = LocalStore(JsonFileBackend(path))
    assert reopened.get('slot') == 'wert'
    reopened.remove('slot')
    assert LocalStore(JsonFileBackend(path)).get('slot') is None


def test_json_file_backend_ignores_unreadable_file(tmp_path):
    path = tmp_path / 'state.json'
    path.write_text('garbage', encoding='utf-8')
    assert len(JsonFileBackend(path)) == 0


# ----------------------------------------------------------------------
# Favourites


def test_toggle_and_persist(store):
    favorites = FavoritesManager(store)
    assert favorites.toggle(3) is True
    assert favorites.toggle(5) is True
    assert favorites.toggle(3) is False
    assert store.get(FAVORITES_KEY) == [5]

    reloaded = FavoritesManager(store)
    assert reloaded.load() == [5]
    assert reloaded.is_favorite(5)


def test_limit_refuses_new_favourites(store):
    favorites = FavoritesManager(store, max_count=2)
    favorites.toggle(1)
    favorites.toggle(2)
    assert favorites.toggle(3) is False
    assert favorites.ids == [1, 2]
    # Removing still works at the limit
    assert favorites.toggle(1) is False
    assert len(favorites) == 1


def test_load_skips_invalid_ids(store):
    store.set(FAVORITES_KEY, [1, '2', True, None, 1, 'x'])
    assert FavoritesManager(store).load() == [1, 2]

    store.set(FAVORITES_KEY, 'kaputt')
    assert FavoritesManager(store).load() == []


def test_favorite_trainings(store, trainings):
    favorites = FavoritesManager(store)
    favorites.toggle(4)
    favorites.toggle(1)
    assert [t.id for t in favorites.favorite_trainings(trainings)] == [1, 4]
    favorites.clear()
    assert store.get(FAVORITES_KEY) == []
