#!/usr/bin/env python3
"""
Tests for loading and validating the training feed
"""

import json

import pytest
import requests

from trainingsplan.lib import data_loader
from trainingsplan.lib.data_loader import load_feed, parse_feed, validate_feed
from trainingsplan.lib.errors import DataLoadError
from trainingsplan.lib.storage import CACHE_KEY

URL = 'https://example.org/trainingsplan.json'


class _Response:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


def test_load_from_file(tmp_path, feed):
    path = tmp_path / 'trainingsplan.json'
    path.write_text(json.dumps(feed), encoding='utf-8')
    assert len(load_feed(str(path))['trainings']) == 5


def test_missing_or_invalid_file(tmp_path):
    with pytest.raises(DataLoadError):
        load_feed(str(tmp_path / 'fehlt.json'))

    path = tmp_path / 'kaputt.json'
    path.write_text('{"trainings": 5}', encoding='utf-8')
    with pytest.raises(DataLoadError):
        load_feed(str(path))


def test_validate_feed():
    assert validate_feed({'trainings': []}) == {'trainings': []}
    with pytest.raises(DataLoadError):
        validate_feed([])


def test_remote_feed_is_cached(monkeypatch, store, feed):
    monkeypatch.setattr(data_loader.requests, 'get', lambda *a, **k: _Response(feed))
    assert load_feed(URL, store=store) == feed
    assert store.get(CACHE_KEY) == feed


def test_network_error_falls_back_to_cache(monkeypatch, store, feed):
    store.set(CACHE_KEY, feed)

    def offline(*args, **kwargs):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(data_loader.requests, 'get', offline)
    assert load_feed(URL, store=store) == feed


def test_invalid_remote_feed_falls_back_to_cache(monkeypatch, store, feed):
    store.set(CACHE_KEY, feed)
    monkeypatch.setattr(data_loader.requests, 'get', lambda *a, **k: _Response({'kaputt': True}))
    assert load_feed(URL, store=store) == feed


def test_network_error_without_cache(monkeypatch, store):
    def offline(*args, **kwargs):
        raise requests.exceptions.Timeout("slow")

    monkeypatch.setattr(data_loader.requests, 'get', offline)
    with pytest.raises(DataLoadError):
        load_feed(URL, store=store)


def test_expired_cache_is_not_used(monkeypatch, store, feed):
    store.set(CACHE_KEY, feed, timestamp=0)

    def offline(*args, **kwargs):
        raise requests.exceptions.ConnectionError("offline")

    monkeypatch.setattr(data_loader.requests, 'get', offline)
    with pytest.raises(DataLoadError):
        load_feed(URL, store=store)


def test_parse_feed_skips_bad_records(feed):
    feed['trainings'].extend([
        {'wochentag': 'Montag'},
        {'id': 1, 'training': 'Doppelt'},
        'kein Objekt',
    ])
    trainings, metadata = parse_feed(feed)
    assert [t.id for t in trainings] == [1, 2, 3, 4, 5]
    assert trainings[0].training_type == 'Parkour'
    assert metadata.age_groups == ['Erwachsene', 'Kids', 'Teens']
