#!/usr/bin/env python3
"""
Shared fixtures: a small training feed around München
"""

import copy

import pytest

from trainingsplan.lib.data_loader import parse_feed
from trainingsplan.lib.location_utils import LocationUtils
from trainingsplan.lib.models import SOURCE_MANUAL, UserPosition
from trainingsplan.lib.storage import LocalStore

# Marienplatz; trainings 1 and 3 sit exactly here
HOME = (48.137, 11.575)

FEED = {
    'trainings': [
        {
            'id': 1, 'wochentag': 'Montag', 'von': '18:00', 'bis': '19:30',
            'training': 'Parkour', 'ort': 'LTR', 'adresse': 'Marienplatz 1, München',
            'altersgruppe': 'Kids, Teens', 'trainer': 'Anna', 'probetraining': 'ja',
            'lat': 48.137, 'lng': 11.575, 'vonalter': 8,
        },
        {
            'id': 2, 'wochentag': 'Montag', 'von': '17:00', 'bis': '18:00',
            'training': 'Trampolin', 'ort': 'Nord', 'adresse': 'Nordstraße 5',
            'altersgruppe': 'Erwachsene', 'trainer': 'Bernd', 'probetraining': 'nein',
            'lat': 48.2, 'lng': 11.6, 'vonalter': 18,
        },
        {
            'id': 3, 'wochentag': 'Mittwoch', 'von': '16:00', 'bis': '17:00',
            'training': 'Parkour', 'ort': 'LTR', 'adresse': 'Marienplatz 1, München',
            'altersgruppe': 'Kids', 'trainer': 'Clara', 'probetraining': 'nein',
            'lat': 48.137, 'lng': 11.575, 'vonalter': 6,
        },
        {
            'id': 4, 'wochentag': 'Samstag', 'von': '10:00', 'bis': '12:00',
            'training': 'Tricking', 'ort': 'Süd', 'adresse': 'Südweg 2',
            'altersgruppe': 'Teens, Erwachsene', 'trainer': 'Dana', 'probetraining': True,
            'lat': 48.1, 'lng': 11.55, 'vonalter': 12,
        },
        {
            'id': 5, 'wochentag': 'Sonntag', 'von': '11:00', 'bis': '12:00',
            'training': 'Freerunning', 'ort': 'Ohne Ort', 'adresse': '',
            'altersgruppe': 'Erwachsene', 'trainer': 'Emil', 'probetraining': 'nein',
            'lat': None, 'lng': None,
        },
    ],
    'metadata': {
        'wochentage': ['Montag', 'Dienstag', 'Mittwoch', 'Donnerstag', 'Freitag', 'Samstag', 'Sonntag'],
        'orte': ['LTR', 'Nord', 'Süd', 'Ohne Ort'],
        'trainingsarten': ['Freerunning', 'Parkour', 'Trampolin', 'Tricking'],
        'altersgruppen': ['Erwachsene', 'Kids', 'Teens'],
    },
}


@pytest.fixture
def feed():
    return copy.deepcopy(FEED)


@pytest.fixture
def trainings(feed):
    return parse_feed(feed)[0]


@pytest.fixture
def store():
    return LocalStore({})


@pytest.fixture
def home():
    return UserPosition(HOME[0], HOME[1], source=SOURCE_MANUAL)


def annotate(trainings, position):
    """Set distance fields the way the geolocation service does."""
    for training in trainings:
        if training.has_coordinates:
            training.distance = LocationUtils.haversine_distance(
                position.lat, position.lng, training.lat, training.lng
            )
            training.distance_text = LocationUtils.format_distance(training.distance)
        else:
            training.distance = None
            training.distance_text = None
    return trainings


def ids(trainings):
    return [t.id for t in trainings]
