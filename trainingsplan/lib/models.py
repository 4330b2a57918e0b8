"""Data model for trainings, positions and map view state."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .location_utils import LocationUtils

WEEKDAYS = ('Montag', 'Dienstag', 'Mittwoch', 'Donnerstag', 'Freitag', 'Samstag', 'Sonntag')
WEEKEND = frozenset({'Samstag', 'Sonntag'})
WEEKDAY_ORDER = {day: index for index, day in enumerate(WEEKDAYS, start=1)}

SOURCE_DEVICE = 'device'
SOURCE_MANUAL = 'manual'


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _coordinate(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool) or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _trial_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('ja', 'yes', 'true', '1')
    return False


def time_to_minutes(value: Optional[str]) -> int:
    """'18:30' -> 1110. Unparseable values sort first."""
    if not value or not isinstance(value, str):
        return 0
    try:
        hours, minutes = value.split(':')[:2]
        return int(hours) * 60 + int(minutes)
    except ValueError:
        return 0


@dataclass
class Training:
    """
    One recurring training session

    Everything except `distance` and `distance_text` is fixed once loaded;
    those two are recomputed whenever the user position changes.
    """

    id: int
    weekday: str = ''
    start: str = ''
    end: str = ''
    training_type: str = ''
    location: str = ''
    address: str = ''
    age_group: str = ''
    trainer: str = ''
    trial: bool = False
    lat: Optional[float] = None
    lng: Optional[float] = None
    note: Optional[str] = None
    link: Optional[str] = None
    age_from: Optional[int] = None
    distance: Optional[float] = field(default=None, compare=False)
    distance_text: Optional[str] = field(default=None, compare=False)

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def age_groups(self) -> List[str]:
        """The comma-joined age group field as a list of trimmed labels"""
        return [group.strip() for group in str(self.age_group or '').split(',') if group.strip()]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Training':
        """
        Build a Training from a feed record

        Args:
            data: Record using the feed's German keys (wochentag, von, bis, ort, ...)

        Returns:
            Training instance

        Raises:
            ValueError: if the record has no usable integer id
        """
        try:
            training_id = int(data['id'])
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Training record without valid id: {data!r}")

        lat = _coordinate(data.get('lat'))
        lng = _coordinate(data.get('lng'))
        if lat is None or lng is None or not LocationUtils.is_valid_coordinates(lat, lng):
            lat = lng = None

        age_from = data.get('vonalter', data.get('alterVon'))
        try:
            age_from = int(age_from) if age_from not in (None, '') else None
        except (TypeError, ValueError):
            age_from = None

        return cls(
            id=training_id,
            weekday=str(data.get('wochentag') or '').strip(),
            start=str(data.get('von') or '').strip(),
            end=str(data.get('bis') or '').strip(),
            training_type=str(data.get('training') or '').strip(),
            location=str(data.get('ort') or '').strip(),
            address=str(data.get('adresse') or '').strip(),
            age_group=str(data.get('altersgruppe') or '').strip(),
            trainer=str(data.get('trainer') or '').strip(),
            trial=_trial_flag(data.get('probetraining')),
            lat=lat,
            lng=lng,
            note=_optional_str(data.get('anmerkung')),
            link=_optional_str(data.get('link')),
            age_from=age_from,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize back to the feed's key names, plus derived distance fields."""
        data = {
            'id': self.id,
            'wochentag': self.weekday,
            'von': self.start,
            'bis': self.end,
            'training': self.training_type,
            'ort': self.location,
            'adresse': self.address,
            'altersgruppe': self.age_group,
            'trainer': self.trainer,
            'probetraining': 'ja' if self.trial else 'nein',
            'lat': self.lat,
            'lng': self.lng,
            'anmerkung': self.note,
            'link': self.link,
        }
        if self.age_from is not None:
            data['vonalter'] = self.age_from
        if self.distance is not None:
            data['distance'] = self.distance
            data['distanceText'] = self.distance_text
        return data

    def time_range(self) -> str:
        if not self.start or not self.end:
            return ''
        return f"{self.start} - {self.end} Uhr"


@dataclass(frozen=True)
class UserPosition:
    """Current user position, replaced wholesale on every acquisition."""

    lat: float
    lng: float
    source: str = SOURCE_DEVICE
    label: str = ''

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    def to_dict(self) -> Dict[str, Any]:
        return {'lat': self.lat, 'lng': self.lng, 'source': self.source, 'label': self.label}


@dataclass
class MapViewState:
    """Persisted map centre/zoom plus the auto-fit kill switch."""

    center: Tuple[float, float]
    zoom: int
    timestamp: float = field(default_factory=time.time)
    user_interacted: bool = False

    def is_fresh(self, max_age: float, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return 0 <= now - self.timestamp <= max_age

    def to_dict(self) -> Dict[str, Any]:
        return {
            'center': [self.center[0], self.center[1]],
            'zoom': self.zoom,
            'timestamp': self.timestamp,
            'userInteracted': self.user_interacted,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Optional['MapViewState']:
        """Parse a persisted view. Anything malformed or out of range yields None."""
        if not isinstance(data, dict):
            return None
        try:
            lat, lng = data['center']
            zoom = int(data['zoom'])
            timestamp = float(data['timestamp'])
        except (KeyError, TypeError, ValueError):
            return None
        if not LocationUtils.is_valid_coordinates(lat, lng):
            return None
        if not 0 <= zoom <= 22:
            return None
        return cls(center=(float(lat), float(lng)), zoom=zoom, timestamp=timestamp,
                   user_interacted=data.get('userInteracted') is True)


@dataclass
class Metadata:
    """Distinct values used to populate the filter pickers."""

    weekdays: List[str] = field(default_factory=lambda: list(WEEKDAYS))
    locations: List[str] = field(default_factory=list)
    training_types: List[str] = field(default_factory=list)
    age_groups: List[str] = field(default_factory=list)

    @classmethod
    def from_feed(cls, metadata: Any, trainings: Iterable[Training]) -> 'Metadata':
        """Use the feed's metadata object where present, otherwise scan the trainings."""
        trainings = list(trainings)
        metadata = metadata if isinstance(metadata, dict) else {}

        def _list(key):
            value = metadata.get(key)
            if isinstance(value, list) and all(isinstance(v, str) for v in value):
                return list(value)
            return None

        age_groups = _list('altersgruppen')
        if age_groups is None:
            age_groups = sorted({group for t in trainings for group in t.age_groups})

        return cls(
            weekdays=_list('wochentage') or list(WEEKDAYS),
            locations=_list('orte') or _unique(t.location for t in trainings),
            training_types=_list('trainingsarten') or _unique(t.training_type for t in trainings),
            age_groups=age_groups,
        )

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            'wochentage': self.weekdays,
            'orte': self.locations,
            'trainingsarten': self.training_types,
            'altersgruppen': self.age_groups,
        }


def _unique(values: Iterable[str]) -> List[str]:
    return sorted({v for v in values if v})
