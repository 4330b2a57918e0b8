#!/usr/bin/env python3
"""
Training feed loader

Reads the training feed from a local JSON file or an URL. Remote feeds are
cached in the feed slot for an hour and the cached snapshot is used when
the network is unavailable.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import HOUR
from .errors import DataLoadError
from .models import Metadata, Training
from .storage import CACHE_KEY, LocalStore

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10


def _is_url(source: str) -> bool:
    return source.startswith('http://') or source.startswith('https://')


def validate_feed(data: Any) -> Dict[str, Any]:
    """
    Check the feed shape

    Raises:
        DataLoadError: if there is no `trainings` list
    """
    if not isinstance(data, dict) or not isinstance(data.get('trainings'), list):
        raise DataLoadError("Ungültiges Datenformat: 'trainings' fehlt")
    return data


def parse_feed(data: Dict[str, Any]) -> Tuple[List[Training], Metadata]:
    """
    Turn a validated feed into Training objects and metadata

    Records without a usable id, or with an id seen before, are skipped.
    """
    trainings = []
    seen_ids = set()
    skipped = 0
    for record in data.get('trainings', []):
        if not isinstance(record, dict):
            skipped += 1
            continue
        try:
            training = Training.from_dict(record)
        except ValueError as e:
            logger.warning(f"⚠️  Skipping training record: {e}")
            skipped += 1
            continue
        if training.id in seen_ids:
            logger.warning(f"⚠️  Skipping duplicate training id {training.id}")
            skipped += 1
            continue
        seen_ids.add(training.id)
        trainings.append(training)

    if skipped:
        logger.info(f"Loaded {len(trainings)} trainings, skipped {skipped}")
    return trainings, Metadata.from_feed(data.get('metadata'), trainings)


def _load_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return validate_feed(json.load(f))
    except (OSError, ValueError) as e:
        raise DataLoadError(f"Trainingsdaten konnten nicht gelesen werden: {path}: {e}") from e


def _fetch(url: str) -> Dict[str, Any]:
    response = requests.get(url, timeout=REQUEST_TIMEOUT, headers={'Cache-Control': 'no-cache'})
    response.raise_for_status()
    return validate_feed(response.json())


def load_feed(source: str, store: Optional[LocalStore] = None, max_age: float = HOUR) -> Dict[str, Any]:
    """
    Load the raw training feed

    Args:
        source: Path to a JSON file or http(s) URL
        store: Slot store for the cached snapshot (remote feeds only)
        max_age: Cache lifetime in seconds

    Returns:
        Feed dict with at least a `trainings` list

    Raises:
        DataLoadError: if neither the source nor a fresh cache is usable
    """
    if not _is_url(source):
        data = _load_file(Path(source))
        logger.info(f"📂 Loaded {len(data['trainings'])} trainings from {source}")
        return data

    cached = store.get(CACHE_KEY, max_age=max_age) if store is not None else None

    try:
        data = _fetch(url=source)
    except (requests.exceptions.RequestException, ValueError, DataLoadError) as e:
        if cached is not None:
            logger.warning(f"⚠️  Network error, using cached trainings: {e}")
            return validate_feed(cached)
        raise DataLoadError(f"Trainingsdaten konnten nicht geladen werden: {e}") from e

    if store is not None and data != cached:
        store.set(CACHE_KEY, data)
    logger.info(f"🌐 Loaded {len(data['trainings'])} trainings from {source}")
    return data
