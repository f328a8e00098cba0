# services/data_providers.py
"""
Read-only providers for content that does not live in the database

Each provider reads a JSON list from the data directory and keeps it in
the application cache.
"""

import json
import logging
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from core.exceptions import DataProviderError

logger = logging.getLogger(__name__)


class DataProvider:
    """Base provider for a JSON data file"""

    filename: str = ''

    def __init__(self, data_dir: str, cache=None, cache_timeout: Optional[int] = None):
        self.data_dir = data_dir
        self.cache = cache
        self.cache_timeout = cache_timeout

    @property
    def path(self) -> str:
        return os.path.join(self.data_dir, self.filename)

    @property
    def cache_key(self) -> str:
        return f"data:{self.filename}"

    def _load(self) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            logger.warning(f"Data file {self.path} not found")
            return []
        try:
            with open(self.path, encoding='utf-8') as f:
                items = json.load(f)
        except (OSError, ValueError) as e:
            raise DataProviderError(f"Could not read {self.path}: {e}") from e
        if not isinstance(items, list):
            raise DataProviderError(f"{self.path} must contain a JSON list")
        return items

    def get_all(self) -> List[Dict[str, Any]]:
        if self.cache is not None:
            items = self.cache.get(self.cache_key)
            if items is not None:
                return items
        items = self._load()
        if self.cache is not None:
            self.cache.set(self.cache_key, items, self.cache_timeout)
        return items

    def get(self) -> List[Dict[str, Any]]:
        return self.get_all()


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        logger.warning(f"Ignoring unparseable date '{value}'")
        return None


def _newest_first(items: List[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    return sorted(items, key=lambda item: _parse_date(item.get(key)) or date.min, reverse=True)


class CalendarProvider(DataProvider):
    """Upcoming speaking engagements and workshops"""

    filename = 'calendar.json'

    def get(self, today: Optional[date] = None) -> List[Dict[str, Any]]:
        today = today or date.today()
        upcoming = []
        for event in self.get_all():
            event_date = _parse_date(event.get('eventDate'))
            if event_date is not None and event_date >= today:
                upcoming.append(event)
        return sorted(upcoming, key=lambda e: _parse_date(e['eventDate']))


class CoursesProvider(DataProvider):
    filename = 'courses.json'


class PublicationsProvider(DataProvider):
    filename = 'publications.json'

    def get(self) -> List[Dict[str, Any]]:
        return _newest_first(self.get_all(), 'datePublished')


class PodcastEpisodesProvider(DataProvider):
    filename = 'podcast.json'

    def get(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        episodes = _newest_first(self.get_all(), 'publishedDate')
        return episodes[:limit] if limit else episodes


class VideosProvider(DataProvider):
    filename = 'videos.json'
