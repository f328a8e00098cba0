# core/repositories.py
"""
Blog story repositories

``WilderRepository`` reads and writes stories through SQLAlchemy.
``MemoryRepository`` serves a generated set of sample stories from
process memory and is used when the app runs in test-data mode.
"""

import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import desc, func, or_
from sqlalchemy.exc import SQLAlchemyError

from core.database_models import BlogStory, db

logger = logging.getLogger(__name__)


@dataclass
class BlogResult:
    """One page of stories"""
    stories: List[BlogStory] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_results: int = 0

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages


def normalize_categories(categories) -> str:
    if isinstance(categories, str):
        categories = categories.split(',')
    return ','.join(c.strip() for c in categories or [] if c and c.strip())


def _like_contains(text: str) -> str:
    """LIKE pattern matching ``text`` literally anywhere, for use with escape='\\'"""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def _page_bounds(page_size: int, page: int):
    page_size = max(1, int(page_size))
    page = max(1, int(page))
    return page_size, page


class BlogRepository(ABC):
    """Operations every story store supports"""

    @abstractmethod
    def get_stories(self, page_size: int = 10, page: int = 1) -> BlogResult:
        ...

    @abstractmethod
    def get_stories_by_term(self, term: str, page_size: int = 10, page: int = 1) -> BlogResult:
        ...

    @abstractmethod
    def get_stories_by_tag(self, tag: str, page_size: int = 10, page: int = 1) -> BlogResult:
        ...

    @abstractmethod
    def get_story(self, slug: str) -> Optional[BlogStory]:
        ...

    @abstractmethod
    def get_story_by_id(self, story_id: int) -> Optional[BlogStory]:
        ...

    @abstractmethod
    def get_recent_stories(self, count: int = 10) -> List[BlogStory]:
        """Newest stories including drafts, for blog editors"""
        ...

    @abstractmethod
    def get_categories(self, published_only: bool = False) -> List[str]:
        """Distinct categories; drafts count unless ``published_only``"""
        ...

    @abstractmethod
    def slug_exists(self, slug: str, exclude: Optional[BlogStory] = None) -> bool:
        ...

    def unique_slug(self, story: BlogStory) -> str:
        """The story's slug, with a -2, -3... suffix when another story holds it"""
        base = story.ensure_slug()
        candidate, n = base, 2
        while self.slug_exists(candidate, exclude=story):
            candidate = f"{base}-{n}"
            n += 1
        return candidate

    @abstractmethod
    def add_story(self, story: BlogStory) -> None:
        ...

    @abstractmethod
    def delete_story(self, story_id: int) -> bool:
        ...

    @abstractmethod
    def save_all(self) -> bool:
        ...


class WilderRepository(BlogRepository):
    """Database-backed repository"""

    def __init__(self, session=None):
        self.session = session or db.session

    def _published(self):
        return db.select(BlogStory).filter(BlogStory.is_published.is_(True))

    def _page(self, query, page_size: int, page: int) -> BlogResult:
        page_size, page = _page_bounds(page_size, page)
        query = query.order_by(desc(BlogStory.date_published))
        pagination = db.paginate(query, page=page, per_page=page_size,
                                 error_out=False, count=True)
        return BlogResult(
            stories=list(pagination.items),
            current_page=page,
            total_pages=pagination.pages,
            total_results=pagination.total or 0,
        )

    def get_stories(self, page_size: int = 10, page: int = 1) -> BlogResult:
        return self._page(self._published(), page_size, page)

    def get_stories_by_term(self, term: str, page_size: int = 10, page: int = 1) -> BlogResult:
        pattern = _like_contains((term or '').strip().lower())
        query = self._published().filter(or_(
            func.lower(BlogStory.title).like(pattern, escape='\\'),
            func.lower(BlogStory.body).like(pattern, escape='\\'),
            func.lower(BlogStory.categories).like(pattern, escape='\\'),
        ))
        return self._page(query, page_size, page)

    def get_stories_by_tag(self, tag: str, page_size: int = 10, page: int = 1) -> BlogResult:
        # Categories are stored normalized as "a,b,c"
        wrapped = func.lower(',' + BlogStory.categories + ',')
        pattern = _like_contains(f",{(tag or '').strip().lower()},")
        query = self._published().filter(wrapped.like(pattern, escape='\\'))
        return self._page(query, page_size, page)

    def get_story(self, slug: str) -> Optional[BlogStory]:
        return self.session.execute(
            db.select(BlogStory).filter_by(slug=slug.strip('/'))
        ).scalar_one_or_none()

    def get_story_by_id(self, story_id: int) -> Optional[BlogStory]:
        return self.session.get(BlogStory, int(story_id))

    def get_recent_stories(self, count: int = 10) -> List[BlogStory]:
        query = db.select(BlogStory).order_by(desc(BlogStory.date_published)).limit(max(1, int(count)))
        return list(self.session.execute(query).scalars())

    def get_categories(self, published_only: bool = False) -> List[str]:
        query = db.select(BlogStory.categories)
        if published_only:
            query = query.filter(BlogStory.is_published.is_(True))
        return _distinct_categories(self.session.execute(query).scalars())

    def slug_exists(self, slug: str, exclude: Optional[BlogStory] = None) -> bool:
        query = db.select(BlogStory.id).filter_by(slug=slug)
        if exclude is not None and exclude.id is not None:
            query = query.filter(BlogStory.id != exclude.id)
        return self.session.execute(query.limit(1)).first() is not None

    def add_story(self, story: BlogStory) -> None:
        story.categories = normalize_categories(story.categories)
        story.slug = self.unique_slug(story)
        self.session.add(story)

    def delete_story(self, story_id: int) -> bool:
        story = self.get_story_by_id(story_id)
        if story is None:
            return False
        self.session.delete(story)
        return True

    def save_all(self) -> bool:
        try:
            self.session.commit()
            return True
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Failed to save stories: {e}", exc_info=True)
            return False


def _distinct_categories(values: Iterable[Optional[str]]) -> List[str]:
    seen = {}
    for value in values:
        for category in (value or '').split(','):
            category = category.strip()
            if category and category.lower() not in seen:
                seen[category.lower()] = category
    return sorted(seen.values(), key=str.lower)


class MemoryStore:
    """Process-wide list of sample stories shared by memory repositories"""

    def __init__(self, stories: Optional[List[BlogStory]] = None):
        self.lock = threading.RLock()
        self.stories: List[BlogStory] = stories if stories is not None else sample_stories()
        self.next_id = max((s.id or 0 for s in self.stories), default=0) + 1


class MemoryRepository(BlogRepository):
    """In-memory repository over a ``MemoryStore``"""

    def __init__(self, store: Optional[MemoryStore] = None):
        self.store = store or MemoryStore()

    def _page(self, stories: List[BlogStory], page_size: int, page: int) -> BlogResult:
        page_size, page = _page_bounds(page_size, page)
        ordered = sorted(stories, key=lambda s: s.date_published, reverse=True)
        start = (page - 1) * page_size
        return BlogResult(
            stories=ordered[start:start + page_size],
            current_page=page,
            total_pages=math.ceil(len(ordered) / page_size),
            total_results=len(ordered),
        )

    def _published(self) -> List[BlogStory]:
        with self.store.lock:
            return [s for s in self.store.stories if s.is_published]

    def get_stories(self, page_size: int = 10, page: int = 1) -> BlogResult:
        return self._page(self._published(), page_size, page)

    def get_stories_by_term(self, term: str, page_size: int = 10, page: int = 1) -> BlogResult:
        term = (term or '').strip().lower()
        matches = [s for s in self._published()
                   if term in s.title.lower()
                   or term in (s.body or '').lower()
                   or term in (s.categories or '').lower()]
        return self._page(matches, page_size, page)

    def get_stories_by_tag(self, tag: str, page_size: int = 10, page: int = 1) -> BlogResult:
        tag = (tag or '').strip().lower()
        matches = [s for s in self._published()
                   if tag in (c.lower() for c in s.category_list)]
        return self._page(matches, page_size, page)

    def get_story(self, slug: str) -> Optional[BlogStory]:
        slug = slug.strip('/')
        with self.store.lock:
            return next((s for s in self.store.stories if s.slug == slug), None)

    def get_story_by_id(self, story_id: int) -> Optional[BlogStory]:
        story_id = int(story_id)
        with self.store.lock:
            return next((s for s in self.store.stories if s.id == story_id), None)

    def get_recent_stories(self, count: int = 10) -> List[BlogStory]:
        with self.store.lock:
            ordered = sorted(self.store.stories, key=lambda s: s.date_published, reverse=True)
        return ordered[:max(1, int(count))]

    def get_categories(self, published_only: bool = False) -> List[str]:
        with self.store.lock:
            return _distinct_categories(s.categories for s in self.store.stories
                                        if s.is_published or not published_only)

    def slug_exists(self, slug: str, exclude: Optional[BlogStory] = None) -> bool:
        with self.store.lock:
            return any(s.slug == slug and s is not exclude for s in self.store.stories)

    def add_story(self, story: BlogStory) -> None:
        story.categories = normalize_categories(story.categories)
        with self.store.lock:
            story.slug = self.unique_slug(story)
            if story.id is None:
                story.id = self.store.next_id
                self.store.next_id += 1
            if story not in self.store.stories:
                self.store.stories.append(story)

    def delete_story(self, story_id: int) -> bool:
        story = self.get_story_by_id(story_id)
        if story is None:
            return False
        with self.store.lock:
            self.store.stories.remove(story)
        return True

    def save_all(self) -> bool:
        return True


_SAMPLE_TOPICS = [
    ('ASP.NET', 'Building web apps'),
    ('Python', 'Flask in practice'),
    ('JavaScript', 'Front-end tooling'),
    ('Docker', 'Containers for developers'),
    ('Azure', 'Cloud hosting notes'),
]


def sample_stories(count: int = 25, start: Optional[datetime] = None) -> List[BlogStory]:
    """Generate deterministic sample stories, newest first"""
    start = start or datetime(2017, 1, 1, 9, 0)
    stories = []
    for i in range(count):
        category, topic = _SAMPLE_TOPICS[i % len(_SAMPLE_TOPICS)]
        published = start - timedelta(days=i * 3)
        title = f"{topic} Part {i + 1}"
        story = BlogStory(
            id=i + 1,
            title=title,
            body=f"<p>Sample post {i + 1} about <strong>{topic.lower()}</strong>.</p>",
            categories=normalize_categories([category, 'Sample']),
            date_published=published,
            is_published=True,
            unique_id=f"sample-{i + 1}",
        )
        story.ensure_slug()
        stories.append(story)
    return stories
