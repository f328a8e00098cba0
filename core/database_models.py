import re
import uuid
from datetime import datetime
from typing import List, Optional

import bleach
from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from werkzeug.security import check_password_hash, generate_password_hash

db = SQLAlchemy()

SUMMARY_LENGTH = 256

_slug_invalid = re.compile(r'[^a-z0-9\-]')
_slug_dashes = re.compile(r'-{2,}')


def make_slug(title: str, date_published: datetime) -> str:
    """Build the ``yyyy/mm/dd/title-words`` slug used in story URLs

    Titles with nothing left after stripping (e.g. "日本語" or "!!!") get
    the word part ``story``; repositories make the full slug unique.
    """
    words = (title or '').strip().lower().replace(' ', '-')
    words = _slug_dashes.sub('-', _slug_invalid.sub('', words)).strip('-')
    return f"{date_published:%Y/%m/%d}/{words or 'story'}"


class WilderUser(UserMixin, db.Model):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False)
    name = Column(String(255))
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return bool(password) and check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<WilderUser {self.username}>"


class BlogStory(db.Model):
    __tablename__ = 'stories'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(512), unique=True, nullable=False, index=True)
    body = Column(Text, nullable=False, default='')
    abstract = Column(Text)
    categories = Column(String(512), default='')  # Comma separated
    date_published = Column(DateTime, default=datetime.utcnow, index=True)
    is_published = Column(Boolean, default=False)
    unique_id = Column(String(64), default=lambda: str(uuid.uuid4()))
    feature_image_url = Column(String(512))

    @property
    def category_list(self) -> List[str]:
        return [c.strip() for c in (self.categories or '').split(',') if c.strip()]

    @property
    def url(self) -> str:
        return f"/{self.slug}"

    def get_summary(self) -> str:
        """Plain-text teaser: the abstract if present, otherwise the start of the body"""
        source = self.abstract or self.body or ''
        text = ' '.join(bleach.clean(source, tags=[], strip=True).split())
        if len(text) <= SUMMARY_LENGTH:
            return text
        cut = text.rfind(' ', 0, SUMMARY_LENGTH)
        return text[:cut if cut > 0 else SUMMARY_LENGTH] + '...'

    def ensure_slug(self) -> str:
        if not self.slug:
            self.slug = make_slug(self.title, self.date_published or datetime.utcnow())
        return self.slug

    def to_dict(self, include_body: bool = True) -> dict:
        data = {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'url': self.url,
            'summary': self.get_summary(),
            'categories': self.category_list,
            'date_published': self.date_published.isoformat() if self.date_published else None,
            'is_published': self.is_published,
            'unique_id': self.unique_id,
            'feature_image_url': self.feature_image_url,
        }
        if include_body:
            data['body'] = self.body
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'BlogStory':
        published = data.get('date_published') or data.get('datePublished')
        if isinstance(published, str):
            published = datetime.fromisoformat(published)
        categories = data.get('categories', '')
        if isinstance(categories, (list, tuple)):
            categories = ','.join(categories)
        story = cls(
            id=data.get('id'),
            title=data['title'],
            body=data.get('body', ''),
            abstract=data.get('abstract'),
            categories=categories,
            date_published=published or datetime.utcnow(),
            is_published=data.get('is_published', data.get('isPublished', True)),
            unique_id=data.get('unique_id') or str(uuid.uuid4()),
            feature_image_url=data.get('feature_image_url'),
            slug=data.get('slug'),
        )
        story.ensure_slug()
        return story

    def __repr__(self):
        return f"<BlogStory {self.slug}>"


def find_user(username: Optional[str]) -> Optional[WilderUser]:
    if not username:
        return None
    return db.session.execute(
        db.select(WilderUser).filter_by(username=username)
    ).scalar_one_or_none()
