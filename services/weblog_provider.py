# services/weblog_provider.py
"""
MetaWeblog provider backed by the blog repository
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from werkzeug.utils import secure_filename

from core.database_models import BlogStory, WilderUser, find_user, make_slug
from core.exceptions import MetaWeblogAuthError, MetaWeblogError
from core.metaweblog import WeblogProvider
from core.repositories import BlogRepository, normalize_categories

logger = logging.getLogger(__name__)


class WilderWeblogProvider(WeblogProvider):

    def __init__(self, repository: BlogRepository, config: Dict[str, Any], base_url: str):
        self.repository = repository
        self.config = config
        self.base_url = base_url.rstrip('/')

    # -- helpers -----------------------------------------------------------

    def _ensure_user(self, username: str, password: str) -> WilderUser:
        user = find_user(username)
        if user is None or not user.check_password(password):
            raise MetaWeblogAuthError('Invalid username or password')
        return user

    def _load_story(self, postid) -> BlogStory:
        try:
            story = self.repository.get_story_by_id(int(postid))
        except (TypeError, ValueError):
            raise MetaWeblogError(f"Invalid post id '{postid}'") from None
        if story is None:
            raise MetaWeblogError(f"Post {postid} not found")
        return story

    def _blog_id(self) -> str:
        return self.config.get('APP_NAME', 'WilderBlog')

    def _to_struct(self, story: BlogStory) -> Dict[str, Any]:
        link = f"{self.base_url}{story.url}"
        return {
            'postid': str(story.id),
            'title': story.title,
            'description': story.body or '',
            'mt_excerpt': story.abstract or '',
            'dateCreated': story.date_published,
            'categories': story.category_list,
            'link': link,
            'permalink': link,
            'wp_slug': story.slug,
            'post_status': 'publish' if story.is_published else 'draft',
        }

    def _apply(self, story: BlogStory, post: Dict[str, Any], publish: bool) -> None:
        if 'title' in post:
            story.title = post['title']
        if 'description' in post:
            story.body = post['description']
        if 'mt_excerpt' in post:
            story.abstract = post['mt_excerpt'] or None
        if 'categories' in post:
            story.categories = normalize_categories(post['categories'] or [])
        if post.get('dateCreated'):
            created = post['dateCreated']
            story.date_published = created if isinstance(created, datetime) else datetime.fromisoformat(str(created))
        if not story.title:
            raise MetaWeblogError('A post needs a title')
        story.is_published = bool(publish)

    def _save(self) -> None:
        if not self.repository.save_all():
            raise MetaWeblogError('Could not save the post')

    # -- Blogger / MetaWeblog ----------------------------------------------

    def get_users_blogs(self, key: str, username: str, password: str) -> List[Dict[str, Any]]:
        self._ensure_user(username, password)
        return [{
            'blogid': self._blog_id(),
            'blogName': self.config.get('BLOG_TITLE', self._blog_id()),
            'url': self.base_url + '/',
            'isAdmin': True,
        }]

    def new_post(self, blogid: str, username: str, password: str, post: Dict[str, Any], publish: bool) -> str:
        self._ensure_user(username, password)
        story = BlogStory(title='', body='', categories='', date_published=datetime.utcnow())
        self._apply(story, post, publish)
        # Editors may send bare words or a whole permalink; only the last segment is kept
        wp_slug = (post.get('wp_slug') or '').strip('/')
        story.slug = make_slug(wp_slug.rsplit('/', 1)[-1], story.date_published) if wp_slug else None
        self.repository.add_story(story)
        self._save()
        logger.info(f"New post '{story.title}' ({'published' if publish else 'draft'}) by {username}")
        return str(story.id)

    def edit_post(self, postid: str, username: str, password: str, post: Dict[str, Any], publish: bool) -> bool:
        self._ensure_user(username, password)
        story = self._load_story(postid)
        self._apply(story, post, publish)
        self._save()
        logger.info(f"Post {postid} updated by {username}")
        return True

    def get_post(self, postid: str, username: str, password: str) -> Dict[str, Any]:
        self._ensure_user(username, password)
        return self._to_struct(self._load_story(postid))

    def get_recent_posts(self, blogid: str, username: str, password: str, number_of_posts: int) -> List[Dict[str, Any]]:
        self._ensure_user(username, password)
        stories = self.repository.get_recent_stories(int(number_of_posts))
        return [self._to_struct(s) for s in stories]

    def get_categories(self, blogid: str, username: str, password: str) -> List[Dict[str, Any]]:
        self._ensure_user(username, password)
        return [{
            'categoryid': name,
            'title': name,
            'description': name,
            'htmlUrl': f"{self.base_url}/tag/{name}",
            'rssUrl': f"{self.base_url}/feed.rss",
        } for name in self.repository.get_categories()]

    def get_wp_categories(self, blogid: str, username: str, password: str) -> List[Dict[str, Any]]:
        self._ensure_user(username, password)
        return [{
            'categoryId': name,
            'parentId': '0',
            'categoryName': name,
            'categoryDescription': name,
            'htmlUrl': f"{self.base_url}/tag/{name}",
            'rssUrl': f"{self.base_url}/feed.rss",
        } for name in self.repository.get_categories()]

    def new_media_object(self, blogid: str, username: str, password: str, media: Dict[str, Any]) -> Dict[str, Any]:
        self._ensure_user(username, password)

        name = (media.get('name') or '').replace('\\', '/')
        bits = media.get('bits')
        if not name or bits is None:
            raise MetaWeblogError('Media objects need a name and bits')

        # Editors send names like "Open-Live-Writer/post-title/image.png"
        parts = [secure_filename(p) for p in name.split('/') if secure_filename(p)]
        if not parts:
            raise MetaWeblogError(f"Invalid media name '{name}'")
        ext = os.path.splitext(parts[-1])[1].lower()
        allowed = self.config.get('UPLOAD_EXTENSIONS')
        if allowed and ext not in allowed:
            raise MetaWeblogError(f"File type '{ext}' is not allowed")

        target = os.path.join(self.config['UPLOAD_DIR'], *parts)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, 'wb') as f:
            f.write(bits if isinstance(bits, bytes) else bytes(bits))

        url = f"{self.base_url}{self.config.get('UPLOAD_URL_PATH', '/img/uploads')}/{'/'.join(parts)}"
        logger.info(f"Stored media object {target}")
        return {'url': url}

    def delete_post(self, key: str, postid: str, username: str, password: str, publish: bool) -> bool:
        self._ensure_user(username, password)
        story = self._load_story(postid)
        deleted = self.repository.delete_story(story.id)
        if deleted:
            self._save()
            logger.info(f"Post {postid} deleted by {username}")
        return deleted


def build_weblog_provider(repository: BlogRepository, config: Dict[str, Any],
                          base_url: Optional[str] = None) -> WilderWeblogProvider:
    return WilderWeblogProvider(repository, config, base_url or config.get('BLOG_URL', ''))
