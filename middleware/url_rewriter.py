# middleware/url_rewriter.py
"""
Permanent redirects for URLs from earlier versions of the blog
"""

import logging
from typing import Optional

from werkzeug.utils import redirect

logger = logging.getLogger(__name__)

FEED_ALIASES = {'/feed', '/rss', '/atom', '/feed/rss', '/rss.aspx', '/syndication.axd'}


class UrlRewriteMiddleware:

    def __init__(self, wsgi_app, feed_url: Optional[str] = None):
        self.wsgi_app = wsgi_app
        self.feed_url = feed_url or '/feed.rss'

    def rewrite(self, path: str) -> Optional[str]:
        """Return the new location for a legacy ``path`` or None to leave it alone"""
        lowered = path.lower()

        if lowered in FEED_ALIASES:
            return self.feed_url
        if lowered in ('/default.aspx', '/index.aspx', '/home.aspx'):
            return '/'

        new_path = path
        if lowered.endswith('.aspx'):
            new_path = new_path[:-len('.aspx')]
        if new_path.lower().startswith('/blog/') and new_path != new_path.lower():
            new_path = new_path.lower()
        if len(new_path) > 1 and new_path.endswith('/'):
            new_path = new_path.rstrip('/') or '/'

        return new_path if new_path != path else None

    def __call__(self, environ, start_response):
        path = environ.get('PATH_INFO') or '/'
        location = self.rewrite(path)
        if location is None:
            return self.wsgi_app(environ, start_response)

        query = environ.get('QUERY_STRING')
        if query and location.startswith('/'):
            location = f"{location}?{query}"
        logger.debug(f"Rewriting {path} -> {location}")
        return redirect(location, code=301)(environ, start_response)
