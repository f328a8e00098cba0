# middleware/active_users.py
"""
Tracks how many visitors are currently on the site

Each browser gets an ``ActiveUser`` cookie holding a random id. Every
request refreshes that id's last-seen time; ids not seen within the
timeout no longer count as active.
"""

import logging
import threading
import time
import uuid
from typing import Callable, Dict, Optional

from werkzeug.http import dump_cookie
from werkzeug.wrappers import Request

logger = logging.getLogger(__name__)


class ActiveUsersTracker:

    def __init__(self, timeout: int = 300, clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self.clock = clock
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        # Caller holds the lock
        cutoff = now - self.timeout
        stale = [uid for uid, seen in self._last_seen.items() if seen < cutoff]
        for uid in stale:
            del self._last_seen[uid]

    def touch(self, user_id: str) -> None:
        now = self.clock()
        with self._lock:
            self._last_seen[user_id] = now
            self._prune(now)

    def count(self) -> int:
        with self._lock:
            self._prune(self.clock())
            return len(self._last_seen)


class ActiveUsersMiddleware:
    """WSGI middleware recording the visitor of every request"""

    def __init__(self, wsgi_app, tracker: ActiveUsersTracker, cookie_name: str = 'ActiveUser',
                 secure: bool = False):
        self.wsgi_app = wsgi_app
        self.tracker = tracker
        self.cookie_name = cookie_name
        self.secure = secure

    def __call__(self, environ, start_response):
        request = Request(environ)
        user_id: Optional[str] = request.cookies.get(self.cookie_name)
        new_cookie = None
        if not user_id:
            user_id = uuid.uuid4().hex
            new_cookie = dump_cookie(self.cookie_name, user_id, max_age=60 * 60 * 24 * 365,
                                     path='/', httponly=True, secure=self.secure, samesite='Lax')
        self.tracker.touch(user_id)

        if new_cookie is None:
            return self.wsgi_app(environ, start_response)

        def start_with_cookie(status, headers, exc_info=None):
            headers = list(headers) + [('Set-Cookie', new_cookie)]
            return start_response(status, headers, exc_info)

        return self.wsgi_app(environ, start_with_cookie)
