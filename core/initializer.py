# core/initializer.py
"""
Startup seeding of the persistent store
"""

import json
import logging
import os
from typing import Any, Dict, List

from flask import current_app

from core.database_models import BlogStory, WilderUser, db, find_user
from core.repositories import normalize_categories

logger = logging.getLogger(__name__)


class WilderInitializer:
    """Creates the schema, the admin account and the initial stories"""

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config if config is not None else current_app.config

    def seed(self) -> Dict[str, int]:
        """Seed the database; safe to run on every startup"""
        db.create_all()

        users_created = 1 if self._seed_admin() else 0
        stories_created = self._seed_stories()

        db.session.commit()
        logger.info(f"Seeding finished: {users_created} user(s), {stories_created} story(ies) created")
        return {'users': users_created, 'stories': stories_created}

    def _seed_admin(self) -> bool:
        username = self.config.get('ADMIN_USERNAME')
        password = self.config.get('ADMIN_PASSWORD')
        if not username or not password:
            logger.warning("ADMIN_USERNAME/ADMIN_PASSWORD not configured, skipping admin seeding")
            return False
        if find_user(username) is not None:
            return False

        user = WilderUser(
            username=username,
            email=self.config.get('ADMIN_EMAIL') or '',
            name=self.config.get('ADMIN_NAME'),
        )
        user.set_password(password)
        db.session.add(user)
        logger.info(f"Created administrator account '{username}'")
        return True

    def _seed_stories(self) -> int:
        if db.session.execute(db.select(db.func.count(BlogStory.id))).scalar():
            return 0

        entries = self._load_seed_file()
        for entry in entries:
            entry = dict(entry)
            entry.pop('id', None)
            story = BlogStory.from_dict(entry)
            story.categories = normalize_categories(story.categories)
            db.session.add(story)
        return len(entries)

    def _load_seed_file(self) -> List[Dict[str, Any]]:
        filename = self.config.get('SEED_STORIES_FILE')
        if not filename:
            return []
        path = os.path.join(self.config['DATA_DIR'], filename)
        if not os.path.exists(path):
            logger.info(f"No seed stories at {path}")
            return []
        with open(path, encoding='utf-8') as f:
            return json.load(f)
