# api/stories.py
"""
JSON API for stories and site statistics

Responses use camelCase property names.
"""

import logging

from flask import Blueprint, abort, current_app, jsonify, request

from api.serialization import camelize
from core.service_registry import get_service

api_bp = Blueprint('api', __name__)
logger = logging.getLogger(__name__)


def _page_args():
    page = request.args.get('page', 1, type=int)
    page_size = request.args.get('pageSize', current_app.config.get('BLOG_PAGE_SIZE', 10), type=int)
    return max(1, min(page_size, 50)), max(1, page)


@api_bp.route('/stories', methods=['GET'])
def get_stories():
    """Paged list of published stories, optionally filtered by ?term= or ?tag="""
    repository = get_service('repository')
    page_size, page = _page_args()

    term = request.args.get('term', '').strip()
    tag = request.args.get('tag', '').strip()
    if term:
        result = repository.get_stories_by_term(term, page_size, page)
    elif tag:
        result = repository.get_stories_by_tag(tag, page_size, page)
    else:
        result = repository.get_stories(page_size, page)

    return jsonify(camelize({
        'current_page': result.current_page,
        'total_pages': result.total_pages,
        'total_results': result.total_results,
        'stories': [s.to_dict(include_body=False) for s in result.stories],
    }))


@api_bp.route('/stories/<int:story_id>', methods=['GET'])
def get_story(story_id):
    story = get_service('repository').get_story_by_id(story_id)
    if story is None or not story.is_published:
        abort(404)
    return jsonify(camelize(story.to_dict()))


@api_bp.route('/categories', methods=['GET'])
def get_categories():
    return jsonify(get_service('repository').get_categories(published_only=True))


@api_bp.route('/activeusers', methods=['GET'])
def active_users():
    return jsonify(camelize({'active_users': get_service('active_users').count()}))
