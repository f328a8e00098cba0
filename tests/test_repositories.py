from datetime import datetime

import pytest

from core.database_models import BlogStory, make_slug
from core.repositories import MemoryRepository, MemoryStore, WilderRepository, sample_stories
from core.service_registry import get_registry


def _story(title, day, categories='General', published=True, body='<p>Body</p>'):
    return BlogStory(title=title, body=body, categories=categories,
                     date_published=datetime(2020, 1, day, 8, 0), is_published=published)


@pytest.fixture(params=['memory', 'database'])
def repository(request, make_app):
    """An empty repository of each kind, inside an app context"""
    if request.param == 'memory':
        app = make_app('testing', WILDERDB_TESTDATA='True')
        with app.app_context():
            yield MemoryRepository(MemoryStore(stories=[]))
    else:
        app = make_app('testing', WILDERDB_TESTDATA='False', SEED_STORIES_FILE=None)
        with app.app_context():
            yield get_registry(app).resolve('repository')


@pytest.fixture
def filled(repository):
    repository.add_story(_story('Flask Tips', 1, 'Python, Flask'))
    repository.add_story(_story('Docker Basics', 2, 'Docker'))
    repository.add_story(_story('Python Packaging', 3, 'python'))
    repository.add_story(_story('Secret Draft', 4, 'Python', published=False))
    assert repository.save_all()
    return repository


def test_stories_are_published_only_newest_first(filled):
    result = filled.get_stories(page_size=10, page=1)
    assert [s.title for s in result.stories] == ['Python Packaging', 'Docker Basics', 'Flask Tips']
    assert result.total_results == 3
    assert result.total_pages == 1


def test_paging(filled):
    result = filled.get_stories(page_size=2, page=2)
    assert [s.title for s in result.stories] == ['Flask Tips']
    assert result.current_page == 2
    assert result.total_pages == 2
    assert result.has_previous and not result.has_next


def test_page_past_the_end_is_empty(filled):
    result = filled.get_stories(page_size=2, page=5)
    assert result.stories == []
    assert result.total_results == 3


def test_search_by_term_is_case_insensitive(filled):
    result = filled.get_stories_by_term('PYTHON', 10, 1)
    assert {s.title for s in result.stories} == {'Flask Tips', 'Python Packaging'}


def test_search_by_tag_matches_whole_category(filled):
    assert {s.title for s in filled.get_stories_by_tag('python', 10, 1).stories} == \
        {'Flask Tips', 'Python Packaging'}
    assert filled.get_stories_by_tag('pyth', 10, 1).total_results == 0


def test_categories_are_distinct_and_sorted(filled):
    assert filled.get_categories() == ['Docker', 'Flask', 'Python']


def test_categories_are_normalized_on_add(filled):
    story = filled.get_stories_by_term('Flask Tips', 10, 1).stories[0]
    assert story.categories == 'Python,Flask'
    assert story.category_list == ['Python', 'Flask']


def test_get_story_by_slug_and_id(filled):
    story = filled.get_story('2020/01/02/docker-basics')
    assert story.title == 'Docker Basics'
    assert filled.get_story_by_id(story.id) is story
    assert filled.get_story('2020/01/02/missing') is None
    assert filled.get_story_by_id(9999) is None


def test_recent_stories_include_drafts(filled):
    assert [s.title for s in filled.get_recent_stories(2)] == ['Secret Draft', 'Python Packaging']


def test_delete_story(filled):
    story = filled.get_story('2020/01/01/flask-tips')
    assert filled.delete_story(story.id) is True
    assert filled.save_all()
    assert filled.get_story('2020/01/01/flask-tips') is None
    assert filled.delete_story(story.id) is False


def test_make_slug():
    assert make_slug("What's New in C# 7?", datetime(2017, 3, 9)) == '2017/03/09/whats-new-in-c-7'
    assert make_slug('  Spaces   and--dashes ', datetime(2017, 12, 1)) == '2017/12/01/spaces-and-dashes'


def test_summary_strips_html_and_truncates():
    story = BlogStory(title='t', body='<p>' + 'word ' * 100 + '</p>')
    summary = story.get_summary()
    assert '<' not in summary
    assert summary.endswith('...')
    assert len(summary) <= 259


def test_summary_prefers_abstract():
    story = BlogStory(title='t', body='<p>long body</p>', abstract='<em>Short</em> teaser')
    assert story.get_summary() == 'Short teaser'


def test_sample_stories_are_deterministic():
    stories = sample_stories(count=5)
    assert [s.id for s in stories] == [1, 2, 3, 4, 5]
    assert stories[0].slug == '2017/01/01/building-web-apps-part-1'
    assert all(s.is_published for s in stories)


def test_memory_store_is_shared_between_scopes(memory_app):
    registry = get_registry(memory_app)
    with memory_app.app_context():
        repo = registry.resolve('repository')
        repo.add_story(_story('Shared', 5))
    with memory_app.app_context():
        assert registry.resolve('repository').get_story('2020/01/05/shared') is not None


@pytest.mark.parametrize('term', ['%', '_', 'Fl_sk'])
def test_search_treats_wildcards_literally(filled, term):
    assert filled.get_stories_by_term(term, 10, 1).total_results == 0


def test_search_matches_literal_percent(filled):
    filled.add_story(_story('100% Coverage', 5, 'Testing'))
    assert filled.save_all()
    assert [s.title for s in filled.get_stories_by_term('100%', 10, 1).stories] == ['100% Coverage']
    assert filled.get_stories_by_tag('%', 10, 1).total_results == 0


def test_public_categories_skip_drafts(filled):
    filled.add_story(_story('Launch Plans', 6, 'Unannounced', published=False))
    assert filled.save_all()
    assert 'Unannounced' in filled.get_categories()
    assert filled.get_categories(published_only=True) == ['Docker', 'Flask', 'Python']


def test_same_title_same_day_gets_suffixed_slug(repository):
    stories = [_story('Daily Notes', 7) for _ in range(3)]
    for story in stories:
        repository.add_story(story)
    assert repository.save_all()

    assert [s.slug for s in stories] == [
        '2020/01/07/daily-notes', '2020/01/07/daily-notes-2', '2020/01/07/daily-notes-3',
    ]
    assert repository.get_story('2020/01/07/daily-notes-2') is stories[1]


def test_make_slug_falls_back_when_title_has_no_slug_characters():
    assert make_slug('日本語', datetime(2021, 4, 5)) == '2021/04/05/story'
    assert make_slug('!!!', datetime(2021, 4, 5)) == '2021/04/05/story'
