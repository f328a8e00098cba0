import pytest
from werkzeug.test import Client
from werkzeug.wrappers import Response

from core.service_registry import get_registry
from middleware.active_users import ActiveUsersMiddleware, ActiveUsersTracker
from middleware.url_rewriter import UrlRewriteMiddleware


def ok_app(environ, start_response):
    return Response(f"ok {environ['PATH_INFO']}")(environ, start_response)


class FakeClock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.parametrize('path, expected', [
    ('/feed', '/feed.rss'),
    ('/RSS', '/feed.rss'),
    ('/syndication.axd', '/feed.rss'),
    ('/default.aspx', '/'),
    ('/about.aspx', '/about'),
    ('/Blog/Some-Old-Post', '/blog/some-old-post'),
    ('/calendar/', '/calendar'),
    ('/', None),
    ('/about', None),
    ('/2017/01/03/Welcome', None),
])
def test_rewrite(path, expected):
    assert UrlRewriteMiddleware(ok_app).rewrite(path) == expected


def test_rewrite_uses_configured_feed_url():
    rewriter = UrlRewriteMiddleware(ok_app, feed_url='https://feeds.example.com/wilder')
    assert rewriter.rewrite('/atom') == 'https://feeds.example.com/wilder'


def test_rewrite_redirects_permanently_keeping_query():
    client = Client(UrlRewriteMiddleware(ok_app))
    response = client.get('/contact.aspx?from=home')
    assert response.status_code == 301
    assert response.headers['Location'].endswith('/contact?from=home')


def test_rewrite_passes_other_requests_through():
    response = Client(UrlRewriteMiddleware(ok_app)).get('/about')
    assert response.status_code == 200
    assert response.get_data(as_text=True) == 'ok /about'


def test_legacy_feed_url_reaches_feed(client):
    response = client.get('/rss', follow_redirects=True)
    assert response.status_code == 200
    assert response.mimetype == 'application/rss+xml'


def test_tracker_counts_distinct_visitors():
    tracker = ActiveUsersTracker(timeout=300, clock=FakeClock())
    tracker.touch('a')
    tracker.touch('b')
    tracker.touch('a')
    assert tracker.count() == 2


def test_tracker_forgets_idle_visitors():
    clock = FakeClock()
    tracker = ActiveUsersTracker(timeout=300, clock=clock)
    tracker.touch('a')
    clock.now += 200
    tracker.touch('b')
    clock.now += 150
    assert tracker.count() == 1
    clock.now += 200
    assert tracker.count() == 0


def test_middleware_issues_cookie_once():
    tracker = ActiveUsersTracker(clock=FakeClock())
    client = Client(ActiveUsersMiddleware(ok_app, tracker))

    first = client.get('/')
    assert 'ActiveUser=' in first.headers['Set-Cookie']
    second = client.get('/')
    assert 'Set-Cookie' not in second.headers
    assert tracker.count() == 1


def test_each_browser_is_a_visitor():
    tracker = ActiveUsersTracker(clock=FakeClock())
    app = ActiveUsersMiddleware(ok_app, tracker)
    Client(app).get('/')
    Client(app).get('/')
    assert tracker.count() == 2


def test_active_users_api(client):
    client.get('/')
    response = client.get('/api/activeusers')
    assert response.status_code == 200
    assert response.get_json() == {'activeUsers': 1}


def test_static_files_are_not_tracked(app, client):
    client.get('/css/site.css')
    with app.app_context():
        assert get_registry(app).resolve('active_users').count() == 0
