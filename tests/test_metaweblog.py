import os
import xmlrpc.client
from datetime import datetime

import pytest

from services.weblog_provider import WilderWeblogProvider
from tests.conftest import ADMIN_PASSWORD, ADMIN_USERNAME

CREDS = (ADMIN_USERNAME, ADMIN_PASSWORD)


def call(client, method, *params):
    body = xmlrpc.client.dumps(params, methodname=method, allow_none=True)
    response = client.post('/livewriter', data=body, content_type='text/xml')
    assert response.status_code == 200
    assert response.mimetype == 'text/xml'
    result, _ = xmlrpc.client.loads(response.data, use_builtin_types=True)
    return result[0]


def new_post(client, title='Posted From Editor', publish=True, **extra):
    post = {
        'title': title,
        'description': '<p>Written in a desktop editor</p>',
        'categories': ['Tools', 'Blog'],
        'dateCreated': datetime(2021, 4, 5, 10, 30),
    }
    post.update(extra)
    return call(client, 'metaWeblog.newPost', 'WilderBlog', *CREDS, post, publish)


def test_get_returns_rsd(client):
    response = client.get('/livewriter')
    assert response.status_code == 200
    assert b'MetaWeblog' in response.data


def test_get_users_blogs(client):
    blogs = call(client, 'blogger.getUsersBlogs', 'key', *CREDS)
    assert blogs[0]['blogid'] == 'WilderBlog'
    assert blogs[0]['url'] == 'http://localhost/'


def test_bad_credentials_are_a_fault(client):
    with pytest.raises(xmlrpc.client.Fault) as info:
        call(client, 'blogger.getUsersBlogs', 'key', ADMIN_USERNAME, 'wrong')
    assert info.value.faultCode == 401


def test_new_post_is_published_on_the_site(client):
    postid = new_post(client)
    post = call(client, 'metaWeblog.getPost', postid, *CREDS)

    assert post['title'] == 'Posted From Editor'
    assert post['wp_slug'] == '2021/04/05/posted-from-editor'
    assert post['categories'] == ['Tools', 'Blog']
    assert post['post_status'] == 'publish'

    page = client.get('/2021/04/05/posted-from-editor')
    assert page.status_code == 200
    assert b'Written in a desktop editor' in page.data


def test_draft_is_hidden_from_visitors(client):
    new_post(client, title='Work In Progress', publish=False)
    assert client.get('/2021/04/05/work-in-progress').status_code == 404


def test_edit_post(client):
    postid = new_post(client)
    assert call(client, 'metaWeblog.editPost', postid, *CREDS,
                {'title': 'Renamed', 'description': '<p>Edited</p>'}, True) is True
    post = call(client, 'metaWeblog.getPost', postid, *CREDS)
    assert post['title'] == 'Renamed'
    assert post['description'] == '<p>Edited</p>'


def test_get_recent_posts_includes_drafts(client):
    new_post(client, title='Draft One', publish=False)
    posts = call(client, 'metaWeblog.getRecentPosts', 'WilderBlog', *CREDS, 10)
    titles = [p['title'] for p in posts]
    assert titles[0] == 'Draft One'
    assert 'Welcome to the New Blog' in titles


def test_get_categories(client):
    categories = call(client, 'metaWeblog.getCategories', 'WilderBlog', *CREDS)
    assert {c['title'] for c in categories} >= {'Blog', 'Tools', 'Announcements'}
    wp = call(client, 'wp.getCategories', 'WilderBlog', *CREDS)
    assert {c['categoryName'] for c in wp} == {c['title'] for c in categories}


def test_delete_post(client):
    postid = new_post(client)
    assert call(client, 'blogger.deletePost', 'key', postid, *CREDS, True) is True
    with pytest.raises(xmlrpc.client.Fault) as info:
        call(client, 'metaWeblog.getPost', postid, *CREDS)
    assert info.value.faultCode == 400


def test_new_media_object_is_stored(app, client):
    media = {'name': 'Open-Live-Writer/My-Post/image.png', 'type': 'image/png', 'bits': b'\x89PNG'}
    result = call(client, 'metaWeblog.newMediaObject', 'WilderBlog', *CREDS, media)

    assert result['url'] == 'http://localhost/img/uploads/Open-Live-Writer/My-Post/image.png'
    path = os.path.join(app.config['UPLOAD_DIR'], 'Open-Live-Writer', 'My-Post', 'image.png')
    with open(path, 'rb') as f:
        assert f.read() == b'\x89PNG'


def test_new_media_object_rejects_other_file_types(client):
    media = {'name': 'script.exe', 'type': 'application/octet-stream', 'bits': b'MZ'}
    with pytest.raises(xmlrpc.client.Fault):
        call(client, 'metaWeblog.newMediaObject', 'WilderBlog', *CREDS, media)


def test_post_without_title_is_rejected(client):
    with pytest.raises(xmlrpc.client.Fault):
        new_post(client, title='')


def test_test_data_mode_has_no_editor_accounts(make_app):
    app = make_app('testing', WILDERDB_TESTDATA='True')
    client = app.test_client()
    with pytest.raises(xmlrpc.client.Fault) as info:
        call(client, 'blogger.getUsersBlogs', 'key', *CREDS)
    assert info.value.faultCode == 401


def test_other_methods_are_not_allowed(client):
    assert client.put('/livewriter').status_code == 405


def test_editor_slug_becomes_dated_permalink(client):
    postid = new_post(client, title='Editor Slug', wp_slug='editor-slug')
    post = call(client, 'metaWeblog.getPost', postid, *CREDS)
    assert post['wp_slug'] == '2021/04/05/editor-slug'
    assert post['link'] == 'http://localhost/2021/04/05/editor-slug'
    assert client.get('/2021/04/05/editor-slug').status_code == 200


def test_title_without_slug_characters_is_reachable(client):
    postid = new_post(client, title='日本語')
    post = call(client, 'metaWeblog.getPost', postid, *CREDS)
    assert post['wp_slug'] == '2021/04/05/story'
    assert client.get('/2021/04/05/story').status_code == 200


def test_same_title_same_day_gets_distinct_slugs(client):
    first = new_post(client, title='Daily Notes')
    second = new_post(client, title='Daily Notes')

    slugs = [call(client, 'metaWeblog.getPost', postid, *CREDS)['wp_slug'] for postid in (first, second)]
    assert slugs == ['2021/04/05/daily-notes', '2021/04/05/daily-notes-2']
    assert client.get('/2021/04/05/daily-notes-2').status_code == 200


def test_wrong_number_of_arguments_is_a_bad_request(client):
    with pytest.raises(xmlrpc.client.Fault) as info:
        call(client, 'metaWeblog.getPost', '1', ADMIN_USERNAME)
    assert info.value.faultCode == 400


def test_provider_bug_is_an_internal_fault(client, monkeypatch):
    def broken(self, postid, username, password):
        raise TypeError("'NoneType' object is not subscriptable")

    monkeypatch.setattr(WilderWeblogProvider, 'get_post', broken)
    with pytest.raises(xmlrpc.client.Fault) as info:
        call(client, 'metaWeblog.getPost', '1', *CREDS)
    assert info.value.faultCode == 500


def test_unknown_method_is_a_fault(client):
    with pytest.raises(xmlrpc.client.Fault) as info:
        call(client, 'metaWeblog.getTemplate', 'WilderBlog', *CREDS)
    assert info.value.faultCode == 404


def test_malformed_body_is_a_fault(client):
    response = client.post('/livewriter', data=b'<methodCall><oops', content_type='text/xml')
    with pytest.raises(xmlrpc.client.Fault) as info:
        xmlrpc.client.loads(response.data)
    assert info.value.faultCode == 400
