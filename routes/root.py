# routes/root.py
"""
Public site pages
"""

import logging

from flask import (Blueprint, abort, current_app, flash, make_response, redirect,
                   render_template, request, url_for)
from flask_login import current_user

from core.service_registry import get_service
from routes.forms import ContactForm

root_bp = Blueprint('root', __name__)
logger = logging.getLogger(__name__)


def _page_size():
    return current_app.config.get('BLOG_PAGE_SIZE', 10)


@root_bp.route('/')
def index():
    result = get_service('repository').get_stories(_page_size(), 1)
    return render_template('index.html', result=result, heading=None, pager_endpoint='root.blog')


@root_bp.route('/blog/<int:page>')
def blog(page):
    result = get_service('repository').get_stories(_page_size(), page)
    if page > 1 and not result.stories:
        abort(404)
    return render_template('index.html', result=result, heading=None, pager_endpoint='root.blog')


@root_bp.route('/<int(fixed_digits=4):year>/<int(fixed_digits=2):month>/<int(fixed_digits=2):day>/<slug>')
def story(year, month, day, slug):
    story = get_service('repository').get_story(f"{year:04d}/{month:02d}/{day:02d}/{slug}")
    if story is None or (not story.is_published and not current_user.is_authenticated):
        abort(404)
    ad = get_service('ad_service').inline_ad()
    return render_template('story.html', story=story, ad=ad)


@root_bp.route('/tag/<tag>')
@root_bp.route('/tag/<tag>/<int:page>')
def tag(tag, page=1):
    result = get_service('repository').get_stories_by_tag(tag, _page_size(), page)
    return render_template('index.html', result=result, heading=f"Tagged: {tag}",
                           pager_endpoint=None)


@root_bp.route('/search')
def search():
    term = request.args.get('term', '').strip()
    if not term:
        return redirect(url_for('root.index'))
    page = request.args.get('page', 1, type=int)
    result = get_service('repository').get_stories_by_term(term, _page_size(), page)
    return render_template('index.html', result=result, heading=f"Search: {term}",
                           pager_endpoint=None)


@root_bp.route('/calendar')
def calendar():
    return render_template('calendar.html', events=get_service('calendar_provider').get())


@root_bp.route('/courses')
def courses():
    return render_template('courses.html', courses=get_service('courses_provider').get())


@root_bp.route('/publications')
def publications():
    return render_template('publications.html',
                           publications=get_service('publications_provider').get())


@root_bp.route('/podcast')
def podcast():
    return render_template('podcast.html', episodes=get_service('podcast_provider').get())


@root_bp.route('/videos')
def videos():
    return render_template('videos.html', videos=get_service('videos_provider').get())


@root_bp.route('/about')
def about():
    return render_template('about.html')


@root_bp.route('/contact', methods=['GET', 'POST'])
def contact():
    form = ContactForm()
    if form.validate_on_submit():
        sent = get_service('mail_service').send_mail(
            'contact.txt', form.name.data, form.email.data,
            f"Site Contact: {form.subject.data}", form.msg.data
        )
        if sent:
            flash('Thanks, your message has been sent.', 'success')
            return redirect(url_for('root.contact'))
        flash('Sorry, your message could not be sent. Please try again later.', 'error')
    return render_template('contact.html', form=form)


@root_bp.route('/feed.rss')
def feed():
    result = get_service('repository').get_stories(20, 1)
    response = make_response(render_template(
        'feed.xml',
        stories=result.stories,
        blog_url=current_app.config.get('BLOG_URL', request.host_url).rstrip('/'),
    ))
    response.mimetype = 'application/rss+xml'
    return response
