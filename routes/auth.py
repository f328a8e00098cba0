import logging

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from core.database_models import find_user
from core.extensions import limiter
from routes.forms import LoginForm

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)


def _safe_next(target):
    # Only allow local redirects
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return url_for('root.index')


@auth_bp.route('/login', methods=['GET', 'POST'])
@limiter.limit(lambda: current_app.config.get('LOGIN_RATE_LIMIT', '10 per minute'), methods=['POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('root.index'))

    form = LoginForm()
    if form.validate_on_submit():
        user = find_user(form.username.data.strip())
        if user is not None and user.check_password(form.password.data):
            login_user(user, remember=form.remember.data)
            logger.info(f"User {user.username} logged in from {request.remote_addr}")
            return redirect(_safe_next(request.args.get('next')))

        logger.warning(f"Failed login for '{form.username.data}' from {request.remote_addr}")
        flash('Invalid username or password.', 'error')

    return render_template('login.html', form=form)


@auth_bp.route('/logout')
@login_required
def logout():
    logout_user()
    flash('You have been logged out.', 'info')
    return redirect(url_for('root.index'))
