# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# App fixtures for the configuration/environment combinations the factory
# supports. Every app runs against an in-memory SQLite database.
# =============================================================================

import os

# Keep the developer's shell environment out of the app configuration
for _name in ('WILDERBLOG_ENV', 'FLASK_ENV', 'WILDERDB_TESTDATA', 'DATABASE_URL',
              'CACHE_TYPE', 'LOG_FILE', 'DATA_DIR', 'UPLOAD_DIR'):
    os.environ.pop(_name, None)

import pytest

from app import create_app

ADMIN_USERNAME = 'shawnwildermuth'
ADMIN_PASSWORD = 'P@ssw0rd!'


def _overrides(**extra):
    overrides = {
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'ADMIN_PASSWORD': ADMIN_PASSWORD,
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'MAIL_USE_CELERY': False,
        'CELERY_TASK_ALWAYS_EAGER': True,
        'CELERY_BROKER_URL': 'memory://',
        'CELERY_RESULT_BACKEND': 'cache+memory://',
    }
    overrides.update(extra)
    return overrides


@pytest.fixture
def make_app(tmp_path):
    """Build an app for an environment, with optional config overrides"""
    def _make(environment='testing', **extra):
        extra.setdefault('UPLOAD_DIR', str(tmp_path / 'uploads'))
        return create_app(environment, _overrides(**extra))
    return _make


@pytest.fixture
def app(make_app):
    """Testing app backed by the seeded database"""
    return make_app('testing', WILDERDB_TESTDATA='False')


@pytest.fixture
def memory_app(make_app):
    """Testing app serving the in-memory sample stories"""
    return make_app('testing', WILDERDB_TESTDATA='True')


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def memory_client(memory_app):
    return memory_app.test_client()
