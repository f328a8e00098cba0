# config/__init__.py
"""
Environment-based configuration for the blog

Each environment is a class; ``get_config`` picks one by name and
``load_environment_overrides`` layers environment variables on top.
"""

import os
import secrets
from typing import Any, Dict, Optional, Type

from dotenv import load_dotenv

from config.security import SecurityConfig

load_dotenv()

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

DEVELOPMENT = 'development'
TESTING = 'testing'
PRODUCTION = 'production'


class Config:
    """Settings shared by every environment"""

    APP_NAME = 'WilderBlog'
    VERSION = os.environ.get('APP_VERSION', '1.0.0')

    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_urlsafe(32)

    # Database
    SQLALCHEMY_DATABASE_URI = f"sqlite:///{os.path.join(basedir, 'wilderblog.db')}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # "True" serves the in-memory sample repository and skips seeding
    WILDERDB_TESTDATA = 'False'

    # Content
    DATA_DIR = os.path.join(basedir, 'data')
    UPLOAD_DIR = os.path.join(basedir, 'static', 'img', 'uploads')
    UPLOAD_URL_PATH = '/img/uploads'
    UPLOAD_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp'}
    SEED_STORIES_FILE = 'stories.json'
    BLOG_PAGE_SIZE = 10
    FEED_URL = None
    BLOG_TITLE = 'Wilder Minds'
    BLOG_URL = 'https://wildermuth.com'

    # Seeded administrator
    ADMIN_USERNAME = 'shawnwildermuth'
    ADMIN_EMAIL = 'shawn@wildermuth.com'
    ADMIN_NAME = 'Shawn Wildermuth'
    ADMIN_PASSWORD = None

    # Caching
    CACHE_TYPE = 'memory'
    CACHE_DEFAULT_TIMEOUT = 600
    CACHE_EXPIRATION_SCAN_FREQUENCY = 300  # 5 minutes
    REDIS_URL = 'redis://localhost:6379/1'

    # Active users
    ACTIVE_USER_TIMEOUT = 300
    ACTIVE_USER_COOKIE = 'ActiveUser'

    # Mail
    MAIL_SERVER = 'localhost'
    MAIL_PORT = 587
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
    MAIL_TIMEOUT = 30
    MAIL_FROM_ADDRESS = 'noreply@wildermuth.com'
    MAIL_FROM_NAME = 'WilderBlog'
    MAIL_ALERT_ADDRESS = 'shawn@wildermuth.com'
    MAIL_USE_CELERY = True

    # Celery
    CELERY_BROKER_URL = 'redis://localhost:6379/2'
    CELERY_RESULT_BACKEND = 'redis://localhost:6379/2'
    CELERY_TASK_ALWAYS_EAGER = False

    # Rate limiting
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_HEADERS_ENABLED = True
    LOGIN_RATE_LIMIT = '10 per minute'

    # Logging
    LOG_LEVEL = 'INFO'
    LOG_FILE = None

    REQUIRE_HTTPS = False
    WTF_CSRF_ENABLED = True


class DevelopmentConfig(Config):
    """Local development"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'
    WILDERDB_TESTDATA = 'True'
    MAIL_USE_CELERY = False
    ADMIN_PASSWORD = 'P@ssw0rd!'


class TestingConfig(Config):
    """Automated tests"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    CELERY_TASK_ALWAYS_EAGER = True
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    MAIL_USE_CELERY = False
    ADMIN_PASSWORD = 'P@ssw0rd!'
    LOG_LEVEL = 'WARNING'


class ProductionConfig(SecurityConfig, Config):
    """Public deployment behind a reverse proxy"""
    DEBUG = False
    LOG_LEVEL = 'WARNING'


CONFIGS: Dict[str, Type[Config]] = {
    DEVELOPMENT: DevelopmentConfig,
    TESTING: TestingConfig,
    PRODUCTION: ProductionConfig,
}

# Environment variables copied verbatim into app.config when present
_STRING_OVERRIDES = (
    'SECRET_KEY', 'REDIS_URL', 'CACHE_TYPE', 'WILDERDB_TESTDATA',
    'MAIL_SERVER', 'MAIL_USERNAME', 'MAIL_PASSWORD', 'MAIL_FROM_ADDRESS',
    'MAIL_ALERT_ADDRESS', 'ADMIN_USERNAME', 'ADMIN_EMAIL', 'ADMIN_PASSWORD',
    'CELERY_BROKER_URL', 'CELERY_RESULT_BACKEND', 'RATELIMIT_STORAGE_URI',
    'LOG_LEVEL', 'LOG_FILE', 'FEED_URL', 'DATA_DIR', 'UPLOAD_DIR',
)
_INT_OVERRIDES = ('MAIL_PORT', 'ACTIVE_USER_TIMEOUT', 'CACHE_EXPIRATION_SCAN_FREQUENCY')


def resolve_environment(config_name: Optional[str] = None) -> str:
    """Pick the environment name from the argument or the process environment"""
    name = (config_name
            or os.environ.get('WILDERBLOG_ENV')
            or os.environ.get('FLASK_ENV')
            or PRODUCTION)
    name = name.lower()
    if name not in CONFIGS:
        raise ValueError(f"Unknown environment '{name}', expected one of {sorted(CONFIGS)}")
    return name


def get_config(config_name: str) -> Type[Config]:
    return CONFIGS[resolve_environment(config_name)]


def load_environment_overrides() -> Dict[str, Any]:
    """Collect configuration overrides from environment variables"""
    overrides: Dict[str, Any] = {}
    for key in _STRING_OVERRIDES:
        if os.environ.get(key):
            overrides[key] = os.environ[key]
    for key in _INT_OVERRIDES:
        if os.environ.get(key):
            overrides[key] = int(os.environ[key])
    if os.environ.get('DATABASE_URL'):
        overrides['SQLALCHEMY_DATABASE_URI'] = os.environ['DATABASE_URL']
    return overrides


def is_development(app) -> bool:
    return app.config.get('ENVIRONMENT') == DEVELOPMENT


def is_production(app) -> bool:
    return app.config.get('ENVIRONMENT') == PRODUCTION


def use_test_data(app) -> bool:
    """Mirror of the ``WilderDb:TestData`` switch: only the literal "True" enables it"""
    value = app.config.get('WILDERDB_TESTDATA')
    return value is True or value == 'True'
