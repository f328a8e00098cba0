# config/security.py
"""
Security settings for the public blog deployment
"""

import os
import secrets
from datetime import timedelta


class SecurityConfig:
    """Hardened defaults mixed into the production config"""

    # Cookies: the admin session and the remember-me cookie only travel over HTTPS
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_urlsafe(32)
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = True
    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_DURATION = timedelta(days=14)
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)

    # Login throttling shares Redis with the cache when one is configured
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI') or os.environ.get('REDIS_URL', 'memory://')
    RATELIMIT_STRATEGY = 'fixed-window'

    # Login and contact forms
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 60 * 60 * 2

    # Stories embed videos and podcast audio from a few hosts
    CSP_POLICY = {
        'default-src': "'self'",
        'script-src': "'self' 'unsafe-inline'",
        'style-src': "'self' 'unsafe-inline'",
        'img-src': "'self' data: https:",
        'media-src': "'self' https:",
        'frame-src': "https://www.youtube.com https://player.vimeo.com",
        'object-src': "'none'",
        'base-uri': "'self'",
        'form-action': "'self'",
    }

    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'SAMEORIGIN',
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
    }

    # Images posted by desktop editors through /livewriter
    MAX_CONTENT_LENGTH = 32 * 1024 * 1024  # 32MB

    REQUIRE_HTTPS = True

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }
