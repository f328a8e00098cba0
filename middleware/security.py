# middleware/security.py
"""
Security hooks for request processing
"""

import logging

from flask import abort, current_app, redirect, request

logger = logging.getLogger(__name__)


def security_headers(response):
    """Add security headers to all responses"""
    for header, value in current_app.config.get('SECURITY_HEADERS', {}).items():
        response.headers.setdefault(header, value)

    csp = current_app.config.get('CSP_POLICY')
    if csp:
        response.headers.setdefault(
            'Content-Security-Policy',
            '; '.join(f"{directive} {sources}" for directive, sources in csp.items())
        )
    return response


def require_https():
    """Redirect plain HTTP GET/HEAD requests to HTTPS; refuse any other method"""
    if request.is_secure:
        return None
    if request.method not in ('GET', 'HEAD'):
        # Only safe methods are redirected
        logger.warning(f"Refusing insecure {request.method} {request.path}")
        abort(403)
    url = request.url.replace('http://', 'https://', 1)
    logger.debug(f"Redirecting insecure request to {url}")
    return redirect(url, code=301)
