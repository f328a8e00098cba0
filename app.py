# app.py
"""
Flask application factory for the WilderBlog site

``create_app`` is the composition root:

- loads the environment's configuration
- registers the blog's services with their lifetimes
- assembles the request pipeline in a fixed order
- seeds the database once at startup unless test data is in use
"""

import logging
import logging.handlers
import os
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, has_request_context, jsonify, make_response, redirect, request, url_for
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.debug import DebuggedApplication
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.middleware.shared_data import SharedDataMiddleware

from config import (get_config, is_development, is_production, load_environment_overrides,
                    resolve_environment, use_test_data)
from core.cache import MemoryCache, RedisCache, create_cache
from core.database_models import WilderUser, db
from core.email_logger import EmailLogHandler
from core.extensions import csrf, limiter, login_manager, migrate
from core.initializer import WilderInitializer
from core.metaweblog import MetaWeblogMiddleware
from core.repositories import MemoryRepository, MemoryStore, WilderRepository
from core.service_registry import EXTENSION_KEY, ServiceRegistry, get_registry
from middleware.active_users import ActiveUsersMiddleware, ActiveUsersTracker
from middleware.security import require_https, security_headers
from middleware.url_rewriter import UrlRewriteMiddleware
from services.ad_service import AdService
from services.app_environment import ApplicationEnvironment
from services.data_providers import (CalendarProvider, CoursesProvider, PodcastEpisodesProvider,
                                     PublicationsProvider, VideosProvider)
from services.mail import LoggingMailService, MailService
from services.weblog_provider import WilderWeblogProvider, build_weblog_provider
from tasks.mail_sender import celery_app

basedir = os.path.abspath(os.path.dirname(__file__))

METAWEBLOG_PATH = '/livewriter'
STATUS_CODE_PAGES_PATH = '/Error/{0}'
EXCEPTION_HANDLER_PATH = '/Exception'


def setup_logging(app: Flask) -> None:
    """
    Configure application logging

    Console output always; a rotating file when LOG_FILE is set.
    """
    app.logger.handlers.clear()

    formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    app.logger.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    app.logger.addHandler(console_handler)

    if app.config.get('LOG_FILE'):
        file_handler = logging.handlers.RotatingFileHandler(
            app.config['LOG_FILE'],
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        app.logger.addHandler(file_handler)

    # Module loggers (core.*, services.*, ...) follow the app's level and handlers
    for name in ('core', 'services', 'middleware', 'routes', 'api', 'tasks'):
        module_logger = logging.getLogger(name)
        module_logger.setLevel(log_level)
        module_logger.handlers = list(app.logger.handlers)
        module_logger.propagate = False

    # Suppress verbose third-party logs outside debug
    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy').setLevel(logging.WARNING)
        logging.getLogger('celery').setLevel(logging.WARNING)


def configure_email_logging(app: Flask, registry: ServiceRegistry) -> EmailLogHandler:
    """Mail CRITICAL log records through the registered mail service"""
    handler = EmailLogHandler(
        mail_service_factory=lambda: registry.resolve('mail_service'),
        app_name=app.config.get('APP_NAME', 'WilderBlog'),
        level=logging.CRITICAL,
        app=app,
    )
    handler.setFormatter(logging.Formatter(
        '%(asctime)s %(name)s %(levelname)s\n%(message)s\n', datefmt='%Y-%m-%d %H:%M:%S'
    ))
    app.logger.addHandler(handler)
    for name in ('core', 'services', 'middleware', 'routes', 'api', 'tasks'):
        logging.getLogger(name).addHandler(handler)
    return handler


def configure_database(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    app.logger.info(f"Database configured: {uri.split('@')[-1] if '@' in uri else uri}")


def configure_identity(app: Flask) -> None:
    """Session-cookie authentication for WilderUser accounts"""
    login_manager.init_app(app)
    login_manager.login_view = 'auth.login'

    @login_manager.user_loader
    def load_user(user_id):
        try:
            return db.session.get(WilderUser, int(user_id))
        except (SQLAlchemyError, ValueError) as e:
            app.logger.warning(f"Could not load user {user_id}: {e}")
            return None

    @login_manager.unauthorized_handler
    def unauthorized():
        if request.path.startswith('/api/'):
            return jsonify({'error': 'Authentication required'}), 401
        return redirect(url_for('auth.login', next=request.path))


def configure_services(app: Flask) -> ServiceRegistry:
    """
    Register the blog's services

    The mail service depends on the environment and the repository on the
    WILDERDB_TESTDATA flag; everything else is always registered.
    """
    registry = ServiceRegistry()
    app.extensions[EXTENSION_KEY] = registry
    config = app.config

    if is_development(app):
        registry.add_transient('mail_service', LoggingMailService,
                               lambda r: LoggingMailService(config))
    else:
        registry.add_transient('mail_service', MailService, lambda r: MailService(config))

    if use_test_data(app):
        registry.add_singleton('memory_store', MemoryStore)
        registry.add_scoped('repository', MemoryRepository,
                            lambda r: MemoryRepository(r.resolve('memory_store')))
    else:
        registry.add_scoped('repository', WilderRepository, lambda r: WilderRepository(db.session))

    registry.add_transient('initializer', WilderInitializer, lambda r: WilderInitializer(config))
    cache_cls = RedisCache if config.get('CACHE_TYPE') == 'redis' else MemoryCache
    registry.add_singleton('cache', cache_cls, lambda r: create_cache(config))

    def data_provider(cls):
        return lambda r: cls(config['DATA_DIR'], r.resolve('cache'))

    registry.add_scoped('ad_service', AdService, data_provider(AdService))

    # Data providers (non-database content)
    registry.add_scoped('calendar_provider', CalendarProvider, data_provider(CalendarProvider))
    registry.add_scoped('courses_provider', CoursesProvider, data_provider(CoursesProvider))
    registry.add_scoped('publications_provider', PublicationsProvider, data_provider(PublicationsProvider))
    registry.add_scoped('podcast_provider', PodcastEpisodesProvider, data_provider(PodcastEpisodesProvider))
    registry.add_scoped('videos_provider', VideosProvider, data_provider(VideosProvider))
    registry.add_transient('app_environment', ApplicationEnvironment,
                           lambda r: ApplicationEnvironment(config))

    # Desktop blog editors (MetaWeblog API)
    registry.add_scoped('weblog_provider', WilderWeblogProvider,
                        lambda r: build_weblog_provider(r.resolve('repository'), config,
                                                        request.host_url if has_request_context() else None))

    registry.add_singleton('active_users', ActiveUsersTracker,
                           lambda r: ActiveUsersTracker(timeout=config['ACTIVE_USER_TIMEOUT']))

    app.logger.info(
        f"Services registered: mail={registry.implementation('mail_service').__name__}, "
        f"repository={registry.implementation('repository').__name__}"
    )
    return registry


def configure_celery(app: Flask):
    """Point the mail task's Celery app at this app's broker and context"""
    celery_app.conf.update({
        'broker_url': app.config['CELERY_BROKER_URL'],
        'result_backend': app.config['CELERY_RESULT_BACKEND'],
        'task_always_eager': app.config.get('CELERY_TASK_ALWAYS_EAGER', False),
        'task_eager_propagates': True,
    })

    class ContextTask(celery_app.Task):
        """Make celery tasks work with Flask app context"""
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return self.run(*args, **kwargs)

    celery_app.Task = ContextTask
    app.extensions['celery'] = celery_app
    return celery_app


def configure_security(app: Flask) -> None:
    """CSRF, rate limiting, security headers and (in production) HTTPS"""
    csrf.init_app(app)
    limiter.init_app(app)
    app.after_request(security_headers)

    if is_production(app) and app.config.get('REQUIRE_HTTPS', True):
        app.before_request(require_https)


def register_blueprints(app: Flask) -> None:
    from api.stories import api_bp
    from routes.auth import auth_bp
    from routes.errors import errors_bp
    from routes.root import root_bp

    app.register_blueprint(root_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(errors_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    app.logger.info("Application blueprints registered")


def _reexecute(app: Flask, path: str):
    """Run the view that ``path`` routes to and return its response"""
    adapter = app.url_map.bind('localhost')
    endpoint, values = adapter.match(path)
    return make_response(app.view_functions[endpoint](**values))


def configure_error_handlers(app: Flask) -> None:
    """
    Status-code pages and the generic exception page

    HTTP errors re-execute /Error/<code>; anything else is logged and
    re-executes /Exception.
    """
    status_path = app.config.get('STATUS_CODE_PAGES_PATH', STATUS_CODE_PAGES_PATH)
    exception_path = app.config.get('EXCEPTION_HANDLER_PATH', EXCEPTION_HANDLER_PATH)

    @app.errorhandler(HTTPException)
    def status_code_page(error):
        if error.code is None or error.code < 400:
            return error
        response = _reexecute(app, status_path.format(error.code))
        response.status_code = error.code
        return response

    @app.errorhandler(Exception)
    def handle_exception(error):
        if isinstance(error, HTTPException):
            return status_code_page(error)
        app.logger.error(f"Unhandled exception on {request.method} {request.path}: {error}",
                         exc_info=True)
        db.session.rollback()
        response = _reexecute(app, exception_path)
        response.status_code = 500
        return response


def configure_pipeline(app: Flask, registry: ServiceRegistry) -> None:
    """
    Assemble the request pipeline, outermost first:

    error pages, URL rewriting, static files, MetaWeblog, active users,
    authentication, MVC routes.
    """
    if is_development(app):
        registry.add_pipeline_step('developer_exception_page')
    else:
        configure_email_logging(app, registry)
        registry.add_pipeline_step('email_logger')
        configure_error_handlers(app)
        registry.add_pipeline_step('status_code_pages')
        registry.add_pipeline_step('exception_handler')

    for step in ('url_rewriter', 'static_files', 'metaweblog', 'active_users',
                 'authentication', 'mvc'):
        registry.add_pipeline_step(step)

    # Innermost: authentication and MVC run inside Flask
    configure_identity(app)
    register_blueprints(app)

    with app.app_context():
        tracker = registry.resolve('active_users')

    # WSGI layers wrap from the inside out
    wsgi = app.wsgi_app
    wsgi = ActiveUsersMiddleware(wsgi, tracker,
                                 cookie_name=app.config.get('ACTIVE_USER_COOKIE', 'ActiveUser'),
                                 secure=is_production(app))
    wsgi = MetaWeblogMiddleware(wsgi, app, METAWEBLOG_PATH,
                                lambda: registry.resolve('weblog_provider'))
    wsgi = SharedDataMiddleware(wsgi, {'/': app.config['STATIC_DIR']}, cache_timeout=60 * 60 * 12)
    wsgi = UrlRewriteMiddleware(wsgi, feed_url=app.config.get('FEED_URL'))
    if is_development(app):
        wsgi = DebuggedApplication(wsgi, evalex=False)
    if is_production(app):
        # Behind a reverse proxy: trust the forwarded scheme and host
        wsgi = ProxyFix(wsgi, x_for=1, x_proto=1, x_host=1)
    app.wsgi_app = wsgi


def configure_health_checks(app: Flask) -> None:

    @app.route('/health')
    def health_check():
        """Basic health check with database status"""
        registry = get_registry(app)
        status = {
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat(),
            'environment': registry.resolve('app_environment').to_dict(),
            'components': {},
        }
        try:
            db.session.execute(text('SELECT 1'))
            status['components']['database'] = 'healthy'
        except SQLAlchemyError as e:
            status['components']['database'] = f'unhealthy: {e}'
            status['status'] = 'unhealthy'
        return jsonify(status), 200 if status['status'] == 'healthy' else 503


def configure_template_context(app: Flask) -> None:

    @app.context_processor
    def inject_site():
        return {
            'app_env': get_registry(app).resolve('app_environment'),
            'blog_title': app.config.get('BLOG_TITLE'),
            'current_year': datetime.utcnow().year,
        }


def seed_database(app: Flask, registry: ServiceRegistry) -> Optional[Dict[str, int]]:
    """Run the initializer once, inside its own app context"""
    if use_test_data(app):
        # Identity tables still have to exist for logins
        with app.app_context():
            db.create_all()
        app.logger.info("Test data mode: skipping database seeding")
        return None

    with app.app_context():
        initializer = registry.resolve('initializer')
        return initializer.seed()


def create_app(config_name: str = None, config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: 'development', 'testing' or 'production'; defaults to
            WILDERBLOG_ENV, then FLASK_ENV, then production
        config_overrides: values applied after environment variables

    Returns:
        Configured Flask application instance
    """
    environment = resolve_environment(config_name)

    # Static files are served by the pipeline, not by Flask's static route
    app = Flask(__name__,
                static_folder=None,
                template_folder=os.path.join(basedir, 'templates'))

    app.config.from_object(get_config(environment))
    app.config.update(load_environment_overrides())
    app.config.update(config_overrides or {})
    app.config['ENVIRONMENT'] = environment
    app.config.setdefault('STATIC_DIR', os.path.join(basedir, 'static'))
    app.config['START_TIME'] = datetime.utcnow()

    setup_logging(app)
    app.logger.info(f"Starting WilderBlog in {environment} mode")

    registry = configure_services(app)
    configure_database(app)
    configure_celery(app)
    configure_security(app)
    configure_template_context(app)
    configure_health_checks(app)
    configure_pipeline(app, registry)

    seed_database(app, registry)

    app.logger.info("Flask application factory completed successfully")
    return app
