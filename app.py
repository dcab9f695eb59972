# app.py
"""
Flask application factory for the subscription service

Wires the subscription pipeline (store, audit log, notifier) into the app
and provides:
- Environment-based configuration with .env support
- Logging with optional rotating file output
- Plain-text error handling
- OAuth sign-in through Authlib
- Rate limiting and security headers
- Health check endpoint
"""

import os
import logging
import logging.handlers
from datetime import datetime
from typing import Optional, Dict, Any

from flask import Flask, Response, request, jsonify, g
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.exceptions import HTTPException

from config.settings import get_config
from core.audit_log import AuditLogWriter
from core.errors import StoreError
from core.notifier import Notifier
from core.pipeline import SubscriptionPipeline
from core.store import SubscriptionStore
from api.auth import auth_bp, init_oauth
from api.subscriptions import subscriptions_bp, limiter
from middleware.security import security_headers
from routes.pages import pages_bp


def setup_logging(app: Flask) -> None:
    """
    Configure application logging

    Console output always; a rotating file when LOG_FILE is set.
    Module loggers propagate to the root logger configured here.
    """
    # Remove default Flask handlers to avoid duplicate logs
    app.logger.handlers.clear()
    app.logger.propagate = True

    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not root_logger.handlers:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(stream_handler)

    log_file = app.config.get('LOG_FILE')
    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(detailed_formatter)
        file_handler.setLevel(log_level)
        app.logger.addHandler(file_handler)

    # Suppress verbose third-party logs outside debug
    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def configure_pipeline(app: Flask) -> SubscriptionPipeline:
    """
    Build the store, audit log and notifier and inject them into the pipeline

    Tables are created here; a failure is fatal at startup.
    """
    store = SubscriptionStore.from_url(
        app.config['DATABASE_URL'],
        slow_query_threshold=app.config.get('SLOW_QUERY_THRESHOLD', 1.0),
    )
    store.create_tables()

    audit_log = AuditLogWriter(app.config['AUDIT_LOG_PATH'])

    notifier = Notifier(
        host=app.config.get('SMTP_HOST'),
        port=app.config.get('SMTP_PORT', 587),
        sender=app.config.get('SMTP_EMAIL'),
        password=app.config.get('SMTP_PASS'),
        timeout=app.config.get('SMTP_TIMEOUT', 10),
        use_starttls=app.config.get('SMTP_STARTTLS', True),
    )
    if not notifier.sender:
        app.logger.warning("SMTP_EMAIL not set, confirmation emails will not be delivered")

    pipeline = SubscriptionPipeline(store, audit_log, notifier, verify_url=app.config.get('VERIFY_URL'))
    app.extensions['subscription_pipeline'] = pipeline

    database_url = app.config['DATABASE_URL']
    app.logger.info(f"Database configured: {database_url.split('@')[-1] if '@' in database_url else database_url}")
    return pipeline


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(pages_bp)
    app.register_blueprint(subscriptions_bp)
    app.register_blueprint(auth_bp)

    app.logger.info("Application blueprints registered")


def configure_error_handlers(app: Flask) -> None:
    """
    Plain-text error bodies for every failure
    """
    @app.errorhandler(HTTPException)
    def http_error(error):
        if error.code >= 500:
            app.logger.error(f"HTTP {error.code} on {request.method} {request.path}: {error}")
        elif error.code != 404:
            app.logger.warning(f"HTTP {error.code} from {request.remote_addr}: {request.method} {request.path}")
        response = error.get_response()
        response.data = error.description or error.name
        response.mimetype = 'text/plain'
        return response

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        app.logger.error(f"Unhandled exception: {e}", exc_info=True)
        return Response("Internal server error", status=500, mimetype='text/plain')


def configure_health_checks(app: Flask, pipeline: SubscriptionPipeline) -> None:
    @app.route('/health')
    def health_check():
        """Store reachability for monitoring and load balancing"""
        health_status: Dict[str, Any] = {
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat(),
            'components': {}
        }

        try:
            pipeline.store.ping()
            health_status['components']['database'] = 'healthy'
        except StoreError as e:
            health_status['components']['database'] = f'unhealthy: {e}'
            health_status['status'] = 'unhealthy'

        status_code = 200 if health_status['status'] == 'healthy' else 503
        return jsonify(health_status), status_code


def configure_request_middleware(app: Flask) -> None:
    @app.before_request
    def before_request():
        # Store request start time for performance monitoring
        g.start_time = datetime.utcnow()

    @app.after_request
    def after_request(response):
        response = security_headers(response)

        if hasattr(g, 'start_time'):
            duration = (datetime.utcnow() - g.start_time).total_seconds() * 1000
            if duration > app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
                app.logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")

        return response


def create_app(config_name: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')
        overrides: Extra configuration values applied after the environment class

    Returns:
        Configured Flask application instance

    Raises:
        RuntimeError: SESSION_SECRET is missing
    """
    app = Flask(__name__, static_folder='static')

    config_name = config_name or os.environ.get('FLASK_ENV', 'production')
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    secret = app.config.get('SESSION_SECRET')
    if not secret:
        raise RuntimeError("SESSION_SECRET is missing from the environment")
    app.config['SECRET_KEY'] = secret

    # Proxy handling for deployment behind nginx
    if app.config.get('PROXY_FIX'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    setup_logging(app)
    app.logger.info(f"Starting subscription service in {config_name} mode")

    pipeline = configure_pipeline(app)

    limiter.init_app(app)
    init_oauth(app)

    register_blueprints(app)
    configure_error_handlers(app)
    configure_health_checks(app, pipeline)
    configure_request_middleware(app)

    app.logger.info("Flask application factory completed successfully")
    return app


if __name__ == '__main__':
    # Development server, one thread per request
    app = create_app(os.environ.get('FLASK_ENV', 'development'))
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 8080)), threaded=True)
