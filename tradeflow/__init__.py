"""Flask application factory."""
import logging
import os

from flask import Flask, g, request
from werkzeug.exceptions import HTTPException

from tradeflow.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = False

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Sentry error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache
    from tradeflow.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from tradeflow.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    init_db(app)

    # Bearer token, tenant and locale for each request
    from tradeflow.middleware import load_request_context

    @app.before_request
    def before_request_handler():
        load_request_context()

    # Error Handlers
    from tradeflow.exceptions import ErpError, ErrorCode
    from tradeflow.utils.messages import translate_error
    from tradeflow.utils.responses import error as error_response

    def _envelope(code, status, details=None):
        locale = g.get('locale') or app.config.get('DEFAULT_LOCALE', 'en')
        message = translate_error(code, locale, app.config.get('DEFAULT_LOCALE', 'en'))
        return error_response(code.value, message, status, details)

    @app.errorhandler(ErpError)
    def handle_erp_error(error):
        """Handle application exceptions: flat code plus localized message."""
        log = app.logger.error if error.status_code >= 500 else app.logger.info
        log(f"{error.code.value} [{error.status_code}] {request.method} {request.path}: {error.message}")
        details = dict(error.payload or {})
        details['reason'] = error.message
        return _envelope(error.code, error.status_code, details)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        if error.code == 404:
            code = ErrorCode.NOT_FOUND
        elif error.code == 401:
            code = ErrorCode.UNAUTHORIZED
        elif error.code == 403:
            code = ErrorCode.FORBIDDEN
        elif error.code and error.code < 500:
            code = ErrorCode.VALIDATION_ERROR
        else:
            code = ErrorCode.SERVER_ERROR
        return _envelope(code, error.code or 500)

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception on {request.method} {request.path}: {error}")
        return _envelope(ErrorCode.SERVER_ERROR, 500)

    # Register blueprints
    from tradeflow.blueprints.customer_portal import customer_portal_bp
    from tradeflow.blueprints.discounts import discounts_bp
    from tradeflow.blueprints.visits import visits_bp
    from tradeflow.blueprints.warehouse import warehouse_bp
    from tradeflow.blueprints.metrics import metrics_bp

    app.register_blueprint(customer_portal_bp)
    app.register_blueprint(discounts_bp)
    app.register_blueprint(visits_bp)
    app.register_blueprint(warehouse_bp)
    app.register_blueprint(metrics_bp)

    # CLI commands
    from tradeflow.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"TradeFlow API started (env={app.config.get('ENV')}, cache={app.config.get('CACHE_ENABLED')})")
    return app
