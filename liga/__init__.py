import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


def _limiter_storage_uri():
    """Use Redis for shared rate limiting across workers when it is reachable"""
    redis_url = os.environ.get("REDIS_URL") or os.environ.get("CACHE_REDIS_URL")
    if not redis_url:
        return "memory://"

    import redis

    try:
        redis.Redis.from_url(redis_url).ping()
    except redis.exceptions.ConnectionError as e:
        logger.warning(f"Redis not available for rate limiter, using memory storage: {e}")
        return "memory://"
    return redis_url


limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
    storage_uri=_limiter_storage_uri(),
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SECURE"] = (
        False
        if app.config.get("DEBUG")
        else app.config.get("FLASK_ENV") == "production"
    )

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    allowed_origins = os.environ.get("ALLOWED_ORIGINS", "*")
    if allowed_origins != "*":
        allowed_origins = allowed_origins.split(",")

    # Redis message queue lets several workers broadcast to the same clients
    message_queue = None
    redis_url = os.environ.get("REDIS_URL")
    if redis_url and not app.config.get("TESTING"):
        message_queue = redis_url

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE", "eventlet"),
        ping_timeout=60,
        ping_interval=25,
        message_queue=message_queue,
    )
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Import and register blueprints
    from liga.routes.main import bp as main_bp

    app.register_blueprint(main_bp)

    from liga.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    from liga.routes.admin import bp as admin_bp

    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from liga.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from liga.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    # Register SocketIO handlers
    from liga import socketio_handlers  # noqa: F401 - imported for side effects

    return app


def show_config_warnings(app):
    """Log configuration warnings and status"""
    config_name = os.environ.get("FLASK_CONFIG", "default")

    logger.info(f"Liga Prode starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not os.environ.get("SECRET_KEY") and not app.config.get("TESTING"):
        logger.warning(
            "Using auto-generated SECRET_KEY (sessions will reset on restart)"
        )

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        logger.info("Using SQLite database")
    elif "postgresql" in db_url:
        logger.info("Using PostgreSQL database")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )


def register_error_handlers(app):
    """Register global JSON error handlers and request timing"""
    from liga.errors import LeagueError
    from liga.utils.performance import (
        log_request_performance,
        track_request_performance,
    )

    app.before_request(track_request_performance)
    app.after_request(log_request_performance)

    @app.errorhandler(LeagueError)
    def league_error(error):
        if error.status_code >= 500:
            db.session.rollback()
            app.logger.error(f"{error.code}: {error}")
            return jsonify({"error": str(error)}), error.status_code
        return jsonify({"error": error.code}), error.status_code

    @app.errorhandler(401)
    def unauthorized_error(error):
        return jsonify({"error": "unauthorized"}), 401

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "not_found"}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({"error": "method_not_allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "internal_error"}), 500

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({"error": "forbidden"}), 403

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "bad_request"}), 400

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "too_many_requests"}), 429


from liga import models  # noqa: F401, E402 - imported for model registration
