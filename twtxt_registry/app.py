"""
twtxt registry - application factory and server entry point
"""
import logging
import os
import signal
import sys

import structlog
from flask import Flask
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from twtxt_registry.constants import BUILD_VERSION, CONFIG_FILE
from twtxt_registry.db import database_uri, db, init_db
from twtxt_registry.exceptions import register_exception_handlers
from twtxt_registry.jobs.scheduler import JobScheduler
from twtxt_registry.metrics import init_metrics
from twtxt_registry.repositories.pagination import page_bounds
from twtxt_registry.routes.api import api_bp
from twtxt_registry.routes.web import web_bp
from twtxt_registry.services.registry_service import Registry
from twtxt_registry.settings import load_settings, reload_conf, verify_settings
from twtxt_registry.utils import ColoredFormatter, FilterRemoveDateFromWerkzeugLogs

limiter = Limiter(key_func=get_remote_address)

logger = logging.getLogger("main")


def configure_logging(debug=False):
    formatter = ColoredFormatter(
        "[%(asctime)s.%(msecs)03d] %(levelname)s (%(module)s) %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, handlers=[handler], force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
            if os.environ.get("LOG_FORMAT") == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Apply filter to hide date from http access logs
    logging.getLogger("werkzeug").addFilter(FilterRemoveDateFromWerkzeugLogs())


def user_agent(settings):
    instance = settings.get("instance", {})
    return f"twtxt-registry/{BUILD_VERSION} (+{instance.get('site_url', '')}; @{instance.get('site_name', '')})"


def apply_settings(app, settings):
    """Copy the settings the request path needs into the app config"""
    server = settings["server"]
    app.config["ADMIN_PASSWORD_HASH"] = server.get("admin_password")
    app.config["REQUEST_TIMEOUT"] = server.get("request_timeout")
    app.config["FETCH_INTERVAL"] = server.get("fetch_interval")
    app.config["INSTANCE"] = settings["instance"]
    app.config["RATELIMIT_DEFAULT"] = (
        f"{server.get('http_requests_per_minute')} per minute;{server.get('http_requests_burst_max')} per second"
    )


def create_app(settings=None, database_path=None, http_session=None, start_scheduler=True, testing=False):
    """Application factory"""
    settings = settings or load_settings()
    server = settings["server"]

    app = Flask(__name__)
    if database_path is None:
        database_path = server.get("database_path")
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri(database_path)
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["TESTING"] = testing
    app.config["RATELIMIT_ENABLED"] = not testing
    app.config["RATELIMIT_STORAGE_URI"] = "memory://"
    apply_settings(app, settings)

    # Initialize components
    db.init_app(app)
    limiter.init_app(app)

    # Register exception handlers
    register_exception_handlers(app)

    # Register blueprints
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    # Initialize metrics
    init_metrics(app)

    app.registry = Registry(
        server.get("entries_per_page_min"),
        server.get("entries_per_page_max"),
        http_session=http_session,
        fetch_timeout=server.get("fetch_timeout"),
        user_agent=user_agent(settings),
    )

    with app.app_context():
        init_db(app)
        app.registry.refresh_counts()

    app.job_scheduler = None
    if start_scheduler:
        app.job_scheduler = JobScheduler()
        app.job_scheduler.init_app(app, server.get("fetch_interval"))

    return app


def reload_app_settings(app):
    """Re-read the settings file into a running app"""
    settings = reload_conf()
    success, errors = verify_settings(settings)
    if not success:
        for error in errors:
            logger.error(f"Configuration error in {error['path']}: {error['error']}")
        logger.error("Keeping the previous configuration")
        return False

    server = settings["server"]
    apply_settings(app, settings)
    app.registry.min_per_page, app.registry.max_per_page = page_bounds(
        server.get("entries_per_page_min"), server.get("entries_per_page_max")
    )
    app.registry.fetcher.timeout = server.get("fetch_timeout")
    if app.job_scheduler is not None:
        app.job_scheduler.reschedule_sync(server.get("fetch_interval"))
    logger.info(f"Configuration reloaded from {CONFIG_FILE}")
    return True


def main():
    settings = load_settings()
    configure_logging(settings["server"].get("debug_mode"))

    success, errors = verify_settings(settings)
    if not success:
        for error in errors:
            logger.error(f"Configuration error in {error['path']}: {error['error']}")
        sys.exit(1)

    app = create_app(settings)

    signal.signal(signal.SIGHUP, lambda signum, frame: reload_app_settings(app))

    server = settings["server"]
    logger.info(f"Build Version: {BUILD_VERSION}")
    logger.info(f"Starting server on {server['bind_ip']}:{server['port']}...")
    try:
        app.run(host=server["bind_ip"], port=server["port"], debug=False, use_reloader=False)
    finally:
        if app.job_scheduler is not None:
            app.job_scheduler.shutdown()
        logger.info("Shutting down server...")


if __name__ == "__main__":
    main()
