"""
Hifz Tracker API - Application Entry Point

Flask application serving the local JSON API under /api plus Prometheus
metrics at /metrics. The repository and the user settings are created once
here and held on app.config for the handlers.
"""

from flask import Flask
import logging

from hifz_tracker.config import config
from hifz_tracker.handlers.common import REPO_KEY, SETTINGS_KEY
from hifz_tracker.utils.storage import Repository, create_store

logger = logging.getLogger(__name__)


def create_app(repo: Repository = None, settings=None, logs_dir: str = None):
    """
    Create and configure the Flask application.

    Args:
        repo: Repository to serve; defaults to the configured store backend
        settings: Settings to start with; defaults to the persisted ones
        logs_dir: Directory for rotating log files (HIFZ_LOG_DIR when omitted)

    Returns:
        Flask: Configured Flask application instance
    """
    app = Flask(__name__)

    # =================================================================
    # LOGGING SETUP
    # =================================================================

    from hifz_tracker.middleware.logging import setup_logging, log_request_info, log_response_info
    setup_logging(app, logs_dir)
    app.logger.info("=" * 60)
    app.logger.info("HIFZ TRACKER API STARTING")
    app.logger.info("=" * 60)

    # =================================================================
    # STATE
    # =================================================================

    repo = repo or Repository(create_store())
    app.config[REPO_KEY] = repo
    app.config[SETTINGS_KEY] = settings or repo.load_settings()

    # =================================================================
    # ERROR HANDLERS
    # =================================================================

    from hifz_tracker.middleware.error_handler import register_error_handlers
    register_error_handlers(app)

    # =================================================================
    # MIDDLEWARE REGISTRATION
    # =================================================================

    app.before_request(log_request_info)
    app.after_request(log_response_info)

    from hifz_tracker.middleware.metrics import register_metrics
    register_metrics(app)

    # =================================================================
    # ROUTE REGISTRATION
    # =================================================================

    from hifz_tracker.api import api
    app.register_blueprint(api)
    app.logger.info("API blueprint registered at /api/*")

    return app


def main():
    """Run the development server on HOST:PORT."""
    app = create_app()
    app.logger.info(f"Starting Hifz Tracker API on {config.HOST}:{config.PORT} "
                    f"(store={config.STORE_BACKEND}, timezone={config.TIMEZONE})")
    app.run(host=config.HOST, port=config.PORT)


if __name__ == '__main__':
    main()
