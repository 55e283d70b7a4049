"""
Staffing Capacity API - Flask application for staffing and capacity planning

Exposes the capacity & conflict resolution engine over a small REST surface:
employee availability, conflict detection, skill matching, greedy staffing
optimization and the assignment lifecycle.

Environment Variables:
- FLASK_ENV: development/production
- DATABASE_URL: Database connection string
- SECRET_KEY: Flask secret key
- CORS_ORIGINS: Allowed CORS origins
- LOG_LEVEL: Log level outside debug mode
- STANDARD_WEEKLY_HOURS / MAX_WEEKLY_HOURS: capacity policy

Usage:
    python app.py

Or with Gunicorn (production):
    gunicorn "app:create_app('production')" --bind 0.0.0.0:8000
"""

import logging
import os

from flask import Flask, jsonify, current_app, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from config import config
from db import db
from errors import register_error_handlers

# Module loggers that share the application's handler
ENGINE_LOGGERS = ('engine', 'lifecycle', 'repository', 'errors', 'database')

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(app, config_name='development'):
    """Attach one console handler to the app logger and the engine loggers"""
    if app.config.get('DEBUG', False):
        log_level = logging.INFO
    else:
        log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'WARNING')).upper(), logging.WARNING)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for logger in [app.logger] + [logging.getLogger(name) for name in ENGINE_LOGGERS]:
        for existing in logger.handlers[:]:
            logger.removeHandler(existing)
        logger.setLevel(log_level)
        logger.addHandler(handler)
    for name in ENGINE_LOGGERS:
        logging.getLogger(name).propagate = False

    app.logger.info(
        f"Staffing Capacity API starting in {config_name} mode "
        f"(standard week {app.config['STANDARD_WEEKLY_HOURS']}h, "
        f"ceiling {app.config['MAX_WEEKLY_HOURS']}h)"
    )


def register_request_logging(app):
    @app.before_request
    def log_request_info():
        current_app.logger.info(f'{request.method} {request.url} - {request.remote_addr}')

    @app.after_request
    def log_response_info(response):
        current_app.logger.info(f'Response: {response.status_code} for {request.method} {request.path}')
        return response


def create_app(config_name='development'):
    """
    Application factory.

    Args:
        config_name: Key into config.config (development, production, testing)

    Returns:
        Flask: configured application with the `api` blueprint under /api
    """
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    configure_logging(app, config_name)

    db.init_app(app)
    CORS(app, origins=app.config['CORS_ORIGINS'])
    # Limits come from the RATELIMIT_* settings
    Limiter(key_func=get_remote_address, app=app)
    Migrate(app, db)

    register_error_handlers(app)
    register_request_logging(app)

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Liveness check"""
        return jsonify({
            'status': 'healthy',
            'message': 'Staffing Capacity API is running'
        })

    with app.app_context():
        from database import init_db, seed_database
        init_db()
        if app.config.get('SEED_DATABASE'):
            seed_database()

    from routes import api
    app.register_blueprint(api, url_prefix='/api')

    return app


if __name__ == '__main__':
    app = create_app(os.environ.get('FLASK_ENV', 'development'))
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5002)), debug=app.config.get('DEBUG', False))
