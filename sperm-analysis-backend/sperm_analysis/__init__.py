# sperm_analysis/__init__.py
from flask import Flask, jsonify
from flask_cors import CORS
from loguru import logger
from werkzeug.exceptions import HTTPException

from .core.config import Config
from .core.errors import AnalysisError, InternalError
from .api.analyze_routes import analyze_bp
from .api.history_routes import history_bp
from .api.storage_routes import storage_bp
from .utils.log_util import setup_logging


def _register_error_handlers(app):
    @app.errorhandler(AnalysisError)
    def handle_analysis_error(e):
        if e.status_code >= 500:
            logger.error("{}: {}", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        # HTTP errors (404, 405, ...) keep their own response
        if isinstance(e, HTTPException):
            return e
        logger.exception("unhandled error")
        err = InternalError()
        return jsonify(err.to_dict()), err.status_code


def create_app(config_object=None):
    setup_logging()

    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    # Allow the browser frontend to call the API
    CORS(app, resources={r"/api/*": {"origins": "*"}}, allow_headers=["Content-Type", "X-User-Id"])

    app.register_blueprint(analyze_bp, url_prefix="/api")
    app.register_blueprint(history_bp, url_prefix="/api/history")
    app.register_blueprint(storage_bp, url_prefix="/api/storage")

    _register_error_handlers(app)

    return app
