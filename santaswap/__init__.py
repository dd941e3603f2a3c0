from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from .extensions import init_extensions
from .policies import RateLimiter
from .security import AssignmentCipher, apply_security_headers
from .services.assignments import AssignmentEngine
from .storage import DataStore
from .views.parties import api_bp
from .views.public import public_bp

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("santaswap").setLevel(level.upper())


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__)

    app.config["DATA_DIR"] = os.environ.get("DATA_DIR", os.path.join(os.getcwd(), "data"))
    app.config["BASE_URL"] = os.environ.get("BASE_URL", "http://localhost:8003")
    app.config["TIMEZONE"] = os.environ.get("TZ", "Australia/Sydney")
    app.config["SECRET_KEY"] = os.environ.get("SECRET_KEY")
    app.config["ASSIGNMENT_ENC_KEY"] = os.environ.get("ASSIGNMENT_ENC_KEY", "").strip()
    app.config["RATE_LIMIT_MAX_REQUESTS"] = int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", "10"))
    app.config["RATE_LIMIT_WINDOW_SECONDS"] = float(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "60"))
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024

    if test_config:
        app.config.update(test_config)

    configure_logging(app.config["LOG_LEVEL"])
    logger.info("=== Secret Santa application starting ===")
    logger.info(
        "Configuration: DATA_DIR=%s BASE_URL=%s TZ=%s encryption=%s",
        app.config["DATA_DIR"],
        app.config["BASE_URL"],
        app.config["TIMEZONE"],
        "on" if (app.config["ASSIGNMENT_ENC_KEY"] or app.config["SECRET_KEY"]) else "off",
    )

    # StorageUnavailableError propagates: no app without a writable data dir.
    store = DataStore(Path(app.config["DATA_DIR"]), cipher=AssignmentCipher.from_config(app.config))
    store.load()

    engine = AssignmentEngine(store)
    limiter = RateLimiter(
        max_requests=app.config["RATE_LIMIT_MAX_REQUESTS"],
        window_seconds=app.config["RATE_LIMIT_WINDOW_SECONDS"],
    )
    init_extensions(app, store, engine, limiter)

    # Blueprints
    app.register_blueprint(public_bp)
    app.register_blueprint(api_bp)

    register_request_hooks(app)
    register_error_handlers(app)

    logger.info("=== Server ready ===")
    return app


def register_request_hooks(app: Flask) -> None:
    @app.before_request
    def start_timer():
        g.request_started = time.monotonic()

    @app.after_request
    def finish_request(response):
        started = g.pop("request_started", None)
        duration_ms = (time.monotonic() - started) * 1000 if started is not None else 0.0
        logger.info(
            "%s %s %s %.0fms ip=%s",
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            request.remote_addr,
        )
        return apply_security_headers(response)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def not_found(e):
        logger.warning("404 Not Found: %s %s", request.method, request.url)
        return jsonify(error="Not found"), 404

    @app.errorhandler(413)
    def too_large(e):
        return jsonify(error="Request body too large"), 413

    @app.errorhandler(Exception)
    def unhandled(e):
        if isinstance(e, HTTPException):
            return jsonify(error=e.description), e.code
        logger.exception("Unhandled error on %s", request.url)
        return jsonify(error="Internal server error"), 500
