#!/usr/bin/env python3
"""
PaperReview - Flask Application
===============================
Application factory and development server entry point.

Run with: python -m peer_review.app
"""

from typing import Optional

from flask import Flask, g

from .config_logging import (
    AppConfig, StructuredLogger, VERSION, configure_logging, get_config, get_logger,
)
from .routes import api
from .storage import PaperStorage, create_storage
from .workflow import ReviewWorkflow

logger = get_logger('app')


def create_app(config: Optional[AppConfig] = None,
               storage: Optional[PaperStorage] = None) -> Flask:
    """Build the Flask app around a workflow bound to `storage`."""
    config = config or get_config()
    configure_logging(config)
    is_valid, errors = config.validate()
    if not is_valid:
        for error in errors:
            logger.warning(f"Configuration issue: {error}")

    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.secret_key
    app.config['MAX_CONTENT_LENGTH'] = config.max_content_length
    app.config['PEER_REVIEW_CONFIG'] = config

    workflow = ReviewWorkflow(storage or create_storage(config))
    if config.seed_default_professor:
        workflow.seed_default_professor()
    app.extensions['peer_review_workflow'] = workflow

    @app.before_request
    def assign_correlation_id():
        g.correlation_id = StructuredLogger.new_correlation_id()

    @app.after_request
    def add_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        if getattr(g, 'correlation_id', None):
            response.headers['X-Correlation-ID'] = g.correlation_id
        return response

    app.register_blueprint(api)
    logger.info("PaperReview app created", version=VERSION, storage=config.storage_backend)
    return app


def main():
    config = get_config()
    app = create_app(config)
    app.run(host=config.host, port=config.port, debug=config.debug)


if __name__ == '__main__':
    main()
