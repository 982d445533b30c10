#!/usr/bin/env python3
"""
Workshep - Peer Assessment Workshop Service
===========================================
Run: python3 -m workshep.app
Then call the JSON API at http://localhost:3000/api/
"""
import logging

from flask import Flask, jsonify
from flask_cors import CORS

from .auth import init_auth
from .config import HOST, PORT, DEBUG
from .errors import WorkshepError
from .routes import register_routes

logger = logging.getLogger(__name__)


def create_app():
    """Build the Flask application with auth, routes and error handling."""
    logging.basicConfig(
        level=logging.DEBUG if DEBUG else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    app = Flask(__name__)
    CORS(app)

    # ══════════════════════════════════════════════════════════════
    # AUTHENTICATION
    # ══════════════════════════════════════════════════════════════
    init_auth(app)

    # ══════════════════════════════════════════════════════════════
    # ROUTES
    # ══════════════════════════════════════════════════════════════
    register_routes(app)

    @app.errorhandler(WorkshepError)
    def handle_workshep_error(e):
        logger.info("Request failed: %s", e.message)
        return jsonify(e.to_dict()), e.status_code

    return app


def main():
    app = create_app()
    logger.info("Starting Workshep on %s:%s", HOST, PORT)
    app.run(host=HOST, port=PORT, debug=DEBUG)


if __name__ == '__main__':
    main()
