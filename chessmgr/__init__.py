"""Application factory for the chess tournament manager."""

from __future__ import annotations

import os

from flask import Flask, jsonify

from chessmgr.blueprints import register_blueprints, register_error_handlers
from chessmgr.config import Config
from chessmgr.extensions import (
    db,
    migrate,
    login_manager,
    limiter,
)
from chessmgr.models import User
from chessmgr.services.db import close_db
from chessmgr.services.scheduler import init_scheduler


def create_app(config_class=Config):
    """Create Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Create missing tables when running without migrations
    if os.getenv('CHESSMGR_SKIP_BOOTSTRAP', '0') != '1':
        with app.app_context():
            db.create_all()

    @login_manager.user_loader
    def load_user(user_id: str):
        user = db.session.get(User, user_id)
        if user is None or user.is_deleted:
            return None
        return user

    @login_manager.unauthorized_handler
    def handle_unauthorized():
        return jsonify({'error': 'Authentication required'}), 401

    register_blueprints(app)
    register_error_handlers(app)

    @app.teardown_appcontext
    def teardown_db(exception):
        close_db()

    # Register CLI commands
    from chessmgr.commands import register_commands
    register_commands(app)

    init_scheduler(app)

    return app


__all__ = ["create_app"]
