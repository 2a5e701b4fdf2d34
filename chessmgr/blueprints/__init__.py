"""HTTP blueprints for the tournament API."""

from __future__ import annotations

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from chessmgr.blueprints.auth import auth_bp
from chessmgr.blueprints.health import health_bp
from chessmgr.blueprints.inscriptions import inscriptions_bp
from chessmgr.blueprints.matches import matches_bp
from chessmgr.blueprints.tournaments import tournaments_bp
from chessmgr.blueprints.users import users_bp
from chessmgr.extensions import db
from chessmgr.services.errors import ChessManagerError


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(health_bp, url_prefix='/api')
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(tournaments_bp, url_prefix='/api/tournaments')
    app.register_blueprint(matches_bp, url_prefix='/api/matches')
    app.register_blueprint(inscriptions_bp, url_prefix='/api/inscriptions')
    app.register_blueprint(users_bp, url_prefix='/api/users')


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ChessManagerError)
    def handle_domain_error(error: ChessManagerError):
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {error}")
        return jsonify({'error': 'Internal server error'}), 500


__all__ = ['register_blueprints', 'register_error_handlers']
