"""Liveness endpoint."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from chessmgr.extensions import db
from chessmgr.utils import utcnow

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health():
    database = 'ok'
    try:
        db.session.execute(text('SELECT 1'))
    except Exception as e:
        current_app.logger.error(f"Health check database probe failed: {e}")
        database = 'unavailable'

    scheduler = current_app.extensions.get('tournament_scheduler')
    return jsonify({
        'status': 'ok' if database == 'ok' else 'degraded',
        'database': database,
        'scheduler_running': bool(scheduler and scheduler.is_running),
        'timestamp': utcnow().isoformat(),
    }), 200 if database == 'ok' else 503
