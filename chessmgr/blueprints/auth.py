"""Session authentication endpoints."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_user, logout_user

from chessmgr.auth import login_required_json
from chessmgr.blueprints.serializers import serialize_user
from chessmgr.extensions import limiter
from chessmgr.services.audit import log_admin_action
from chessmgr.services.user import UserService

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("10 per hour")
def register():
    """Create a player account and sign it in."""
    data = request.get_json(silent=True) or {}
    user = UserService.register_user(
        name=data.get('name', ''),
        email=data.get('email', ''),
        password=data.get('password', ''),
    )
    login_user(user)
    log_admin_action(user=user, action='register', entity_type='user', entity_id=user.id)
    return jsonify({'user': serialize_user(user, include_private=True)}), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'error': 'Email and password are required'}), 400

    user = UserService.authenticate(email, password)
    if user is None:
        current_app.logger.warning(f"Failed login attempt for {email} from {request.remote_addr}")
        return jsonify({'error': 'Invalid email or password'}), 401

    login_user(user, remember=bool(data.get('remember_me')))
    log_admin_action(user=user, action='login', entity_type='user', entity_id=user.id)
    return jsonify({'user': serialize_user(user, include_private=True)})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    if current_user.is_authenticated:
        log_admin_action(user=current_user, action='logout', entity_type='user', entity_id=current_user.id)
    logout_user()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/profile', methods=['GET'])
@login_required_json
def profile():
    return jsonify({'user': serialize_user(current_user, include_private=True)})
