"""User administration API."""
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user

from chessmgr.auth import admin_required, self_or_admin_required
from chessmgr.blueprints.serializers import serialize_user
from chessmgr.services.audit import log_admin_action
from chessmgr.services.user import UserService

users_bp = Blueprint('users', __name__)

ADMIN_ONLY_FIELDS = frozenset({'role', 'rating'})


@users_bp.route('', methods=['GET'])
def list_users():
    """Active users, highest rating first."""
    return jsonify([serialize_user(u) for u in UserService.list_users()])


@users_bp.route('/<user_id>', methods=['GET'])
def get_user(user_id):
    user = UserService.get_user(user_id, include_deleted=True)
    include_private = current_user.is_authenticated and (current_user.is_admin or current_user.id == user.id)
    return jsonify(serialize_user(user, include_private=include_private))


@users_bp.route('', methods=['POST'])
@admin_required
def create_user():
    data = request.get_json(silent=True) or {}
    user = UserService.register_user(
        name=data.get('name', ''),
        email=data.get('email', ''),
        password=data.get('password', ''),
        role=data.get('role') or 'player',
    )

    log_admin_action(
        user=current_user,
        action='create',
        entity_type='user',
        entity_id=user.id,
        metadata={'role': user.role.value},
    )

    return jsonify(serialize_user(user, include_private=True)), 201


@users_bp.route('/<user_id>', methods=['PUT', 'PATCH'])
@self_or_admin_required
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    if not current_user.is_admin and ADMIN_ONLY_FIELDS & set(data):
        return jsonify({'error': 'Only administrators can change role or rating'}), 403

    user = UserService.update_user(user_id, data)

    log_admin_action(
        user=current_user,
        action='update',
        entity_type='user',
        entity_id=user.id,
        metadata={'fields': sorted(k for k in data if k != 'password')},
    )

    return jsonify(serialize_user(user, include_private=True))


@users_bp.route('/<user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    UserService.delete_user(user_id)
    log_admin_action(user=current_user, action='delete', entity_type='user', entity_id=user_id)
    return jsonify({'message': 'User deleted'})
