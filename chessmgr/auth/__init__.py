"""Authentication helpers shared across blueprints."""

from __future__ import annotations

from functools import wraps
from typing import Callable, TypeVar, cast

from flask import jsonify
from flask_login import current_user

from chessmgr.models import UserRole

F = TypeVar('F', bound=Callable[..., object])


def login_required_json(func: F) -> F:
    """Decorator requiring an authenticated session; answers 401 JSON otherwise."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Authentication required'}), 401
        return func(*args, **kwargs)
    return cast(F, wrapper)


def admin_required(func: F) -> F:
    """Decorator to ensure the current user has admin privileges."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Authentication required'}), 401

        if not current_user.has_role(UserRole.ADMIN):
            return jsonify({'error': 'Administrator privileges required'}), 403

        return func(*args, **kwargs)

    return cast(F, wrapper)


def self_or_admin_required(func: F) -> F:
    """Decorator for routes taking ``user_id``: the user themselves or an admin."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({'error': 'Authentication required'}), 401

        if current_user.id != kwargs.get('user_id') and not current_user.is_admin:
            return jsonify({'error': 'You can only manage your own account'}), 403

        return func(*args, **kwargs)
    return cast(F, wrapper)


__all__ = ['login_required_json', 'admin_required', 'self_or_admin_required']
