"""User accounts: registration, authentication, profile updates, soft delete."""
from __future__ import annotations

import re
import secrets
from typing import Any

from flask import current_app
from sqlalchemy import delete, func, select, update

from chessmgr.extensions import db
from chessmgr.models import (
    MAX_RATING,
    MIN_RATING,
    Inscription,
    Tournament,
    User,
    UserRole,
)
from chessmgr.services.db import transaction
from chessmgr.services.errors import NotFoundError, PreconditionError
from chessmgr.utils import utcnow

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
DELETED_USER_NAME = "Deleted user"

UPDATABLE_FIELDS = frozenset({'name', 'email', 'password', 'role', 'rating'})


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _validate_email(email: str) -> None:
    if not EMAIL_RE.match(email):
        raise PreconditionError("Invalid email format")


def _validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise PreconditionError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def _email_taken(email: str, exclude_id: str | None = None) -> bool:
    query = select(User.id).where(func.lower(User.email) == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    return db.session.execute(query).first() is not None


def _coerce_role(value: Any) -> UserRole:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        raise PreconditionError(
            f"Invalid role '{value}'. Must be one of: {', '.join(r.value for r in UserRole)}"
        ) from None


def _coerce_rating(value: Any) -> int:
    try:
        rating = int(value)
    except (TypeError, ValueError):
        raise PreconditionError("Rating must be a whole number") from None
    if rating < MIN_RATING or rating > MAX_RATING:
        raise PreconditionError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


class UserService:
    """Service for user account operations."""

    @staticmethod
    def register_user(
        name: str,
        email: str,
        password: str,
        role: UserRole | str = UserRole.PLAYER,
    ) -> User:
        """
        Create a new account.

        Raises:
            PreconditionError: If a field is missing or invalid, or the email is in use
        """
        if not name or not str(name).strip() or not email or not password:
            raise PreconditionError("Name, email and password are required")

        email = normalize_email(email)
        _validate_email(email)
        _validate_password(password)
        if _email_taken(email):
            raise PreconditionError("Email is already in use")

        user = User(name=name.strip(), email=email, role=_coerce_role(role))
        user.set_password(password)
        db.session.add(user)
        db.session.commit()

        current_app.logger.info(f"User registered: {user.email} ({user.id})")
        return user

    @staticmethod
    def authenticate(email: str, password: str) -> User | None:
        """Return the active user matching the credentials, or None."""
        if not email or not password:
            return None
        user = db.session.execute(
            select(User).where(func.lower(User.email) == normalize_email(email))
        ).scalar_one_or_none()
        if user is None or user.is_deleted:
            return None
        if not user.check_password(password):
            return None
        return user

    @staticmethod
    def get_user(user_id: str, include_deleted: bool = False) -> User:
        user = db.session.get(User, user_id)
        if user is None or (user.is_deleted and not include_deleted):
            raise NotFoundError("User not found")
        return user

    @staticmethod
    def list_users() -> list[User]:
        """Active users only, highest rating first."""
        query = (
            select(User)
            .where(User.is_deleted.is_(False))
            .order_by(User.rating.desc(), User.name)
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def update_user(user_id: str, updates: dict[str, Any]) -> User:
        user = UserService.get_user(user_id)

        unknown = sorted(set(updates) - UPDATABLE_FIELDS)
        if unknown:
            raise PreconditionError(f"These fields cannot be edited: {', '.join(unknown)}")

        if 'name' in updates:
            name = (updates['name'] or '').strip()
            if not name:
                raise PreconditionError("Name cannot be empty")
            user.name = name

        if 'email' in updates:
            email = normalize_email(updates['email'] or '')
            _validate_email(email)
            if _email_taken(email, exclude_id=user.id):
                raise PreconditionError("Email is already in use")
            user.email = email

        if 'password' in updates:
            password = updates['password'] or ''
            _validate_password(password)
            user.set_password(password)

        if 'role' in updates:
            user.role = _coerce_role(updates['role'])

        if 'rating' in updates:
            user.rating = _coerce_rating(updates['rating'])

        db.session.commit()
        return user

    @staticmethod
    def delete_user(user_id: str) -> User:
        """
        Soft-delete and anonymize a user.

        Inscriptions are removed and authored tournaments move to an active
        admin (or to no owner when none exists). The row itself is kept so
        historical matches still resolve both players.
        """
        with transaction() as session:
            user = UserService.get_user(user_id)

            session.execute(delete(Inscription).where(Inscription.user_id == user.id))

            admin_id = session.execute(
                select(User.id)
                .where(User.role == UserRole.ADMIN)
                .where(User.is_deleted.is_(False))
                .where(User.id != user.id)
                .order_by(User.created_at)
                .limit(1)
            ).scalar_one_or_none()
            session.execute(
                update(Tournament)
                .where(Tournament.created_by == user.id)
                .values(created_by=admin_id)
            )

            now = utcnow()
            user.original_name = user.name
            user.name = DELETED_USER_NAME
            user.email = f"deleted_{user.id}_{int(now.timestamp() * 1000)}@system.internal"
            user.set_password(secrets.token_urlsafe(32))
            user.is_deleted = True
            user.deleted_at = now

        current_app.logger.info(f"User soft-deleted: {user_id}")
        return user


__all__ = ["UserService", "normalize_email", "MIN_PASSWORD_LENGTH"]
