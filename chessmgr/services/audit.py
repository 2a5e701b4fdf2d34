"""Audit logging for administrative tournament actions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from flask import current_app, has_request_context, request

from chessmgr.extensions import db
from chessmgr.models import AuditLog

if TYPE_CHECKING:
    from chessmgr.models import User


def log_admin_action(
    user: User | None,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None
) -> None:
    """
    Log an administrative action.

    Args:
        user: User who performed the action (None for system actions such as the scheduler)
        action: Action performed (e.g., "status_change", "round_generated")
        entity_type: Type of entity affected
        entity_id: ID of entity affected
        metadata: Additional metadata
    """
    try:
        meta = dict(metadata or {})
        if has_request_context():
            meta['ip_address'] = request.remote_addr

        audit_entry = AuditLog(
            user_id=user.id if user is not None else None,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            meta=meta
        )

        db.session.add(audit_entry)
        db.session.commit()

    except Exception as e:
        # Don't fail the request if audit logging fails
        db.session.rollback()
        current_app.logger.error(f"Failed to log admin action: {e}")


__all__ = ["log_admin_action"]
