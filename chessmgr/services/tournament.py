"""Tournament lifecycle service."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from flask import current_app
from sqlalchemy import func, select

from chessmgr.extensions import db
from chessmgr.models import (
    Inscription,
    Match,
    Tournament,
    TournamentFormat,
    TournamentStatus,
    User,
)
from chessmgr.services.db import transaction
from chessmgr.services.errors import AuthorizationError, NotFoundError, PreconditionError
from chessmgr.services.tournament_state import (
    coerce_format,
    coerce_status,
    ensure_transition,
    validate_dates,
    validate_update,
)
from chessmgr.utils import parse_datetime, utcnow


def can_manage_tournament(user: User | None, tournament: Tournament) -> bool:
    """Admins manage every tournament; players only the ones they created."""
    if user is None:
        return False
    if user.is_admin:
        return True
    return tournament.created_by is not None and tournament.created_by == user.id


def ensure_can_manage(user: User | None, tournament: Tournament) -> None:
    if not can_manage_tournament(user, tournament):
        raise AuthorizationError("Only the tournament organizer or an admin can do this")


def count_inscriptions(tournament_id: str) -> int:
    return db.session.execute(
        select(func.count(Inscription.id)).where(Inscription.tournament_id == tournament_id)
    ).scalar_one()


def count_matches(tournament_id: str) -> int:
    return db.session.execute(
        select(func.count(Match.id)).where(Match.tournament_id == tournament_id)
    ).scalar_one()


REQUIRED_FIELDS = frozenset({'name', 'start_date', 'end_date', 'tournament_format'})


def _parse_changes(data: dict[str, Any]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for key, value in data.items():
        if key in REQUIRED_FIELDS and (value is None or value == ''):
            raise PreconditionError(f"'{key}' cannot be empty")
        if key in ('start_date', 'end_date', 'registration_deadline'):
            try:
                changes[key] = parse_datetime(value)
            except ValueError:
                raise PreconditionError(f"Invalid date for '{key}': {value!r}") from None
        elif key == 'tournament_format':
            changes[key] = coerce_format(value)
        elif key in ('max_participants', 'total_rounds'):
            changes[key] = _positive_int_or_none(key, value)
        elif key in ('name', 'location') and isinstance(value, str):
            changes[key] = value.strip()
        else:
            changes[key] = value
    return changes


def _positive_int_or_none(key: str, value: Any) -> int | None:
    if value is None or value == '':
        return None
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise PreconditionError(f"'{key}' must be a whole number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise PreconditionError(f"'{key}' must be a whole number") from None
    if number < 1:
        raise PreconditionError(f"'{key}' must be at least 1")
    return number


class TournamentService:
    """Service for tournament lifecycle operations."""

    @staticmethod
    def create_tournament(
        name: str,
        start_date: datetime | str,
        end_date: datetime | str,
        location: str | None = None,
        description: str | None = None,
        registration_deadline: datetime | str | None = None,
        max_participants: int | None = None,
        tournament_format: TournamentFormat | str | None = None,
        total_rounds: int | None = None,
        creator: User | None = None,
    ) -> Tournament:
        """Create a new tournament in upcoming status."""
        if not name or not str(name).strip() or not start_date or not end_date:
            raise PreconditionError("Name, start date and end date are required")

        changes = _parse_changes({
            'name': name,
            'start_date': start_date,
            'end_date': end_date,
            'registration_deadline': registration_deadline,
            'max_participants': max_participants,
            'total_rounds': total_rounds,
        })
        validate_dates(changes['start_date'], changes['end_date'], changes['registration_deadline'])

        if changes['start_date'] < utcnow():
            raise PreconditionError("Start date cannot be in the past")

        tournament = Tournament(
            name=changes['name'],
            description=description,
            location=location,
            start_date=changes['start_date'],
            end_date=changes['end_date'],
            registration_deadline=changes['registration_deadline'],
            max_participants=changes['max_participants'],
            tournament_format=coerce_format(tournament_format) if tournament_format else TournamentFormat.SWISS,
            total_rounds=changes['total_rounds'],
            status=TournamentStatus.UPCOMING,
            created_by=creator.id if creator is not None else None,
        )
        db.session.add(tournament)
        db.session.commit()
        return tournament

    @staticmethod
    def get_tournament(tournament_id: str) -> Tournament:
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament not found")
        return tournament

    @staticmethod
    def list_tournaments(status: TournamentStatus | str | None = None) -> list[Tournament]:
        """List tournaments, newest start date first."""
        query = select(Tournament)
        if status:
            query = query.where(Tournament.status == coerce_status(status))
        query = query.order_by(Tournament.start_date.desc())
        return list(db.session.execute(query).scalars())

    @staticmethod
    def list_upcoming() -> list[Tournament]:
        query = (
            select(Tournament)
            .where(Tournament.status == TournamentStatus.UPCOMING)
            .order_by(Tournament.start_date.asc())
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def update_tournament(
        tournament_id: str,
        updates: dict[str, Any],
        actor: User | None = None,
    ) -> Tournament:
        """Update tournament details subject to the status edit guards."""
        tournament = TournamentService.get_tournament(tournament_id)
        if actor is not None:
            ensure_can_manage(actor, tournament)

        changes = _parse_changes(updates)
        validate_update(tournament, changes, count_inscriptions(tournament_id))

        for key, value in changes.items():
            setattr(tournament, key, value)

        db.session.commit()
        return tournament

    @staticmethod
    def update_tournament_status(
        tournament_id: str,
        status: TournamentStatus | str,
        actor: User | None = None,
    ) -> Tournament:
        """Explicit status change; routes each target through its transition rules."""
        target = coerce_status(status)

        if target is TournamentStatus.ONGOING:
            return TournamentService.start_tournament(tournament_id, actor=actor)
        if target is TournamentStatus.FINISHED:
            return TournamentService.finish_tournament(tournament_id, actor=actor)
        if target is TournamentStatus.CANCELLED:
            return TournamentService.cancel_tournament(tournament_id, actor=actor)
        if target is TournamentStatus.UPCOMING:
            tournament = TournamentService.get_tournament(tournament_id)
            ensure_transition(tournament.status, target)
            return tournament
        raise PreconditionError(f"Unsupported status: {target!r}")

    @staticmethod
    def start_tournament(tournament_id: str, actor: User | None = None) -> Tournament:
        """Manual start: upcoming -> ongoing, requires the minimum participant count."""
        tournament = TournamentService.get_tournament(tournament_id)
        if actor is not None:
            ensure_can_manage(actor, tournament)
        ensure_transition(tournament.status, TournamentStatus.ONGOING)

        minimum = current_app.config.get('MIN_PARTICIPANTS_TO_START', 4)
        participants = count_inscriptions(tournament_id)
        if participants < minimum:
            raise PreconditionError(
                f"At least {minimum} registered participants are required to start the tournament "
                f"({participants} registered)"
            )

        tournament.status = TournamentStatus.ONGOING
        db.session.commit()
        current_app.logger.info(f"Tournament started manually: \"{tournament.name}\" ({tournament.id})")
        return tournament

    @staticmethod
    def finish_tournament(tournament_id: str, actor: User | None = None) -> Tournament:
        """Manual finish: ongoing -> finished."""
        tournament = TournamentService.get_tournament(tournament_id)
        if actor is not None:
            ensure_can_manage(actor, tournament)
        ensure_transition(tournament.status, TournamentStatus.FINISHED)

        tournament.status = TournamentStatus.FINISHED
        db.session.commit()
        current_app.logger.info(f"Tournament finished manually: \"{tournament.name}\" ({tournament.id})")
        return tournament

    @staticmethod
    def cancel_tournament(tournament_id: str, actor: User | None = None) -> Tournament:
        tournament = TournamentService.get_tournament(tournament_id)
        if actor is not None:
            ensure_can_manage(actor, tournament)
        ensure_transition(tournament.status, TournamentStatus.CANCELLED)

        tournament.status = TournamentStatus.CANCELLED
        db.session.commit()
        current_app.logger.info(f"Tournament cancelled: \"{tournament.name}\" ({tournament.id})")
        return tournament

    @staticmethod
    def deletion_block_reason(tournament: Tournament) -> str | None:
        if tournament.status is TournamentStatus.ONGOING:
            return "An ongoing tournament cannot be deleted. Cancel or finish it first."
        if tournament.status is TournamentStatus.FINISHED:
            return "A finished tournament cannot be deleted; its history is preserved."
        return None

    @staticmethod
    def get_deletion_info(tournament_id: str) -> dict[str, Any]:
        tournament = TournamentService.get_tournament(tournament_id)
        reason = TournamentService.deletion_block_reason(tournament)
        inscription_count = count_inscriptions(tournament_id)
        match_count = count_matches(tournament_id)
        return {
            'can_delete': reason is None,
            'reason': reason,
            'relations': {
                'has_inscriptions': inscription_count > 0,
                'has_matches': match_count > 0,
                'inscription_count': inscription_count,
                'match_count': match_count,
            },
        }

    @staticmethod
    def delete_tournament(tournament_id: str, actor: User | None = None) -> None:
        """Delete an upcoming or cancelled tournament with its inscriptions and matches."""
        with transaction() as session:
            tournament = TournamentService.get_tournament(tournament_id)
            if actor is not None:
                ensure_can_manage(actor, tournament)

            reason = TournamentService.deletion_block_reason(tournament)
            if reason:
                raise PreconditionError(reason)

            session.delete(tournament)

        current_app.logger.info(f"Tournament deleted: {tournament_id}")


__all__ = [
    "TournamentService",
    "can_manage_tournament",
    "ensure_can_manage",
    "count_inscriptions",
    "count_matches",
]
