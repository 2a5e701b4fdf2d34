"""JSON shapes returned by the API blueprints."""

from __future__ import annotations

from datetime import datetime

from chessmgr.models import Inscription, Match, Tournament, User


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user(user: User, include_private: bool = False) -> dict:
    """Public view of a user. Soft-deleted users show only their placeholder name."""
    data = {
        'id': user.id,
        'name': user.display_name,
        'rating': user.rating,
        'is_deleted': user.is_deleted,
        'deleted_at': _iso(user.deleted_at),
    }
    if include_private:
        data['email'] = user.email
        data['role'] = user.role.value
        data['created_at'] = _iso(user.created_at)
    return data


def serialize_player_ref(user: User | None) -> dict | None:
    if user is None:
        return None
    return {
        'id': user.id,
        'name': user.display_name,
        'rating': user.rating,
        'is_deleted': user.is_deleted,
    }


def serialize_tournament(tournament: Tournament, inscription_count: int | None = None) -> dict:
    data = {
        'id': tournament.id,
        'name': tournament.name,
        'description': tournament.description,
        'location': tournament.location,
        'start_date': _iso(tournament.start_date),
        'end_date': _iso(tournament.end_date),
        'registration_deadline': _iso(tournament.registration_deadline),
        'max_participants': tournament.max_participants,
        'tournament_format': tournament.tournament_format.value,
        'total_rounds': tournament.total_rounds,
        'status': tournament.status.value,
        'created_by': tournament.created_by,
        'created_at': _iso(tournament.created_at),
    }
    if inscription_count is not None:
        data['inscription_count'] = inscription_count
    return data


def serialize_match(match: Match) -> dict:
    return {
        'id': match.id,
        'tournament_id': match.tournament_id,
        'tournament': {
            'id': match.tournament.id,
            'name': match.tournament.name,
        } if match.tournament else None,
        'round': match.round,
        'result': match.result.value,
        'white_player': serialize_player_ref(match.white_player),
        'black_player': serialize_player_ref(match.black_player),
        'created_at': _iso(match.created_at),
    }


def serialize_inscription(inscription: Inscription) -> dict:
    return {
        'id': inscription.id,
        'user_id': inscription.user_id,
        'tournament_id': inscription.tournament_id,
        'registration_date': _iso(inscription.registration_date),
        'user': serialize_player_ref(inscription.user),
    }


__all__ = [
    'serialize_user',
    'serialize_player_ref',
    'serialize_tournament',
    'serialize_match',
    'serialize_inscription',
]
