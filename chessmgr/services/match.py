"""Match scheduling and result reporting service."""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_, select

from chessmgr.extensions import db
from chessmgr.models import (
    Inscription,
    Match,
    MatchResult,
    Tournament,
    TournamentStatus,
    User,
)
from chessmgr.services.errors import InvariantError, NotFoundError, PreconditionError
from chessmgr.services.rating import apply_match_rating
from chessmgr.services.tournament import TournamentService, ensure_can_manage


def max_round(tournament_id: str) -> int:
    return db.session.execute(
        select(func.coalesce(func.max(Match.round), 0)).where(Match.tournament_id == tournament_id)
    ).scalar_one()


def _coerce_terminal_result(result: MatchResult | str) -> MatchResult:
    try:
        value = result if isinstance(result, MatchResult) else MatchResult(result)
    except ValueError:
        value = None
    if value is None or not value.is_terminal:
        raise InvariantError(
            f"Invalid result '{getattr(result, 'value', result)}'. "
            f"Allowed values: white_wins, black_wins, draw"
        )
    return value


def _is_inscribed(user_id: str, tournament_id: str) -> bool:
    return db.session.execute(
        select(Inscription.id)
        .where(Inscription.user_id == user_id)
        .where(Inscription.tournament_id == tournament_id)
    ).first() is not None


class MatchService:
    """Service for match operations."""

    @staticmethod
    def get_match(match_id: str) -> Match:
        match = db.session.get(Match, match_id)
        if match is None:
            raise NotFoundError("Match not found")
        return match

    @staticmethod
    def list_matches() -> list[Match]:
        query = select(Match).order_by(Match.tournament_id, Match.round)
        return list(db.session.execute(query).scalars())

    @staticmethod
    def list_by_tournament(tournament_id: str) -> list[Match]:
        TournamentService.get_tournament(tournament_id)
        query = (
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.round, Match.created_at)
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def list_by_round(tournament_id: str, round_number: int) -> list[Match]:
        TournamentService.get_tournament(tournament_id)
        if round_number < 1:
            raise PreconditionError("Round number must be at least 1")
        query = (
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .where(Match.round == round_number)
            .order_by(Match.created_at)
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def list_by_player(player_id: str) -> list[Match]:
        """Match history of a player, soft-deleted players included."""
        if db.session.get(User, player_id) is None:
            raise NotFoundError("Player not found")
        query = (
            select(Match)
            .where(or_(Match.white_player_id == player_id, Match.black_player_id == player_id))
            .order_by(Match.created_at.desc())
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def list_ongoing() -> list[Match]:
        query = select(Match).where(Match.result == MatchResult.ONGOING).order_by(Match.created_at)
        return list(db.session.execute(query).scalars())

    @staticmethod
    def create_match(
        tournament_id: str,
        white_player_id: str,
        black_player_id: str,
        round_number: int | None = None,
        actor: User | None = None,
    ) -> Match:
        """Create a single match by hand in an ongoing tournament."""
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament not found")
        if actor is not None:
            ensure_can_manage(actor, tournament)

        if tournament.status is not TournamentStatus.ONGOING:
            raise PreconditionError("Matches can only be created in ongoing tournaments")

        for label, player_id in (('White', white_player_id), ('Black', black_player_id)):
            player = db.session.get(User, player_id)
            if player is None or player.is_deleted:
                raise NotFoundError(f"{label} player not found")

        if white_player_id == black_player_id:
            raise InvariantError("A player cannot play against themselves")

        for label, player_id in (('white', white_player_id), ('black', black_player_id)):
            if not _is_inscribed(player_id, tournament_id):
                raise PreconditionError(f"The {label} player is not registered in this tournament")

        if round_number is None:
            round_number = max_round(tournament_id) + 1
        elif round_number < 1:
            raise PreconditionError("Round number must be at least 1")

        match = Match(
            tournament_id=tournament_id,
            white_player_id=white_player_id,
            black_player_id=black_player_id,
            round=round_number,
            result=MatchResult.NOT_STARTED,
        )
        db.session.add(match)
        db.session.commit()
        return match

    @staticmethod
    def start_match(match_id: str, actor: User | None = None) -> Match:
        """Move a match from not_started to ongoing."""
        match = MatchService.get_match(match_id)
        if actor is not None:
            ensure_can_manage(actor, match.tournament)

        if match.result is not MatchResult.NOT_STARTED:
            raise PreconditionError("The match has already started")

        match.result = MatchResult.ONGOING
        db.session.commit()
        return match

    @staticmethod
    def update_match_result(
        match_id: str,
        result: MatchResult | str,
        actor: User | None = None,
    ) -> Match:
        """
        Record a terminal result and update both players' ratings.

        The result write is committed first; the rating update that follows is
        best-effort and a failure there is logged without undoing the result.

        Raises:
            NotFoundError: If the match does not exist
            AuthorizationError: If ``actor`` is neither organizer nor admin
            InvariantError: If the result is invalid or already final
        """
        new_result = _coerce_terminal_result(result)
        match = MatchService.get_match(match_id)
        if actor is not None:
            ensure_can_manage(actor, match.tournament)

        if match.result.is_terminal:
            raise InvariantError("The match already has a final result")

        match.result = new_result
        db.session.commit()

        try:
            apply_match_rating(match)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Rating update failed for match {match.id}: {e}")

        return match

    @staticmethod
    def delete_match(match_id: str, actor: User | None = None) -> None:
        match = MatchService.get_match(match_id)
        if actor is not None:
            ensure_can_manage(actor, match.tournament)

        if match.result is not MatchResult.NOT_STARTED:
            raise PreconditionError("Only matches that have not started can be deleted")

        db.session.delete(match)
        db.session.commit()


__all__ = ["MatchService", "max_round"]
