"""Player registration in tournaments."""
from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from chessmgr.extensions import db
from chessmgr.models import Inscription, Tournament, TournamentStatus, User
from chessmgr.services.errors import AuthorizationError, NotFoundError, PreconditionError
from chessmgr.services.tournament import can_manage_tournament, count_inscriptions
from chessmgr.utils import utcnow


def _find(user_id: str, tournament_id: str) -> Inscription | None:
    return db.session.execute(
        select(Inscription)
        .where(Inscription.user_id == user_id)
        .where(Inscription.tournament_id == tournament_id)
    ).scalar_one_or_none()


def _ensure_self_or_manager(actor: User | None, user_id: str, tournament: Tournament) -> None:
    if actor is None or actor.id == user_id or can_manage_tournament(actor, tournament):
        return
    raise AuthorizationError("You can only manage your own registrations")


class InscriptionService:
    """Service for tournament registration operations."""

    @staticmethod
    def get_inscription(inscription_id: str) -> Inscription:
        inscription = db.session.get(Inscription, inscription_id)
        if inscription is None:
            raise NotFoundError("Inscription not found")
        return inscription

    @staticmethod
    def list_by_tournament(tournament_id: str) -> list[Inscription]:
        if db.session.get(Tournament, tournament_id) is None:
            raise NotFoundError("Tournament not found")
        query = (
            select(Inscription)
            .where(Inscription.tournament_id == tournament_id)
            .order_by(Inscription.registration_date, Inscription.created_at)
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def list_by_user(user_id: str) -> list[Inscription]:
        if db.session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        query = (
            select(Inscription)
            .where(Inscription.user_id == user_id)
            .order_by(Inscription.registration_date.desc())
        )
        return list(db.session.execute(query).scalars())

    @staticmethod
    def create_inscription(user_id: str, tournament_id: str, actor: User | None = None) -> Inscription:
        """
        Register a player in an upcoming tournament.

        Raises:
            NotFoundError: If the user or tournament does not exist
            PreconditionError: If registration is closed, full or duplicated
        """
        user = db.session.get(User, user_id)
        if user is None or user.is_deleted:
            raise NotFoundError("User not found")
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament not found")
        _ensure_self_or_manager(actor, user_id, tournament)

        if tournament.status is not TournamentStatus.UPCOMING:
            raise PreconditionError("Registration is only open for upcoming tournaments")

        now = utcnow()
        if tournament.registration_deadline is not None and now > tournament.registration_deadline:
            raise PreconditionError("The registration deadline has passed")

        if _find(user_id, tournament_id) is not None:
            raise PreconditionError("User is already registered in this tournament")

        if tournament.max_participants is not None:
            if count_inscriptions(tournament_id) >= tournament.max_participants:
                raise PreconditionError("The tournament has reached its maximum number of participants")

        inscription = Inscription(user_id=user_id, tournament_id=tournament_id, registration_date=now)
        db.session.add(inscription)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise PreconditionError("User is already registered in this tournament") from None

        current_app.logger.info(f"User {user_id} registered in tournament {tournament_id}")
        return inscription

    @staticmethod
    def delete_inscription(inscription_id: str, actor: User | None = None) -> None:
        inscription = InscriptionService.get_inscription(inscription_id)
        tournament = inscription.tournament
        _ensure_self_or_manager(actor, inscription.user_id, tournament)

        if tournament.status is not TournamentStatus.UPCOMING:
            raise PreconditionError("Registrations can only be removed before the tournament starts")

        db.session.delete(inscription)
        db.session.commit()

    @staticmethod
    def cancel_inscription(user_id: str, tournament_id: str, actor: User | None = None) -> None:
        """Withdraw a player; closes a configurable number of hours before the start."""
        tournament = db.session.get(Tournament, tournament_id)
        if tournament is None:
            raise NotFoundError("Tournament not found")
        _ensure_self_or_manager(actor, user_id, tournament)

        inscription = _find(user_id, tournament_id)
        if inscription is None:
            raise NotFoundError("Inscription not found")

        if tournament.status is not TournamentStatus.UPCOMING:
            raise PreconditionError("Registrations can only be cancelled before the tournament starts")

        hours = current_app.config.get('INSCRIPTION_CANCEL_HOURS', 24)
        if tournament.start_date - utcnow() < timedelta(hours=hours):
            raise PreconditionError(
                f"Registrations cannot be cancelled less than {hours} hours before the start"
            )

        db.session.delete(inscription)
        db.session.commit()
        current_app.logger.info(f"User {user_id} withdrew from tournament {tournament_id}")


__all__ = ["InscriptionService"]
