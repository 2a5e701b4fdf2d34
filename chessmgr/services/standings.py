"""Tournament standings derived from match history."""
from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from chessmgr.extensions import db
from chessmgr.models import Inscription, Match, MatchResult, Tournament
from chessmgr.services.errors import NotFoundError
from chessmgr.services.pairing import points_for


@dataclass
class StandingRow:
    player_id: str
    player_name: str
    points: float = 0.0
    games_played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0

    def record(self, match: Match) -> None:
        if not match.result.is_terminal or not match.involves(self.player_id):
            return
        self.games_played += 1
        self.points += points_for(self.player_id, match)
        if match.result is MatchResult.DRAW:
            self.draws += 1
        elif points_for(self.player_id, match) == 1.0:
            self.wins += 1
        else:
            self.losses += 1

    def to_dict(self) -> dict:
        return asdict(self)


def compute_standings(tournament_id: str) -> list[StandingRow]:
    """Per-player points and W/D/L for a tournament, highest points first.

    Ties keep inscription order; no secondary tie-break is applied.
    """
    if db.session.get(Tournament, tournament_id) is None:
        raise NotFoundError("Tournament not found")

    inscriptions = db.session.execute(
        select(Inscription)
        .options(joinedload(Inscription.user))
        .where(Inscription.tournament_id == tournament_id)
        .order_by(Inscription.registration_date, Inscription.created_at)
    ).scalars().all()
    matches = db.session.execute(
        select(Match).where(Match.tournament_id == tournament_id)
    ).scalars().all()

    rows = []
    for inscription in inscriptions:
        row = StandingRow(
            player_id=inscription.user_id,
            player_name=inscription.user.display_name if inscription.user else 'Unknown player',
        )
        for match in matches:
            row.record(match)
        rows.append(row)

    return sorted(rows, key=lambda row: row.points, reverse=True)


__all__ = ["StandingRow", "compute_standings"]
