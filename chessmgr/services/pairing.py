"""Swiss-style round generation with rematch avoidance."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Set, Tuple

from flask import current_app
from sqlalchemy import select

from chessmgr.extensions import db
from chessmgr.models import (
    Inscription,
    Match,
    MatchResult,
    Tournament,
    TournamentFormat,
    TournamentStatus,
)
from chessmgr.services.db import transaction
from chessmgr.services.errors import NotFoundError, PreconditionError


def points_for(player_id: str, match: Match) -> float:
    """Points ``player_id`` earned in ``match`` (0 for non-terminal matches)."""
    result = match.result
    if not result.is_terminal or not match.involves(player_id):
        return 0.0
    if result is MatchResult.DRAW:
        return 0.5
    if result is MatchResult.WHITE_WINS:
        return 1.0 if match.white_player_id == player_id else 0.0
    if result is MatchResult.BLACK_WINS:
        return 1.0 if match.black_player_id == player_id else 0.0
    return 0.0


def calculate_points(player_id: str, matches: Iterable[Match]) -> float:
    """Cumulative points: win=1, draw=0.5, loss=0, counting only terminal matches."""
    return sum(points_for(player_id, match) for match in matches)


def get_opponents(player_id: str, matches: Iterable[Match]) -> Set[str]:
    """Everyone ``player_id`` has been paired with in the tournament, any round."""
    opponents: Set[str] = set()
    for match in matches:
        if match.white_player_id == player_id:
            opponents.add(match.black_player_id)
        elif match.black_player_id == player_id:
            opponents.add(match.white_player_id)
    return opponents


def derive_total_rounds(tournament_format: TournamentFormat, participant_count: int) -> int:
    """Number of rounds implied by the format and roster size."""
    if participant_count < 2:
        return 1
    if tournament_format is TournamentFormat.ROUND_ROBIN:
        return participant_count - 1
    if tournament_format in (TournamentFormat.SWISS, TournamentFormat.ELIMINATION):
        return math.ceil(math.log2(participant_count))
    raise PreconditionError(f"Unknown tournament format: {tournament_format!r}")


@dataclass
class PlayerStanding:
    """A participant's running score and opponent history for pairing."""
    player_id: str
    points: float = 0.0
    opponents: Set[str] = field(default_factory=set)


def build_player_table(player_ids: Sequence[str], matches: Sequence[Match]) -> List[PlayerStanding]:
    """Players sorted by points descending; ties keep inscription order (stable sort)."""
    table = [
        PlayerStanding(
            player_id=player_id,
            points=calculate_points(player_id, matches),
            opponents=get_opponents(player_id, matches),
        )
        for player_id in player_ids
    ]
    return sorted(table, key=lambda standing: standing.points, reverse=True)


def pair_players(players: Sequence[PlayerStanding]) -> List[Tuple[str, str]]:
    """
    Greedy pairing walk over a sorted player table.

    Each unpaired player is matched with the first later unpaired player they
    have not faced yet; if every remaining candidate is a rematch, the first
    unpaired candidate is taken. The earlier player in sort order gets white.

    Returns:
        List of (white_id, black_id) tuples in pairing order
    """
    pairings: List[Tuple[str, str]] = []
    paired: Set[str] = set()

    for i, player in enumerate(players):
        if player.player_id in paired:
            continue

        candidates = [p for p in players[i + 1:] if p.player_id not in paired]
        if not candidates:
            continue

        opponent = next(
            (c for c in candidates if c.player_id not in player.opponents),
            candidates[0],
        )
        pairings.append((player.player_id, opponent.player_id))
        paired.add(player.player_id)
        paired.add(opponent.player_id)

    return pairings


class RoundGenerator:
    """Generates and persists the next round of a tournament."""

    def __init__(self, tournament_id: str):
        self.tournament_id = tournament_id
        self.tournament: Tournament | None = None
        self.player_ids: List[str] = []
        self.matches: List[Match] = []

    def generate_round(self) -> List[Match]:
        """
        Create the next round's matches.

        Returns:
            The persisted matches, in pairing order

        Raises:
            NotFoundError: If the tournament does not exist
            PreconditionError: If the tournament is not ongoing, the roster is
                too small or odd, all rounds were played, or the previous
                round still has unfinished matches
        """
        with transaction():
            self._load_tournament_data()
            next_round = self._next_round()
            self._check_previous_round_complete(next_round)

            table = build_player_table(self.player_ids, self.matches)
            pairings = pair_players(table)
            created = self._persist_round(pairings, next_round)

        current_app.logger.info(
            f"Generated round {next_round} for tournament {self.tournament_id}: {len(created)} matches"
        )
        return created

    def _load_tournament_data(self) -> None:
        self.tournament = db.session.get(Tournament, self.tournament_id)
        if self.tournament is None:
            raise NotFoundError("Tournament not found")

        if self.tournament.status is not TournamentStatus.ONGOING:
            raise PreconditionError("Rounds can only be generated for ongoing tournaments")

        inscriptions = db.session.execute(
            select(Inscription)
            .where(Inscription.tournament_id == self.tournament_id)
            .order_by(Inscription.registration_date, Inscription.created_at)
        ).scalars().all()
        self.player_ids = [inscription.user_id for inscription in inscriptions]

        if len(self.player_ids) < 2:
            raise PreconditionError("At least 2 participants are required to generate a round")

        if len(self.player_ids) % 2 != 0:
            raise PreconditionError("An even number of participants is required to generate a round")

        if not self.tournament.total_rounds:
            self.tournament.total_rounds = derive_total_rounds(
                self.tournament.tournament_format, len(self.player_ids)
            )
            current_app.logger.info(
                f"Derived {self.tournament.total_rounds} total rounds for tournament {self.tournament_id}"
            )

        self.matches = list(db.session.execute(
            select(Match).where(Match.tournament_id == self.tournament_id)
        ).scalars())

    def _next_round(self) -> int:
        max_round = max((match.round for match in self.matches), default=0)
        next_round = max_round + 1
        if next_round > self.tournament.total_rounds:
            raise PreconditionError(
                f"No more rounds can be generated: the tournament is configured for "
                f"{self.tournament.total_rounds} round(s)"
            )
        return next_round

    def _check_previous_round_complete(self, next_round: int) -> None:
        if next_round == 1:
            return
        pending = [
            match for match in self.matches
            if match.round == next_round - 1 and not match.result.is_terminal
        ]
        if pending:
            raise PreconditionError(
                f"Round {next_round - 1} still has {len(pending)} unfinished match(es); "
                f"record all results before generating a new round"
            )

    def _persist_round(self, pairings: List[Tuple[str, str]], round_number: int) -> List[Match]:
        created: List[Match] = []
        for white_id, black_id in pairings:
            match = Match(
                tournament_id=self.tournament_id,
                white_player_id=white_id,
                black_player_id=black_id,
                round=round_number,
                result=MatchResult.NOT_STARTED,
            )
            db.session.add(match)
            created.append(match)
        db.session.flush()
        return created


def generate_round(tournament_id: str) -> List[Match]:
    """Convenience wrapper around :class:`RoundGenerator`."""
    return RoundGenerator(tournament_id).generate_round()


__all__ = [
    "PlayerStanding",
    "RoundGenerator",
    "build_player_table",
    "calculate_points",
    "derive_total_rounds",
    "generate_round",
    "get_opponents",
    "pair_players",
    "points_for",
]
