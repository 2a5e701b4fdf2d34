"""Elo rating engine.

Implements the standard Elo update used after every finished match:

- Expected score: ``E = 1 / (1 + 10^((R_opp - R_self) / 400))``
- Delta: ``round(K * (S - E))``, new rating ``max(0, R + delta)``

With the dynamic policy each side's K-factor comes from its own rating:
below 2100 -> 40, 2100-2399 -> 32, 2400 and above -> 24.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from flask import current_app

from chessmgr.extensions import db
from chessmgr.models import MAX_RATING, MIN_RATING, Match, MatchResult, User
from chessmgr.services.errors import InvariantError, NotFoundError


@dataclass(frozen=True)
class RatingUpdate:
    """Outcome of a rating computation for one match."""
    new_white: int
    new_black: int
    delta_white: int
    delta_black: int


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability-like expected score of ``rating`` against ``opponent_rating``."""
    return 1.0 / (1.0 + 10 ** ((opponent_rating - rating) / 400.0))


def k_factor(rating: int) -> int:
    if rating < 2100:
        return 40
    if rating < 2400:
        return 32
    return 24


def actual_scores(result: MatchResult) -> tuple[float, float]:
    """(white, black) scores for a terminal result."""
    if result is MatchResult.WHITE_WINS:
        return 1.0, 0.0
    if result is MatchResult.BLACK_WINS:
        return 0.0, 1.0
    if result is MatchResult.DRAW:
        return 0.5, 0.5
    if result in (MatchResult.NOT_STARTED, MatchResult.ONGOING):
        raise InvariantError(f"Cannot rate a match whose result is '{result.value}'")
    raise InvariantError(f"Invalid match result: {result!r}")


def _coerce_result(result: MatchResult | str) -> MatchResult:
    if isinstance(result, MatchResult):
        return result
    try:
        return MatchResult(result)
    except ValueError:
        raise InvariantError(f"Invalid match result: {result!r}") from None


def compute_updated_ratings(
    white_rating: int,
    black_rating: int,
    result: MatchResult | str,
    k: int | None = None,
) -> RatingUpdate:
    """
    Compute both players' new ratings after a match.

    Args:
        white_rating: Current rating of the white player
        black_rating: Current rating of the black player
        result: Terminal match result
        k: Fixed K-factor for both sides; ``None`` selects the dynamic policy

    Returns:
        RatingUpdate with new ratings and the applied deltas

    Raises:
        InvariantError: If the result is not one of the terminal outcomes
    """
    white_score, black_score = actual_scores(_coerce_result(result))

    k_white = k if k is not None else k_factor(white_rating)
    k_black = k if k is not None else k_factor(black_rating)

    delta_white = _round_half_up(k_white * (white_score - expected_score(white_rating, black_rating)))
    delta_black = _round_half_up(k_black * (black_score - expected_score(black_rating, white_rating)))

    return RatingUpdate(
        new_white=_clamp(white_rating + delta_white),
        new_black=_clamp(black_rating + delta_black),
        delta_white=delta_white,
        delta_black=delta_black,
    )


def _clamp(rating: int) -> int:
    return min(MAX_RATING, max(MIN_RATING, _round_half_up(rating)))


def win_probability(rating: int, opponent_rating: int) -> int:
    """Expected score expressed as a whole percentage."""
    return _round_half_up(expected_score(rating, opponent_rating) * 100)


def update_user_rating(user_id: str, new_rating: int) -> User:
    if not MIN_RATING <= new_rating <= MAX_RATING:
        raise InvariantError(
            f"Rating {new_rating} is outside the admissible range [{MIN_RATING}, {MAX_RATING}]"
        )
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    user.rating = new_rating
    return user


def apply_match_rating(match: Match) -> RatingUpdate:
    """Persist new ratings for both players of a match that just became terminal."""
    white = db.session.get(User, match.white_player_id)
    black = db.session.get(User, match.black_player_id)
    if white is None or black is None:
        raise NotFoundError("Match player not found")

    update = compute_updated_ratings(white.rating, black.rating, match.result)
    update_user_rating(white.id, update.new_white)
    update_user_rating(black.id, update.new_black)
    db.session.commit()

    current_app.logger.info(
        f"Ratings updated for match {match.id}: "
        f"{white.id} {update.delta_white:+d} -> {update.new_white}, "
        f"{black.id} {update.delta_black:+d} -> {update.new_black}"
    )
    return update


__all__ = [
    "RatingUpdate",
    "expected_score",
    "k_factor",
    "actual_scores",
    "compute_updated_ratings",
    "win_probability",
    "update_user_rating",
    "apply_match_rating",
]
