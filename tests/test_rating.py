import pytest

from chessmgr.extensions import db
from chessmgr.models import MatchResult, TournamentStatus, User
from chessmgr.services.errors import InvariantError, NotFoundError
from chessmgr.services.rating import (
    apply_match_rating,
    compute_updated_ratings,
    expected_score,
    k_factor,
    update_user_rating,
    win_probability,
)

from conftest import enroll, make_match, make_tournament, make_user


@pytest.mark.parametrize('ra, rb', [(1500, 1500), (1200, 2400), (0, 4000), (2100, 2099), (1850, 1720)])
def test_expected_scores_sum_to_one(ra, rb):
    assert expected_score(ra, rb) + expected_score(rb, ra) == pytest.approx(1.0)


def test_equal_ratings_expect_half():
    assert expected_score(1500, 1500) == pytest.approx(0.5)


@pytest.mark.parametrize('rating, expected', [
    (0, 40),
    (2099, 40),
    (2100, 32),
    (2399, 32),
    (2400, 24),
    (3000, 24),
])
def test_k_factor_bands(rating, expected):
    assert k_factor(rating) == expected


def test_white_win_between_equals():
    update = compute_updated_ratings(1500, 1500, MatchResult.WHITE_WINS)
    assert (update.new_white, update.new_black) == (1520, 1480)
    assert (update.delta_white, update.delta_black) == (20, -20)


def test_underdog_win_moves_toward_winner():
    update = compute_updated_ratings(1500, 2000, 'white_wins')
    assert update.delta_white == 38
    assert update.delta_black == -38


def test_favourite_win_never_moves_against_winner():
    update = compute_updated_ratings(2000, 1500, MatchResult.WHITE_WINS)
    assert update.delta_white >= 0
    assert update.delta_black <= 0


def test_black_win_uses_each_sides_own_k():
    update = compute_updated_ratings(2200, 2000, MatchResult.BLACK_WINS)
    assert update.delta_white == -24
    assert update.delta_black == 30
    assert (update.new_white, update.new_black) == (2176, 2030)


def test_draw_between_equals_has_zero_delta():
    update = compute_updated_ratings(1800, 1800, MatchResult.DRAW)
    assert update.delta_white == 0
    assert update.delta_black == 0


def test_draw_favours_lower_rated_player():
    update = compute_updated_ratings(1600, 1400, MatchResult.DRAW)
    assert update.delta_white == -10
    assert update.delta_black == 10


def test_fixed_k_overrides_dynamic_policy():
    update = compute_updated_ratings(1500, 1500, MatchResult.WHITE_WINS, k=16)
    assert update.delta_white == 8


def test_rating_never_negative():
    update = compute_updated_ratings(5, 5, MatchResult.BLACK_WINS)
    assert update.new_white == 0
    assert update.new_black == 25


def test_rating_capped_at_maximum():
    update = compute_updated_ratings(3999, 3999, MatchResult.WHITE_WINS)
    assert update.new_white == 4000


@pytest.mark.parametrize('result', ['ongoing', 'not_started', 'resigned', MatchResult.ONGOING])
def test_non_terminal_or_unknown_result_rejected(result):
    with pytest.raises(InvariantError):
        compute_updated_ratings(1500, 1500, result)


def test_win_probability_is_a_percentage():
    assert win_probability(1500, 1500) == 50
    assert win_probability(2000, 1500) == 95


def test_update_user_rating_rejects_out_of_range(app_ctx):
    user = make_user('Range')
    with pytest.raises(InvariantError):
        update_user_rating(user.id, 4001)
    with pytest.raises(InvariantError):
        update_user_rating(user.id, -1)


def test_update_user_rating_unknown_user(app_ctx):
    with pytest.raises(NotFoundError):
        update_user_rating('missing', 1600)


def test_apply_match_rating_persists_both_players(app_ctx):
    white = make_user('White', rating=1500)
    black = make_user('Black', rating=1500)
    tournament = make_tournament(status=TournamentStatus.ONGOING)
    enroll(tournament, white, black)
    match = make_match(tournament, white, black, result=MatchResult.DRAW)

    update = apply_match_rating(match)

    assert update.delta_white == 0
    db.session.expire_all()
    assert db.session.get(User, white.id).rating == 1500
    assert db.session.get(User, black.id).rating == 1500


def test_apply_match_rating_on_win(app_ctx):
    white = make_user('White', rating=1500)
    black = make_user('Black', rating=1500)
    tournament = make_tournament(status=TournamentStatus.ONGOING)
    enroll(tournament, white, black)
    match = make_match(tournament, white, black, result=MatchResult.BLACK_WINS)

    apply_match_rating(match)

    db.session.expire_all()
    assert db.session.get(User, white.id).rating == 1480
    assert db.session.get(User, black.id).rating == 1520
