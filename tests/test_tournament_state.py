from datetime import timedelta

import pytest
from sqlalchemy import func, select

from chessmgr.extensions import db
from chessmgr.models import (
    Inscription,
    Match,
    MatchResult,
    Tournament,
    TournamentFormat,
    TournamentStatus,
    UserRole,
)
from chessmgr.services.errors import AuthorizationError, NotFoundError, PreconditionError
from chessmgr.services.tournament import TournamentService, can_manage_tournament
from chessmgr.services.tournament_state import (
    can_transition,
    ensure_transition,
    should_finish,
)
from chessmgr.utils import utcnow

from conftest import enroll, make_match, make_players, make_tournament, make_user


# ============= Transition table =============

@pytest.mark.parametrize('current, target, allowed', [
    (TournamentStatus.UPCOMING, TournamentStatus.ONGOING, True),
    (TournamentStatus.UPCOMING, TournamentStatus.CANCELLED, True),
    (TournamentStatus.UPCOMING, TournamentStatus.FINISHED, False),
    (TournamentStatus.ONGOING, TournamentStatus.FINISHED, True),
    (TournamentStatus.ONGOING, TournamentStatus.CANCELLED, True),
    (TournamentStatus.ONGOING, TournamentStatus.UPCOMING, False),
])
def test_transition_table(current, target, allowed):
    assert can_transition(current, target) is allowed


@pytest.mark.parametrize('terminal', [TournamentStatus.FINISHED, TournamentStatus.CANCELLED])
@pytest.mark.parametrize('target', list(TournamentStatus))
def test_terminal_states_never_change(terminal, target):
    with pytest.raises(PreconditionError, match='no longer change'):
        ensure_transition(terminal, target)


# ============= Finish criteria =============

def _tournament(status=TournamentStatus.ONGOING, total_rounds=None, ends_in=timedelta(days=1)):
    now = utcnow()
    return Tournament(
        name='Criteria',
        start_date=now - timedelta(days=1),
        end_date=now + ends_in,
        status=status,
        total_rounds=total_rounds,
    )


def _m(round_number, result):
    return Match(white_player_id='a', black_player_id='b', round=round_number, result=result)


def test_finish_when_end_date_passed():
    tournament = _tournament(ends_in=-timedelta(minutes=1))
    assert should_finish(tournament, [], utcnow())


def test_no_finish_without_matches_before_end_date():
    assert not should_finish(_tournament(), [], utcnow())


def test_no_finish_with_pending_match():
    matches = [_m(1, MatchResult.DRAW), _m(1, MatchResult.ONGOING)]
    assert not should_finish(_tournament(), matches, utcnow())


def test_finish_when_all_terminal_and_no_round_count():
    matches = [_m(1, MatchResult.DRAW), _m(1, MatchResult.WHITE_WINS)]
    assert should_finish(_tournament(), matches, utcnow())


def test_finish_waits_for_configured_rounds():
    matches = [_m(1, MatchResult.DRAW), _m(2, MatchResult.BLACK_WINS)]
    assert not should_finish(_tournament(total_rounds=3), matches, utcnow())
    assert should_finish(_tournament(total_rounds=2), matches, utcnow())


def test_only_ongoing_tournaments_finish():
    tournament = _tournament(status=TournamentStatus.UPCOMING, ends_in=-timedelta(minutes=1))
    assert not should_finish(tournament, [], utcnow())


# ============= Service: creation and queries =============

def test_create_tournament_defaults(app_ctx):
    creator = make_user('Organizer')
    start = utcnow() + timedelta(days=3)

    tournament = TournamentService.create_tournament(
        name='  Winter Cup ',
        start_date=start.isoformat() + 'Z',
        end_date=(start + timedelta(days=1)).isoformat(),
        creator=creator,
    )

    assert tournament.name == 'Winter Cup'
    assert tournament.status is TournamentStatus.UPCOMING
    assert tournament.tournament_format is TournamentFormat.SWISS
    assert tournament.created_by == creator.id


@pytest.mark.parametrize('start_offset, end_offset, deadline_offset, message', [
    (timedelta(days=2), timedelta(days=1), None, 'before end date'),
    (timedelta(days=2), timedelta(days=3), timedelta(days=2), 'deadline'),
    (-timedelta(days=1), timedelta(days=3), None, 'past'),
])
def test_create_tournament_rejects_bad_dates(app_ctx, start_offset, end_offset, deadline_offset, message):
    now = utcnow()
    with pytest.raises(PreconditionError, match=message):
        TournamentService.create_tournament(
            name='Bad dates',
            start_date=now + start_offset,
            end_date=now + end_offset,
            registration_deadline=now + deadline_offset if deadline_offset else None,
        )


def test_create_tournament_rejects_unknown_format(app_ctx):
    now = utcnow()
    with pytest.raises(PreconditionError, match='format'):
        TournamentService.create_tournament(
            name='Blitz',
            start_date=now + timedelta(days=1),
            end_date=now + timedelta(days=2),
            tournament_format='blitz',
        )


def test_list_tournaments_filters_by_status(app_ctx):
    make_tournament('Soon')
    make_tournament('Now', status=TournamentStatus.ONGOING, start_in=-timedelta(hours=1))

    assert [t.name for t in TournamentService.list_tournaments('ongoing')] == ['Now']
    assert [t.name for t in TournamentService.list_upcoming()] == ['Soon']
    assert len(TournamentService.list_tournaments()) == 2


def test_get_unknown_tournament(app_ctx):
    with pytest.raises(NotFoundError):
        TournamentService.get_tournament('missing')


# ============= Service: status changes =============

def test_manual_start_requires_four_participants(app_ctx):
    tournament = make_tournament()
    enroll(tournament, *make_players(3))

    with pytest.raises(PreconditionError, match='At least 4'):
        TournamentService.start_tournament(tournament.id)

    enroll(tournament, make_user('Fourth'))
    assert TournamentService.start_tournament(tournament.id).status is TournamentStatus.ONGOING


def test_status_update_to_ongoing_goes_through_start_rules(app_ctx):
    tournament = make_tournament()

    with pytest.raises(PreconditionError, match='At least 4'):
        TournamentService.update_tournament_status(tournament.id, 'ongoing')


def test_status_update_from_terminal_state_fails(app_ctx):
    finished = make_tournament('Done', status=TournamentStatus.FINISHED, start_in=-timedelta(days=5))
    cancelled = make_tournament('Off', status=TournamentStatus.CANCELLED)

    for tournament in (finished, cancelled):
        for target in ('upcoming', 'ongoing', 'finished', 'cancelled'):
            with pytest.raises(PreconditionError):
                TournamentService.update_tournament_status(tournament.id, target)


def test_status_update_rejects_unknown_status(app_ctx):
    tournament = make_tournament()
    with pytest.raises(PreconditionError, match='Invalid tournament status'):
        TournamentService.update_tournament_status(tournament.id, 'paused')


def test_finish_only_from_ongoing(app_ctx):
    tournament = make_tournament()
    with pytest.raises(PreconditionError):
        TournamentService.finish_tournament(tournament.id)

    ongoing = make_tournament('Live', status=TournamentStatus.ONGOING, start_in=-timedelta(hours=1))
    assert TournamentService.finish_tournament(ongoing.id).status is TournamentStatus.FINISHED


def test_cancel_from_upcoming_and_ongoing(app_ctx):
    upcoming = make_tournament('Soon')
    ongoing = make_tournament('Live', status=TournamentStatus.ONGOING, start_in=-timedelta(hours=1))

    assert TournamentService.update_tournament_status(upcoming.id, 'cancelled').status is TournamentStatus.CANCELLED
    assert TournamentService.cancel_tournament(ongoing.id).status is TournamentStatus.CANCELLED


def test_only_creator_or_admin_may_manage(app_ctx):
    owner = make_user('Owner')
    stranger = make_user('Stranger')
    admin = make_user('Admin', role=UserRole.ADMIN)
    tournament = make_tournament(creator=owner)

    assert can_manage_tournament(owner, tournament)
    assert can_manage_tournament(admin, tournament)
    assert not can_manage_tournament(stranger, tournament)
    assert not can_manage_tournament(None, tournament)

    with pytest.raises(AuthorizationError):
        TournamentService.cancel_tournament(tournament.id, actor=stranger)


# ============= Service: edit guards =============

def test_format_editable_without_inscriptions(app_ctx):
    tournament = make_tournament()

    updated = TournamentService.update_tournament(tournament.id, {'tournament_format': 'round_robin'})

    assert updated.tournament_format is TournamentFormat.ROUND_ROBIN


def test_format_frozen_once_players_registered(app_ctx):
    tournament = make_tournament()
    enroll(tournament, make_user('Early'))

    with pytest.raises(PreconditionError, match='format'):
        TournamentService.update_tournament(tournament.id, {'tournament_format': 'elimination'})


def test_max_participants_not_below_registrations(app_ctx):
    tournament = make_tournament(max_participants=8)
    enroll(tournament, *make_players(3))

    with pytest.raises(PreconditionError, match='Max participants'):
        TournamentService.update_tournament(tournament.id, {'max_participants': 2})

    assert TournamentService.update_tournament(tournament.id, {'max_participants': 3}).max_participants == 3


def test_ongoing_allows_only_description_and_later_end(app_ctx):
    tournament = make_tournament(status=TournamentStatus.ONGOING, start_in=-timedelta(hours=1))
    original_end = tournament.end_date

    with pytest.raises(PreconditionError, match='ongoing'):
        TournamentService.update_tournament(tournament.id, {'name': 'Renamed'})

    with pytest.raises(PreconditionError, match='extended'):
        TournamentService.update_tournament(tournament.id, {'end_date': original_end - timedelta(hours=1)})

    updated = TournamentService.update_tournament(
        tournament.id,
        {'description': 'Now with live boards', 'end_date': original_end + timedelta(days=1)},
    )
    assert updated.description == 'Now with live boards'
    assert updated.end_date == original_end + timedelta(days=1)


@pytest.mark.parametrize('status', [TournamentStatus.FINISHED, TournamentStatus.CANCELLED])
def test_terminal_tournaments_are_read_only(app_ctx, status):
    tournament = make_tournament(status=status, start_in=-timedelta(days=5))

    with pytest.raises(PreconditionError, match='cannot be modified'):
        TournamentService.update_tournament(tournament.id, {'description': 'late edit'})


def test_update_rejects_unknown_and_empty_fields(app_ctx):
    tournament = make_tournament()

    with pytest.raises(PreconditionError, match='cannot be edited'):
        TournamentService.update_tournament(tournament.id, {'status': 'finished'})
    with pytest.raises(PreconditionError, match='cannot be empty'):
        TournamentService.update_tournament(tournament.id, {'name': ''})


def test_update_keeps_date_order(app_ctx):
    tournament = make_tournament()

    with pytest.raises(PreconditionError, match='before end date'):
        TournamentService.update_tournament(tournament.id, {'start_date': tournament.end_date + timedelta(hours=1)})


# ============= Service: deletion =============

def _count(model, tournament_id):
    return db.session.execute(
        select(func.count(model.id)).where(model.tournament_id == tournament_id)
    ).scalar_one()


@pytest.mark.parametrize('status', [TournamentStatus.UPCOMING, TournamentStatus.CANCELLED])
def test_delete_cascades_inscriptions_and_matches(app_ctx, status):
    tournament = make_tournament(status=status)
    players = make_players(2)
    enroll(tournament, *players)
    make_match(tournament, players[0], players[1])
    tournament_id = tournament.id

    info = TournamentService.get_deletion_info(tournament_id)
    assert info['can_delete'] is True
    assert info['relations']['inscription_count'] == 2
    assert info['relations']['match_count'] == 1

    TournamentService.delete_tournament(tournament_id)

    assert db.session.get(Tournament, tournament_id) is None
    assert _count(Inscription, tournament_id) == 0
    assert _count(Match, tournament_id) == 0


@pytest.mark.parametrize('status', [TournamentStatus.ONGOING, TournamentStatus.FINISHED])
def test_delete_blocked_while_ongoing_or_finished(app_ctx, status):
    tournament = make_tournament(status=status, start_in=-timedelta(days=1))

    info = TournamentService.get_deletion_info(tournament.id)
    assert info['can_delete'] is False
    assert info['reason']

    with pytest.raises(PreconditionError):
        TournamentService.delete_tournament(tournament.id)
    assert db.session.get(Tournament, tournament.id) is not None


@pytest.mark.parametrize('value', [3.7, True, '4.5', 'eight'])
def test_update_rejects_non_integer_counts(app_ctx, value):
    tournament = make_tournament(max_participants=8)

    with pytest.raises(PreconditionError, match='whole number'):
        TournamentService.update_tournament(tournament.id, {'max_participants': value})


def test_update_accepts_integral_float_count(app_ctx):
    tournament = make_tournament()

    assert TournamentService.update_tournament(tournament.id, {'total_rounds': 5.0}).total_rounds == 5
