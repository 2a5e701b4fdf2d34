from datetime import timedelta

import pytest

from chessmgr import create_app
from chessmgr.config import TestingConfig
from chessmgr.extensions import db
from chessmgr.models import (
    Inscription,
    Match,
    MatchResult,
    Tournament,
    TournamentFormat,
    TournamentStatus,
    User,
    UserRole,
)
from chessmgr.utils import utcnow

PASSWORD = 'secret123'


@pytest.fixture
def app():
    """Application with a fresh in-memory schema; no context left pushed."""
    app = create_app(TestingConfig)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    """Push an application context for service-level tests."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(name='Player', email=None, rating=1500, role=UserRole.PLAYER, password=PASSWORD):
    user = User(
        name=name,
        email=email or f"{name.lower().replace(' ', '.')}@example.com",
        rating=rating,
        role=role,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def make_tournament(
    name='Autumn Open',
    status=TournamentStatus.UPCOMING,
    start_in=timedelta(days=7),
    duration=timedelta(days=2),
    creator=None,
    tournament_format=TournamentFormat.SWISS,
    **fields,
):
    start = utcnow() + start_in
    tournament = Tournament(
        name=name,
        start_date=start,
        end_date=start + duration,
        status=status,
        tournament_format=tournament_format,
        created_by=creator.id if creator is not None else None,
        **fields,
    )
    db.session.add(tournament)
    db.session.commit()
    return tournament


def enroll(tournament, *users):
    """Register users in order with strictly increasing registration dates."""
    base = utcnow() - timedelta(days=30)
    for offset, user in enumerate(users):
        db.session.add(Inscription(
            user_id=user.id,
            tournament_id=tournament.id,
            registration_date=base + timedelta(minutes=offset),
        ))
    db.session.commit()


def make_match(tournament, white, black, round_number=1, result=MatchResult.NOT_STARTED):
    match = Match(
        tournament_id=tournament.id,
        white_player_id=white.id,
        black_player_id=black.id,
        round=round_number,
        result=result,
    )
    db.session.add(match)
    db.session.commit()
    return match


def make_players(count, prefix='Player'):
    return [make_user(name=f"{prefix} {i}") for i in range(1, count + 1)]


def login(client, email, password=PASSWORD):
    return client.post('/api/auth/login', json={'email': email, 'password': password})
