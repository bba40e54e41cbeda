from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from liga import create_app, db
from liga.models import (
    Category,
    Fixture,
    League,
    Match,
    PayoutSettings,
    Prediction,
    Team,
    User,
    Zone,
)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def league(app):
    """A league with one category, one zone and four teams"""
    liga = League(name="Liga Barrial")
    db.session.add(liga)
    db.session.flush()

    category = Category(name="Primera", league_id=liga.id)
    db.session.add(category)
    db.session.flush()

    zone = Zone(
        name="Zona A",
        league_id=liga.id,
        category_id=category.id,
        legend="Los dos primeros clasifican",
    )
    db.session.add(zone)
    db.session.flush()

    teams = {}
    for name in ("Alpha", "Bravo", "Charlie", "Delta"):
        team = Team(
            name=name, zone_id=zone.id, league_id=liga.id, category_id=category.id
        )
        db.session.add(team)
        teams[name] = team

    db.session.commit()
    return SimpleNamespace(league=liga, category=category, zone=zone, teams=teams)


@pytest.fixture
def make_user(app):
    def _make_user(username, is_admin=False, password="secret123"):
        user = User(
            username=username,
            email=f"{username}@example.com",
            is_admin=is_admin,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def admin_client(client, make_user):
    """Test client logged in as a league administrator"""
    make_user("commissioner", is_admin=True)
    response = client.post(
        "/login", json={"username": "commissioner", "password": "secret123"}
    )
    assert response.status_code == 200
    return client


@pytest.fixture
def make_match(league):
    def _make_match(home, away, score=None, kickoff=None, zone=None, fixture=None):
        match = Match(
            home_team_id=league.teams[home].id,
            away_team_id=league.teams[away].id,
            zone_id=(zone or league.zone).id,
            fixture_id=fixture.id if fixture else None,
            kickoff_at=kickoff or datetime.now(timezone.utc) + timedelta(days=2),
        )
        if score is not None:
            match.record_result(*score)
        db.session.add(match)
        db.session.commit()
        return match

    return _make_match


@pytest.fixture
def make_fixture(league):
    def _make_fixture(name="Fecha 1", zone=None):
        fixture = Fixture(
            name=name,
            match_date=date(2024, 3, 10),
            league_id=league.league.id,
            category_id=league.category.id,
            zone_id=(zone or league.zone).id,
        )
        db.session.add(fixture)
        db.session.commit()
        return fixture

    return _make_fixture


@pytest.fixture
def make_prediction(app):
    def _make_prediction(user, match, outcome, stake=0.0, home=None, away=None):
        prediction = Prediction(
            user_id=user.id,
            match_id=match.id,
            predicted_outcome=outcome,
            predicted_home_score=home,
            predicted_away_score=away,
            stake=stake,
            currency="ARS",
        )
        db.session.add(prediction)
        db.session.commit()
        return prediction

    return _make_prediction


@pytest.fixture
def points_mode(app):
    settings = PayoutSettings(
        payout_mode="points",
        points_for_result=3,
        points_for_exact_score=5,
        fee_percent=0,
        is_active=True,
    )
    db.session.add(settings)
    db.session.commit()
    return settings
