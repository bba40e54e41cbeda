"""Settlement persisted through LeagueRepository"""

import pytest
from sqlalchemy.exc import OperationalError

from liga import db
from liga.errors import MatchWithoutResult
from liga.models import (
    AuditLog,
    PayoutSettings,
    Prediction,
    Wallet,
    WalletTransaction,
)
from liga.repository import LeagueRepository
from liga.services.payout_rules import DEFAULT_PAYOUT_RULE, PointsPayout, PoolPayout
from liga.services.settlement import SettlementEngine


@pytest.fixture
def settled_setup(league, make_user, make_match, make_prediction):
    alice = make_user("alice")
    bob = make_user("bob")
    match = make_match("Alpha", "Bravo", score=(2, 1))
    home_bet = make_prediction(alice, match, "home", stake=100)
    away_bet = make_prediction(bob, match, "away", stake=50)
    return alice, bob, match, home_bet, away_bet


def test_defaults_apply_without_settings(app):
    assert LeagueRepository().get_payout_rule() == DEFAULT_PAYOUT_RULE


def test_latest_active_settings_win(app, points_mode):
    newer = PayoutSettings(payout_mode="pool", fee_percent=5, is_active=True)
    db.session.add(newer)
    db.session.commit()

    assert LeagueRepository().get_payout_rule() == PoolPayout(fee_percent=5.0)

    newer.is_active = False
    db.session.commit()
    assert LeagueRepository().get_payout_rule() == PointsPayout(3, 5, fee_percent=0.0)


def test_pool_settlement_credits_wallet(settled_setup):
    alice, bob, match, home_bet, away_bet = settled_setup

    result = SettlementEngine(LeagueRepository()).settle(match.id, actor_user_id=alice.id)

    assert result.settled_count == 2
    home_bet = db.session.get(Prediction, home_bet.id)
    away_bet = db.session.get(Prediction, away_bet.id)
    assert home_bet.settled and away_bet.settled
    assert home_bet.is_correct is True
    assert home_bet.payout_amount == 135.0
    assert home_bet.settled_at is not None
    assert away_bet.payout_amount == 0

    assert db.session.get(Wallet, alice.id).balance == 135.0
    assert db.session.get(Wallet, bob.id) is None

    transaction = WalletTransaction.query.one()
    assert transaction.reason == "payout"
    assert transaction.amount == 135.0
    assert transaction.prediction_id == home_bet.id
    assert transaction.meta == {"match_id": match.id}

    entry = AuditLog.query.filter_by(action="settle_match").one()
    assert entry.actor_user_id == alice.id
    assert entry.payload["payout_mode"] == "pool"
    assert entry.payload["match_id"] == match.id


def test_resettling_never_credits_twice(settled_setup):
    alice, _, match, home_bet, _ = settled_setup
    engine = SettlementEngine(LeagueRepository())

    engine.settle(match.id)
    assert engine.settle(match.id).settled_count == 0

    # An operator resets the flag by hand
    Prediction.query.filter_by(id=home_bet.id).update({"settled": False})
    db.session.commit()

    again = engine.settle(match.id)

    assert again.settled_prediction_ids == [home_bet.id]
    assert db.session.get(Wallet, alice.id).balance == 135.0
    assert WalletTransaction.query.count() == 1


def test_existing_wallet_is_incremented(settled_setup):
    alice, _, match, _, _ = settled_setup
    db.session.add(Wallet(user_id=alice.id, balance=15.0, currency="ARS"))
    db.session.commit()

    SettlementEngine(LeagueRepository()).settle(match.id)

    db.session.expire_all()
    assert db.session.get(Wallet, alice.id).balance == 150.0


def test_unplayed_match_writes_nothing(league, make_user, make_match, make_prediction):
    alice = make_user("alice")
    match = make_match("Alpha", "Bravo")
    make_prediction(alice, match, "home", stake=10)

    with pytest.raises(MatchWithoutResult):
        SettlementEngine(LeagueRepository()).settle(match.id)

    assert Prediction.query.filter_by(settled=True).count() == 0
    assert AuditLog.query.count() == 0


def test_failing_row_is_reported_and_left_pending(settled_setup, monkeypatch):
    alice, bob, match, home_bet, away_bet = settled_setup
    original_increment = Wallet.increment

    def flaky_increment(user_id, delta, currency="ARS"):
        if user_id == alice.id:
            raise OperationalError("UPDATE wallets", {}, Exception("disk I/O error"))
        return original_increment(user_id, delta, currency)

    monkeypatch.setattr(Wallet, "increment", staticmethod(flaky_increment))

    result = SettlementEngine(LeagueRepository()).settle(match.id)

    assert result.settled_prediction_ids == [away_bet.id]
    assert result.failed_prediction_ids == [home_bet.id]
    assert db.session.get(Prediction, home_bet.id).settled is False
    assert WalletTransaction.query.count() == 0

    monkeypatch.setattr(Wallet, "increment", staticmethod(original_increment))
    resumed = SettlementEngine(LeagueRepository()).settle(match.id)

    assert resumed.settled_prediction_ids == [home_bet.id]
    # Only the remaining stake forms the pool on resume
    assert db.session.get(Prediction, home_bet.id).payout_amount == 90.0


def test_pending_matches_are_found(league, make_user, make_match, make_prediction):
    alice = make_user("alice")
    played = make_match("Alpha", "Bravo", score=(1, 0))
    unplayed = make_match("Charlie", "Delta")
    make_prediction(alice, played, "home")
    make_prediction(alice, unplayed, "home")

    repository = LeagueRepository()
    assert [m.id for m in repository.find_matches_pending_settlement()] == [played.id]

    SettlementEngine(repository).settle(played.id)
    assert repository.find_matches_pending_settlement() == []


def test_manual_orders_round_trip(league):
    repository = LeagueRepository()
    zone = league.zone
    alpha = league.teams["Alpha"].id
    bravo = league.teams["Bravo"].id

    repository.set_manual_orders(zone.id, zone.category_id, {alpha: 2, bravo: 1})
    assert repository.get_manual_orders(zone.id, zone.category_id) == {alpha: 2, bravo: 1}

    repository.set_manual_orders(zone.id, zone.category_id, {alpha: 0})
    assert repository.get_manual_orders(zone.id, zone.category_id) == {bravo: 1}
