"""
SQLAlchemy-backed storage for settlement and standings.

Reads wrap ``SQLAlchemyError`` in ``StorageReadFailure`` so callers abort
before writing anything. Settlement writes commit one prediction at a time.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from liga import db
from liga.errors import (
    MatchNotFound,
    StorageReadFailure,
    StorageWriteFailure,
    ZoneNotFound,
)
from liga.models import (
    AuditLog,
    Fixture,
    Match,
    PayoutSettings,
    Prediction,
    Standing,
    StandingOrder,
    Team,
    Wallet,
    WalletTransaction,
    Zone,
)

logger = logging.getLogger(__name__)

PAYOUT_REASON = "payout"


def _read(description, query):
    try:
        return query()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to load {description}: {e}")
        raise StorageReadFailure(f"Failed to load {description}") from e


class LeagueRepository:
    """Storage collaborator for SettlementEngine and StandingsAggregator"""

    # Settlement

    def get_payout_rule(self):
        return _read("payout settings", PayoutSettings.active_rule)

    def get_match(self, match_id):
        match = _read(f"match {match_id}", lambda: db.session.get(Match, match_id))
        if match is None:
            raise MatchNotFound(match_id)
        return match

    def get_unsettled_predictions(self, match_id):
        return _read(
            f"predictions of match {match_id}",
            lambda: Prediction.query.filter_by(match_id=match_id, settled=False)
            .order_by(Prediction.id)
            .all(),
        )

    def _apply_row(self, match, row, settled_at):
        """Persist one settled prediction and its wallet credit"""
        claimed = Prediction.query.filter_by(
            id=row.prediction_id, settled=False
        ).update(
            {
                Prediction.settled: True,
                Prediction.is_correct: row.is_correct,
                Prediction.points_awarded: row.points_awarded,
                Prediction.payout_amount: row.payout_amount,
                Prediction.settled_at: settled_at,
            },
            synchronize_session=False,
        )
        if not claimed:
            # Another run settled this prediction first
            return False

        if row.wallet_credit > 0:
            already_credited = (
                WalletTransaction.query.filter_by(prediction_id=row.prediction_id)
                .first()
                is not None
            )
            if already_credited:
                logger.warning(
                    f"Prediction {row.prediction_id} already credited, skipping wallet"
                )
            else:
                Wallet.increment(row.user_id, row.wallet_credit, row.currency)
                db.session.add(
                    WalletTransaction(
                        user_id=row.user_id,
                        amount=row.wallet_credit,
                        currency=row.currency,
                        reason=PAYOUT_REASON,
                        prediction_id=row.prediction_id,
                        meta={"match_id": match.id},
                    )
                )
        return True

    def apply_settlement_batch(self, match, rows):
        """
        Persist settled rows, each in its own transaction.

        Returns:
            (applied prediction ids, failed prediction ids)
        """
        applied = []
        failed = []
        settled_at = datetime.now(timezone.utc)

        for row in rows:
            try:
                if self._apply_row(match, row, settled_at):
                    db.session.commit()
                    applied.append(row.prediction_id)
                else:
                    db.session.rollback()
            except SQLAlchemyError as e:
                db.session.rollback()
                error = StorageWriteFailure(str(e), row_id=row.prediction_id)
                logger.error(
                    f"Failed to settle prediction {error.row_id} of match {match.id}: {e}"
                )
                failed.append(row.prediction_id)

        # Bulk updates bypass the identity map
        db.session.expire_all()
        return applied, failed

    def log_audit(self, action, actor_user_id=None, payload=None):
        try:
            AuditLog.log_action(action, actor_user_id=actor_user_id, payload=payload)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to write audit entry {action}: {e}")
            raise StorageWriteFailure(f"Failed to write audit entry {action}") from e

    def find_matches_pending_settlement(self):
        """Played matches that still have unsettled predictions"""
        return _read(
            "matches pending settlement",
            lambda: Match.query.filter(Match.is_played.is_(True))
            .filter(Match.predictions.any(Prediction.settled.is_(False)))
            .order_by(Match.kickoff_at, Match.id)
            .all(),
        )

    # Standings

    def get_zone(self, zone_id):
        zone = _read(f"zone {zone_id}", lambda: db.session.get(Zone, zone_id))
        if zone is None:
            raise ZoneNotFound(zone_id)
        return zone

    def get_all_zones(self):
        return _read("zones", lambda: Zone.query.order_by(Zone.id).all())

    def get_zone_teams(self, zone_id):
        return _read(f"teams of zone {zone_id}", lambda: Team.get_all_for_zone(zone_id))

    def get_zone_matches(self, zone_id):
        return _read(
            f"matches of zone {zone_id}",
            lambda: Match.query.outerjoin(Fixture, Match.fixture_id == Fixture.id)
            .filter(or_(Match.zone_id == zone_id, Fixture.zone_id == zone_id))
            .order_by(Match.kickoff_at, Match.id)
            .all(),
        )

    def replace_standings(self, zone, rows):
        """Delete the zone's table and insert the fresh rows in one transaction"""
        computed_at = datetime.now(timezone.utc)
        try:
            Standing.query.filter_by(zone_id=zone.id).delete(synchronize_session=False)
            standings = [
                Standing(
                    team_id=row.team_id,
                    zone_id=zone.id,
                    league_id=zone.league_id,
                    category_id=zone.category_id,
                    played=row.played,
                    won=row.won,
                    drawn=row.drawn,
                    lost=row.lost,
                    goals_for=row.goals_for,
                    goals_against=row.goals_against,
                    points=row.points,
                    computed_at=computed_at,
                )
                for row in rows
            ]
            db.session.add_all(standings)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to replace standings of zone {zone.id}: {e}")
            raise StorageWriteFailure(f"Failed to replace standings of zone {zone.id}") from e
        return standings

    def get_standings(self, zone_id):
        return _read(
            f"standings of zone {zone_id}",
            lambda: Standing.query.filter_by(zone_id=zone_id).all(),
        )

    def get_manual_orders(self, zone_id, category_id=None):
        """Map team id to its manual position"""
        orders = _read(
            f"manual order of zone {zone_id}",
            lambda: StandingOrder.query.filter_by(
                zone_id=zone_id, category_id=category_id
            ).all(),
        )
        return {order.team_id: order.position for order in orders}

    def set_manual_orders(self, zone_id, category_id, positions):
        """
        Replace manual positions for the given teams. A position of 0 or
        less removes the team's override.
        """
        try:
            for team_id, position in positions.items():
                order = StandingOrder.query.filter_by(
                    team_id=team_id, zone_id=zone_id, category_id=category_id
                ).first()
                if position <= 0:
                    if order is not None:
                        db.session.delete(order)
                    continue
                if order is None:
                    order = StandingOrder(
                        team_id=team_id, zone_id=zone_id, category_id=category_id
                    )
                    db.session.add(order)
                order.position = position
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Failed to save manual order of zone {zone_id}: {e}")
            raise StorageWriteFailure(f"Failed to save manual order of zone {zone_id}") from e
