import logging
import math

from flask import current_app, jsonify, request
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from liga import db, limiter
from liga.errors import LeagueError, MatchNotFound, MatchWithoutResult, ZoneNotFound
from liga.models import Match, PayoutSettings, Prediction, User
from liga.models.match import OUTCOMES
from liga.repository import LeagueRepository
from liga.routes.api import bp
from liga.services.leaderboard import get_leaderboard
from liga.services.operations import settle_match
from liga.services.standings import ranked_zone_table
from liga.utils.cache_utils import cached_route
from liga.utils.timezone_utils import format_kickoff

logger = logging.getLogger(__name__)


def _parse_id(value):
    """Integer id from a JSON or query value, None when it is not one"""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_score(value):
    """
    Optional predicted goals.

    Raises:
        ValueError: not a non-negative whole number
    """
    if value is None:
        return None
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Invalid score: {value!r}")
    score = int(value)
    if score < 0:
        raise ValueError(f"Invalid score: {value!r}")
    return score


def _parse_stake(value):
    """
    Stake in currency units, 0 when absent.

    Raises:
        ValueError: non-numeric, NaN, infinite or negative
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid stake: {value!r}")
    amount = float(value or 0)
    if not math.isfinite(amount) or amount < 0:
        raise ValueError(f"Invalid stake: {value!r}")
    return amount


@bp.route("/admin_settle", methods=["POST"])
@limiter.limit("30 per minute")
def admin_settle():
    """Settle every unsettled prediction of a played match"""
    data = request.get_json(silent=True) or {}
    raw_match_id = data.get("match_id")
    if not raw_match_id:
        return jsonify({"error": "missing_match_id"}), 400

    # An unknown match has no result to settle against
    match_id = _parse_id(raw_match_id)
    if match_id is None:
        return jsonify({"error": MatchWithoutResult.code}), 400

    actor_user_id = _parse_id(data.get("actor_user_id"))
    if actor_user_id is None and current_user.is_authenticated:
        actor_user_id = current_user.id

    try:
        result = settle_match(match_id, actor_user_id=actor_user_id)
    except (MatchNotFound, MatchWithoutResult):
        return jsonify({"error": MatchWithoutResult.code}), 400
    except LeagueError as e:
        logger.error(f"Settlement of match {match_id} failed: {e}")
        return jsonify({"error": str(e)}), 500

    return jsonify(
        {
            "ok": True,
            "settled": result.settled_count,
            "failed": result.failed_prediction_ids,
        }
    )


@bp.route("/predictions", methods=["GET", "POST"])
def predictions():
    if request.method == "POST":
        return _submit_prediction()
    return _list_predictions()


def _submit_prediction():
    data = request.get_json(silent=True) or {}

    raw_user_id = data.get("user_id")
    raw_match_id = data.get("match_id")
    outcome = data.get("predicted_outcome")
    if not raw_user_id or not raw_match_id or not outcome:
        return jsonify({"error": "missing_fields"}), 400

    if outcome not in OUTCOMES:
        return jsonify({"error": "invalid_outcome"}), 400

    try:
        stake = _parse_stake(data.get("bet_amount"))
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_bet_amount"}), 400

    try:
        predicted_home = _parse_score(data.get("predicted_score_home"))
        predicted_away = _parse_score(data.get("predicted_score_away"))
    except (TypeError, ValueError):
        return jsonify({"error": "invalid_score"}), 400

    max_stake, cutoff_seconds, settings_currency = PayoutSettings.intake_limits()
    if stake > max_stake:
        return jsonify({"error": "bet_over_max", "max_bet": max_stake}), 400

    match_id = _parse_id(raw_match_id)
    match = db.session.get(Match, match_id) if match_id is not None else None
    if match is None:
        return jsonify({"error": "match_not_found"}), 404

    user_id = _parse_id(raw_user_id)
    if user_id is None or db.session.get(User, user_id) is None:
        return jsonify({"error": "user_not_found"}), 404

    if not match.accepts_predictions(cutoff_seconds):
        deadline = match.prediction_deadline(cutoff_seconds)
        return (
            jsonify(
                {
                    "error": "cutoff_passed",
                    "deadline": deadline.isoformat(),
                    "deadline_local": format_kickoff(deadline),
                }
            ),
            403,
        )

    existing = Prediction.query.filter_by(user_id=user_id, match_id=match.id).first()
    if existing is not None and existing.settled:
        return jsonify({"error": "prediction_settled"}), 409

    prediction = Prediction.upsert(
        user_id,
        match.id,
        predicted_outcome=outcome,
        predicted_home_score=predicted_home,
        predicted_away_score=predicted_away,
        stake=stake,
        currency=data.get("currency")
        or settings_currency
        or current_app.config.get("PRODE_DEFAULT_CURRENCY", "ARS"),
    )
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning(f"Concurrent prediction write for user {user_id}, match {match.id}: {e}")
        return jsonify({"error": "prediction_conflict"}), 409

    logger.info(
        f"Prediction saved: user {user_id} match {match.id} {outcome} stake {stake:.2f}"
    )
    return jsonify(prediction.to_dict())


def _list_predictions():
    raw_user_id = request.args.get("user_id")
    if not raw_user_id:
        return jsonify({"error": "missing_user_id"}), 400

    user_id = _parse_id(raw_user_id)
    if user_id is None:
        return jsonify([])

    rows = (
        Prediction.query.filter_by(user_id=user_id)
        .order_by(Prediction.created_at.desc(), Prediction.id.desc())
        .all()
    )
    return jsonify([prediction.to_dict() for prediction in rows])


@bp.route("/zones/<int:zone_id>/standings")
@cached_route(timeout=300, key_prefix="zone_standings")
def zone_standings(zone_id):
    """Ranked standings of a zone"""
    try:
        return ranked_zone_table(LeagueRepository(), zone_id)
    except ZoneNotFound as e:
        return jsonify({"error": e.code}), 404


@bp.route("/zones/<int:zone_id>/matches")
def zone_matches(zone_id):
    """Fixture list of a zone with local kickoff times"""
    repository = LeagueRepository()
    try:
        zone = repository.get_zone(zone_id)
    except ZoneNotFound as e:
        return jsonify({"error": e.code}), 404

    matches = []
    for match in repository.get_zone_matches(zone_id):
        data = match.to_dict()
        data["kickoff_local"] = format_kickoff(match.kickoff_at)
        data["fixture"] = match.fixture.to_dict() if match.fixture else None
        matches.append(data)

    return jsonify({"zone": zone.to_dict(), "matches": matches})


@bp.route("/prode/leaderboard")
@cached_route(timeout=120, key_prefix="prode_leaderboard")
def prode_leaderboard():
    return {"leaderboard": get_leaderboard()}


@bp.route("/prode/settings")
def prode_settings():
    """Public prode rules: payout mode, stake limit and cutoff"""
    settings = PayoutSettings.get_active()
    rule = PayoutSettings.active_rule()
    max_stake, cutoff_seconds, currency = PayoutSettings.intake_limits()
    return jsonify(
        {
            "payout_mode": rule.mode,
            "points_for_result": getattr(rule, "result_points", None),
            "points_for_exact_score": getattr(rule, "exact_points", None),
            "fee_percent": rule.fee_percent,
            "max_bet": max_stake,
            "cutoff_seconds_before_kickoff": cutoff_seconds,
            "currency": currency
            or current_app.config.get("PRODE_DEFAULT_CURRENCY", "ARS"),
            "configured": settings is not None,
        }
    )
