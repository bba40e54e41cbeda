import logging

from flask import jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from liga import db
from liga.errors import LeagueError, ZoneNotFound
from liga.models import AuditLog, Match
from liga.repository import LeagueRepository
from liga.routes.admin import bp
from liga.services.operations import recompute_zone, zones_of_match
from liga.services.scheduler_service import scheduler_service
from liga.socketio_handlers import get_connection_stats
from liga.utils.cache_utils import get_cache_stats, invalidate_zone_standings

logger = logging.getLogger(__name__)


@bp.before_request
@login_required
def require_admin():
    """Admin endpoints need a logged-in site admin"""
    if not current_user.is_admin:
        logger.warning(
            f"Admin endpoint {request.path} refused for user {current_user.username}"
        )
        return jsonify({"error": "admin_required"}), 403


def _actor_id(data):
    actor = data.get("actor_user_id")
    if isinstance(actor, int) and not isinstance(actor, bool):
        return actor
    if current_user.is_authenticated:
        return current_user.id
    return None


@bp.route("/zones/<int:zone_id>/standings/recompute", methods=["POST"])
def recompute_standings(zone_id):
    data = request.get_json(silent=True) or {}
    try:
        payload = recompute_zone(zone_id, actor_user_id=_actor_id(data))
    except ZoneNotFound as e:
        return jsonify({"error": e.code}), 404
    except LeagueError as e:
        logger.error(f"Recompute of zone {zone_id} failed: {e}")
        return jsonify({"error": str(e)}), 500
    return jsonify(payload)


@bp.route("/zones/<int:zone_id>/standings/order", methods=["PUT"])
def set_standings_order(zone_id):
    """Replace manual positions. A position of 0 clears a team's override."""
    data = request.get_json(silent=True) or {}
    orders = data.get("orders")
    if not isinstance(orders, list) or not orders:
        return jsonify({"error": "invalid_orders"}), 400

    repository = LeagueRepository()
    try:
        zone = repository.get_zone(zone_id)
    except ZoneNotFound as e:
        return jsonify({"error": e.code}), 404

    zone_team_ids = {team.id for team in repository.get_zone_teams(zone_id)}
    positions = {}
    for entry in orders:
        team_id = entry.get("team_id") if isinstance(entry, dict) else None
        position = entry.get("position") if isinstance(entry, dict) else None
        if (
            not isinstance(team_id, int)
            or not isinstance(position, int)
            or isinstance(position, bool)
            or position < 0
        ):
            return jsonify({"error": "invalid_orders"}), 400
        if team_id not in zone_team_ids:
            return jsonify({"error": "team_not_in_zone", "team_id": team_id}), 400
        positions[team_id] = position

    try:
        repository.set_manual_orders(zone_id, zone.category_id, positions)
        repository.log_audit(
            "set_standing_order",
            actor_user_id=_actor_id(data),
            payload={"zone_id": zone_id, "orders": positions},
        )
    except LeagueError as e:
        return jsonify({"error": str(e)}), 500

    invalidate_zone_standings(zone_id)
    return jsonify(
        {"ok": True, "manual_orders": repository.get_manual_orders(zone_id, zone.category_id)}
    )


@bp.route("/matches/<int:match_id>/result", methods=["POST"])
def record_result(match_id):
    """Record, correct or clear a match result and refresh its zone tables"""
    data = request.get_json(silent=True) or {}

    match = db.session.get(Match, match_id)
    if match is None:
        return jsonify({"error": "match_not_found"}), 404

    if data.get("clear"):
        match.clear_result()
    else:
        home_score = data.get("home_score")
        away_score = data.get("away_score")
        if not isinstance(home_score, int) or not isinstance(away_score, int):
            return jsonify({"error": "invalid_score"}), 400
        if isinstance(home_score, bool) or isinstance(away_score, bool):
            return jsonify({"error": "invalid_score"}), 400
        try:
            match.record_result(home_score, away_score)
        except ValueError:
            return jsonify({"error": "invalid_score"}), 400

    try:
        AuditLog.log_result(_actor_id(data), match)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to save result of match {match_id}: {e}")
        return jsonify({"error": "storage_write_failure"}), 500

    logger.info(
        f"Result of match {match_id}: "
        f"{match.home_score}-{match.away_score} (played={match.is_played})"
    )

    standings = {}
    for zone_id in zones_of_match(match):
        try:
            standings[zone_id] = recompute_zone(zone_id)
        except LeagueError as e:
            logger.error(f"Recompute of zone {zone_id} after result failed: {e}")
            return jsonify({"error": str(e)}), 500

    return jsonify({"ok": True, "match": match.to_dict(), "standings": standings})


@bp.route("/scheduler/status")
def scheduler_status():
    status = scheduler_service.get_status()
    status["cache"] = get_cache_stats()
    status["sockets"] = get_connection_stats()
    return jsonify(status)


@bp.route("/scheduler/run/<job_type>", methods=["POST"])
def scheduler_run(job_type):
    try:
        summary = scheduler_service.force_run(job_type)
    except ValueError:
        return jsonify({"error": "unknown_job"}), 404
    except LeagueError as e:
        return jsonify({"error": str(e)}), 500
    return jsonify({"ok": True, "summary": summary})


@bp.route("/scheduler/jobs/<job_id>/<action>", methods=["POST"])
def scheduler_job_action(job_id, action):
    if action == "pause":
        ok, message = scheduler_service.pause_job(job_id)
    elif action == "resume":
        ok, message = scheduler_service.resume_job(job_id)
    else:
        return jsonify({"error": "unknown_action"}), 404
    return jsonify({"ok": ok, "message": message}), 200 if ok else 400
