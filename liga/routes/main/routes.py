import logging
from datetime import datetime, timezone

from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from liga import db, limiter
from liga.models import User
from liga.routes.main import bp

logger = logging.getLogger(__name__)


@bp.route("/")
def index():
    """Service description"""
    return jsonify(
        {
            "name": "Liga Prode",
            "endpoints": {
                "standings": "/api/zones/<zone_id>/standings",
                "matches": "/api/zones/<zone_id>/matches",
                "predictions": "/api/predictions",
                "leaderboard": "/api/prode/leaderboard",
                "settle": "/api/admin_settle",
            },
        }
    )


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    return jsonify(
        {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
    )


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        return jsonify({"error": "missing_fields"}), 400

    user = User.query.filter_by(username=username).first()
    if user is None or not user.check_password(password):
        logger.warning(f"Failed login for {username}")
        return jsonify({"error": "invalid_credentials"}), 401

    if not user.is_active:
        return jsonify({"error": "account_inactive"}), 403

    login_user(user, remember=bool(data.get("remember")))
    user.update_last_login()
    db.session.commit()
    return jsonify({"ok": True, "user": user.to_dict()})


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})
