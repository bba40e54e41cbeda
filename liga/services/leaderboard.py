"""
Prode leaderboard built from settled predictions
"""

import logging

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from liga import db
from liga.errors import StorageReadFailure
from liga.models import Prediction, User

logger = logging.getLogger(__name__)


def accuracy_percentage(correct, total):
    if not total:
        return 0.0
    return round(correct * 100.0 / total, 1)


def rank_entries(entries):
    """Sort leaderboard entries and number them from 1"""
    ranked = sorted(
        entries,
        key=lambda e: (
            -e["total_points"],
            -e["accuracy_percentage"],
            -e["total_payout"],
            e["username"].casefold(),
        ),
    )
    for rank, entry in enumerate(ranked, start=1):
        entry["rank"] = rank
    return ranked


def get_leaderboard(limit=None):
    """Per-user totals over settled predictions, best first"""
    correct = func.sum(case((Prediction.is_correct.is_(True), 1), else_=0))
    try:
        rows = (
            db.session.query(
                User.id,
                User.username,
                User.display_name,
                func.coalesce(func.sum(Prediction.points_awarded), 0),
                func.coalesce(func.sum(Prediction.payout_amount), 0.0),
                func.count(Prediction.id),
                func.coalesce(correct, 0),
            )
            .join(Prediction, Prediction.user_id == User.id)
            .filter(Prediction.settled.is_(True), User.is_active.is_(True))
            .group_by(User.id, User.username, User.display_name)
            .all()
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to load leaderboard: {e}")
        raise StorageReadFailure("Failed to load leaderboard") from e

    entries = [
        {
            "user_id": user_id,
            "username": username,
            "user_name": display_name or username,
            "total_points": int(points),
            "total_payout": round(float(payout), 2),
            "total_predictions": total,
            "correct_predictions": int(correct_count),
            "accuracy_percentage": accuracy_percentage(int(correct_count), total),
        }
        for user_id, username, display_name, points, payout, total, correct_count in rows
    ]

    ranked = rank_entries(entries)
    if limit:
        ranked = ranked[:limit]
    return ranked
