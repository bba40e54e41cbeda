from datetime import datetime, timezone

from liga import db


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    # 'settle_match', 'recompute_standings', 'record_result', 'set_standing_order', ...
    action = db.Column(db.String(50), nullable=False)
    payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    actor = db.relationship("User", foreign_keys=[actor_user_id])

    __table_args__ = (
        db.Index("idx_audit_log_action", "action"),
        db.Index("idx_audit_log_created", "created_at"),
    )

    def __repr__(self):
        return f'<AuditLog {self.action} by {self.actor.username if self.actor else "system"}>'

    @staticmethod
    def log_action(action, actor_user_id=None, payload=None):
        """Log an action"""
        entry = AuditLog(
            actor_user_id=actor_user_id,
            action=action,
            payload=payload or {},
        )

        db.session.add(entry)
        return entry

    @staticmethod
    def log_result(actor_user_id, match):
        """Convenience method for logging a recorded or cleared result"""
        return AuditLog.log_action(
            "record_result",
            actor_user_id=actor_user_id,
            payload={
                "match_id": match.id,
                "home_score": match.home_score,
                "away_score": match.away_score,
                "is_played": match.is_played,
            },
        )
