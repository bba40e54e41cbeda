from datetime import datetime, timezone

from liga import db
from liga.services.payout_rules import (
    DEFAULT_EXACT_POINTS,
    DEFAULT_FEE_PERCENT,
    DEFAULT_PAYOUT_RULE,
    DEFAULT_RESULT_POINTS,
    POOL_MODE,
    build_payout_rule,
)

DEFAULT_MAX_STAKE = 10000.0
DEFAULT_CUTOFF_SECONDS = 600


class PayoutSettings(db.Model):
    """Prode configuration. The most recently updated active row wins."""

    __tablename__ = "prode_settings"

    id = db.Column(db.Integer, primary_key=True)

    payout_mode = db.Column(db.String(10), nullable=False, default=POOL_MODE)
    points_for_result = db.Column(db.Integer, default=DEFAULT_RESULT_POINTS)
    points_for_exact_score = db.Column(db.Integer, default=DEFAULT_EXACT_POINTS)
    fee_percent = db.Column(db.Float, default=DEFAULT_FEE_PERCENT)

    # Prediction intake
    max_stake = db.Column(db.Float, default=DEFAULT_MAX_STAKE)
    cutoff_seconds_before_kickoff = db.Column(db.Integer, default=DEFAULT_CUTOFF_SECONDS)
    currency = db.Column(db.String(3), default="ARS")

    is_active = db.Column(db.Boolean, default=True)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.CheckConstraint("payout_mode IN ('points', 'pool')", name="known_payout_mode"),
        db.Index("idx_prode_settings_active", "is_active"),
    )

    def __repr__(self):
        return f"<PayoutSettings {self.payout_mode} fee={self.fee_percent}>"

    @staticmethod
    def get_active():
        """Active settings row, or None when the defaults apply"""
        return (
            PayoutSettings.query.filter_by(is_active=True)
            .order_by(PayoutSettings.updated_at.desc(), PayoutSettings.id.desc())
            .first()
        )

    def to_payout_rule(self):
        return build_payout_rule(
            self.payout_mode,
            result_points=self.points_for_result,
            exact_points=self.points_for_exact_score,
            fee_percent=self.fee_percent,
        )

    @staticmethod
    def active_rule():
        settings = PayoutSettings.get_active()
        if settings is None:
            return DEFAULT_PAYOUT_RULE
        return settings.to_payout_rule()

    @staticmethod
    def intake_limits():
        """(max_stake, cutoff_seconds, currency) for prediction intake"""
        settings = PayoutSettings.get_active()
        if settings is None:
            return DEFAULT_MAX_STAKE, DEFAULT_CUTOFF_SECONDS, None
        return (
            DEFAULT_MAX_STAKE if settings.max_stake is None else settings.max_stake,
            DEFAULT_CUTOFF_SECONDS
            if settings.cutoff_seconds_before_kickoff is None
            else settings.cutoff_seconds_before_kickoff,
            settings.currency,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "payout_mode": self.payout_mode,
            "points_for_result": self.points_for_result,
            "points_for_exact_score": self.points_for_exact_score,
            "fee_percent": self.fee_percent,
            "max_stake": self.max_stake,
            "cutoff_seconds_before_kickoff": self.cutoff_seconds_before_kickoff,
            "currency": self.currency,
            "is_active": self.is_active,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
