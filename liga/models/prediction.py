from datetime import datetime, timezone

from liga import db


class Prediction(db.Model):
    __tablename__ = "predictions"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False)

    # Forecast
    predicted_outcome = db.Column(db.String(10), nullable=False)  # home, draw, away
    predicted_home_score = db.Column(db.Integer)
    predicted_away_score = db.Column(db.Integer)
    stake = db.Column(db.Float, nullable=False, default=0.0)
    currency = db.Column(db.String(3), nullable=False, default="ARS")

    # Results (written once by settlement)
    settled = db.Column(db.Boolean, nullable=False, default=False)
    is_correct = db.Column(db.Boolean)  # Outcome matched the real one
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    payout_amount = db.Column(db.Float, nullable=False, default=0.0)
    settled_at = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "match_id", name="unique_user_match_prediction"),
        db.Index("idx_prediction_match_settled", "match_id", "settled"),
        db.Index("idx_prediction_user", "user_id"),
        db.CheckConstraint("stake >= 0", name="non_negative_stake"),
    )

    def __repr__(self):
        return f"<Prediction user_id={self.user_id} match_id={self.match_id} {self.predicted_outcome}>"

    @staticmethod
    def upsert(user_id, match_id, **fields):
        """Create or replace the user's prediction for a match"""
        prediction = Prediction.query.filter_by(
            user_id=user_id, match_id=match_id
        ).first()
        if prediction is None:
            prediction = Prediction(user_id=user_id, match_id=match_id)
            db.session.add(prediction)

        for key, value in fields.items():
            setattr(prediction, key, value)
        return prediction

    def to_dict(self):
        """Convert prediction to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "match_id": self.match_id,
            "predicted_outcome": self.predicted_outcome,
            "predicted_score_home": self.predicted_home_score,
            "predicted_score_away": self.predicted_away_score,
            "bet_amount": self.stake,
            "currency": self.currency,
            "settled": self.settled,
            "is_correct": self.is_correct,
            "points_awarded": self.points_awarded,
            "payout_amount": self.payout_amount,
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
