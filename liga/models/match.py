from datetime import datetime, timedelta, timezone

from liga import db

HOME = "home"
DRAW = "draw"
AWAY = "away"
OUTCOMES = (HOME, DRAW, AWAY)


def outcome_for(home_score, away_score):
    """Three-way outcome of a scoreline"""
    if home_score > away_score:
        return HOME
    if home_score < away_score:
        return AWAY
    return DRAW


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # League context
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False)
    fixture_id = db.Column(db.Integer, db.ForeignKey("fixtures.id"), nullable=True)

    kickoff_at = db.Column(db.DateTime, nullable=False)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    is_played = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    predictions = db.relationship(
        "Prediction", backref="match", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_match_zone", "zone_id"),
        db.Index("idx_match_fixture", "fixture_id"),
        db.Index("idx_match_kickoff", "kickoff_at"),
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
        db.CheckConstraint(
            "(is_played AND home_score IS NOT NULL AND away_score IS NOT NULL)"
            " OR (NOT is_played AND home_score IS NULL AND away_score IS NULL)",
            name="scores_iff_played",
        ),
    )

    def __repr__(self):
        return f"<Match {self.home_team_id} vs {self.away_team_id}>"

    @property
    def has_result(self):
        return (
            bool(self.is_played)
            and self.home_score is not None
            and self.away_score is not None
        )

    @property
    def outcome(self):
        """Real outcome (None until a result is recorded)"""
        if not self.has_result:
            return None
        return outcome_for(self.home_score, self.away_score)

    def record_result(self, home_score, away_score):
        """Record or correct the official result"""
        if home_score is None or away_score is None:
            raise ValueError("Both scores are required")
        if home_score < 0 or away_score < 0:
            raise ValueError("Scores cannot be negative")

        self.home_score = home_score
        self.away_score = away_score
        self.is_played = True

    def clear_result(self):
        """Send the match back to unplayed"""
        self.home_score = None
        self.away_score = None
        self.is_played = False

    def _kickoff_utc(self):
        kickoff = self.kickoff_at
        # If kickoff is timezone-naive, assume it's in UTC
        if kickoff is not None and kickoff.tzinfo is None:
            kickoff = kickoff.replace(tzinfo=timezone.utc)
        return kickoff

    def prediction_deadline(self, cutoff_seconds):
        """Last instant a prediction is accepted"""
        return self._kickoff_utc() - timedelta(seconds=cutoff_seconds)

    def accepts_predictions(self, cutoff_seconds, now=None):
        now = now or datetime.now(timezone.utc)
        return not self.is_played and now < self.prediction_deadline(cutoff_seconds)

    def to_dict(self):
        """Convert match to dictionary for API responses"""
        return {
            "id": self.id,
            "zone_id": self.zone_id,
            "fixture_id": self.fixture_id,
            "kickoff_at": self._kickoff_utc().isoformat() if self.kickoff_at else None,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "is_played": self.is_played,
            "outcome": self.outcome,
        }
