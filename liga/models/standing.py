from datetime import datetime, timezone

from liga import db


class Standing(db.Model):
    """A team's aggregated record in a zone. Rebuilt wholesale, never patched."""

    __tablename__ = "standings"

    id = db.Column(db.Integer, primary_key=True)

    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)

    played = db.Column(db.Integer, nullable=False, default=0)
    won = db.Column(db.Integer, nullable=False, default=0)
    drawn = db.Column(db.Integer, nullable=False, default=0)
    lost = db.Column(db.Integer, nullable=False, default=0)
    goals_for = db.Column(db.Integer, nullable=False, default=0)
    goals_against = db.Column(db.Integer, nullable=False, default=0)
    points = db.Column(db.Integer, nullable=False, default=0)

    computed_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    team = db.relationship("Team", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("zone_id", "team_id", name="unique_zone_team_standing"),
        db.Index("idx_standing_zone", "zone_id"),
    )

    def __repr__(self):
        return f"<Standing team_id={self.team_id} zone_id={self.zone_id} pts={self.points}>"

    @property
    def goal_difference(self):
        return (self.goals_for or 0) - (self.goals_against or 0)


class StandingOrder(db.Model):
    """Manual position override for a team in a zone table"""

    __tablename__ = "standing_orders"

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "team_id", "zone_id", "category_id", name="unique_team_zone_category_order"
        ),
        db.Index("idx_standing_order_zone", "zone_id"),
    )

    def __repr__(self):
        return f"<StandingOrder team_id={self.team_id} zone_id={self.zone_id} pos={self.position}>"
