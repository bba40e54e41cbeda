from datetime import datetime, timezone

from liga import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)

    # League context
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)

    logo_url = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    home_matches = db.relationship(
        "Match",
        foreign_keys="Match.home_team_id",
        backref=db.backref("home_team", lazy="joined"),
        lazy="dynamic",
    )
    away_matches = db.relationship(
        "Match",
        foreign_keys="Match.away_team_id",
        backref=db.backref("away_team", lazy="joined"),
        lazy="dynamic",
    )

    __table_args__ = (db.Index("idx_team_zone", "zone_id"),)

    def __repr__(self):
        return f"<Team {self.name}>"

    @staticmethod
    def get_all_for_zone(zone_id):
        """Get all teams for a zone, alphabetically"""
        return Team.query.filter_by(zone_id=zone_id).order_by(Team.name).all()

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "zone_id": self.zone_id,
            "league_id": self.league_id,
            "category_id": self.category_id,
            "logo_url": self.logo_url,
        }
