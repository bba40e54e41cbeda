from datetime import datetime, timezone

from liga import db


class Fixture(db.Model):
    """A matchday grouping several matches of a zone"""

    __tablename__ = "fixtures"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    match_date = db.Column(db.Date, nullable=False)

    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    matches = db.relationship("Match", backref="fixture", lazy="dynamic")

    __table_args__ = (db.Index("idx_fixture_zone", "zone_id"),)

    def __repr__(self):
        return f"<Fixture {self.name} {self.match_date}>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "match_date": self.match_date.isoformat() if self.match_date else None,
            "zone_id": self.zone_id,
        }
