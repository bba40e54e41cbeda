from datetime import datetime, timezone

from liga import db


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    categories = db.relationship(
        "Category", backref="league", lazy="dynamic", cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<League {self.name}>"


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    zones = db.relationship("Zone", backref="category", lazy="dynamic")

    __table_args__ = (db.Index("idx_category_league", "league_id"),)

    def __repr__(self):
        return f"<Category {self.name}>"


class Zone(db.Model):
    __tablename__ = "zones"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)

    # Free text shown under the standings table (promotion, relegation, ...)
    legend = db.Column(db.Text)

    league = db.relationship("League", foreign_keys=[league_id])
    teams = db.relationship("Team", backref="zone", lazy="dynamic")

    __table_args__ = (
        db.Index("idx_zone_league", "league_id"),
        db.Index("idx_zone_category", "category_id"),
    )

    def __repr__(self):
        return f"<Zone {self.name}>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "league_id": self.league_id,
            "category_id": self.category_id,
            "legend": self.legend,
        }
