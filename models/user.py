from flask_login import UserMixin

from extensions import db
from models import utcnow


class User(db.Model, UserMixin):
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password = db.Column(db.String(128), nullable=False)
    name = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)


class UserStats(db.Model):
    __tablename__ = 'user_stats'

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), primary_key=True)
    total_xp = db.Column(db.Integer, nullable=False, default=0)
    prestige_points = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    longest_streak = db.Column(db.Integer, nullable=False, default=0)
    last_study_date = db.Column(db.Date, index=True)

    def to_dict(self):
        return {
            "total_xp": self.total_xp,
            "prestige_points": self.prestige_points,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_study_date": self.last_study_date.isoformat() if self.last_study_date else None,
        }
