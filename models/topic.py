from extensions import db
from constants import BACKLOG
from models import utcnow
from services.gem_cost import base_cost


class Subject(db.Model):
    __tablename__ = "subject"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    color = db.Column(db.String(16), default="#7C3AED")
    # purchased topics of this subject discount this gem type
    gem_type = db.Column(db.String(16), nullable=False, default="emerald")

    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "gem_type": self.gem_type,
        }


class Topic(db.Model):
    __tablename__ = "topic"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    subject_id = db.Column(db.Integer, db.ForeignKey("subject.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    notes = db.Column(db.Text, default="")

    difficulty = db.Column(db.String(8), nullable=False, default="medium")
    importance = db.Column(db.String(8), nullable=False, default="medium")

    column_name = db.Column(db.String(16), nullable=False, default=BACKLOG, index=True)
    next_review_at = db.Column(db.DateTime, index=True)  # only set while reviewing
    mastery_count = db.Column(db.Integer, nullable=False, default=0)

    purchased = db.Column(db.Boolean, nullable=False, default=False)
    purchased_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    subject = db.relationship("Subject")

    @property
    def base_cost(self):
        return base_cost(self.difficulty, self.importance)

    def to_dict(self):
        return {
            "id": self.id,
            "subject_id": self.subject_id,
            "title": self.title,
            "notes": self.notes or "",
            "difficulty": self.difficulty,
            "importance": self.importance,
            "column": self.column_name,
            "next_review_at": self.next_review_at.isoformat() if self.next_review_at else None,
            "mastery_count": self.mastery_count,
            "purchased": bool(self.purchased),
            "gem_cost": self.base_cost.to_dict(),
        }


class ReviewEntry(db.Model):
    __tablename__ = "review_entry"

    id = db.Column(db.Integer, primary_key=True)
    topic_id = db.Column(db.Integer, db.ForeignKey("topic.id"), nullable=False, index=True)
    reviewed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    from_column = db.Column(db.String(16), nullable=False)
    to_column = db.Column(db.String(16), nullable=False)
    score = db.Column(db.Integer)  # None for scheduler moves

    def to_dict(self):
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "reviewed_at": self.reviewed_at.isoformat(),
            "from_column": self.from_column,
            "to_column": self.to_column,
            "score": self.score,
        }
