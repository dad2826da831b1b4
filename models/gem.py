from extensions import db
from models import utcnow
from services.gem_cost import GemCost


class GemWallet(db.Model):
    __tablename__ = "gem_wallet"
    __table_args__ = (
        db.CheckConstraint(
            "emerald >= 0 AND sapphire >= 0 AND ruby >= 0 AND diamond >= 0",
            name="ck_gem_wallet_non_negative",
        ),
    )

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), primary_key=True)
    emerald = db.Column(db.Integer, nullable=False, default=0)
    sapphire = db.Column(db.Integer, nullable=False, default=0)
    ruby = db.Column(db.Integer, nullable=False, default=0)
    diamond = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def balance(self):
        return GemCost.from_row(self)

    def to_dict(self):
        return self.balance.to_dict()


class GemTransaction(db.Model):
    """Append-only log of every gem movement. Amounts are magnitudes; `kind` gives the direction."""

    __tablename__ = "gem_transaction"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    topic_id = db.Column(db.Integer, db.ForeignKey("topic.id"), index=True)
    kind = db.Column(db.String(16), nullable=False)  # earn | spend | noble
    emerald = db.Column(db.Integer, nullable=False, default=0)
    sapphire = db.Column(db.Integer, nullable=False, default=0)
    ruby = db.Column(db.Integer, nullable=False, default=0)
    diamond = db.Column(db.Integer, nullable=False, default=0)
    prestige = db.Column(db.Integer, nullable=False, default=0)
    reason = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    @property
    def gems(self):
        return GemCost.from_row(self)

    def to_dict(self):
        return {
            "id": self.id,
            "topic_id": self.topic_id,
            "kind": self.kind,
            "gems": self.gems.to_dict(),
            "prestige": self.prestige,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }


class NobleClaim(db.Model):
    __tablename__ = "noble_claim"
    __table_args__ = (db.UniqueConstraint("user_id", "noble_id", name="uq_noble_claim_user_noble"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    noble_id = db.Column(db.String(64), nullable=False)
    prestige = db.Column(db.Integer, nullable=False)
    claimed_at = db.Column(db.DateTime, nullable=False, default=utcnow)
