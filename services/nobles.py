import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from constants import NOBLES
from models.gem import GemTransaction, NobleClaim
from models.user import UserStats
from services.gem_cost import GEM_TYPES
from services.gem_engine import discounts_for, ensure_stats

logger = logging.getLogger(__name__)


@dataclass
class NobleProgress:
    noble_id: str
    name: str
    target: dict
    discount: dict
    per_gem: dict
    overall: float
    completed: bool
    claimed: bool
    newly_awarded: bool
    prestige: int

    def to_dict(self):
        return {
            "noble_id": self.noble_id,
            "name": self.name,
            "target": self.target,
            "discount": self.discount,
            "progress": self.per_gem,
            "overall": self.overall,
            "completed": self.completed,
            "claimed": self.claimed,
            "newly_awarded": self.newly_awarded,
            "prestige": self.prestige,
        }


def gem_ratios(discount, target):
    ratios = {}
    for gem in GEM_TYPES:
        needed = getattr(target, gem)
        if needed <= 0:
            ratios[gem] = 1.0
        else:
            ratios[gem] = min(1.0, getattr(discount, gem) / needed)
    return ratios


def _claimed_ids(session, user_id):
    rows = session.query(NobleClaim.noble_id).filter(NobleClaim.user_id == user_id).all()
    return {r[0] for r in rows}


def _award(session, user_id, noble):
    """Record the claim and its prestige. Returns False if another request claimed it first."""
    try:
        session.add(NobleClaim(user_id=user_id, noble_id=noble.id, prestige=noble.prestige))
        session.flush()
        stats = ensure_stats(session, user_id)
        stats.prestige_points = UserStats.prestige_points + noble.prestige
        session.add(GemTransaction(user_id=user_id, kind="noble", reason=f"noble:{noble.id}",
                                   prestige=noble.prestige))
        session.commit()
    except IntegrityError:
        session.rollback()
        return False
    except SQLAlchemyError:
        session.rollback()
        raise
    logger.info("User %s claimed noble %s (+%s prestige)", user_id, noble.id, noble.prestige)
    return True


def noble_progress(session, user_id, nobles=NOBLES):
    """Evaluate every noble for a user, awarding newly completed ones exactly once."""
    discount = discounts_for(session, user_id)
    claimed = _claimed_ids(session, user_id)
    results = []
    for noble in nobles:
        ratios = gem_ratios(discount, noble.target)
        completed = all(getattr(discount, gem) >= getattr(noble.target, gem) for gem in GEM_TYPES)
        is_claimed = noble.id in claimed
        newly_awarded = False
        if completed and not is_claimed:
            newly_awarded = _award(session, user_id, noble)
            is_claimed = True
        results.append(NobleProgress(
            noble_id=noble.id,
            name=noble.name,
            target=noble.target.to_dict(),
            discount=discount.to_dict(),
            per_gem=ratios,
            overall=min(ratios.values()),
            completed=completed,
            claimed=is_claimed,
            newly_awarded=newly_awarded,
            prestige=noble.prestige,
        ))
    return results
