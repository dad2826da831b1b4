"""
Gem economy: wallets, discounts and card purchases.

Discounts are never stored. They are counted from purchased topics every time
they are needed, so they cannot drift from the purchase history.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError

from constants import MASTERED, PRESTIGE_CARD_PURCHASE, PRESTIGE_HIGH_DIFFICULTY_BONUS
from models import utcnow
from models.gem import GemTransaction, GemWallet
from models.topic import Subject, Topic
from models.user import UserStats
from services.gem_cost import GEM_TYPES, GemCost, is_gem_type

logger = logging.getLogger(__name__)


class PurchaseError(str, enum.Enum):
    NOT_FOUND = "not_found"
    ALREADY_PURCHASED = "already_purchased"
    NOT_ELIGIBLE = "not_eligible"
    INSUFFICIENT_FUNDS = "insufficient_funds"


PURCHASE_ERROR_MESSAGES = {
    PurchaseError.NOT_FOUND: "Topic not found",
    PurchaseError.ALREADY_PURCHASED: "Topic already purchased",
    PurchaseError.NOT_ELIGIBLE: "Only mastered topics can be purchased",
    PurchaseError.INSUFFICIENT_FUNDS: "Insufficient gems",
}


@dataclass
class CostQuote:
    base: GemCost
    discount: GemCost
    effective: GemCost

    def to_dict(self):
        return {
            "base_cost": self.base.to_dict(),
            "discount": self.discount.to_dict(),
            "effective_cost": self.effective.to_dict(),
        }


@dataclass
class PurchaseResult:
    ok: bool
    error: Optional[PurchaseError] = None
    shortfall: list = field(default_factory=list)
    topic: Optional[Topic] = None
    transaction: Optional[GemTransaction] = None
    wallet: Optional[GemCost] = None
    prestige_awarded: int = 0
    effective_cost: Optional[GemCost] = None

    @classmethod
    def failure(cls, error, shortfall=None, effective_cost=None):
        return cls(ok=False, error=error, shortfall=shortfall or [], effective_cost=effective_cost)

    @property
    def message(self):
        return PURCHASE_ERROR_MESSAGES.get(self.error, "")


def ensure_wallet(session, user_id: int) -> GemWallet:
    wallet = session.get(GemWallet, user_id)
    if wallet is None:
        wallet = GemWallet(user_id=user_id, emerald=0, sapphire=0, ruby=0, diamond=0)
        session.add(wallet)
        session.flush()
    return wallet


def ensure_stats(session, user_id: int) -> UserStats:
    stats = session.get(UserStats, user_id)
    if stats is None:
        stats = UserStats(user_id=user_id, total_xp=0, prestige_points=0,
                          current_streak=0, longest_streak=0)
        session.add(stats)
        session.flush()
    return stats


def wallet_balance(session, user_id: int) -> GemCost:
    return GemCost.from_row(session.get(GemWallet, user_id))


def can_afford(balance: GemCost, cost: GemCost) -> bool:
    return not cost.shortfall(balance)


def earn_gems(session, user_id: int, gem_type: str, amount: int, reason: str, topic_id=None):
    """Credit `amount` gems of one type. The caller owns the commit."""
    if not is_gem_type(gem_type):
        raise ValueError(f"Invalid gem type: {gem_type}")
    if amount <= 0:
        return None
    wallet = ensure_wallet(session, user_id)
    setattr(wallet, gem_type, getattr(GemWallet, gem_type) + amount)
    session.flush()
    txn = GemTransaction(user_id=user_id, topic_id=topic_id, kind="earn",
                         reason=reason, prestige=0, **GemCost(**{gem_type: amount}).to_dict())
    session.add(txn)
    return txn


def discounts_for(session, user_id: int) -> GemCost:
    rows = session.query(Subject.gem_type, func.count(Topic.id)) \
        .join(Topic, Topic.subject_id == Subject.id) \
        .filter(Topic.user_id == user_id, Topic.purchased.is_(True)) \
        .group_by(Subject.gem_type) \
        .all()
    counts = {gem: 0 for gem in GEM_TYPES}
    for gem_type, count in rows:
        if gem_type in counts:
            counts[gem_type] += count
    return GemCost(**counts)


def discounts_by_subject(session, user_id: int):
    rows = session.query(Subject, func.count(Topic.id)) \
        .join(Topic, Topic.subject_id == Subject.id) \
        .filter(Subject.user_id == user_id, Topic.purchased.is_(True)) \
        .group_by(Subject.id) \
        .order_by(Subject.name) \
        .all()
    return [
        {
            "subject_id": subject.id,
            "subject_name": subject.name,
            "discount": GemCost.from_mapping({subject.gem_type: count}).to_dict(),
        }
        for subject, count in rows
    ]


def get_effective_cost(session, topic: Topic, user_id: int, discount: GemCost = None) -> CostQuote:
    base = topic.base_cost
    if discount is None:
        discount = discounts_for(session, user_id)
    return CostQuote(base=base, discount=discount, effective=base.minus(discount))


def _load_topic(session, user_id, topic_id):
    topic = session.get(Topic, topic_id)
    if topic is None or topic.user_id != user_id:
        return None
    return topic


def purchase_card(session, user_id: int, topic_id: int) -> PurchaseResult:
    topic = _load_topic(session, user_id, topic_id)
    if topic is None:
        return PurchaseResult.failure(PurchaseError.NOT_FOUND)
    if topic.purchased:
        return PurchaseResult.failure(PurchaseError.ALREADY_PURCHASED)
    if topic.column_name != MASTERED:
        return PurchaseResult.failure(PurchaseError.NOT_ELIGIBLE)

    quote = get_effective_cost(session, topic, user_id)
    cost = quote.effective
    short = cost.shortfall(wallet_balance(session, user_id))
    if short:
        return PurchaseResult.failure(PurchaseError.INSUFFICIENT_FUNDS, short, cost)

    prestige = PRESTIGE_CARD_PURCHASE
    if topic.difficulty == "high":
        prestige += PRESTIGE_HIGH_DIFFICULTY_BONUS

    try:
        ensure_wallet(session, user_id)
        debited = session.execute(
            update(GemWallet)
            .where(GemWallet.user_id == user_id,
                   *[getattr(GemWallet, gem) >= getattr(cost, gem) for gem in GEM_TYPES])
            .values(updated_at=utcnow(),
                    **{gem: getattr(GemWallet, gem) - getattr(cost, gem) for gem in GEM_TYPES})
            .execution_options(synchronize_session=False)
        ).rowcount
        if debited != 1:
            # balance moved between the check and the debit
            session.rollback()
            short = cost.shortfall(wallet_balance(session, user_id))
            return PurchaseResult.failure(PurchaseError.INSUFFICIENT_FUNDS, short, cost)

        now = utcnow()
        marked = session.execute(
            update(Topic)
            .where(Topic.id == topic.id, Topic.purchased.is_(False), Topic.column_name == MASTERED)
            .values(purchased=True, purchased_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        ).rowcount
        if marked != 1:
            session.rollback()
            return PurchaseResult.failure(PurchaseError.ALREADY_PURCHASED)

        stats = ensure_stats(session, user_id)
        stats.prestige_points = UserStats.prestige_points + prestige

        txn = GemTransaction(user_id=user_id, topic_id=topic.id, kind="spend",
                             reason="card_purchase", prestige=prestige, **cost.to_dict())
        session.add(txn)
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise

    session.refresh(topic)
    logger.info("User %s purchased topic %s for %s (+%s prestige)", user_id, topic.id, cost.to_dict(), prestige)
    return PurchaseResult(
        ok=True,
        topic=topic,
        transaction=txn,
        wallet=wallet_balance(session, user_id),
        prestige_awarded=prestige,
        effective_cost=cost,
    )


def list_transactions(session, user_id: int, limit: int = 20, offset: int = 0):
    q = session.query(GemTransaction).filter(GemTransaction.user_id == user_id)
    total = q.count()
    rows = q.order_by(GemTransaction.created_at.desc(), GemTransaction.id.desc()) \
        .limit(limit).offset(offset).all()
    return rows, total
