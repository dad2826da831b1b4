"""
Gem cost model.

Every topic has a base price in four gem types, derived only from its
difficulty and importance through a fixed tier table.
"""

from dataclasses import dataclass

GEM_TYPES = ("emerald", "sapphire", "ruby", "diamond")

DIFFICULTY_GEM_WEIGHT = {"high": 3, "medium": 2, "low": 1}
IMPORTANCE_GEM_WEIGHT = {"high": 3, "medium": 2, "low": 1}
DEFAULT_GEM_WEIGHT = 2


@dataclass(frozen=True)
class GemCost:
    emerald: int = 0
    sapphire: int = 0
    ruby: int = 0
    diamond: int = 0

    @classmethod
    def from_mapping(cls, data):
        data = data or {}
        return cls(**{gem: int(data.get(gem) or 0) for gem in GEM_TYPES})

    @classmethod
    def from_row(cls, row):
        """Build from anything exposing the four gem attributes (wallets, transactions)."""
        if row is None:
            return cls()
        return cls(**{gem: getattr(row, gem) or 0 for gem in GEM_TYPES})

    def minus(self, other: "GemCost") -> "GemCost":
        """Component-wise subtraction, floored at zero."""
        return GemCost(**{gem: max(0, getattr(self, gem) - getattr(other, gem)) for gem in GEM_TYPES})

    def shortfall(self, balance: "GemCost") -> list:
        """Gem types for which `balance` does not cover this cost."""
        return [gem for gem in GEM_TYPES if getattr(balance, gem) < getattr(self, gem)]

    def total(self) -> int:
        return sum(getattr(self, gem) for gem in GEM_TYPES)

    def is_zero(self) -> bool:
        return self.total() == 0

    def to_dict(self) -> dict:
        return {gem: getattr(self, gem) for gem in GEM_TYPES}


@dataclass(frozen=True)
class Noble:
    id: str
    name: str
    target: GemCost
    prestige: int


# (upper bound of difficulty + importance weight, cost)
GEM_COST_TIERS = (
    (2, GemCost(emerald=1)),
    (3, GemCost(emerald=1, sapphire=1)),
    (4, GemCost(emerald=2, sapphire=1, ruby=1)),
    (5, GemCost(emerald=2, sapphire=2, ruby=1, diamond=1)),
    (6, GemCost(emerald=3, sapphire=2, ruby=2, diamond=1)),
)


def base_cost(difficulty, importance) -> GemCost:
    d = DIFFICULTY_GEM_WEIGHT.get(difficulty, DEFAULT_GEM_WEIGHT)
    i = IMPORTANCE_GEM_WEIGHT.get(importance, DEFAULT_GEM_WEIGHT)
    total = d + i
    for bound, cost in GEM_COST_TIERS:
        if total <= bound:
            return cost
    return GEM_COST_TIERS[-1][1]


def is_gem_type(value) -> bool:
    return value in GEM_TYPES
