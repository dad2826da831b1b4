from services.gem_cost import GemCost, Noble

# Board stages. "reviewing" and "mastered" are only entered through reviews.
BACKLOG = "backlog"
TODAY = "today"
REVIEWING = "reviewing"
MASTERED = "mastered"
STAGES = (BACKLOG, TODAY, REVIEWING, MASTERED)
EDITABLE_STAGES = (BACKLOG, TODAY)

LEVELS = ("high", "medium", "low")

SCORE_TO_INTERVAL_DAYS = {1: 1, 2: 2, 3: 4, 4: 10, 5: 30}
MASTERY_SCORE = 4
MASTERY_THRESHOLD = 3

XP_PER_REVIEW = 10
XP_PER_MASTERY = 30

GEMS_PER_REVIEW = 1
GEMS_PER_MASTERY = 1

PRESTIGE_CARD_PURCHASE = 1
PRESTIGE_HIGH_DIFFICULTY_BONUS = 1

NOBLES = (
    Noble("grove_keeper", "Grove Keeper", GemCost(emerald=4, sapphire=4), 3),
    Noble("ember_warden", "Ember Warden", GemCost(ruby=4, diamond=4), 3),
    Noble("tide_scholar", "Tide Scholar", GemCost(emerald=3, sapphire=3, ruby=3), 3),
    Noble("crystal_sage", "Crystal Sage", GemCost(sapphire=3, ruby=3, diamond=3), 3),
)
