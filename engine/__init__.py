"""Engine package — tag resolution, pools, modifiers and the roll lifecycle."""

from engine.resolver import TagResolver, categorize
from engine.pool import TagPoolCollector, paginate, page_count
from engine.modifier import ModifierBreakdown, calculate_breakdown, calculate_modifier
from engine.dice import classify, roll_2d6, spending_power, strategy_modifiers
from engine.drafts import DraftStore, RollSession, SessionKey
from engine.persistence import RollRepository
from engine.lifecycle import RollLifecycleManager

__all__ = [
    "TagResolver",
    "categorize",
    "TagPoolCollector",
    "paginate",
    "page_count",
    "ModifierBreakdown",
    "calculate_breakdown",
    "calculate_modifier",
    "classify",
    "roll_2d6",
    "spending_power",
    "strategy_modifiers",
    "DraftStore",
    "RollSession",
    "SessionKey",
    "RollRepository",
    "RollLifecycleManager",
]
