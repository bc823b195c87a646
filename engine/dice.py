"""2d6 rolling, outcome classification and power strategies."""

import random
from typing import Callable, Optional

from config.exceptions import InvariantViolationError
from models.enums import Outcome, PowerStrategy
from models.roll import DiceOutcome

DiceRoller = Callable[[], int]

BEST_THRESHOLD = 10
MIXED_THRESHOLD = 7

_ACTION_LABELS = {
    Outcome.BEST: "Success",
    Outcome.MIXED: "Success & Consequences",
    Outcome.WORST: "Consequences",
}

_REACTION_LABELS = {
    Outcome.BEST: "Spend Power +1",
    Outcome.MIXED: "Spend Power",
    Outcome.WORST: "Suffer Consequences",
}

_STRATEGY_NAMES = {
    PowerStrategy.THROW_CAUTION: "Throw caution to the wind",
    PowerStrategy.HEDGE_RISKS: "Hedge your risks",
}


def default_die() -> int:
    return random.randint(1, 6)


def roll_2d6(roller: DiceRoller = default_die) -> tuple[int, int]:
    return roller(), roller()


def classify(die1: int, die2: int, total: int, is_reaction: bool = False) -> DiceOutcome:
    """Place a roll in its outcome band.

    Action rolls treat double ones and double sixes as automatic worst and
    best results. Reactions only look at the total.
    """
    if not is_reaction and die1 == die2 == 1:
        return DiceOutcome(die1, die2, total, Outcome.WORST, _ACTION_LABELS[Outcome.WORST], True)
    if not is_reaction and die1 == die2 == 6:
        return DiceOutcome(die1, die2, total, Outcome.BEST, _ACTION_LABELS[Outcome.BEST], True)

    if total >= BEST_THRESHOLD:
        outcome = Outcome.BEST
    elif total >= MIXED_THRESHOLD:
        outcome = Outcome.MIXED
    else:
        outcome = Outcome.WORST
    labels = _REACTION_LABELS if is_reaction else _ACTION_LABELS
    return DiceOutcome(die1, die2, total, outcome, labels[outcome])


def strategy_modifiers(strategy: PowerStrategy, power: int) -> tuple[int, int]:
    """Return (roll modifier, spend modifier) for a strategy at a given power.

    Raises:
        InvariantViolationError: if the strategy is not allowed at this power.
    """
    if strategy == PowerStrategy.THROW_CAUTION:
        if power > 2:
            raise InvariantViolationError(
                f'Cannot use "{_STRATEGY_NAMES[strategy]}": Power is {power}, it requires Power <= 2',
                {"strategy": strategy.value, "power": power},
            )
        return -1, 1
    if strategy == PowerStrategy.HEDGE_RISKS:
        if power < 2:
            raise InvariantViolationError(
                f'Cannot use "{_STRATEGY_NAMES[strategy]}": Power is {power}, it requires Power >= 2',
                {"strategy": strategy.value, "power": power},
            )
        return 1, -1
    return 0, 0


def spending_power(power: int, outcome: Outcome, spend_modifier: int = 0,
                   is_reaction: bool = False) -> Optional[int]:
    """Power available to spend after a successful roll; None on the worst band."""
    if outcome == Outcome.WORST:
        return None
    spend = max(power, 1) + spend_modifier
    if is_reaction and outcome == Outcome.BEST:
        spend += 1
    return spend


def strategy_name(strategy: PowerStrategy) -> Optional[str]:
    return _STRATEGY_NAMES.get(strategy)
