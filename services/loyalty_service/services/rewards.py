"""Reward eligibility computed from a points balance and redemption history.

Everything here is pure: the same inputs always give the same result, and
nothing touches the database or the wallets.
"""

import math
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Iterable, Mapping, Optional

from services.loyalty_service.models.enums import REWARD_UNITS, RewardCategory

POINTS_PER_PURCHASE = 1

REWARD_STRUCTURE_TEXT = "25 stamps = meal, 10 stamps = coffee"

MESSAGE_BOTH = "🎉 You earned BOTH a FREE MEAL and FREE COFFEE! 🍽️☕️"
MESSAGE_MEAL = "🎉 You earned a FREE MEAL! 🍽️"
MESSAGE_COFFEE = "🎉 You earned a FREE COFFEE! ☕️"
MESSAGE_NONE = "No reward yet! Keep shopping, you are almost there!"

LABEL_BOTH = "You just earned rewards!"
LABEL_ONE = "You just earned a reward!"
LABEL_NONE = "KEEP GOING"


@dataclass(frozen=True)
class RewardState:
    available_coffees: tuple[int, ...] = ()
    available_meals: tuple[int, ...] = ()
    reward_type: Optional[RewardCategory] = None
    message: str = MESSAGE_NONE
    label: str = LABEL_NONE

    def as_dict(self) -> dict:
        return {
            "available": {
                "coffees": list(self.available_coffees),
                "meals": list(self.available_meals),
            },
            "rewardType": self.reward_type.value if self.reward_type else None,
            "message": self.message,
            "label": self.label,
        }


@dataclass(frozen=True)
class RedeemedRewards:
    coffees: frozenset[int] = field(default_factory=frozenset)
    meals: frozenset[int] = field(default_factory=frozenset)


def _coerce_threshold(value: Any) -> Optional[int]:
    """Integer value of a stored threshold, or None when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if not isinstance(value, Real):
        return None
    if math.isnan(value) or math.isinf(value) or value != int(value):
        return None
    return int(value)


def _normalize_list(values: Any) -> frozenset[int]:
    return frozenset(ordered_thresholds(values))


def ordered_thresholds(values: Any) -> list[int]:
    """Stored thresholds as integers, first occurrence order, duplicates dropped."""
    if not isinstance(values, Iterable) or isinstance(values, (str, bytes, Mapping)):
        return []
    seen: dict[int, None] = {}
    for value in values:
        threshold = _coerce_threshold(value)
        if threshold is not None:
            seen.setdefault(threshold, None)
    return list(seen)


def normalize_redeemed(redeemed: Optional[Mapping[str, Any]]) -> RedeemedRewards:
    """Normalize the stored ``redeemed_rewards`` JSON into integer sets.

    Storage is loosely typed: entries may be strings, floats, NaN or junk.
    Anything that is not an integral number is dropped.
    """
    if not isinstance(redeemed, Mapping):
        return RedeemedRewards()
    return RedeemedRewards(
        coffees=_normalize_list(redeemed.get("coffees")),
        meals=_normalize_list(redeemed.get("meals")),
    )


def available_thresholds(
    points_balance: int, category: RewardCategory, redeemed: frozenset[int]
) -> tuple[int, ...]:
    unit = REWARD_UNITS[category]
    if points_balance < unit:
        return ()
    return tuple(
        threshold
        for threshold in range(unit, points_balance + 1, unit)
        if threshold not in redeemed
    )


def compute_reward_state(
    points_balance: int, redeemed: Optional[Mapping[str, Any]] = None
) -> RewardState:
    """Available rewards plus the status message shown on both wallet passes.

    Message precedence is a fixed business rule, not derived from the data:
    meal (the higher-value reward) wins over coffee, and with nothing
    available the customer gets the encouragement message.
    """
    points = max(int(points_balance or 0), 0)
    normalized = normalize_redeemed(redeemed)

    coffees = available_thresholds(points, RewardCategory.COFFEE, normalized.coffees)
    meals = available_thresholds(points, RewardCategory.MEAL, normalized.meals)

    if meals and coffees:
        return RewardState(coffees, meals, RewardCategory.MEAL, MESSAGE_BOTH, LABEL_BOTH)
    if meals:
        return RewardState(coffees, meals, RewardCategory.MEAL, MESSAGE_MEAL, LABEL_ONE)
    if coffees:
        return RewardState(
            coffees, meals, RewardCategory.COFFEE, MESSAGE_COFFEE, LABEL_ONE
        )
    return RewardState(coffees, meals)


def rewards_earned_at(points_balance: int) -> tuple[RewardCategory, ...]:
    """Categories unlocked by a balance landing exactly on a threshold.

    Meal first: at 50, 100, ... both rewards unlock at once.
    """
    return tuple(
        category
        for category in (RewardCategory.MEAL, RewardCategory.COFFEE)
        if points_balance >= category.unit and points_balance % category.unit == 0
    )
