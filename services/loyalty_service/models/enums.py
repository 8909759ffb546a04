"""Enums for the Loyalty Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class RewardCategory(str, enum.Enum):
    COFFEE = "coffee"
    MEAL = "meal"

    @property
    def unit(self) -> int:
        return REWARD_UNITS[self]

    @property
    def redeemed_key(self) -> str:
        """Key of this category inside ``profiles.redeemed_rewards``."""
        return "coffees" if self is RewardCategory.COFFEE else "meals"


# Points per reward: a threshold is valid only as a positive multiple of its unit
REWARD_UNITS = {
    RewardCategory.COFFEE: 10,
    RewardCategory.MEAL: 25,
}


class TransactionType(str, enum.Enum):
    PURCHASE = "purchase"
    REDEMPTION_COFFEE = "redemption_coffee"
    REDEMPTION_MEAL = "redemption_meal"

    @classmethod
    def for_redemption(cls, category: RewardCategory) -> "TransactionType":
        if category is RewardCategory.MEAL:
            return cls.REDEMPTION_MEAL
        return cls.REDEMPTION_COFFEE
