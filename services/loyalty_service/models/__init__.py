"""Loyalty Service models package.

Re-exports all models and enums so that:
  - ``from services.loyalty_service.models import CustomerProfile`` works
  - Alembic env.py sees every table on import

IMPORTANT: Every model class AND enum must be listed here.
"""

from services.loyalty_service.models.audit import AuditEntry  # noqa: F401
from services.loyalty_service.models.enums import (  # noqa: F401
    REWARD_UNITS,
    RewardCategory,
    TransactionType,
)
from services.loyalty_service.models.profile import (  # noqa: F401
    CustomerProfile,
    empty_redeemed_rewards,
)
from services.loyalty_service.models.registration import PassRegistration  # noqa: F401

__all__ = [
    # Enums
    "REWARD_UNITS",
    "RewardCategory",
    "TransactionType",
    # Models
    "AuditEntry",
    "CustomerProfile",
    "PassRegistration",
    "empty_redeemed_rewards",
]
