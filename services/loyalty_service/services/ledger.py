"""Points ledger: purchases and reward redemptions.

Every mutation follows the same shape: lock the profile row, validate against
the freshly read state, write, commit. The profile carries a version counter,
so an UPDATE built from a stale read matches no rows; when that happens the
whole operation is re-run from the read, which is what turns a concurrent
duplicate redemption into ``AlreadyRedeemed`` instead of a double grant.
"""

from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.loyalty_service.errors import (
    AlreadyRedeemed,
    InsufficientPoints,
    InvalidRedemption,
    LoyaltyError,
    PersistenceFailure,
)
from services.loyalty_service.models import CustomerProfile, RewardCategory
from services.loyalty_service.services.audit import (
    purchase_entry,
    record_audit_entry,
    redemption_entry,
)
from services.loyalty_service.services.profiles import ProfileSnapshot, get_profile
from services.loyalty_service.services.rewards import (
    POINTS_PER_PURCHASE,
    ordered_thresholds,
    rewards_earned_at,
)
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

logger = get_logger(__name__)

MAX_WRITE_ATTEMPTS = 3

# Lost the version race, or the database reported lock contention
_RETRYABLE_ERRORS = (StaleDataError, OperationalError)


@dataclass(frozen=True)
class Redemption:
    category: RewardCategory
    threshold: int


@dataclass(frozen=True)
class PurchaseResult:
    profile: ProfileSnapshot
    points_earned: int
    rewards_earned: tuple[RewardCategory, ...]


def parse_redemption(category: Any, points: Any) -> Redemption:
    """Validate the raw (category, points) pair of a redemption request.

    The threshold must be a positive whole number and a multiple of the
    category's reward unit. Booleans and numeric strings are rejected.
    """
    try:
        reward_category = RewardCategory(category)
    except ValueError:
        raise InvalidRedemption(
            f"Invalid reward type {category!r}: must be 'coffee' or 'meal'"
        ) from None

    if isinstance(points, bool) or not isinstance(points, Real):
        raise InvalidRedemption("Points must be a number")
    if points != points or points in (float("inf"), float("-inf")):
        raise InvalidRedemption("Points must be a finite number")
    if points != int(points):
        raise InvalidRedemption("Points must be a whole number")
    threshold = int(points)
    if threshold <= 0:
        raise InvalidRedemption("Points must be positive")

    unit = reward_category.unit
    if threshold % unit != 0:
        raise InvalidRedemption(
            f"{reward_category.value.capitalize()} rewards are redeemed in "
            f"multiples of {unit} points, got {threshold}"
        )
    return Redemption(category=reward_category, threshold=threshold)


async def _mutate_profile(
    db: AsyncSession,
    customer_id: str,
    mutate: Callable[[CustomerProfile], None],
    *,
    operation: str,
) -> ProfileSnapshot:
    """Lock, validate, write and commit, retrying when the write lost a race.

    ``mutate`` applies the change to a freshly locked profile or raises a
    ``LoyaltyError``; it is called again on every retry.
    """
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        try:
            profile = await get_profile(db, customer_id, for_update=True)
            mutate(profile)
            profile.updated_at = utc_now()
            await db.commit()
            return ProfileSnapshot.from_model(profile)
        except _RETRYABLE_ERRORS as exc:
            await db.rollback()
            logger.warning(
                "Concurrent update on profile %s during %s (attempt %d/%d): %s",
                customer_id,
                operation,
                attempt,
                MAX_WRITE_ATTEMPTS,
                type(exc).__name__,
            )
        except LoyaltyError:
            await db.rollback()
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Failed to persist %s for customer %s", operation, customer_id)
            raise PersistenceFailure(f"Failed to persist {operation}") from exc

    logger.error(
        "Giving up on %s for customer %s after %d concurrent updates",
        operation,
        customer_id,
        MAX_WRITE_ATTEMPTS,
    )
    raise PersistenceFailure(f"Failed to persist {operation}: too many concurrent updates")


async def redeem_reward(
    db: AsyncSession,
    *,
    customer_id: str,
    category: Any,
    points: Any,
    employee_id: Optional[str] = None,
) -> ProfileSnapshot:
    """Mark one reward threshold as redeemed.

    Checks run in a fixed order: request shape, customer existence, duplicate
    redemption, then balance. Redeeming never deducts points; the threshold
    is recorded so the same reward cannot be claimed twice. The returned
    snapshot reflects the committed state.
    """
    return await apply_redemption(
        db,
        customer_id=customer_id,
        redemption=parse_redemption(category, points),
        employee_id=employee_id,
    )


async def apply_redemption(
    db: AsyncSession,
    *,
    customer_id: str,
    redemption: Redemption,
    employee_id: Optional[str] = None,
) -> ProfileSnapshot:
    """Record an already parsed redemption (see ``redeem_reward``)."""
    key = redemption.category.redeemed_key

    def apply(profile: CustomerProfile) -> None:
        stored = profile.redeemed_rewards or {}
        already = ordered_thresholds(stored.get(key))
        if redemption.threshold in already:
            raise AlreadyRedeemed(
                f"{redemption.category.value.capitalize()} reward at "
                f"{redemption.threshold} points has already been redeemed",
                threshold=redemption.threshold,
            )
        balance = profile.points_balance or 0
        if balance < redemption.threshold:
            raise InsufficientPoints(balance=balance, required=redemption.threshold)

        # New dict so the JSON column registers the change
        updated = {
            "coffees": ordered_thresholds(stored.get("coffees")),
            "meals": ordered_thresholds(stored.get("meals")),
        }
        updated[key] = already + [redemption.threshold]
        profile.redeemed_rewards = updated

    snapshot = await _mutate_profile(
        db, customer_id, apply, operation=f"{redemption.category.value} redemption"
    )
    logger.info(
        "Customer %s redeemed %s at %d points (balance %d)",
        customer_id,
        redemption.category.value,
        redemption.threshold,
        snapshot.points_balance,
    )

    await record_audit_entry(
        db,
        redemption_entry(
            snapshot,
            category=redemption.category,
            threshold=redemption.threshold,
            employee_id=employee_id,
        ),
    )
    return snapshot


async def record_purchase(
    db: AsyncSession,
    *,
    customer_id: str,
    employee_id: Optional[str] = None,
) -> PurchaseResult:
    """Credit one purchase to the customer's balance."""

    def apply(profile: CustomerProfile) -> None:
        profile.points_balance = (profile.points_balance or 0) + POINTS_PER_PURCHASE
        profile.total_purchases = (profile.total_purchases or 0) + 1

    snapshot = await _mutate_profile(db, customer_id, apply, operation="purchase")
    earned = rewards_earned_at(snapshot.points_balance)
    logger.info(
        "Customer %s purchase recorded: balance %d, rewards earned: %s",
        customer_id,
        snapshot.points_balance,
        ", ".join(category.value for category in earned) or "none",
    )

    await record_audit_entry(
        db,
        purchase_entry(
            snapshot, points_change=POINTS_PER_PURCHASE, employee_id=employee_id
        ),
    )
    return PurchaseResult(
        profile=snapshot, points_earned=POINTS_PER_PURCHASE, rewards_earned=earned
    )
