"""Committed profile state handed from the ledger to audit and wallet sync."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc
from services.loyalty_service.errors import CustomerNotFound
from services.loyalty_service.models import CustomerProfile, empty_redeemed_rewards
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class ProfileSnapshot:
    """Immutable copy of a profile taken right after a commit."""

    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    points_balance: int = 0
    total_purchases: int = 0
    redeemed_rewards: dict = field(default_factory=empty_redeemed_rewards)
    updated_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return (self.full_name or "").strip() or "Customer"

    @property
    def member_name(self) -> str:
        """Name printed on the wallet pass."""
        return (
            (self.full_name or "").strip()
            or (self.email or "").strip()
            or "Valued Customer"
        )

    @classmethod
    def from_model(cls, profile: CustomerProfile) -> "ProfileSnapshot":
        redeemed = profile.redeemed_rewards or empty_redeemed_rewards()
        return cls(
            id=profile.id,
            full_name=profile.full_name,
            email=profile.email,
            points_balance=profile.points_balance or 0,
            total_purchases=profile.total_purchases or 0,
            redeemed_rewards={
                "coffees": list(redeemed.get("coffees") or []),
                "meals": list(redeemed.get("meals") or []),
            },
            updated_at=as_utc(profile.updated_at),
        )


async def get_profile(
    db: AsyncSession, customer_id: str, *, for_update: bool = False
) -> CustomerProfile:
    """Load a profile by customer id. Raises CustomerNotFound (404)."""
    stmt = (
        select(CustomerProfile)
        .where(CustomerProfile.id == customer_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    profile = result.scalar_one_or_none()
    if profile is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    return profile
