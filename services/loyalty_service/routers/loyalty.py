"""Ledger endpoints used by the shop's point-of-sale."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.loyalty_service.models import RewardCategory
from services.loyalty_service.schemas import (
    CustomerOut,
    PurchaseCustomerOut,
    PurchaseRequest,
    PurchaseResponse,
    RedeemedRewardsOut,
    RedeemRequest,
    RedeemResponse,
    RewardStateResponse,
    WalletSyncOut,
)
from services.loyalty_service.services.ledger import (
    apply_redemption,
    parse_redemption,
    record_purchase,
)
from services.loyalty_service.services.profiles import ProfileSnapshot, get_profile
from services.loyalty_service.services.rewards import (
    compute_reward_state,
    ordered_thresholds,
)
from services.loyalty_service.services.wallets.sync import WalletSyncOrchestrator
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/loyalty", tags=["loyalty"])


def get_wallet_sync(request: Request) -> WalletSyncOrchestrator:
    """Wallet sync bundle built once at startup."""
    return request.app.state.wallet_sync


def _redeemed_out(profile: ProfileSnapshot) -> RedeemedRewardsOut:
    redeemed = profile.redeemed_rewards
    return RedeemedRewardsOut(
        coffees=ordered_thresholds(redeemed.get("coffees")),
        meals=ordered_thresholds(redeemed.get("meals")),
    )


async def _sync_wallets(
    wallet_sync: WalletSyncOrchestrator, profile: ProfileSnapshot
) -> WalletSyncOut:
    summary = await wallet_sync.sync_all(profile.id, profile)
    return WalletSyncOut.model_validate(summary.as_dict())


@router.post("/redeem", response_model=RedeemResponse)
async def redeem(
    body: RedeemRequest,
    x_employee_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_async_db),
    wallet_sync: WalletSyncOrchestrator = Depends(get_wallet_sync),
):
    """Redeem a free coffee or meal. The points balance is not reduced."""
    redemption = parse_redemption(body.reward_category, body.points)
    profile = await apply_redemption(
        db,
        customer_id=body.customer_id,
        redemption=redemption,
        employee_id=x_employee_id,
    )
    return RedeemResponse(
        message=(
            f"Reward redeemed successfully! {redemption.category.value} "
            f"at {redemption.threshold} points"
        ),
        customer=CustomerOut(
            id=profile.id,
            name=profile.display_name,
            points=profile.points_balance,
            redeemed_rewards=_redeemed_out(profile),
        ),
        wallet_sync=await _sync_wallets(wallet_sync, profile),
    )


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase(
    body: PurchaseRequest,
    x_employee_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_async_db),
    wallet_sync: WalletSyncOrchestrator = Depends(get_wallet_sync),
):
    """Credit one purchase and report any reward it unlocked."""
    result = await record_purchase(
        db, customer_id=body.customer_id, employee_id=x_employee_id
    )
    profile = result.profile
    earned = result.rewards_earned
    return PurchaseResponse(
        customer=PurchaseCustomerOut(
            id=profile.id,
            name=profile.display_name,
            total_purchases=profile.total_purchases,
            points_balance=profile.points_balance,
        ),
        points_earned=result.points_earned,
        reward_earned=bool(earned),
        reward_type=earned[0].value if earned else None,
        earned_meal=RewardCategory.MEAL in earned,
        earned_coffee=RewardCategory.COFFEE in earned,
        wallet_sync=await _sync_wallets(wallet_sync, profile),
    )


@router.get("/customers/{customer_id}/rewards", response_model=RewardStateResponse)
async def get_customer_rewards(
    customer_id: str,
    db: AsyncSession = Depends(get_async_db),
):
    """Rewards currently available to a customer."""
    profile = ProfileSnapshot.from_model(await get_profile(db, customer_id))
    state = compute_reward_state(profile.points_balance, profile.redeemed_rewards)
    return RewardStateResponse(
        customer_id=profile.id,
        points=profile.points_balance,
        redeemed_rewards=_redeemed_out(profile),
        **state.as_dict(),
    )
